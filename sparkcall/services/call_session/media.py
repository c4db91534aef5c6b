"""Local media handles and the device interface that produces them."""
import uuid
from abc import ABC, abstractmethod
from typing import List, Optional


class MediaTrack:
    """A single audio or video track."""

    def __init__(self, kind: str, label: str = ""):
        self.id = uuid.uuid4().hex
        self.kind = kind  # "audio" or "video"
        self.label = label or kind
        self.enabled = True
        self.ended = False

    def stop(self) -> None:
        self.ended = True


class MediaStream:
    """A group of tracks captured or received together."""

    def __init__(self, tracks: Optional[List[MediaTrack]] = None):
        self.id = uuid.uuid4().hex
        self.tracks: List[MediaTrack] = list(tracks or [])

    def audio_tracks(self) -> List[MediaTrack]:
        return [track for track in self.tracks if track.kind == "audio"]

    def video_tracks(self) -> List[MediaTrack]:
        return [track for track in self.tracks if track.kind == "video"]

    @property
    def active(self) -> bool:
        return any(not track.ended for track in self.tracks)

    def stop(self) -> None:
        """Stop every track in the stream."""
        for track in self.tracks:
            track.stop()


class MediaDevices(ABC):
    """Abstract source of local capture."""

    @abstractmethod
    async def get_user_media(self, audio: bool = True, video: bool = True) -> MediaStream:
        """
        Acquire local capture.

        Raises:
            MediaAccessError: permission denied or no matching device
        """
        pass
