"""In-process media and peer-link implementations.

The loopback peer link never leaves the host: once the local description is
applied it reports the configured ICE candidates and, when ``echo_remote`` is
set, answers with a copy of the local tracks as the remote stream. Used for
local runs and tests where no browser or media stack is available.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from sparkcall.core.exceptions import MediaAccessError, SignalingError
from sparkcall.services.call_session.media import MediaDevices, MediaStream, MediaTrack
from sparkcall.services.call_session.peer import (
    IceCandidateGathered,
    PeerLink,
    PeerLinkClosed,
    PeerLinkFactory,
    SessionDescription,
    TrackReceived,
)

logger = logging.getLogger(__name__)


class LoopbackMediaDevices(MediaDevices):
    """Fake capture devices with switchable permission and camera."""

    def __init__(self, permission_granted: bool = True, has_camera: bool = True):
        self.permission_granted = permission_granted
        self.has_camera = has_camera
        self.streams: List[MediaStream] = []

    async def get_user_media(self, audio: bool = True, video: bool = True) -> MediaStream:
        if not self.permission_granted:
            raise MediaAccessError("Permission denied")
        if video and not self.has_camera:
            raise MediaAccessError("Requested device not found")

        tracks = []
        if audio:
            tracks.append(MediaTrack("audio", "loopback microphone"))
        if video:
            tracks.append(MediaTrack("video", "loopback camera"))
        stream = MediaStream(tracks)
        self.streams.append(stream)
        return stream


class LoopbackPeerLink(PeerLink):
    """Peer link whose remote side is the local host."""

    def __init__(
        self,
        inbox: asyncio.Queue,
        ice_servers: List[str],
        echo_remote: bool = True,
        candidates: Optional[List[Dict[str, Any]]] = None,
    ):
        self.inbox = inbox
        self.ice_servers = list(ice_servers)
        self.echo_remote = echo_remote
        self.candidates = list(candidates or [])
        self.senders: List[MediaTrack] = []
        self.local_description: Optional[SessionDescription] = None
        self.closed = False

    def add_track(self, track: MediaTrack, stream: MediaStream) -> None:
        if self.closed:
            raise SignalingError("Peer link is closed")
        self.senders.append(track)

    async def create_offer(self) -> SessionDescription:
        if self.closed:
            raise SignalingError("Peer link is closed")
        lines = ["v=0", "o=- 0 0 IN IP4 127.0.0.1", "s=sparkcall-loopback", "t=0 0"]
        lines += [f"m={track.kind} 9 UDP/TLS/RTP/SAVPF 0" for track in self.senders]
        return SessionDescription(type="offer", sdp="\r\n".join(lines) + "\r\n")

    async def set_local_description(self, description: SessionDescription) -> None:
        if self.closed:
            raise SignalingError("Peer link is closed")
        self.local_description = description
        for candidate in self.candidates:
            self.inbox.put_nowait(IceCandidateGathered(candidate))
        if self.echo_remote and self.senders:
            remote = MediaStream(
                [MediaTrack(track.kind, f"remote {track.kind}") for track in self.senders]
            )
            self.inbox.put_nowait(TrackReceived(remote))

    def drop(self, reason: str = "connection lost") -> None:
        """Simulate the remote side going away."""
        if not self.closed:
            logger.info(f"[LOOPBACK] Peer link dropped: {reason}")
            self.inbox.put_nowait(PeerLinkClosed(reason))

    async def close(self) -> None:
        self.closed = True


class LoopbackPeerLinkFactory(PeerLinkFactory):
    """Creates loopback peer links and keeps them for inspection."""

    def __init__(
        self,
        echo_remote: bool = True,
        candidates: Optional[List[Dict[str, Any]]] = None,
        fail_on_open: bool = False,
    ):
        self.echo_remote = echo_remote
        self.candidates = candidates
        self.fail_on_open = fail_on_open
        self.links: List[LoopbackPeerLink] = []

    def open(self, ice_servers: List[str], inbox: asyncio.Queue) -> LoopbackPeerLink:
        if self.fail_on_open:
            raise SignalingError("Could not create peer link")
        link = LoopbackPeerLink(
            inbox,
            ice_servers,
            echo_remote=self.echo_remote,
            candidates=self.candidates,
        )
        self.links.append(link)
        return link
