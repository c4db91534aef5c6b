"""Peer-link interface and the events it posts to the session manager."""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List

from sparkcall.services.call_session.media import MediaStream, MediaTrack


@dataclass
class SessionDescription:
    """Connection-setup metadata exchanged through signaling."""

    type: str  # offer, answer
    sdp: str


@dataclass
class TrackReceived:
    """The remote peer started sending media."""

    stream: MediaStream


@dataclass
class IceCandidateGathered:
    """A local ICE candidate that should reach the remote peer."""

    candidate: Dict[str, Any]


@dataclass
class PeerLinkClosed:
    """The peer link went away without the manager closing it."""

    reason: str = "closed"


class PeerLink(ABC):
    """Abstract peer-to-peer media connection."""

    @abstractmethod
    def add_track(self, track: MediaTrack, stream: MediaStream) -> None:
        """Send a local track to the remote peer."""
        pass

    @abstractmethod
    async def create_offer(self) -> SessionDescription:
        """Produce a local offer."""
        pass

    @abstractmethod
    async def set_local_description(self, description: SessionDescription) -> None:
        """Apply a local description and start gathering candidates."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the connection."""
        pass


class PeerLinkFactory(ABC):
    """Creates peer links wired to a manager's event inbox."""

    @abstractmethod
    def open(self, ice_servers: List[str], inbox: asyncio.Queue) -> PeerLink:
        """Create a peer link that posts TrackReceived, IceCandidateGathered and
        PeerLinkClosed events to inbox."""
        pass
