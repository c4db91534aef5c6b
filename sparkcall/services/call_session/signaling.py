"""Signaling boundary between the two call participants."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from sparkcall.services.call_session.models import CallRecord
from sparkcall.services.call_session.peer import SessionDescription

logger = logging.getLogger(__name__)


class Signaling(ABC):
    """Out-of-band transport for offers and ICE candidates."""

    @abstractmethod
    async def send_offer(self, record: CallRecord, offer: SessionDescription) -> None:
        pass

    @abstractmethod
    async def send_candidate(self, record: CallRecord, candidate: Dict[str, Any]) -> None:
        pass


class LoggingSignaling(Signaling):
    """Signaling stub: logs what would be sent to the remote peer."""

    async def send_offer(self, record: CallRecord, offer: SessionDescription) -> None:
        logger.info(
            f"[SIGNALING] Offer for call {record.id} to {record.receiver_id} "
            f"({len(offer.sdp)} bytes of SDP)"
        )

    async def send_candidate(self, record: CallRecord, candidate: Dict[str, Any]) -> None:
        logger.info(f"[SIGNALING] ICE candidate for call {record.id}: {candidate}")
