"""Call session manager."""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from sparkcall.core.config import settings
from sparkcall.core.exceptions import (
    CallServiceError,
    CallTimeoutError,
    InvalidStateError,
    MediaAccessError,
    RecordStoreError,
    SignalingError,
)
from sparkcall.services.call_session.media import MediaDevices, MediaStream
from sparkcall.services.call_session.models import (
    CallRecord,
    CallRecordPatch,
    CallSession,
    CallState,
    CallStatus,
    NewCallRecord,
    as_utc,
    compute_duration,
    utcnow,
    validate_participants,
)
from sparkcall.services.call_session.peer import (
    IceCandidateGathered,
    PeerLinkClosed,
    PeerLinkFactory,
    TrackReceived,
)
from sparkcall.services.call_session.signaling import LoggingSignaling, Signaling
from sparkcall.services.persistence.base import CallRecordStore

logger = logging.getLogger(__name__)

LIVE_STATES = (CallState.INITIATING, CallState.CONNECTING, CallState.ACTIVE)


class CallSessionManager:
    """Drives one outbound call at a time and keeps its call record in step.

    Setup, the peer-link event pump and the connect timeout run as tasks owned
    by the manager. Whichever of end_call or a failure reaches a session first
    tears it down; local media and the peer link are always released before the
    record store is written.
    """

    def __init__(
        self,
        store: CallRecordStore,
        media_devices: MediaDevices,
        peer_links: PeerLinkFactory,
        signaling: Optional[Signaling] = None,
        *,
        video_enabled: bool = settings.call_video_enabled,
        connect_timeout: Optional[float] = settings.call_connect_timeout,
        ice_servers: Optional[List[str]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.media_devices = media_devices
        self.peer_links = peer_links
        self.signaling = signaling or LoggingSignaling()
        self.video_enabled = video_enabled
        self.connect_timeout = connect_timeout
        self.ice_servers = list(settings.ice_servers if ice_servers is None else ice_servers)
        self.clock = clock

        self.state = CallState.IDLE
        self.error: Optional[CallServiceError] = None
        self.last_record: Optional[CallRecord] = None
        self._session: Optional[CallSession] = None
        self._setup_task: Optional[asyncio.Task] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._timeout_task: Optional[asyncio.Task] = None

    @property
    def session(self) -> Optional[CallSession]:
        return self._session

    @property
    def is_call_active(self) -> bool:
        return self.state in LIVE_STATES

    @property
    def is_muted(self) -> bool:
        return self._session.muted if self._session else False

    @property
    def local_media(self) -> Optional[MediaStream]:
        return self._session.local_media if self._session else None

    @property
    def remote_media(self) -> Optional[MediaStream]:
        return self._session.remote_media if self._session else None

    def clear_error(self) -> None:
        self.error = None

    async def initiate_call(self, caller_id: str, receiver_id: str) -> Optional[CallRecord]:
        """
        Start an outbound call.

        Returns the call record once the offer is out and the record is ongoing.
        If end_call interrupts setup, returns whatever record exists at that point.

        Raises:
            ValidationError: missing or identical ids (nothing is written)
            InvalidStateError: a call is already in progress
            MediaAccessError, SignalingError, RecordStoreError: setup failed;
                the record, if created, has been marked missed
        """
        validate_participants(caller_id, receiver_id)
        if self.state not in (CallState.IDLE, CallState.ERRORED):
            raise InvalidStateError(f"Cannot initiate a call while {self.state.value}")

        session = CallSession(caller_id, receiver_id, video_enabled=self.video_enabled)
        self._session = session
        self.error = None
        self._set_state(CallState.INITIATING)
        logger.info(f"[CALL SESSION] Initiating call - caller: {caller_id}, receiver: {receiver_id}")

        self._pump_task = asyncio.create_task(self._pump_events(session))
        self._setup_task = asyncio.create_task(self._set_up(session))
        try:
            await self._setup_task
        except asyncio.CancelledError:
            if not session.closed:
                # Our own caller cancelled us: the attempt is abandoned.
                logger.info("[CALL SESSION] Call setup abandoned by caller")
                await self.end_call()
                raise
            if session.error is not None:
                raise session.error
            return session.record
        except CallServiceError as e:
            await self._fail(session, e)
            raise
        return session.record

    async def end_call(self) -> Optional[CallRecord]:
        """
        Hang up.

        No-op when no call is held. Otherwise cancels any in-flight setup,
        releases media and the peer link, then marks the record ended.
        Returns the ended record, or None if no record was created yet.
        """
        session = self._session
        if session is None or session.closed:
            return None
        session.closed = True
        self._set_state(CallState.ENDING)

        await self._stop_tasks()
        await self._release(session)
        self._session = None
        try:
            return await self._close_record(session)
        except CallServiceError as e:
            self.error = e
            raise
        finally:
            self._set_state(CallState.IDLE)

    def toggle_mute(self) -> bool:
        """Flip the local microphone. Returns the new muted flag."""
        session = self._session
        if session is None or session.local_media is None:
            return self.is_muted
        tracks = session.local_media.audio_tracks()
        if tracks:
            tracks[0].enabled = not tracks[0].enabled
            session.muted = not tracks[0].enabled
        return session.muted

    def toggle_video(self) -> bool:
        """Flip the local camera. Returns the new video-enabled flag."""
        session = self._session
        if session is None or session.local_media is None:
            return session.video_enabled if session else self.video_enabled
        tracks = session.local_media.video_tracks()
        if tracks:
            tracks[0].enabled = not tracks[0].enabled
            session.video_enabled = tracks[0].enabled
            self.video_enabled = session.video_enabled
        return session.video_enabled

    async def _set_up(self, session: CallSession) -> None:
        session.record_pending = True
        record = await self._write(
            self.store.create(
                NewCallRecord(
                    caller_id=session.caller_id,
                    receiver_id=session.receiver_id,
                    status=CallStatus.INITIATED,
                )
            )
        )
        session.record_pending = False
        self._remember(session, record)
        logger.info(f"[CALL SESSION] Call record created - id: {record.id}")

        try:
            session.local_media = await self.media_devices.get_user_media(
                audio=True, video=session.video_enabled
            )
        except MediaAccessError:
            raise
        except Exception as e:
            raise MediaAccessError(f"Failed to access camera/microphone: {e}") from e

        try:
            session.peer_link = self.peer_links.open(self.ice_servers, session.inbox)
            for track in session.local_media.tracks:
                session.peer_link.add_track(track, session.local_media)
            offer = await session.peer_link.create_offer()
            await session.peer_link.set_local_description(offer)
            await self.signaling.send_offer(record, offer)
        except SignalingError:
            raise
        except Exception as e:
            raise SignalingError(f"Peer link setup failed: {e}") from e
        logger.info(f"[CALL SESSION] Offer sent for call {record.id}")

        if session.remote_media is not None:
            self._set_state(CallState.ACTIVE)
        else:
            self._set_state(CallState.CONNECTING)
            self._arm_timeout(session)

        record = await self._write(
            self.store.update(record.id, CallRecordPatch(status=CallStatus.ONGOING))
        )
        self._remember(session, record)

    async def _pump_events(self, session: CallSession) -> None:
        while not session.closed:
            event = await session.inbox.get()
            try:
                await self._handle_event(session, event)
            except CallServiceError as e:
                self.error = e
                logger.error(f"[CALL SESSION] Event handling failed - {type(e).__name__}: {e.message}")

    async def _handle_event(self, session: CallSession, event) -> None:
        if session.closed:
            return
        if isinstance(event, TrackReceived):
            session.remote_media = event.stream
            logger.info(f"[CALL SESSION] Remote media attached - {len(event.stream.tracks)} tracks")
            if self.state == CallState.CONNECTING:
                self._set_state(CallState.ACTIVE)
                self._disarm_timeout()
        elif isinstance(event, IceCandidateGathered):
            try:
                await self.signaling.send_candidate(session.record, event.candidate)
            except Exception as e:
                await self._fail(session, SignalingError(f"Could not send ICE candidate: {e}"))
        elif isinstance(event, PeerLinkClosed):
            if self.state == CallState.ACTIVE:
                logger.info(f"[CALL SESSION] Peer link closed during call: {event.reason}")
                await self.end_call()
            else:
                await self._fail(
                    session,
                    SignalingError(f"Peer link closed before the call connected: {event.reason}"),
                )
        else:
            logger.debug(f"[CALL SESSION] Ignoring unknown event {event!r}")

    def _arm_timeout(self, session: CallSession) -> None:
        if self.connect_timeout is None:
            return
        self._timeout_task = asyncio.create_task(
            self._expire_connect(session, self.connect_timeout)
        )

    def _disarm_timeout(self) -> None:
        task = self._timeout_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _expire_connect(self, session: CallSession, timeout: float) -> None:
        await asyncio.sleep(timeout)
        if session.closed or self.state != CallState.CONNECTING:
            return
        logger.warning(f"[CALL SESSION] No remote media after {timeout:g}s")
        await self._fail(session, CallTimeoutError(f"No remote media within {timeout:g}s"))

    async def _fail(self, session: CallSession, error: CallServiceError) -> None:
        if session.closed:
            return
        session.closed = True
        session.error = error
        self.error = error
        self._set_state(CallState.ERRORED)
        logger.error(f"[CALL SESSION] Call failed - {type(error).__name__}: {error.message}")

        await self._stop_tasks()
        await self._release(session)
        self._session = None
        if session.record is not None:
            await self._mark_missed(session)

    async def _stop_tasks(self) -> None:
        current = asyncio.current_task()
        tasks = [
            task
            for task in (self._setup_task, self._pump_task, self._timeout_task)
            if task is not None and task is not current and not task.done()
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._timeout_task = None

    async def _release(self, session: CallSession) -> None:
        if session.local_media is not None:
            session.local_media.stop()
            session.local_media = None
        if session.peer_link is not None:
            try:
                await session.peer_link.close()
            except Exception as e:
                logger.warning(f"[CALL SESSION] Error closing peer link: {type(e).__name__}: {e}")
            session.peer_link = None
        session.remote_media = None

    async def _close_record(self, session: CallSession) -> Optional[CallRecord]:
        if session.record is None:
            if session.record_pending:
                logger.warning(
                    "[CALL SESSION] Call ended while its record was being created - "
                    "the store may keep it as initiated"
                )
            else:
                logger.info("[CALL SESSION] Call ended before its record was created")
            return None
        start_time = as_utc(session.record.start_time)
        end_time = max(as_utc(self.clock()), start_time)
        record = await self._write(
            self.store.update(
                session.record.id,
                CallRecordPatch(
                    status=CallStatus.ENDED,
                    end_time=end_time,
                    duration=compute_duration(start_time, end_time),
                ),
            )
        )
        self._remember(session, record)
        logger.info(f"[CALL SESSION] Call {record.id} ended - duration: {record.duration} min")
        return record

    async def _mark_missed(self, session: CallSession) -> None:
        try:
            record = await self.store.update(
                session.record.id, CallRecordPatch(status=CallStatus.MISSED)
            )
        except Exception as e:
            logger.warning(
                f"[CALL SESSION] Could not mark call {session.record.id} as missed - "
                f"{type(e).__name__}: {e}"
            )
            return
        self._remember(session, record)

    async def _write(self, operation: Awaitable[CallRecord]) -> CallRecord:
        try:
            return await operation
        except CallServiceError:
            raise
        except Exception as e:
            raise RecordStoreError(f"Call record store failed: {e}") from e

    def _remember(self, session: CallSession, record: CallRecord) -> None:
        session.record = record
        self.last_record = record

    def _set_state(self, state: CallState) -> None:
        if state != self.state:
            logger.info(f"[CALL SESSION] {self.state.value} -> {state.value}")
            self.state = state
