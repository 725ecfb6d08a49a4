"""
On-duty / off-duty state machine.

    OFF_DUTY --start_duty-------> ON_DUTY   opens today's attendance session,
                                            marks duty status active, then
                                            starts location sampling
    ON_DUTY  --location_update--> ON_DUTY   refreshes duty status location
    ON_DUTY  --end_duty---------> OFF_DUTY  stops sampling, then marks status
                                            inactive and closes open sessions

The durable state lives in the document store (open attendance sessions and
the ``duty_status`` document); the in-memory ``state`` only moves after the
corresponding writes succeeded. A failed transition undoes the writes it
already made. Transitions of one subject run one at a time.
"""

import asyncio
import enum
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from datetime import date, datetime

from dutytrack.core.clock import json_timestamp, local_today, utcnow
from dutytrack.core.errors import (
    DutyTrackError,
    InvalidTransition,
    PermissionDenied,
    PreconditionFailed,
)
from dutytrack.core.roles import Subject
from dutytrack.identity import IdentityProvider
from dutytrack.location import (
    LocationProvider,
    ReportedLocationProvider,
    Subscription,
    WatchOptions,
)
from dutytrack.schemas.attendance import AttendanceSession, Coordinate
from dutytrack.schemas.duty import DutyStatus
from dutytrack.store.base import ATTENDANCE, DUTY_STATUS, DocumentStore

logger = logging.getLogger(__name__)


class DutyState(str, enum.Enum):
    OFF_DUTY = "off_duty"
    ON_DUTY = "on_duty"


class DutySession:
    def __init__(
        self,
        subject: Subject,
        store: DocumentStore,
        location: LocationProvider,
        *,
        watch_options: WatchOptions | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.subject = subject
        self.location = location
        self._store = store
        self._watch_options = watch_options or WatchOptions()
        self._clock = clock
        self._state = DutyState.OFF_DUTY
        self._subscription: Subscription | None = None
        self._duty_date: date | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> DutyState:
        return self._state

    @property
    def sampling(self) -> bool:
        return self._subscription is not None

    @property
    def _subject_id(self) -> str:
        return str(self.subject.id)

    async def rehydrate(self) -> DutyState:
        """Derive the state from the store: an open session for today means on duty."""
        today = local_today(self._clock())
        open_sessions = await self._open_sessions([today])
        if open_sessions:
            self._state = DutyState.ON_DUTY
            self._duty_date = today
            await self.resume_sampling()
        else:
            self._state = DutyState.OFF_DUTY
            self._duty_date = None
        logger.debug("Rehydrated duty state for %s: %s", self._subject_id, self._state.value)
        return self._state

    async def resume_sampling(self) -> bool:
        """Restart location sampling for an on-duty subject that lost its watcher."""
        if self._state is not DutyState.ON_DUTY or self._subscription is not None:
            return False
        if not await self.location.request_permission():
            return False
        self._start_sampling()
        return True

    async def start_duty(self) -> AttendanceSession:
        async with self._lock:
            return await self._start_duty()

    async def location_update(self, position: Coordinate) -> None:
        async with self._lock:
            if self._state is not DutyState.ON_DUTY:
                # A report that arrives after the shift closed must not re-mark the subject active
                logger.debug("Ignoring location update for off-duty subject %s", self._subject_id)
                return
            await self._store.set(
                DUTY_STATUS,
                self._subject_id,
                {
                    "currentLocation": position.model_dump(mode="json"),
                    "lastUpdated": json_timestamp(self._clock()),
                },
                merge=True,
            )

    async def end_duty(self) -> int:
        """Go off duty. Returns the number of attendance sessions closed."""
        async with self._lock:
            return await self._end_duty()

    async def sign_out(
        self, identity: IdentityProvider, confirm: Callable[[], Awaitable[bool]]
    ) -> bool:
        """Sign out, ending duty first when on duty and the subject confirms.

        Returns False, changing nothing, when the subject declines.
        """
        async with self._lock:
            if self._state is DutyState.ON_DUTY:
                if not await confirm():
                    logger.info("Sign-out cancelled by %s (still on duty)", self._subject_id)
                    return False
                await self._end_duty()
            await identity.sign_out(self.subject.id)
            return True

    def stop_sampling(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    async def _start_duty(self) -> AttendanceSession:
        if self._state is DutyState.ON_DUTY:
            raise InvalidTransition("Already on duty")
        if not await self.location.request_permission():
            logger.warning("Duty start refused for %s: location permission denied", self._subject_id)
            raise PermissionDenied("Location permission is required to start duty")
        if not self.subject.full_name or not self.subject.company_key:
            raise PreconditionFailed("Employee profile is incomplete: name and company are required")

        position = await self.location.get_current_position()
        now = self._clock()
        today = local_today(now)

        stale = await self._close_open_sessions(None, now)
        if stale:
            logger.warning("Closed %d stale open session(s) for %s before starting duty", stale, self._subject_id)

        session = AttendanceSession(
            employee_id=self._subject_id,
            employee_name=self.subject.display_name,
            company_key=self.subject.company_key,
            date=today,
            start_time=now,
            location=position,
        )
        session.id = await self._store.add(ATTENDANCE, session.to_document())

        status = DutyStatus(
            is_active=True,
            status="on_duty",
            current_location=position,
            last_updated=now,
            employee_name=self.subject.display_name,
            company_key=self.subject.company_key,
        )
        try:
            await self._store.set(DUTY_STATUS, self._subject_id, status.to_document(), merge=True)
        except DutyTrackError:
            await self._undo(
                f"close session {session.id}",
                self._store.update(ATTENDANCE, session.id, {"endTime": json_timestamp(now)}),
            )
            raise

        self._state = DutyState.ON_DUTY
        self._duty_date = today
        self._start_sampling()
        logger.info("Duty started: %s (session=%s)", self._subject_id, session.id)
        return session

    async def _end_duty(self) -> int:
        self.stop_sampling()
        if self._state is DutyState.OFF_DUTY:
            return 0

        now = self._clock()
        dates = {local_today(now)}
        if self._duty_date is not None:
            dates.add(self._duty_date)

        try:
            await self._store.set(
                DUTY_STATUS,
                self._subject_id,
                {"isActive": False, "status": "off_duty", "lastUpdated": json_timestamp(now)},
                merge=True,
            )
        except DutyTrackError:
            self._start_sampling()
            raise

        try:
            closed = await self._close_open_sessions(dates, now)
        except DutyTrackError:
            await self._undo(
                "restore active duty status",
                self._store.set(
                    DUTY_STATUS,
                    self._subject_id,
                    {"isActive": True, "status": "on_duty"},
                    merge=True,
                ),
            )
            self._start_sampling()
            raise

        if closed > 1:
            logger.warning("Closed %d open sessions for %s on duty end", closed, self._subject_id)
        self._state = DutyState.OFF_DUTY
        self._duty_date = None
        logger.info("Duty ended: %s", self._subject_id)
        return closed

    async def _undo(self, what: str, write: Awaitable[None]) -> None:
        # The original failure is what the caller sees; a failed undo is only logged
        try:
            await write
        except DutyTrackError:
            logger.exception("Could not %s for %s after a failed transition", what, self._subject_id)

    def _start_sampling(self) -> None:
        if self._subscription is None:
            self._subscription = self.location.watch_position(
                self._watch_options, self.location_update
            )

    async def _open_sessions(self, dates: Iterable[date] | None) -> list[dict]:
        filters = [
            ("employeeId", "==", self._subject_id),
            ("endTime", "==", None),
        ]
        if dates is not None:
            filters.append(("date", "in", [d.isoformat() for d in dates]))
        return await self._store.query(ATTENDANCE, filters)

    async def _close_open_sessions(self, dates: Iterable[date] | None, now: datetime) -> int:
        open_sessions = await self._open_sessions(dates)
        for doc in open_sessions:
            await self._store.update(ATTENDANCE, doc["id"], {"endTime": json_timestamp(now)})
        return len(open_sessions)


class DutySessionRegistry:
    """Keeps one ``DutySession`` (and its location feed) per subject that is on duty or in a request."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        watch_options: WatchOptions | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._watch_options = watch_options
        self._clock = clock
        self._sessions: dict[uuid.UUID, DutySession] = {}
        self._in_use: dict[uuid.UUID, int] = {}
        self._lock = asyncio.Lock()

    async def session_for(self, subject: Subject) -> DutySession:
        async with self._lock:
            return await self._get_or_create(subject)

    @asynccontextmanager
    async def use(self, subject: Subject) -> AsyncIterator[DutySession]:
        """Borrow the subject's session; an off-duty session is dropped once nobody holds it."""
        async with self._lock:
            session = await self._get_or_create(subject)
            self._in_use[subject.id] = self._in_use.get(subject.id, 0) + 1
        try:
            yield session
        finally:
            self._in_use[subject.id] -= 1
            if not self._in_use[subject.id]:
                del self._in_use[subject.id]
                if session.state is DutyState.OFF_DUTY and self._sessions.get(subject.id) is session:
                    self.forget(subject.id)

    def forget(self, subject_id: uuid.UUID) -> None:
        session = self._sessions.pop(subject_id, None)
        if session is not None:
            session.stop_sampling()

    def on_auth_state_change(self, subject_id: uuid.UUID, user) -> None:
        if user is None:
            self.forget(subject_id)

    def __len__(self) -> int:
        return len(self._sessions)

    async def _get_or_create(self, subject: Subject) -> DutySession:
        session = self._sessions.get(subject.id)
        if session is None:
            session = DutySession(
                subject,
                self._store,
                ReportedLocationProvider(self._clock),
                watch_options=self._watch_options,
                clock=self._clock,
            )
            await session.rehydrate()
            self._sessions[subject.id] = session
        else:
            session.subject = subject
        return session
