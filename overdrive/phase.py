"""
Event phase engine.

Derives the current stage of the event from the three configured
boundaries (registration close, event start, event end) and the wall
clock. Every function here is a pure function of its arguments, so it is
safe to call once per second from any number of places.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

MESSAGE_NO_SCHEDULE = "The event has no schedule configured"
MESSAGE_ENDED = "The CTF has concluded"
MESSAGE_ENDS_IN = "The CTF ends in:"
MESSAGE_RUNNING = "The CTF is running"
MESSAGE_STARTS_IN = "The CTF starts in:"
MESSAGE_START_TBA = "The CTF start time has not been announced"


class EventPhase(Enum):
    """Stage of the event lifecycle, in progression order."""

    NOT_STARTED = "NotStarted"
    REGISTRATION_CLOSED = "RegistrationClosed"
    RUNNING = "Running"
    ENDED = "Ended"

    @property
    def order(self) -> int:
        return _PHASE_ORDER.index(self)


_PHASE_ORDER = [
    EventPhase.NOT_STARTED,
    EventPhase.REGISTRATION_CLOSED,
    EventPhase.RUNNING,
    EventPhase.ENDED,
]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts datetimes, ISO strings (with or without a trailing "Z") and
    None. Naive values are read as UTC. Anything unparseable yields None,
    which the engine treats as "boundary not applicable".

    @param value: Raw timestamp value
    @return: Aware datetime in UTC, or None
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Ignoring malformed timestamp %r", value)
            return None
    else:
        logger.warning("Ignoring timestamp of unsupported type %r", type(value))
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        logger.warning("Ignoring out-of-range timestamp %r", value)
        return None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render an instant as an ISO-8601 UTC string, None passes through."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class EventSettings:
    """Read-only snapshot of the three event boundaries."""

    registration_end_time: Optional[datetime] = None
    event_start_time: Optional[datetime] = None
    event_end_time: Optional[datetime] = None

    @classmethod
    def from_mapping(cls, row: Optional[Mapping[str, Any]]) -> "EventSettings":
        """
        Build a snapshot from a settings row or API payload.

        @param row: Mapping with the three timestamp keys (missing keys are None)
        @return: EventSettings with parsed instants
        """
        if not row:
            return cls()
        return cls(
            registration_end_time=parse_timestamp(row.get("registration_end_time")),
            event_start_time=parse_timestamp(row.get("event_start_time")),
            event_end_time=parse_timestamp(row.get("event_end_time")),
        )

    @property
    def is_scheduled(self) -> bool:
        return any(
            boundary is not None
            for boundary in (
                self.registration_end_time,
                self.event_start_time,
                self.event_end_time,
            )
        )

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "registration_end_time": format_timestamp(self.registration_end_time),
            "event_start_time": format_timestamp(self.event_start_time),
            "event_end_time": format_timestamp(self.event_end_time),
        }


@dataclass(frozen=True)
class Countdown:
    """Time left until a boundary, broken down for display."""

    days: int
    hours: int
    minutes: int
    seconds: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "days": self.days,
            "hours": self.hours,
            "minutes": self.minutes,
            "seconds": self.seconds,
        }


@dataclass(frozen=True)
class GateDecision:
    can_manage_team: bool
    can_submit_flag: bool

    def to_dict(self) -> Dict[str, bool]:
        return {
            "can_manage_team": self.can_manage_team,
            "can_submit_flag": self.can_submit_flag,
        }


@dataclass(frozen=True)
class DisplayState:
    """Presentation-facing reduction of the phase for a live countdown."""

    phase: EventPhase
    primary: Optional[Countdown]
    secondary: Optional[Countdown]
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "primary": self.primary.to_dict() if self.primary else None,
            "secondary": self.secondary.to_dict() if self.secondary else None,
            "message": self.message,
        }


def compute_phase(settings: EventSettings, now: datetime) -> EventPhase:
    """
    Resolve the event phase at a given instant.

    The end boundary is checked first so that a past end always wins, even
    when the other boundaries are missing or out of order.

    @param settings: Snapshot of the event boundaries
    @param now: Current instant (aware)
    @return: The phase the event is in
    """
    if settings.event_end_time is not None and now > settings.event_end_time:
        return EventPhase.ENDED
    if settings.event_start_time is not None and now >= settings.event_start_time:
        return EventPhase.RUNNING
    if (
        settings.registration_end_time is not None
        and now > settings.registration_end_time
    ):
        return EventPhase.REGISTRATION_CLOSED
    return EventPhase.NOT_STARTED


def remaining(target: Optional[datetime], now: datetime) -> Optional[Countdown]:
    """
    Break down the time left until target.

    @param target: Boundary instant, None when not configured
    @param now: Current instant
    @return: Countdown, or None once the boundary is reached or absent
    """
    if target is None or target <= now:
        return None

    delta_ms = (target - now).total_seconds() * MS_PER_SECOND
    delta_ms = int(delta_ms)
    if delta_ms <= 0:
        return None

    return Countdown(
        days=delta_ms // MS_PER_DAY,
        hours=(delta_ms // MS_PER_HOUR) % 24,
        minutes=(delta_ms // MS_PER_MINUTE) % 60,
        seconds=(delta_ms // MS_PER_SECOND) % 60,
    )


def can_manage_team(phase: EventPhase) -> bool:
    """Team creation, joining and leaving share one gate."""
    return phase is EventPhase.NOT_STARTED


def can_submit_flag(phase: EventPhase) -> bool:
    return phase is EventPhase.RUNNING


def gates(phase: EventPhase) -> GateDecision:
    return GateDecision(
        can_manage_team=can_manage_team(phase),
        can_submit_flag=can_submit_flag(phase),
    )


def can_register(settings: EventSettings, now: datetime) -> bool:
    """
    Whether new accounts may sign up.

    Sign-up is open only once a registration deadline is configured, up
    to and including that deadline, and never after the event has ended.

    @param settings: Snapshot of the event boundaries
    @param now: Current instant
    @return: True if registration is open
    """
    if compute_phase(settings, now) is EventPhase.ENDED:
        return False
    deadline = settings.registration_end_time
    return deadline is not None and now <= deadline


def display_state(settings: EventSettings, now: datetime) -> DisplayState:
    """
    Reduce a snapshot to what a countdown widget shows.

    @param settings: Snapshot of the event boundaries
    @param now: Current instant
    @return: DisplayState with phase, countdowns and status message
    """
    phase = compute_phase(settings, now)

    if not settings.is_scheduled:
        return DisplayState(phase, None, None, MESSAGE_NO_SCHEDULE)

    if phase is EventPhase.ENDED:
        return DisplayState(phase, None, None, MESSAGE_ENDED)

    registration_left = remaining(settings.registration_end_time, now)

    if phase is EventPhase.RUNNING:
        primary = remaining(settings.event_end_time, now)
        message = MESSAGE_ENDS_IN if primary else MESSAGE_RUNNING
        return DisplayState(phase, primary, registration_left, message)

    primary = remaining(settings.event_start_time, now)
    message = MESSAGE_STARTS_IN if primary else MESSAGE_START_TBA
    return DisplayState(phase, primary, registration_left, message)
