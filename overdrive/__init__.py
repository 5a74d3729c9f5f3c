"""
Project Overdrive - A portal for Capture The Flag events.

This package provides:
- Event phase engine gating team changes and flag submission
- National ID check-digit validation for participant registration
- Participant API for teams, challenges and flag submission
- Administrator API for challenges, teams, users and the event schedule
- Public scoreboard with a live event countdown
"""

from .config import PortalConfig
from .database import DatabaseManager
from .event_clock import EventClock
from .phase import (
    EventPhase,
    EventSettings,
    compute_phase,
    display_state,
    remaining,
    can_manage_team,
    can_submit_flag,
)
from .validation import validate_national_id
from .portal import PortalSystem

__version__ = "1.0.0"
__author__ = "Project Overdrive Contributors"

__all__ = [
    "PortalConfig",
    "DatabaseManager",
    "EventClock",
    "EventPhase",
    "EventSettings",
    "compute_phase",
    "display_state",
    "remaining",
    "can_manage_team",
    "can_submit_flag",
    "validate_national_id",
    "PortalSystem",
]
