"""
Participant and administrator operations.

Combines the phase gates from the event clock with storage calls. Every
refusal is raised as a PortalError so the web layer can map it to a
response.
"""

import hmac
import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from .auth import generate_token, hash_password, verify_password
from .database import utc_now_iso
from .errors import (
    AlreadySolved,
    AuthenticationRequired,
    EventWindowClosed,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from .phase import EventSettings, parse_timestamp
from .validation import validate_registration

logger = logging.getLogger(__name__)

MAX_TEAM_NAME_LENGTH = 50
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
SETTINGS_FIELDS = ("registration_end_time", "event_start_time", "event_end_time")

_PRIVATE_PROFILE_FIELDS = ("password_hash", "api_token")


def public_profile(profile: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in profile.items() if k not in _PRIVATE_PROFILE_FIELDS}


def public_challenge(challenge: Mapping[str, Any], solved: bool) -> Dict[str, Any]:
    """Challenge as shown to participants: never includes the flag."""
    return {
        "id": challenge["id"],
        "title": challenge["title"],
        "description": challenge["description"],
        "category": challenge["category"],
        "difficulty": challenge["difficulty"],
        "points": challenge["points"],
        "hints": challenge["hints"],
        "solved": solved,
    }


def _require_text(data: Mapping[str, Any], field: str, errors: Dict[str, str], message: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        errors[field] = message
        return ""
    return value.strip()


def _parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_challenge(data: Mapping[str, Any], config: Any) -> Dict[str, Any]:
    """
    Validate the admin "create challenge" form.

    Hints may be given as a list or as one comma-separated string.
    The flag is stored exactly as given.

    @raise ValidationFailed: with one entry per invalid field
    @return: Keyword arguments for DatabaseManager.create_challenge
    """
    errors: Dict[str, str] = {}

    title = _require_text(data, "title", errors, "Title is required.")
    _require_text(data, "flag", errors, "Flag is required.")

    description = data.get("description") or ""
    if not isinstance(description, str):
        errors["description"] = "Description must be text."

    category = data.get("category")
    categories = config.get("challenges", "categories")
    if category not in categories:
        errors["category"] = f"Category must be one of: {', '.join(categories)}."

    difficulty = _parse_int(data.get("difficulty", MIN_DIFFICULTY))
    if difficulty is None or not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
        errors["difficulty"] = f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}."

    points = _parse_int(data.get("points", config.get("challenges", "default_points")))
    if points is None or points <= 0:
        errors["points"] = "Points must be a positive integer."

    raw_hints = data.get("hints") or []
    if isinstance(raw_hints, str):
        hints = [h.strip() for h in raw_hints.split(",") if h.strip()]
    elif isinstance(raw_hints, list) and all(isinstance(h, str) for h in raw_hints):
        hints = [h.strip() for h in raw_hints if h.strip()]
    else:
        errors["hints"] = "Hints must be a list or a comma-separated string."
        hints = []

    if errors:
        raise ValidationFailed(errors)

    return {
        "title": title,
        "description": description,
        "category": category,
        "difficulty": difficulty,
        "points": points,
        "flag": data["flag"],
        "hints": hints,
    }


def parse_settings(data: Mapping[str, Any]) -> EventSettings:
    """
    Validate an admin settings update.

    Empty or null values clear a boundary; any other value must be an
    ISO-8601 timestamp.

    @raise ValidationFailed: for unparseable timestamps
    """
    errors: Dict[str, str] = {}
    values: Dict[str, Any] = {}

    for field in SETTINGS_FIELDS:
        raw = data.get(field)
        if raw is None or raw == "":
            values[field] = None
            continue
        parsed = parse_timestamp(raw) if isinstance(raw, str) else None
        if parsed is None:
            errors[field] = "Must be an ISO-8601 timestamp or empty."
        values[field] = parsed

    if errors:
        raise ValidationFailed(errors)

    settings = EventSettings(**values)
    ordered = [
        boundary
        for boundary in (
            settings.registration_end_time,
            settings.event_start_time,
            settings.event_end_time,
        )
        if boundary is not None
    ]
    if ordered != sorted(ordered):
        logger.warning("Event boundaries are out of order: %s", settings.to_dict())
    return settings


class PortalService:
    """Participant-facing operations."""

    def __init__(
        self,
        db_manager: Any,
        clock: Any,
        config: Any,
    ) -> None:
        self.db = db_manager
        self.clock = clock
        self.config = config

    def _require_team_window(self) -> None:
        if not self.clock.gates().can_manage_team:
            raise EventWindowClosed("Team changes are closed for this event.")

    async def register(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Create a participant account while registration is open.

        @return: Public profile plus the API token
        """
        if not self.clock.registration_open():
            raise EventWindowClosed("Registration is closed.")

        errors = validate_registration(data, self.config)
        if errors:
            raise ValidationFailed(errors)

        prefix = self.config.get("registration", "student_id_prefix")
        token = generate_token()
        phone_number = data.get("phone_number")

        profile = await self.db.create_profile(
            email=data["email"],
            password_hash=hash_password(data["password"]),
            full_name=data["full_name"],
            national_id=data["national_id"],
            student_id=f"{prefix}{data['student_id_digits']}",
            department=data["department"],
            career=data["career"],
            phone_number=phone_number.strip() if isinstance(phone_number, str) else "",
            api_token=token,
            privacy_accepted_at=utc_now_iso(self.clock.now()),
        )
        logger.info("Registered participant %s", profile["email"])

        return {"profile": public_profile(profile), "token": token}

    async def login(self, email: Any, password: Any) -> Dict[str, Any]:
        if not isinstance(email, str) or not isinstance(password, str):
            raise AuthenticationRequired("Invalid email or password.")

        profile = await self.db.get_profile_by_email(email)
        if profile is None or not verify_password(password, profile["password_hash"]):
            raise AuthenticationRequired("Invalid email or password.")

        token = generate_token()
        await self.db.set_token(profile["id"], token)
        return {"profile": public_profile(profile), "token": token}

    async def create_team(self, profile: Mapping[str, Any], name: Any) -> Dict[str, Any]:
        if not isinstance(name, str) or not name.strip():
            raise ValidationFailed({"name": "Team name is required."})
        name = name.strip()
        if len(name) > MAX_TEAM_NAME_LENGTH:
            raise ValidationFailed(
                {"name": f"Team name too long (max {MAX_TEAM_NAME_LENGTH} characters)."}
            )

        self._require_team_window()
        team = await self.db.create_team(name, profile["id"])
        logger.info("Team %r created by %s", name, profile["email"])
        return team

    async def join_team(self, profile: Mapping[str, Any], team_id: str) -> Dict[str, Any]:
        self._require_team_window()
        await self.db.join_team(team_id, profile["id"])
        return await self.db.get_team(team_id)

    async def leave_team(self, profile: Mapping[str, Any]) -> None:
        self._require_team_window()
        team = await self.db.get_team_for_user(profile["id"])
        if team is None:
            raise NotFound("You do not belong to a team.")
        await self.db.leave_team(team["id"], profile["id"])

    async def available_teams(self) -> List[Dict[str, Any]]:
        max_members = self.config.get("teams", "max_members")
        teams = await self.db.list_teams()
        for team in teams:
            team["is_full"] = team["member_count"] >= max_members
        return teams

    async def _team_or_refuse(self, profile: Mapping[str, Any]) -> Dict[str, Any]:
        team = await self.db.get_team_for_user(profile["id"])
        if team is None:
            raise PermissionDenied("Join a team first.")
        return team

    async def challenges(self, profile: Mapping[str, Any]) -> List[Dict[str, Any]]:
        team = await self._team_or_refuse(profile)
        solved = set(await self.db.get_solved_challenge_ids(team["id"]))
        return [
            public_challenge(challenge, challenge["id"] in solved)
            for challenge in await self.db.list_visible_challenges()
        ]

    async def submit_flag(
        self,
        profile: Mapping[str, Any],
        challenge_id: str,
        submitted_flag: Any,
    ) -> Dict[str, Any]:
        """
        Check a flag for the caller's team and record the attempt.

        @raise EventWindowClosed: outside the running phase
        @raise AlreadySolved: if the team already solved the challenge
        @return: {"correct": bool, "message": str}
        """
        if not isinstance(submitted_flag, str) or not submitted_flag.strip():
            raise ValidationFailed({"flag": "Flag is required."})

        if not self.clock.gates().can_submit_flag:
            raise EventWindowClosed("Flag submission is closed.")

        team = await self._team_or_refuse(profile)
        challenge = await self.db.get_challenge(challenge_id)
        if challenge is None or not challenge["is_visible"]:
            raise NotFound("Challenge not found.")

        if challenge_id in await self.db.get_solved_challenge_ids(team["id"]):
            raise AlreadySolved("Your team already solved this challenge.")

        is_correct = hmac.compare_digest(
            submitted_flag.encode("utf-8"), challenge["flag"].encode("utf-8")
        )
        await self.db.record_submission(
            profile["id"], team["id"], challenge_id, submitted_flag, is_correct
        )

        if is_correct:
            logger.info("Team %r solved %r", team["name"], challenge["title"])
            return {"correct": True, "message": "Correct flag!"}
        return {"correct": False, "message": "Incorrect flag."}

    async def dashboard(self, profile: Mapping[str, Any]) -> Dict[str, Any]:
        now = self.clock.now()
        team = await self.db.get_team_for_user(profile["id"])
        members: List[Dict[str, Any]] = []
        rank = None

        if team is not None:
            members = await self.db.get_team_members(team["id"])
            rank = await self.db.get_team_rank(team["id"])

        return {
            "profile": public_profile(profile),
            "team": team,
            "members": members,
            "rank": rank,
            "gates": self.clock.gates(now).to_dict(),
            "status": self.clock.status(now).to_dict(),
        }

    def certificate(self, profile: Mapping[str, Any]) -> Dict[str, Any]:
        base_url = self.config.get("certificates", "base_url")
        if not base_url:
            raise NotFound("Certificates are not available.")

        url = f"{base_url.rstrip('/')}/{quote(profile['national_id'], safe='')}"
        return {
            "full_name": profile["full_name"],
            "national_id": profile["national_id"],
            "url": url,
        }
