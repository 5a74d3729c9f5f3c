"""
Administrator API: challenges, teams, users and the event schedule.
"""

import logging
from typing import Any

from aiohttp import web

from .auth import admin_required
from .errors import BadRequest, NotFound, ValidationFailed
from .services import parse_challenge, parse_settings
from .web_handlers import read_json

logger = logging.getLogger(__name__)

USER_FILTERS = ("all", "with-team", "without-team")


class AdminHandlers:
    """Handles administrator routes. Admin actions ignore the phase gates."""

    def __init__(
        self,
        db_manager: Any,
        config: Any,
        clock: Any,
    ) -> None:
        self.db = db_manager
        self.config = config
        self.clock = clock

    # Challenges

    @admin_required
    async def list_challenges(self, _: web.Request) -> web.Response:
        challenges = await self.db.list_challenges()
        return web.json_response({"challenges": challenges})

    @admin_required
    async def create_challenge(self, request: web.Request) -> web.Response:
        data = await read_json(request)
        challenge = await self.db.create_challenge(**parse_challenge(data, self.config))
        logger.info("Challenge %r created by %s", challenge["title"], request["profile"]["email"])
        return web.json_response({"challenge": challenge}, status=201)

    @admin_required
    async def set_challenge_visibility(self, request: web.Request) -> web.Response:
        """
        Show or hide a challenge.

        Body {"is_visible": bool}; without a body the visibility is toggled.
        """
        challenge_id = request.match_info["challenge_id"]
        challenge = await self.db.get_challenge(challenge_id)
        if challenge is None:
            raise NotFound("Challenge not found.")

        is_visible = not challenge["is_visible"]
        if request.can_read_body:
            data = await read_json(request)
            if "is_visible" in data:
                if not isinstance(data["is_visible"], bool):
                    raise ValidationFailed({"is_visible": "Must be true or false."})
                is_visible = data["is_visible"]

        await self.db.set_challenge_visibility(challenge_id, is_visible)
        return web.json_response({"id": challenge_id, "is_visible": is_visible})

    @admin_required
    async def delete_challenge(self, request: web.Request) -> web.Response:
        challenge_id = request.match_info["challenge_id"]
        await self.db.delete_challenge(challenge_id)
        logger.info("Challenge %s deleted by %s", challenge_id, request["profile"]["email"])
        return web.json_response({"deleted": challenge_id})

    # Teams

    @admin_required
    async def list_teams(self, request: web.Request) -> web.Response:
        """
        Teams with member counts; ?expand=<team_id> includes that team's members.
        """
        teams = await self.db.list_teams(request.query.get("search", ""))
        expand = request.query.get("expand")
        max_members = self.config.get("teams", "max_members")

        for team in teams:
            team["max_members"] = max_members
            if team["id"] == expand:
                team["members"] = await self.db.get_team_members(team["id"])

        return web.json_response({"teams": teams})

    @admin_required
    async def create_team(self, request: web.Request) -> web.Response:
        data = await read_json(request)
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationFailed({"name": "Team name is required."})

        team = await self.db.create_team(
            name.strip(), request["profile"]["id"], add_creator=False
        )
        return web.json_response({"team": team}, status=201)

    @admin_required
    async def delete_team(self, request: web.Request) -> web.Response:
        team_id = request.match_info["team_id"]
        await self.db.delete_team(team_id)
        logger.info("Team %s deleted by %s", team_id, request["profile"]["email"])
        return web.json_response({"deleted": team_id})

    @admin_required
    async def remove_member(self, request: web.Request) -> web.Response:
        team_id = request.match_info["team_id"]
        user_id = request.match_info["user_id"]
        await self.db.remove_member(team_id, user_id)
        return web.json_response({"removed": user_id, "team_id": team_id})

    # Users

    @admin_required
    async def list_users(self, request: web.Request) -> web.Response:
        team_filter = request.query.get("filter", "all")
        if team_filter not in USER_FILTERS:
            raise BadRequest(f"filter must be one of: {', '.join(USER_FILTERS)}")

        users = await self.db.list_profiles_with_teams(
            team_filter, request.query.get("search", "")
        )
        return web.json_response({"users": users})

    @admin_required
    async def assign_user(self, request: web.Request) -> web.Response:
        """
        Assign a user to a team, moving them out of their current one.
        """
        user_id = request.match_info["user_id"]
        data = await read_json(request)
        team_id = data.get("team_id")
        if not isinstance(team_id, str) or not team_id:
            raise ValidationFailed({"team_id": "Select a team."})

        await self.db.move_member(user_id, team_id)
        return web.json_response({"user_id": user_id, "team_id": team_id})

    # Event settings

    @admin_required
    async def get_settings(self, _: web.Request) -> web.Response:
        settings = await self.db.get_event_settings()
        return web.json_response({"settings": settings.to_dict()})

    @admin_required
    async def update_settings(self, request: web.Request) -> web.Response:
        data = await read_json(request)
        settings = await self.db.update_event_settings(parse_settings(data))
        await self.clock.update(settings)
        logger.info("Event settings updated by %s", request["profile"]["email"])

        return web.json_response(
            {"settings": settings.to_dict(), "phase": self.clock.phase().value}
        )
