"""
Web route handlers for the public scoreboard and participant API.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from aiohttp import web
from jinja2 import Environment, FileSystemLoader, select_autoescape

from .auth import login_required
from .errors import BadRequest, PortalError
from .phase import parse_timestamp

logger = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).parent / "templates"


@web.middleware
async def error_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Turn PortalError into a JSON error body with the matching status."""
    try:
        return await handler(request)
    except PortalError as e:
        logger.debug("%s %s refused: %s", request.method, request.path, e.message)
        return web.json_response(e.to_dict(), status=e.status)


async def read_json(request: web.Request) -> Dict[str, Any]:
    """
    Parse a JSON object body.

    @raise BadRequest: if the body is not a JSON object
    """
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise BadRequest("Request body must be valid JSON.") from e
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object.")
    return data


def format_time_ago(timestamp: Optional[str], now: datetime) -> str:
    """
    Humanize the time elapsed since a timestamp.

    @param timestamp: ISO-8601 string or None
    @param now: Reference instant (aware)
    @return: "12s ago", "5m ago", "3h ago", "2d ago" or "---"
    """
    moment = parse_timestamp(timestamp)
    if moment is None:
        return "---"

    seconds = max(int((now - moment).total_seconds()), 0)
    if seconds < 60:
        return f"{seconds}s ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


class WebHandlers:
    """Handles public pages and participant API routes."""

    def __init__(
        self,
        db_manager: Any,
        config: Any,
        clock: Any,
        service: Any,
        templates_path: Path = TEMPLATES_PATH,
    ) -> None:
        self.db = db_manager
        self.config = config
        self.clock = clock
        self.service = service

        self.jinja_env = Environment(
            loader=FileSystemLoader(str(templates_path)),
            autoescape=select_autoescape(["html"]),
            auto_reload=False,  # Disable auto-reload for performance
            cache_size=50,
        )

    def event_status(self) -> Dict[str, Any]:
        # Every field is computed for the same instant
        now = self.clock.now()
        status = self.clock.status(now).to_dict()
        status["gates"] = self.clock.gates(now).to_dict()
        status["registration_open"] = self.clock.registration_open(now)
        status["settings"] = self.clock.settings.to_dict()
        return status

    async def web_index(
        self,
        _: web.Request,
    ) -> web.Response:
        """
        Public scoreboard page with the event countdown.

        @param _: Unused request parameter
        @return: HTTP response with rendered index page
        """
        scoreboard = await self.db.get_scoreboard()
        now = self.clock.now()

        entries = [
            dict(entry, time_ago=format_time_ago(entry["last_submission"], now))
            for entry in scoreboard
        ]

        template = self.jinja_env.get_template("index.html")
        html = template.render(
            title="Scoreboard",
            ctf_name=self.config.get("ctf_name"),
            scoreboard=entries,
            status=self.event_status(),
        )
        return web.Response(text=html, content_type="text/html")

    async def web_api_scoreboard(
        self,
        _: web.Request,
    ) -> web.Response:
        scoreboard = await self.db.get_scoreboard()
        return web.json_response({"scoreboard": scoreboard})

    async def web_api_event_status(
        self,
        _: web.Request,
    ) -> web.Response:
        """
        Live countdown state, polled by the pages once per second.

        @param _: Unused request parameter
        @return: JSON with phase, countdowns, message, gates and settings
        """
        return web.json_response(self.event_status())

    async def web_api_register(
        self,
        request: web.Request,
    ) -> web.Response:
        data = await read_json(request)
        result = await self.service.register(data)
        return web.json_response(result, status=201)

    async def web_api_login(
        self,
        request: web.Request,
    ) -> web.Response:
        data = await read_json(request)
        result = await self.service.login(data.get("email"), data.get("password"))
        return web.json_response(result)

    @login_required
    async def web_api_me(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Participant dashboard: profile, team, members, rank and gates.
        """
        dashboard = await self.service.dashboard(request["profile"])
        return web.json_response(dashboard)

    @login_required
    async def web_api_teams(
        self,
        _: web.Request,
    ) -> web.Response:
        teams = await self.service.available_teams()
        return web.json_response({"teams": teams})

    @login_required
    async def web_api_create_team(
        self,
        request: web.Request,
    ) -> web.Response:
        data = await read_json(request)
        team = await self.service.create_team(request["profile"], data.get("name"))
        return web.json_response({"team": team}, status=201)

    @login_required
    async def web_api_join_team(
        self,
        request: web.Request,
    ) -> web.Response:
        team_id = request.match_info["team_id"]
        team = await self.service.join_team(request["profile"], team_id)
        return web.json_response({"team": team})

    @login_required
    async def web_api_leave_team(
        self,
        request: web.Request,
    ) -> web.Response:
        await self.service.leave_team(request["profile"])
        return web.json_response({"left": True})

    @login_required
    async def web_api_challenges(
        self,
        request: web.Request,
    ) -> web.Response:
        challenges = await self.service.challenges(request["profile"])
        return web.json_response({"challenges": challenges})

    @login_required
    async def web_api_submit_flag(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Flag submission for the caller's team.

        @param request: HTTP request with challenge_id in the path and {"flag": ...}
        @return: JSON response with the verdict
        """
        data = await read_json(request)
        challenge_id = request.match_info["challenge_id"]
        result = await self.service.submit_flag(
            request["profile"], challenge_id, data.get("flag")
        )
        return web.json_response(result)

    @login_required
    async def web_api_certificate(
        self,
        request: web.Request,
    ) -> web.Response:
        return web.json_response(self.service.certificate(request["profile"]))
