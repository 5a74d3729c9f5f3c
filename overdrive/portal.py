"""
Main PortalSystem class that orchestrates all components.
"""

import asyncio
import logging
from typing import Callable, Optional
from datetime import datetime

from aiohttp import web, web_runner
import aiohttp_cors

from .admin_handlers import AdminHandlers
from .config import PortalConfig
from .database import DatabaseManager
from .event_clock import EventClock, utc_now
from .services import PortalService
from .web_handlers import WebHandlers, error_middleware

logger = logging.getLogger(__name__)


class PortalSystem:
    """CTF portal with public scoreboard, participant API and admin console."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8081,
        db_path: str = "portal.db",
        config_path: str = "portal_config.json",
        now_func: Callable[[], datetime] = utc_now,
    ) -> None:
        self.host = host
        self.port = port
        self.db_path = db_path

        # Load configuration
        self.config = PortalConfig(config_path)
        # Initialize components
        self.db = DatabaseManager(db_path, self.config)
        self.clock = EventClock(
            self.db,
            refresh_interval=self.config.get("event", "refresh_interval"),
            now_func=now_func,
        )
        self.service = PortalService(self.db, self.clock, self.config)
        self.web_handlers = WebHandlers(self.db, self.config, self.clock, self.service)
        self.admin_handlers = AdminHandlers(self.db, self.config, self.clock)

    async def init_db(self) -> None:
        """
        Initialize the database.

        Creates database tables and performs any necessary setup.
        """
        await self.db.init_db()

    def create_app(self) -> web.Application:
        """
        Build the aiohttp application with all routes and CORS.

        The event clock is started and stopped with the application.

        @return: Configured web.Application
        """
        app = web.Application(middlewares=[error_middleware])

        # Setup CORS
        cors = aiohttp_cors.setup(
            app,
            defaults={
                "*": aiohttp_cors.ResourceOptions(
                    allow_credentials=True,
                    expose_headers="*",
                    allow_headers="*",
                    allow_methods="*",
                )
            },
        )

        handlers = self.web_handlers
        admin = self.admin_handlers

        # Public routes
        app.router.add_get("/", handlers.web_index)
        app.router.add_get("/api/scoreboard", handlers.web_api_scoreboard)
        app.router.add_get("/api/event/status", handlers.web_api_event_status)

        # Participant routes
        app.router.add_post("/api/register", handlers.web_api_register)
        app.router.add_post("/api/login", handlers.web_api_login)
        app.router.add_get("/api/me", handlers.web_api_me)
        app.router.add_get("/api/teams", handlers.web_api_teams)
        app.router.add_post("/api/teams", handlers.web_api_create_team)
        app.router.add_post("/api/teams/{team_id}/join", handlers.web_api_join_team)
        app.router.add_post("/api/team/leave", handlers.web_api_leave_team)
        app.router.add_get("/api/challenges", handlers.web_api_challenges)
        app.router.add_post(
            "/api/challenges/{challenge_id}/submit", handlers.web_api_submit_flag
        )
        app.router.add_get("/api/certificate", handlers.web_api_certificate)

        # Admin routes
        app.router.add_get("/api/admin/challenges", admin.list_challenges)
        app.router.add_post("/api/admin/challenges", admin.create_challenge)
        app.router.add_post(
            "/api/admin/challenges/{challenge_id}/visibility",
            admin.set_challenge_visibility,
        )
        app.router.add_delete(
            "/api/admin/challenges/{challenge_id}", admin.delete_challenge
        )
        app.router.add_get("/api/admin/teams", admin.list_teams)
        app.router.add_post("/api/admin/teams", admin.create_team)
        app.router.add_delete("/api/admin/teams/{team_id}", admin.delete_team)
        app.router.add_delete(
            "/api/admin/teams/{team_id}/members/{user_id}", admin.remove_member
        )
        app.router.add_get("/api/admin/users", admin.list_users)
        app.router.add_post("/api/admin/users/{user_id}/team", admin.assign_user)
        app.router.add_get("/api/admin/settings", admin.get_settings)
        app.router.add_put("/api/admin/settings", admin.update_settings)

        # Add CORS to all routes
        for route in list(app.router.routes()):
            cors.add(route)

        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _on_startup(self, _: web.Application) -> None:
        await self.clock.start()

    async def _on_cleanup(self, _: web.Application) -> None:
        await self.clock.stop()

    async def start_web_server(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> web_runner.AppRunner:
        """
        Start the web server.

        @param host: Host address to bind the server to (default uses configured host)
        @param port: Port number to use (default uses configured port)
        @return: AppRunner instance for the web server
        """
        if host is None:
            host = self.host
        if port is None:
            port = self.port

        app_runner = web_runner.AppRunner(self.create_app())
        await app_runner.setup()

        site = web_runner.TCPSite(app_runner, host, port)
        await site.start()

        logger.info("Web server running on http://%s:%s", host, port)
        return app_runner

    async def run(self) -> None:
        """
        Run the web server until interrupted.
        """
        runner = await self.start_web_server()

        print(f"\n{self.config.get('ctf_name')} portal running!")
        print(f"Web Interface: http://{self.host}:{self.port}")
        print("\nPress Ctrl+C to stop...\n")

        try:
            await asyncio.Event().wait()
        finally:
            logger.info("Shutting down web server...")
            await runner.cleanup()

    async def promote_admin(self, email: str) -> bool:
        """
        Grant administrator rights to a registered participant.

        @param email: Email of the profile to promote
        @return: True if the profile exists
        """
        promoted = await self.db.set_admin(email, True)
        if promoted:
            logger.info("Granted administrator rights to %s", email)
        else:
            logger.warning("No profile registered with email %s", email)
        return promoted

    async def print_full_scoreboard(self) -> None:
        """
        Print the complete scoreboard to console.

        Delegates to the database manager's print method.
        """
        await self.db.print_full_scoreboard()
