#!/usr/bin/env python3
"""
CTF event portal server.
Serves the public scoreboard with the event countdown, the participant API
(registration, teams, challenges, flag submission) and the admin console API.
"""

import argparse
import asyncio
import logging
import os
from pathlib import Path

from overdrive.portal import PortalSystem


async def main():
    """Main function with command line interface."""

    parser = argparse.ArgumentParser(
        description="CTF event portal with scoreboard, participant and admin APIs",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("WEB_PORT", "8081")),
        help="Web server port (env: WEB_PORT)"
    )
    parser.add_argument(
        "--db",
        default=os.getenv("DB_PATH", "portal.db"),
        help="SQLite database file path (env: DB_PATH)"
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "portal_config.json"),
        help="Configuration file path (env: CONFIG_PATH)"
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind the server to (env: HOST)"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (env: LOG_LEVEL)"
    )
    parser.add_argument(
        "--promote-admin",
        metavar="EMAIL",
        help="Grant administrator rights to a registered participant and exit"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config_path = Path(args.config)

    if config_path.exists() and not config_path.is_file():
        logging.error("%s exists but is not a file", args.config)
        return

    system = PortalSystem(
        host=args.host,
        port=args.port,
        db_path=args.db,
        config_path=args.config,
    )

    await system.init_db()

    if args.promote_admin:
        await system.promote_admin(args.promote_admin)
        return

    await system.print_full_scoreboard()

    try:
        await system.run()
    except asyncio.CancelledError:
        print("\nServer interrupted")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nServer interrupted")
