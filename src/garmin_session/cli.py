"""
Command-line entry point.

Usage:
    python -m garmin_session login            # SSO login, save session
    python -m garmin_session check            # restore session, show profile
    python -m garmin_session logout           # forget the saved session

Credentials come from GARMIN_USERNAME / GARMIN_PASSWORD (env or .env);
the password is prompted for when unset. Only cookies are stored.
"""

import argparse
import asyncio
import getpass
import logging
import sys

from .core.config import Settings, get_settings
from .services.connect import (
    ConfigLoader,
    ConnectException,
    ConnectSession,
    Credentials,
    FileSessionStore,
    RedisSessionStore,
)

logger = logging.getLogger("garmin_session")


def build_store(settings: Settings, redis_url: str | None = None) -> FileSessionStore | RedisSessionStore:
    redis_url = redis_url or settings.REDIS_URL
    if redis_url:
        from redis import asyncio as aioredis

        return RedisSessionStore(
            aioredis.from_url(redis_url),
            key_prefix=settings.GARMIN_SESSION_KEY_PREFIX,
            ttl_seconds=settings.GARMIN_SESSION_TTL,
        )
    return FileSessionStore(settings.GARMIN_SESSION_DIR)


def build_session(settings: Settings, domain: str | None = None) -> ConnectSession:
    credentials = Credentials(
        username=settings.GARMIN_USERNAME,
        password=settings.GARMIN_PASSWORD.get_secret_value(),
    )
    return ConnectSession(
        domain=domain or settings.GARMIN_DOMAIN,
        credentials=credentials,
        config=ConfigLoader.from_settings(settings),
    )


async def cmd_login(args: argparse.Namespace, settings: Settings) -> int:
    store = build_store(settings, args.redis_url)
    username = args.username or settings.GARMIN_USERNAME
    password = settings.GARMIN_PASSWORD.get_secret_value()
    if username and not password:
        password = getpass.getpass("Garmin Connect password: ")

    async with build_session(settings, args.domain) as session:
        await session.login(username, password)
        await store.save(args.key, session.export_session())

    print(f"Logged in as {session.user_identifier or '<unknown>'}; session saved under '{args.key}'")
    return 0


async def cmd_check(args: argparse.Namespace, settings: Settings) -> int:
    store = build_store(settings, args.redis_url)
    state = await store.load(args.key)

    async with build_session(settings, args.domain) as session:
        session.import_session(state)
        if not session.is_authenticated:
            print("No saved session. Run `python -m garmin_session login` first.")
            return 1

        profile = await session.get_social_profile()
        if not session.is_authenticated:
            print("Saved session has expired. Run `python -m garmin_session login` again.")
            return 1

    name = profile.get("fullName") if isinstance(profile, dict) else None
    print(f"Session OK for {session.user_identifier} ({name or 'profile unavailable'})")
    return 0


async def cmd_logout(args: argparse.Namespace, settings: Settings) -> int:
    store = build_store(settings, args.redis_url)
    deleted = await store.delete(args.key)
    print("Session deleted." if deleted else "No saved session.")
    return 0


COMMANDS = {
    "login": cmd_login,
    "check": cmd_check,
    "logout": cmd_logout,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="garmin_session", description="Garmin Connect SSO session tool")
    parser.add_argument("command", choices=sorted(COMMANDS))
    parser.add_argument("--username", help="Override GARMIN_USERNAME")
    parser.add_argument("--domain", choices=["com", "cn"], help="Override GARMIN_DOMAIN")
    parser.add_argument("--key", default=None, help="Session key (default: GARMIN_SESSION_KEY)")
    parser.add_argument("--redis-url", help="Store sessions in redis instead of files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    settings = get_settings()
    args.key = args.key or settings.GARMIN_SESSION_KEY

    try:
        return asyncio.run(COMMANDS[args.command](args, settings))
    except ConnectException as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
