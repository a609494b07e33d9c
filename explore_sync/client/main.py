"""Client entry point."""

import argparse
import asyncio
import logging
import os

from ..common.constants import AUTH_TOKEN_ENV, DEFAULT_ROOM_ID, DEFAULT_SERVER_URL
from ..common.errors import ExploreSyncError
from .api import ExploreApi
from .explorer import Explorer
from .notice_buffer import NoticeBuffer
from .session import ClientConfig, Session
from .space_client import SpaceClient

logger = logging.getLogger(__name__)


def setup_logging(log_file: str | None, notices: NoticeBuffer) -> None:
    """Configure logging with the notice buffer and optional file output."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Warnings and errors show up in the TUI status area
    root.addHandler(notices)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        root.addHandler(file_handler)

    # Suppress noisy Socket.IO transport logs
    for name in ("socketio", "engineio", "aiohttp"):
        logging.getLogger(name).setLevel(logging.WARNING)


async def list_rooms(server_url: str, token: str | None) -> None:
    async with ExploreApi(server_url, token=token) as api:
        servers = await api.fetch_servers()
    if not servers:
        print("No rooms available")
    for server in servers:
        print(f"{server.id}\t{server.name}\t{server.member_count} members")


async def build_session(args: argparse.Namespace) -> Session:
    """Session from --token, or from a Discord token exchange."""
    if args.token:
        return Session(token=args.token, room_id=args.room)
    if args.discord_token:
        async with ExploreApi(args.server) as api:
            return await api.login(args.discord_token, args.room)
    return Session(token=None, room_id=args.room)


async def run_client(args: argparse.Namespace, notices: NoticeBuffer) -> None:
    session = await build_session(args)
    config = ClientConfig(server_url=args.server, editor=args.editor)
    client = SpaceClient(session, config)
    explorer = Explorer(client, notices=notices)
    try:
        await client.start()
        await explorer.run()
    finally:
        await client.stop()


def main() -> None:
    parser = argparse.ArgumentParser(description="Explore Sync Client")
    parser.add_argument("--server", default=DEFAULT_SERVER_URL, help="Server URL")
    parser.add_argument(
        "--token",
        default=os.environ.get(AUTH_TOKEN_ENV),
        help=f"Explore auth token (default: ${AUTH_TOKEN_ENV})",
    )
    parser.add_argument(
        "--discord-token", help="Discord access token to exchange for an auth token"
    )
    parser.add_argument("--room", default=DEFAULT_ROOM_ID, help="Room to join")
    parser.add_argument(
        "--editor", action="store_true", help="Enable tile editing in spaces"
    )
    parser.add_argument(
        "--list-rooms", action="store_true", help="List joinable rooms and exit"
    )
    parser.add_argument("--log", help="Log file path (in addition to notices)")
    args = parser.parse_args()

    if args.list_rooms:
        asyncio.run(list_rooms(args.server, args.token))
        return

    notices = NoticeBuffer(maxlen=50)
    setup_logging(args.log, notices)

    try:
        asyncio.run(run_client(args, notices))
    except ExploreSyncError as e:
        print(f"Failed to connect to server: {e}")
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
