#!/usr/bin/env python3
"""Example headless client that watches a room and logs who moves around.

The watcher:
- Joins a room without rendering anything
- Logs players joining, leaving and skin changes
- Prints the room's occupants every few seconds

Usage:
    python examples/watch_room.py --token TOKEN [--server URL] [--room ROOM]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os

from explore_sync import ClientConfig, Session, SpaceClient
from explore_sync.client.movement import Step
from explore_sync.client.session import RemoteEntity

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("watch_room")
# Silence noisy loggers
logging.getLogger("socketio").setLevel(logging.WARNING)
logging.getLogger("engineio").setLevel(logging.WARNING)

# Occupant summary interval (seconds)
REPORT_INTERVAL = 5.0


class LoggingSurface:
    """Render surface that only logs entity lifecycle."""

    def attach(self, entity: RemoteEntity) -> str:
        logger.info(f"Player {entity.user_id} appeared at {entity.position}")
        return entity.user_id

    def update(self, handle: str, entity: RemoteEntity) -> None:
        logger.info(f"Player {handle} now looks like {entity.appearance.glyph}")

    def step(self, handle: str, entity: RemoteEntity, step: Step) -> None:
        if step.corrected:
            logger.info(f"Player {handle} snapped to {step.target}")

    def release(self, handle: str) -> None:
        logger.info(f"Player {handle} left")

    def redraw_tiles(self) -> None:
        pass


async def main() -> None:
    parser = argparse.ArgumentParser(description="Headless room watcher")
    parser.add_argument("--server", default="http://localhost:3000")
    parser.add_argument("--token", default=os.environ.get("EXPLORE_AUTH_TOKEN"))
    parser.add_argument("--room", default="world", help="Room to watch")
    args = parser.parse_args()

    client = SpaceClient(
        Session(token=args.token, room_id=args.room),
        ClientConfig(server_url=args.server),
    )
    client.attach_surface(LoggingSurface())

    @client.on_room_changed
    def on_room_changed(room_id: str) -> None:
        logger.info(f"Now watching room {room_id}")

    logger.info(f"Connecting to {args.server}, room {args.room}...")
    await client.start()
    logger.info(f"Watching: {client.presence.status}")

    try:
        while True:
            await asyncio.sleep(REPORT_INTERVAL)
            occupants = ", ".join(
                f"{e.user_id}@{e.position}" for e in client.registry.entities()
            )
            logger.info(f"{len(client.registry)} players: {occupants or 'none'}")
    finally:
        await client.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Watcher stopped by user")
