"""Registry of remote participants in the active room."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Protocol

from ..common.constants import DEFAULT_MOVE_FREQUENCY, DEFAULT_MOVE_SPEED
from ..common.protocol import Direction, MoveEvent, PlayerRecord
from .movement import MovementReconciler, Step
from .session import RemoteEntity, Room, Session
from .skins import DEFAULT_APPEARANCE, Appearance

logger = logging.getLogger(__name__)

SkinResolver = Callable[[str | None], Appearance]


class RenderSurface(Protocol):
    """What the registry and map sync need from a renderer.

    Handles are opaque to the registry; the surface owns them.
    """

    def attach(self, entity: RemoteEntity) -> Any: ...

    def update(self, handle: Any, entity: RemoteEntity) -> None: ...

    def step(self, handle: Any, entity: RemoteEntity, step: Step) -> None: ...

    def release(self, handle: Any) -> None: ...

    def redraw_tiles(self) -> None: ...


def _default_resolver(skin_id: str | None) -> Appearance:
    return DEFAULT_APPEARANCE


class RemotePlayerRegistry:
    """Authoritative in-process mapping of remote user id to entity.

    Works with or without a render surface attached. Every public mutator
    ignores calls about the local user.
    """

    def __init__(
        self,
        session: Session,
        room: Room | None = None,
        skin_resolver: SkinResolver | None = None,
        reconciler: MovementReconciler | None = None,
    ) -> None:
        self.session = session
        self.room = room or Room(session.room_id)
        self.reconciler = reconciler or MovementReconciler()
        self._resolve_skin = skin_resolver or _default_resolver
        self._surface: RenderSurface | None = None
        # user_id -> handle owned by the surface
        self._handles: dict[str, Any] = {}

    # Queries

    def __len__(self) -> int:
        return len(self.room.members)

    def __contains__(self, user_id: object) -> bool:
        return str(user_id) in self.room.members

    def get(self, user_id: str) -> RemoteEntity | None:
        return self.room.members.get(str(user_id))

    def entities(self) -> list[RemoteEntity]:
        return list(self.room.members.values())

    def handle_for(self, user_id: str) -> Any:
        return self._handles.get(str(user_id))

    @property
    def surface(self) -> RenderSurface | None:
        return self._surface

    # Room lifecycle

    def bind_room(self, room: Room) -> None:
        """Replace the active room, destroying every entity of the old one."""
        self.clear()
        self.room = room

    def clear(self) -> None:
        for user_id in list(self.room.members):
            self._destroy(user_id)

    def purge_self(self) -> None:
        """Drop an entity that turned out to be the local user."""
        if self.session.user_id is not None and self.session.user_id in self:
            logger.debug(f"Removing local user {self.session.user_id} from registry")
            self._destroy(self.session.user_id)

    # Mutators

    def apply_snapshot(self, players: Iterable[PlayerRecord]) -> None:
        """Replace the whole membership with ``players``."""
        records = [p for p in players if not self.session.is_self(p.user_id)]
        wanted = {p.user_id for p in records}
        for user_id in list(self.room.members):
            if user_id not in wanted:
                self._destroy(user_id)
        for record in records:
            self.spawn(
                record.user_id, record.x, record.y, record.direction, record.skin_id
            )
        logger.debug(f"Snapshot applied: {len(self)} remote players")

    def spawn(
        self,
        user_id: str,
        x: int,
        y: int,
        facing: Direction | None = None,
        skin_id: str | None = None,
    ) -> RemoteEntity | None:
        """Create or update one entity. Never duplicates a user id."""
        user_id = str(user_id)
        if self.session.is_self(user_id):
            return None

        entity = self.room.members.get(user_id)
        if entity is None:
            entity = RemoteEntity(
                user_id=user_id,
                x=x,
                y=y,
                facing=facing or Direction.DOWN,
                skin_id=skin_id,
                appearance=self._resolve_skin(skin_id),
            )
            self.room.members[user_id] = entity
            self._attach(entity)
            logger.info(f"Player {user_id} joined at ({x}, {y})")
            return entity

        entity.x = x
        entity.y = y
        if facing is not None:
            entity.facing = facing
        entity.skin_id = skin_id
        entity.appearance = self._resolve_skin(skin_id)
        self._refresh(entity)
        return entity

    def move(
        self,
        user_id: str,
        direction: Direction,
        x: int,
        y: int,
        move_speed: float = DEFAULT_MOVE_SPEED,
        move_frequency: float = DEFAULT_MOVE_FREQUENCY,
    ) -> Step | None:
        """Step an entity and snap it to the authoritative position.

        Unknown users are spawned at the event position first, since a move
        can arrive before the matching join.
        """
        user_id = str(user_id)
        if self.session.is_self(user_id):
            return None

        entity = self.room.members.get(user_id)
        if entity is None:
            entity = self.spawn(user_id, x, y, direction)
            if entity is None:
                return None

        event = MoveEvent(user_id, direction, x, y, move_speed, move_frequency)
        step = self.reconciler.reconcile(entity, event)

        handle = self._handles.get(user_id)
        if self._surface is not None:
            if handle is None:
                self._attach(entity)
            else:
                self._surface.step(handle, entity, step)
        return step

    def update_skin(self, user_id: str, skin_id: str | None) -> bool:
        user_id = str(user_id)
        if self.session.is_self(user_id):
            return False
        entity = self.room.members.get(user_id)
        if entity is None:
            return False
        entity.skin_id = skin_id
        entity.appearance = self._resolve_skin(skin_id)
        self._refresh(entity)
        return True

    def remove(self, user_id: str) -> bool:
        user_id = str(user_id)
        if self.session.is_self(user_id) or user_id not in self.room.members:
            return False
        self._destroy(user_id)
        logger.info(f"Player {user_id} left")
        return True

    def refresh_appearances(self) -> None:
        """Re-resolve every entity's appearance (after the skin catalog loads)."""
        for entity in self.room.members.values():
            entity.appearance = self._resolve_skin(entity.skin_id)
            self._refresh(entity)

    # Render surface

    def attach_surface(self, surface: RenderSurface) -> None:
        """Use a (re)created surface and link every entity to it."""
        self._surface = surface
        self.reattach_render_handles()

    def detach_surface(self) -> None:
        if self._surface is not None:
            for handle in self._handles.values():
                self._surface.release(handle)
        self._handles.clear()
        self._surface = None

    def reattach_render_handles(self) -> None:
        """Create fresh handles for every entity; logical state is untouched.

        Old handles belonged to the previous surface and are simply dropped.
        """
        self._handles.clear()
        if self._surface is None:
            return
        for entity in self.room.members.values():
            self._attach(entity)

    def _attach(self, entity: RemoteEntity) -> None:
        if self._surface is None or entity.user_id in self._handles:
            return
        self._handles[entity.user_id] = self._surface.attach(entity)

    def _refresh(self, entity: RemoteEntity) -> None:
        if self._surface is None:
            return
        handle = self._handles.get(entity.user_id)
        if handle is None:
            self._attach(entity)
        else:
            self._surface.update(handle, entity)

    def _destroy(self, user_id: str) -> None:
        self.room.members.pop(user_id, None)
        handle = self._handles.pop(user_id, None)
        if handle is not None and self._surface is not None:
            self._surface.release(handle)
