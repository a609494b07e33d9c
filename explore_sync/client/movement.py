"""Remote movement reconciliation.

Each ``user_moved`` event is applied as a one-tile step in the event's
direction (for visual continuity), followed by an unconditional snap to the
server-provided position if the step landed elsewhere. There is no
interpolation and no distance-based teleport threshold: the stored position
always equals the last authoritative position once ``reconcile`` returns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..common.protocol import MoveEvent
from .session import RemoteEntity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step:
    """Outcome of reconciling one movement event."""

    origin: tuple[int, int]
    stepped: tuple[int, int]  # Where the local one-tile step landed
    target: tuple[int, int]  # Authoritative position from the server

    @property
    def corrected(self) -> bool:
        """True if the step disagreed with the server and was snapped."""
        return self.stepped != self.target


class MovementReconciler:
    """Applies movement events to remote entities."""

    def reconcile(self, entity: RemoteEntity, event: MoveEvent) -> Step:
        origin = entity.position
        entity.move_speed = event.move_speed
        entity.move_frequency = event.move_frequency
        entity.facing = event.direction

        stepped = (origin[0] + event.direction.dx, origin[1] + event.direction.dy)
        step = Step(origin=origin, stepped=stepped, target=(event.x, event.y))

        if step.corrected:
            logger.debug(
                f"Correcting position for {entity.user_id} from {stepped} "
                f"to {step.target}"
            )
        entity.x, entity.y = step.target
        return step
