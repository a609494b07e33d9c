"""Error taxonomy for the sync subsystem."""


class ExploreSyncError(Exception):
    """Base class for all explore sync errors."""


class AuthError(ExploreSyncError):
    """Bearer token missing or refused. Fatal to connecting."""


class TransportError(ExploreSyncError):
    """Socket connection could not be established or was lost."""


class MembershipRejectedError(ExploreSyncError):
    """Server denied membership of a room."""

    def __init__(self, room_id: str, message: str) -> None:
        super().__init__(f"membership rejected for room {room_id}: {message}")
        self.room_id = room_id


class MalformedEventError(ExploreSyncError):
    """Inbound event payload is missing expected fields."""


class FetchError(ExploreSyncError):
    """REST call failed or returned a non-success status."""

    def __init__(self, path: str, reason: str, status: int | None = None) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.status = status
