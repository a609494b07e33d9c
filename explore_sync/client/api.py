"""REST client for the explore backend.

Every public call degrades to an empty result (``None``, ``[]`` or
``False``) on failure and logs the reason; only ``login`` raises, because
continuing without a token is never useful.
"""

from __future__ import annotations

import asyncio
import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any

import aiohttp

from ..common.constants import API_PREFIX, DEFAULT_ROOM_ID, REQUEST_TIMEOUT
from ..common.errors import AuthError, FetchError, MalformedEventError
from ..common.protocol import TileEdit, deserialize_tile_edit
from .session import Session
from .skins import Skin, parse_skins

logger = logging.getLogger(__name__)


@dataclass
class Profile:
    """The authenticated user as returned by ``/me``."""

    user_id: str | None
    name: str | None
    skin_id: str | None = None


@dataclass
class RoomInfo:
    """Room (guild) metadata."""

    id: str
    name: str | None = None
    icon_url: str | None = None


@dataclass
class ServerSummary:
    """An entry of the room list."""

    id: str
    name: str
    icon_url: str | None = None
    member_count: int = 0


def _quote(room_id: str) -> str:
    return urllib.parse.quote(str(room_id), safe="")


def _count(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class ExploreApi:
    """Async client for the explore REST endpoints."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        http: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._http = http
        self._owns_http = http is None

    async def __aenter__(self) -> ExploreApi:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.close()
        self._http = None

    def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None:
            self._http = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_http = True
        return self._http

    async def _request(
        self,
        method: str,
        path: str,
        *,
        auth: bool = True,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Perform one request and return the decoded JSON body.

        Raises:
            FetchError: Transport failure, non-success status, or an
                ``{"error": ...}`` body.
        """
        headers: dict[str, str] = {}
        if auth:
            if not self.token:
                raise FetchError(path, "no bearer token")
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            async with self._get_http().request(
                method, f"{self.base_url}{path}", json=json, headers=headers
            ) as resp:
                try:
                    data = await resp.json(content_type=None)
                except ValueError:
                    data = None
                if resp.status >= 400:
                    raise FetchError(path, f"HTTP {resp.status}", resp.status)
                if isinstance(data, dict) and data.get("error"):
                    raise FetchError(path, str(data["error"]), resp.status)
                return data
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(path, str(e) or type(e).__name__) from e

    # Authentication

    async def fetch_status(self) -> str | None:
        """Return the application client id from the status endpoint."""
        try:
            data = await self._request("GET", "/api/status", auth=False)
        except FetchError as e:
            logger.error(f"Failed to fetch status: {e}")
            return None
        if not isinstance(data, dict) or data.get("id") is None:
            return None
        return str(data["id"])

    async def authenticate(self, code: str) -> str | None:
        """Exchange an OAuth code for a Discord access token."""
        try:
            data = await self._request(
                "POST", f"{API_PREFIX}/authenticate", auth=False, json={"code": code}
            )
        except FetchError as e:
            logger.error(f"Failed to authenticate: {e}")
            return None
        if not isinstance(data, dict) or not data.get("token"):
            return None
        return str(data["token"])

    async def exchange_discord_token(self, discord_token: str) -> str | None:
        """Exchange a Discord access token for an explore bearer token."""
        try:
            data = await self._request(
                "POST",
                f"{API_PREFIX}/auth/discord-token",
                auth=False,
                json={"discord_token": discord_token},
            )
        except FetchError as e:
            logger.error(f"Failed to get explore auth_token: {e}")
            return None
        if not isinstance(data, dict) or not data.get("auth_token"):
            logger.error("Failed to get explore auth_token: no token in response")
            return None
        return str(data["auth_token"])

    async def fetch_me(self) -> Profile | None:
        try:
            data = await self._request("GET", f"{API_PREFIX}/me")
        except FetchError as e:
            logger.warning(f"Failed to fetch profile: {e}")
            return None
        if not isinstance(data, dict):
            return None
        uid = data.get("id", data.get("user_id"))
        skin = data.get("skin_id")
        return Profile(
            user_id=None if uid is None else str(uid),
            name=data.get("name"),
            skin_id=None if skin is None else str(skin),
        )

    async def login(
        self, discord_token: str, room_id: str = DEFAULT_ROOM_ID
    ) -> Session:
        """Build a Session from a Discord access token.

        Raises:
            AuthError: The token exchange failed.
        """
        token = await self.exchange_discord_token(discord_token)
        if token is None:
            raise AuthError("could not obtain an explore auth token")
        self.token = token
        profile = await self.fetch_me()
        return Session(
            token=token,
            user_id=profile.user_id if profile else None,
            display_name=profile.name if profile else None,
            room_id=room_id,
        )

    # Rooms

    async def fetch_server(self, room_id: str) -> RoomInfo | None:
        try:
            data = await self._request("GET", f"{API_PREFIX}/server/{_quote(room_id)}")
        except FetchError as e:
            logger.error(f"Failed to fetch guild info: {e}")
            return None
        if not isinstance(data, dict):
            return None
        return RoomInfo(
            id=str(data.get("id", room_id)),
            name=data.get("name"),
            icon_url=data.get("icon_url"),
        )

    async def fetch_space_tiles(self, room_id: str) -> list[TileEdit]:
        try:
            data = await self._request("GET", f"{API_PREFIX}/space/{_quote(room_id)}")
        except FetchError as e:
            logger.error(f"Failed to fetch space tiles: {e}")
            return []
        raw = data.get("tiles") if isinstance(data, dict) else None
        tiles: list[TileEdit] = []
        for item in raw if isinstance(raw, list) else []:
            try:
                tiles.append(deserialize_tile_edit(item))
            except MalformedEventError as e:
                logger.warning(f"Skipping bad tile entry: {e}")
        return tiles

    async def fetch_servers(self) -> list[ServerSummary]:
        try:
            data = await self._request("GET", f"{API_PREFIX}/servers")
        except FetchError as e:
            logger.error(f"Failed to fetch servers: {e}")
            return []
        servers: list[ServerSummary] = []
        for item in data if isinstance(data, list) else []:
            if not isinstance(item, dict) or item.get("id") is None:
                continue
            server_id = str(item["id"])
            servers.append(
                ServerSummary(
                    id=server_id,
                    name=str(item.get("name") or server_id),
                    icon_url=item.get("icon_url"),
                    member_count=_count(item.get("member_count")),
                )
            )
        return servers

    # Skins

    async def fetch_skins(self) -> list[Skin]:
        try:
            data = await self._request("GET", f"{API_PREFIX}/skins")
        except FetchError as e:
            logger.error(f"Failed to fetch skins: {e}")
            return []
        return parse_skins(data)

    async def set_skin(self, skin_id: str) -> bool:
        try:
            await self._request(
                "POST", f"{API_PREFIX}/me/skin", json={"skin_id": skin_id}
            )
        except FetchError as e:
            logger.error(f"Failed to set skin: {e}")
            return False
        return True
