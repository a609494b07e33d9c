"""Tests for presence status reporting."""

from __future__ import annotations

import pytest

from explore_sync.client.api import RoomInfo
from explore_sync.client.presence import Activity, PresenceReporter
from explore_sync.client.session import Session


class TestDescribe:
    def test_lobby(self) -> None:
        reporter = PresenceReporter(Session(token="t"), started_at=100.0)
        activity = reporter.describe()
        assert activity.details == "In the lobby"
        assert activity.started_at == 100.0

    def test_named_space(self) -> None:
        reporter = PresenceReporter(Session(token="t", room_id="42"))
        activity = reporter.describe(RoomInfo("42", "Cafe", "cafe.png"))
        assert activity.details == "In Cafe's space"
        assert activity.room_icon == "cafe.png"

    def test_unknown_space(self) -> None:
        reporter = PresenceReporter(Session(token="t", room_id="42"))
        assert reporter.describe(None).details == "In Unknown server's space"


class TestReport:
    @pytest.mark.asyncio
    async def test_publishes(self, fake_api) -> None:
        fake_api.rooms["42"] = RoomInfo("42", "Cafe")
        published: list[Activity] = []

        async def publish(activity: Activity) -> None:
            published.append(activity)

        reporter = PresenceReporter(Session(token="t", room_id="42"), fake_api, publish)
        activity = await reporter.report()
        assert published == [activity]
        assert reporter.status == "In Cafe's space"

    @pytest.mark.asyncio
    async def test_lobby_skips_fetch(self, fake_api) -> None:
        reporter = PresenceReporter(Session(token="t"), fake_api)
        await reporter.report()
        assert fake_api.calls == []
        assert reporter.status == "In the lobby"

    @pytest.mark.asyncio
    async def test_stale_room_is_discarded(self, fake_api) -> None:
        session = Session(token="t", room_id="42")

        async def fetch_and_move(room_id: str) -> RoomInfo:
            session.room_id = "43"
            return RoomInfo(room_id, "Old")

        fake_api.fetch_server = fetch_and_move
        reporter = PresenceReporter(session, fake_api)
        assert await reporter.report() is None
        assert reporter.status == ""

    @pytest.mark.asyncio
    async def test_publisher_failure_is_logged(self) -> None:
        async def broken(activity: Activity) -> None:
            raise RuntimeError("rpc closed")

        reporter = PresenceReporter(Session(token="t"), publisher=broken)
        activity = await reporter.report()
        assert activity is not None
        assert reporter.status == "In the lobby"
