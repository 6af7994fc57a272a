"""Tests for the message bus."""

from __future__ import annotations

import asyncio

import pytest

from yunhubot.bus import events
from yunhubot.bus.events import Session, SessionMessage
from yunhubot.bus.queue import MessageBus


def _session(text: str = "hi") -> Session:
    return Session(
        type=events.MESSAGE,
        user_id="u1",
        channel_id="u1:user",
        message=SessionMessage(id="m1", content=text),
    )


class TestPublish:
    """Test queueing."""

    @pytest.mark.asyncio
    async def test_publish_inbound(self) -> None:
        bus = MessageBus()
        assert await bus.publish_inbound(_session()) is True

    @pytest.mark.asyncio
    async def test_full_queue_drops(self, monkeypatch) -> None:
        monkeypatch.setattr(MessageBus, "MAX_QUEUE_SIZE", 1)
        bus = MessageBus()

        assert await bus.publish_inbound(_session("a")) is True
        assert await bus.publish_inbound(_session("b")) is False
        assert await bus.publish_sent(_session("a")) is True
        assert await bus.publish_sent(_session("b")) is False


class TestDispatch:
    """Test handler dispatch."""

    @pytest.mark.asyncio
    async def test_handlers_receive_sessions(self) -> None:
        bus = MessageBus()
        inbound: list[Session] = []
        sent: list[Session] = []
        done = asyncio.Event()

        async def on_inbound(session: Session) -> None:
            inbound.append(session)

        async def on_sent(session: Session) -> None:
            sent.append(session)
            done.set()

        bus.on_inbound(on_inbound)
        bus.on_sent(on_sent)
        runner = asyncio.create_task(bus.start())

        await bus.publish_inbound(_session("in"))
        await bus.publish_sent(_session("out"))
        await asyncio.wait_for(done.wait(), timeout=2.0)
        await bus.stop()
        await asyncio.wait_for(runner, timeout=3.0)

        assert [s.content for s in inbound] == ["in"]
        assert [s.content for s in sent] == ["out"]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self) -> None:
        bus = MessageBus()
        done = asyncio.Event()

        async def broken(session: Session) -> None:
            raise RuntimeError("boom")

        async def healthy(session: Session) -> None:
            done.set()

        bus.on_inbound(broken)
        bus.on_inbound(healthy)
        runner = asyncio.create_task(bus.start())

        await bus.publish_inbound(_session())
        await asyncio.wait_for(done.wait(), timeout=2.0)
        await bus.stop()
        await asyncio.wait_for(runner, timeout=3.0)


class TestSession:
    """Test session helpers."""

    def test_content_without_message(self) -> None:
        session = Session(type=events.FRIEND_ADDED, user_id="u1")
        assert session.content == ""
        assert session.message_id is None
        assert session.raw_event is None
