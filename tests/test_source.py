"""Tests for JsonlOpportunitySource."""

from __future__ import annotations

import asyncio
import io
import json
import os

from raysignal.intake.source import END_OF_STREAM, JsonlOpportunitySource
from tests.factories import make_event


def jsonl(*lines) -> str:
    return "\n".join(line if isinstance(line, str) else json.dumps(line) for line in lines) + "\n"


async def collect(source: JsonlOpportunitySource) -> list[dict]:
    return [event async for event in source.iter_events()]


class TestIterEvents:
    async def test_reads_file(self, tmp_path):
        path = tmp_path / "events.jsonl"
        path.write_text(jsonl(make_event(signature="a"), make_event(signature="b")))
        source = JsonlOpportunitySource(path)
        events = await collect(source)
        assert [e["signature"] for e in events] == ["a", "b"]
        assert source.stats == {"read": 2, "malformed": 0}

    async def test_skips_blank_comment_and_malformed(self):
        text = jsonl(
            "# recorded 2024-06-12",
            "",
            make_event(signature="a"),
            "{not json",
            "[1, 2, 3]",
            make_event(signature="b"),
        )
        source = JsonlOpportunitySource(io.StringIO(text))
        events = await collect(source)
        assert [e["signature"] for e in events] == ["a", "b"]
        assert source.stats == {"read": 2, "malformed": 2}

    async def test_reads_from_pipe(self):
        read_fd, write_fd = os.pipe()
        os.write(write_fd, jsonl(make_event(signature="a"), "{bad").encode())
        os.close(write_fd)
        with os.fdopen(read_fd, "r") as stream:
            source = JsonlOpportunitySource(stream)
            events = await collect(source)
        assert [e["signature"] for e in events] == ["a"]
        assert source.stats == {"read": 1, "malformed": 1}


class TestFeed:
    async def test_feed_appends_end_of_stream(self):
        source = JsonlOpportunitySource(io.StringIO(jsonl(make_event(), make_event(signature="x"))))
        queue: asyncio.Queue = asyncio.Queue()
        assert await source.feed(queue) == 2
        assert queue.qsize() == 3
        items = [queue.get_nowait() for _ in range(3)]
        assert items[-1] is END_OF_STREAM

    async def test_feed_without_close(self):
        source = JsonlOpportunitySource(io.StringIO(jsonl(make_event())))
        queue: asyncio.Queue = asyncio.Queue()
        await source.feed(queue, close=False)
        assert queue.qsize() == 1
        assert queue.get_nowait()["signature"] == "sig_1"

    async def test_idle_pipe_does_not_block_loop(self):
        read_fd, write_fd = os.pipe()
        os.write(write_fd, jsonl(make_event(signature="live")).encode())
        stream = os.fdopen(read_fd, "r")
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(JsonlOpportunitySource(stream).feed(queue))
        try:
            event = await asyncio.wait_for(queue.get(), timeout=1)
            assert event["signature"] == "live"
            # 쓰는 쪽이 열려 있는 동안 다른 태스크가 계속 진행됨
            for _ in range(5):
                await asyncio.sleep(0.01)
            assert not task.done()
        finally:
            os.close(write_fd)
        assert await asyncio.wait_for(task, timeout=1) == 1
        assert queue.get_nowait() is END_OF_STREAM
        stream.close()

    async def test_cancel_while_waiting_on_pipe(self):
        read_fd, write_fd = os.pipe()
        stream = os.fdopen(read_fd, "r")
        task = asyncio.create_task(JsonlOpportunitySource(stream).feed(asyncio.Queue()))
        await asyncio.sleep(0.05)
        task.cancel()
        try:
            await asyncio.wait_for(task, timeout=1)
        except asyncio.CancelledError:
            pass
        assert task.cancelled()
        os.close(write_fd)
        stream.close()
