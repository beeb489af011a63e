"""Tests for ordered background persistence."""

import asyncio
import threading
import time

from frindr_sync.services.persistence import SerializedWriter


def test_writes_do_not_interleave_and_keep_call_order() -> None:
    written: list[list[int]] = []
    overlaps: list[int] = []
    busy = threading.Lock()

    def write(snapshot: list[int]) -> None:
        if not busy.acquire(blocking=False):
            overlaps.append(snapshot[0])
            return
        try:
            time.sleep(0.001)
            written.append(snapshot)
        finally:
            busy.release()

    writer: SerializedWriter[list[int]] = SerializedWriter(write, name="meals")

    async def scenario() -> None:
        for index in range(5):
            writer.schedule([index])
        assert writer.pending == 5
        await writer.flush()

    asyncio.run(scenario())

    assert written == [[0], [1], [2], [3], [4]]
    assert overlaps == []
    assert writer.pending == 0


def test_failed_write_does_not_block_later_writes() -> None:
    written: list[str] = []

    def write(snapshot: str) -> None:
        if snapshot == "bad":
            raise OSError("disk full")
        written.append(snapshot)

    writer: SerializedWriter[str] = SerializedWriter(write, name="meals")

    async def scenario() -> None:
        writer.schedule("bad")
        writer.schedule("good")
        await writer.flush()

    asyncio.run(scenario())

    assert written == ["good"]


def test_writer_can_be_used_from_successive_event_loops() -> None:
    written: list[str] = []
    writer: SerializedWriter[str] = SerializedWriter(written.append, name="meals")

    async def scenario(snapshot: str) -> None:
        writer.schedule(snapshot)
        await writer.flush()

    asyncio.run(scenario("first"))
    asyncio.run(scenario("second"))

    assert written == ["first", "second"]
