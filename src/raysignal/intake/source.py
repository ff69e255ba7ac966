"""JSON-lines pool event source.

한 줄에 하나의 raw pool event (dict). 빈 줄과 ``#`` 주석은 무시.
파싱 실패한 줄은 경고 후 건너뜀 (검증은 파이프라인에서).

파이프/tty(stdin 포함)는 이벤트 루프에서 직접 읽고, 일반 파일은
스레드에서 읽어 워커와 알림 drain이 입력 대기 중에도 계속 돈다.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import stat
import sys
from pathlib import Path
from typing import IO, AsyncIterator, Optional, Union

logger = logging.getLogger(__name__)

# 파이프라인 워커 종료 신호
END_OF_STREAM = None

MAX_LINE_BYTES = 1 << 20
_READ_HINT = 64 * 1024


def _is_pipe(stream: IO[str]) -> bool:
    """루프에 직접 붙일 수 있는 스트림인지 (FIFO, 소켓, tty)."""
    try:
        mode = os.fstat(stream.fileno()).st_mode
    except (AttributeError, OSError, ValueError):
        return False
    return stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode) or stream.isatty()


class JsonlOpportunitySource:
    """Read raw pool events from a JSON-lines file or stream.

    Args:
        source: 파일 경로, ``-`` (stdin), 또는 열린 텍스트 스트림.
    """

    def __init__(self, source: Union[str, Path, IO[str]]):
        self.source = source
        self._read: int = 0
        self._malformed: int = 0

    def _open(self) -> tuple[IO[str], bool]:
        if isinstance(self.source, (str, Path)):
            if str(self.source) == "-":
                return sys.stdin, False
            return open(self.source, encoding="utf-8"), True
        return self.source, False

    async def iter_events(self) -> AsyncIterator[dict]:
        """Yield each JSON object line."""
        stream, owned = self._open()
        lines = self._pipe_lines(stream) if _is_pipe(stream) else self._file_lines(stream)
        try:
            lineno = 0
            async for line in lines:
                lineno += 1
                event = self._parse(lineno, line)
                if event is not None:
                    yield event
        finally:
            await lines.aclose()
            if owned:
                stream.close()

    async def feed(self, queue: asyncio.Queue, close: bool = True) -> int:
        """모든 이벤트를 큐에 넣고, close면 END_OF_STREAM 추가.

        Returns:
            큐에 넣은 이벤트 수.
        """
        count = 0
        async with contextlib.aclosing(self.iter_events()) as events:
            async for event in events:
                await queue.put(event)
                count += 1
        if close:
            await queue.put(END_OF_STREAM)
        logger.info("Fed %d event(s) (%d malformed line(s) skipped)", count, self._malformed)
        return count

    @property
    def stats(self) -> dict:
        return {"read": self._read, "malformed": self._malformed}

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _parse(self, lineno: int, line: str) -> Optional[dict]:
        line = line.strip()
        if not line or line.startswith("#"):
            return None
        try:
            event = json.loads(line)
        except json.JSONDecodeError as exc:
            self._malformed += 1
            logger.warning("Skipping malformed line %d: %s", lineno, exc)
            return None
        if not isinstance(event, dict):
            self._malformed += 1
            logger.warning("Skipping non-object line %d", lineno)
            return None
        self._read += 1
        return event

    async def _pipe_lines(self, stream: IO[str]) -> AsyncIterator[str]:
        """파이프/tty: StreamReader로 한 줄씩. 입력 대기 중 루프를 막지 않음."""
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader(limit=MAX_LINE_BYTES)
        transport, _ = await loop.connect_read_pipe(
            lambda: asyncio.StreamReaderProtocol(reader), stream,
        )
        try:
            while True:
                try:
                    raw = await reader.readline()
                except ValueError:
                    # 한 줄이 MAX_LINE_BYTES 초과
                    self._malformed += 1
                    logger.warning("Skipping line longer than %d bytes", MAX_LINE_BYTES)
                    continue
                if not raw:
                    return
                yield raw.decode("utf-8", errors="replace")
        finally:
            transport.close()

    async def _file_lines(self, stream: IO[str]) -> AsyncIterator[str]:
        """일반 파일/메모리 스트림: readlines를 스레드에서 묶음 단위로."""
        while True:
            batch = await asyncio.to_thread(stream.readlines, _READ_HINT)
            if not batch:
                return
            for line in batch:
                yield line
