"""Tee a forward-only input stream to disk so it can be read a second time."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO


class SpoolingReader:
    """File-like wrapper copying every byte read from ``stream`` into a temp file."""

    def __init__(self, stream: BinaryIO, spool_dir: Path | None = None):
        self._stream = stream
        self._spool = tempfile.TemporaryFile(dir=spool_dir)
        self.bytes_spooled = 0
        self._exhausted = False

    def read(self, size: int = -1) -> bytes:
        data = self._stream.read(size)
        if data:
            self._spool.write(data)
            self.bytes_spooled += len(data)
        else:
            self._exhausted = True
        return data

    def replay(self) -> BinaryIO:
        """Return the spooled copy positioned at the start.

        Anything the first pass did not consume is drained into the spool
        first, so the replay always covers the complete input.
        """
        if not self._exhausted:
            shutil.copyfileobj(self._stream, self._spool)
            self.bytes_spooled = self._spool.tell()
            self._exhausted = True
        self._spool.flush()
        self._spool.seek(0)
        return self._spool

    def close(self) -> None:
        self._spool.close()

    def __enter__(self) -> "SpoolingReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
