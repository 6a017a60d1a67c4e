"""Non-blocking keyboard input for the asyncio loop (POSIX terminals)."""

from __future__ import annotations

import asyncio
import os
import sys
import termios
from typing import Optional

from dnet_tui.keys import Key, parse_keys
from dnet_tui.utils.logger import logger


class KeyReader:
    """Puts the terminal in cbreak mode and feeds key presses into a queue.

    ISIG is cleared as well, so Ctrl+C arrives as a key instead of SIGINT and
    the dashboard decides what it means in the current view.

    Usage:
        with KeyReader() as keys:
            key = await keys.read(timeout=0.1)
    """

    def __init__(self, fd: Optional[int] = None):
        self.fd = sys.stdin.fileno() if fd is None else fd
        self._saved: Optional[list] = None
        self._queue: asyncio.Queue[Key] = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def __enter__(self) -> "KeyReader":
        self._saved = termios.tcgetattr(self.fd)
        mode = termios.tcgetattr(self.fd)
        mode[3] &= ~(termios.ICANON | termios.ECHO | termios.ISIG | termios.IEXTEN)
        mode[0] &= ~(termios.IXON | termios.ICRNL)
        mode[6][termios.VMIN] = 1
        mode[6][termios.VTIME] = 0
        termios.tcsetattr(self.fd, termios.TCSAFLUSH, mode)

        self._loop = asyncio.get_running_loop()
        self._loop.add_reader(self.fd, self._on_readable)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._loop is not None:
            self._loop.remove_reader(self.fd)
            self._loop = None
        if self._saved is not None:
            termios.tcsetattr(self.fd, termios.TCSADRAIN, self._saved)
            self._saved = None

    def _on_readable(self) -> None:
        try:
            data = os.read(self.fd, 1024)
        except BlockingIOError:
            return
        for key in parse_keys(data.decode("utf-8", errors="ignore")):
            logger.debug("key %s", key)
            self._queue.put_nowait(key)

    async def read(self, timeout: float) -> Optional[Key]:
        """Next key press, or None if none arrives within ``timeout`` seconds."""
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
