"""
Keyboard Controls

Single-key playback controls for the console reader: space (or p) pauses
and resumes, q (or s) stops. Keys are read without waiting for Enter and
handled on the event loop thread, so they drive the reader directly.
"""

import os
import sys
import threading
from typing import Optional, TextIO

import click

from readaloud.readalong.reader import ArticleReader
from readaloud.utils import logger

KEY_HELP = "Space: pause/resume, q: stop"

PAUSE_KEYS = (" ", "p")
STOP_KEYS = ("q", "s")


def handle_key(reader: ArticleReader, key: str) -> bool:
    """
    Apply one key press to the reader.

    Returns:
        True if the key is bound to a playback control
    """
    key = key.lower()
    if key in PAUSE_KEYS:
        reader.toggle_pause()
        return True
    if key in STOP_KEYS:
        reader.stop()
        return True
    return False


class KeyControls:
    """
    Feed key presses from an interactive terminal to a reader.

    Used as a context manager around playback. Does nothing when the
    stream is not a terminal (pipes, redirected input, test runners).
    On POSIX the terminal is switched to cbreak mode and watched with the
    loop's add_reader; on Windows a daemon thread polls click.getchar.
    """

    def __init__(self, reader: ArticleReader, loop, stream: Optional[TextIO] = None):
        self.reader = reader
        self.loop = loop
        self.stream = stream or sys.stdin
        self.active = False
        self._fd: Optional[int] = None
        self._saved_mode = None

    def __enter__(self) -> "KeyControls":
        if not self.stream.isatty():
            return self

        self.active = True
        if sys.platform == "win32":
            threading.Thread(target=self._poll_keys, name="readaloud-keys", daemon=True).start()
            return self

        import termios
        import tty

        fd = self.stream.fileno()
        self._saved_mode = termios.tcgetattr(fd)
        tty.setcbreak(fd)
        self._fd = fd
        self.loop.add_reader(fd, self._on_readable)
        return self

    def __exit__(self, *exc) -> None:
        self.active = False
        if self._fd is None:
            return

        import termios

        self.loop.remove_reader(self._fd)
        termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_mode)
        self._fd = None

    def _on_readable(self) -> None:
        data = os.read(self._fd, 32)
        for key in data.decode("utf-8", errors="ignore"):
            self._dispatch(key)

    def _dispatch(self, key: str) -> None:
        if handle_key(self.reader, key):
            logger.debug(f"Key {key!r} -> {self.reader.state.value}")

    def _poll_keys(self) -> None:
        while self.active:
            try:
                key = click.getchar()
            except (KeyboardInterrupt, EOFError):
                key = STOP_KEYS[0]
            try:
                self.loop.call_soon_threadsafe(self._dispatch, key)
            except RuntimeError:
                # loop already closed
                return
