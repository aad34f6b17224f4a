"""Live TOTP display: one line, redrawn every second until a key is pressed.

    [27]  287082

The countdown is colored by how much of the period is left (green, yellow,
red). Remaining time is re-derived from the wall clock on every tick so a
slow terminal never makes the countdown drift, and the code is recomputed as
soon as the clock crosses into a new time step.
"""

from __future__ import annotations

import logging
import math
import os
import select
import sys
import threading
import time
from collections.abc import Callable
from typing import Any

from rich.console import Console
from rich.live import Live
from rich.text import Text

from twofa.auth.totp import DEFAULT_PERIOD, spaced_code, time_counter, totp
from twofa.models import Band

logger = logging.getLogger(__name__)

BAND_COLORS = {
    Band.FRESH: "green",
    Band.CAUTION: "yellow",
    Band.URGENT: "red",
}


def seconds_remaining(now: float, period: int = DEFAULT_PERIOD) -> int:
    """Seconds until the next period boundary, in ``1..period``."""
    return period - (math.floor(now) % period)


def classify(remaining: int, period: int = DEFAULT_PERIOD) -> Band:
    """Band for a countdown value; P=30 gives 20-30 fresh, 10-19 caution, 0-9 urgent."""
    if remaining >= math.ceil(2 * period / 3):
        return Band.FRESH
    if remaining >= math.ceil(period / 3):
        return Band.CAUTION
    return Band.URGENT


def render_line(remaining: int, code: str, period: int = DEFAULT_PERIOD) -> Text:
    color = BAND_COLORS[classify(remaining, period)]
    return Text.assemble(
        "      [",
        (f"{remaining:02d}", f"bold {color}"),
        "]  ",
        code,
    )


class CountdownDisplay:
    """Renders one account's code with a countdown until cancelled.

    ``clock`` is the wall-clock source (unix seconds, ``time.time`` when
    omitted, looked up on every read); ``tick`` is the redraw
    interval. Both are injectable so the loop can run against a fake clock.
    """

    def __init__(
        self,
        secret: bytes,
        *,
        digits: int = 6,
        period: int = DEFAULT_PERIOD,
        console: Console | None = None,
        clock: Callable[[], float] | None = None,
        tick: float = 1.0,
        spaced: bool = False,
    ) -> None:
        self.secret = secret
        self.digits = digits
        self.period = period
        self.spaced = spaced
        self._console = console or Console()
        self._clock = clock
        self._tick = tick
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self.last_code: str | None = None
        self.ticks = 0

    def cancel(self) -> bool:
        """Signal the loop to stop. Only the first call counts."""
        with self._lock:
            if self._stop_event.is_set():
                return False
            self._stop_event.set()
        logger.debug("Display cancelled")
        return True

    def _now(self) -> float:
        return (self._clock or time.time)()

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    def _compute(self, now: float) -> tuple[int, str]:
        counter = time_counter(now, self.period)
        code = totp(self.secret, now, self.digits, self.period)
        logger.debug("Computed code for time step %d", counter)
        return counter, code

    def _render(self, live: Live, now: float, code: str) -> None:
        shown = spaced_code(code) if self.spaced else code
        live.update(render_line(seconds_remaining(now, self.period), shown, self.period), refresh=True)
        self.last_code = code

    def _wait(self, now: float, deadline: float | None) -> bool:
        """Sleep until the next tick boundary. True when cancelled."""
        timeout = self._tick - (now % self._tick)
        if deadline is not None:
            timeout = min(timeout, max(deadline - now, 0.0))
        return self._stop_event.wait(timeout)

    def run(self, duration: float | None = None) -> str:
        """Render until cancelled or ``duration`` seconds pass; return the last code shown."""
        start = self._now()
        deadline = start + duration if duration is not None else None
        counter, code = self._compute(start)

        # Live hides the cursor on entry and restores it on every exit path.
        with Live(console=self._console, auto_refresh=False, transient=False) as live:
            self._render(live, start, code)
            while not self._stop_event.is_set():
                now = self._now()
                if deadline is not None and now >= deadline:
                    break
                if self._wait(now, deadline):
                    break
                now = self._now()
                step = time_counter(now, self.period)
                if step != counter:
                    counter, code = self._compute(now)
                self._render(live, now, code)
                self.ticks += 1

        return code


class KeyListener:
    """Fires ``on_key`` once after the first key press on ``fd``.

    Used as a context manager around the display loop. When ``fd`` is a
    terminal it is switched to cbreak mode (no echo, no line buffering,
    signals still delivered) for the duration of the block; the saved mode
    is restored and the listener thread joined on every exit path.
    """

    def __init__(
        self,
        on_key: Callable[[], object],
        fd: int | None = None,
        *,
        poll: float = 0.1,
    ) -> None:
        self._on_key = on_key
        self._fd = sys.stdin.fileno() if fd is None else fd
        self._poll = poll
        self._stop_event = threading.Event()
        self._saved_mode: list[Any] | None = None
        self.thread: threading.Thread | None = None

    def __enter__(self) -> KeyListener:
        if os.isatty(self._fd):
            import termios
            import tty

            self._saved_mode = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd)
        self.thread = threading.Thread(target=self._listen, name="twofa-keys", daemon=True)
        self.thread.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._stop_event.set()
        try:
            if self.thread is not None:
                self.thread.join()
        finally:
            if self._saved_mode is not None:
                import termios

                termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_mode)
                self._saved_mode = None

    def _listen(self) -> None:
        while not self._stop_event.is_set():
            ready, _, _ = select.select([self._fd], [], [], self._poll)
            if not ready:
                continue
            key = os.read(self._fd, 1)
            if not key:
                logger.debug("stdin closed; key listener stopped")
                return
            logger.debug("Key %r pressed", key)
            self._on_key()
            return
