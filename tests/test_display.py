"""Tests for the live countdown display and key listener."""

from __future__ import annotations

import os
import threading
import time

import pytest

from twofa.auth.totp import hotp, totp
from twofa.display import CountdownDisplay, KeyListener, classify, render_line, seconds_remaining
from twofa.errors import EngineError
from twofa.models import Band

RFC_SECRET = b"12345678901234567890"


class StepClock:
    """Fake wall clock that advances a fixed step on every read."""

    def __init__(self, start: float, step: float = 0.5) -> None:
        self.now = start - step
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@pytest.mark.parametrize(
    "remaining,band",
    [
        (30, Band.FRESH),
        (25, Band.FRESH),
        (20, Band.FRESH),
        (19, Band.CAUTION),
        (15, Band.CAUTION),
        (10, Band.CAUTION),
        (9, Band.URGENT),
        (5, Band.URGENT),
        (0, Band.URGENT),
    ],
)
def test_classify_period_30(remaining, band):
    assert classify(remaining, 30) == band


def test_classify_uneven_period():
    # P=10: fresh from ceil(20/3)=7, caution from ceil(10/3)=4
    assert classify(7, 10) == Band.FRESH
    assert classify(6, 10) == Band.CAUTION
    assert classify(4, 10) == Band.CAUTION
    assert classify(3, 10) == Band.URGENT


@pytest.mark.parametrize(
    "now,expected",
    [(0, 30), (1, 29), (29.9, 1), (30, 30), (45, 15), (1_700_000_039.2, 1)],
)
def test_seconds_remaining(now, expected):
    assert seconds_remaining(now, 30) == expected


def test_render_line():
    line = render_line(5, "287082")
    assert line.plain == "      [05]  287082"
    styles = [str(span.style) for span in line.spans]
    assert "bold red" in styles


def test_render_line_fresh_is_green():
    styles = [str(span.style) for span in render_line(28, "287082").spans]
    assert "bold green" in styles


def test_run_until_duration_recomputes_at_boundary(quiet_console):
    # Starts at t=59 (time step 1), crosses into step 2 at t=60, stops at t=64.
    display = CountdownDisplay(RFC_SECRET, console=quiet_console, clock=StepClock(59.0), tick=0.01)

    code = display.run(duration=5)

    assert code == hotp(RFC_SECRET, 2)
    assert display.last_code == code
    assert display.ticks == 5


def test_run_zero_duration_renders_once(quiet_console):
    display = CountdownDisplay(RFC_SECRET, digits=8, console=quiet_console, clock=lambda: 59.0)
    assert display.run(duration=0) == "94287082"
    assert display.ticks == 0
    assert "94287082" in quiet_console.file.getvalue()


def test_cancel_before_run_returns_first_code(quiet_console):
    display = CountdownDisplay(RFC_SECRET, console=quiet_console, clock=lambda: 30.0)
    assert display.cancel() is True
    assert display.run() == hotp(RFC_SECRET, 1)
    assert display.ticks == 0


def test_cancel_only_counts_once(quiet_console):
    display = CountdownDisplay(RFC_SECRET, console=quiet_console)
    assert display.cancel() is True
    assert display.cancel() is False
    assert display.cancelled


def test_cancel_mid_run_stops_within_a_tick(quiet_console):
    display = CountdownDisplay(RFC_SECRET, console=quiet_console, tick=0.02)
    result: list[str] = []
    before = totp(RFC_SECRET)

    t = threading.Thread(target=lambda: result.append(display.run()))
    t.start()
    time.sleep(0.1)
    display.cancel()
    t.join(timeout=1)

    assert not t.is_alive()
    assert len(result) == 1
    assert result[0] in {before, totp(RFC_SECRET)}
    ticks = display.ticks
    time.sleep(0.05)
    assert display.ticks == ticks


def test_engine_error_propagates_without_render(quiet_console):
    display = CountdownDisplay("not bytes", console=quiet_console, clock=lambda: 59.0)  # type: ignore[arg-type]
    with pytest.raises(EngineError):
        display.run(duration=1)
    assert display.last_code is None


def test_engine_error_mid_run_keeps_last_code(quiet_console):
    times = iter([59.0, 59.5, -100.0])
    display = CountdownDisplay(RFC_SECRET, console=quiet_console, clock=lambda: next(times), tick=0.01)
    with pytest.raises(EngineError):
        display.run()
    assert display.last_code == hotp(RFC_SECRET, 1)


def test_default_clock_reads_time_at_call(monkeypatch, quiet_console):
    display = CountdownDisplay(RFC_SECRET, console=quiet_console)
    monkeypatch.setattr("time.time", lambda: 59.0)
    assert display.run(duration=0) == "287082"


@pytest.fixture
def pipe():
    read_fd, write_fd = os.pipe()
    yield read_fd, write_fd
    for fd in (read_fd, write_fd):
        try:
            os.close(fd)
        except OSError:
            pass


def test_key_listener_fires_once(pipe):
    read_fd, write_fd = pipe
    calls: list[int] = []
    with KeyListener(lambda: calls.append(1), read_fd, poll=0.01) as listener:
        os.write(write_fd, b"qq")
        listener.thread.join(timeout=1)
    assert calls == [1]


def test_key_listener_eof_does_not_cancel(pipe):
    read_fd, write_fd = pipe
    calls: list[int] = []
    with KeyListener(lambda: calls.append(1), read_fd, poll=0.01) as listener:
        os.close(write_fd)
        listener.thread.join(timeout=1)
    assert calls == []


def test_key_listener_stops_without_key(pipe):
    read_fd, _ = pipe
    with KeyListener(lambda: None, read_fd, poll=0.01) as listener:
        pass
    assert not listener.thread.is_alive()


def test_key_press_cancels_display(pipe, quiet_console):
    read_fd, write_fd = pipe
    display = CountdownDisplay(RFC_SECRET, console=quiet_console, tick=0.02)
    threading.Timer(0.05, os.write, args=(write_fd, b"x")).start()

    with KeyListener(display.cancel, read_fd, poll=0.01):
        code = display.run(duration=5)

    assert display.cancelled
    assert code == display.last_code


@pytest.fixture
def pty_fds():
    pty = pytest.importorskip("pty")
    master, slave = pty.openpty()
    yield master, slave
    os.close(master)
    os.close(slave)


def test_key_listener_restores_terminal_after_duration(pty_fds, quiet_console):
    termios = pytest.importorskip("termios")
    _, slave = pty_fds
    before = termios.tcgetattr(slave)
    display = CountdownDisplay(RFC_SECRET, console=quiet_console, tick=0.02)

    with KeyListener(display.cancel, slave, poll=0.01):
        lflag = termios.tcgetattr(slave)[3]
        assert not lflag & termios.ICANON
        assert not lflag & termios.ECHO
        display.run(duration=0.1)

    assert not display.cancelled
    assert termios.tcgetattr(slave) == before


def test_key_listener_restores_terminal_on_error(pty_fds, quiet_console):
    termios = pytest.importorskip("termios")
    _, slave = pty_fds
    before = termios.tcgetattr(slave)
    display = CountdownDisplay("not bytes", console=quiet_console)  # type: ignore[arg-type]

    with pytest.raises(EngineError):
        with KeyListener(display.cancel, slave, poll=0.01):
            display.run()

    assert termios.tcgetattr(slave) == before


def test_key_on_terminal_cancels(pty_fds):
    master, slave = pty_fds
    pressed = threading.Event()
    with KeyListener(pressed.set, slave, poll=0.01):
        os.write(master, b"x")
        assert pressed.wait(timeout=1)
