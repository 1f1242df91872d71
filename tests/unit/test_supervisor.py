# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import threading
from typing import Any, Callable

import pytest

from adapters.text.sanitize import HtmlSanitizer
from audio.stream_manager import AudioStreamManager
from hardware.indicators import IndicatorController
from orchestrator import supervisor as supervisor_mod
from orchestrator.enums.change_types import DisconnectType
from orchestrator.enums.indicator import Indicator
from orchestrator.errors import TransportError
from orchestrator.events import Connected, Disconnected, SessionEventType
from orchestrator.supervisor import ConnectionSupervisor
from session import device_session as device_session_mod
from session.connection_status import ConnectionStatus
from session.device_session import DeviceSession


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeTransport:
    """
    Scripted transport.

    Each dial consumes one outcome:
    - "ok": emits Connected before returning, like a real client's
      connect callback
    - "fail": raises TransportError
    - "late": returns first; Connected is queued on the loop, like a
      callback that lost the race with the dial result
    - "flap": emits Connected then Disconnected before returning
    - "abort": emits Connected, then the dial still fails
    Once the script runs out every dial fails.
    """

    def __init__(self, outcomes: list[str]) -> None:
        self._outcomes = list(outcomes)
        self.sink: Callable[[Any], None] | None = None
        self.dials = 0
        self.disconnected: list[Any] = []

    def set_event_sink(self, sink: Callable[[Any], None]) -> None:
        self.sink = sink

    async def dial(self, address: str, tls: Any) -> Any:
        self.dials += 1
        outcome = self._outcomes.pop(0) if self._outcomes else "fail"
        if outcome == "fail":
            raise TransportError("connection refused")

        handle = f"h{self.dials}"
        event = Connected(event_type=SessionEventType.CONNECTED, ts_ms=0, handle=handle)
        if outcome == "late":
            asyncio.get_running_loop().call_soon(self.emit, event)
            return handle

        self.emit(event)
        if outcome == "flap":
            self.drop()
        if outcome == "abort":
            raise TransportError("server sync timed out")
        return handle

    def drop(self) -> None:
        self.emit(Disconnected(
            event_type=SessionEventType.DISCONNECTED,
            ts_ms=0,
            disconnect_type=DisconnectType.ERROR,
        ))

    def emit(self, event: Any) -> None:
        assert self.sink is not None
        self.sink(event)

    def disconnect(self, handle: Any) -> None:
        self.disconnected.append(handle)

    def find_channel(self, handle: Any, name: str) -> Any | None:
        return None

    def move_self(self, handle: Any, channel: Any) -> None:
        raise AssertionError("no channel configured")

    def remote_address(self, handle: Any) -> str:
        return "voice.example:64738"


class FakeOutput:
    def __init__(self) -> None:
        self.state: dict[Indicator, bool] = {i: False for i in Indicator}
        self.broken = False

    def set_output(self, indicator: Indicator, on: bool) -> None:
        if self.broken:
            raise OSError("gpio write failed")
        self.state[indicator] = on


class FakeStream:
    def __init__(self) -> None:
        self.destroyed = False

    def start_source(self) -> None:
        pass

    def stop_source(self) -> None:
        pass

    def destroy(self) -> None:
        self.destroyed = True


class FakeAudio:
    def __init__(self, fail_on: set[int] | None = None) -> None:
        self.opened = 0
        self.streams: list[FakeStream] = []
        self._fail_on = fail_on or set()

    def open_stream(self, handle: Any) -> FakeStream:
        self.opened += 1
        if self.opened in self._fail_on:
            raise OSError("no default input device")
        stream = FakeStream()
        self.streams.append(stream)
        return stream


class Rig:
    def __init__(
        self,
        outcomes: list[str],
        *,
        audio_fail_on: set[int] | None = None,
        reconnect_delay_s: float = 0.0,
    ) -> None:
        self.session = DeviceSession(address="voice.example:64738")
        self.transport = FakeTransport(outcomes)
        self.audio = FakeAudio(audio_fail_on)
        self.output = FakeOutput()
        self.streams = AudioStreamManager(
            session=self.session,
            backend=self.audio,
            reset_cooldown_s=0,
        )
        self.supervisor = ConnectionSupervisor(
            session=self.session,
            transport=self.transport,
            streams=self.streams,
            indicators=IndicatorController(self.output),
            sanitizer=HtmlSanitizer(),
            reconnect_delay_s=reconnect_delay_s,
        )


@pytest.fixture
def logged(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(supervisor_mod, "log_event", emitted.append)
    monkeypatch.setattr(device_session_mod, "log_event", emitted.append)
    return emitted


@pytest.fixture
def operator(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    monkeypatch.setattr(supervisor_mod, "log_operator_message", lines.append)
    return lines


def transitions(logged: list[dict[str, Any]]) -> list[tuple[str, str]]:
    return [(e["from"], e["to"]) for e in logged if e["event_type"] == "STATUS_CHANGED"]


def events(logged: list[dict[str, Any]], event_type: str) -> list[dict[str, Any]]:
    return [e for e in logged if e["event_type"] == event_type]


async def until(predicate: Callable[[], bool], limit: int = 500) -> None:
    for _ in range(limit):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


# ---------------------------------------------------------------------
# First connect
# ---------------------------------------------------------------------

def test_first_dial_success_connects_and_opens_stream(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["ok"])

    asyncio.run(rig.supervisor.connect())

    assert transitions(logged) == [
        ("DISCONNECTED", "CONNECTING"),
        ("CONNECTING", "CONNECTED"),
    ]
    assert rig.session.connect_attempts == 1
    assert rig.session.handle == "h1"
    assert rig.streams.is_open is True
    assert rig.output.state[Indicator.ONLINE] is True


def test_dial_failure_schedules_one_retry(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["fail"], reconnect_delay_s=10.0)

    async def scenario() -> None:
        await rig.supervisor.connect()
        assert rig.supervisor.retry_pending is True
        await rig.supervisor.shutdown()

    asyncio.run(scenario())

    scheduled = events(logged, "RECONNECT_SCHEDULED")
    assert [e["message"] for e in scheduled] == ["Attempting again in 10 seconds..."]
    assert rig.session.status is ConnectionStatus.DISCONNECTED
    assert rig.transport.dials == 1


# ---------------------------------------------------------------------
# Bounded retry
# ---------------------------------------------------------------------

def test_gives_up_after_five_failed_dials(
    logged: list[dict[str, Any]],
    operator: list[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    slept: list[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay: float) -> None:
        slept.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    rig = Rig([], reconnect_delay_s=10.0)

    status = asyncio.run(rig.supervisor.run())

    assert status == 1
    assert rig.supervisor.exit_status == 1
    assert rig.transport.dials == 5
    assert rig.session.connect_attempts == 5
    assert rig.session.status is ConnectionStatus.FAILED
    assert slept == [10.0, 10.0, 10.0, 10.0]
    assert operator == ["Unable to connect, giving up"]
    assert all(on is False for on in rig.output.state.values())


def test_attempt_counter_survives_successful_connect(
    logged: list[dict[str, Any]],
    operator: list[str],
) -> None:
    rig = Rig(["ok"])

    async def scenario() -> int:
        run_task = asyncio.create_task(rig.supervisor.run())
        await until(lambda: rig.session.is_connected)
        rig.transport.drop()
        return await run_task

    status = asyncio.run(scenario())

    # One success plus four failures spends the lifetime budget
    assert status == 1
    assert rig.transport.dials == 5
    assert operator == ["Unable to connect, giving up"]


# ---------------------------------------------------------------------
# Disconnect handling
# ---------------------------------------------------------------------

def test_disconnect_tears_down_stream_and_session(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["ok"], reconnect_delay_s=10.0)

    async def scenario() -> None:
        await rig.supervisor.connect()
        rig.transport.drop()

        assert rig.streams.is_open is False
        assert rig.audio.streams[0].destroyed is True
        assert rig.transport.disconnected == ["h1"]
        assert rig.session.handle is None
        assert rig.supervisor.retry_pending is True

        await rig.supervisor.shutdown()

    asyncio.run(scenario())

    assert rig.session.status is ConnectionStatus.DISCONNECTED
    assert all(on is False for on in rig.output.state.values())


def test_reconnect_reopens_stream_on_new_handle(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["ok", "ok"])

    async def scenario() -> None:
        await rig.supervisor.connect()
        rig.transport.drop()
        await until(lambda: rig.session.connect_attempts == 2 and rig.session.is_connected)

    asyncio.run(scenario())

    assert rig.session.handle == "h2"
    assert rig.audio.opened == 2
    assert rig.streams.is_open is True
    assert rig.supervisor.retry_pending is False


def test_only_one_retry_pending(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["ok"], reconnect_delay_s=10.0)

    async def scenario() -> None:
        await rig.supervisor.connect()
        rig.transport.drop()
        rig.transport.drop()
        rig.supervisor.reconnect()
        await rig.supervisor.shutdown()

    asyncio.run(scenario())

    assert len(events(logged, "RECONNECT_SCHEDULED")) == 1
    assert len(events(logged, "RECONNECT_ALREADY_IN_PROGRESS")) == 2
    assert rig.transport.disconnected == ["h1"]


def test_disconnect_during_dial_still_reconnects(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["flap"], reconnect_delay_s=10.0)

    async def scenario() -> None:
        await rig.supervisor.connect()

        assert rig.supervisor.retry_pending is True
        assert rig.streams.is_open is False
        assert rig.transport.disconnected == ["h1"]

        await rig.supervisor.shutdown()

    asyncio.run(scenario())

    assert len(events(logged, "DIAL_RESULT_STALE")) == 1
    assert rig.audio.opened == 0


def test_shutdown_cancels_pending_retry(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["fail"], reconnect_delay_s=10.0)

    async def scenario() -> None:
        await rig.supervisor.connect()
        await rig.supervisor.shutdown()
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert rig.supervisor.retry_pending is False
    assert rig.transport.dials == 1


# ---------------------------------------------------------------------
# Audio stream failures
# ---------------------------------------------------------------------

def test_stream_open_failure_is_fatal(
    logged: list[dict[str, Any]],
    operator: list[str],
) -> None:
    rig = Rig(["ok"], audio_fail_on={1})

    status = asyncio.run(rig.supervisor.run())

    assert status == 1
    assert rig.session.status is ConnectionStatus.FAILED
    assert rig.transport.disconnected == ["h1"]
    assert operator == ["Stream open error (no default input device)"]
    assert rig.transport.dials == 1


def test_reset_stream_reopens_while_connected(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["ok"])

    async def scenario() -> None:
        await rig.supervisor.connect()
        await rig.supervisor.reset_stream()

    asyncio.run(scenario())

    assert rig.audio.opened == 2
    assert rig.audio.streams[0].destroyed is True
    assert rig.streams.is_open is True


def test_reset_stream_reopen_failure_is_fatal(
    logged: list[dict[str, Any]],
    operator: list[str],
) -> None:
    rig = Rig(["ok"], audio_fail_on={2})

    async def scenario() -> None:
        await rig.supervisor.connect()
        await rig.supervisor.reset_stream()

    asyncio.run(scenario())

    assert rig.supervisor.exit_status == 1
    assert rig.session.status is ConnectionStatus.FAILED
    assert operator == ["Stream open error (no default input device)"]


def test_reset_stream_is_noop_while_disconnected(logged: list[dict[str, Any]]) -> None:
    rig = Rig([])

    asyncio.run(rig.supervisor.reset_stream())

    assert rig.audio.opened == 0


def test_events_after_failure_do_not_revive_session(
    logged: list[dict[str, Any]],
    operator: list[str],
) -> None:
    rig = Rig(["ok"], audio_fail_on={1})
    asyncio.run(rig.supervisor.run())

    rig.transport.emit(Connected(event_type=SessionEventType.CONNECTED, ts_ms=0, handle="late"))

    assert rig.session.status is ConnectionStatus.FAILED
    assert rig.output.state[Indicator.ONLINE] is False


def test_reset_abandoned_when_disconnect_lands_in_cooldown(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["ok"], reconnect_delay_s=10.0)

    async def scenario() -> None:
        await rig.supervisor.connect()
        reset = asyncio.create_task(rig.supervisor.reset_stream())
        await asyncio.sleep(0)

        # reset is parked in its cooldown
        rig.transport.drop()
        await reset

        assert rig.supervisor.retry_pending is True
        await rig.supervisor.shutdown()

    asyncio.run(scenario())

    assert rig.audio.opened == 1
    assert rig.streams.is_open is False
    assert rig.session.status is ConnectionStatus.DISCONNECTED
    assert rig.supervisor.exit_status is None


# ---------------------------------------------------------------------
# Connected / dial result ordering
# ---------------------------------------------------------------------

def test_online_lit_before_late_connected_event(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["late"])

    async def scenario() -> None:
        await rig.supervisor.connect()

        assert rig.session.status is ConnectionStatus.CONNECTED
        assert rig.streams.is_open is True
        assert rig.output.state[Indicator.ONLINE] is True

        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert rig.session.status is ConnectionStatus.CONNECTED
    assert rig.session.handle == "h1"
    assert rig.output.state[Indicator.ONLINE] is True
    assert rig.audio.opened == 1


def test_dial_error_after_connected_clears_indicators(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["abort"], reconnect_delay_s=10.0)

    async def scenario() -> None:
        await rig.supervisor.connect()

        assert rig.supervisor.retry_pending is True
        await rig.supervisor.shutdown()

    asyncio.run(scenario())

    assert all(on is False for on in rig.output.state.values())
    assert rig.session.status is ConnectionStatus.DISCONNECTED
    assert rig.transport.disconnected == ["h1"]
    assert rig.streams.is_open is False


# ---------------------------------------------------------------------
# Failures outside the supervisor's own flow
# ---------------------------------------------------------------------

def test_indicator_failure_while_handling_event_ends_run(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["ok"], reconnect_delay_s=10.0)

    async def scenario() -> None:
        run_task = asyncio.create_task(rig.supervisor.run())
        await until(lambda: rig.session.is_connected)

        rig.output.broken = True
        asyncio.get_running_loop().call_soon(rig.transport.drop)

        with pytest.raises(OSError, match="gpio write failed"):
            await run_task

    asyncio.run(scenario())

    assert rig.session.status is ConnectionStatus.FAILED
    assert rig.supervisor.retry_pending is False
    assert len(events(logged, "FATAL")) == 1


def test_hardware_thread_failure_ends_run(logged: list[dict[str, Any]]) -> None:
    rig = Rig(["ok"])

    async def scenario() -> None:
        run_task = asyncio.create_task(rig.supervisor.run())
        await until(lambda: rig.session.is_connected)

        worker = threading.Thread(
            target=rig.supervisor.fail_threadsafe,
            args=(RuntimeError("button handler crashed"),),
        )
        worker.start()
        worker.join()

        with pytest.raises(RuntimeError, match="button handler crashed"):
            await run_task
        await rig.supervisor.shutdown()

    asyncio.run(scenario())

    assert rig.session.status is ConnectionStatus.FAILED
    assert rig.streams.is_open is False
    assert all(on is False for on in rig.output.state.values())


def test_thread_failure_before_run_is_raised() -> None:
    rig = Rig([])

    with pytest.raises(RuntimeError, match="too early"):
        rig.supervisor.fail_threadsafe(RuntimeError("too early"))
