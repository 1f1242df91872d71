"""
Connection supervisor for the device session.

Responsibilities:
- Own the DeviceSession and the reconnect state machine
- Count connect attempts (process lifetime, never reset)
- Dial the transport and open the audio stream on success
- Schedule the fixed-backoff retry as an independent, cancellable task
- Turn terminal conditions into a process exit status

Non-responsibilities:
- Interpreting transport events (dispatcher)
- Transmit gating (transmit gate)
- Audio device details (stream manager / backend)

State machine:
    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED -> ...
    any -> FAILED (terminal; run() returns the exit status)
"""

from __future__ import annotations

import asyncio
from typing import Any

from audio.stream_manager import AudioStreamManager
from config import TLSConfig
from constants import (
    EXIT_RECONNECT_EXHAUSTED,
    EXIT_STREAM_OPEN_FAILED,
    MAX_CONNECT_ATTEMPTS,
    RECONNECT_DELAY_S,
)
from hardware.indicators import IndicatorController
from observability.logger import log_event, log_operator_message
from observability.metrics import timed
from orchestrator import retry
from orchestrator.dispatcher import SessionEventDispatcher
from orchestrator.enums.indicator import Indicator
from orchestrator.errors import FatalDeviceError, StreamOpenError, TransportError
from orchestrator.retry import FailureType
from orchestrator.runtime_context import SanitizerProtocol, TransportProtocol
from session.connection_status import ConnectionStatus
from session.device_session import DeviceSession


class ConnectionSupervisor:
    """
    Reconnect state machine for the single voice-server session.

    Guarantees:
    - connect_attempts grows by exactly one per connect()
    - At most one retry task is pending at any time
    - No audio stream exists outside CONNECTED
    - Exhausting attempts or failing to open audio resolves the exit
      status exactly once
    """

    def __init__(
        self,
        *,
        session: DeviceSession,
        transport: TransportProtocol,
        streams: AudioStreamManager,
        indicators: IndicatorController,
        sanitizer: SanitizerProtocol,
        tls: TLSConfig | None = None,
        channel_name: str | None = None,
        reconnect_delay_s: float = RECONNECT_DELAY_S,
        max_attempts: int = MAX_CONNECT_ATTEMPTS,
    ) -> None:
        self._session = session
        self._transport = transport
        self._streams = streams
        self._indicators = indicators
        self._tls = tls or TLSConfig()
        self._reconnect_delay_s = reconnect_delay_s
        self._max_attempts = max_attempts

        self._retry_task: asyncio.Task[None] | None = None
        self._dialing = False
        self._exit: asyncio.Future[int] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

        self.dispatcher = SessionEventDispatcher(
            session=session,
            indicators=indicators,
            transport=transport,
            sanitizer=sanitizer,
            on_disconnect=self.reconnect,
            channel_name=channel_name,
        )
        transport.set_event_sink(self.deliver)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def session(self) -> DeviceSession:
        return self._session

    @property
    def retry_pending(self) -> bool:
        return self._retry_task is not None and not self._retry_task.done()

    @property
    def exit_status(self) -> int | None:
        """Exit status once a terminal condition was reached, else None."""
        if self._exit is None or not self._exit.done() or self._exit.cancelled():
            return None
        if self._exit.exception() is not None:
            return None
        return self._exit.result()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """
        Start the first connect and keep the device alive.

        Returns only when a terminal condition produced an exit status.
        Unexpected errors from event handling, retry tasks or the hardware
        input thread are re-raised here.
        """
        self._loop = asyncio.get_running_loop()
        exit_future = self._exit_future()
        await self.connect()
        return await exit_future

    def deliver(self, event: Any) -> None:
        """
        Transport event sink.

        Runs as a bare loop callback, so a failure while handling an event
        (e.g. an indicator write) is routed to fail() instead of being left
        to the loop's exception handler.
        """
        try:
            self.dispatcher.dispatch(event)
        except Exception as e:
            self.fail(e)

    def fail(self, error: BaseException) -> None:
        """
        End run() with `error`.

        Used for failures outside the supervisor's own control flow:
        event handling, retry tasks and the hardware input thread.
        """
        self._session.set_status(ConnectionStatus.FAILED)
        log_event({
            "level": "ERROR",
            "event_type": "FATAL",
            "message": f"Unhandled error ({error!r})",
            "attempt": self._session.connect_attempts,
        })

        exit_future = self._exit_future()
        if not exit_future.done():
            exit_future.set_exception(error)

    def fail_threadsafe(self, error: BaseException) -> None:
        """fail() from a thread other than the event loop's."""
        if self._loop is None:
            raise error
        self._loop.call_soon_threadsafe(self.fail, error)

    async def connect(self) -> None:
        """One dial attempt. Failure routes through reconnect()."""
        if self._is_terminal():
            return

        self._session.connect_attempts += 1
        attempt = self._session.connect_attempts
        self._session.set_status(ConnectionStatus.CONNECTING)

        log_event({
            "event_type": "CONNECT_ATTEMPT",
            "address": self._session.address,
            "attempt": attempt,
        })

        self._dialing = True
        try:
            with timed("dial", attempt=attempt):
                handle = await self._transport.dial(self._session.address, self._tls)
        except TransportError as e:
            self._dialing = False
            log_event({
                "level": "WARNING",
                "event_type": "DIAL_FAILED",
                "message": f"Connection to {self._session.address} failed ({e})",
                "attempt": attempt,
                "error": str(e),
            })
            self._session.set_status(ConnectionStatus.DISCONNECTED)
            # Connected may have been handled before the dial gave up
            self._indicators.all_off()
            self.reconnect(FailureType.DIAL_ERROR)
            return
        self._dialing = False

        if self._is_terminal():
            self._transport.disconnect(handle)
            return

        self._session.handle = handle

        # Disconnected was delivered while the dial was still in flight;
        # its reconnect was skipped, so run it now for this handle
        if self._session.status is ConnectionStatus.DISCONNECTED:
            log_event({
                "level": "WARNING",
                "event_type": "DIAL_RESULT_STALE",
                "attempt": attempt,
            })
            self.reconnect(FailureType.SESSION_LOST)
            return

        # Connected may still be queued behind the dial result
        self._session.set_status(ConnectionStatus.CONNECTED)
        self._indicators.set_on(Indicator.ONLINE)

        try:
            self._streams.open()
        except StreamOpenError as e:
            self._terminate(
                FatalDeviceError(EXIT_STREAM_OPEN_FAILED, f"Stream open error ({e})")
            )

    def reconnect(self, failure: FailureType = FailureType.SESSION_LOST) -> None:
        """
        Tear down the current session and schedule the next attempt.

        Gives up (exit status) once the lifetime attempt budget is spent.
        Never blocks: the backoff runs in its own task.
        """
        if self._is_terminal():
            return

        if self.retry_pending or self._dialing:
            log_event({
                "level": "DEBUG",
                "event_type": "RECONNECT_ALREADY_IN_PROGRESS",
                "failure": failure.value,
                "attempt": self._session.connect_attempts,
            })
            return

        self._teardown()
        self._session.set_status(ConnectionStatus.DISCONNECTED)

        decision = retry.decide(
            self._session.connect_attempts,
            delay_s=self._reconnect_delay_s,
            max_attempts=self._max_attempts,
        )

        if not decision.retry:
            self._terminate(
                FatalDeviceError(EXIT_RECONNECT_EXHAUSTED, "Unable to connect, giving up")
            )
            return

        log_event({
            "event_type": "RECONNECT_SCHEDULED",
            "message": f"Attempting again in {decision.delay_s:g} seconds...",
            "failure": failure.value,
            "attempt": decision.attempts,
            "delay_s": decision.delay_s,
        })
        self._schedule_connect(decision.delay_s)

    async def reset_stream(self) -> None:
        """
        Restart the audio stream in place (unrecoverable local stream error).

        A failed reopen is fatal, same as a failed first open.
        """
        if not self._session.is_connected:
            return
        try:
            await self._streams.reset()
        except StreamOpenError as e:
            self._terminate(
                FatalDeviceError(EXIT_STREAM_OPEN_FAILED, f"Stream open error ({e})")
            )

    async def shutdown(self) -> None:
        """
        Cancel the pending retry and release the session.

        Not part of the reconnect lifecycle; used on process shutdown.
        """
        task, self._retry_task = self._retry_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        self._teardown()
        self._indicators.all_off()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _schedule_connect(self, delay_s: float) -> None:
        """
        Launch the delayed connect as an independent task.

        The task handle is kept so shutdown() can cancel it.
        """
        async def _retry_task() -> None:
            try:
                await asyncio.sleep(delay_s)
            except asyncio.CancelledError:
                # Shutdown cancelled the backoff - this is normal
                return

            self._retry_task = None
            await self.connect()

        task = asyncio.create_task(_retry_task())
        task.add_done_callback(self._on_retry_done)
        self._retry_task = task

    def _on_retry_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return

        self.fail(error)

    def _teardown(self) -> None:
        """Destroy the stream, then drop the transport session if any."""
        self._streams.close()

        handle: Any = self._session.handle
        self._session.handle = None
        if handle is not None:
            self._transport.disconnect(handle)

    def _terminate(self, error: FatalDeviceError) -> None:
        self._teardown()
        self._session.set_status(ConnectionStatus.FAILED)
        self._indicators.all_off()

        log_event({
            "level": "ERROR",
            "event_type": "FATAL",
            "message": error.message,
            "exit_status": error.exit_status,
            "attempt": self._session.connect_attempts,
        })
        log_operator_message(error.message)

        exit_future = self._exit_future()
        if not exit_future.done():
            exit_future.set_result(error.exit_status)

    def _is_terminal(self) -> bool:
        return self._session.status is ConnectionStatus.FAILED

    def _exit_future(self) -> asyncio.Future[int]:
        if self._exit is None:
            self._exit = asyncio.get_running_loop().create_future()
        return self._exit
