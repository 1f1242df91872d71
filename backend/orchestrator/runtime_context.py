"""
Collaborator boundaries for the device core.

Provides the supervisor, dispatcher and hardware components with the
narrow capabilities they need from the outside world (voice transport,
audio engine, GPIO, text sanitizer).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from config import TLSConfig
    from orchestrator.enums.indicator import Indicator
    from orchestrator.events import SessionEvent


EventSink = Callable[["SessionEvent"], None]


# ---------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------

@runtime_checkable
class TransportProtocol(Protocol):
    """
    Opaque voice-protocol transport.

    Contract:
    - dial() resolves to an opaque session handle or raises TransportError
    - Events are delivered to the registered sink in production order,
      never concurrently
    - A Connected event for the new handle is delivered before or
      shortly after dial() returns
    """

    def set_event_sink(self, sink: EventSink) -> None: ...

    async def dial(self, address: str, tls: TLSConfig) -> Any: ...

    def disconnect(self, handle: Any) -> None: ...

    def find_channel(self, handle: Any, name: str) -> Any | None: ...

    def move_self(self, handle: Any, channel: Any) -> None: ...

    def remote_address(self, handle: Any) -> str: ...


# ---------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------

@runtime_checkable
class AudioStreamProtocol(Protocol):
    """Live audio transport bound to one session handle."""

    def start_source(self) -> None: ...
    def stop_source(self) -> None: ...
    def destroy(self) -> None: ...


@runtime_checkable
class AudioBackendProtocol(Protocol):
    """Factory for audio streams. open_stream raises on failure."""

    def open_stream(self, handle: Any) -> AudioStreamProtocol: ...


# ---------------------------------------------------------------------
# Hardware I/O
# ---------------------------------------------------------------------

@runtime_checkable
class IndicatorOutputProtocol(Protocol):
    """
    Physical outputs. Errors propagate; a dead output is not recoverable.
    """

    def set_output(self, indicator: Indicator, on: bool) -> None: ...


# ---------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------

@runtime_checkable
class SanitizerProtocol(Protocol):
    """Turns untrusted markup into text safe for a terminal or log."""

    def sanitize(self, text: str) -> str: ...
