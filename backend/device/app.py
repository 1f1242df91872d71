"""
Device factory.

Responsibilities:
- Wire the core (session, stream manager, indicators, gate, supervisor)
  to a set of collaborators
- Keep construction in one place so tests and the entry point build the
  device the same way

The concrete hardware/network adapters are built by build_hardware_device();
build_device() takes any objects satisfying the collaborator Protocols.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from audio.stream_manager import AudioStreamManager
from config import AppConfig
from hardware.indicators import IndicatorController
from hardware.transmit_gate import TransmitGate
from orchestrator.runtime_context import (
    AudioBackendProtocol,
    IndicatorOutputProtocol,
    SanitizerProtocol,
    TransportProtocol,
)
from orchestrator.supervisor import ConnectionSupervisor
from session.device_session import DeviceSession


@dataclass
class Device:
    """Assembled device: the pieces main() needs to run and shut down."""
    session: DeviceSession
    supervisor: ConnectionSupervisor
    gate: TransmitGate
    streams: AudioStreamManager
    indicators: IndicatorController
    closers: tuple[Callable[[], None], ...] = ()

    def close(self) -> None:
        """Release hardware resources, last-built first."""
        for close in reversed(self.closers):
            close()


def build_device(
    *,
    config: AppConfig,
    transport: TransportProtocol,
    audio: AudioBackendProtocol,
    output: IndicatorOutputProtocol,
    sanitizer: SanitizerProtocol,
    closers: tuple[Callable[[], None], ...] = (),
) -> Device:
    """Assemble the core around the given collaborators."""
    session = DeviceSession(address=config.server_address)
    indicators = IndicatorController(output)
    streams = AudioStreamManager(session=session, backend=audio)

    supervisor = ConnectionSupervisor(
        session=session,
        transport=transport,
        streams=streams,
        indicators=indicators,
        sanitizer=sanitizer,
        tls=config.tls,
        channel_name=config.channel,
        reconnect_delay_s=config.reconnect_delay_s,
    )
    gate = TransmitGate(session=session, streams=streams, indicators=indicators)

    return Device(
        session=session,
        supervisor=supervisor,
        gate=gate,
        streams=streams,
        indicators=indicators,
        closers=closers,
    )


def build_hardware_device(config: AppConfig) -> Device:
    """
    Build the device on real hardware: pymumble, PyAudio, gpiozero, bs4.

    Adapters are imported here so the core stays importable on machines
    without audio or GPIO libraries.
    """
    # pylint: disable=import-outside-toplevel
    from adapters.audio.pyaudio_stream import PyAudioBackend
    from adapters.gpio.gpiozero_io import GpioZeroIO
    from adapters.text.sanitize import HtmlSanitizer
    from adapters.transport.mumble import MumbleTransport

    io = GpioZeroIO(
        online_led_pin=config.online_led_pin,
        participants_led_pin=config.participants_led_pin,
        transmit_led_pin=config.transmit_led_pin,
        button_pin=config.button_pin,
    )
    audio = PyAudioBackend()
    transport = MumbleTransport(username=config.username, password=config.password)

    device = build_device(
        config=config,
        transport=transport,
        audio=audio,
        output=io,
        sanitizer=HtmlSanitizer(),
        closers=(io.close, audio.close),
    )
    io.bind_transmit(device.gate, device.supervisor.fail_threadsafe)
    return device

