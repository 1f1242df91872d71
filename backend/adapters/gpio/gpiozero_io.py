"""
gpiozero hardware I/O.

- Three LEDs, one per Indicator (IndicatorOutputProtocol)
- One push-to-talk button, pulled up and debounced; its edges drive the
  transmit gate from gpiozero's own listener thread
"""

from __future__ import annotations

from typing import Callable

from gpiozero import LED, Button

from constants import BUTTON_BOUNCE_S
from hardware.transmit_gate import TransmitGate
from observability.logger import log_event
from orchestrator.enums.indicator import Indicator


def _reporting(
    action: Callable[[], None],
    on_error: Callable[[BaseException], None],
) -> Callable[[], None]:
    def handler() -> None:
        try:
            action()
        except Exception as e:
            on_error(e)
    return handler


class GpioZeroIO:
    """Physical outputs and the transmit button."""

    def __init__(
        self,
        *,
        online_led_pin: int,
        participants_led_pin: int,
        transmit_led_pin: int,
        button_pin: int,
    ) -> None:
        self._leds: dict[Indicator, LED] = {
            Indicator.ONLINE: LED(online_led_pin),
            Indicator.PARTICIPANTS: LED(participants_led_pin),
            Indicator.TRANSMITTING: LED(transmit_led_pin),
        }
        self._button = Button(button_pin, pull_up=True, bounce_time=BUTTON_BOUNCE_S)

        log_event({
            "level": "DEBUG",
            "event_type": "GPIO_READY",
            "leds": {
                Indicator.ONLINE.value: online_led_pin,
                Indicator.PARTICIPANTS.value: participants_led_pin,
                Indicator.TRANSMITTING.value: transmit_led_pin,
            },
            "button": button_pin,
        })

    def set_output(self, indicator: Indicator, on: bool) -> None:
        led = self._leds[indicator]
        if on:
            led.on()
        else:
            led.off()

    def bind_transmit(
        self,
        gate: TransmitGate,
        on_error: Callable[[BaseException], None],
    ) -> None:
        """
        Route button edges to the gate (pressed = transmit).

        Handlers run on gpiozero's listener thread, where an exception would
        only be printed; they are handed to `on_error` instead.
        """
        self._button.when_pressed = _reporting(gate.start, on_error)
        self._button.when_released = _reporting(gate.stop, on_error)

    def close(self) -> None:
        self._button.close()
        for led in self._leds.values():
            led.close()
