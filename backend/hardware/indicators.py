"""
Indicator controller.

Pure projection layer over the physical outputs. Holds no state of its own;
the hardware output is the only record of what is lit. Output failures are
not caught.
"""

from __future__ import annotations

from orchestrator.enums.indicator import Indicator
from orchestrator.runtime_context import IndicatorOutputProtocol


class IndicatorController:
    """Drives the online / participants / transmitting outputs."""

    def __init__(self, output: IndicatorOutputProtocol) -> None:
        self._output = output

    def set_on(self, indicator: Indicator) -> None:
        self._output.set_output(indicator, True)

    def set_off(self, indicator: Indicator) -> None:
        self._output.set_output(indicator, False)

    def set(self, indicator: Indicator, on: bool) -> None:
        self._output.set_output(indicator, on)

    def all_off(self) -> None:
        for indicator in Indicator:
            self._output.set_output(indicator, False)
