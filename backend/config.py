"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No protocol constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any
from uuid import uuid4

from constants import (
    BUTTON_PIN,
    DEFAULT_SERVER_ADDRESS,
    DEFAULT_SERVER_PORT,
    ONLINE_LED_PIN,
    PARTICIPANTS_LED_PIN,
    RECONNECT_DELAY_S,
    TRANSMIT_LED_PIN,
)


_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return default if raw is None else int(raw)


def normalize_address(address: str) -> str:
    """Append the default Mumble port when the address has none."""
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit() or host.endswith(":"):
        return f"{address}:{DEFAULT_SERVER_PORT}"
    return address


@dataclass(frozen=True)
class TLSConfig:
    """Transport security policy handed to the transport on every dial."""

    certificate: str | None = None
    key_file: str | None = None
    insecure: bool = False


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the supervisor and adapter bootstrap code.
    """

    # ------------------------------------------------------------------
    # Server / identity
    # ------------------------------------------------------------------

    server_address: str
    username: str
    password: str
    channel: str | None
    tls: TLSConfig

    # ------------------------------------------------------------------
    # GPIO wiring
    # ------------------------------------------------------------------

    online_led_pin: int
    participants_led_pin: int
    transmit_led_pin: int
    button_pin: int

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    log_level: str
    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Reconnect
    # ------------------------------------------------------------------

    reconnect_delay_s: float = RECONNECT_DELAY_S

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable is malformed.
        """
        return AppConfig(
            server_address=normalize_address(
                os.environ.get("TALKIE_SERVER", DEFAULT_SERVER_ADDRESS)
            ),
            username=os.environ.get("TALKIE_USERNAME", f"talkie-{uuid4().hex[:6]}"),
            password=os.environ.get("TALKIE_PASSWORD", ""),
            channel=os.environ.get("TALKIE_CHANNEL") or None,
            tls=TLSConfig(
                certificate=os.environ.get("TALKIE_CERTIFICATE") or None,
                key_file=os.environ.get("TALKIE_KEY_FILE") or None,
                insecure=_env_flag("TALKIE_INSECURE", False),
            ),

            online_led_pin=_env_int("TALKIE_ONLINE_LED_PIN", ONLINE_LED_PIN),
            participants_led_pin=_env_int("TALKIE_PARTICIPANTS_LED_PIN", PARTICIPANTS_LED_PIN),
            transmit_led_pin=_env_int("TALKIE_TRANSMIT_LED_PIN", TRANSMIT_LED_PIN),
            button_pin=_env_int("TALKIE_BUTTON_PIN", BUTTON_PIN),

            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            enable_json_logs=_env_flag("ENABLE_JSON_LOGS", True),

            reconnect_delay_s=float(
                os.environ.get("TALKIE_RECONNECT_DELAY_S", RECONNECT_DELAY_S)
            ),
        )

    def with_overrides(self, **overrides: Any) -> AppConfig:
        """
        Return a copy with command line overrides applied.

        None values mean "flag not given" and are skipped. TLS fields
        (certificate, key_file, insecure) are folded into the nested TLSConfig.
        """
        given = {k: v for k, v in overrides.items() if v is not None}

        tls_fields = {
            k: given.pop(k) for k in ("certificate", "key_file", "insecure")
            if k in given
        }
        if tls_fields:
            given["tls"] = replace(self.tls, **tls_fields)

        if "server_address" in given:
            given["server_address"] = normalize_address(given["server_address"])

        return replace(self, **given)
