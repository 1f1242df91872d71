"""
Push-to-talk device entry point.

Responsibilities:
- Load .env and environment configuration, apply command line flags
- Configure logging
- Build the device on real hardware and run the supervisor
- Exit with the supervisor's status (1 on reconnect exhaustion or a
  fatal audio failure)
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from dotenv import load_dotenv

from config import AppConfig
from device.app import Device, build_hardware_device
from observability import logger
from observability.logger import log_event

EXIT_INTERRUPTED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="talkie",
        description="Push-to-talk Mumble client for a GPIO device.",
    )
    parser.add_argument("--server", dest="server_address",
                        help="Mumble server address, host[:port]")
    parser.add_argument("--username", help="username shown on the server")
    parser.add_argument("--password", help="server password")
    parser.add_argument("--insecure", action="store_true", default=None,
                        help="skip server certificate verification")
    parser.add_argument("--certificate", help="client certificate (PEM)")
    parser.add_argument("--key-file", dest="key_file", help="client key (PEM)")
    parser.add_argument("--channel", help="channel to join after connecting")
    return parser.parse_args(argv)


def load_config(argv: list[str] | None = None) -> AppConfig:
    args = parse_args(argv)
    return AppConfig.load_from_env().with_overrides(**vars(args))


async def run_device(device: Device) -> int:
    try:
        return await device.supervisor.run()
    finally:
        await device.supervisor.shutdown()


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    config = load_config(argv)
    logger.configure(level=config.log_level, json_output=config.enable_json_logs)

    device = build_hardware_device(config)
    log_event({
        "event_type": "DEVICE_STARTED",
        **device.session.log_context(),
        "username": config.username,
        "channel": config.channel,
    })

    try:
        status = asyncio.run(run_device(device))
    except KeyboardInterrupt:
        status = EXIT_INTERRUPTED
    finally:
        device.close()

    sys.exit(status)


if __name__ == "__main__":
    main()
