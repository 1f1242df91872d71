"""
Mumble transport adapter (pymumble).

Implements TransportProtocol on top of pymumble_py3.

Role in the system:
- dial(): start a pymumble client thread and wait until the server has
  synchronized (or rejected us)
- Translate pymumble callbacks into SessionEvent dataclasses
- Deliver events into the asyncio loop with call_soon_threadsafe so the
  dispatcher sees them serially, in production order
- Channel lookup / move and disconnect

Architectural constraints:
- No retries here (pymumble's own reconnect is disabled)
- No state decisions; only translation
- A disconnect we requested ourselves is not reported as an event
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from pymumble_py3 import Mumble
from pymumble_py3.constants import (
    PYMUMBLE_CLBK_ACLRECEIVED,
    PYMUMBLE_CLBK_CHANNELCREATED,
    PYMUMBLE_CLBK_CHANNELREMOVED,
    PYMUMBLE_CLBK_CHANNELUPDATED,
    PYMUMBLE_CLBK_CONNECTED,
    PYMUMBLE_CLBK_CONTEXTACTIONRECEIVED,
    PYMUMBLE_CLBK_DISCONNECTED,
    PYMUMBLE_CLBK_PERMISSIONDENIED,
    PYMUMBLE_CLBK_TEXTMESSAGERECEIVED,
    PYMUMBLE_CLBK_USERCREATED,
    PYMUMBLE_CLBK_USERREMOVED,
    PYMUMBLE_CLBK_USERUPDATED,
    PYMUMBLE_CONN_STATE_CONNECTED,
)
from pymumble_py3.errors import UnknownChannelError

from config import TLSConfig
from constants import DIAL_TIMEOUT_S
from observability.logger import log_event
from orchestrator.enums.change_types import (
    DisconnectType,
    PermissionDeniedType,
    UserChangeType,
)
from orchestrator.errors import TransportError
from orchestrator.events import (
    ACL,
    ChannelChange,
    Connected,
    ContextActionChange,
    Disconnected,
    PermissionDenied,
    SessionEvent,
    SessionEventType,
    TextMessage,
    UserChange,
)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


# pymumble "actions" keys, checked in this order
_USER_ACTION_TYPES: tuple[tuple[tuple[str, ...], UserChangeType], ...] = (
    (("channel_id",), UserChangeType.CHANNEL),
    (("name",), UserChangeType.NAME),
    (("mute", "deaf", "suppress", "self_mute", "self_deaf"), UserChangeType.AUDIO),
    (("priority_speaker",), UserChangeType.PRIORITY_SPEAKER),
    (("recording",), UserChangeType.RECORDING),
)


def classify_user_update(actions: dict[str, Any]) -> UserChangeType:
    """Map a pymumble user-update action dict onto a UserChangeType."""
    if "user_id" in actions:
        user_id = actions["user_id"]
        return UserChangeType.REGISTERED if user_id is not None and user_id >= 0 \
            else UserChangeType.UNREGISTERED

    for keys, change_type in _USER_ACTION_TYPES:
        if any(k in actions for k in keys):
            return change_type

    return UserChangeType.STATS


@dataclass
class MumbleSession:
    """Opaque session handle handed to the core and the audio backend."""
    mumble: Mumble
    host: str
    port: int
    closing: bool = False
    was_connected: bool = False
    users_by_session: dict[int, str] = field(default_factory=dict)


def split_address(address: str) -> tuple[str, int]:
    host, _, port = address.rpartition(":")
    return host.strip("[]"), int(port)


class MumbleTransport:
    """
    pymumble-backed transport.

    One MumbleSession per successful dial. Events for a session that is
    closing are dropped.
    """

    def __init__(
        self,
        *,
        username: str,
        password: str = "",
        tokens: list[str] | None = None,
        dial_timeout_s: float = DIAL_TIMEOUT_S,
    ) -> None:
        self._username = username
        self._password = password
        self._tokens = tokens or []
        self._dial_timeout_s = dial_timeout_s
        self._sink: Callable[[SessionEvent], None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def set_event_sink(self, sink: Callable[[SessionEvent], None]) -> None:
        self._sink = sink

    # ------------------------------------------------------------------
    # Dial / disconnect
    # ------------------------------------------------------------------

    async def dial(self, address: str, tls: TLSConfig) -> MumbleSession:
        self._loop = asyncio.get_running_loop()
        host, port = split_address(address)

        if tls.insecure:
            log_event({
                "level": "DEBUG",
                "event_type": "TLS_INSECURE",
                "message": "server certificate is not verified",
            })

        mumble = Mumble(
            host,
            self._username,
            port=port,
            password=self._password,
            certfile=tls.certificate,
            keyfile=tls.key_file,
            reconnect=False,
            tokens=self._tokens,
        )
        session = MumbleSession(mumble=mumble, host=host, port=port)
        self._register_callbacks(session)

        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._start_blocking, session),
                timeout=self._dial_timeout_s,
            )
        except asyncio.TimeoutError as e:
            self.disconnect(session)
            raise TransportError(f"timed out after {self._dial_timeout_s:g}s") from e
        except OSError as e:
            self.disconnect(session)
            raise TransportError(str(e)) from e

        if mumble.connected != PYMUMBLE_CONN_STATE_CONNECTED:
            self.disconnect(session)
            raise TransportError("connection rejected by server")

        return session

    @staticmethod
    def _start_blocking(session: MumbleSession) -> None:
        session.mumble.start()
        session.mumble.is_ready()

    def disconnect(self, handle: MumbleSession) -> None:
        handle.closing = True
        handle.mumble.stop()

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def find_channel(self, handle: MumbleSession, name: str) -> Any | None:
        try:
            return handle.mumble.channels.find_by_name(name)
        except UnknownChannelError:
            return None

    def move_self(self, handle: MumbleSession, channel: Any) -> None:
        channel.move_in()

    def remote_address(self, handle: MumbleSession) -> str:
        return f"{handle.host}:{handle.port}"

    # ------------------------------------------------------------------
    # Callback translation (runs on the pymumble thread)
    # ------------------------------------------------------------------

    def _register_callbacks(self, session: MumbleSession) -> None:
        callbacks = session.mumble.callbacks

        def on_connected(*_: Any) -> None:
            session.was_connected = True
            self._emit(session, Connected(
                event_type=SessionEventType.CONNECTED,
                ts_ms=_now_ms(),
                handle=session,
                welcome_message=getattr(session.mumble, "welcome_message", None),
                # Users synced before ServerSync were counted with myself unset
                local_channel_user_count=self._local_channel_user_count(session),
            ))

        def on_disconnected(*_: Any) -> None:
            if not session.was_connected:
                # dial() reports this failure itself
                return
            self._emit(session, Disconnected(
                event_type=SessionEventType.DISCONNECTED,
                ts_ms=_now_ms(),
                disconnect_type=DisconnectType.ERROR,
            ))

        def on_user_created(user: Any, *_: Any) -> None:
            self._emit_user_change(session, user, UserChangeType.CONNECTED)

        def on_user_updated(user: Any, actions: dict[str, Any], *_: Any) -> None:
            self._emit_user_change(session, user, classify_user_update(actions))

        def on_user_removed(user: Any, *_: Any) -> None:
            self._emit_user_change(session, user, UserChangeType.DISCONNECTED)

        def on_text(message: Any, *_: Any) -> None:
            actor = getattr(message, "actor", None)
            sender = session.users_by_session.get(actor, "server")
            self._emit(session, TextMessage(
                event_type=SessionEventType.TEXT_MESSAGE,
                ts_ms=_now_ms(),
                sender_name=sender,
                message=getattr(message, "message", ""),
            ))

        def on_permission_denied(message: Any, *_: Any) -> None:
            raw_type = getattr(message, "type", 0)
            try:
                denied_type = PermissionDeniedType(raw_type)
            except ValueError:
                denied_type = PermissionDeniedType.OTHER
            self._emit(session, PermissionDenied(
                event_type=SessionEventType.PERMISSION_DENIED,
                ts_ms=_now_ms(),
                denied_type=denied_type,
                detail=getattr(message, "reason", None),
            ))

        def on_channel(channel: Any, *_: Any) -> None:
            self._emit(session, ChannelChange(
                event_type=SessionEventType.CHANNEL_CHANGE,
                ts_ms=_now_ms(),
                channel_name=channel.get("name") if isinstance(channel, dict) else None,
            ))

        def on_acl(*_: Any) -> None:
            self._emit(session, ACL(event_type=SessionEventType.ACL, ts_ms=_now_ms()))

        def on_context_action(*_: Any) -> None:
            self._emit(session, ContextActionChange(
                event_type=SessionEventType.CONTEXT_ACTION_CHANGE,
                ts_ms=_now_ms(),
            ))

        callbacks.set_callback(PYMUMBLE_CLBK_CONNECTED, on_connected)
        callbacks.set_callback(PYMUMBLE_CLBK_DISCONNECTED, on_disconnected)
        callbacks.set_callback(PYMUMBLE_CLBK_USERCREATED, on_user_created)
        callbacks.set_callback(PYMUMBLE_CLBK_USERUPDATED, on_user_updated)
        callbacks.set_callback(PYMUMBLE_CLBK_USERREMOVED, on_user_removed)
        callbacks.set_callback(PYMUMBLE_CLBK_TEXTMESSAGERECEIVED, on_text)
        callbacks.set_callback(PYMUMBLE_CLBK_PERMISSIONDENIED, on_permission_denied)
        callbacks.set_callback(PYMUMBLE_CLBK_CHANNELCREATED, on_channel)
        callbacks.set_callback(PYMUMBLE_CLBK_CHANNELUPDATED, on_channel)
        callbacks.set_callback(PYMUMBLE_CLBK_CHANNELREMOVED, on_channel)
        callbacks.set_callback(PYMUMBLE_CLBK_ACLRECEIVED, on_acl)
        callbacks.set_callback(PYMUMBLE_CLBK_CONTEXTACTIONRECEIVED, on_context_action)

    def _emit_user_change(
        self,
        session: MumbleSession,
        user: Any,
        change_type: UserChangeType,
    ) -> None:
        name = user.get("name", "?")
        user_session = user.get("session")
        if user_session is not None:
            if change_type is UserChangeType.DISCONNECTED:
                session.users_by_session.pop(user_session, None)
            else:
                session.users_by_session[user_session] = name

        self._emit(session, UserChange(
            event_type=SessionEventType.USER_CHANGE,
            ts_ms=_now_ms(),
            user_name=name,
            change_type=change_type,
            local_channel_user_count=self._local_channel_user_count(session),
        ))

    @staticmethod
    def _local_channel_user_count(session: MumbleSession) -> int:
        myself = session.mumble.users.myself
        if myself is None:
            return 0
        channel = session.mumble.channels[myself["channel_id"]]
        return len(channel.get_users())

    def _emit(self, session: MumbleSession, event: SessionEvent) -> None:
        if session.closing or self._sink is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._sink, event)
