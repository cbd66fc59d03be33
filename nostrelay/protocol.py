"""Client messages of the relay protocol and the replies sent back."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from nostrelay.subscription import Subscription, SubscriptionParseError, parse_subscription

__all__ = [
    "ProtocolError",
    "ProtoParseError",
    "EventTooLargeError",
    "EventMessage",
    "CloseMessage",
    "parse_message",
    "notice_message",
    "ok_message",
    "auth_challenge_message",
    "event_message",
    "eose_message",
    "allowed_to_send",
]

_U64_MAX = 2**64 - 1
_EVENT_COMMANDS = frozenset({"EVENT", "AUTH"})
_DM_KIND = 4


class ProtocolError(ValueError):
    """Base class for errors in client messages."""


class ProtoParseError(ProtocolError):
    """The message is not a recognised protocol command."""

    def __init__(self, message: str = "could not parse command") -> None:
        super().__init__(message)


class EventTooLargeError(ProtocolError):
    """An ``EVENT`` message exceeds the configured byte limit."""

    def __init__(self, size: int) -> None:
        super().__init__(f"event exceeded max size ({size} bytes)")
        self.size = size


@dataclass
class EventMessage:
    """An ``EVENT`` or ``AUTH`` command carrying one event object."""

    command: str
    event: dict[str, Any] = field(default_factory=dict)

    @property
    def event_id(self) -> str:
        return self.event["id"]

    @property
    def is_auth(self) -> bool:
        return self.command == "AUTH"


@dataclass
class CloseMessage:
    """A ``CLOSE`` command naming a subscription."""

    id: str


Message = Union[EventMessage, Subscription, CloseMessage]


def _is_u64(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= _U64_MAX


def _is_event_object(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    if not all(isinstance(value.get(k), str) for k in ("id", "pubkey", "content", "sig")):
        return False
    if not _is_u64(value.get("created_at")) or not _is_u64(value.get("kind")):
        return False
    tags = value.get("tags")
    return isinstance(tags, list) and all(
        isinstance(tag, list) and all(isinstance(item, str) for item in tag) for tag in tags
    )


def _as_event_message(value: Any) -> EventMessage | None:
    if (
        isinstance(value, list)
        and len(value) == 2
        and value[0] in _EVENT_COMMANDS
        and _is_event_object(value[1])
    ):
        return EventMessage(command=value[0], event=value[1])
    return None


def _as_close_message(value: Any) -> CloseMessage | None:
    if (
        isinstance(value, list)
        and len(value) == 2
        and value[0] == "CLOSE"
        and isinstance(value[1], str)
    ):
        return CloseMessage(id=value[1])
    return None


def parse_message(text: str, max_bytes: int | None = None) -> Message:
    """Parse a text frame from a client into a protocol message.

    ``EVENT``/``AUTH`` messages longer than ``max_bytes`` (when it is set and
    positive) raise :class:`EventTooLargeError`; anything unrecognised raises
    :class:`ProtoParseError`.
    """
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProtoParseError() from exc

    event_msg = _as_event_message(value)
    if event_msg is not None:
        size = len(text.encode("utf-8"))
        if max_bytes is not None and max_bytes > 0 and size > max_bytes:
            raise EventTooLargeError(size)
        return event_msg

    try:
        return parse_subscription(value)
    except SubscriptionParseError:
        pass

    close_msg = _as_close_message(value)
    if close_msg is not None:
        return close_msg
    raise ProtoParseError()


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def notice_message(text: str) -> str:
    """A ``NOTICE`` reply."""
    return _dumps(["NOTICE", text])


def ok_message(event_id: str, accepted: bool, msg: str) -> str:
    """An ``OK`` reply reporting whether an event was accepted."""
    return _dumps(["OK", event_id, bool(accepted), msg])


def auth_challenge_message(challenge: str) -> str:
    """An ``AUTH`` challenge sent to a newly connected client."""
    return _dumps(["AUTH", challenge])


def event_message(sub_id: str, event_json: str) -> str:
    """An ``EVENT`` reply wrapping already serialized event JSON."""
    subesc = sub_id.replace('"', "")
    return f'["EVENT","{subesc}",{event_json}]'


def eose_message(sub_id: str) -> str:
    """The end-of-stored-events marker for a subscription."""
    subesc = sub_id.replace('"', "")
    return f'["EOSE","{subesc}"]'


def allowed_to_send(event_json: str, auth_pubkey: str | None, nip42_dms: bool) -> bool:
    """Whether an event may be sent to a client.

    With ``nip42_dms`` on, direct messages (kind 4) go only to an
    authenticated client that is their author or first ``p`` recipient.
    """
    if not nip42_dms:
        return True
    try:
        event = json.loads(event_json)
    except json.JSONDecodeError:
        return False
    if not _is_event_object(event):
        return False
    if event["kind"] != _DM_KIND:
        return True
    recipient = next(
        (tag[1] for tag in event["tags"] if len(tag) >= 2 and tag[0] == "p"),
        None,
    )
    if auth_pubkey is None or recipient is None:
        return False
    return recipient == auth_pubkey or event["pubkey"] == auth_pubkey