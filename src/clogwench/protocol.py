"""
Clogwench wire protocol - message kinds, payload schemas, JSON encoding

Wire format:
- One TCP stream, JSON text per message, no length prefix
- Each message is an object with exactly one tag key naming its kind:
  ``{"DrawRectCommand": {"app_id": ..., "window_id": ..., ...}}``
- Requests sent through ``send_and_wait`` carry a ``request_id`` inside the
  tagged payload; compositors that echo it get exact reply correlation
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import MalformedMessage
from .graphics import ColorLike, Rect, RectLike, as_color, as_rect

__all__ = [
    "MessageKind",
    "Message",
    "PUSH_EVENT_KINDS",
    "DB_REPLY_KINDS",
    "IMAGE_BUFFER_ID",
    "BoundsModel",
    "SizeModel",
    "AppConnectResponse",
    "OpenWindowResponse",
    "MouseEvent",
    "KeyEvent",
    "WindowResized",
    "CloseWindowResponse",
    "encode_message",
    "decode_document",
    "parse_message",
    "as_message",
    "generate_request_id",
    "app_connect",
    "open_window_command",
    "draw_rect_command",
    "draw_image_command",
    "db_query_request",
    "db_add_request",
    "db_update_request",
    "db_delete_request",
]

# Fixed buffer id the compositor expects on uploaded images
IMAGE_BUFFER_ID = "31586440-53ac-4a47-83dd-54c88e857fa5"

REQUEST_ID_FIELD = "request_id"


class MessageKind(str, Enum):
    """Every wire tag the client knows about, plus ``UNKNOWN``."""

    # Outbound
    APP_CONNECT = "AppConnect"
    OPEN_WINDOW_COMMAND = "OpenWindowCommand"
    DRAW_RECT_COMMAND = "DrawRectCommand"
    DRAW_IMAGE_COMMAND = "DrawImageCommand"
    DB_QUERY_REQUEST = "DBQueryRequest"
    DB_ADD_REQUEST = "DBAddRequest"
    DB_UPDATE_REQUEST = "DBUpdateRequest"
    DB_DELETE_REQUEST = "DBDeleteRequest"

    # Inbound replies
    APP_CONNECT_RESPONSE = "AppConnectResponse"
    OPEN_WINDOW_RESPONSE = "OpenWindowResponse"
    CLOSE_WINDOW_RESPONSE = "CloseWindowResponse"
    DB_QUERY_RESPONSE = "DBQueryResponse"
    DB_ADD_RESPONSE = "DBAddResponse"
    DB_UPDATE_RESPONSE = "DBUpdateResponse"
    DB_DELETE_RESPONSE = "DBDeleteResponse"

    # Inbound push events (window scoped)
    MOUSE_DOWN = "MouseDown"
    MOUSE_UP = "MouseUp"
    MOUSE_MOVE = "MouseMove"
    KEY_DOWN = "KeyDown"
    WINDOW_RESIZED = "WindowResized"

    UNKNOWN = "Unknown"


_TAGS = {k.value: k for k in MessageKind if k is not MessageKind.UNKNOWN}

PUSH_EVENT_KINDS = frozenset({
    MessageKind.MOUSE_DOWN,
    MessageKind.MOUSE_UP,
    MessageKind.MOUSE_MOVE,
    MessageKind.KEY_DOWN,
    MessageKind.WINDOW_RESIZED,
})

DB_REPLY_KINDS = frozenset({
    MessageKind.DB_QUERY_RESPONSE,
    MessageKind.DB_ADD_RESPONSE,
    MessageKind.DB_UPDATE_RESPONSE,
    MessageKind.DB_DELETE_RESPONSE,
})


def generate_request_id() -> str:
    """Generate unique request ID."""
    return uuid.uuid4().hex[:12]


# ── Payload schemas (inbound) ───────────────────────────────────


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class BoundsModel(_Payload):
    x: float = 0
    y: float = 0
    w: float = 0
    h: float = 0

    def to_rect(self) -> Rect:
        return Rect(self.x, self.y, self.w, self.h).floored()


class SizeModel(_Payload):
    w: int
    h: int


class AppConnectResponse(_Payload):
    app_id: str


class OpenWindowResponse(_Payload):
    app_id: Optional[str] = None
    window_id: str
    window_type: str = "plain"
    bounds: BoundsModel


class MouseEvent(_Payload):
    """Payload of MouseDown / MouseMove / MouseUp."""

    window_id: str
    x: int
    y: int
    button: Optional[str] = None
    original_timestamp: Optional[int] = None


class KeyEvent(_Payload):
    """Payload of KeyDown."""

    window_id: str
    key: Optional[str] = ""
    code: Optional[str] = ""
    original_timestamp: Optional[int] = None


class WindowResized(_Payload):
    window_id: str
    size: SizeModel


class CloseWindowResponse(_Payload):
    window_id: Optional[str] = None


_PAYLOAD_MODELS = {
    MessageKind.APP_CONNECT_RESPONSE: AppConnectResponse,
    MessageKind.OPEN_WINDOW_RESPONSE: OpenWindowResponse,
    MessageKind.MOUSE_DOWN: MouseEvent,
    MessageKind.MOUSE_UP: MouseEvent,
    MessageKind.MOUSE_MOVE: MouseEvent,
    MessageKind.KEY_DOWN: KeyEvent,
    MessageKind.WINDOW_RESIZED: WindowResized,
    MessageKind.CLOSE_WINDOW_RESPONSE: CloseWindowResponse,
}


# ── Envelope ────────────────────────────────────────────────────


@dataclass
class Message:
    """One tagged protocol message.

    ``raw`` is the JSON object exactly as decoded (inbound only).
    ``payload`` is the value under the tag key.
    """

    kind: MessageKind
    payload: Dict[str, Any] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None

    @property
    def window_id(self) -> Optional[str]:
        value = self.payload.get("window_id") if isinstance(self.payload, dict) else None
        return str(value) if value is not None else None

    @property
    def is_push_event(self) -> bool:
        return self.kind in PUSH_EVENT_KINDS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the tagged JSON object."""
        if self.kind is MessageKind.UNKNOWN:
            return dict(self.raw or {})
        payload = dict(self.payload)
        if self.request_id is not None:
            payload[REQUEST_ID_FIELD] = self.request_id
        return {self.kind.value: payload}

    def parse_payload(self) -> BaseModel:
        """Validate the payload against its schema.

        Raises MalformedMessage if the payload does not fit, or if the kind
        has no inbound schema.
        """
        model = _PAYLOAD_MODELS.get(self.kind)
        if model is None:
            raise MalformedMessage(f"no payload schema for {self.kind.value}", raw=self.raw)
        try:
            return model.model_validate(self.payload)
        except ValidationError as e:
            raise MalformedMessage(f"bad {self.kind.value} payload: {e.error_count()} error(s)", raw=self.raw) from e

    def __repr__(self) -> str:
        rid = f", request_id={self.request_id!r}" if self.request_id else ""
        return f"Message({self.kind.value}{rid})"


def encode_message(msg: Union[Message, Mapping[str, Any]], newline: bool = False) -> bytes:
    """
    Encode message to compact JSON bytes.

    ``newline=True`` appends ``\\n`` for JSONL framing.
    """
    data = msg.to_dict() if isinstance(msg, Message) else dict(msg)
    json_str = json.dumps(data, ensure_ascii=False, separators=(',', ':'), allow_nan=False)
    if newline:
        json_str += '\n'
    return json_str.encode('utf-8')


def decode_document(data: Union[bytes, str]) -> Any:
    """
    Decode one JSON document.

    Raises MalformedMessage on bad UTF-8, bad JSON or empty input.
    """
    try:
        text = data.decode('utf-8') if isinstance(data, (bytes, bytearray)) else data
    except UnicodeDecodeError as e:
        raise MalformedMessage(f"invalid UTF-8: {e}", raw=bytes(data[:200])) from e
    text = text.strip()
    if not text:
        raise MalformedMessage("empty document")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedMessage(f"invalid JSON: {e}", raw=text[:200]) from e


def parse_message(data: Any) -> Message:
    """
    Classify a decoded JSON document.

    Documents with exactly one recognised tag key become that kind (other
    keys are ignored); everything else is ``MessageKind.UNKNOWN``.
    """
    if not isinstance(data, dict):
        return Message(kind=MessageKind.UNKNOWN, raw={"value": data})

    tags = [key for key in data if key in _TAGS]
    if len(tags) != 1:
        return Message(kind=MessageKind.UNKNOWN, raw=data)

    kind = _TAGS[tags[0]]
    body = data[tags[0]]
    payload = body if isinstance(body, dict) else {}
    request_id = payload.get(REQUEST_ID_FIELD)
    return Message(
        kind=kind,
        payload=payload,
        raw=data,
        request_id=str(request_id) if request_id is not None else None,
    )


def as_message(obj: Union[Message, Mapping[str, Any]]) -> Message:
    """Accept a Message or a raw tagged dict (as external callers build them)."""
    if isinstance(obj, Message):
        return obj
    msg = parse_message(dict(obj))
    if msg.kind is MessageKind.UNKNOWN:
        return msg
    msg.payload = {k: v for k, v in msg.payload.items() if k != REQUEST_ID_FIELD}
    return msg


def _outbound(kind: MessageKind, payload: Dict[str, Any]) -> Message:
    return Message(kind=kind, payload=payload)


# Convenience functions for creating messages
def app_connect() -> Message:
    """Create the connect handshake message."""
    return _outbound(MessageKind.APP_CONNECT, {"HelloApp": {}})


def open_window_command(
    bounds: RectLike,
    window_type: str = "plain",
    window_title: str = "some-window",
) -> Message:
    """Create an OpenWindowCommand for the given bounds."""
    return _outbound(MessageKind.OPEN_WINDOW_COMMAND, {
        "window_type": window_type,
        "window_title": window_title,
        "bounds": as_rect(bounds).floored().to_dict(),
    })


def draw_rect_command(app_id: Optional[str], window_id: str, rect: RectLike, color: ColorLike) -> Message:
    """Create a DrawRectCommand; the rect is floored."""
    return _outbound(MessageKind.DRAW_RECT_COMMAND, {
        "app_id": app_id,
        "window_id": window_id,
        "rect": as_rect(rect).floored().to_dict(),
        "color": as_color(color).to_dict(),
    })


def draw_image_command(app_id: Optional[str], window_id: str, rect: RectLike, image: Any) -> Message:
    """Create a DrawImageCommand with the image's ARGB bytes inlined."""
    return _outbound(MessageKind.DRAW_IMAGE_COMMAND, {
        "app_id": app_id,
        "window_id": window_id,
        "rect": as_rect(rect).floored().to_dict(),
        "buffer": {
            "layout": {"ARGB": []},
            "id": IMAGE_BUFFER_ID,
            "width": image.width,
            "height": image.height,
            "data": image.data,
        },
    })


def db_query_request(app_id: Optional[str], query: Any) -> Message:
    return _outbound(MessageKind.DB_QUERY_REQUEST, {"app_id": app_id, "query": query})


def db_add_request(app_id: Optional[str], obj: Mapping[str, Any]) -> Message:
    return _outbound(MessageKind.DB_ADD_REQUEST, {"app_id": app_id, "object": dict(obj)})


def db_update_request(app_id: Optional[str], obj: Mapping[str, Any]) -> Message:
    return _outbound(MessageKind.DB_UPDATE_REQUEST, {"app_id": app_id, "object": dict(obj)})


def db_delete_request(app_id: Optional[str], obj: Mapping[str, Any]) -> Message:
    return _outbound(MessageKind.DB_DELETE_REQUEST, {"app_id": app_id, "object": dict(obj)})
