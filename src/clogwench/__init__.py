"""
Clogwench client - thin-client library for the clogwench compositor

Transport: TCP stream + concatenated JSON (one tag key per message)
"""

from .client import Client
from .config import ClientConfig, load_client_config, save_client_config
from .connection import Connection, ConnectionState
from .correlator import Correlator
from .dispatcher import WindowRegistry
from .errors import (
    ClogwenchError,
    ConnectError,
    ConnectionClosed,
    InvalidRect,
    MalformedMessage,
    RequestTimeout,
    UnexpectedReply,
    UnknownWindow,
    WindowClosed,
)
from .framing import Framing
from .graphics import (
    BLACK,
    BLUE,
    GREEN,
    MAGENTA,
    RED,
    TRANSPARENT,
    WHITE,
    Color,
    Rect,
    Size,
    parse_hex_color,
)
from .logs.logger import JsonlTraceLogger, configure_logging
from .pixel_buffer import PixelBuffer
from .protocol import KeyEvent, Message, MessageKind, MouseEvent
from .window import DrawMode, EventKind, Window, WindowState

__version__ = "0.3.0"

__all__ = [
    "Client",
    "ClientConfig",
    "load_client_config",
    "save_client_config",
    "Connection",
    "ConnectionState",
    "Correlator",
    "WindowRegistry",
    "ClogwenchError",
    "ConnectError",
    "ConnectionClosed",
    "InvalidRect",
    "MalformedMessage",
    "RequestTimeout",
    "UnexpectedReply",
    "UnknownWindow",
    "WindowClosed",
    "Framing",
    "Color",
    "Rect",
    "Size",
    "parse_hex_color",
    "BLACK",
    "BLUE",
    "GREEN",
    "MAGENTA",
    "RED",
    "TRANSPARENT",
    "WHITE",
    "JsonlTraceLogger",
    "configure_logging",
    "PixelBuffer",
    "KeyEvent",
    "Message",
    "MessageKind",
    "MouseEvent",
    "DrawMode",
    "EventKind",
    "Window",
    "WindowState",
]
