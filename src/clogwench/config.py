"""Client configuration - defaults, environment overrides, JSON file.

Resolution order (last wins): dataclass defaults → ``client.json`` in the
config dir (``CLOGWENCH_CONFIG_DIR``, default ``~/.config/clogwench``) →
``CLOGWENCH_*`` environment variables → explicit keyword arguments.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

__all__ = [
    "ClientConfig",
    "load_client_config",
    "save_client_config",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_CONFIG_PATH",
]

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3333

DEFAULT_CONFIG_DIR = Path(os.getenv("CLOGWENCH_CONFIG_DIR", "~/.config/clogwench")).expanduser()
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "client.json"

FRAMING_CHOICES = ("stream", "jsonl")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# env var → field name
_ENV_FIELDS = {
    "CLOGWENCH_HOST": "host",
    "CLOGWENCH_PORT": "port",
    "CLOGWENCH_CONNECT_TIMEOUT": "connect_timeout",
    "CLOGWENCH_REQUEST_TIMEOUT": "request_timeout",
    "CLOGWENCH_FRAMING": "framing",
    "CLOGWENCH_MAX_MESSAGE_BYTES": "max_message_bytes",
    "CLOGWENCH_LOG_LEVEL": "log_level",
    "CLOGWENCH_CORRELATION_IDS": "correlation_ids",
    "CLOGWENCH_TRACE": "trace_path",
}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"not a boolean: {value!r}")
    return bool(value)


def _parse_optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in ("", "none", "off", "0"):
        return None
    parsed = float(value)
    return parsed if parsed > 0 else None


@dataclass
class ClientConfig:
    """Connection settings for a :class:`~clogwench.client.Client`.

    Attributes
    ----------
    host, port:
        Compositor endpoint (``127.0.0.1:3333`` by default).
    connect_timeout:
        Seconds allowed for the TCP handshake.
    request_timeout:
        Default seconds ``send_and_wait`` waits for a reply. ``None`` waits
        forever.
    framing:
        ``"stream"`` - delimiter-free concatenated JSON (compositor default).
        ``"jsonl"`` - one JSON document per line.
    max_message_bytes:
        Upper bound for one buffered inbound document.
    log_level:
        Level used by :func:`clogwench.configure_logging`.
    correlation_ids:
        Embed a ``request_id`` in correlated requests. Turn off for
        compositors that reject unknown payload fields; replies are then
        matched oldest-first.
    trace_path:
        When set, every sent and received message is appended to this
        JSONL file (pixel data elided).
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    connect_timeout: float = 5.0
    request_timeout: Optional[float] = None
    framing: str = "stream"
    max_message_bytes: int = 64 * 1024 * 1024
    log_level: str = "WARNING"
    correlation_ids: bool = True
    trace_path: Optional[str] = None

    def __post_init__(self) -> None:
        self.correlation_ids = _parse_bool(self.correlation_ids)
        self.port = int(self.port)
        self.connect_timeout = float(self.connect_timeout)
        self.request_timeout = _parse_optional_float(self.request_timeout)
        self.max_message_bytes = int(self.max_message_bytes)
        self.framing = str(self.framing).strip().lower()
        self.log_level = str(self.log_level).strip().upper()
        if not 0 < self.port < 65536:
            raise ValueError(f"port out of range: {self.port}")
        if self.connect_timeout <= 0:
            raise ValueError(f"connect_timeout must be positive: {self.connect_timeout}")
        if self.framing not in FRAMING_CHOICES:
            raise ValueError(f"framing must be one of {FRAMING_CHOICES}: {self.framing!r}")
        if self.max_message_bytes <= 0:
            raise ValueError(f"max_message_bytes must be positive: {self.max_message_bytes}")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}: {self.log_level!r}")

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary (JSON-friendly)."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClientConfig":
        """Deserialize from dictionary; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def with_overrides(self, **overrides: Any) -> "ClientConfig":
        """Copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, base: Optional["ClientConfig"] = None) -> "ClientConfig":
        """Build a config from ``CLOGWENCH_*`` environment variables.

        Invalid values are logged and skipped; the base/default value stays.
        """
        env = os.environ if environ is None else environ
        cfg = base if base is not None else cls()
        for var, name in _ENV_FIELDS.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            try:
                cfg = replace(cfg, **{name: raw})
            except (TypeError, ValueError) as exc:
                logger.warning("Ignoring %s=%r: %s", var, raw, exc)
        return cfg


def load_client_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ClientConfig:
    """Load config from disk, then apply environment overrides.

    A missing file yields defaults. On parse error, logs a warning and
    falls back to defaults.
    """
    p = Path(path) if path else DEFAULT_CONFIG_PATH
    cfg = ClientConfig()
    if p.is_file():
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
            cfg = ClientConfig.from_dict(data)
            logger.debug("Client config loaded from %s (%s)", p, cfg.address)
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Client config parse error at %s: %s - using defaults", p, exc)
            cfg = ClientConfig()
    else:
        logger.debug("Client config not found at %s - using defaults", p)
    return ClientConfig.from_env(environ, base=cfg)


def save_client_config(config: ClientConfig, path: Optional[Path] = None) -> bool:
    """Save config to disk. Returns True on success, False on error."""
    p = Path(path) if path else DEFAULT_CONFIG_PATH
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(
            json.dumps(config.to_dict(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        logger.debug("Client config saved to %s", p)
        return True
    except OSError as exc:
        logger.warning("Client config save failed at %s: %s", p, exc)
        return False
