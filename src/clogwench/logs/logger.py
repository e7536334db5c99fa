from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from clogwench.config import ClientConfig
from clogwench.protocol import Message

# Keys never written to the trace (pixel payloads are huge)
_ELIDED_KEYS = ("data",)


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a basic stderr handler to the ``clogwench`` logger tree.

    ``level`` defaults to ``CLOGWENCH_LOG_LEVEL`` (see ClientConfig).
    """
    if level is None:
        level = ClientConfig.from_env().log_level
    root = logging.getLogger("clogwench")
    root.setLevel(getattr(logging, str(level).upper(), logging.WARNING))
    if not any(getattr(h, "_clogwench", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "[%(asctime)s] [%(levelname)s] [clogwench] %(message)s",
            datefmt="%H:%M:%S",
        ))
        handler._clogwench = True  # type: ignore[attr-defined]
        root.addHandler(handler)


def _elide(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: (f"<{len(v)} items>" if k in _ELIDED_KEYS and isinstance(v, list) else _elide(v))
            for k, v in value.items()
        }
    return value


@dataclass
class JsonlTraceLogger:
    """Append-only JSONL trace of wire traffic, one record per message."""

    path: str

    def log(self, direction: str, msg: Message, size: Optional[int] = None, **fields: Any) -> None:
        record: dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            "dir": direction,
            "kind": msg.kind.value,
        }
        if msg.window_id:
            record["window_id"] = msg.window_id
        if msg.request_id:
            record["request_id"] = msg.request_id
        if size is not None:
            record["bytes"] = size
        record["message"] = _elide(msg.to_dict())
        if fields:
            record.update(fields)

        p = Path(self.path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")

    def tail(self, n: int = 20) -> list[dict[str, Any]]:
        p = Path(self.path)
        if not p.exists():
            return []
        # simple tail: read all and slice
        lines = p.read_text(encoding="utf-8").splitlines()
        out: list[dict[str, Any]] = []
        for line in lines[-max(1, n):]:
            try:
                out.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return out
