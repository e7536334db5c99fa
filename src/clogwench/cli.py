"""clogwench-demo - click grid against a running compositor.

Opens one buffered window with a grid of cells; clicking a cell toggles it.
Pressing ``q`` or Escape requests shutdown through the client instead of
exiting the process.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence, Set, Tuple

from .client import Client
from .config import ClientConfig, load_client_config
from .errors import ClogwenchError
from .graphics import BLACK, WHITE, Rect, parse_hex_color
from .logs.logger import configure_logging
from .protocol import KeyEvent, MouseEvent
from .window import DrawMode, EventKind, Window

logger = logging.getLogger(__name__)

QUIT_KEYS = {"q", "Escape", "ESC"}


class ClickGrid:
    """Grid of toggleable cells painted into a buffered window."""

    def __init__(self, window: Window, cell: int, color: str):
        self.window = window
        self.cell = cell
        self.color = parse_hex_color(color)
        self.on_cells: Set[Tuple[int, int]] = set()

    def cell_at(self, x: int, y: int) -> Tuple[int, int]:
        return (x // self.cell, y // self.cell)

    def toggle(self, event: MouseEvent) -> None:
        cell = self.cell_at(event.x, event.y)
        if cell in self.on_cells:
            self.on_cells.remove(cell)
        else:
            self.on_cells.add(cell)
        self.repaint()

    def repaint(self, *_args) -> None:
        win = self.window
        if not win.is_open:
            return
        win.clear(WHITE)
        for cx, cy in self.on_cells:
            win.draw_rect(Rect(cx * self.cell, cy * self.cell, self.cell, self.cell), self.color)
        cols = int(win.bounds.w) // self.cell + 1
        rows = int(win.bounds.h) // self.cell + 1
        for i in range(cols):
            win.draw_rect(Rect(i * self.cell, 0, 1, win.bounds.h), BLACK)
        for j in range(rows):
            win.draw_rect(Rect(0, j * self.cell, win.bounds.w, 1), BLACK)
        win.flush()


async def run_demo(config: ClientConfig, bounds: Rect, cell: int, color: str) -> int:
    client = Client(config)
    try:
        await client.connect()
    except ClogwenchError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    try:
        app_id = await client.hello()
        logger.info(f"[Demo] app id {app_id}")
        window = await client.open_window(bounds, title="click-grid", draw_mode=DrawMode.BUFFERED)
        grid = ClickGrid(window, cell, color)

        def on_key(event: KeyEvent) -> None:
            if event.key in QUIT_KEYS or event.code in QUIT_KEYS:
                client.request_shutdown()

        window.on(EventKind.MOUSE_DOWN, grid.toggle)
        window.on(EventKind.RESIZE, grid.repaint)
        window.on(EventKind.KEY_DOWN, on_key)
        client.on_close_window(lambda _payload: client.request_shutdown())
        grid.repaint()

        await client.wait_for_shutdown()
        return 0
    except ClogwenchError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    finally:
        await client.disconnect()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="clogwench-demo",
        description="Click grid demo for the clogwench compositor",
    )
    parser.add_argument("--host", default=None, help="Compositor host (default: CLOGWENCH_HOST or 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Compositor port (default: CLOGWENCH_PORT or 3333)")
    parser.add_argument("--framing", choices=["stream", "jsonl"], default=None, help="Wire framing")
    parser.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds")
    parser.add_argument("--size", default="200x150", help="Window size WxH (default: 200x150)")
    parser.add_argument("--cell", type=int, default=20, help="Cell size in pixels (default: 20)")
    parser.add_argument("--color", default="#3366ff", help="Cell colour (default: #3366ff)")
    parser.add_argument("--trace", default=None, metavar="PATH", help="Append wire trace to a JSONL file")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    try:
        w, h = (int(v) for v in args.size.lower().split("x", 1))
    except ValueError:
        parser.error(f"--size must look like 200x150, got {args.size!r}")
    if args.cell <= 0:
        parser.error("--cell must be positive")

    try:
        config = load_client_config().with_overrides(
            host=args.host,
            port=args.port,
            framing=args.framing,
            request_timeout=args.timeout,
            trace_path=args.trace,
        )
    except ValueError as e:
        parser.error(str(e))

    configure_logging("DEBUG" if args.debug else config.log_level)
    return asyncio.run(run_demo(config, Rect(50, 50, w, h), args.cell, args.color))


if __name__ == "__main__":
    raise SystemExit(main())
