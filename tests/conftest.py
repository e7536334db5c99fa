from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Test helpers (mock_compositor) live beside the tests
_tests_dir = Path(__file__).resolve().parent
if str(_tests_dir) not in sys.path:
    sys.path.insert(0, str(_tests_dir))


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked with @pytest.mark.integration (needs a live compositor).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-integration"):
        return

    deselected: list[pytest.Item] = []
    selected: list[pytest.Item] = []
    for item in items:
        if item.get_closest_marker("integration"):
            deselected.append(item)
        else:
            selected.append(item)

    if deselected:
        config.hook.pytest_deselected(items=deselected)
        items[:] = selected


class FakeClient:
    """Stand-in for Client as seen by Window: records sent messages."""

    def __init__(self, app_id: str = "app-1") -> None:
        self.id = app_id
        self.sent: list = []
        self.forgotten: list[str] = []

    def send(self, msg) -> None:
        self.sent.append(msg)

    def _forget_window(self, window_id: str) -> None:
        self.forgotten.append(window_id)


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
