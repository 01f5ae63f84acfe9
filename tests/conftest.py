"""Pytest fixtures for token registry tests.

Common fixtures for building registries over in-memory and SQLite storage.
"""

from __future__ import annotations

# Load environment variables from .env before any tests run
from dotenv import load_dotenv

load_dotenv()

from pathlib import Path
from typing import Iterator

import pytest

from src.config import reset_config
from src.registry.logger import EventLogger
from src.registry.registry import TokenRegistry
from src.registry.storage import MemoryStorage, SqliteStorage

OWNER = "registry.near"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "feature(name): mark test as belonging to a feature. "
        "Usage: @pytest.mark.feature('pagination')"
    )


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command-line options."""
    parser.addoption(
        "--feature",
        action="store",
        type=str,
        default=None,
        help="Run tests for a specific feature (e.g., --feature supply)",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Filter tests based on command-line options."""
    feature_filter = config.getoption("--feature")
    if feature_filter is None:
        return
    selected = []
    deselected = []
    for item in items:
        marker = item.get_closest_marker("feature")
        if marker is not None:
            feature_name = marker.args[0] if marker.args else ""
            if feature_name == feature_filter:
                selected.append(item)
                continue
        deselected.append(item)
    config.hook.pytest_deselected(items=deselected)
    items[:] = selected


@pytest.fixture(autouse=True)
def _fresh_config() -> Iterator[None]:
    """Drop any globally loaded config between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def sqlite_storage(tmp_path: Path) -> SqliteStorage:
    return SqliteStorage(tmp_path / "registry.db")


@pytest.fixture
def events() -> EventLogger:
    return EventLogger()


@pytest.fixture
def registry(storage: MemoryStorage, events: EventLogger) -> TokenRegistry:
    """Create an empty registry owned by registry.near.

    Pre-declared types (unlocked):
    - A: cap 2
    - B: cap 5
    """
    reg = TokenRegistry(storage, owner_id=OWNER, event_logger=events)
    reg.add_token_types(OWNER, {"A": 2, "B": 5}, unlocked=True)
    return reg


@pytest.fixture
def populated_registry(registry: TokenRegistry) -> TokenRegistry:
    """Registry holding five tokens.

    - t1: owner alice, creator alice, type A
    - t2: owner alice, creator bob, untyped
    - t3: owner bob, creator bob, type B
    - t4: owner carol, creator alice, type B
    - t5: owner alice, creator carol, type B
    """
    registry.nft_mint("t1", {"title": "One"}, "alice.near", "alice.near", token_type="A")
    registry.nft_mint("t2", {"title": "Two"}, "alice.near", "bob.near")
    registry.nft_mint("t3", {"title": "Three"}, "bob.near", "bob.near", token_type="B")
    registry.nft_mint("t4", {"title": "Four"}, "carol.near", "alice.near", token_type="B")
    registry.nft_mint("t5", {"title": "Five"}, "alice.near", "carol.near", token_type="B")
    return registry
