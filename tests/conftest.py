from __future__ import annotations

import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked with @pytest.mark.integration (open local sockets).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-integration"):
        return

    deselected = [item for item in items if item.get_closest_marker("integration")]
    if deselected:
        config.hook.pytest_deselected(items=deselected)
        items[:] = [item for item in items if not item.get_closest_marker("integration")]


ARTICLE_TEXT = (
    "Solar panels convert sunlight into electricity for homes. "
    "Modern solar panels reach efficiency above twenty percent in the field. "
    "Installation costs for solar panels have dropped sharply this decade. "
    "Many homeowners finance solar panels with long term loans. "
    "Wind turbines are another renewable option. "
    "Batteries store excess electricity for use at night."
)


@pytest.fixture
def article_text() -> str:
    return ARTICLE_TEXT


@pytest.fixture
def event_bus():
    from pagelens.events import EventBus

    return EventBus()


@pytest.fixture
def page_store(event_bus):
    """Page store over an in-memory backend wired to ``event_bus``."""
    from pagelens.storage import MemoryStore, PageStore

    return PageStore(MemoryStore(event_bus=event_bus))
