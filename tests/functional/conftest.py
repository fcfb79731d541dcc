"""Default marks for tests under `tests/functional/`."""

import logging
from pathlib import Path

import pytest

# pylint: disable=unused-argument

FUNCTIONAL_ROOT = Path(__file__).parent.resolve()
MARKER_NAME = "functional"


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Add default `functional` marks to items in `tests/functional/`."""
    for item in items:
        path = item.path.resolve()  # pytest>=8: pathlib.Path
        if FUNCTIONAL_ROOT in path.parents:
            if not any(marker.name == MARKER_NAME for marker in item.iter_markers()):
                item.add_marker(getattr(pytest.mark, MARKER_NAME))


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo the handlers the CLI installs on the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def cli_env(tmp_path: Path, sqlite_url_file: str) -> dict[str, str]:
    """Environment for CLI runs against a scratch SQLite file."""
    return {
        "CHRONICLE_DB_URL": sqlite_url_file,
        "CHRONICLE_EVENT_TABLE": "",
        "CHRONICLE_BINARY_IDENTIFIERS": "",
        "CHRONICLE_LOG_PATH": str(tmp_path / "chronicle.log"),
    }
