"""
Shared fixtures for the migrator test suite.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from data_models import MigrationStep  # noqa: E402
from migration_registry import MigrationRegistry  # noqa: E402

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


class CallLog:
    """Collects (step, kind, target id, player) for every handler call"""

    def __init__(self):
        self.calls: List[tuple] = []

    def handler(self, step_name: str, kind: str, result=None):
        def _handler(target, player):
            target_id = target.get("id") if isinstance(target, dict) else None
            self.calls.append((step_name, kind, target_id, player))
            return result
        return _handler

    def steps_for(self, target_id) -> List[str]:
        return [step for step, _, tid, _ in self.calls if tid == target_id]


@pytest.fixture
def call_log() -> CallLog:
    return CallLog()


def logging_step(log: CallLog, name: str, removed_kinds=()) -> MigrationStep:
    """A step with a recording handler for every target kind"""
    from data_models import MigrationOutcome

    def result_for(kind):
        return MigrationOutcome.REMOVED if kind in removed_kinds else None

    return MigrationStep(
        name=name,
        global_state=log.handler(name, "global", result_for("global")),
        player_table=log.handler(name, "player_table", result_for("player_table")),
        subfactory=log.handler(name, "subfactory", result_for("subfactory")),
        packed_subfactory=log.handler(name, "packed_subfactory", result_for("packed_subfactory")),
    )


@pytest.fixture
def logged_registry(call_log: CallLog) -> MigrationRegistry:
    """Registry with recording steps at 1.0.0, 1.0.5 and 1.1.0"""
    return MigrationRegistry([
        ("1.0.0", logging_step(call_log, "m_1_0_0")),
        ("1.0.5", logging_step(call_log, "m_1_0_5")),
        ("1.1.0", logging_step(call_log, "m_1_1_0")),
    ]).seal()


@pytest.fixture
def migrations_dir() -> Path:
    return FIXTURES_DIR / "migrations"


def make_subfactory(subfactory_id: str, version: str, **extra) -> Dict:
    subfactory = {"id": subfactory_id, "mod_version": version}
    subfactory.update(extra)
    return subfactory


def make_state(version: str = "1.0.2", player_version: str = "1.0.2") -> Dict:
    """A save with one player owning two active and one archived subfactory"""
    return {
        "mod_version": version,
        "players": {
            "1": {
                "id": "player-1",
                "mod_version": player_version,
                "factory": {
                    "Subfactory": {
                        "datasets": {
                            "1": make_subfactory("sub-1", player_version),
                            "2": make_subfactory("sub-2", player_version),
                        },
                        "index": 2,
                        "count": 2,
                    },
                    "selected_subfactory": None,
                },
                "archive": {
                    "Subfactory": {
                        "datasets": {
                            "3": make_subfactory("sub-3", player_version),
                        },
                        "index": 3,
                        "count": 1,
                    },
                },
            }
        },
    }


@pytest.fixture
def sample_state() -> Dict:
    return make_state()


@pytest.fixture(autouse=True)
def _reset_logging():
    """The CLI configures root logging; drop its handlers after each test"""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
