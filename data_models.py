#!/usr/bin/env python3
"""
Data Models
Defines structured data types for migration steps, outcomes, and pass reports
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from errors import MigrationStepError
from versions import ModVersion

class TargetKind(Enum):
    """Kinds of persisted objects a migration step can transform"""
    GLOBAL = "global"                        # Root state, no player context
    PLAYER_TABLE = "player_table"            # Per-player state
    SUBFACTORY = "subfactory"                # Live subfactory owned by a player table
    PACKED_SUBFACTORY = "packed_subfactory"  # Subfactory inside an export bundle

    @property
    def takes_player(self) -> bool:
        """Whether handlers of this kind receive the acting player"""
        return self in (TargetKind.PLAYER_TABLE, TargetKind.SUBFACTORY)

class MigrationOutcome(Enum):
    """Result of running one handler on one object"""
    CONTINUE = "continue"
    REMOVED = "removed"      # Object was deleted, later steps must not touch it

    @classmethod
    def from_handler_result(cls, result: Any, step_name: str) -> "MigrationOutcome":
        """Interpret a handler's return value; None means everything went fine"""
        if result is None:
            return cls.CONTINUE
        if isinstance(result, cls):
            return result
        raise MigrationStepError(
            f"Migration {step_name} returned {result!r}, expected None or a MigrationOutcome"
        )

Handler = Callable[[Any, Optional["PlayerContext"]], Optional[MigrationOutcome]]

@dataclass(frozen=True)
class MigrationStep:
    """Bundle of transformations for one release, one optional handler per target kind"""
    name: str
    global_state: Optional[Handler] = None
    player_table: Optional[Handler] = None
    subfactory: Optional[Handler] = None
    packed_subfactory: Optional[Handler] = None
    version: Optional[str] = None        # Release this step belongs to, set on registration

    def handler_for(self, kind: TargetKind) -> Optional[Handler]:
        if kind is TargetKind.GLOBAL:
            return self.global_state
        return getattr(self, kind.value)

    @property
    def kinds(self) -> List[TargetKind]:
        """Target kinds this step has a handler for"""
        return [kind for kind in TargetKind if self.handler_for(kind) is not None]

@dataclass(frozen=True)
class RegistryEntry:
    """A migration step and the version that introduced it"""
    version: ModVersion
    step: MigrationStep

@dataclass(frozen=True)
class PlayerContext:
    """The player a player-scoped migration acts on behalf of"""
    index: int
    name: Optional[str] = None

@dataclass
class PassReport:
    """Summary of one orchestration pass"""
    pass_kind: str                 # "global", "player" or "export"
    label: str                     # e.g. "player 1"
    previous_version: Optional[str]
    new_version: Optional[str]
    steps: List[str] = field(default_factory=list)
    objects_migrated: int = 0
    objects_removed: int = 0
    new_installation: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'pass_kind': self.pass_kind,
            'label': self.label,
            'previous_version': self.previous_version,
            'new_version': self.new_version,
            'steps': self.steps,
            'objects_migrated': self.objects_migrated,
            'objects_removed': self.objects_removed,
            'new_installation': self.new_installation
        }

@dataclass
class MigrationReport:
    """Everything that happened while migrating one save or export bundle"""
    source: str
    mod_version: str
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    passes: List[PassReport] = field(default_factory=list)

    @property
    def total_steps_applied(self) -> int:
        return sum(len(p.steps) for p in self.passes)

    @property
    def total_removed(self) -> int:
        return sum(p.objects_removed for p in self.passes)

    def get_passes(self, pass_kind: str) -> List[PassReport]:
        return [p for p in self.passes if p.pass_kind == pass_kind]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'mod_version': self.mod_version,
            'started_at': self.started_at,
            'total_steps_applied': self.total_steps_applied,
            'total_removed': self.total_removed,
            'passes': [p.to_dict() for p in self.passes]
        }
