#!/usr/bin/env python3
"""
Migration Tracker
Records every migration handler run and what it changed
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from data_models import MigrationOutcome, TargetKind

@dataclass
class MigrationRecord:
    """Records a single handler run on a single object"""
    target_kind: TargetKind
    target_label: str        # e.g. "player 1 / factory / 3"
    step_name: str
    outcome: MigrationOutcome
    timestamp: datetime
    version: Optional[str] = None     # Release of the step
    added_keys: List[str] = field(default_factory=list)
    removed_keys: List[str] = field(default_factory=list)
    changed_keys: List[str] = field(default_factory=list)

@dataclass
class ObjectHistory:
    """Every record for one migrated object"""
    target_kind: TargetKind
    target_label: str
    records: List[MigrationRecord] = field(default_factory=list)

    def add_record(self, record: MigrationRecord):
        self.records.append(record)

    @property
    def removed(self) -> bool:
        return any(r.outcome is MigrationOutcome.REMOVED for r in self.records)

class MigrationTracker:
    """Tracks handler runs across all passes of a migration"""

    def __init__(self, track_changes: bool = False):
        self.logger = logging.getLogger(__name__)
        self.track_changes = track_changes
        self.histories: Dict[str, ObjectHistory] = {}  # key: "kind:label"
        self._snapshot: Optional[Dict[str, Any]] = None

    def before_handler(self, target: Any):
        """Snapshot the target so changed keys can be reported afterwards"""
        if self.track_changes and isinstance(target, dict):
            self._snapshot = copy.deepcopy(target)
        else:
            self._snapshot = None

    def record(self, target_kind: TargetKind, target_label: str, step_name: str,
               outcome: MigrationOutcome, target: Any = None,
               version: Optional[str] = None) -> MigrationRecord:
        """Record a finished handler run"""
        record = MigrationRecord(
            target_kind=target_kind,
            target_label=target_label,
            step_name=step_name,
            outcome=outcome,
            timestamp=datetime.now(),
            version=version
        )

        if self._snapshot is not None and isinstance(target, dict):
            old, new = self._snapshot, target
            record.added_keys = sorted(str(k) for k in new.keys() - old.keys())
            record.removed_keys = sorted(str(k) for k in old.keys() - new.keys())
            record.changed_keys = sorted(str(k) for k in old.keys() & new.keys() if old[k] != new[k])
        self._snapshot = None

        key = f"{target_kind.value}:{target_label}"
        if key not in self.histories:
            self.histories[key] = ObjectHistory(target_kind=target_kind, target_label=target_label)
        self.histories[key].add_record(record)

        self.logger.debug(f"{step_name} on {target_kind.value} {target_label}: {outcome.value}")
        return record

    def get_history(self, target_kind: TargetKind, target_label: str) -> Optional[ObjectHistory]:
        return self.histories.get(f"{target_kind.value}:{target_label}")

    def get_step_chain(self, target_kind: TargetKind, target_label: str) -> List[str]:
        """Names of the steps that ran on an object, in order"""
        history = self.get_history(target_kind, target_label)
        if not history:
            return []
        return [record.step_name for record in history.records]

    def get_removed_objects(self) -> List[str]:
        return [key for key, history in self.histories.items() if history.removed]

    def generate_report(self) -> Dict[str, Any]:
        """Counts of handler runs by step and by target kind"""
        step_counts = {}
        kind_counts = {}
        for history in self.histories.values():
            kind = history.target_kind.value
            kind_counts[kind] = kind_counts.get(kind, 0) + 1
            for record in history.records:
                step_counts[record.step_name] = step_counts.get(record.step_name, 0) + 1

        return {
            'total_objects': len(self.histories),
            'removed_objects': self.get_removed_objects(),
            'runs_by_step': step_counts,
            'objects_by_kind': kind_counts,
            'timestamp': datetime.now().isoformat()
        }

    def export_history(self, output_path: Path):
        """Export the complete migration history to a JSON file"""
        export_data = {
            'metadata': {
                'export_timestamp': datetime.now().isoformat(),
                'total_objects': len(self.histories)
            },
            'objects': {}
        }

        for key, history in self.histories.items():
            export_data['objects'][key] = {
                'target_kind': history.target_kind.value,
                'target_label': history.target_label,
                'records': [
                    {
                        'step_name': record.step_name,
                        'version': record.version,
                        'outcome': record.outcome.value,
                        'timestamp': record.timestamp.isoformat(),
                        'added_keys': record.added_keys,
                        'removed_keys': record.removed_keys,
                        'changed_keys': record.changed_keys
                    }
                    for record in history.records
                ]
            }

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(export_data, f, indent=2, ensure_ascii=False)

        self.logger.info(f"Exported migration history to: {output_path}")
