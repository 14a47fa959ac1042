#!/usr/bin/env python3
"""
Migrator
Decides whether and which migrations apply to a save, and runs them in order
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from data_models import (
    MigrationOutcome, MigrationReport, MigrationStep, PassReport, PlayerContext, TargetKind
)
from errors import IntegrityError, StateFormatError
from migration_registry import MigrationRegistry
from migration_tracker import MigrationTracker
from save_state import collect_subfactories, get_player_table, player_indices
from versions import VersionLike, as_version

class Migrator:
    """Runs the global, per-player and export-bundle migration passes"""

    def __init__(self, registry: MigrationRegistry, mod_version: VersionLike,
                 tracker: Optional[MigrationTracker] = None):
        self.registry = registry
        self.mod_version = str(as_version(mod_version))
        self.tracker = tracker
        self.logger = logging.getLogger(__name__)

    def apply_migrations(self, migrations: List[MigrationStep], kind: TargetKind, target: Any,
                         player: Optional[PlayerContext] = None, label: str = "") -> MigrationOutcome:
        """Applies the given migrations to one object, stopping once it reports removal"""
        for migration in migrations:
            handler = migration.handler_for(kind)
            if handler is None:
                continue

            if self.tracker:
                self.tracker.before_handler(target)

            outcome = MigrationOutcome.from_handler_result(handler(target, player), migration.name)

            if self.tracker:
                self.tracker.record(kind, label, migration.name, outcome, target, migration.version)

            if outcome is MigrationOutcome.REMOVED:
                self.logger.info(f"{kind.value} {label} removed by {migration.name}")
                return outcome

        return MigrationOutcome.CONTINUE

    def migrate_global(self, state: Dict[str, Any]) -> PassReport:
        """Applies any appropriate migrations to the root state"""
        previous_version = state.get("mod_version")
        report = PassReport(pass_kind="global", label="global", previous_version=previous_version,
                            new_version=self.mod_version)

        if previous_version is None:
            # Nothing was ever saved at an older version
            report.new_installation = True
            self.logger.info("No previous version in state, treating as new installation")
        else:
            migrations = self.registry.select(previous_version)
            report.steps = [m.name for m in migrations]
            outcome = self.apply_migrations(migrations, TargetKind.GLOBAL, state, None, "global")
            report.objects_migrated = 1
            if outcome is MigrationOutcome.REMOVED:
                report.objects_removed = 1

        state["mod_version"] = self.mod_version
        self.logger.info(f"Global state migrated {previous_version} -> {self.mod_version} "
                         f"({len(report.steps)} migrations)")
        return report

    def _check_subfactory_versions(self, player_table: Dict[str, Any], player_index,
                                   old_version: str, label: str) -> List[Tuple[str, str, Dict[str, Any]]]:
        """All subfactories of a player table, raising if any is out of sync with it"""
        subfactories = collect_subfactories(player_table)
        for collection_name, subfactory_id, subfactory in subfactories:
            if subfactory.get("mod_version") != old_version:
                self.logger.error(f"Out of date subfactory {subfactory_id} in {collection_name} of {label}")
                raise IntegrityError(player_index, collection_name, subfactory_id,
                                     old_version, subfactory.get("mod_version"))
        return subfactories

    def migrate_player_table(self, state: Dict[str, Any], player_index,
                             player: Optional[PlayerContext] = None) -> Optional[PassReport]:
        """Applies any appropriate migrations to a player table and its subfactories"""
        player_table = get_player_table(state, player_index)
        if player_table is None:
            return None

        if player is None:
            player = PlayerContext(index=int(player_index))

        label = f"player {player_index}"
        old_version = player_table.get("mod_version")
        global_version = state.get("mod_version", self.mod_version)
        report = PassReport(pass_kind="player", label=label, previous_version=old_version,
                            new_version=global_version)

        if old_version is None:
            # Created fresh at the current version
            report.new_installation = True
            player_table["mod_version"] = global_version
            return report

        # Check every subfactory before touching anything, so a corrupt save is never half-migrated
        self._check_subfactory_versions(player_table, player_index, old_version, label)

        migrations = self.registry.select(old_version)
        report.steps = [m.name for m in migrations]

        outcome = self.apply_migrations(migrations, TargetKind.PLAYER_TABLE, player_table, player, label)
        report.objects_migrated += 1
        if outcome is MigrationOutcome.REMOVED:
            report.objects_removed += 1
            return report

        player_table["mod_version"] = global_version

        # Player table migrations may have rebuilt the collections, so look them up again
        subfactories = self._check_subfactory_versions(player_table, player_index, old_version, label)
        for collection_name, subfactory_id, subfactory in subfactories:
            sub_label = f"{label} / {collection_name} / {subfactory_id}"
            outcome = self.apply_migrations(migrations, TargetKind.SUBFACTORY, subfactory, player, sub_label)
            report.objects_migrated += 1
            if outcome is MigrationOutcome.REMOVED:
                report.objects_removed += 1
            else:
                subfactory["mod_version"] = global_version

        self.logger.info(f"{label} migrated {old_version} -> {global_version}: "
                         f"{report.objects_migrated} objects, {report.objects_removed} removed")
        return report

    def migrate_export_table(self, export_table: Dict[str, Any]) -> PassReport:
        """Applies any appropriate migrations to the packed subfactories of an export bundle

        Packed subfactory migrations never get a player, so imports work
        without one being attached.
        """
        previous_version = export_table.get("mod_version")
        if previous_version is None:
            raise StateFormatError("Export table has no mod_version")

        packed_subfactories = export_table.get("subfactories") or []
        if isinstance(packed_subfactories, dict):
            packed_subfactories = list(packed_subfactories.values())

        migrations = self.registry.select(previous_version)
        report = PassReport(pass_kind="export", label="export", previous_version=previous_version,
                            new_version=self.mod_version, steps=[m.name for m in migrations])

        for index, packed_subfactory in enumerate(packed_subfactories, start=1):
            outcome = self.apply_migrations(migrations, TargetKind.PACKED_SUBFACTORY, packed_subfactory,
                                            None, f"export / {index}")
            report.objects_migrated += 1
            if outcome is MigrationOutcome.REMOVED:
                report.objects_removed += 1

        export_table["mod_version"] = self.mod_version
        self.logger.info(f"Export table migrated {previous_version} -> {self.mod_version}: "
                         f"{report.objects_migrated} subfactories")
        return report

    def migrate_save(self, state: Dict[str, Any], players: Optional[Iterable] = None,
                     source: str = "<memory>") -> MigrationReport:
        """Global pass followed by a pass for every (or every given) player"""
        report = MigrationReport(source=source, mod_version=self.mod_version)
        report.passes.append(self.migrate_global(state))

        indices = list(players) if players is not None else player_indices(state)
        for player_index in indices:
            player_report = self.migrate_player_table(state, player_index)
            if player_report is None:
                self.logger.warning(f"No player table for player {player_index}, skipping")
                continue
            report.passes.append(player_report)

        return report
