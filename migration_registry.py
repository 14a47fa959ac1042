#!/usr/bin/env python3
"""
Migration Registry
Ordered list of all migrations and the selection of which ones apply to a save
"""

import importlib.util
import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from data_models import MigrationStep, RegistryEntry
from errors import RegistryError
from versions import ModVersion, VersionLike, as_version, is_older

MIGRATION_FILE_PATTERN = re.compile(r"^migration_(\d+(?:_\d+)*)\.py$")

# Module-level function name -> MigrationStep field
HANDLER_FUNCTIONS = {
    "migrate_global": "global_state",
    "migrate_player_table": "player_table",
    "migrate_subfactory": "subfactory",
    "migrate_packed_subfactory": "packed_subfactory",
}

class MigrationRegistry:
    """Append-only list of (version, migration) pairs in increasing version order"""

    def __init__(self, entries: Iterable[Tuple[VersionLike, MigrationStep]] = ()):
        self.logger = logging.getLogger(__name__)
        self._entries: List[RegistryEntry] = []
        self._sealed = False

        for version, step in entries:
            self.register(version, step)

    def register(self, version: VersionLike, step: MigrationStep) -> RegistryEntry:
        """Append a migration; it has to be newer than every registered one"""
        if self._sealed:
            raise RegistryError(f"Registry is sealed, cannot add migration {step.name}")

        version = as_version(version)
        if self._entries and not is_older(self._entries[-1].version, version):
            raise RegistryError(
                f"Migration {step.name} ({version}) is not newer than the last registered "
                f"migration {self._entries[-1].step.name} ({self._entries[-1].version})"
            )

        step = replace(step, version=str(version))
        entry = RegistryEntry(version=version, step=step)
        self._entries.append(entry)
        self.logger.debug(f"Registered migration {step.name} for version {version}")
        return entry

    def seal(self) -> "MigrationRegistry":
        """Freeze the registry, published history is not edited"""
        self._sealed = True
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def entries(self) -> Tuple[RegistryEntry, ...]:
        return tuple(self._entries)

    @property
    def latest_version(self) -> Optional[ModVersion]:
        return self._entries[-1].version if self._entries else None

    def select(self, previous_version: VersionLike) -> List[MigrationStep]:
        """Returns the migrations that need to run for a save at previous_version

        Once a migration newer than previous_version is found, it and every
        migration after it are included. An empty list means the version
        changed (or didn't) without any migration applying.
        """
        previous_version = as_version(previous_version)

        migrations = []
        found = False
        for entry in self._entries:
            if not found and is_older(previous_version, entry.version):
                found = True
            if found:
                migrations.append(entry.step)

        return migrations

    def select_entries(self, previous_version: VersionLike) -> List[RegistryEntry]:
        """Like select(), but keeps the versions attached"""
        selected = self.select(previous_version)
        return self._entries[len(self._entries) - len(selected):]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self._entries)


def version_from_filename(file_name: str) -> Optional[ModVersion]:
    """migration_1_1_5.py -> 1.1.5, None for files that aren't migrations"""
    match = MIGRATION_FILE_PATTERN.match(file_name)
    if not match:
        return None
    return ModVersion.parse(match.group(1).replace('_', '.'))


def load_migration_module(path: Path) -> MigrationStep:
    """Import a migration module and collect its handler functions"""
    module_name = f"fp_migrations.{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise RegistryError(f"Cannot load migration module {path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    handlers = {}
    for function_name, field_name in HANDLER_FUNCTIONS.items():
        handler = getattr(module, function_name, None)
        if handler is None:
            continue
        if not callable(handler):
            raise RegistryError(f"{path.name}: {function_name} is not callable")
        handlers[field_name] = handler

    if not handlers:
        logging.getLogger(__name__).warning(f"Migration module {path.name} defines no handlers")

    return MigrationStep(name=path.stem, **handlers)


def discover_migrations(migrations_dir: Path) -> MigrationRegistry:
    """Build a sealed registry from the migration_*.py modules in a directory"""
    logger = logging.getLogger(__name__)
    migrations_dir = Path(migrations_dir)
    registry = MigrationRegistry()

    if not migrations_dir.is_dir():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return registry.seal()

    found = []
    seen = {}
    for path in migrations_dir.iterdir():
        if not path.is_file():
            continue
        version = version_from_filename(path.name)
        if version is None:
            continue
        if version in seen:
            raise RegistryError(f"{path.name} and {seen[version].name} both migrate to {version}")
        seen[version] = path
        found.append((version, path))

    # Directory listing order is arbitrary
    found.sort(key=lambda item: item[0].segments)
    for version, path in found:
        registry.register(version, load_migration_module(path))

    logger.info(f"Discovered {len(registry)} migrations in {migrations_dir}")
    return registry.seal()
