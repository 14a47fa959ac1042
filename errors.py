#!/usr/bin/env python3
"""
Errors
Exception hierarchy shared by the migrator components
"""

from typing import Optional


class MigrationError(Exception):
    """Base class for everything the migrator raises on purpose"""


class VersionFormatError(MigrationError, ValueError):
    """A version string could not be parsed"""


class VersionArityError(VersionFormatError):
    """Two versions with a different number of segments were compared"""


class RegistryError(MigrationError):
    """The migration registry was built or modified incorrectly"""


class MigrationStepError(MigrationError):
    """A migration handler misbehaved"""


class StateFormatError(MigrationError):
    """Persisted state or an export string has an unexpected shape"""


class ModNotFoundError(MigrationError):
    """The mod could not be located in a mods directory"""


class IntegrityError(MigrationError):
    """A subfactory is out of sync with its player table

    This means the save is corrupted. Nothing is repaired automatically.
    """

    def __init__(self, player_index, collection: str, subfactory_id: Optional[str],
                 expected_version: Optional[str], found_version: Optional[str]):
        self.player_index = player_index
        self.collection = collection
        self.subfactory_id = subfactory_id
        self.expected_version = expected_version
        self.found_version = found_version
        super().__init__(
            f"Out of date subfactory {subfactory_id!r} in {collection} of player {player_index} "
            f"(expected version {expected_version}, found {found_version}). "
            "Please report this to the mod author including the save file."
        )
