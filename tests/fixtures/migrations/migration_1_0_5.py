"""Renames the player's ui_state and drops subfactories that were never finished"""

from data_models import MigrationOutcome


def migrate_player_table(player_table, player):
    if "ui_state" in player_table:
        player_table["ui"] = player_table.pop("ui_state")


def migrate_subfactory(subfactory, player):
    if subfactory.get("broken"):
        return MigrationOutcome.REMOVED
    subfactory["owner"] = player.index
