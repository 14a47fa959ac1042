#!/usr/bin/env python3
"""
Save State
Accessors for the parts of the persisted object graph the migrator walks
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

from errors import StateFormatError

# Player table keys holding subfactory collections, in migration order
SUBFACTORY_COLLECTIONS = ("factory", "archive")


def get_players(state: Dict[str, Any]) -> Dict[Any, Dict[str, Any]]:
    """Map of player index -> player table

    Lua dumps turn a table with keys 1..n into an array, so lists are
    accepted and re-indexed from 1.
    """
    players = state.get("players")
    if players is None:
        return {}
    if isinstance(players, list):
        return {index: table for index, table in enumerate(players, start=1) if table is not None}
    if isinstance(players, dict):
        return players
    raise StateFormatError(f"Unexpected players container: {type(players).__name__}")


def get_player_table(state: Dict[str, Any], player_index) -> Optional[Dict[str, Any]]:
    """The player table for a player index, or None if the player has none yet"""
    players = get_players(state)

    # JSON turns integer keys into strings, Lua dumps keep them as ints
    for key in (player_index, str(player_index)):
        if key in players:
            return players[key]
    if isinstance(player_index, str) and player_index.isdigit():
        return players.get(int(player_index))
    return None


def player_indices(state: Dict[str, Any]) -> List[Any]:
    return list(get_players(state).keys())


def iter_subfactories(collection: Any) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """Yields (id, subfactory) for every subfactory in a collection

    Understands the mod's Factory object ({"Subfactory": {"datasets": ...}}),
    a bare Collection ({"datasets": ...}) and a plain list.
    """
    if collection is None:
        return

    if isinstance(collection, dict) and "Subfactory" in collection:
        collection = collection["Subfactory"]

    if isinstance(collection, dict) and "datasets" in collection:
        datasets = collection["datasets"]
        if isinstance(datasets, list):
            # An array-shaped datasets table, ids start at 1
            items = [(str(i), d) for i, d in enumerate(datasets, start=1) if d is not None]
        elif isinstance(datasets, dict):
            items = [(str(i), d) for i, d in datasets.items()]
        else:
            raise StateFormatError(f"Unexpected datasets container: {type(datasets).__name__}")
    elif isinstance(collection, list):
        items = [(str(i), d) for i, d in enumerate(collection, start=1)]
    else:
        raise StateFormatError(f"Unexpected subfactory collection: {type(collection).__name__}")

    for subfactory_id, subfactory in items:
        if not isinstance(subfactory, dict):
            raise StateFormatError(f"Subfactory {subfactory_id} is not a table")
        yield subfactory_id, subfactory


def collect_subfactories(player_table: Dict[str, Any]) -> List[Tuple[str, str, Dict[str, Any]]]:
    """(collection name, id, subfactory) for every subfactory a player owns"""
    found = []
    for collection_name in SUBFACTORY_COLLECTIONS:
        for subfactory_id, subfactory in iter_subfactories(player_table.get(collection_name)):
            found.append((collection_name, subfactory_id, subfactory))
    return found
