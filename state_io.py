#!/usr/bin/env python3
"""
State I/O
Reads and writes save state dumps (JSON or Lua table literals) and export strings
"""

import base64
import binascii
import json
import logging
import math
import re
import zlib
from pathlib import Path
from typing import Any, Dict, Optional

import lupa
from lupa import LuaRuntime

from errors import StateFormatError

LUA_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
# JSON turns integer keys into strings; these go back to Lua as integers
INTEGER_KEY = re.compile(r"^(0|[1-9][0-9]{0,17})$")
LUA_KEYWORDS = {
    "and", "break", "do", "else", "elseif", "end", "false", "for", "function", "goto", "if",
    "in", "local", "nil", "not", "or", "repeat", "return", "then", "true", "until", "while"
}
LUA_SUFFIXES = {".lua", ".txt"}

class LuaStateReader:
    """Evaluates Lua table literals (e.g. serpent.block output) in a sandboxed runtime"""

    def __init__(self):
        self.lua: Optional[LuaRuntime] = None
        self.logger = logging.getLogger(__name__)
        self._setup_environment()

    def _setup_environment(self):
        """Initialize the Lua runtime and the sandboxed chunk loader"""
        self.lua = LuaRuntime(unpack_returned_tuples=True, register_eval=False)

        # Chunks run with an empty environment: no io, os or require
        self._load_chunk = self.lua.eval("""
            function(source)
                local chunk, err = load(source, "=state", "t", {})
                if not chunk then error(err, 0) end
                return chunk()
            end
        """)
        self.logger.debug("Lua state reader initialized")

    def read(self, source: str) -> Any:
        """Evaluate a dump and convert the resulting table to Python objects"""
        stripped = source.lstrip()
        if not (stripped.startswith("return") or stripped.startswith("do")):
            source = "return " + source

        try:
            value = self._load_chunk(source)
        except lupa.LuaError as e:
            raise StateFormatError(f"Invalid Lua state dump: {e}") from e

        if lupa.lua_type(value) != "table":
            raise StateFormatError(f"Lua state dump evaluated to {lupa.lua_type(value) or type(value).__name__}, not a table")
        return self._to_python(value)

    def _to_python(self, value: Any) -> Any:
        if lupa.lua_type(value) != "table":
            return value

        items = [(key, self._to_python(item)) for key, item in value.items()]
        keys = [key for key, _ in items]

        # Tables with keys 1..n become lists, like the game's table_to_json
        if keys and all(isinstance(k, int) and not isinstance(k, bool) for k in keys) \
                and sorted(keys) == list(range(1, len(keys) + 1)):
            return [item for _, item in sorted(items, key=lambda pair: pair[0])]

        return {key: item for key, item in items}


def _lua_string(text: str) -> str:
    escaped = []
    for char in text:
        if char == '\\':
            escaped.append('\\\\')
        elif char == '"':
            escaped.append('\\"')
        elif char == '\n':
            escaped.append('\\n')
        elif char == '\r':
            escaped.append('\\r')
        elif char == '\t':
            escaped.append('\\t')
        elif ord(char) < 32 or ord(char) == 127:
            escaped.append(f'\\{ord(char):03d}')
        else:
            escaped.append(char)
    return '"' + ''.join(escaped) + '"'


def _lua_key(key: Any) -> str:
    if isinstance(key, str) and INTEGER_KEY.match(key):
        return f"[{key}]"
    if isinstance(key, str) and LUA_IDENTIFIER.match(key) and key not in LUA_KEYWORDS:
        return key
    if isinstance(key, str):
        return f"[{_lua_string(key)}]"
    return f"[{to_lua_literal(key)}]"


def to_lua_literal(value: Any, indent: int = 0) -> str:
    """Serialize Python data as a Lua table literal readable by LuaStateReader

    Digit-only string keys are written as integer keys, so a save that went
    through JSON gets its player and dataset indices back. Non-finite floats
    become the expressions Lua evaluates to the same value.
    """
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "0/0"
        if math.isinf(value):
            return "1/0" if value > 0 else "-1/0"
        return repr(value)
    if isinstance(value, int):
        return repr(value)
    if isinstance(value, str):
        return _lua_string(value)

    pad = "  " * (indent + 1)
    if isinstance(value, (list, tuple)):
        if not value:
            return "{}"
        lines = [f"{pad}{to_lua_literal(item, indent + 1)}" for item in value]
    elif isinstance(value, dict):
        if not value:
            return "{}"
        lines = [f"{pad}{_lua_key(key)} = {to_lua_literal(item, indent + 1)}" for key, item in value.items()]
    else:
        raise StateFormatError(f"Cannot serialize {type(value).__name__} to Lua")

    return "{\n" + ",\n".join(lines) + "\n" + "  " * indent + "}"


def load_state(path: Path, reader: Optional[LuaStateReader] = None) -> Dict[str, Any]:
    """Load a state dump, JSON or Lua depending on the file suffix"""
    path = Path(path)
    logger = logging.getLogger(__name__)

    with open(path, 'r', encoding='utf-8') as f:
        content = f.read()

    if path.suffix.lower() in LUA_SUFFIXES:
        state = (reader or LuaStateReader()).read(content)
    else:
        try:
            state = json.loads(content)
        except json.JSONDecodeError as e:
            raise StateFormatError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(state, dict):
        raise StateFormatError(f"State in {path} is not a table")

    logger.info(f"Loaded state from {path} (mod_version={state.get('mod_version')})")
    return state


def dump_state(state: Dict[str, Any], path: Path):
    """Write a state dump, JSON or Lua depending on the file suffix"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.suffix.lower() in LUA_SUFFIXES:
        content = to_lua_literal(state) + "\n"
    else:
        content = json.dumps(state, indent=2, ensure_ascii=False) + "\n"

    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)

    logging.getLogger(__name__).info(f"Wrote state to {path}")


def decode_export_string(export_string: str) -> Dict[str, Any]:
    """Export strings are base64 encoded, zlib deflated JSON"""
    try:
        raw = base64.b64decode(export_string.strip(), validate=True)
        export_table = json.loads(zlib.decompress(raw).decode('utf-8'))
    except (binascii.Error, zlib.error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StateFormatError(f"Invalid export string: {e}") from e

    if not isinstance(export_table, dict) or "subfactories" not in export_table:
        raise StateFormatError("Export string does not contain an export table")
    return export_table


def encode_export_string(export_table: Dict[str, Any]) -> str:
    payload = json.dumps(export_table, separators=(',', ':'), ensure_ascii=False).encode('utf-8')
    return base64.b64encode(zlib.compress(payload, 9)).decode('ascii')
