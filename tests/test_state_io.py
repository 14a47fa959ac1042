"""
State I/O tests: JSON and Lua dumps, and export strings.
"""

import base64
import json
import math
import zlib
from pathlib import Path

import pytest

from errors import StateFormatError
from state_io import (
    LuaStateReader, decode_export_string, dump_state, encode_export_string, load_state, to_lua_literal
)


SERPENT_BLOCK = """
{
  mod_version = "1.1.5",
  players = {
    [1] = {
      mod_version = "1.1.5",
      factory = {
        Subfactory = {
          datasets = {
            [4] = {mod_version = "1.1.5", name = "Green \\"circuits\\""}
          }
        }
      }
    },
    [3] = {mod_version = "1.1.5"}
  },
  flags = {true, false},
  empty = {}
}
"""


@pytest.fixture(scope="module")
def reader() -> LuaStateReader:
    return LuaStateReader()


class TestLuaStateReader:
    def test_reads_serpent_block(self, reader):
        state = reader.read(SERPENT_BLOCK)
        assert state["mod_version"] == "1.1.5"
        assert set(state["players"].keys()) == {1, 3}
        subfactory = state["players"][1]["factory"]["Subfactory"]["datasets"][4]
        assert subfactory["name"] == 'Green "circuits"'

    def test_contiguous_tables_become_lists(self, reader):
        state = reader.read(SERPENT_BLOCK)
        assert state["flags"] == [True, False]
        assert state["empty"] == {}

    def test_accepts_return_prefix(self, reader):
        assert reader.read('return {mod_version = "1.0.0"}') == {"mod_version": "1.0.0"}

    def test_accepts_serpent_dump_form(self, reader):
        assert reader.read('do local _={a=1};return _;end') == {"a": 1}

    def test_sandbox_has_no_globals(self, reader):
        with pytest.raises(StateFormatError):
            reader.read('{path = os.getenv("HOME")}')

    def test_syntax_error(self, reader):
        with pytest.raises(StateFormatError):
            reader.read("{mod_version = }")

    def test_non_table_result(self, reader):
        with pytest.raises(StateFormatError):
            reader.read('"just a string"')


class TestLuaLiteral:
    def test_round_trip_through_reader(self, reader):
        data = {
            "mod_version": "1.1.5",
            "players": {2: {"name": 'a "quoted"\nname', "end": True}},
            "ratios": [0.5, 1.25],
            "with-dash": None,
        }
        result = reader.read(to_lua_literal(data))
        # nil values vanish in Lua
        assert result == {
            "mod_version": "1.1.5",
            "players": {2: {"name": 'a "quoted"\nname', "end": True}},
            "ratios": [0.5, 1.25],
        }

    def test_keywords_and_odd_keys_are_bracketed(self):
        literal = to_lua_literal({"end": 1, "with-dash": 2, "plain": 3})
        assert '["end"] = 1' in literal
        assert '["with-dash"] = 2' in literal
        assert "plain = 3" in literal

    def test_unsupported_type(self):
        with pytest.raises(StateFormatError):
            to_lua_literal({"x": object()})

    def test_non_finite_floats_survive_reload(self, reader):
        literal = to_lua_literal({"limit": float("inf"), "floor": float("-inf"), "ratio": float("nan")})
        assert "limit = 1/0" in literal
        result = reader.read(literal)
        assert set(result) == {"limit", "floor", "ratio"}
        assert math.isinf(result["limit"]) and result["limit"] > 0
        assert math.isinf(result["floor"]) and result["floor"] < 0
        assert math.isnan(result["ratio"])

    def test_digit_string_keys_become_integer_keys(self, reader):
        literal = to_lua_literal({"players": {"1": {"id": "a"}, "3": {"id": "b"}}, "01": 1, "7up": 2})
        assert "[1] = {" in literal
        assert '["01"] = 1' in literal
        result = reader.read(literal)
        assert result["players"] == {1: {"id": "a"}, 3: {"id": "b"}}
        assert result["01"] == 1
        assert result["7up"] == 2


class TestLoadDump:
    def test_json_round_trip(self, tmp_path: Path):
        path = tmp_path / "save.json"
        dump_state({"mod_version": "1.0.0", "players": {"1": {}}}, path)
        assert load_state(path) == {"mod_version": "1.0.0", "players": {"1": {}}}

    def test_lua_file(self, tmp_path: Path):
        path = tmp_path / "global.lua"
        path.write_text(SERPENT_BLOCK, encoding="utf-8")
        assert load_state(path)["mod_version"] == "1.1.5"

    def test_dump_lua_file(self, tmp_path: Path):
        path = tmp_path / "out" / "global.lua"
        dump_state({"mod_version": "1.1.6"}, path)
        assert load_state(path) == {"mod_version": "1.1.6"}

    def test_json_save_converted_to_lua_keeps_indices_and_limits(self, tmp_path: Path):
        source = tmp_path / "save.json"
        source.write_text('{"mod_version": "1.1.6", "players": {"1": {"limit": Infinity}, "4": {}}}',
                          encoding="utf-8")
        target = tmp_path / "global.lua"
        dump_state(load_state(source), target)

        state = load_state(target)
        assert set(state["players"]) == {1, 4}
        assert math.isinf(state["players"][1]["limit"])

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "save.json"
        path.write_text("{nope", encoding="utf-8")
        with pytest.raises(StateFormatError):
            load_state(path)

    def test_top_level_must_be_a_table(self, tmp_path: Path):
        path = tmp_path / "save.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(StateFormatError):
            load_state(path)


class TestExportStrings:
    def test_decodes_game_encoded_string(self):
        export_table = {"mod_version": "1.1.5", "subfactories": [{"name": "a"}]}
        raw = zlib.compress(json.dumps(export_table).encode("utf-8"))
        assert decode_export_string(base64.b64encode(raw).decode("ascii")) == export_table

    def test_surrounding_whitespace_is_ignored(self):
        encoded = encode_export_string({"mod_version": "1.0.0", "subfactories": []})
        assert decode_export_string(f"  {encoded}\n")["mod_version"] == "1.0.0"

    @pytest.mark.parametrize("bad", ["not base64!", base64.b64encode(b"not zlib").decode("ascii")])
    def test_garbage_is_rejected(self, bad):
        with pytest.raises(StateFormatError):
            decode_export_string(bad)

    def test_must_contain_subfactories(self):
        encoded = encode_export_string({"mod_version": "1.0.0"})
        with pytest.raises(StateFormatError):
            decode_export_string(encoded)
