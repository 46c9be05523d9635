"""Tests for `editsync config show|set`."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from editsync.cli.main import cli


class TestConfigShow:
    def test_show_all_json(self, invoke_json) -> None:
        parsed, code = invoke_json("config", "show")
        assert code == 0
        assert parsed["ok"] is True
        assert parsed["data"]["retry"]["max_attempts"] == 3

    def test_show_key(self, invoke_json) -> None:
        parsed, code = invoke_json("config", "show", "retry.base_delay_ms")
        assert code == 0
        assert parsed["data"] == {"key": "retry.base_delay_ms", "value": 1000}

    def test_show_human(self, invoke) -> None:
        result = invoke("config", "show", "settle_window_ms")
        assert result.exit_code == 0
        assert result.output.strip() == "2000"

    def test_unknown_key(self, invoke_json) -> None:
        parsed, code = invoke_json("config", "show", "nope")
        assert code == 1
        assert parsed["error"]["code"] == "UNKNOWN_KEY"

    def test_partial_file_merged_with_defaults(self, invoke_json, initialized_root: Path) -> None:
        (initialized_root / ".editsync" / "config.json").write_text('{"settle_window_ms": 250}')
        parsed, _ = invoke_json("config", "show")
        assert parsed["data"]["settle_window_ms"] == 250
        assert parsed["data"]["save_timeout_ms"] == 10000

    def test_invalid_json_file(self, invoke_json, initialized_root: Path) -> None:
        (initialized_root / ".editsync" / "config.json").write_text("{broken")
        parsed, code = invoke_json("config", "show")
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_CONFIG"


class TestConfigSet:
    def test_set_number(self, invoke_json, initialized_root: Path) -> None:
        parsed, code = invoke_json("config", "set", "retry.max_attempts", "5")
        assert code == 0
        assert parsed["data"] == {"key": "retry.max_attempts", "value": 5}
        stored = json.loads((initialized_root / ".editsync" / "config.json").read_text())
        assert stored["retry"]["max_attempts"] == 5
        assert stored["retry"]["base_delay_ms"] == 1000

    def test_set_string(self, invoke_json) -> None:
        parsed, code = invoke_json("config", "set", "drafts_dir", "pending")
        assert code == 0
        assert parsed["data"]["value"] == "pending"

    def test_invalid_value_rejected(self, invoke_json, initialized_root: Path) -> None:
        before = (initialized_root / ".editsync" / "config.json").read_text()
        parsed, code = invoke_json("config", "set", "retry.multiplier", "0.5")
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_CONFIG"
        assert "retry.multiplier" in parsed["error"]["message"]
        assert (initialized_root / ".editsync" / "config.json").read_text() == before

    def test_unknown_key_rejected(self, invoke_json) -> None:
        parsed, code = invoke_json("config", "set", "retry.nope", "1")
        assert code == 1
        assert parsed["error"]["code"] == "UNKNOWN_KEY"

    def test_human_output(self, invoke) -> None:
        result = invoke("config", "set", "settle_window_ms", "500")
        assert result.exit_code == 0
        assert result.output.strip() == "Set settle_window_ms = 500"


class TestNotInitialized:
    def test_requires_root(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            result = runner.invoke(cli, ["config", "show", "--json"], env={"EDITSYNC_ROOT": None})
        parsed = json.loads(result.output)
        assert result.exit_code == 1
        assert parsed["error"]["code"] == "NOT_INITIALIZED"

    def test_bad_env_root(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(
            cli, ["config", "show", "--json"], env={"EDITSYNC_ROOT": str(tmp_path)}
        )
        assert result.exit_code == 1
        assert json.loads(result.output)["error"]["code"] == "NOT_INITIALIZED"
