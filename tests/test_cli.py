from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from beadroad.main import app, render_rows


runner = CliRunner()


def block(height: int) -> dict:
    value = height % 10
    return {
        "height": height,
        "hash": "",
        "resultValue": value,
        "type": "EVEN" if value % 2 == 0 else "ODD",
        "sizeType": "BIG" if value >= 5 else "SMALL",
        "timestamp": "",
    }


def write_config(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text("grid: {cols: 3, rows: 2}\n", encoding="utf-8")
    return path


def test_replay_prints_rows(tmp_path: Path) -> None:
    dump = tmp_path / "blocks.json"
    dump.write_text(json.dumps({"success": True, "data": [block(h) for h in range(8, 0, -1)]}), encoding="utf-8")
    result = runner.invoke(app, ["replay", str(dump), "--config", str(write_config(tmp_path))])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    # heights 3..8 laid out in 3 columns of 2
    assert lines[0] == "OOO"
    assert lines[1] == "EEE"
    assert "window=6" in lines[2]


def test_replay_json_and_size_key(tmp_path: Path) -> None:
    dump = tmp_path / "blocks.json"
    dump.write_text(json.dumps([block(5), block(6)]), encoding="utf-8")
    result = runner.invoke(
        app, ["replay", str(dump), "--key", "size", "--json", "--config", str(write_config(tmp_path))]
    )
    assert result.exit_code == 0, result.output
    cells = json.loads(result.output)
    assert cells[0][0] == {"type": "BIG", "value": 5, "block_height": 5}
    assert cells[2][1]["type"] is None


def test_replay_rejects_unknown_key(tmp_path: Path) -> None:
    dump = tmp_path / "blocks.json"
    dump.write_text("[]", encoding="utf-8")
    result = runner.invoke(app, ["replay", str(dump), "--key", "colour"])
    assert result.exit_code != 0


def test_rules_lists_defaults(tmp_path: Path) -> None:
    result = runner.invoke(app, ["rules", "--config", str(write_config(tmp_path))])
    assert result.exit_code == 0
    assert "20 blocks" in result.output
    assert result.output.splitlines()[0].startswith("*")


def test_render_rows_empty() -> None:
    assert render_rows([]) == ""
