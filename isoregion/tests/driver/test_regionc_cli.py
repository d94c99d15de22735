#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""regionc command-line driver: exit codes, human and JSON output."""

import json
from pathlib import Path

import pytest

from isoregion.regionc.regionc import main

GOOD = """
type Item
type IsoPair { iso left: Item, iso right: Item }
fn send(x: Item)
fn serve(p: IsoPair) {
	let h1 = spawn send(p.left);
	let h2 = spawn send(p.right);
	await h1;
	await h2;
}
"""

BAD = """
type Item
type Pair { first: Item, second: Item }
fn send(x: Item)
fn serve(p: Pair) {
	let h1 = spawn send(p.first);
	let h2 = spawn send(p.second);
	await h1;
	await h2;
}
"""

INIT = """
type Item
type IsoPair { iso left: Item, iso right: Item }
init fn IsoPair_init(self: IsoPair, consuming v: Item) {
	self.left = v;
	self.right = v;
}
"""


def _write(tmp_path: Path, name: str, text: str) -> Path:
	path = tmp_path / name
	path.write_text(text)
	return path


def test_clean_file_exits_zero(tmp_path: Path, capsys):
	src = _write(tmp_path, "good.rgn", GOOD)
	assert main([str(src)]) == 0
	captured = capsys.readouterr()
	assert captured.err == ""
	assert captured.out == ""


def test_errors_exit_one_and_print_to_stderr(tmp_path: Path, capsys):
	src = _write(tmp_path, "bad.rgn", BAD)
	assert main([str(src)]) == 1
	err = capsys.readouterr().err
	assert f"{src}:7:" in err
	assert "error[use-after-transfer]: cannot use 'p': it is held by live future 'h1'" in err


def test_json_output(tmp_path: Path, capsys):
	src = _write(tmp_path, "bad.rgn", BAD)
	assert main([str(src), "--json"]) == 1
	payload = json.loads(capsys.readouterr().out)
	assert payload["exit_code"] == 1
	(diag,) = payload["diagnostics"]
	assert diag["phase"] == "regioncheck"
	assert diag["code"] == "use-after-transfer"
	assert diag["file"] == str(src)
	assert diag["line"] == 7
	assert diag["subject"] == "p"
	assert "states" not in payload


def test_json_parse_error(tmp_path: Path, capsys):
	src = _write(tmp_path, "broken.rgn", "type Item\nfn f( {\n")
	assert main(["--json", str(src)]) == 1
	payload = json.loads(capsys.readouterr().out)
	(diag,) = payload["diagnostics"]
	assert diag["phase"] == "parser"
	assert diag["code"] == "parse-error"
	assert diag["line"] == 2


def test_several_files_are_checked_together(tmp_path: Path, capsys):
	good = _write(tmp_path, "good.rgn", GOOD)
	bad = _write(tmp_path, "bad.rgn", BAD)
	assert main(["--json", str(good), str(bad)]) == 1
	payload = json.loads(capsys.readouterr().out)
	assert [d["file"] for d in payload["diagnostics"]] == [str(bad)]


def test_dump_states(tmp_path: Path, capsys):
	src = _write(tmp_path, "good.rgn", GOOD)
	assert main([str(src), "--dump-states"]) == 0
	out = capsys.readouterr().out.splitlines()
	assert out[0].startswith(f"{src}:serve[entry]: Γ{{p: IsoPair @r")
	assert any(line.startswith(f"{src}:serve[1]: ") and "left ↣ ⊥, right ↣ ⊥" in line for line in out)
	assert len(out) == 5


def test_dump_states_json(tmp_path: Path, capsys):
	src = _write(tmp_path, "good.rgn", GOOD)
	assert main([str(src), "--dump-states", "--json"]) == 0
	payload = json.loads(capsys.readouterr().out)
	paths = [s["path"] for s in payload["states"]]
	assert paths == [[], [0], [1], [2], [3]]
	assert payload["states"][0]["function"] == "serve"


def test_initializer_fields_flag(tmp_path: Path, capsys):
	src = _write(tmp_path, "init.rgn", INIT)
	assert main(["--json", str(src)]) == 1
	codes = [d["code"] for d in json.loads(capsys.readouterr().out)["diagnostics"]]
	assert codes == ["contract-mismatch"]
	assert main(["--json", "--initializer-fields", "empty", str(src)]) == 1
	codes = [d["code"] for d in json.loads(capsys.readouterr().out)["diagnostics"]]
	assert codes == ["tree-invariant-violation"]


def test_missing_input_exits_two(tmp_path: Path, capsys):
	assert main([str(tmp_path / "nope.rgn")]) == 2
	assert "cannot read" in capsys.readouterr().err


def test_budgets_must_be_positive(tmp_path: Path):
	src = _write(tmp_path, "good.rgn", GOOD)
	with pytest.raises(SystemExit) as exc:
		main([str(src), "--match-budget", "0"])
	assert exc.value.code == 2


def test_undecodable_input_exits_two(tmp_path: Path, capsys):
	src = tmp_path / "latin.rgn"
	src.write_bytes(b"\xff\xfe type Item\n")
	good = _write(tmp_path, "good.rgn", GOOD)
	assert main([str(good), str(src)]) == 2
	captured = capsys.readouterr()
	assert f"regionc: error: cannot read {src}" in captured.err
	assert captured.out == ""
