# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
regionc: command-line driver for the region checker.

Pipeline per input file:

  .rgn text -> parser (types, signatures, HIR bodies)
            -> signature validation
            -> region check of every body

Diagnostics print to stderr (or as one JSON document with `--json`). The exit
code is 0 when no error-severity diagnostic was produced, 1 otherwise and 2
for usage errors (bad flags, unreadable inputs).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from isoregion.regionc.core.diagnostics import Diagnostic, has_errors
from isoregion.regionc.core.limits import DEFAULT_LIMITS, InitializerFields, RegionLimits
from isoregion.regionc.parser import parse_region_program
from isoregion.regionc.region_checker_pass import RegionCheckResult, check_program

logger = logging.getLogger(__name__)


def _diag_to_json(diag: Diagnostic, phase: str, source: Path) -> dict:
	"""Render a Diagnostic to a structured JSON-friendly dict."""
	line = getattr(diag.span, "line", None) if diag.span is not None else None
	column = getattr(diag.span, "column", None) if diag.span is not None else None
	file = None
	if diag.span is not None:
		file = getattr(diag.span, "file", None)
	if file is None:
		file = str(source)
	phase = getattr(diag, "phase", None) or phase
	notes = list(getattr(diag, "notes", []) or [])
	return {
		"phase": phase,
		"code": diag.code,
		"message": diag.message,
		"severity": diag.severity,
		"file": file,
		"line": line,
		"column": column,
		"subject": diag.subject,
		"notes": notes,
	}


def _states_to_json(result: RegionCheckResult, source: Path) -> List[Dict[str, Any]]:
	return [
		{
			"file": str(source),
			"function": ann.function,
			"path": list(ann.path),
			"line": ann.span.line,
			"state": ann.text,
		}
		for ann in result.annotations
	]


def _positive(text: str) -> int:
	value = int(text)
	if value < 1:
		raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
	return value


def main(argv: list[str] | None = None) -> int:
	"""
	Check `.rgn` files for region-ownership errors.

	With --json, prints structured diagnostics (phase/code/message/severity/
	file/line/column) and an exit_code; otherwise prints human-readable
	messages to stderr. --dump-states adds the inferred state after every
	statement.
	"""
	parser = argparse.ArgumentParser(prog="regionc", description="static region-ownership checker")
	parser.add_argument("source", type=Path, nargs="+", help="Path(s) to .rgn input file(s)")
	parser.add_argument(
		"--json",
		action="store_true",
		help="Emit diagnostics as JSON (phase/code/message/severity/file/line/column)",
	)
	parser.add_argument("--dump-states", action="store_true", help="Print the state (Γ, ℋ, Φ) after each statement")
	parser.add_argument(
		"--match-budget",
		type=_positive,
		default=DEFAULT_LIMITS.match_budget,
		help="Transformation steps tried per contract match (default: %(default)s)",
	)
	parser.add_argument(
		"--join-budget",
		type=_positive,
		default=DEFAULT_LIMITS.join_budget,
		help="Fallback attempts per branch join (default: %(default)s)",
	)
	parser.add_argument(
		"--loop-iterations",
		type=_positive,
		default=DEFAULT_LIMITS.loop_iterations,
		help="Loop-head fixpoint iterations before giving up (default: %(default)s)",
	)
	parser.add_argument(
		"--initializer-fields",
		choices=[mode.value for mode in InitializerFields],
		default=DEFAULT_LIMITS.initializer_fields.value,
		help="Entry state of an initializer's isolated fields (default: %(default)s)",
	)
	parser.add_argument("-v", "--verbose", action="store_true", help="Log transformation traces (DEBUG)")
	args = parser.parse_args(argv)

	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.WARNING,
		stream=sys.stderr,
		format="%(levelname)s %(name)s: %(message)s",
	)
	limits = RegionLimits(
		match_budget=args.match_budget,
		join_budget=args.join_budget,
		loop_iterations=args.loop_iterations,
		initializer_fields=InitializerFields(args.initializer_fields),
	)

	texts: Dict[Path, str] = {}
	unreadable = False
	for path in args.source:
		try:
			texts[path] = path.read_text(encoding="utf-8")
		except (OSError, UnicodeDecodeError) as err:
			print(f"regionc: error: cannot read {path}: {err}", file=sys.stderr)
			unreadable = True
	if unreadable:
		return 2

	reported: List[Dict[str, Any]] = []
	states: List[Dict[str, Any]] = []
	failed = False
	for source in args.source:
		program, diags = parse_region_program(texts[source], file=str(source))
		result = RegionCheckResult(diagnostics=list(diags))
		if program is not None:
			logger.debug("%s: %d type(s), %d signature(s), %d body(ies)", source, len(program.types.names()), len(program.signatures), len(program.functions))
			result = check_program(program, limits)
		failed = failed or has_errors(result.diagnostics)
		if args.json:
			reported.extend(_diag_to_json(d, "regioncheck", source) for d in result.diagnostics)
			if args.dump_states:
				states.extend(_states_to_json(result, source))
			continue
		if args.dump_states:
			for ann in result.annotations:
				where = ".".join(str(i) for i in ann.path) or "entry"
				print(f"{source}:{ann.function}[{where}]: {ann.text}")
		for d in result.diagnostics:
			print(d.format_human(), file=sys.stderr)

	exit_code = 1 if failed else 0
	if args.json:
		payload: Dict[str, Any] = {"exit_code": exit_code, "diagnostics": reported}
		if args.dump_states:
			payload["states"] = states
		print(json.dumps(payload, ensure_ascii=False))
	return exit_code


if __name__ == "__main__":
	sys.exit(main())
