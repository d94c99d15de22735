# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
`.rgn` front end: text → (Program, diagnostics).

Entry points never raise on bad input: grammar errors (lark
`UnexpectedInput`), declaration errors (`RegionDeclError`) and unreadable files
come back as parser-phase diagnostics with a `None` program.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

from lark.exceptions import UnexpectedInput

from isoregion.regionc.core.diagnostics import Diagnostic
from isoregion.regionc.core.span import Span
from isoregion.regionc.hir import Program
from . import parser as _parser
from .parser import RegionDeclError


def _position(value: object) -> Optional[int]:
	# lark reports -1 for positions at end of input.
	if isinstance(value, int) and value > 0:
		return value
	return None


def parse_region_program(source: str, file: Optional[str] = None) -> Tuple[Optional[Program], List[Diagnostic]]:
	"""Parse `.rgn` source into checker inputs."""
	try:
		return _parser.parse_program(source, file=file), []
	except RegionDeclError as err:
		return None, [Diagnostic(message=str(err), code="parse-error", phase="parser", severity="error", span=err.loc)]
	except UnexpectedInput as err:
		lines = [line.strip() for line in str(err).strip().splitlines() if line.strip()]
		span = Span(
			file=file,
			line=_position(getattr(err, "line", None)),
			column=_position(getattr(err, "column", None)),
		)
		return None, [Diagnostic(
			message=lines[0] if lines else "syntax error",
			code="parse-error",
			phase="parser",
			severity="error",
			span=span,
			notes=lines[1:],
		)]


def parse_region_file(path: Path) -> Tuple[Optional[Program], List[Diagnostic]]:
	"""Parse a `.rgn` file; spans carry its path."""
	path = Path(path)
	try:
		source = path.read_text(encoding="utf-8")
	except (OSError, UnicodeDecodeError) as err:
		return None, [Diagnostic(
			message=f"cannot read {path}: {err}",
			code="read-error",
			phase="parser",
			severity="error",
			span=Span(file=str(path)),
		)]
	return parse_region_program(source, file=str(path))


__all__ = ["parse_region_program", "parse_region_file", "RegionDeclError"]
