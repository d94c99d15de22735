# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Diagnostic structure shared by the parser, the region checker and the driver.

Region failures are not Python exceptions: every irrecoverable problem in a
function body becomes one `Diagnostic` whose `code` is a `RegionErrorKind`
value, and checking continues from a recovered state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .span import Span


class RegionErrorKind(Enum):
	"""Failure kinds surfaced by the region checker."""

	USE_AFTER_TRANSFER = "use-after-transfer"
	CONTRACT_MISMATCH = "contract-mismatch"
	TREE_INVARIANT_VIOLATION = "tree-invariant-violation"
	UNIFICATION_FAILURE = "unification-failure"
	DANGLING_HANDLE = "dangling-handle"


@dataclass
class Diagnostic:
	"""Represents a checker diagnostic (error/note)."""

	message: str
	code: str | None = None
	# Phase label: "parser" for input-format errors, "regioncheck" otherwise.
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)  # Span() denotes unknown.
	notes: list[str] = field(default_factory=list)
	# Offending variable/field, when the failure names one.
	subject: str | None = None

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	@property
	def kind(self) -> RegionErrorKind | None:
		"""Return the region failure kind encoded in `code`, if any."""
		try:
			return RegionErrorKind(self.code)
		except ValueError:
			return None

	def format_human(self) -> str:
		head = f"{self.span.describe()}: {self.severity}"
		if self.code:
			head += f"[{self.code}]"
		lines = [f"{head}: {self.message}"]
		lines.extend(f"  note: {note}" for note in self.notes)
		return "\n".join(lines)


def has_errors(diagnostics: list[Diagnostic]) -> bool:
	return any(d.severity == "error" for d in diagnostics)


__all__ = ["Diagnostic", "RegionErrorKind", "has_errors"]
