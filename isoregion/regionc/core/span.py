# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source spans attached to HIR statements and region diagnostics.

The checker never owns source text; spans are whatever the producer of the
elaborated body hands us (the `.rgn` parser fills file/line/column, hand-built
HIR in tests usually leaves them empty).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Best-effort file/line/column location (Span() denotes unknown)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None

	@classmethod
	def from_meta(cls, meta: Any, file: Optional[str] = None) -> "Span":
		"""
		Build a Span from a lark tree `meta` (or anything exposing line/column).

		lark leaves `meta.empty` set for rules that matched no tokens; those map
		to an unknown span instead of raising on the missing attributes.
		"""
		if meta is None or getattr(meta, "empty", False):
			return cls(file=file)
		return cls(
			file=file,
			line=getattr(meta, "line", None),
			column=getattr(meta, "column", None),
			end_line=getattr(meta, "end_line", None),
			end_column=getattr(meta, "end_column", None),
		)

	def is_known(self) -> bool:
		return self.line is not None

	def describe(self) -> str:
		"""Render as `file:line:col` with whatever parts are known."""
		parts = [self.file or "<input>"]
		if self.line is not None:
			parts.append(str(self.line))
			if self.column is not None:
				parts.append(str(self.column))
		return ":".join(parts)


__all__ = ["Span"]
