# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Nominal type declarations consumed by the region checker.

The checker does no ordinary type inference: it only needs to know, per
nominal type, which fields exist, which of them are declared isolated, and
whether the type is deeply immutable (values of such types never occupy a
region and may be shared freely).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional


UNIT_TYPE = "Unit"
FUTURE_PREFIX = "Future"


@dataclass(frozen=True)
class FieldDecl:
	"""One declared field: its type name and the isolated flag."""

	name: str
	type_name: str
	isolated: bool = False


@dataclass
class StructDecl:
	"""A nominal type with named fields."""

	name: str
	fields: Dict[str, FieldDecl] = field(default_factory=dict)
	immutable: bool = False

	def isolated_fields(self) -> List[str]:
		"""Isolated field names in declaration order."""
		return [f.name for f in self.fields.values() if f.isolated]


def future_type(result_type: str) -> str:
	return f"{FUTURE_PREFIX}[{result_type}]"


def future_result_type(type_name: str) -> Optional[str]:
	"""Return `T` for `Future[T]`, otherwise None."""
	prefix = FUTURE_PREFIX + "["
	if type_name.startswith(prefix) and type_name.endswith("]"):
		return type_name[len(prefix):-1]
	return None


class TypeTable:
	"""
	Name-indexed table of struct declarations.

	`Unit` is always present and immutable. Unknown type names are treated as
	opaque mutable types with no fields, which keeps the checker conservative
	when a declaration is missing.
	"""

	def __init__(self, decls: Iterable[StructDecl] = ()) -> None:
		self._decls: Dict[str, StructDecl] = {}
		self.declare(StructDecl(UNIT_TYPE, immutable=True))
		for decl in decls:
			self.declare(decl)

	def declare(self, decl: StructDecl) -> StructDecl:
		self._decls[decl.name] = decl
		return decl

	def declare_struct(self, name: str, *fields: FieldDecl, immutable: bool = False) -> StructDecl:
		"""Convenience builder used by tests and the parser."""
		return self.declare(StructDecl(name, {f.name: f for f in fields}, immutable=immutable))

	def get(self, name: str) -> Optional[StructDecl]:
		return self._decls.get(name)

	def __contains__(self, name: str) -> bool:
		return name in self._decls

	def names(self) -> List[str]:
		return list(self._decls)

	def is_immutable(self, type_name: str) -> bool:
		"""Deeply immutable values carry no region (futures are tracked separately)."""
		if future_result_type(type_name) is not None:
			return True
		decl = self._decls.get(type_name)
		return decl is not None and decl.immutable

	def field(self, type_name: str, field_name: str) -> Optional[FieldDecl]:
		decl = self._decls.get(type_name)
		if decl is None:
			return None
		return decl.fields.get(field_name)

	def is_isolated(self, type_name: str, field_name: str) -> bool:
		fd = self.field(type_name, field_name)
		return fd is not None and fd.isolated

	def isolated_fields(self, type_name: str) -> List[str]:
		decl = self._decls.get(type_name)
		return decl.isolated_fields() if decl is not None else []


__all__ = [
	"FieldDecl",
	"StructDecl",
	"TypeTable",
	"UNIT_TYPE",
	"future_type",
	"future_result_type",
]
