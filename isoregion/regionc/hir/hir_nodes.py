# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Elaborated function bodies as seen by the region checker (HIR).

The HIR is what the surrounding compiler hands over after name resolution and
ordinary typing: bindings, field reads, variable/field assignments, calls,
conditionals, loops, spawns, awaits and returns. Everything the region
analysis does not need (operators, literals of particular values) is folded
into `HOpaque`, which produces a deeply immutable value.

Guiding rules:
- Nodes are purely syntactic; the checker looks types up through bindings
  and the `TypeTable`, never through the nodes.
- Blocks are lexical scopes: bindings introduced inside a block go out of
  scope at its end.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, TYPE_CHECKING

from isoregion.regionc.core.span import Span
if TYPE_CHECKING:
	from isoregion.regionc.core.types_core import TypeTable
	from isoregion.regionc.signatures import FnSignature


class HNode:
	"""Base class for all HIR nodes."""
	pass


class HExpr(HNode):
	"""Base class for all HIR expressions."""
	pass


class HStmt(HNode):
	"""Base class for all HIR statements."""
	pass


# Expressions

@dataclass
class HVar(HExpr):
	"""Reference to a local or parameter."""
	name: str
	loc: Span = field(default_factory=Span)


@dataclass
class HField(HExpr):
	"""Field read `subject.name`."""
	subject: HExpr
	name: str
	loc: Span = field(default_factory=Span)


@dataclass
class HCall(HExpr):
	"""Direct call of a declared function; `fn` names its signature."""
	fn: str
	args: List[HExpr] = field(default_factory=list)
	loc: Span = field(default_factory=Span)


@dataclass
class HNew(HExpr):
	"""Construction of a fresh value of `type_name` (isolated fields empty)."""
	type_name: str
	loc: Span = field(default_factory=Span)


@dataclass
class HOpaque(HExpr):
	"""
	A value the region analysis does not look into.

	Literals, arithmetic and the `?` condition all lower to this; the result is
	a deeply immutable value of `type_name`.
	"""
	type_name: str = "Bool"
	loc: Span = field(default_factory=Span)


@dataclass
class HSpawn(HExpr):
	"""Start `call` as a concurrent computation; evaluates to a future handle."""
	call: HCall
	loc: Span = field(default_factory=Span)


@dataclass
class HAwait(HExpr):
	"""Redeem a future handle (`await h`) or spawn-and-wait (`await f(x)`)."""
	subject: HExpr
	loc: Span = field(default_factory=Span)


# Statements

@dataclass
class HBlock(HStmt):
	"""Ordered list of statements; a lexical scope."""
	statements: List[HStmt] = field(default_factory=list)
	loc: Span = field(default_factory=Span)


@dataclass
class HLet(HStmt):
	"""Binding introduction `let name = value`."""
	name: str
	value: HExpr
	loc: Span = field(default_factory=Span)


@dataclass
class HAssign(HStmt):
	"""Assignment to a variable (strong update) or to a field."""
	target: HExpr  # HVar or HField
	value: HExpr
	loc: Span = field(default_factory=Span)


@dataclass
class HExprStmt(HStmt):
	"""Expression used as a statement (value discarded)."""
	expr: HExpr
	loc: Span = field(default_factory=Span)


@dataclass
class HIf(HStmt):
	"""Two-way branch; both arms join afterwards."""
	cond: HExpr
	then_block: HBlock
	else_block: Optional[HBlock] = None
	loc: Span = field(default_factory=Span)


@dataclass
class HWhile(HStmt):
	"""Loop; the head state is a fixpoint over the back edge."""
	cond: HExpr
	body: HBlock
	loc: Span = field(default_factory=Span)


@dataclass
class HReturn(HStmt):
	"""Return from the function (value None for Unit results)."""
	value: Optional[HExpr] = None
	loc: Span = field(default_factory=Span)


# Declarations

@dataclass
class FnDecl(HNode):
	"""A function body to check against the signature of the same name."""
	name: str
	body: HBlock
	loc: Span = field(default_factory=Span)


@dataclass
class Program(HNode):
	"""
	Everything one checker run consumes.

	`signatures` covers both checked bodies and body-less declarations used
	only at call sites.
	"""
	types: "TypeTable"
	signatures: Dict[str, "FnSignature"] = field(default_factory=dict)
	functions: List[FnDecl] = field(default_factory=list)


__all__ = [
	"HNode",
	"HExpr",
	"HStmt",
	"HVar",
	"HField",
	"HCall",
	"HNew",
	"HOpaque",
	"HSpawn",
	"HAwait",
	"HBlock",
	"HLet",
	"HAssign",
	"HExprStmt",
	"HIf",
	"HWhile",
	"HReturn",
	"FnDecl",
	"Program",
]
