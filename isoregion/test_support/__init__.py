# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Builders shared by the region checker tests.

HIR is verbose to spell out by hand; these helpers accept dotted strings for
places (`"p.left"` is `HField(HVar("p"), "left")`) and keep signatures to one
line. Text programs go through the real `.rgn` parser.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Union

from isoregion.regionc import hir as H
from isoregion.regionc.core.diagnostics import Diagnostic, RegionErrorKind
from isoregion.regionc.core.limits import DEFAULT_LIMITS, RegionLimits
from isoregion.regionc.core.types_core import FieldDecl, TypeTable
from isoregion.regionc.parser import parse_region_program
from isoregion.regionc.region_checker_pass import RegionCheckResult, check_program
from isoregion.regionc.signatures import (
	DEAD,
	FRESH,
	FnSignature,
	ParamMode,
	ParamSig,
	ResultSig,
	ShapeFact,
	ShapeTarget,
)

ExprLike = Union[str, H.HExpr]


def demo_types() -> TypeTable:
	"""Item, Int, Pair (plain fields), IsoPair (isolated fields) and a Node list cell."""
	table = TypeTable()
	table.declare_struct("Int", immutable=True)
	table.declare_struct("Item")
	table.declare_struct("Pair", FieldDecl("first", "Item"), FieldDecl("second", "Item"))
	table.declare_struct(
		"IsoPair",
		FieldDecl("left", "Item", isolated=True),
		FieldDecl("right", "Item", isolated=True),
	)
	table.declare_struct("Node", FieldDecl("next", "Node", isolated=True), FieldDecl("value", "Int"))
	return table


def param(name: str, type_name: str, *, consuming: bool = False, pinned: bool = False, group: Optional[int] = None) -> ParamSig:
	return ParamSig(
		name=name,
		type_name=type_name,
		mode=ParamMode.CONSUMED if consuming else ParamMode.PRESERVED,
		group=group,
		pinned=pinned,
	)


def fact(text: str) -> ShapeFact:
	"""`"p.left -> dead"` or `"p.left -> @q"`."""
	lhs, rhs = (part.strip() for part in text.split("->"))
	var, field_name = lhs.split(".")
	target = DEAD if rhs == "dead" else ShapeTarget(rhs.lstrip("@"))
	return ShapeFact(var, field_name, target)


def sig(
	name: str,
	*params: ParamSig,
	result: str = "Unit",
	origin: str = FRESH,
	entry: Iterable[str] = (),
	exit: Iterable[str] = (),
	initializer: bool = False,
) -> FnSignature:
	return FnSignature(
		name=name,
		params=list(params),
		result=ResultSig(result, origin),
		entry_shape=[fact(t) for t in entry],
		exit_shape=[fact(t) for t in exit],
		initializer=initializer,
	)


# HIR

def expr(value: ExprLike) -> H.HExpr:
	if not isinstance(value, str):
		return value
	head, *fields = value.split(".")
	out: H.HExpr = H.HVar(head)
	for name in fields:
		out = H.HField(out, name)
	return out


def call(fn: str, *args: ExprLike) -> H.HCall:
	return H.HCall(fn, [expr(a) for a in args])


def spawn(fn: str, *args: ExprLike) -> H.HSpawn:
	return H.HSpawn(call(fn, *args))


def await_(subject: ExprLike) -> H.HAwait:
	return H.HAwait(expr(subject))


def new(type_name: str) -> H.HNew:
	return H.HNew(type_name)


def opaque() -> H.HOpaque:
	return H.HOpaque()


def let(name: str, value: ExprLike) -> H.HLet:
	return H.HLet(name, expr(value))


def assign(target: str, value: ExprLike) -> H.HAssign:
	return H.HAssign(expr(target), expr(value))


def do(value: ExprLike) -> H.HExprStmt:
	return H.HExprStmt(expr(value))


def block(*stmts: H.HStmt) -> H.HBlock:
	return H.HBlock(list(stmts))


def if_(then: List[H.HStmt], orelse: Optional[List[H.HStmt]] = None) -> H.HIf:
	return H.HIf(opaque(), block(*then), block(*orelse) if orelse is not None else None)


def while_(*body: H.HStmt) -> H.HWhile:
	return H.HWhile(opaque(), block(*body))


def ret(value: Optional[ExprLike] = None) -> H.HReturn:
	return H.HReturn(expr(value) if value is not None else None)


def program(types: TypeTable, signatures: Iterable[FnSignature], **bodies: List[H.HStmt]) -> H.Program:
	sigs = {s.name: s for s in signatures}
	functions = [H.FnDecl(name, block(*stmts)) for name, stmts in bodies.items()]
	return H.Program(types=types, signatures=sigs, functions=functions)


# Running

def check(prog: H.Program, limits: RegionLimits = DEFAULT_LIMITS) -> RegionCheckResult:
	return check_program(prog, limits)


def check_source(source: str, limits: RegionLimits = DEFAULT_LIMITS) -> RegionCheckResult:
	prog, diags = parse_region_program(source, file="<test>")
	if diags:
		raise AssertionError("test program does not parse:\n" + "\n".join(d.format_human() for d in diags))
	return check_program(prog, limits)


def codes(diags: Iterable[Diagnostic]) -> List[str]:
	return [d.code for d in diags]


def kinds(result: RegionCheckResult) -> List[RegionErrorKind]:
	return [d.kind for d in result.diagnostics]


__all__ = [
	"demo_types",
	"param",
	"fact",
	"sig",
	"expr",
	"call",
	"spawn",
	"await_",
	"new",
	"opaque",
	"let",
	"assign",
	"do",
	"block",
	"if_",
	"while_",
	"ret",
	"program",
	"check",
	"check_source",
	"codes",
	"kinds",
]
