# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lark front end for the `.rgn` elaborated-IR format.

The grammar lives next to this module (`grammar.lark`). Parsing goes straight
to checker inputs: a `TypeTable`, one `FnSignature` per declared function and
an HIR `FnDecl` for every function that has a body. Problems the grammar
cannot express (duplicate declarations, assignment to a non-place) raise
`RegionDeclError`, which the package entry points turn into parser-phase
diagnostics.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from lark import Lark, Token, Tree

from isoregion.regionc import hir as H
from isoregion.regionc.core.span import Span
from isoregion.regionc.core.types_core import UNIT_TYPE, FieldDecl, StructDecl, TypeTable
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

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="program",
	propagate_positions=True,
	maybe_placeholders=False,
)


class RegionDeclError(ValueError):
	"""
	User-facing declaration error found while building checker inputs.

	A `ValueError` subclass carrying a best-effort location so the driver can
	report it as a pinned parser diagnostic instead of a traceback.
	"""

	def __init__(self, message: str, *, loc: Span) -> None:
		super().__init__(message)
		self.loc = loc


def parse_program(source: str, file: Optional[str] = None) -> H.Program:
	tree = _PARSER.parse(source)
	return _ProgramBuilder(file).build(tree)


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	if isinstance(node, Token):
		return node.type
	return str(node)


def _trees(tree: Tree) -> List[Tree]:
	return [c for c in tree.children if isinstance(c, Tree)]


def _tokens(tree: Tree, kind: Optional[str] = None) -> List[Token]:
	return [c for c in tree.children if isinstance(c, Token) and (kind is None or c.type == kind)]


class _ProgramBuilder:
	"""Walks the parse tree once; `file` only feeds spans."""

	def __init__(self, file: Optional[str]) -> None:
		self.file = file

	def _loc(self, node: Tree | Token) -> Span:
		if isinstance(node, Token):
			return Span(file=self.file, line=node.line, column=node.column)
		return Span.from_meta(node.meta, self.file)

	# Declarations

	def build(self, tree: Tree) -> H.Program:
		types = TypeTable()
		type_locs: Dict[str, Span] = {}
		signatures: Dict[str, FnSignature] = {}
		functions: List[H.FnDecl] = []
		fn_items = []
		for item in _trees(tree):
			kind = _name(item)
			if kind == "type_decl":
				decl = self._build_type(item)
				if decl.name in type_locs or decl.name == UNIT_TYPE:
					raise RegionDeclError(f"type '{decl.name}' declared twice", loc=self._loc(item))
				type_locs[decl.name] = self._loc(item)
				types.declare(decl)
			elif kind == "fn_decl":
				fn_items.append(item)
			else:
				raise TypeError(f"unexpected top-level node {kind}")
		for item in fn_items:
			sig, body = self._build_fn(item)
			if sig.name in signatures:
				raise RegionDeclError(f"function '{sig.name}' declared twice", loc=sig.loc)
			signatures[sig.name] = sig
			if body is not None:
				functions.append(H.FnDecl(name=sig.name, body=body, loc=sig.loc))
		return H.Program(types=types, signatures=signatures, functions=functions)

	def _build_type(self, tree: Tree) -> StructDecl:
		immutable = bool(_tokens(tree, "IMMUTABLE"))
		name = _tokens(tree, "NAME")[0].value
		fields: Dict[str, FieldDecl] = {}
		for field_list in _trees(tree):
			for fd in _trees(field_list):
				names = _tokens(fd, "NAME")
				fname, ftype = names[0].value, names[1].value
				if fname in fields:
					raise RegionDeclError(f"field '{fname}' declared twice in type '{name}'", loc=self._loc(fd))
				fields[fname] = FieldDecl(fname, ftype, isolated=bool(_tokens(fd, "ISO")))
		if immutable and any(f.isolated for f in fields.values()):
			raise RegionDeclError(f"immutable type '{name}' cannot declare isolated fields", loc=self._loc(tree))
		return StructDecl(name, fields, immutable=immutable)

	def _build_fn(self, tree: Tree):
		loc = self._loc(tree)
		name = _tokens(tree, "NAME")[0].value
		params: List[ParamSig] = []
		result = ResultSig()
		entry: List[ShapeFact] = []
		exit_: List[ShapeFact] = []
		body: Optional[H.HBlock] = None
		group_id = 0
		for child in _trees(tree):
			kind = _name(child)
			if kind == "param":
				params.append(self._build_param(child, None))
			elif kind == "group":
				for p in _trees(child):
					params.append(self._build_param(p, group_id))
				group_id += 1
			elif kind == "result":
				names = _tokens(child, "NAME")
				origin = names[1].value if len(names) > 1 else FRESH
				result = ResultSig(names[0].value, origin)
			elif kind == "fact":
				phase = _tokens(child)[0].type
				fact = self._build_fact(child)
				(entry if phase == "ENTRY" else exit_).append(fact)
			elif kind == "block":
				body = self._build_block(child)
		sig = FnSignature(
			name=name,
			params=params,
			result=result,
			entry_shape=entry,
			exit_shape=exit_,
			initializer=bool(_tokens(tree, "INIT")),
			loc=loc,
		)
		return sig, body

	def _build_param(self, tree: Tree, group: Optional[int]) -> ParamSig:
		modes = {_tokens(m)[0].type for m in _trees(tree)}
		names = _tokens(tree, "NAME")
		return ParamSig(
			name=names[0].value,
			type_name=names[1].value,
			mode=ParamMode.CONSUMED if "CONSUMING" in modes else ParamMode.PRESERVED,
			group=group,
			pinned="PINNED" in modes,
		)

	def _build_fact(self, tree: Tree) -> ShapeFact:
		names = _tokens(tree, "NAME")
		target_tree = _trees(tree)[0]
		label = _tokens(target_tree, "NAME")
		target = ShapeTarget(label[0].value) if label else DEAD
		return ShapeFact(names[0].value, names[1].value, target, self._loc(tree))

	# Statements

	def _build_block(self, tree: Tree) -> H.HBlock:
		return H.HBlock(statements=[self._build_stmt(s) for s in _trees(tree)], loc=self._loc(tree))

	def _build_stmt(self, tree: Tree) -> H.HStmt:
		kind = _name(tree)
		loc = self._loc(tree)
		parts = _trees(tree)
		if kind == "let_stmt":
			return H.HLet(_tokens(tree, "NAME")[0].value, self._build_expr(parts[0]), loc=loc)
		if kind == "assign_stmt":
			target = self._build_expr(parts[0])
			if not isinstance(target, (H.HVar, H.HField)):
				raise RegionDeclError("assignment target must be a variable or a field", loc=loc)
			return H.HAssign(target, self._build_expr(parts[1]), loc=loc)
		if kind == "expr_stmt":
			return H.HExprStmt(self._build_expr(parts[0]), loc=loc)
		if kind == "if_stmt":
			else_block = None
			if len(parts) > 2:
				tail = parts[2]
				if _name(tail) == "if_stmt":
					else_block = H.HBlock([self._build_stmt(tail)], loc=self._loc(tail))
				else:
					else_block = self._build_block(tail)
			return H.HIf(self._build_expr(parts[0]), self._build_block(parts[1]), else_block, loc=loc)
		if kind == "while_stmt":
			return H.HWhile(self._build_expr(parts[0]), self._build_block(parts[1]), loc=loc)
		if kind == "return_stmt":
			return H.HReturn(self._build_expr(parts[0]) if parts else None, loc=loc)
		if kind == "block":
			return self._build_block(tree)
		raise TypeError(f"unexpected statement node {kind}")

	# Expressions

	def _build_expr(self, node: Tree) -> H.HExpr:
		kind = _name(node)
		loc = self._loc(node)
		if kind == "var":
			return H.HVar(_tokens(node, "NAME")[0].value, loc=loc)
		if kind == "field":
			return H.HField(self._build_expr(_trees(node)[0]), _tokens(node, "NAME")[0].value, loc=loc)
		if kind == "call":
			return self._build_call(node)
		if kind == "new":
			return H.HNew(_tokens(node, "NAME")[0].value, loc=loc)
		if kind == "opaque":
			return H.HOpaque(loc=loc)
		if kind == "await_expr":
			return H.HAwait(self._build_expr(_trees(node)[0]), loc=loc)
		if kind == "spawn_expr":
			return H.HSpawn(self._build_call(_trees(node)[0]), loc=loc)
		raise TypeError(f"unexpected expression node {kind}")

	def _build_call(self, node: Tree) -> H.HCall:
		return H.HCall(
			_tokens(node, "NAME")[0].value,
			[self._build_expr(arg) for arg in _trees(node)],
			loc=self._loc(node),
		)


__all__ = ["RegionDeclError", "parse_program"]
