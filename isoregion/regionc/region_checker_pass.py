#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Region-check pass: thread (Γ, ℋ, Φ) through elaborated function bodies.

Scope:
- Builds the entry state from the function's signature, then walks the body
  statement by statement, applying the typing judgment of each HIR form.
- Calls, spawns and returns go through the signature matcher; `if` arms and
  loop back edges go through the branch unifier.
- Every failure becomes a `Diagnostic`; checking continues from a recovered
  state (a fresh region, a discarded future) so later errors still surface.
- Blocks are scopes: a live future whose only holders leave scope is a
  dangling handle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

from isoregion.regionc import hir as H
from isoregion.regionc.core.diagnostics import Diagnostic, RegionErrorKind, has_errors
from isoregion.regionc.core.limits import DEFAULT_LIMITS, RegionLimits
from isoregion.regionc.core.span import Span
from isoregion.regionc.core.types_core import UNIT_TYPE, future_result_type, future_type
from isoregion.regionc.regions.context import Binding, is_hidden
from isoregion.regionc.regions.futures import HandleState
from isoregion.regionc.regions.matcher import ArgValue, SignatureMatcher
from isoregion.regionc.regions.state import RegionState, restrict_scope
from isoregion.regionc.regions.store import IdAllocator, LossKind, LossReason, Tombstone, TombstoneCause
from isoregion.regionc.regions.transforms import Explore, TransformEngine, TransformError
from isoregion.regionc.regions.unify import BranchUnifier, JoinFailure
from isoregion.regionc.signatures import FnSignature, validate_signature

logger = logging.getLogger(__name__)

UNKNOWN_TYPE = "<unknown>"

Path = Tuple[int, ...]


def _region_shape(state: RegionState, rid: int, seen: Set[int]) -> Tuple:
	seen = seen | {rid}
	out = []
	for f, slot in sorted(state.heap.get(rid).children.items()):
		if isinstance(slot, Tombstone):
			out.append((f, slot.cause.value))
		elif slot in seen or slot not in state.heap:
			out.append((f, "?"))
		else:
			out.append((f, _region_shape(state, slot, seen)))
	return tuple(out)


def _var_shape(state: RegionState, name: str) -> Optional[Tuple]:
	"""What a loop head knows about `name`: who it shares a region with and the fields it tracks."""
	b = state.gamma.lookup(name)
	if b is None:
		return None
	if b.region is None:
		return ("value", b.handle is not None)
	if not state.accessible(b):
		return ("lost",)
	return (tuple(state.gamma.vars_in(b.region)), _region_shape(state, b.region, set()))


def _chk_diag(*args, **kwargs):
	if "phase" not in kwargs or kwargs.get("phase") is None:
		kwargs["phase"] = "regioncheck"
	return Diagnostic(*args, **kwargs)


@dataclass
class StateAnnotation:
	"""
	The state after one statement.

	`path` indexes statements: `(i,)` is the i-th statement of the body,
	`(i, 0, j)` the j-th statement of its then-arm (or loop body) and
	`(i, 1, j)` of its else-arm. The empty path is the entry state.
	"""

	function: str
	path: Path
	span: Span
	text: str
	state: RegionState


@dataclass
class RegionCheckResult:
	diagnostics: List[Diagnostic] = field(default_factory=list)
	annotations: List[StateAnnotation] = field(default_factory=list)

	@property
	def ok(self) -> bool:
		return not has_errors(self.diagnostics)

	def state_after(self, function: str, *path: int) -> Optional[RegionState]:
		for ann in self.annotations:
			if ann.function == function and ann.path == tuple(path):
				return ann.state
		return None

	def of_kind(self, kind: RegionErrorKind) -> List[Diagnostic]:
		return [d for d in self.diagnostics if d.code == kind.value]


@dataclass
class RegionChecker:
	"""
	Region checker over one program.

	Inputs:
	- program: type table, region contracts and the bodies to check.
	- limits: search bounds and the initializer mode.
	"""

	program: H.Program
	limits: RegionLimits = DEFAULT_LIMITS
	diagnostics: List[Diagnostic] = field(default_factory=list)
	annotations: List[StateAnnotation] = field(default_factory=list)
	_quiet: int = field(init=False, default=0, repr=False)
	_fn: str = field(init=False, default="", repr=False)
	_sig: Optional[FnSignature] = field(init=False, default=None, repr=False)
	_invalid: Set[str] = field(init=False, default_factory=set, repr=False)

	def __post_init__(self) -> None:
		self.types = self.program.types
		self.engine = TransformEngine(self.limits)
		self.matcher = SignatureMatcher(self.types, self.engine, self.limits)
		self.unifier = BranchUnifier(self.engine, self.limits)

	# Reporting

	def _report(
		self,
		kind: RegionErrorKind | str,
		message: str,
		span: Span | None = None,
		subject: Optional[str] = None,
		notes: Optional[List[str]] = None,
	) -> None:
		"""
		Append an error anchored at `span`.

		Suppressed while a loop head is still being iterated to its fixpoint;
		the final pass over the loop body reports against the settled state.
		"""
		if self._quiet:
			return
		code = kind.value if isinstance(kind, RegionErrorKind) else kind
		self.diagnostics.append(
			_chk_diag(message=message, code=code, span=span or Span(), subject=subject, notes=list(notes or []))
		)

	def _report_all(self, diags: List[Diagnostic]) -> None:
		if not self._quiet:
			self.diagnostics.extend(diags)

	def _report_join(self, failures: List[JoinFailure], span: Span) -> None:
		for failure in failures:
			self._report(RegionErrorKind.UNIFICATION_FAILURE, failure.message, span, subject=failure.subject)

	def _annotate(self, path: Path, span: Span, state: RegionState) -> None:
		if self._quiet:
			return
		self.annotations.append(StateAnnotation(self._fn, path, span, state.render(), state.copy()))

	# Driver

	def check_program(self) -> RegionCheckResult:
		"""Validate every signature, then check every body whose contract is usable."""
		self.diagnostics = []
		self.annotations = []
		self._invalid = set()
		for name in sorted(self.program.signatures):
			sig_diags = validate_signature(self.program.signatures[name], self.types)
			if sig_diags:
				self._invalid.add(name)
				self.diagnostics.extend(sig_diags)
		for fn in self.program.functions:
			sig = self.program.signatures.get(fn.name)
			if sig is None:
				self._report("unknown-function", f"function '{fn.name}' has a body but no signature", fn.loc, subject=fn.name)
				continue
			if fn.name in self._invalid:
				logger.debug("skipping %s: its signature is invalid", fn.name)
				continue
			self.check_function(fn, sig)
		return RegionCheckResult(list(self.diagnostics), list(self.annotations))

	def check_function(self, fn: H.FnDecl, sig: Optional[FnSignature] = None) -> List[Diagnostic]:
		"""Check one body against its contract; returns the diagnostics it produced."""
		sig = sig or self.program.signatures[fn.name]
		start = len(self.diagnostics)
		self._fn = fn.name
		self._sig = sig
		state = RegionState.empty(IdAllocator())
		self.matcher.enter(sig, state)
		self._annotate((), fn.loc, state)
		logger.debug("checking %s", fn.name)
		state = self._check_block(fn.body, state, (), body=True)
		if state.reachable:
			end = fn.body.loc if fn.body.loc.is_known() else fn.loc
			if sig.result.type_name != UNIT_TYPE:
				self._report(
					RegionErrorKind.CONTRACT_MISMATCH,
					f"'{fn.name}' can reach its end without returning a {sig.result.type_name}",
					end,
					subject=fn.name,
				)
			self._report_all(self.matcher.check_exit(state, sig, None, end))
		return self.diagnostics[start:]

	# Statements

	def _check_block(self, block: H.HBlock, state: RegionState, path: Path, *, body: bool = False) -> RegionState:
		outer = set(state.gamma.names())
		for idx, stmt in enumerate(block.statements):
			if not state.reachable:
				break
			here = path + (idx,)
			state = self._check_stmt(stmt, state, here)
			if state.reachable:
				self._enforce_tree(state, stmt.loc)
			self._annotate(here, stmt.loc, state)
		if not body:
			self._close_scope(state, outer, block.loc)
		return state

	def _check_stmt(self, stmt: H.HStmt, state: RegionState, path: Path) -> RegionState:
		if isinstance(stmt, H.HLet):
			value = self._eval(state, stmt.value)
			self._drop_holder(state, stmt.name, stmt.loc)
			self._bind(state, stmt.name, value)
			return state
		if isinstance(stmt, H.HAssign):
			self._assign(state, stmt)
			return state
		if isinstance(stmt, H.HExprStmt):
			self._expr_stmt(state, stmt)
			return state
		if isinstance(stmt, H.HIf):
			return self._if(state, stmt, path)
		if isinstance(stmt, H.HWhile):
			return self._while(state, stmt, path)
		if isinstance(stmt, H.HReturn):
			return self._return(state, stmt)
		if isinstance(stmt, H.HBlock):
			return self._check_block(stmt, state, path + (0,))
		raise AssertionError(f"unsupported HIR statement {type(stmt).__name__} (checker bug)")

	def _close_scope(self, state: RegionState, outer: Set[str], span: Span) -> None:
		"""Unbind the names a block introduced; live futures held only by them dangle."""
		if not state.reachable:
			return
		local = [n for n in state.gamma.names() if n not in outer]
		for name in local:
			b = state.gamma.lookup(name)
			if b is None or b.handle is None:
				continue
			entry = state.futures.get(b.handle)
			if entry is None or entry.state is not HandleState.LIVE:
				continue
			if any(holder not in local for holder in state.gamma.holders_of(b.handle)):
				continue
			self._report(
				RegionErrorKind.DANGLING_HANDLE,
				f"future '{name}' of '{entry.callee}' goes out of scope without being awaited",
				span,
				subject=name,
			)
			self.matcher.discard(state, b.handle)
		for name in local:
			state.gamma.unbind(name)
		state.collect_garbage()

	def _enforce_tree(self, state: RegionState, span: Span) -> None:
		"""Isolated-field edges must form a forest after every statement."""
		for rid, parents in state.heap.tree_violations():
			cut = parents[1:] if len(parents) > 1 else parents
			paths = [f"{state.path_of(parent)}.{f}" for parent, f in cut]
			self._report(
				RegionErrorKind.TREE_INVARIANT_VIOLATION,
				f"region r{rid} is reachable through {len(parents)} isolated fields",
				span,
				subject=paths[0] if paths else f"r{rid}",
			)
			for (parent, f), path in zip(cut, paths):
				state.heap.set_slot(parent, f, Tombstone(TombstoneCause.ALIAS, path))

	def _bind(self, state: RegionState, name: str, value: ArgValue) -> None:
		state.gamma.bind(name, Binding(value.region, value.type_name, value.handle))
		if value.handle is not None:
			entry = state.futures.get(value.handle)
			if entry is not None and not entry.name:
				entry.name = name

	def _drop_holder(self, state: RegionState, name: str, span: Span) -> None:
		"""Overwriting the only holder of a live future leaves nobody to await it."""
		old = state.gamma.lookup(name)
		if old is None or old.handle is None:
			return
		entry = state.futures.get(old.handle)
		if entry is None or entry.state is not HandleState.LIVE:
			return
		if state.gamma.holders_of(old.handle) != [name]:
			return
		self._report(
			RegionErrorKind.DANGLING_HANDLE,
			f"assignment to '{name}' drops live future {entry.label()} of '{entry.callee}'",
			span,
			subject=name,
		)
		self.matcher.discard(state, old.handle)

	def _assign(self, state: RegionState, stmt: H.HAssign) -> None:
		target = stmt.target
		if isinstance(target, H.HVar):
			value = self._eval(state, stmt.value)
			if target.name not in state.gamma or is_hidden(target.name):
				self._report("unknown-name", f"assignment to undeclared variable '{target.name}'", stmt.loc, subject=target.name)
			self._drop_holder(state, target.name, stmt.loc)
			self._bind(state, target.name, value)
			return
		if isinstance(target, H.HField):
			self._assign_field(state, target, stmt.value, stmt.loc)
			return
		raise AssertionError(f"assignment target {type(target).__name__} is not a place (checker bug)")

	def _assign_field(self, state: RegionState, target: H.HField, value_expr: H.HExpr, span: Span) -> None:
		value = self._eval(state, value_expr)
		subj = self._eval(state, target.subject)
		text = f"{subj.text}.{target.name}"
		fd = self.types.field(subj.type_name, target.name)
		if fd is None:
			if subj.type_name in self.types:
				self._report("unknown-field", f"type '{subj.type_name}' has no field '{target.name}'", span, subject=text)
			return
		if subj.region is None:
			self._report("immutable-assign", f"cannot assign '{text}': '{subj.text}' is deeply immutable", span, subject=text)
			return
		heap = state.heap
		if value.region is not None and value.region not in heap:
			return
		if not fd.isolated:
			# The stored value may now reach and be reached from the subject.
			if value.region is None or value.region == subj.region or self.types.is_immutable(fd.type_name):
				return
			self.engine.merge_regions(state, subj.region, value.region, cause=TombstoneCause.ALIAS, detail=text)
			return
		if heap.get(subj.region).pinned:
			self._report(
				RegionErrorKind.CONTRACT_MISMATCH,
				f"cannot assign isolated field '{text}': the region of '{subj.text}' is pinned",
				span,
				subject=text,
			)
			return
		if value.region is None:
			heap.set_slot(subj.region, target.name, None)
			return
		if value.region == subj.region or value.region in heap.ancestors(subj.region):
			self._report(
				RegionErrorKind.TREE_INVARIANT_VIOLATION,
				f"assigning '{value.text}' to '{text}' would make its region reachable from itself",
				span,
				subject=text,
			)
			return
		heap.set_slot(subj.region, target.name, value.region)
		for parent, f in heap.parents_of(value.region):
			if (parent, f) != (subj.region, target.name):
				heap.set_slot(parent, f, Tombstone(TombstoneCause.ALIAS, text))
				logger.debug("r%d.%s aliased by %s", parent, f, text)

	def _expr_stmt(self, state: RegionState, stmt: H.HExprStmt) -> None:
		value = self._eval(state, stmt.expr)
		if value.handle is None or not isinstance(stmt.expr, H.HSpawn):
			return
		entry = state.futures.get(value.handle)
		if entry is not None and entry.state is HandleState.LIVE:
			self._report(
				RegionErrorKind.DANGLING_HANDLE,
				f"result of spawning '{entry.callee}' is discarded without being awaited",
				stmt.loc,
				subject=entry.callee,
			)
			self.matcher.discard(state, value.handle)

	def _if(self, state: RegionState, stmt: H.HIf, path: Path) -> RegionState:
		self._eval(state, stmt.cond)
		scope = state.gamma.names()
		then_state = self._check_block(stmt.then_block, state.copy(), path + (0,))
		else_state = state.copy()
		if stmt.else_block is not None:
			else_state = self._check_block(stmt.else_block, else_state, path + (1,))
		joined = self.unifier.unify([then_state, else_state], scope)
		self._report_join(joined.failures, stmt.loc)
		return joined.state

	def _while(self, state: RegionState, stmt: H.HWhile, path: Path) -> RegionState:
		"""
		Iterate the loop head to a fixpoint, then check the body once against it.

		The head is the join of the state before the loop with every back edge,
		compared modulo region renaming. Diagnostics are only kept from the last
		pass, so errors are reported once and against the settled head.
		"""
		scope = state.gamma.names()
		head = restrict_scope(state, scope)
		prev = head
		settled = False
		self._quiet += 1
		try:
			for _ in range(self.limits.loop_iterations):
				body_in = head.copy()
				self._eval(body_in, stmt.cond)
				back = self._check_block(stmt.body, body_in, path + (0,))
				nxt = self.unifier.unify([head, back], scope).state
				if nxt.canonical_key() == head.canonical_key():
					settled = True
					break
				prev, head = head, nxt
		finally:
			self._quiet -= 1
		if not settled:
			visible = [n for n in scope if not is_hidden(n)]
			changed = [n for n in visible if _var_shape(prev, n) != _var_shape(head, n)]
			self._report(
				RegionErrorKind.UNIFICATION_FAILURE,
				f"loop does not settle within {self.limits.loop_iterations} iterations",
				stmt.loc,
				subject=(changed or visible or ["<loop>"])[0],
				notes=["the region shape at the loop head depends on the iteration count"],
			)
		body_in = head.copy()
		self._eval(body_in, stmt.cond)
		exit_state = body_in.copy()
		back = self._check_block(stmt.body, body_in, path + (0,))
		self._report_join(self.unifier.unify([head, back], scope).failures, stmt.loc)
		return exit_state

	def _return(self, state: RegionState, stmt: H.HReturn) -> RegionState:
		sig = self._sig
		value = self._eval(state, stmt.value) if stmt.value is not None else None
		if value is None and sig.result.type_name != UNIT_TYPE:
			self._report(
				RegionErrorKind.CONTRACT_MISMATCH, f"'{sig.name}' must return a {sig.result.type_name}", stmt.loc, subject=sig.name
			)
		elif value is not None and sig.result.type_name == UNIT_TYPE:
			self._report(
				RegionErrorKind.CONTRACT_MISMATCH,
				f"'{sig.name}' returns Unit but a value is returned",
				stmt.loc,
				subject=value.text,
			)
		self._report_all(self.matcher.check_exit(state, sig, value, stmt.loc))
		state.reachable = False
		return state

	# Expressions

	def _eval(self, state: RegionState, expr: H.HExpr) -> ArgValue:
		"""Evaluate `expr` in `state` (mutating it) and return where its value lives."""
		if isinstance(expr, H.HVar):
			return self._eval_var(state, expr)
		if isinstance(expr, H.HField):
			return self._eval_field(state, expr)
		if isinstance(expr, H.HCall):
			return self._eval_call(state, expr)
		if isinstance(expr, H.HNew):
			return self._fresh_value(state, expr.type_name, f"new {expr.type_name}")
		if isinstance(expr, H.HOpaque):
			return ArgValue(None, expr.type_name, "?")
		if isinstance(expr, H.HSpawn):
			value = self._spawn(state, expr.call, expr.loc)
			if value is None:
				return ArgValue(None, future_type(UNKNOWN_TYPE), f"spawn {expr.call.fn}(...)")
			return value
		if isinstance(expr, H.HAwait):
			return self._eval_await(state, expr)
		raise AssertionError(f"unsupported HIR expression {type(expr).__name__} (checker bug)")

	def _fresh_value(self, state: RegionState, type_name: str, text: str) -> ArgValue:
		if self.types.is_immutable(type_name):
			return ArgValue(None, type_name, text)
		return ArgValue(state.heap.fresh(), type_name, text)

	def _eval_var(self, state: RegionState, expr: H.HVar) -> ArgValue:
		b = state.gamma.lookup(expr.name)
		if b is None or is_hidden(expr.name):
			self._report("unknown-name", f"unknown variable '{expr.name}'", expr.loc, subject=expr.name)
			return ArgValue(state.heap.fresh(), UNKNOWN_TYPE, expr.name)
		if not state.accessible(b):
			self._report_loss(state, state.loss_of(b), f"'{expr.name}'", expr.loc, expr.name)
			b = b.with_region(state.heap.fresh())
			state.gamma.bind(expr.name, b)
		return ArgValue(b.region, b.type_name, expr.name, b.handle)

	def _eval_field(self, state: RegionState, expr: H.HField) -> ArgValue:
		subj = self._eval(state, expr.subject)
		text = f"{subj.text}.{expr.name}"
		fd = self.types.field(subj.type_name, expr.name)
		if fd is None:
			if subj.type_name in self.types:
				self._report("unknown-field", f"type '{subj.type_name}' has no field '{expr.name}'", expr.loc, subject=text)
			return ArgValue(state.heap.fresh(), UNKNOWN_TYPE, text)
		if subj.region is None or self.types.is_immutable(fd.type_name):
			return ArgValue(None, fd.type_name, text)
		if not fd.isolated:
			return ArgValue(subj.region, fd.type_name, text)
		rec = state.heap.get(subj.region)
		slot = rec.children.get(expr.name)
		if isinstance(slot, Tombstone):
			self._report_tombstone(state, slot, text, expr.loc)
			return ArgValue(state.heap.fresh(), fd.type_name, text)
		if rec.pinned:
			self._report(
				RegionErrorKind.CONTRACT_MISMATCH,
				f"cannot read isolated field '{text}': the region of '{subj.text}' is pinned",
				expr.loc,
				subject=text,
			)
			return ArgValue(state.heap.fresh(), fd.type_name, text)
		try:
			child = self.engine.apply(state, Explore(subj.region, expr.name))
		except TransformError as exc:
			raise AssertionError(f"explore of '{text}' refused after its checks passed: {exc} (checker bug)") from exc
		return ArgValue(child, fd.type_name, text)

	def _callee(self, call: H.HCall) -> Optional[FnSignature]:
		sig = self.program.signatures.get(call.fn)
		if sig is None:
			self._report("unknown-function", f"call to undeclared function '{call.fn}'", call.loc, subject=call.fn)
			return None
		if call.fn in self._invalid:
			return None
		return sig

	def _eval_call(self, state: RegionState, call: H.HCall) -> ArgValue:
		sig = self._callee(call)
		args = [self._eval(state, arg) for arg in call.args]
		text = f"{call.fn}(...)"
		if sig is None:
			return ArgValue(state.heap.fresh(), UNKNOWN_TYPE, text)
		out = self.matcher.check_call(state, sig, args, call.loc)
		self._report_all(out.diagnostics)
		return ArgValue(out.region, out.type_name, text)

	def _spawn(self, state: RegionState, call: H.HCall, span: Span) -> Optional[ArgValue]:
		sig = self._callee(call)
		args = [self._eval(state, arg) for arg in call.args]
		if sig is None:
			return None
		out = self.matcher.check_spawn(state, sig, args, span)
		self._report_all(out.diagnostics)
		return ArgValue(None, out.type_name, f"spawn {call.fn}(...)", out.handle)

	def _eval_await(self, state: RegionState, expr: H.HAwait) -> ArgValue:
		if isinstance(expr.subject, H.HCall):
			value = self._spawn(state, expr.subject, expr.loc)
			if value is None:
				return ArgValue(state.heap.fresh(), UNKNOWN_TYPE, f"await {expr.subject.fn}(...)")
		elif isinstance(expr.subject, H.HVar) and (
			state.gamma.lookup(expr.subject.name) is None or is_hidden(expr.subject.name)
		):
			name = expr.subject.name
			self._report(
				RegionErrorKind.DANGLING_HANDLE,
				f"cannot await '{name}': no future by that name was created",
				expr.loc,
				subject=name,
			)
			return ArgValue(state.heap.fresh(), UNKNOWN_TYPE, f"await {name}")
		else:
			value = self._eval(state, expr.subject)
		text = f"await {value.text}"
		result_type = future_result_type(value.type_name)
		if value.handle is None:
			if result_type is None:
				self._report("not-a-future", f"cannot await '{value.text}': it is not a future", expr.loc, subject=value.text)
				return ArgValue(state.heap.fresh(), UNKNOWN_TYPE, text)
			self._report(
				RegionErrorKind.DANGLING_HANDLE,
				f"'{value.text}' does not hold a future started by spawn",
				expr.loc,
				subject=value.text,
			)
			return self._fresh_value(state, result_type, text)
		entry = state.futures.get(value.handle)
		if entry is None or entry.state is not HandleState.LIVE:
			self._report(
				RegionErrorKind.DANGLING_HANDLE,
				f"future '{value.text}' is no longer live (already awaited or abandoned)",
				expr.loc,
				subject=value.text,
			)
			return self._fresh_value(state, result_type or UNKNOWN_TYPE, text)
		b = self.matcher.redeem(state, value.handle)
		return ArgValue(b.region, b.type_name, text)

	# Loss messages

	def _future_label(self, state: RegionState, handle: Optional[int], fallback: str) -> str:
		entry = state.futures.get(handle) if handle is not None else None
		return entry.label() if entry is not None else fallback

	def _report_loss(self, state: RegionState, reason: Optional[LossReason], what: str, span: Span, subject: str) -> None:
		if reason is None:
			self._report(RegionErrorKind.USE_AFTER_TRANSFER, f"cannot use {what}: its region is no longer owned", span, subject=subject)
			return
		if reason.kind is LossKind.JOIN:
			self._report(RegionErrorKind.UNIFICATION_FAILURE, f"cannot use {what}: it was {reason.describe()}", span, subject=subject)
			return
		if reason.kind is LossKind.SUSPENDED:
			label = self._future_label(state, reason.handle, reason.detail or "a live future")
			self._report(RegionErrorKind.USE_AFTER_TRANSFER, f"cannot use {what}: it is held by live future {label}", span, subject=subject)
			return
		self._report(RegionErrorKind.USE_AFTER_TRANSFER, f"cannot use {what}: it was {reason.describe()}", span, subject=subject)

	def _report_tombstone(self, state: RegionState, tomb: Tombstone, text: str, span: Span) -> None:
		what = f"'{text}'"
		if tomb.cause is TombstoneCause.JOIN:
			self._report(RegionErrorKind.UNIFICATION_FAILURE, f"cannot use {what}: it was {tomb.describe()}", span, subject=text)
		elif tomb.cause is TombstoneCause.SUSPENDED:
			label = self._future_label(state, tomb.handle, tomb.detail or "a live future")
			self._report(RegionErrorKind.USE_AFTER_TRANSFER, f"cannot use {what}: it is held by live future {label}", span, subject=text)
		elif tomb.cause is TombstoneCause.UNINITIALIZED:
			self._report(RegionErrorKind.USE_AFTER_TRANSFER, f"cannot use {what}: it is not initialized", span, subject=text)
		else:
			self._report(RegionErrorKind.USE_AFTER_TRANSFER, f"cannot use {what}: it was {tomb.describe()}", span, subject=text)


def check_program(program: H.Program, limits: RegionLimits = DEFAULT_LIMITS) -> RegionCheckResult:
	"""Run the region checker over `program`."""
	return RegionChecker(program, limits).check_program()


__all__ = [
	"RegionChecker",
	"RegionCheckResult",
	"StateAnnotation",
	"check_program",
]
