# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Function signature matcher.

Reconciles the current (Γ, ℋ) with a declared region contract at three
points: function entry (building the initial state), call sites (bringing the
arguments to the entry shape, then applying the contract's effects), and
function exit (bringing preserved parameters and the result to the exit
shape). Spawned calls go through the same matching, but every argument
region leaves ℋ for a future entry; awaiting the handle applies the effects.

Shape matching is a bounded search over the transformation engine: retract
tracked children of fields required inline, explore fields required tracked,
forget fields required dead. Regions holding other arguments are protected
and never retracted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from isoregion.regionc.core.diagnostics import Diagnostic, RegionErrorKind
from isoregion.regionc.core.limits import DEFAULT_LIMITS, RegionLimits
from isoregion.regionc.core.span import Span
from isoregion.regionc.core.types_core import TypeTable, future_type
from isoregion.regionc.regions.context import Binding, entry_name
from isoregion.regionc.regions.futures import FutureEntry
from isoregion.regionc.regions.state import RegionState
from isoregion.regionc.regions.store import (
	LossKind,
	LossReason,
	RegionId,
	RegionRecord,
	Slot,
	Tombstone,
	TombstoneCause,
)
from isoregion.regionc.regions.transforms import (
	Explore,
	Focus,
	Forget,
	Retract,
	Transform,
	TransformEngine,
	TransformError,
	Unfocus,
	commit,
)
from isoregion.regionc.signatures import (
	Expect,
	FieldExpectation,
	FnSignature,
	INLINE_EXPECTED,
	entry_expectations,
	exit_expectations,
)

logger = logging.getLogger(__name__)


def _region_diag(kind: RegionErrorKind, message: str, span: Span, subject: Optional[str] = None, notes=None) -> Diagnostic:
	return Diagnostic(
		message=message,
		code=kind.value,
		phase="regioncheck",
		span=span,
		subject=subject,
		notes=list(notes or []),
	)


@dataclass
class ArgValue:
	"""An evaluated call argument (or returned value)."""

	region: Optional[RegionId]
	type_name: str
	text: str = "<value>"
	handle: Optional[int] = None


@dataclass
class CallOutcome:
	region: Optional[RegionId]
	type_name: str
	handle: Optional[int] = None
	diagnostics: List[Diagnostic] = field(default_factory=list)


@dataclass
class _Target:
	"""One region the search must bring to a shape."""

	region: RegionId
	owner: str
	expect: Dict[str, FieldExpectation]
	# Parameter name → region, for TRACKED expectations naming a parameter.
	param_regions: Dict[str, RegionId]

	def expectation(self, field_name: str) -> FieldExpectation:
		return self.expect.get(field_name, INLINE_EXPECTED)


@dataclass
class _Residual:
	target: _Target
	field: str
	slot: Optional[Slot]
	expected: FieldExpectation


def _satisfied(state: RegionState, target: _Target, f: str, slot: Optional[Slot]) -> bool:
	exp = target.expectation(f)
	if exp.kind is Expect.INLINE:
		return slot is None
	if exp.kind is Expect.DEAD:
		return isinstance(slot, Tombstone)
	if exp.param is not None:
		return slot == target.param_regions.get(exp.param)
	return isinstance(slot, int) and state.heap.get(slot).is_leaf()


def _fields_of(state: RegionState, target: _Target) -> List[str]:
	return sorted(set(target.expect) | set(state.heap.get(target.region).children))


def _residuals(state: RegionState, targets: Sequence[_Target]) -> List[_Residual]:
	out = []
	for target in targets:
		if target.region not in state.heap:
			continue
		for f in _fields_of(state, target):
			slot = state.heap.slot(target.region, f)
			if not _satisfied(state, target, f, slot):
				out.append(_Residual(target, f, slot, target.expectation(f)))
	return out


def _slot_text(slot: Optional[Slot]) -> str:
	if slot is None:
		return "owned inline"
	if isinstance(slot, Tombstone):
		return slot.describe()
	return f"tracked as r{slot}"


class SignatureMatcher:
	"""Drives the transformation engine to satisfy region contracts."""

	def __init__(self, types: TypeTable, engine: TransformEngine, limits: RegionLimits = DEFAULT_LIMITS) -> None:
		self.types = types
		self.engine = engine
		self.limits = limits

	# Entry

	def enter(self, sig: FnSignature, state: RegionState) -> Dict[str, RegionId]:
		"""
		Bind the parameters of `sig` in an empty `state` and lay out the entry shape.

		Every parameter also gets a hidden `%entry.<name>` binding so exit
		checking can find the caller's region after the parameter variable is
		reassigned. Returns the region of each group leader.
		"""
		heap = state.heap
		class_region: Dict[str, RegionId] = {}
		for p in sig.params:
			if self.types.is_immutable(p.type_name):
				state.gamma.bind(p.name, Binding(None, p.type_name))
				continue
			leader = sig.class_leader(p.name)
			if leader not in class_region:
				class_region[leader] = heap.fresh(pinned=p.pinned)
			binding = Binding(class_region[leader], p.type_name)
			state.gamma.bind(p.name, binding)
			state.gamma.bind(entry_name(p.name), binding)
		expectations = entry_expectations(sig, self.types, self.limits)
		for p in sig.params:
			region = class_region.get(sig.class_leader(p.name))
			if region is None or p.pinned:
				continue
			for f, exp in sorted(expectations[p.name].items()):
				if exp.kind is Expect.DEAD:
					heap.set_slot(region, f, Tombstone(TombstoneCause.UNINITIALIZED, f"{p.name}.{f}"))
				elif exp.kind is Expect.TRACKED:
					if exp.param is not None:
						child = class_region.get(sig.class_leader(exp.param))
						if child is not None:
							heap.set_slot(region, f, child)
					else:
						heap.set_slot(region, f, heap.fresh())
		logger.debug("entry state of %s: %s", sig.name, state.render())
		return class_region

	# Shape search

	def _distance(self, state: RegionState, targets: Sequence[_Target]) -> int:
		total = 0
		for res in _residuals(state, targets):
			total += 1
			if isinstance(res.slot, int) and res.expected.kind is not Expect.DEAD and res.expected.param is None:
				total += len(state.heap.subtree(res.slot)) - 1
		return total

	def _moves(self, state: RegionState, targets: Sequence[_Target], protected: Set[RegionId], detail: str) -> List[Transform]:
		heap = state.heap
		moves: List[Transform] = []
		for res in _residuals(state, targets):
			region, f, slot, exp = res.target.region, res.field, res.slot, res.expected
			if exp.kind is Expect.DEAD:
				moves.append(Forget(region, f, TombstoneCause.CONSUMED, detail))
			elif exp.kind is Expect.TRACKED and exp.param is not None:
				continue
			elif isinstance(slot, int):
				subtree = heap.subtree(slot)
				keep_root = exp.kind is Expect.TRACKED
				for rid in reversed(subtree):
					if rid in protected or (keep_root and rid == slot):
						continue
					if heap.get(rid).is_leaf():
						for parent, pf in heap.parents_of(rid):
							moves.append(Retract(parent, pf))
			elif slot is None and exp.kind is Expect.TRACKED:
				moves.append(Explore(region, f))
		return moves

	def _bring_to_shape(
		self,
		state: RegionState,
		targets: List[_Target],
		protected: Set[RegionId],
		detail: str,
	) -> List[_Residual]:
		result = self.engine.search(
			state,
			lambda s: self._moves(s, targets, protected, detail),
			lambda s: self._distance(s, targets),
		)
		commit(state, result.state)
		if result.steps:
			logger.debug("%s: %s", detail, ", ".join(step.describe() for step in result.steps))
		return _residuals(state, targets)

	def _focused(self, state: RegionState, target: _Target) -> str:
		fields = tuple(_fields_of(state, target))
		self.engine.apply(state, Focus(target.region, fields))
		text = state.heap.get(target.region).render(target.owner)
		self.engine.apply(state, Unfocus(target.region))
		return text

	def _residual_diags(
		self,
		state: RegionState,
		residuals: List[_Residual],
		what: str,
		span: Span,
		entry_exp: Optional[Dict[str, Dict[str, FieldExpectation]]] = None,
	) -> List[Diagnostic]:
		diags = []
		for res in residuals:
			path = f"{res.target.owner}.{res.field}"
			slot = res.slot
			note = f"shape of '{res.target.owner}': {self._focused(state, res.target)}"
			if (
				entry_exp is not None
				and isinstance(slot, Tombstone)
				and slot.cause is TombstoneCause.ALIAS
				and res.expected.kind is Expect.INLINE
				and entry_exp.get(res.target.owner, {}).get(res.field, INLINE_EXPECTED).kind is Expect.INLINE
			):
				diags.append(_region_diag(
					RegionErrorKind.TREE_INVARIANT_VIOLATION,
					f"{what}: isolated field '{path}' was {slot.describe()} and never reassigned; "
					f"its structure is now reachable through two isolated fields",
					span,
					subject=path,
					notes=[note],
				))
				continue
			if isinstance(slot, Tombstone) and slot.cause is TombstoneCause.UNINITIALIZED:
				found = f"missing isolated-field assignment to '{path}'"
			elif isinstance(slot, int) and res.expected.kind is not Expect.TRACKED:
				found = f"'{path}' still tracks region r{slot}, which cannot be retracted"
			elif isinstance(slot, int) and res.expected.param is None:
				found = f"'{path}' tracks region r{slot}, which is not simplified"
			else:
				found = f"'{path}' is {_slot_text(slot)}"
			diags.append(_region_diag(
				RegionErrorKind.CONTRACT_MISMATCH,
				f"{what}: {found} (expected {res.expected.describe()})",
				span,
				subject=path,
				notes=[note],
			))
		return diags

	# Calls

	def _merged_expectations(self, sig: FnSignature, table, leader: str) -> Dict[str, FieldExpectation]:
		out: Dict[str, FieldExpectation] = {}
		for name in sig.group_of(leader):
			for f, exp in table.get(name, {}).items():
				out.setdefault(f, exp)
		return out

	def _classes(self, state: RegionState, sig: FnSignature, args: List[ArgValue], diags: List[Diagnostic], span: Span):
		"""Group arguments by parameter class and give each class one region."""
		members: Dict[str, List[ArgValue]] = {}
		for p, arg in zip(sig.params, args):
			members.setdefault(sig.class_leader(p.name), []).append(arg)
		renamed: Dict[RegionId, RegionId] = {}

		def resolve(rid: RegionId) -> RegionId:
			while rid in renamed:
				rid = renamed[rid]
			return rid

		class_region: Dict[str, RegionId] = {}
		texts: Dict[str, str] = {}
		for leader, group in members.items():
			regions: List[RegionId] = []
			for arg in group:
				if arg.region is not None and resolve(arg.region) not in regions:
					regions.append(resolve(arg.region))
			if not regions:
				continue
			region = regions[0]
			for other in regions[1:]:
				try:
					merged = self.engine.merge_regions(
						state, region, other, cause=TombstoneCause.ALIAS, detail=f"group of {sig.name}"
					)
				except TransformError as exc:
					diags.append(_region_diag(
						RegionErrorKind.CONTRACT_MISMATCH,
						f"cannot group arguments of '{sig.name}' into one region: {exc}",
						span,
						subject=group[0].text,
					))
					continue
				renamed[region] = merged
				renamed[other] = merged
				region = merged
			class_region[leader] = region
			texts[leader] = group[0].text
		# A later group may have merged the region of an earlier class.
		for leader in class_region:
			class_region[leader] = resolve(class_region[leader])
		return class_region, texts

	def _separate(
		self,
		state: RegionState,
		sig: FnSignature,
		class_region: Dict[str, RegionId],
		texts: Dict[str, str],
		diags: List[Diagnostic],
		span: Span,
	) -> None:
		owner: Dict[RegionId, str] = {}
		for leader in list(class_region):
			region = class_region[leader]
			p = sig.param(leader)
			if state.heap.get(region).pinned and not p.pinned:
				diags.append(_region_diag(
					RegionErrorKind.CONTRACT_MISMATCH,
					f"argument '{texts[leader]}' lives in a pinned region but parameter '{p.name}' of '{sig.name}' is not pinned",
					span,
					subject=texts[leader],
				))
			if region in owner:
				diags.append(_region_diag(
					RegionErrorKind.CONTRACT_MISMATCH,
					f"arguments '{texts[owner[region]]}' and '{texts[leader]}' share region r{region} "
					f"but '{sig.name}' expects separate regions",
					span,
					subject=texts[leader],
				))
				del class_region[leader]
				continue
			owner[region] = leader

	def _match_entry(
		self,
		state: RegionState,
		sig: FnSignature,
		class_region: Dict[str, RegionId],
		texts: Dict[str, str],
		diags: List[Diagnostic],
		span: Span,
	) -> None:
		table = entry_expectations(sig, self.types, self.limits)
		param_regions = {name: class_region[sig.class_leader(name)] for name in sig.param_names if sig.class_leader(name) in class_region}
		targets = []
		for leader, region in class_region.items():
			if sig.param(leader).pinned:
				continue
			targets.append(_Target(region, texts[leader], self._merged_expectations(sig, table, leader), param_regions))
		protected = set(class_region.values())
		residuals = self._bring_to_shape(state, targets, protected, f"call to {sig.name}")
		if residuals:
			diags.extend(self._residual_diags(state, residuals, f"cannot establish the entry contract of '{sig.name}'", span))

	def _release_class_edges(self, state: RegionState, class_region: Dict[str, RegionId], inside: Set[RegionId], cause: TombstoneCause, detail: str) -> None:
		"""Cut edges from regions in `inside` to class regions, so classes can leave independently."""
		classes = set(class_region.values())
		for parent, f, child in sorted(state.heap.edges()):
			if parent in inside and child in classes:
				self.engine.apply(state, Forget(parent, f, cause, detail))

	def _drop_child(self, state: RegionState, region: RegionId, f: str, detail: str, classes: Set[RegionId]) -> None:
		slot = state.heap.slot(region, f)
		if isinstance(slot, int) and slot not in classes:
			self.engine.apply(state, Forget(slot, None, TombstoneCause.CONSUMED, detail))

	def _apply_preserved_effects(self, state: RegionState, sig: FnSignature, class_region: Dict[str, RegionId]) -> None:
		"""Rewrite preserved argument regions to the callee's exit shape."""
		heap = state.heap
		exits = exit_expectations(sig, self.types)
		entries = entry_expectations(sig, self.types, self.limits)
		classes = set(class_region.values())
		detail = sig.name
		for leader, region in class_region.items():
			p = sig.param(leader)
			if p.consumed or p.pinned or region not in heap:
				continue
			expect = self._merged_expectations(sig, exits, leader)
			before = self._merged_expectations(sig, entries, leader)
			for f in sorted(set(expect) | set(heap.get(region).children)):
				exp = expect.get(f, INLINE_EXPECTED)
				slot = heap.slot(region, f)
				if exp.kind is Expect.INLINE:
					if isinstance(slot, int) and slot not in classes and heap.get(slot).is_leaf():
						self.engine.apply(state, Retract(region, f))
					elif slot is not None:
						# The callee promises the field owned inline, whatever it held before.
						self._drop_child(state, region, f, detail, classes)
						heap.set_slot(region, f, None)
				elif exp.kind is Expect.DEAD:
					if not isinstance(slot, Tombstone):
						self._drop_child(state, region, f, detail, classes)
						self.engine.apply(state, Forget(region, f, TombstoneCause.CONSUMED, detail))
				elif exp.param is not None:
					child = class_region.get(sig.class_leader(exp.param))
					if child is None or slot == child:
						continue
					self._drop_child(state, region, f, detail, classes)
					heap.detach(child, Tombstone(TombstoneCause.ALIAS, f"{p.name}.{f}"))
					heap.set_slot(region, f, child)
				else:
					unchanged = before.get(f, INLINE_EXPECTED).label == exp.label and isinstance(slot, int)
					if unchanged:
						continue
					self._drop_child(state, region, f, detail, classes)
					heap.set_slot(region, f, heap.fresh())

	def _result_region(self, state: RegionState, sig: FnSignature, class_region: Dict[str, RegionId]) -> Optional[RegionId]:
		if self.types.is_immutable(sig.result.type_name):
			return None
		if sig.result.fresh:
			return state.heap.fresh()
		region = class_region.get(sig.class_leader(sig.result.origin))
		if region is None or region not in state.heap:
			return state.heap.fresh()
		return region

	def check_call(self, state: RegionState, sig: FnSignature, args: List[ArgValue], span: Span) -> CallOutcome:
		"""Synchronous call: match the entry contract, then apply the callee's effects."""
		diags: List[Diagnostic] = []
		if len(args) != len(sig.params):
			diags.append(_region_diag(
				RegionErrorKind.CONTRACT_MISMATCH,
				f"'{sig.name}' expects {len(sig.params)} argument(s), got {len(args)}",
				span,
				subject=sig.name,
			))
			region = None if self.types.is_immutable(sig.result.type_name) else state.heap.fresh()
			return CallOutcome(region, sig.result.type_name, diagnostics=diags)
		class_region, texts = self._classes(state, sig, args, diags, span)
		self._separate(state, sig, class_region, texts, diags, span)
		self._match_entry(state, sig, class_region, texts, diags, span)
		for leader, region in class_region.items():
			if sig.param(leader).consumed and region in state.heap:
				self._release_class_edges(state, class_region, set(state.heap.subtree(region)), TombstoneCause.CONSUMED, sig.name)
				self.engine.apply(state, Forget(region, None, TombstoneCause.CONSUMED, sig.name))
		self._apply_preserved_effects(state, sig, class_region)
		result = self._result_region(state, sig, class_region)
		return CallOutcome(result, sig.result.type_name, diagnostics=diags)

	# Futures

	def check_spawn(self, state: RegionState, sig: FnSignature, args: List[ArgValue], span: Span) -> CallOutcome:
		"""
		Spawned call: match as a call, then move every argument region into Φ.

		Preserved regions are rewritten to the exit shape right away (nothing
		can observe them until the await) and come back when the handle is
		redeemed; consumed regions never come back.
		"""
		diags: List[Diagnostic] = []
		result_type = future_type(sig.result.type_name)
		handle = state.allocator.next()
		entry = FutureEntry(handle, sig.name, result_type=sig.result.type_name, span=span)
		if len(args) != len(sig.params):
			diags.append(_region_diag(
				RegionErrorKind.CONTRACT_MISMATCH,
				f"'{sig.name}' expects {len(sig.params)} argument(s), got {len(args)}",
				span,
				subject=sig.name,
			))
			class_region: Dict[str, RegionId] = {}
		else:
			class_region, texts = self._classes(state, sig, args, diags, span)
			self._separate(state, sig, class_region, texts, diags, span)
			self._match_entry(state, sig, class_region, texts, diags, span)
		heap = state.heap
		susp = Tombstone(TombstoneCause.SUSPENDED, f"h{handle}", handle)
		for leader, region in class_region.items():
			if sig.param(leader).consumed and region in heap:
				self._release_class_edges(state, class_region, set(heap.subtree(region)), TombstoneCause.CONSUMED, sig.name)
				heap.detach(region, susp)
				for rec in heap.remove_subtree(region, LossReason(LossKind.SUSPENDED, f"h{handle}", handle)):
					entry.consumed.append(rec.id)
		self._apply_preserved_effects(state, sig, class_region)
		inside: Set[RegionId] = set()
		for leader, region in class_region.items():
			if not sig.param(leader).consumed and region in heap:
				inside.update(heap.subtree(region))
		for leader, region in class_region.items():
			if sig.param(leader).consumed or region not in heap:
				continue
			for parent, f in heap.parents_of(region):
				if parent not in inside:
					entry.restore_edges.append((parent, f, region))
		for parent, f, _ in entry.restore_edges:
			heap.set_slot(parent, f, susp)
		for leader, region in class_region.items():
			if sig.param(leader).consumed or region not in heap:
				continue
			entry.fragment.extend(heap.remove_subtree(region, LossReason(LossKind.SUSPENDED, f"h{handle}", handle)))
		if self.types.is_immutable(sig.result.type_name):
			entry.result_region = None
		elif sig.result.fresh:
			entry.result_region = state.allocator.next()
		else:
			entry.result_region = class_region.get(sig.class_leader(sig.result.origin))
			entry.result_fresh = False
			if entry.result_region is None:
				entry.result_region = state.allocator.next()
				entry.result_fresh = True
		state.futures.create(entry)
		state.futures.activate(handle)
		logger.debug("spawn h%d: %s", handle, state.futures.render())
		return CallOutcome(None, result_type, handle=handle, diagnostics=diags)

	def redeem(self, state: RegionState, handle: int) -> Binding:
		"""Await a LIVE handle: reinstate its fragment and return the result binding."""
		entry = state.futures.redeem(handle)
		heap = state.heap
		for rec in entry.fragment:
			heap.insert(rec.copy())
		for rid in entry.consumed:
			heap.lost[rid] = LossReason(LossKind.CONSUMED, entry.callee)
		for parent, f, child in entry.restore_edges:
			slot = heap.slot(parent, f) if parent in heap else None
			if isinstance(slot, Tombstone) and slot.cause is TombstoneCause.SUSPENDED and slot.handle == handle:
				heap.set_slot(parent, f, child)
		for rec in heap:
			for f, tomb in rec.tombstones():
				if tomb.cause is TombstoneCause.SUSPENDED and tomb.handle == handle:
					rec.children[f] = Tombstone(TombstoneCause.CONSUMED, entry.callee)
		region = entry.result_region
		if region is not None and entry.result_fresh:
			heap.insert(RegionRecord(region))
		logger.debug("await h%d restored %s", handle, ", ".join(f"r{r}" for r in entry.fragment_ids()) or "nothing")
		return Binding(region, entry.result_type)

	def discard(self, state: RegionState, handle: int) -> None:
		"""Give up on a live handle after a dangling-handle error."""
		state.abandon_future(handle)
		logger.debug("abandoned h%d", handle)

	# Exit

	def check_exit(
		self,
		state: RegionState,
		sig: FnSignature,
		value: Optional[ArgValue],
		span: Span,
	) -> List[Diagnostic]:
		"""Check preserved parameters, the result and Φ against the exit contract."""
		diags: List[Diagnostic] = []
		what = f"cannot establish the exit contract of '{sig.name}'"
		for entry in state.futures.live():
			holders = ", ".join(repr(n) for n in state.gamma.holders_of(entry.handle)) or "no variable"
			diags.append(_region_diag(
				RegionErrorKind.DANGLING_HANDLE,
				f"future {entry.label()} of '{entry.callee}' is still live at the exit of '{sig.name}' (held by {holders})",
				span,
				subject=entry.name or entry.callee,
			))
		heap = state.heap
		class_region: Dict[str, RegionId] = {}
		seen: Dict[RegionId, str] = {}
		for p in sig.params:
			leader = sig.class_leader(p.name)
			if p.consumed or leader != p.name:
				continue
			b = state.gamma.lookup(entry_name(p.name))
			if b is None or b.region is None:
				continue
			if b.region not in heap:
				loss = heap.loss(b.region)
				if loss is not None and loss.kind is LossKind.SUSPENDED:
					continue
				why = loss.describe() if loss is not None else "no longer owned"
				diags.append(_region_diag(
					RegionErrorKind.CONTRACT_MISMATCH,
					f"{what}: preserved parameter '{p.name}' is {why}",
					span,
					subject=p.name,
				))
				continue
			if b.region in seen:
				diags.append(_region_diag(
					RegionErrorKind.CONTRACT_MISMATCH,
					f"{what}: parameters '{seen[b.region]}' and '{p.name}' must end in separate regions",
					span,
					subject=p.name,
				))
				continue
			seen[b.region] = p.name
			class_region[leader] = b.region

		result_region = self._exit_result(state, sig, value, class_region, diags, what, span)

		exits = exit_expectations(sig, self.types)
		param_regions = {name: class_region[sig.class_leader(name)] for name in sig.param_names if sig.class_leader(name) in class_region}
		targets = []
		for leader, region in class_region.items():
			if sig.param(leader).pinned:
				continue
			targets.append(_Target(region, leader, self._merged_expectations(sig, exits, leader), param_regions))
		protected = set(class_region.values())
		if result_region is not None:
			targets.append(_Target(result_region, "result", {}, param_regions))
			protected.add(result_region)
		residuals = self._bring_to_shape(state, targets, protected, f"exit of {sig.name}")
		if residuals:
			entries = entry_expectations(sig, self.types, self.limits)
			diags.extend(self._residual_diags(state, residuals, what, span, entry_exp=entries))
		return diags

	def _exit_result(
		self,
		state: RegionState,
		sig: FnSignature,
		value: Optional[ArgValue],
		class_region: Dict[str, RegionId],
		diags: List[Diagnostic],
		what: str,
		span: Span,
	) -> Optional[RegionId]:
		"""Settle where the returned value lives; returns it when it must be simplified as a fresh result."""
		if value is None or value.region is None or self.types.is_immutable(sig.result.type_name):
			return None
		heap = state.heap
		vr = value.region
		if vr not in heap:
			return None
		owners = {region: leader for leader, region in class_region.items()}

		def owner_of(rid: RegionId) -> Optional[Tuple[str, RegionId]]:
			for anc in [rid] + sorted(heap.ancestors(rid)):
				if anc in owners:
					return owners[anc], anc
			return None

		found = owner_of(vr)
		if sig.result.fresh:
			if found is None:
				for parent, f in heap.parents_of(vr):
					self.engine.apply(state, Forget(parent, f, TombstoneCause.ALIAS, "returned value"))
				return vr
			leader, anc = found
			exits = self._merged_expectations(sig, exit_expectations(sig, self.types), leader)
			parents = heap.parents_of(vr)
			if anc != vr and parents and parents[0][0] == anc and exits.get(parents[0][1], INLINE_EXPECTED).kind is Expect.DEAD:
				self.engine.apply(state, Forget(anc, parents[0][1], TombstoneCause.CONSUMED, "returned value"))
				return vr
			via = f"'{leader}'" if anc == vr else f"'{leader}' through isolated fields"
			diags.append(_region_diag(
				RegionErrorKind.CONTRACT_MISMATCH,
				f"{what}: returned value '{value.text}' lives in the region of preserved parameter {via}, "
				f"but the result is declared fresh",
				span,
				subject=value.text,
			))
			return None
		origin = sig.class_leader(sig.result.origin)
		target = class_region.get(origin)
		if target is None or vr == target:
			return None
		if found is not None and found[1] == target:
			top = vr
			while heap.parents_of(top) and heap.parents_of(top)[0][0] != target:
				top = heap.parents_of(top)[0][0]
			f = heap.parents_of(top)[0][1]
			others = set(class_region.values()) - {target}
			if not (set(heap.subtree(top)) & others) and self.engine.collapse(state, target, f):
				return None
		elif found is None:
			for parent, f in heap.parents_of(vr):
				self.engine.apply(state, Forget(parent, f, TombstoneCause.ALIAS, "returned value"))
			merged = self.engine.merge_regions(state, target, vr, detail="returned value")
			class_region[origin] = merged
			return None
		diags.append(_region_diag(
			RegionErrorKind.CONTRACT_MISMATCH,
			f"{what}: returned value '{value.text}' must live in the region of '{sig.result.origin}'",
			span,
			subject=value.text,
		))
		return None


__all__ = ["ArgValue", "CallOutcome", "SignatureMatcher"]
