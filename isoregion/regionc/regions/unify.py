# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Branch unifier: one state both incoming control-flow paths can be coerced into.

Both incoming states are restricted to the names in scope at the join and
transformed side by side until they have the same shape:

1. a variable with one region id on every path keeps it;
2. regions paired up through variables (or through isolated-field edges of
   paired regions) that are several regions on one path are attached there;
3. a field tracked on one path and owned inline on the other is retracted
   on the tracked side; a field that is ⊥ on one path becomes ⊥ on the other.

If step 3 would make a variable that is accessible on every incoming path
inaccessible, a bounded fallback tries exploring on the inline side instead,
flipping decision subsets in order of size. When that fails too, the
variables are marked lost with a join reason, so a later use reports a
unification failure naming them. Differences in live futures fail the join
outright.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from isoregion.regionc.core.limits import DEFAULT_LIMITS, RegionLimits
from isoregion.regionc.regions.context import Binding, TypingContext, is_hidden
from isoregion.regionc.regions.futures import FutureContext, HandleState
from isoregion.regionc.regions.state import RegionState, restrict_scope
from isoregion.regionc.regions.store import (
	LossKind,
	LossReason,
	RegionId,
	RegionRecord,
	RegionStore,
	Tombstone,
	TombstoneCause,
)
from isoregion.regionc.regions.transforms import Explore, Forget, TransformEngine, TransformError

logger = logging.getLogger(__name__)

Node = Tuple[int, RegionId]

# Rewrites allowed while reconciling one pair of states; hitting it is a checker bug.
_MAX_ROUNDS = 10000


@dataclass
class JoinFailure:
	message: str
	subject: Optional[str] = None


@dataclass
class JoinResult:
	state: RegionState
	failures: List[JoinFailure] = field(default_factory=list)


class _UnionFind:
	def __init__(self) -> None:
		self.parent: Dict[Node, Node] = {}

	def add(self, node: Node) -> None:
		self.parent.setdefault(node, node)

	def find(self, node: Node) -> Node:
		self.add(node)
		root = node
		while self.parent[root] != root:
			root = self.parent[root]
		while self.parent[node] != root:
			self.parent[node], node = root, self.parent[node]
		return root

	def union(self, a: Node, b: Node) -> bool:
		ra, rb = self.find(a), self.find(b)
		if ra == rb:
			return False
		if rb < ra:
			ra, rb = rb, ra
		self.parent[rb] = ra
		return True

	def groups(self) -> List[List[Node]]:
		out: Dict[Node, List[Node]] = {}
		for node in sorted(self.parent):
			out.setdefault(self.find(node), []).append(node)
		return [out[k] for k in sorted(out)]


@dataclass
class _Attempt:
	state: RegionState
	newly_lost: List[str]
	decisions: int


def _accessible(state: RegionState, binding: Optional[Binding]) -> bool:
	return binding is not None and binding.region is not None and binding.region in state.heap


def _region_label(state: RegionState, region: RegionId) -> str:
	names = state.gamma.vars_in(region)
	return names[0] if names else f"r{region}"


def _path_label(state: RegionState, region: RegionId, field_name: str) -> str:
	return f"{_region_label(state, region)}.{field_name}"


class BranchUnifier:
	"""Computes join states at `if` merges and loop heads."""

	def __init__(self, engine: TransformEngine, limits: RegionLimits = DEFAULT_LIMITS) -> None:
		self.engine = engine
		self.limits = limits

	def unify(self, states: Sequence[RegionState], scope: Iterable[str]) -> JoinResult:
		"""Join any number of incoming states; unreachable ones are ignored."""
		names = sorted(set(scope))
		reachable = [s for s in states if s.reachable]
		if not reachable:
			out = states[0].copy()
			out.reachable = False
			return JoinResult(out)
		acc = restrict_scope(reachable[0], names)
		failures: List[JoinFailure] = []
		for nxt in reachable[1:]:
			acc, more = self._unify_pair(acc, restrict_scope(nxt, names), names)
			failures.extend(more)
		return JoinResult(acc, failures)

	# Pairwise join

	def _unify_pair(self, a: RegionState, b: RegionState, names: List[str]) -> Tuple[RegionState, List[JoinFailure]]:
		failures = self._reconcile_futures(a, b)
		accessible_all = [
			n for n in names if _accessible(a, a.gamma.lookup(n)) and _accessible(b, b.gamma.lookup(n))
		]
		first = self._attempt(a, b, names, accessible_all, frozenset())
		chosen = first
		if first.newly_lost:
			tried = 1
			found = None
			for size in range(1, first.decisions + 1):
				for flips in itertools.combinations(range(first.decisions), size):
					if tried >= self.limits.join_budget:
						break
					tried += 1
					attempt = self._attempt(a, b, names, accessible_all, frozenset(flips))
					if not attempt.newly_lost:
						found = attempt
						break
				if found is not None or tried >= self.limits.join_budget:
					break
			if found is not None:
				logger.debug("join fallback kept %s after %d attempt(s)", ", ".join(first.newly_lost), tried)
				chosen = found
			else:
				logger.warning(
					"join gave up on %s after %d attempt(s)",
					", ".join(n for n in first.newly_lost if not is_hidden(n)) or "hidden bindings",
					tried,
				)
				for name in first.newly_lost:
					chosen.state.lose_binding(name, LossReason(LossKind.JOIN, f"'{name}' could not be kept in one region"))
		return chosen.state, failures

	def _reconcile_futures(self, a: RegionState, b: RegionState) -> List[JoinFailure]:
		live_a = {e.handle for e in a.futures.live()}
		live_b = {e.handle for e in b.futures.live()}
		failures = []
		for handle in sorted(live_a ^ live_b):
			side = a if handle in live_a else b
			entry = side.futures.get(handle)
			failures.append(JoinFailure(
				f"future {entry.label()} of '{entry.callee}' is live on one path but not on the other",
				entry.name or entry.callee,
			))
			side.abandon_future(handle)
		return failures

	def _attempt(
		self,
		a: RegionState,
		b: RegionState,
		names: List[str],
		accessible_all: List[str],
		flips: FrozenSet[int],
	) -> _Attempt:
		sides = [a.copy(), b.copy()]
		decisions = self._reconcile(sides, names, flips)
		state = self._build(sides, names)
		newly_lost = [n for n in accessible_all if not _accessible(state, state.gamma.lookup(n))]
		return _Attempt(state, newly_lost, decisions)

	def _pairing(self, sides: List[RegionState], names: List[str]) -> _UnionFind:
		uf = _UnionFind()
		for side, state in enumerate(sides):
			for rid in state.heap.records:
				uf.add((side, rid))
		for n in names:
			ba, bb = sides[0].gamma.lookup(n), sides[1].gamma.lookup(n)
			if _accessible(sides[0], ba) and _accessible(sides[1], bb):
				uf.union((0, ba.region), (1, bb.region))
		changed = True
		while changed:
			changed = False
			for comp in uf.groups():
				left = [r for s, r in comp if s == 0]
				right = [r for s, r in comp if s == 1]
				for ra in left:
					for rb in right:
						ea = dict(sides[0].heap.get(ra).edges())
						for f, cb in sides[1].heap.get(rb).edges():
							if f in ea and uf.union((0, ea[f]), (1, cb)):
								changed = True
		return uf

	def _reconcile(self, sides: List[RegionState], names: List[str], flips: FrozenSet[int]) -> int:
		"""Transform both sides until paired regions agree; returns the number of decisions met."""
		decisions = 0
		for _ in range(_MAX_ROUNDS):
			uf = self._pairing(sides, names)
			groups = uf.groups()
			acted = False
			for comp in groups:
				for side in (0, 1):
					rids = sorted(r for s, r in comp if s == side)
					if len(rids) > 1:
						detail = _region_label(sides[side], rids[1])
						self.engine.merge_regions(sides[side], rids[0], rids[1], cause=TombstoneCause.JOIN, detail=detail)
						acted = True
						break
				if acted:
					break
			if acted:
				continue
			for comp in groups:
				left = [r for s, r in comp if s == 0]
				right = [r for s, r in comp if s == 1]
				if len(left) != 1 or len(right) != 1:
					continue
				ra, rb = left[0], right[0]
				fields = sorted(set(sides[0].heap.get(ra).children) | set(sides[1].heap.get(rb).children))
				for f in fields:
					outcome = self._reconcile_field(sides, ra, rb, f, decisions in flips)
					if outcome is None:
						continue
					if outcome:
						decisions += 1
					acted = True
					break
				if acted:
					break
			if not acted:
				return decisions
		raise AssertionError("branch join did not settle (checker bug)")

	def _reconcile_field(self, sides: List[RegionState], ra: RegionId, rb: RegionId, f: str, flip: bool) -> Optional[bool]:
		"""
		Make one field agree on both sides.

		Returns None when it already agrees, True when an inline/tracked
		decision was taken, False for any other rewrite.
		"""
		regions = (ra, rb)
		slots = (sides[0].heap.slot(ra, f), sides[1].heap.slot(rb, f))
		s0, s1 = slots
		if s0 is None and s1 is None:
			return None
		if isinstance(s0, int) and isinstance(s1, int):
			return None
		if isinstance(s0, Tombstone) and isinstance(s1, Tombstone):
			if s0 == s1:
				return None
			if s0.cause is s1.cause:
				tomb = s0
			else:
				tomb = Tombstone(TombstoneCause.JOIN, _path_label(sides[0], ra, f))
			for side in (0, 1):
				self.engine.apply(sides[side], Forget(regions[side], f, tomb.cause, tomb.detail, tomb.handle))
			return False
		if isinstance(s0, Tombstone) or isinstance(s1, Tombstone):
			dead = 0 if isinstance(s0, Tombstone) else 1
			tomb = slots[dead]
			other = 1 - dead
			self.engine.apply(sides[other], Forget(regions[other], f, tomb.cause, tomb.detail, tomb.handle))
			return False
		# One side tracks the field, the other owns it inline.
		tracked = 0 if isinstance(s0, int) else 1
		inline = 1 - tracked
		if flip:
			try:
				self.engine.apply(sides[inline], Explore(regions[inline], f))
				return True
			except TransformError as exc:
				logger.debug("join explore refused: %s", exc)
		if not self.engine.collapse(sides[tracked], regions[tracked], f):
			label = _path_label(sides[tracked], regions[tracked], f)
			for side in (0, 1):
				self.engine.apply(sides[side], Forget(regions[side], f, TombstoneCause.JOIN, label))
		return True

	def _build(self, sides: List[RegionState], names: List[str]) -> RegionState:
		"""Read the agreed shape off the reconciled sides as one fresh state."""
		allocator = sides[0].allocator
		uf = self._pairing(sides, names)
		maps: List[Dict[RegionId, RegionId]] = [{}, {}]
		pairs: List[Tuple[RegionId, RegionId, RegionId]] = []
		for comp in uf.groups():
			left = [r for s, r in comp if s == 0]
			right = [r for s, r in comp if s == 1]
			if len(left) != 1 or len(right) != 1:
				continue
			ra, rb = left[0], right[0]
			rid = ra if ra == rb else allocator.next()
			maps[0][ra] = rid
			maps[1][rb] = rid
			pairs.append((ra, rb, rid))
		heap = RegionStore(allocator)
		for ra, rb, rid in pairs:
			rec_a, rec_b = sides[0].heap.get(ra), sides[1].heap.get(rb)
			children = {}
			for f, slot in rec_a.children.items():
				if isinstance(slot, int):
					if slot in maps[0]:
						children[f] = maps[0][slot]
					else:
						children[f] = Tombstone(TombstoneCause.JOIN, _path_label(sides[0], ra, f))
				else:
					children[f] = slot
			heap.records[rid] = RegionRecord(rid, children, pinned=rec_a.pinned or rec_b.pinned)

		gamma = TypingContext()
		out = RegionState(gamma, heap, self._join_futures(sides, maps))
		for n in names:
			ba, bb = sides[0].gamma.lookup(n), sides[1].gamma.lookup(n)
			if ba is None or bb is None:
				continue
			if ba.region is None and bb.region is None:
				gamma.bind(n, ba)
				continue
			if _accessible(sides[0], ba) and _accessible(sides[1], bb) and ba.region in maps[0]:
				gamma.bind(n, ba.with_region(maps[0][ba.region]))
				continue
			reason = None
			for side, binding in ((0, ba), (1, bb)):
				if reason is None and binding.region is not None and binding.region not in sides[side].heap:
					reason = sides[side].heap.loss(binding.region)
			reason = reason or LossReason(LossKind.JOIN, f"'{n}' is not in one region on every path")
			lost = allocator.next()
			heap.lost[lost] = reason
			gamma.bind(n, (ba if ba.region is not None else bb).with_region(lost))
		out.collect_garbage()
		return out

	def _join_futures(self, sides: List[RegionState], maps: List[Dict[RegionId, RegionId]]) -> FutureContext:
		out = FutureContext()
		for side in (0, 1):
			for handle, entry in sorted(sides[side].futures.entries.items()):
				have = out.entries.get(handle)
				if have is not None:
					if entry.state is HandleState.REDEEMED:
						have.state = HandleState.REDEEMED
					continue
				copy = entry.copy()
				copy.restore_edges = [
					(maps[side][p], f, c) for p, f, c in entry.restore_edges if p in maps[side]
				]
				out.entries[handle] = copy
		return out


__all__ = ["BranchUnifier", "JoinFailure", "JoinResult"]
