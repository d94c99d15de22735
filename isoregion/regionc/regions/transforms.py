# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Virtual transformations over (Γ, ℋ) and the engine that applies them.

The rule set is closed: explore, retract, attach, focus, unfocus, forget.
Every step goes through `TransformEngine.apply`, which checks after the fact
that the step did not claim tracked structure that was not there before
(edges may be relabelled by attach or created by explore, nothing else) and
that no lost region id came back.

`TransformEngine.search` is the bounded driver used by the signature matcher:
a best-first walk over rewrite sequences ordered by a caller-supplied
distance, deduplicated by store shape, and cut off at a node budget.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

from isoregion.regionc.core.limits import DEFAULT_LIMITS, RegionLimits
from isoregion.regionc.regions.state import RegionState
from isoregion.regionc.regions.store import (
	LossKind,
	LossReason,
	RegionId,
	Tombstone,
	TombstoneCause,
)

logger = logging.getLogger(__name__)

Edge = Tuple[RegionId, str, RegionId]


class TransformError(Exception):
	"""A transformation's precondition does not hold."""


_LOSS_FOR_CAUSE = {
	TombstoneCause.CONSUMED: LossKind.CONSUMED,
	TombstoneCause.SUSPENDED: LossKind.SUSPENDED,
}


@dataclass(frozen=True)
class Explore:
	"""`r.f` → child region; idempotent on an already tracked field."""

	region: RegionId
	field: str

	def apply(self, state: RegionState) -> RegionId:
		heap = state.heap
		if self.region not in heap:
			raise TransformError(f"r{self.region} is not owned")
		rec = heap.get(self.region)
		if rec.pinned:
			raise TransformError(f"r{self.region} is pinned; its isolated fields cannot be explored")
		slot = rec.children.get(self.field)
		if isinstance(slot, Tombstone):
			raise TransformError(f"r{self.region}.{self.field} is {slot.describe()}")
		if slot is not None:
			return slot
		child = heap.fresh()
		heap.set_slot(self.region, self.field, child)
		return child

	def created(self, result: RegionId) -> Set[Edge]:
		return {(self.region, self.field, result)}

	def describe(self) -> str:
		return f"explore(r{self.region}.{self.field})"


@dataclass(frozen=True)
class Retract:
	"""Fold an untracked child back into its parent; the child id is gone for good."""

	region: RegionId
	field: str

	def apply(self, state: RegionState) -> None:
		heap = state.heap
		if self.region not in heap:
			raise TransformError(f"r{self.region} is not owned")
		slot = heap.slot(self.region, self.field)
		if not isinstance(slot, int):
			raise TransformError(f"r{self.region}.{self.field} is not a tracked edge")
		if not heap.get(slot).is_leaf():
			raise TransformError(f"r{slot} still tracks fields")
		heap.remove(slot, LossReason(LossKind.RETRACTED, f"r{self.region}.{self.field}"))
		heap.set_slot(self.region, self.field, None)

	def describe(self) -> str:
		return f"retract(r{self.region}.{self.field})"


@dataclass(frozen=True)
class Attach:
	"""Merge two flat regions into a fresh one, rebinding everything that named either."""

	first: RegionId
	second: RegionId

	def apply(self, state: RegionState) -> RegionId:
		heap = state.heap
		a, b = self.first, self.second
		if a == b:
			raise TransformError("cannot attach a region to itself")
		for rid in (a, b):
			if rid not in heap:
				raise TransformError(f"r{rid} is not owned")
		if a in heap.ancestors(b) or b in heap.ancestors(a):
			raise TransformError(f"r{a} and r{b} are related through isolated fields")
		if heap.parents_of(a) and heap.parents_of(b):
			raise TransformError(f"r{a} and r{b} are both tracked children")
		ra, rb = heap.get(a), heap.get(b)
		for f in set(ra.children) & set(rb.children):
			if ra.children[f] != rb.children[f]:
				raise TransformError(f"r{a} and r{b} disagree on isolated field '{f}'")
		for f in set(ra.children) ^ set(rb.children):
			raise TransformError(f"only one of r{a} and r{b} tracks isolated field '{f}'")
		new = heap.fresh(pinned=ra.pinned or rb.pinned)
		children = dict(ra.children)
		children.update(rb.children)
		heap.get(new).children = children
		del heap.records[a]
		del heap.records[b]
		heap.relabel((a, b), new)
		state.gamma.rebind_region((a, b), new)
		state.futures.relabel([a, b], new)
		return new

	def renames(self, result: RegionId) -> Dict[RegionId, RegionId]:
		return {self.first: result, self.second: result}

	def describe(self) -> str:
		return f"attach(r{self.first}, r{self.second})"


@dataclass(frozen=True)
class Focus:
	"""Present every listed field of a region explicitly (`·` for inline)."""

	region: RegionId
	fields: Tuple[str, ...]

	def apply(self, state: RegionState) -> None:
		if self.region not in state.heap:
			raise TransformError(f"r{self.region} is not owned")
		state.heap.get(self.region).focus = tuple(self.fields)

	def describe(self) -> str:
		return f"focus(r{self.region})"


@dataclass(frozen=True)
class Unfocus:
	"""Fold inline markers away again."""

	region: RegionId

	def apply(self, state: RegionState) -> None:
		if self.region not in state.heap:
			raise TransformError(f"r{self.region} is not owned")
		state.heap.get(self.region).focus = None

	def describe(self) -> str:
		return f"unfocus(r{self.region})"


@dataclass(frozen=True)
class Forget:
	"""
	Drop information.

	With a field, the slot becomes ⊥ and a tracked child (if any) becomes a
	root of its own. Without a field, the region and its tracked subtree leave
	ℋ and every edge into the region becomes ⊥.
	"""

	region: RegionId
	field: Optional[str] = None
	cause: TombstoneCause = TombstoneCause.JOIN
	detail: str = ""
	handle: Optional[int] = None

	def apply(self, state: RegionState) -> None:
		heap = state.heap
		if self.region not in heap:
			raise TransformError(f"r{self.region} is not owned")
		tomb = Tombstone(self.cause, self.detail, self.handle)
		if self.field is not None:
			heap.set_slot(self.region, self.field, tomb)
			return
		heap.detach(self.region, tomb)
		kind = _LOSS_FOR_CAUSE.get(self.cause, LossKind.JOIN)
		heap.remove_subtree(self.region, LossReason(kind, self.detail, self.handle))

	def describe(self) -> str:
		target = f"r{self.region}.{self.field}" if self.field is not None else f"r{self.region}"
		return f"forget({target}, {self.cause.value})"


Transform = Union[Explore, Retract, Attach, Focus, Unfocus, Forget]


@dataclass
class SearchResult:
	"""Outcome of a bounded search: the best state found and how it was reached."""

	state: RegionState
	steps: List[Transform] = field(default_factory=list)
	distance: int = 0
	expanded: int = 0

	@property
	def reached(self) -> bool:
		return self.distance == 0


def _shape_key(state: RegionState) -> Tuple:
	out = []
	for rec in state.heap:
		slots = tuple(
			(f, s.cause.value if isinstance(s, Tombstone) else s) for f, s in sorted(rec.children.items())
		)
		out.append((rec.id, rec.pinned, slots))
	return tuple(out)


class TransformEngine:
	"""Applies transformations with soundness checks and drives bounded searches."""

	def __init__(self, limits: RegionLimits = DEFAULT_LIMITS) -> None:
		self.limits = limits

	def apply(self, state: RegionState, step: Transform):
		before = state.heap.edges()
		lost_before = set(state.heap.lost)
		result = step.apply(state)
		renames = step.renames(result) if isinstance(step, Attach) else {}
		allowed = {(renames.get(p, p), f, renames.get(c, c)) for p, f, c in before}
		if isinstance(step, Explore):
			allowed |= step.created(result)
		extra = state.heap.edges() - allowed
		if extra:
			raise AssertionError(f"{step.describe()} invented tracked edges {sorted(extra)} (checker bug)")
		back = lost_before & set(state.heap.records)
		if back:
			raise AssertionError(f"{step.describe()} revived lost regions {sorted(back)} (checker bug)")
		logger.debug("%s%s", step.describe(), f" -> r{result}" if isinstance(result, int) else "")
		return result

	def try_apply(self, state: RegionState, step: Transform) -> bool:
		"""Apply `step` if its preconditions hold; report whether it did."""
		try:
			self.apply(state, step)
		except TransformError as exc:
			logger.debug("%s refused: %s", step.describe(), exc)
			return False
		return True

	# Composite rewrites

	def collapse(self, state: RegionState, region: RegionId, field_name: str) -> bool:
		"""
		Retract the whole tracked subtree under `region.field_name`, leaves first.

		Works on a scratch copy and commits only when every retract succeeds, so
		a subtree that holds a tombstone (or is protected by the caller through
		`state` contents) is left untouched.
		"""
		child = state.heap.slot(region, field_name)
		if not isinstance(child, int):
			return child is None
		scratch = state.copy()
		order = scratch.heap.subtree(child)
		for rid in reversed(order):
			for parent, f in scratch.heap.parents_of(rid):
				try:
					self.apply(scratch, Retract(parent, f))
				except TransformError as exc:
					logger.debug("collapse of r%d.%s stopped: %s", region, field_name, exc)
					return False
		commit(state, scratch)
		return True

	def merge_regions(
		self,
		state: RegionState,
		first: RegionId,
		second: RegionId,
		*,
		cause: TombstoneCause = TombstoneCause.ALIAS,
		detail: str = "",
	) -> RegionId:
		"""
		Make two owned regions one, dropping isolated-field edges that stand in the way.

		When one region hangs below the other, the edge into the lower one is
		forgotten first. Fields the two records disagree on are forgotten on
		both sides; their tracked children become roots and keep their
		bindings.
		"""
		if first == second:
			return first
		heap = state.heap
		if first in heap.ancestors(second):
			for parent, f in heap.parents_of(second):
				self.apply(state, Forget(parent, f, cause, detail))
		elif second in heap.ancestors(first):
			for parent, f in heap.parents_of(first):
				self.apply(state, Forget(parent, f, cause, detail))
		if heap.parents_of(first) and heap.parents_of(second):
			for parent, f in heap.parents_of(second):
				self.apply(state, Forget(parent, f, cause, detail))
		ra, rb = heap.get(first), heap.get(second)
		for f in sorted(set(ra.children) | set(rb.children)):
			if ra.children.get(f) != rb.children.get(f):
				self.apply(state, Forget(first, f, cause, detail))
				self.apply(state, Forget(second, f, cause, detail))
		return self.apply(state, Attach(first, second))

	# Search

	def search(
		self,
		state: RegionState,
		moves: Callable[[RegionState], Sequence[Transform]],
		distance: Callable[[RegionState], int],
		budget: Optional[int] = None,
	) -> SearchResult:
		"""
		Best-first search for a rewrite sequence driving `distance` to zero.

		Candidates are ordered by (distance, steps so far, discovery order), so
		the search is deterministic. Each expanded node counts against
		`budget` (default `limits.match_budget`); when it runs out the closest
		state seen is returned.
		"""
		budget = self.limits.match_budget if budget is None else budget
		counter = itertools.count()
		start = RegionSearchNode(state.copy(), [], distance(state))
		best = start
		frontier = [(start.distance, 0, next(counter), start)]
		seen = {_shape_key(start.state)}
		expanded = 0
		while frontier:
			_, _, _, node = heapq.heappop(frontier)
			if node.distance < best.distance:
				best = node
			if node.distance == 0:
				break
			if expanded >= budget:
				logger.warning("transformation search gave up after %d nodes (distance %d)", expanded, best.distance)
				break
			expanded += 1
			for step in moves(node.state):
				nxt = node.state.copy()
				if not self.try_apply(nxt, step):
					continue
				key = _shape_key(nxt)
				if key in seen:
					continue
				seen.add(key)
				child = RegionSearchNode(nxt, node.steps + [step], distance(nxt))
				heapq.heappush(frontier, (child.distance, len(child.steps), next(counter), child))
		return SearchResult(best.state, best.steps, best.distance, expanded)


@dataclass
class RegionSearchNode:
	state: RegionState
	steps: List[Transform]
	distance: int


def commit(state: RegionState, scratch: RegionState) -> None:
	"""Adopt the contents of `scratch` into `state` in place."""
	state.gamma = scratch.gamma
	state.heap = scratch.heap
	state.futures = scratch.futures


__all__ = [
	"TransformError",
	"Explore",
	"Retract",
	"Attach",
	"Focus",
	"Unfocus",
	"Forget",
	"Transform",
	"SearchResult",
	"TransformEngine",
	"commit",
]
