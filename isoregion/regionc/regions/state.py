# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
The (Γ, ℋ, Φ) triple threaded through a function body.

States are copied at branches and compared modulo region renaming at loop
heads (`canonical_key`). An unreachable state (after `return`) is the bottom
element for joins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from isoregion.regionc.regions.context import Binding, TypingContext
from isoregion.regionc.regions.futures import FutureContext
from isoregion.regionc.regions.store import (
	IdAllocator,
	LossKind,
	LossReason,
	RegionId,
	RegionStore,
	Tombstone,
	TombstoneCause,
)


@dataclass
class RegionState:
	gamma: TypingContext = field(default_factory=TypingContext)
	heap: RegionStore = field(default_factory=RegionStore)
	futures: FutureContext = field(default_factory=FutureContext)
	reachable: bool = True

	@classmethod
	def empty(cls, allocator: Optional[IdAllocator] = None) -> "RegionState":
		return cls(heap=RegionStore(allocator or IdAllocator()))

	@property
	def allocator(self) -> IdAllocator:
		return self.heap.allocator

	def copy(self) -> "RegionState":
		return RegionState(self.gamma.copy(), self.heap.copy(), self.futures.copy(), self.reachable)

	def accessible(self, binding: Binding) -> bool:
		return binding.region is None or binding.region in self.heap

	def loss_of(self, binding: Binding) -> Optional[LossReason]:
		if binding.region is None or binding.region in self.heap:
			return None
		return self.heap.loss(binding.region)

	def lose_binding(self, name: str, reason: LossReason) -> None:
		"""Make `name` inaccessible without touching the region it named."""
		binding = self.gamma.lookup(name)
		if binding is None or binding.region is None:
			return
		rid = self.allocator.next()
		self.heap.lost[rid] = reason
		self.gamma.bind(name, binding.with_region(rid))

	def abandon_future(self, handle: int) -> None:
		"""Give up on a live handle; its regions stay lost for good."""
		entry = self.futures.redeem(handle)
		detail = f"abandoned future h{handle}"
		for rid in entry.fragment_ids() + entry.consumed:
			self.heap.lost[rid] = LossReason(LossKind.CONSUMED, detail)
		for rec in self.heap:
			for f, tomb in rec.tombstones():
				if tomb.cause is TombstoneCause.SUSPENDED and tomb.handle == handle:
					rec.children[f] = Tombstone(TombstoneCause.CONSUMED, detail)

	def collect_garbage(self) -> None:
		"""Drop regions no binding reaches through tracked edges."""
		live: Set[RegionId] = set()
		for rid in self.gamma.regions():
			if rid in self.heap:
				live.update(self.heap.subtree(rid))
		for rid in list(self.heap.records):
			if rid not in live:
				del self.heap.records[rid]
		# Lost ids nobody refers to carry no information.
		referenced = set(self.gamma.regions())
		for rid in list(self.heap.lost):
			if rid not in referenced:
				del self.heap.lost[rid]

	def render(self) -> str:
		if not self.reachable:
			return "unreachable"
		text = f"Γ{{{self.gamma.render()}}} ℋ{{{self.heap.render()}}}"
		futures = self.futures.render()
		if futures:
			text += f" Φ{{{futures}}}"
		return text

	def canonical_key(self) -> Tuple:
		"""
		Structural key equal for states that differ only in region numbering.

		Regions are renumbered in order of first appearance walking bindings by
		name, then children by field name, then live futures by handle.
		"""
		if not self.reachable:
			return ("unreachable",)
		numbering: Dict[RegionId, int] = {}

		def num(rid: RegionId) -> int:
			if rid not in numbering:
				numbering[rid] = len(numbering)
			return numbering[rid]

		def walk(rid: RegionId) -> None:
			for cur in self.heap.subtree(rid):
				num(cur)

		for _, b in self.gamma.items():
			if b.region is not None and b.region in self.heap:
				walk(b.region)
		bindings = []
		for name, b in self.gamma.items():
			if b.region is None:
				bindings.append((name, b.type_name, None, b.handle))
			elif b.region in self.heap:
				bindings.append((name, b.type_name, num(b.region), b.handle))
			else:
				reason = self.heap.loss(b.region)
				bindings.append((name, b.type_name, ("lost", reason.kind.value if reason else None), b.handle))
		records = []
		for rid in sorted(numbering, key=numbering.get):
			if rid not in self.heap:
				continue
			rec = self.heap.get(rid)
			slots = []
			for f, slot in sorted(rec.children.items()):
				if isinstance(slot, Tombstone):
					slots.append((f, "⊥", slot.cause.value))
				else:
					slots.append((f, num(slot)))
			records.append((numbering[rid], rec.pinned, tuple(slots)))
		futures = []
		for entry in self.futures.live():
			futures.append((
				entry.handle,
				tuple(num(rid) for rid in entry.fragment_ids()),
				tuple((num(p), f, num(c)) for p, f, c in entry.restore_edges),
			))
		return (tuple(bindings), tuple(records), tuple(futures))

	def path_of(self, rid: RegionId) -> str:
		"""
		A source-level name for `rid`: a variable bound to it, or the first
		such variable's isolated-field path down to it. Falls back to `rN`.
		"""
		names = self.gamma.vars_in(rid)
		if names:
			return names[0]
		seen: Set[RegionId] = {rid}
		for parent, f in self.heap.parents_of(rid):
			if parent in seen:
				continue
			seen.add(parent)
			above = self.path_of(parent) if not self.heap.ancestors(parent) & seen else f"r{parent}"
			return f"{above}.{f}"
		return f"r{rid}"


def restrict_scope(state: RegionState, names: Iterable[str]) -> RegionState:
	"""Copy of `state` with only `names` bound and unreachable regions dropped."""
	out = state.copy()
	out.gamma.restrict(names)
	out.collect_garbage()
	return out


__all__ = ["RegionState", "restrict_scope"]
