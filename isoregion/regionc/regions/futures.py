# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Future context (Φ): region fragments held by in-flight computations.

Spawning a call moves the argument regions out of ℋ into a `FutureEntry`;
awaiting the handle puts the preserved part back and binds the result. While
an entry is LIVE none of its regions is reachable through Γ/ℋ, which is what
makes the spawned computation the fragment's only accessor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple

from isoregion.regionc.core.span import Span
from isoregion.regionc.regions.store import RegionId, RegionRecord


class HandleState(Enum):
	CREATED = auto()
	LIVE = auto()
	REDEEMED = auto()


@dataclass
class FutureEntry:
	"""Bookkeeping for one spawned computation."""

	handle: int
	callee: str
	# Records removed from ℋ that come back at await (preserved arguments).
	fragment: List[RegionRecord] = field(default_factory=list)
	# Records the callee consumed; they never come back.
	consumed: List[RegionId] = field(default_factory=list)
	# (parent, field, child) edges tombstoned at spawn, re-linked at await.
	restore_edges: List[Tuple[RegionId, str, RegionId]] = field(default_factory=list)
	result_type: str = "Unit"
	# Region the result will occupy: a fresh id reserved at spawn time, the
	# id of a preserved argument's region, or None for immutable results.
	result_region: Optional[RegionId] = None
	result_fresh: bool = True
	state: HandleState = HandleState.CREATED
	span: Span = field(default_factory=Span)
	name: str = ""

	def copy(self) -> "FutureEntry":
		return FutureEntry(
			handle=self.handle,
			callee=self.callee,
			fragment=[rec.copy() for rec in self.fragment],
			consumed=list(self.consumed),
			restore_edges=list(self.restore_edges),
			result_type=self.result_type,
			result_region=self.result_region,
			result_fresh=self.result_fresh,
			state=self.state,
			span=self.span,
			name=self.name,
		)

	def fragment_ids(self) -> List[RegionId]:
		return [rec.id for rec in self.fragment]

	def label(self) -> str:
		return f"'{self.name}'" if self.name else f"h{self.handle}"


class FutureContext:
	"""Handle id → entry, including redeemed entries (to diagnose double awaits)."""

	def __init__(self) -> None:
		self.entries: Dict[int, FutureEntry] = {}

	def copy(self) -> "FutureContext":
		other = FutureContext()
		other.entries = {h: e.copy() for h, e in self.entries.items()}
		return other

	def create(self, entry: FutureEntry) -> FutureEntry:
		if entry.handle in self.entries:
			raise AssertionError(f"future handle h{entry.handle} allocated twice (checker bug)")
		entry.state = HandleState.CREATED
		self.entries[entry.handle] = entry
		return entry

	def activate(self, handle: int) -> FutureEntry:
		entry = self.entries[handle]
		if entry.state is not HandleState.CREATED:
			raise AssertionError(f"future h{handle} activated from {entry.state.name} (checker bug)")
		entry.state = HandleState.LIVE
		return entry

	def get(self, handle: int) -> Optional[FutureEntry]:
		return self.entries.get(handle)

	def redeem(self, handle: int) -> FutureEntry:
		entry = self.entries[handle]
		if entry.state is not HandleState.LIVE:
			raise AssertionError(f"future h{handle} redeemed from {entry.state.name} (checker bug)")
		entry.state = HandleState.REDEEMED
		return entry

	def live(self) -> List[FutureEntry]:
		return [self.entries[h] for h in sorted(self.entries) if self.entries[h].state is HandleState.LIVE]

	def relabel(self, old: List[RegionId], new: RegionId) -> None:
		"""Follow a merge of ℋ regions in the restore edges of live entries."""
		old_set = set(old)
		for entry in self.entries.values():
			entry.restore_edges = [
				(new if parent in old_set else parent, f, child) for parent, f, child in entry.restore_edges
			]

	def render(self) -> str:
		parts = []
		for entry in self.live():
			frag = ", ".join(f"r{rid}" for rid in entry.fragment_ids())
			parts.append(f"h{entry.handle} ↦ {entry.callee}[{frag}] → {entry.result_type}")
		return ", ".join(parts)


__all__ = ["HandleState", "FutureEntry", "FutureContext"]
