# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Region store (ℋ): the owned regions of the function being checked.

A region is an opaque integer id standing for a set of values that may alias
or reach one another. Each record may carry a partial map from isolated field
names to slots:

- a child `RegionId`: the field was explored, `r⟨f ↣ r'⟩`
- a `Tombstone`: the field is inaccessible, `r⟨f ↣ ⊥⟩`
- no entry: the field's structure is owned inline by `r`

The store is an arena indexed by id; merges relabel ids instead of rewriting a
pointer graph. Ids come from an `IdAllocator` shared by every copy of a state
within one function check, so ids never collide across branches and a removed
id is never handed out again.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union


RegionId = int


class IdAllocator:
	"""Monotonic id source shared by all copies of one function's state."""

	def __init__(self, start: int = 1) -> None:
		self._next = start

	def next(self) -> int:
		value = self._next
		self._next += 1
		return value


class TombstoneCause(Enum):
	"""Why an isolated field is inaccessible."""

	UNINITIALIZED = "uninitialized"
	CONSUMED = "consumed"
	SUSPENDED = "suspended"
	ALIAS = "alias"
	JOIN = "join"


@dataclass(frozen=True)
class Tombstone:
	"""A recorded-but-inaccessible isolated-field edge (⊥)."""

	cause: TombstoneCause
	detail: str = ""
	handle: Optional[int] = None

	def describe(self) -> str:
		if self.cause is TombstoneCause.UNINITIALIZED:
			return "not initialized"
		if self.cause is TombstoneCause.CONSUMED:
			return f"consumed by {self.detail}" if self.detail else "consumed"
		if self.cause is TombstoneCause.SUSPENDED:
			return f"held by future {self.detail}" if self.detail else "held by a live future"
		if self.cause is TombstoneCause.ALIAS:
			return f"aliased by assignment to {self.detail}" if self.detail else "aliased by another isolated field"
		return f"dropped at a branch join{': ' + self.detail if self.detail else ''}"

	def __str__(self) -> str:
		return "⊥"


class _Inline:
	"""Marker for an untracked (owned inline) field in focused views."""

	_instance: Optional["_Inline"] = None

	def __new__(cls) -> "_Inline":
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __repr__(self) -> str:
		return "INLINE"

	def __str__(self) -> str:
		return "·"


INLINE = _Inline()

Slot = Union[RegionId, Tombstone]


@dataclass
class RegionRecord:
	"""One owned region: `r⟨children⟩`, optionally pinned."""

	id: RegionId
	children: Dict[str, Slot] = field(default_factory=dict)
	pinned: bool = False
	# Field list when the record is in focused form (presentation only).
	focus: Optional[Tuple[str, ...]] = None

	def copy(self) -> "RegionRecord":
		return replace(self, children=dict(self.children))

	def is_leaf(self) -> bool:
		"""A leaf tracks nothing: no child edges and no tombstones."""
		return not self.children

	def edges(self) -> List[Tuple[str, RegionId]]:
		return [(f, s) for f, s in sorted(self.children.items()) if isinstance(s, int)]

	def tombstones(self) -> List[Tuple[str, Tombstone]]:
		return [(f, s) for f, s in sorted(self.children.items()) if isinstance(s, Tombstone)]

	def render(self, name: Optional[str] = None) -> str:
		label = name or f"r{self.id}"
		if self.pinned:
			label += "!"
		fields = list(self.focus) if self.focus is not None else []
		for f in sorted(self.children):
			if f not in fields:
				fields.append(f)
		parts = []
		for f in fields:
			slot = self.children.get(f, INLINE)
			if isinstance(slot, int):
				parts.append(f"{f} ↣ r{slot}")
			else:
				parts.append(f"{f} ↣ {slot}")
		return f"{label}⟨{', '.join(parts)}⟩"


class LossKind(Enum):
	"""Why a region id is no longer owned."""

	CONSUMED = "consumed"
	SUSPENDED = "suspended"
	RETRACTED = "retracted"
	JOIN = "join"


@dataclass(frozen=True)
class LossReason:
	kind: LossKind
	detail: str = ""
	handle: Optional[int] = None

	def describe(self) -> str:
		if self.kind is LossKind.CONSUMED:
			return f"consumed by {self.detail}" if self.detail else "consumed"
		if self.kind is LossKind.SUSPENDED:
			return f"held by live future {self.detail}" if self.detail else "held by a live future"
		if self.kind is LossKind.RETRACTED:
			return f"retracted into {self.detail}" if self.detail else "retracted"
		return f"dropped at a branch join{': ' + self.detail if self.detail else ''}"


class RegionStore:
	"""Arena of region records plus the reasons removed ids were lost."""

	def __init__(self, allocator: Optional[IdAllocator] = None) -> None:
		self.allocator = allocator or IdAllocator()
		self.records: Dict[RegionId, RegionRecord] = {}
		self.lost: Dict[RegionId, LossReason] = {}

	def copy(self) -> "RegionStore":
		other = RegionStore(self.allocator)
		other.records = {rid: rec.copy() for rid, rec in self.records.items()}
		other.lost = dict(self.lost)
		return other

	# Queries

	def __contains__(self, rid: object) -> bool:
		return rid in self.records

	def __iter__(self) -> Iterator[RegionRecord]:
		return iter(self.records[rid] for rid in sorted(self.records))

	def get(self, rid: RegionId) -> RegionRecord:
		return self.records[rid]

	def slot(self, rid: RegionId, field_name: str) -> Optional[Slot]:
		"""Return the slot of `field_name`, or None when it is owned inline."""
		return self.records[rid].children.get(field_name)

	def loss(self, rid: RegionId) -> Optional[LossReason]:
		return self.lost.get(rid)

	def edges(self) -> Set[Tuple[RegionId, str, RegionId]]:
		"""All tracked isolated-field edges as (parent, field, child)."""
		out: Set[Tuple[RegionId, str, RegionId]] = set()
		for rec in self.records.values():
			for f, child in rec.edges():
				out.add((rec.id, f, child))
		return out

	def parents_of(self, rid: RegionId) -> List[Tuple[RegionId, str]]:
		"""Tracked edges pointing at `rid`, in deterministic order."""
		out = []
		for rec in self:
			for f, child in rec.edges():
				if child == rid:
					out.append((rec.id, f))
		return out

	def ancestors(self, rid: RegionId) -> Set[RegionId]:
		seen: Set[RegionId] = set()
		work = [p for p, _ in self.parents_of(rid)]
		while work:
			cur = work.pop()
			if cur in seen:
				continue
			seen.add(cur)
			work.extend(p for p, _ in self.parents_of(cur))
		return seen

	def subtree(self, rid: RegionId) -> List[RegionId]:
		"""`rid` and every region reachable from it through tracked edges (preorder)."""
		order: List[RegionId] = []
		seen: Set[RegionId] = set()
		work = [rid]
		while work:
			cur = work.pop()
			if cur in seen or cur not in self.records:
				continue
			seen.add(cur)
			order.append(cur)
			work.extend(child for _, child in reversed(self.records[cur].edges()))
		return order

	def tree_violations(self) -> List[Tuple[RegionId, List[Tuple[RegionId, str]]]]:
		"""
		Regions reached by more than one tracked edge, or lying on a cycle.

		An empty result means the isolated-field edge relation is a forest.
		"""
		out = []
		for rid in sorted(self.records):
			parents = self.parents_of(rid)
			if len(parents) > 1 or rid in self.ancestors(rid):
				out.append((rid, parents))
		return out

	# Mutation

	def fresh(self, *, pinned: bool = False) -> RegionId:
		rid = self.allocator.next()
		self.records[rid] = RegionRecord(rid, pinned=pinned)
		return rid

	def insert(self, record: RegionRecord) -> None:
		"""Reinstate a record (future redemption); its id stops being lost."""
		self.records[record.id] = record
		self.lost.pop(record.id, None)

	def set_slot(self, rid: RegionId, field_name: str, slot: Optional[Slot]) -> None:
		children = self.records[rid].children
		if slot is None:
			children.pop(field_name, None)
		else:
			children[field_name] = slot

	def remove(self, rid: RegionId, reason: LossReason) -> RegionRecord:
		"""Remove one record; the id is remembered as lost."""
		rec = self.records.pop(rid)
		self.lost[rid] = reason
		return rec

	def remove_subtree(self, rid: RegionId, reason: LossReason) -> List[RegionRecord]:
		"""Remove `rid` and its tracked descendants, returning the removed records."""
		return [self.remove(cur, reason) for cur in self.subtree(rid)]

	def detach(self, rid: RegionId, tombstone: Tombstone) -> List[Tuple[RegionId, str]]:
		"""Turn every edge pointing at `rid` into `tombstone`; return the edited slots."""
		edited = self.parents_of(rid)
		for parent, f in edited:
			self.records[parent].children[f] = tombstone
		return edited

	def relabel(self, old: Iterable[RegionId], new: RegionId) -> None:
		"""Point every edge at any of `old` to `new` instead."""
		old_set = set(old)
		for rec in self.records.values():
			for f, slot in list(rec.children.items()):
				if isinstance(slot, int) and slot in old_set:
					rec.children[f] = new

	def render(self) -> str:
		return ", ".join(rec.render() for rec in self)


__all__ = [
	"RegionId",
	"IdAllocator",
	"TombstoneCause",
	"Tombstone",
	"INLINE",
	"Slot",
	"RegionRecord",
	"LossKind",
	"LossReason",
	"RegionStore",
]
