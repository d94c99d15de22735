# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Typing context (Γ): variable → (region, type) with strong update.

Several variables may name one region (aliases). A binding whose region is not
in ℋ is still lexically in scope but inaccessible; the store's `lost` map says
why. Deeply immutable values have `region=None`; future handles additionally
carry the handle id they refer to.

Names starting with `ENTRY_PREFIX` are hidden bindings the checker keeps for
each parameter's entry region, so merges and joins keep tracking the region
the caller handed over even when the parameter variable is reassigned.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Tuple

from isoregion.regionc.regions.store import RegionId


ENTRY_PREFIX = "%entry."


def entry_name(param: str) -> str:
	return ENTRY_PREFIX + param


def is_hidden(name: str) -> bool:
	return name.startswith(ENTRY_PREFIX)


@dataclass(frozen=True)
class Binding:
	region: Optional[RegionId]
	type_name: str
	handle: Optional[int] = None

	def with_region(self, region: Optional[RegionId]) -> "Binding":
		return replace(self, region=region)


class TypingContext:
	"""Mapping from in-scope names to bindings."""

	def __init__(self, bindings: Optional[Dict[str, Binding]] = None) -> None:
		self._bindings: Dict[str, Binding] = dict(bindings or {})

	def copy(self) -> "TypingContext":
		return TypingContext(self._bindings)

	def bind(self, name: str, binding: Binding) -> None:
		"""Strong update: the previous binding of `name` (if any) is replaced."""
		self._bindings[name] = binding

	def unbind(self, name: str) -> None:
		self._bindings.pop(name, None)

	def lookup(self, name: str) -> Optional[Binding]:
		return self._bindings.get(name)

	def __contains__(self, name: object) -> bool:
		return name in self._bindings

	def names(self) -> List[str]:
		return sorted(self._bindings)

	def visible_names(self) -> List[str]:
		return [n for n in self.names() if not is_hidden(n)]

	def items(self) -> List[Tuple[str, Binding]]:
		return [(n, self._bindings[n]) for n in self.names()]

	def vars_in(self, region: RegionId) -> List[str]:
		return [n for n, b in self.items() if b.region == region and not is_hidden(n)]

	def regions(self) -> List[RegionId]:
		return sorted({b.region for b in self._bindings.values() if b.region is not None})

	def rebind_region(self, old: Iterable[RegionId], new: Optional[RegionId]) -> None:
		"""Point every binding of any region in `old` at `new`."""
		old_set = set(old)
		for name, binding in list(self._bindings.items()):
			if binding.region in old_set:
				self._bindings[name] = binding.with_region(new)

	def holders_of(self, handle: int) -> List[str]:
		return [n for n, b in self.items() if b.handle == handle]

	def restrict(self, names: Iterable[str]) -> None:
		keep = set(names)
		for name in list(self._bindings):
			if name not in keep:
				del self._bindings[name]

	def render(self) -> str:
		parts = []
		for name, b in self.items():
			if is_hidden(name):
				continue
			if b.handle is not None:
				parts.append(f"{name}: {b.type_name} h{b.handle}")
			elif b.region is None:
				parts.append(f"{name}: {b.type_name}")
			else:
				parts.append(f"{name}: {b.type_name} @r{b.region}")
		return ", ".join(parts)


__all__ = ["Binding", "TypingContext", "ENTRY_PREFIX", "entry_name", "is_hidden"]
