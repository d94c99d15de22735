# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Tunables for the region checker.

The search bounds are deliberately small: a contract or join that needs more
rewrites than this is reported as a failure rather than searched further.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class InitializerFields(Enum):
	"""Entry state of an initializer's isolated fields."""

	TOMBSTONE = "tombstone"  # fields start as ⊥ and must be assigned before use
	EMPTY = "empty"          # fields start owned inside the receiver's region


@dataclass(frozen=True)
class RegionLimits:
	"""Configuration options for one region-checking run."""

	# Transformation steps tried when matching a call/entry/exit contract.
	match_budget: int = 64
	# Candidate choice sets tried by the join fallback search.
	join_budget: int = 32
	# Loop-head fixpoint iterations before giving up.
	loop_iterations: int = 8
	initializer_fields: InitializerFields = InitializerFields.TOMBSTONE

	def __post_init__(self) -> None:
		for name in ("match_budget", "join_budget", "loop_iterations"):
			if getattr(self, name) < 1:
				raise ValueError(f"{name} must be positive")


DEFAULT_LIMITS = RegionLimits()


__all__ = ["InitializerFields", "RegionLimits", "DEFAULT_LIMITS"]
