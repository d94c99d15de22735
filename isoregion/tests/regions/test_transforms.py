#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Virtual transformations and the bounded search driver."""

from dataclasses import dataclass

import pytest

from isoregion.regionc.core.limits import RegionLimits
from isoregion.regionc.regions.context import Binding
from isoregion.regionc.regions.state import RegionState
from isoregion.regionc.regions.store import LossKind, Tombstone, TombstoneCause
from isoregion.regionc.regions.transforms import (
	Attach,
	Explore,
	Focus,
	Forget,
	Retract,
	TransformEngine,
	TransformError,
	Unfocus,
)


def _state():
	state = RegionState.empty()
	p = state.heap.fresh()
	state.gamma.bind("p", Binding(p, "IsoPair"))
	return state, p


def test_explore_is_idempotent():
	state, p = _state()
	engine = TransformEngine()
	child = engine.apply(state, Explore(p, "left"))
	assert engine.apply(state, Explore(p, "left")) == child
	assert state.heap.slot(p, "left") == child
	assert len(state.heap.records) == 2


def test_explore_refuses_tombstones_and_pinned_regions():
	state, p = _state()
	engine = TransformEngine()
	state.heap.set_slot(p, "left", Tombstone(TombstoneCause.CONSUMED, "take"))
	with pytest.raises(TransformError, match="consumed by take"):
		engine.apply(state, Explore(p, "left"))
	pinned = state.heap.fresh(pinned=True)
	assert not engine.try_apply(state, Explore(pinned, "left"))


def test_retract_is_final():
	state, p = _state()
	engine = TransformEngine()
	child = engine.apply(state, Explore(p, "left"))
	state.gamma.bind("x", Binding(child, "Item"))
	engine.apply(state, Retract(p, "left"))
	assert state.heap.slot(p, "left") is None
	assert not state.accessible(state.gamma.lookup("x"))
	assert state.heap.loss(child).kind is LossKind.RETRACTED
	# Exploring again yields a new region, never the retracted one.
	assert engine.apply(state, Explore(p, "left")) != child


def test_retract_requires_a_leaf():
	state, p = _state()
	engine = TransformEngine()
	child = engine.apply(state, Explore(p, "left"))
	engine.apply(state, Explore(child, "next"))
	with pytest.raises(TransformError, match="still tracks"):
		engine.apply(state, Retract(p, "left"))


def test_attach_merges_and_rebinds():
	state, p = _state()
	engine = TransformEngine()
	q = state.heap.fresh()
	state.gamma.bind("q", Binding(q, "Item"))
	merged = engine.apply(state, Attach(p, q))
	assert merged not in (p, q)
	assert state.gamma.lookup("p").region == merged
	assert state.gamma.lookup("q").region == merged
	assert p not in state.heap and q not in state.heap


def test_attach_preconditions():
	state, p = _state()
	engine = TransformEngine()
	child = engine.apply(state, Explore(p, "left"))
	with pytest.raises(TransformError, match="related"):
		engine.apply(state, Attach(p, child))
	with pytest.raises(TransformError, match="itself"):
		engine.apply(state, Attach(p, p))
	other = state.heap.fresh()
	state.heap.set_slot(other, "left", Tombstone(TombstoneCause.UNINITIALIZED))
	lone = state.heap.fresh()
	with pytest.raises(TransformError, match="only one"):
		engine.apply(state, Attach(other, lone))


def test_forget_field_leaves_the_child_as_a_root():
	state, p = _state()
	engine = TransformEngine()
	child = engine.apply(state, Explore(p, "left"))
	engine.apply(state, Forget(p, "left", TombstoneCause.JOIN, "x"))
	assert state.heap.slot(p, "left").cause is TombstoneCause.JOIN
	assert child in state.heap
	assert state.heap.parents_of(child) == []


def test_forget_region_removes_its_subtree():
	state, p = _state()
	engine = TransformEngine()
	child = engine.apply(state, Explore(p, "left"))
	grandchild = engine.apply(state, Explore(child, "next"))
	engine.apply(state, Forget(child, None, TombstoneCause.CONSUMED, "take"))
	assert state.heap.slot(p, "left") == Tombstone(TombstoneCause.CONSUMED, "take")
	assert child not in state.heap and grandchild not in state.heap
	assert state.heap.loss(grandchild).kind is LossKind.CONSUMED


def test_focus_is_presentation_only():
	state, p = _state()
	engine = TransformEngine()
	before = state.canonical_key()
	engine.apply(state, Focus(p, ("left", "right")))
	assert state.heap.get(p).render("p") == "p⟨left ↣ ·, right ↣ ·⟩"
	engine.apply(state, Unfocus(p))
	assert state.canonical_key() == before
	assert state.heap.get(p).render("p") == "p⟨⟩"


@dataclass(frozen=True)
class _Conjure:
	"""A bogus rule that invents an edge out of nothing."""

	region: int

	def apply(self, state):
		child = state.heap.fresh()
		state.heap.set_slot(self.region, "left", child)

	def describe(self):
		return "conjure"


def test_engine_rejects_unsound_steps():
	state, p = _state()
	with pytest.raises(AssertionError, match="invented tracked edges"):
		TransformEngine().apply(state, _Conjure(p))


def test_collapse_retracts_a_whole_subtree():
	state, p = _state()
	engine = TransformEngine()
	child = engine.apply(state, Explore(p, "left"))
	engine.apply(state, Explore(child, "next"))
	assert engine.collapse(state, p, "left")
	assert state.heap.slot(p, "left") is None
	assert list(state.heap.records) == [p]


def test_collapse_stops_at_tombstones_without_changes():
	state, p = _state()
	engine = TransformEngine()
	child = engine.apply(state, Explore(p, "left"))
	state.heap.set_slot(child, "next", Tombstone(TombstoneCause.ALIAS))
	assert not engine.collapse(state, p, "left")
	assert state.heap.slot(p, "left") == child


def test_merge_regions_drops_edges_in_the_way():
	state, p = _state()
	engine = TransformEngine()
	child = engine.apply(state, Explore(p, "left"))
	state.gamma.bind("x", Binding(child, "Item"))
	merged = engine.merge_regions(state, p, child, cause=TombstoneCause.ALIAS, detail="p.first")
	assert state.gamma.lookup("p").region == merged
	assert state.gamma.lookup("x").region == merged
	assert state.heap.slot(merged, "left") == Tombstone(TombstoneCause.ALIAS, "p.first")
	assert state.heap.tree_violations() == []


def test_search_reaches_the_goal_shape():
	state, p = _state()
	engine = TransformEngine()
	child = engine.apply(state, Explore(p, "left"))
	engine.apply(state, Explore(child, "next"))

	def moves(s):
		return [Retract(parent, f) for parent, f, c in sorted(s.heap.edges()) if s.heap.get(c).is_leaf()]

	result = engine.search(state, moves, lambda s: len(s.heap.edges()))
	assert result.reached
	assert [step.describe() for step in result.steps] == [f"retract(r{child}.next)", f"retract(r{p}.left)"]
	# The input state is left alone; callers commit the result.
	assert len(state.heap.edges()) == 2


def test_search_returns_the_closest_state_when_out_of_budget():
	state, p = _state()
	engine = TransformEngine(RegionLimits(match_budget=1))
	child = engine.apply(state, Explore(p, "left"))
	engine.apply(state, Explore(child, "next"))

	def moves(s):
		return [Retract(parent, f) for parent, f, c in sorted(s.heap.edges()) if s.heap.get(c).is_leaf()]

	result = engine.search(state, moves, lambda s: len(s.heap.edges()))
	assert not result.reached
	assert result.distance == 1
	assert result.expanded == 1
