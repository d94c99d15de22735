#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Branch unifier: join states of two control-flow paths."""

from isoregion.regionc.core.limits import RegionLimits
from isoregion.regionc.regions.context import Binding
from isoregion.regionc.regions.futures import FutureEntry
from isoregion.regionc.regions.state import RegionState
from isoregion.regionc.regions.store import Tombstone, TombstoneCause
from isoregion.regionc.regions.transforms import Explore, TransformEngine
from isoregion.regionc.regions.unify import BranchUnifier


def _unifier(limits=None):
	limits = limits or RegionLimits()
	return BranchUnifier(TransformEngine(limits), limits)


def _base(*names_types):
	state = RegionState.empty()
	for name, type_name in names_types:
		state.gamma.bind(name, Binding(state.heap.fresh(), type_name))
	return state


def _region(state, name):
	return state.gamma.lookup(name).region


def test_identical_states_join_to_the_same_shape():
	base = _base(("p", "IsoPair"), ("q", "Item"))
	joined = _unifier().unify([base.copy(), base.copy()], ["p", "q"])
	assert joined.failures == []
	assert joined.state.canonical_key() == base.canonical_key()


def test_unreachable_paths_are_ignored():
	base = _base(("p", "IsoPair"))
	dead = base.copy()
	dead.heap.set_slot(_region(dead, "p"), "left", Tombstone(TombstoneCause.CONSUMED, "take"))
	dead.reachable = False
	joined = _unifier().unify([dead, base.copy()], ["p"])
	assert joined.state.heap.get(_region(joined.state, "p")).children == {}


def test_all_unreachable_joins_to_unreachable():
	base = _base(("p", "IsoPair"))
	a, b = base.copy(), base.copy()
	a.reachable = b.reachable = False
	assert not _unifier().unify([a, b], ["p"]).state.reachable


def test_names_outside_the_scope_are_dropped():
	base = _base(("p", "IsoPair"))
	then = base.copy()
	then.gamma.bind("tmp", Binding(then.heap.fresh(), "Item"))
	joined = _unifier().unify([then, base.copy()], ["p"])
	assert "tmp" not in joined.state.gamma
	assert len(joined.state.heap.records) == 1


def test_unbound_tracked_field_is_retracted():
	engine = TransformEngine()
	base = _base(("p", "IsoPair"))
	then = base.copy()
	engine.apply(then, Explore(_region(then, "p"), "left"))
	joined = _unifier().unify([then, base.copy()], ["p"])
	assert joined.failures == []
	assert joined.state.heap.get(_region(joined.state, "p")).children == {}


def test_dead_field_on_one_path_is_dead_after_the_join():
	base = _base(("p", "IsoPair"))
	then = base.copy()
	then.heap.set_slot(_region(then, "p"), "left", Tombstone(TombstoneCause.CONSUMED, "take"))
	joined = _unifier().unify([then, base.copy()], ["p"])
	slot = joined.state.heap.slot(_region(joined.state, "p"), "left")
	assert slot == Tombstone(TombstoneCause.CONSUMED, "take")


def test_different_tombstone_causes_become_join_tombstones():
	base = _base(("p", "IsoPair"))
	then, orelse = base.copy(), base.copy()
	then.heap.set_slot(_region(then, "p"), "left", Tombstone(TombstoneCause.CONSUMED, "take"))
	orelse.heap.set_slot(_region(orelse, "p"), "left", Tombstone(TombstoneCause.UNINITIALIZED))
	joined = _unifier().unify([then, orelse], ["p"])
	assert joined.state.heap.slot(_region(joined.state, "p"), "left").cause is TombstoneCause.JOIN


def test_variable_in_different_regions_merges_them():
	base = _base(("a", "Item"), ("b", "Item"))
	then, orelse = base.copy(), base.copy()
	then.gamma.bind("x", Binding(_region(then, "a"), "Item"))
	orelse.gamma.bind("x", Binding(_region(orelse, "b"), "Item"))
	joined = _unifier().unify([then, orelse], ["a", "b", "x"])
	state = joined.state
	assert joined.failures == []
	assert _region(state, "a") == _region(state, "b") == _region(state, "x")
	assert all(state.accessible(state.gamma.lookup(n)) for n in ("a", "b", "x"))


def test_fallback_explores_to_keep_a_variable():
	engine = TransformEngine()
	base = _base(("p", "IsoPair"))
	then, orelse = base.copy(), base.copy()
	child = engine.apply(then, Explore(_region(then, "p"), "left"))
	then.gamma.bind("x", Binding(child, "Item"))
	orelse.gamma.bind("x", Binding(orelse.heap.fresh(), "Item"))
	joined = _unifier().unify([then, orelse], ["p", "x"])
	state = joined.state
	assert joined.failures == []
	assert state.accessible(state.gamma.lookup("x"))
	assert state.heap.slot(_region(state, "p"), "left") == _region(state, "x")


def test_future_live_on_one_path_fails_the_join():
	base = _base(("p", "IsoPair"))
	then = base.copy()
	handle = then.allocator.next()
	then.futures.create(FutureEntry(handle, "send", name="h"))
	then.futures.activate(handle)
	then.gamma.bind("h", Binding(None, "Future[Unit]", handle))
	joined = _unifier().unify([then, base.copy()], ["p"])
	assert len(joined.failures) == 1
	assert joined.failures[0].subject == "h"
	assert "live on one path but not on the other" in joined.failures[0].message
	assert joined.state.futures.live() == []


def test_join_never_breaks_the_forest():
	engine = TransformEngine()
	base = _base(("p", "IsoPair"), ("q", "IsoPair"))
	then, orelse = base.copy(), base.copy()
	c = engine.apply(then, Explore(_region(then, "p"), "left"))
	engine.apply(then, Explore(c, "right"))
	orelse.gamma.bind("p", Binding(_region(orelse, "q"), "IsoPair"))
	joined = _unifier().unify([then, orelse], ["p", "q"])
	assert joined.state.heap.tree_violations() == []
