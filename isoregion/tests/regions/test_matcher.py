#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Signature matcher: entry states, call sites, spawns and exits."""

from isoregion.regionc.core.diagnostics import RegionErrorKind
from isoregion.regionc.core.limits import InitializerFields, RegionLimits
from isoregion.regionc.core.span import Span
from isoregion.regionc.regions.context import Binding, entry_name
from isoregion.regionc.regions.futures import HandleState
from isoregion.regionc.regions.matcher import ArgValue, SignatureMatcher
from isoregion.regionc.regions.state import RegionState
from isoregion.regionc.regions.store import LossKind, Tombstone, TombstoneCause
from isoregion.regionc.regions.transforms import Explore, TransformEngine
from isoregion.test_support import demo_types, param, sig


def _matcher(limits=None):
	limits = limits or RegionLimits()
	return SignatureMatcher(demo_types(), TransformEngine(limits), limits)


def _caller(*names_types):
	state = RegionState.empty()
	for name, type_name in names_types:
		state.gamma.bind(name, Binding(state.heap.fresh(), type_name))
	return state


def _arg(state, name):
	b = state.gamma.lookup(name)
	return ArgValue(b.region, b.type_name, name)


def test_enter_lays_out_simplified_parameters():
	state = RegionState.empty()
	regions = _matcher().enter(sig("f", param("p", "IsoPair"), param("n", "Int")), state)
	p = state.gamma.lookup("p")
	assert regions == {"p": p.region}
	assert state.heap.get(p.region).children == {}
	assert state.gamma.lookup("n").region is None
	assert state.gamma.lookup(entry_name("p")) == p


def test_enter_groups_share_one_region():
	state = RegionState.empty()
	_matcher().enter(sig("link", param("a", "Item", group=0), param("b", "Item", group=0)), state)
	assert state.gamma.lookup("a").region == state.gamma.lookup("b").region


def test_enter_initializer_fields_start_uninitialized():
	state = RegionState.empty()
	_matcher().enter(sig("init", param("self", "IsoPair"), initializer=True), state)
	rec = state.heap.get(state.gamma.lookup("self").region)
	assert {f: slot.cause for f, slot in rec.children.items()} == {
		"left": TombstoneCause.UNINITIALIZED,
		"right": TombstoneCause.UNINITIALIZED,
	}


def test_enter_initializer_fields_start_inline_in_empty_mode():
	state = RegionState.empty()
	matcher = _matcher(RegionLimits(initializer_fields=InitializerFields.EMPTY))
	matcher.enter(sig("init", param("self", "IsoPair"), initializer=True), state)
	assert state.heap.get(state.gamma.lookup("self").region).children == {}


def test_enter_entry_facts():
	state = RegionState.empty()
	_matcher().enter(
		sig("f", param("p", "IsoPair"), param("a", "Item"), entry=["p.left -> @a", "p.right -> @t"]),
		state,
	)
	p = state.gamma.lookup("p").region
	a = state.gamma.lookup("a").region
	assert state.heap.slot(p, "left") == a
	right = state.heap.slot(p, "right")
	assert isinstance(right, int) and right != a


def test_call_retracts_explored_fields_of_preserved_arguments():
	matcher = _matcher()
	state = _caller(("p", "IsoPair"))
	p = state.gamma.lookup("p").region
	child = matcher.engine.apply(state, Explore(p, "left"))
	state.gamma.bind("x", Binding(child, "Item"))
	out = matcher.check_call(state, sig("look", param("q", "IsoPair")), [_arg(state, "p")], Span())
	assert out.diagnostics == []
	assert state.heap.slot(p, "left") is None
	assert not state.accessible(state.gamma.lookup("x"))
	assert out.region is None


def test_call_consumes_arguments():
	matcher = _matcher()
	state = _caller(("a", "Item"))
	out = matcher.check_call(state, sig("take", param("x", "Item", consuming=True)), [_arg(state, "a")], Span())
	assert out.diagnostics == []
	loss = state.loss_of(state.gamma.lookup("a"))
	assert loss.kind is LossKind.CONSUMED
	assert loss.describe() == "consumed by take"


def test_call_applies_exit_facts_to_preserved_arguments():
	matcher = _matcher()
	state = _caller(("q", "IsoPair"))
	drop_left = sig("drop_left", param("p", "IsoPair"), exit=["p.left -> dead"])
	assert matcher.check_call(state, drop_left, [_arg(state, "q")], Span()).diagnostics == []
	slot = state.heap.slot(state.gamma.lookup("q").region, "left")
	assert slot == Tombstone(TombstoneCause.CONSUMED, "drop_left")


def test_call_result_regions():
	matcher = _matcher()
	state = _caller(("q", "IsoPair"))
	q = state.gamma.lookup("q").region
	same = matcher.check_call(state, sig("get", param("p", "IsoPair"), result="Item", origin="p"), [_arg(state, "q")], Span())
	fresh = matcher.check_call(state, sig("make", result="Item"), [], Span())
	assert same.region == q
	assert fresh.region not in (None, q)
	assert fresh.region in state.heap


def test_call_groups_merge_argument_regions():
	matcher = _matcher()
	state = _caller(("x", "Item"), ("y", "Item"))
	link = sig("link", param("a", "Item", group=0), param("b", "Item", group=0))
	assert matcher.check_call(state, link, [_arg(state, "x"), _arg(state, "y")], Span()).diagnostics == []
	assert state.gamma.lookup("x").region == state.gamma.lookup("y").region


def test_call_with_one_region_for_separate_parameters():
	matcher = _matcher()
	state = _caller(("x", "Item"))
	pair = sig("pair", param("a", "Item"), param("b", "Item"))
	diags = matcher.check_call(state, pair, [_arg(state, "x"), _arg(state, "x")], Span())
	assert [d.kind for d in diags.diagnostics] == [RegionErrorKind.CONTRACT_MISMATCH]
	assert "share region" in diags.diagnostics[0].message


def test_call_arity_mismatch():
	matcher = _matcher()
	state = _caller(("x", "Item"))
	out = matcher.check_call(state, sig("send", param("v", "Item")), [], Span())
	assert "expects 1 argument(s), got 0" in out.diagnostics[0].message


def test_pinned_argument_needs_a_pinned_parameter():
	matcher = _matcher()
	state = RegionState.empty()
	state.gamma.bind("p", Binding(state.heap.fresh(pinned=True), "IsoPair"))
	out = matcher.check_call(state, sig("look", param("q", "IsoPair")), [_arg(state, "p")], Span())
	assert "pinned region" in out.diagnostics[0].message
	ok = matcher.check_call(state, sig("peek", param("q", "IsoPair", pinned=True)), [_arg(state, "p")], Span())
	assert ok.diagnostics == []


def test_spawn_suspends_and_redeem_restores():
	matcher = _matcher()
	state = _caller(("p", "IsoPair"))
	p = state.gamma.lookup("p").region
	child = matcher.engine.apply(state, Explore(p, "left"))
	out = matcher.check_spawn(state, sig("send", param("v", "Item")), [ArgValue(child, "Item", "p.left")], Span())
	assert out.type_name == "Future[Unit]"
	slot = state.heap.slot(p, "left")
	assert slot.cause is TombstoneCause.SUSPENDED and slot.handle == out.handle
	assert child not in state.heap
	assert state.heap.loss(child).kind is LossKind.SUSPENDED
	binding = matcher.redeem(state, out.handle)
	assert binding.region is None
	assert state.heap.slot(p, "left") == child
	assert state.futures.get(out.handle).state is HandleState.REDEEMED


def test_spawn_consumed_argument_never_comes_back():
	matcher = _matcher()
	state = _caller(("a", "Item"))
	out = matcher.check_spawn(state, sig("take", param("x", "Item", consuming=True), result="Item"), [_arg(state, "a")], Span())
	result = matcher.redeem(state, out.handle)
	assert result.region in state.heap
	assert state.loss_of(state.gamma.lookup("a")).describe() == "consumed by take"


def test_exit_reports_live_futures():
	matcher = _matcher()
	serve = sig("serve", param("p", "IsoPair"))
	state = RegionState.empty()
	matcher.enter(serve, state)
	other = state.heap.fresh()
	out = matcher.check_spawn(state, sig("send", param("v", "Item")), [ArgValue(other, "Item", "t")], Span())
	state.gamma.bind("h", Binding(None, out.type_name, out.handle))
	diags = matcher.check_exit(state, serve, None, Span())
	assert [d.kind for d in diags] == [RegionErrorKind.DANGLING_HANDLE]
	assert "held by 'h'" in diags[0].message


def test_exit_retracts_explored_fields():
	matcher = _matcher()
	serve = sig("serve", param("p", "IsoPair"))
	state = RegionState.empty()
	matcher.enter(serve, state)
	p = state.gamma.lookup("p").region
	matcher.engine.apply(state, Explore(p, "left"))
	assert matcher.check_exit(state, serve, None, Span()) == []
	assert state.heap.get(p).children == {}


def test_exit_fresh_result_in_parameter_region():
	matcher = _matcher()
	get = sig("get", param("p", "IsoPair"), result="Item")
	state = RegionState.empty()
	matcher.enter(get, state)
	p = state.gamma.lookup("p").region
	child = matcher.engine.apply(state, Explore(p, "left"))
	diags = matcher.check_exit(state, get, ArgValue(child, "Item", "p.left"), Span())
	assert [d.kind for d in diags] == [RegionErrorKind.CONTRACT_MISMATCH]
	assert "declared fresh" in diags[0].message


def test_exit_fresh_result_detached_by_dead_fact():
	matcher = _matcher()
	get = sig("get", param("p", "IsoPair"), result="Item", exit=["p.left -> dead"])
	state = RegionState.empty()
	matcher.enter(get, state)
	p = state.gamma.lookup("p").region
	child = matcher.engine.apply(state, Explore(p, "left"))
	assert matcher.check_exit(state, get, ArgValue(child, "Item", "p.left"), Span()) == []
	assert isinstance(state.heap.slot(p, "left"), Tombstone)


def test_exit_origin_result_collapses_into_the_parameter():
	matcher = _matcher()
	get = sig("get", param("p", "IsoPair"), result="Item", origin="p")
	state = RegionState.empty()
	matcher.enter(get, state)
	p = state.gamma.lookup("p").region
	child = matcher.engine.apply(state, Explore(p, "left"))
	assert matcher.check_exit(state, get, ArgValue(child, "Item", "p.left"), Span()) == []
	assert state.heap.slot(p, "left") is None


def test_exit_consumed_preserved_parameter():
	matcher = _matcher()
	serve = sig("serve", param("p", "Item"))
	state = RegionState.empty()
	matcher.enter(serve, state)
	matcher.check_call(state, sig("take", param("x", "Item", consuming=True)), [_arg(state, "p")], Span())
	diags = matcher.check_exit(state, serve, None, Span())
	assert [d.kind for d in diags] == [RegionErrorKind.CONTRACT_MISMATCH]
	assert "preserved parameter 'p' is consumed by take" in diags[0].message
