#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Typing context (Γ) and future context (Φ)."""

import pytest

from isoregion.regionc.regions.context import Binding, TypingContext, entry_name, is_hidden
from isoregion.regionc.regions.futures import FutureContext, FutureEntry, HandleState
from isoregion.regionc.regions.store import RegionRecord


def test_bind_is_a_strong_update():
	gamma = TypingContext()
	gamma.bind("x", Binding(1, "Item"))
	gamma.bind("x", Binding(2, "Item"))
	assert gamma.lookup("x").region == 2
	assert gamma.regions() == [2]


def test_aliases_share_a_region():
	gamma = TypingContext()
	gamma.bind("a", Binding(1, "Item"))
	gamma.bind("b", Binding(1, "Item"))
	gamma.bind(entry_name("a"), Binding(1, "Item"))
	assert gamma.vars_in(1) == ["a", "b"]
	gamma.rebind_region([1], 5)
	assert gamma.lookup("b").region == 5
	assert gamma.lookup(entry_name("a")).region == 5


def test_hidden_entry_bindings_do_not_render():
	gamma = TypingContext()
	gamma.bind("p", Binding(1, "IsoPair"))
	gamma.bind(entry_name("p"), Binding(1, "IsoPair"))
	gamma.bind("n", Binding(None, "Int"))
	gamma.bind("h", Binding(None, "Future[Unit]", handle=7))
	assert is_hidden(entry_name("p"))
	assert gamma.visible_names() == ["h", "n", "p"]
	assert gamma.render() == "h: Future[Unit] h7, n: Int, p: IsoPair @r1"
	assert gamma.holders_of(7) == ["h"]


def test_restrict_drops_out_of_scope_names():
	gamma = TypingContext()
	gamma.bind("x", Binding(1, "Item"))
	gamma.bind("y", Binding(2, "Item"))
	gamma.restrict(["x"])
	assert gamma.names() == ["x"]


def test_copies_are_independent():
	gamma = TypingContext()
	gamma.bind("x", Binding(1, "Item"))
	other = gamma.copy()
	other.bind("x", Binding(2, "Item"))
	assert gamma.lookup("x").region == 1


def _entry(handle: int) -> FutureEntry:
	return FutureEntry(handle, "send", fragment=[RegionRecord(3)], restore_edges=[(1, "left", 3)])


def test_handle_lifecycle():
	phi = FutureContext()
	entry = phi.create(_entry(4))
	assert entry.state is HandleState.CREATED
	assert phi.live() == []
	phi.activate(4)
	assert [e.handle for e in phi.live()] == [4]
	assert phi.render() == "h4 ↦ send[r3] → Unit"
	phi.redeem(4)
	assert phi.get(4).state is HandleState.REDEEMED
	assert phi.live() == []


def test_redeeming_twice_is_a_checker_bug():
	phi = FutureContext()
	phi.create(_entry(4))
	phi.activate(4)
	phi.redeem(4)
	with pytest.raises(AssertionError, match="checker bug"):
		phi.redeem(4)


def test_allocating_a_handle_twice_is_a_checker_bug():
	phi = FutureContext()
	phi.create(_entry(4))
	with pytest.raises(AssertionError, match="allocated twice"):
		phi.create(_entry(4))


def test_relabel_follows_merges_in_restore_edges():
	phi = FutureContext()
	phi.create(_entry(4))
	phi.activate(4)
	phi.relabel([1, 2], 9)
	assert phi.get(4).restore_edges == [(9, "left", 3)]


def test_copy_does_not_share_entries():
	phi = FutureContext()
	phi.create(_entry(4))
	phi.activate(4)
	other = phi.copy()
	other.redeem(4)
	assert phi.get(4).state is HandleState.LIVE


def test_entry_label_prefers_the_variable_name():
	entry = _entry(4)
	assert entry.label() == "h4"
	entry.name = "job"
	assert entry.label() == "'job'"
