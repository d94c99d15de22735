#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Type table lookups the checker relies on."""

from isoregion.regionc.core.types_core import (
	UNIT_TYPE,
	FieldDecl,
	TypeTable,
	future_result_type,
	future_type,
)
from isoregion.test_support import demo_types


def test_unit_is_always_declared_and_immutable():
	table = TypeTable()
	assert UNIT_TYPE in table
	assert table.is_immutable(UNIT_TYPE)


def test_isolated_fields_keep_declaration_order():
	table = TypeTable()
	table.declare_struct(
		"Tri",
		FieldDecl("c", "Item", isolated=True),
		FieldDecl("plain", "Item"),
		FieldDecl("a", "Item", isolated=True),
	)
	assert table.isolated_fields("Tri") == ["c", "a"]
	assert table.is_isolated("Tri", "a")
	assert not table.is_isolated("Tri", "plain")
	assert not table.is_isolated("Tri", "missing")


def test_unknown_types_are_mutable_and_fieldless():
	table = demo_types()
	assert not table.is_immutable("Mystery")
	assert table.field("Mystery", "x") is None
	assert table.isolated_fields("Mystery") == []


def test_futures_are_immutable_values():
	table = demo_types()
	ty = future_type("Item")
	assert ty == "Future[Item]"
	assert future_result_type(ty) == "Item"
	assert future_result_type("Item") is None
	assert table.is_immutable(ty)


def test_demo_types_shapes():
	table = demo_types()
	assert table.is_immutable("Int")
	assert table.isolated_fields("Pair") == []
	assert table.isolated_fields("IsoPair") == ["left", "right"]
	assert table.field("Node", "next").type_name == "Node"
