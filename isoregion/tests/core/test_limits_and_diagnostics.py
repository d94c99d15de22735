#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Checker tunables, spans and diagnostic rendering."""

import pytest

from isoregion.regionc.core.diagnostics import Diagnostic, RegionErrorKind, has_errors
from isoregion.regionc.core.limits import DEFAULT_LIMITS, InitializerFields, RegionLimits
from isoregion.regionc.core.span import Span


def test_default_limits():
	assert DEFAULT_LIMITS.initializer_fields is InitializerFields.TOMBSTONE
	assert DEFAULT_LIMITS.match_budget > 0
	assert DEFAULT_LIMITS.join_budget > 0
	assert DEFAULT_LIMITS.loop_iterations > 0


@pytest.mark.parametrize("name", ["match_budget", "join_budget", "loop_iterations"])
def test_limits_reject_non_positive_budgets(name):
	with pytest.raises(ValueError, match=name):
		RegionLimits(**{name: 0})


def test_span_describe():
	assert Span().describe() == "<input>"
	assert Span(file="a.rgn", line=3).describe() == "a.rgn:3"
	assert Span(file="a.rgn", line=3, column=7).describe() == "a.rgn:3:7"
	assert not Span().is_known()


def test_span_from_empty_meta_is_unknown():
	class Meta:
		empty = True

	span = Span.from_meta(Meta(), "x.rgn")
	assert span.file == "x.rgn"
	assert span.line is None


def test_diagnostic_kind_and_format():
	diag = Diagnostic(
		message="cannot use 'p'",
		code=RegionErrorKind.USE_AFTER_TRANSFER.value,
		phase="regioncheck",
		span=Span(file="a.rgn", line=2, column=5),
		notes=["held by h1"],
	)
	assert diag.kind is RegionErrorKind.USE_AFTER_TRANSFER
	assert diag.format_human() == (
		"a.rgn:2:5: error[use-after-transfer]: cannot use 'p'\n"
		"  note: held by h1"
	)


def test_diagnostic_kind_of_other_codes_is_none():
	diag = Diagnostic(message="x", code="unknown-name")
	assert diag.kind is None
	assert diag.span == Span()


def test_has_errors_ignores_notes():
	assert not has_errors([Diagnostic(message="n", severity="note")])
	assert has_errors([Diagnostic(message="e")])
