# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Core data shared by region-checker passes (spans, diagnostics, types, limits)."""
