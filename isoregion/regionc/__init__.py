# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Region checker package (`regionc`).

Checker modules live under this package. The CLI entrypoint is
`isoregion.regionc.regionc:main`.
"""

__all__ = []
