# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
isoregion: static region-ownership checking for isolated fields and futures.

The checker lives under `isoregion.regionc`; the CLI entrypoint is
`isoregion.regionc.regionc:main`.
"""

__all__ = []
