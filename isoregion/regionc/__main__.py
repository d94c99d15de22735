# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
CLI entrypoint for `python -m isoregion.regionc`.
"""

from .regionc import main

if __name__ == "__main__":
	import sys
	sys.exit(main())
