# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Region engine: store (ℋ), typing context (Γ), futures (Φ), transformations,
signature matcher and branch unifier.
"""

from .store import (
	INLINE,
	IdAllocator,
	LossKind,
	LossReason,
	RegionId,
	RegionRecord,
	RegionStore,
	Tombstone,
	TombstoneCause,
)
from .context import Binding, TypingContext, entry_name, is_hidden
from .futures import FutureContext, FutureEntry, HandleState
from .state import RegionState, restrict_scope
from .transforms import (
	Attach,
	Explore,
	Focus,
	Forget,
	Retract,
	SearchResult,
	TransformEngine,
	TransformError,
	Unfocus,
)
from .matcher import ArgValue, CallOutcome, SignatureMatcher
from .unify import BranchUnifier, JoinFailure, JoinResult

__all__ = [
	"INLINE",
	"IdAllocator",
	"LossKind",
	"LossReason",
	"RegionId",
	"RegionRecord",
	"RegionStore",
	"Tombstone",
	"TombstoneCause",
	"Binding",
	"TypingContext",
	"entry_name",
	"is_hidden",
	"FutureContext",
	"FutureEntry",
	"HandleState",
	"RegionState",
	"restrict_scope",
	"Attach",
	"Explore",
	"Focus",
	"Forget",
	"Retract",
	"SearchResult",
	"TransformEngine",
	"TransformError",
	"Unfocus",
	"ArgValue",
	"CallOutcome",
	"SignatureMatcher",
	"BranchUnifier",
	"JoinFailure",
	"JoinResult",
]
