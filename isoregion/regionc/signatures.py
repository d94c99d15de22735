# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Region contracts of function declarations.

A signature says, per parameter, whether the caller keeps its region
(preserved) or hands it over for good (consumed), which parameters share one
region (groups), which are pinned, where the result lives, and which
isolated fields of the parameters are expected dead or tracked at entry and
at exit. Everything not mentioned by a shape fact is expected owned inline
("simplified").
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from isoregion.regionc.core.diagnostics import Diagnostic, RegionErrorKind
from isoregion.regionc.core.limits import DEFAULT_LIMITS, InitializerFields, RegionLimits
from isoregion.regionc.core.span import Span
from isoregion.regionc.core.types_core import UNIT_TYPE, TypeTable


def _sig_diag(*args, **kwargs):
	if "phase" not in kwargs or kwargs.get("phase") is None:
		kwargs["phase"] = "regioncheck"
	kwargs.setdefault("code", RegionErrorKind.CONTRACT_MISMATCH.value)
	return Diagnostic(*args, **kwargs)


class ParamMode(Enum):
	PRESERVED = "preserved"
	CONSUMED = "consumed"


@dataclass(frozen=True)
class ParamSig:
	"""One parameter of a region contract."""

	name: str
	type_name: str
	mode: ParamMode = ParamMode.PRESERVED
	# Parameters with the same group id share one region at the call site.
	group: Optional[int] = None
	pinned: bool = False

	@property
	def consumed(self) -> bool:
		return self.mode is ParamMode.CONSUMED


FRESH = "fresh"


@dataclass(frozen=True)
class ResultSig:
	type_name: str = UNIT_TYPE
	# FRESH, or the name of the preserved parameter whose region holds the result.
	origin: str = FRESH

	@property
	def fresh(self) -> bool:
		return self.origin == FRESH


@dataclass(frozen=True)
class ShapeTarget:
	"""Right-hand side of a shape fact: ⊥ (`dead`) or a region label."""

	label: Optional[str] = None

	@property
	def dead(self) -> bool:
		return self.label is None

	def __str__(self) -> str:
		return "dead" if self.label is None else f"@{self.label}"


DEAD = ShapeTarget()


@dataclass(frozen=True)
class ShapeFact:
	"""`var.field -> target`."""

	var: str
	field: str
	target: ShapeTarget = DEAD
	loc: Span = field(default_factory=Span)

	def __str__(self) -> str:
		return f"{self.var}.{self.field} -> {self.target}"


class Expect(Enum):
	"""What a contract requires of one isolated field."""

	INLINE = "inline"
	DEAD = "dead"
	TRACKED = "tracked"


@dataclass(frozen=True)
class FieldExpectation:
	kind: Expect = Expect.INLINE
	# TRACKED only: the parameter whose region the field must hold, or None for
	# an existential label (some region of its own).
	param: Optional[str] = None
	label: Optional[str] = None

	def describe(self) -> str:
		if self.kind is Expect.INLINE:
			return "owned inline"
		if self.kind is Expect.DEAD:
			return "dead"
		if self.param is not None:
			return f"the region of '{self.param}'"
		return f"a tracked region @{self.label}" if self.label else "a tracked region"


INLINE_EXPECTED = FieldExpectation()


@dataclass
class FnSignature:
	"""
	Region contract of one function.

	`initializer` marks constructors: the first parameter is the value being
	initialized, and its isolated fields start dead (or inline, depending on
	`RegionLimits.initializer_fields`) unless an entry fact says otherwise.
	"""

	name: str
	params: List[ParamSig] = field(default_factory=list)
	result: ResultSig = field(default_factory=ResultSig)
	entry_shape: List[ShapeFact] = field(default_factory=list)
	exit_shape: List[ShapeFact] = field(default_factory=list)
	initializer: bool = False
	loc: Span = field(default_factory=Span)

	def param(self, name: str) -> Optional[ParamSig]:
		for p in self.params:
			if p.name == name:
				return p
		return None

	@property
	def param_names(self) -> List[str]:
		return [p.name for p in self.params]

	def group_of(self, name: str) -> List[str]:
		"""Names sharing a region with `name` (itself included)."""
		p = self.param(name)
		if p is None:
			return []
		if p.group is None:
			return [p.name]
		return [q.name for q in self.params if q.group == p.group]

	def class_leader(self, name: str) -> str:
		"""First parameter of `name`'s group; the representative of its region."""
		members = self.group_of(name)
		return members[0] if members else name


def _expectations(
	sig: FnSignature,
	types: TypeTable,
	facts: List[ShapeFact],
	default_dead: Optional[str],
) -> Dict[str, Dict[str, FieldExpectation]]:
	out: Dict[str, Dict[str, FieldExpectation]] = {}
	for p in sig.params:
		fields = {f: INLINE_EXPECTED for f in types.isolated_fields(p.type_name)}
		if p.name == default_dead:
			fields = {f: FieldExpectation(Expect.DEAD) for f in fields}
		out[p.name] = fields
	names = set(sig.param_names)
	for fact in facts:
		if fact.var not in out:
			continue
		if fact.target.dead:
			exp = FieldExpectation(Expect.DEAD)
		elif fact.target.label in names:
			exp = FieldExpectation(Expect.TRACKED, param=fact.target.label, label=fact.target.label)
		else:
			exp = FieldExpectation(Expect.TRACKED, label=fact.target.label)
		out[fact.var][fact.field] = exp
	return out


def entry_expectations(
	sig: FnSignature, types: TypeTable, limits: RegionLimits = DEFAULT_LIMITS
) -> Dict[str, Dict[str, FieldExpectation]]:
	"""Per parameter, per isolated field: what must hold when the call starts."""
	default_dead = None
	if sig.initializer and sig.params and limits.initializer_fields is InitializerFields.TOMBSTONE:
		default_dead = sig.params[0].name
	return _expectations(sig, types, sig.entry_shape, default_dead)


def exit_expectations(sig: FnSignature, types: TypeTable) -> Dict[str, Dict[str, FieldExpectation]]:
	"""Per parameter, per isolated field: what must hold when the call returns."""
	return _expectations(sig, types, sig.exit_shape, None)


def validate_signature(sig: FnSignature, types: TypeTable) -> List[Diagnostic]:
	"""Reject contracts the matcher cannot give a meaning to."""
	diags: List[Diagnostic] = []

	def bad(message: str, span: Optional[Span] = None, subject: Optional[str] = None) -> None:
		diags.append(_sig_diag(message=f"signature of '{sig.name}': {message}", span=span or sig.loc, subject=subject or sig.name))

	seen: Dict[str, ParamSig] = {}
	for p in sig.params:
		if p.name in seen:
			bad(f"parameter '{p.name}' declared twice", subject=p.name)
		seen[p.name] = p
		if p.consumed and p.pinned:
			bad(f"parameter '{p.name}' cannot be both consuming and pinned", subject=p.name)
	groups: Dict[int, List[ParamSig]] = {}
	for p in sig.params:
		if p.group is not None:
			groups.setdefault(p.group, []).append(p)
	for members in groups.values():
		names = ", ".join(repr(m.name) for m in members)
		if len({m.mode for m in members}) > 1:
			bad(f"grouped parameters {names} mix consuming and preserved modes", subject=members[0].name)
		if len({m.pinned for m in members}) > 1:
			bad(f"grouped parameters {names} mix pinned and unpinned", subject=members[0].name)
	if not sig.result.fresh:
		origin = sig.param(sig.result.origin)
		if origin is None:
			bad(f"result origin '{sig.result.origin}' is not a parameter", subject=sig.result.origin)
		elif origin.consumed:
			bad(f"result origin '{origin.name}' is consumed; the result would outlive its region", subject=origin.name)
	if sig.result.type_name not in types:
		bad(f"unknown result type '{sig.result.type_name}'")
	for p in sig.params:
		if p.type_name not in types:
			bad(f"unknown type '{p.type_name}' for parameter '{p.name}'", subject=p.name)
	if sig.initializer and (not sig.params or sig.params[0].consumed):
		bad("an initializer needs a preserved first parameter", subject=sig.params[0].name if sig.params else None)

	for phase, facts in (("entry", sig.entry_shape), ("exit", sig.exit_shape)):
		keys = set()
		labels: Dict[str, ShapeFact] = {}
		for fact in facts:
			where = f"{fact.var}.{fact.field}"
			p = seen.get(fact.var)
			if p is None:
				bad(f"{phase} fact '{fact}' names unknown parameter '{fact.var}'", fact.loc, subject=where)
				continue
			if not types.is_isolated(p.type_name, fact.field):
				bad(f"{phase} fact '{fact}': '{fact.field}' is not an isolated field of {p.type_name}", fact.loc, subject=where)
			if p.pinned:
				bad(f"{phase} fact '{fact}': pinned parameters are matched as-is", fact.loc, subject=where)
			if (fact.var, fact.field) in keys:
				bad(f"{phase} fact '{fact}' repeats a field", fact.loc, subject=where)
			keys.add((fact.var, fact.field))
			label = fact.target.label
			if label is None:
				continue
			if label in labels:
				bad(f"{phase} label @{label} used by '{labels[label]}' and '{fact}'", fact.loc, subject=where)
			labels[label] = fact
			target = seen.get(label)
			if target is None:
				continue
			if label in sig.group_of(fact.var):
				bad(f"{phase} fact '{fact}' points a parameter's field into its own region", fact.loc, subject=where)
			elif phase == "exit" and target.consumed:
				bad(f"exit fact '{fact}' names consumed parameter '{label}'", fact.loc, subject=where)
		# Facts naming parameters must nest regions as a tree.
		below: Dict[str, List[str]] = {}
		for fact in facts:
			if fact.var in seen and fact.target.label in seen:
				below.setdefault(sig.class_leader(fact.var), []).append(sig.class_leader(fact.target.label))
		for start in sorted(below):
			work, visited = list(below[start]), set()
			while work:
				cur = work.pop()
				if cur == start:
					bad(f"{phase} facts place the region of '{start}' below itself", subject=start)
					break
				if cur not in visited:
					visited.add(cur)
					work.extend(below.get(cur, []))
	return diags


__all__ = [
	"ParamMode",
	"ParamSig",
	"ResultSig",
	"FRESH",
	"ShapeTarget",
	"DEAD",
	"ShapeFact",
	"Expect",
	"FieldExpectation",
	"FnSignature",
	"entry_expectations",
	"exit_expectations",
	"validate_signature",
]
