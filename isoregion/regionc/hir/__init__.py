# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
HIR package: elaborated function bodies consumed by the region checker.

Public API:
  - HIR node classes (expressions, statements, declarations)
"""

from .hir_nodes import (
	HNode,
	HExpr,
	HStmt,
	HVar,
	HField,
	HCall,
	HNew,
	HOpaque,
	HSpawn,
	HAwait,
	HBlock,
	HLet,
	HAssign,
	HExprStmt,
	HIf,
	HWhile,
	HReturn,
	FnDecl,
	Program,
)

__all__ = [
	"HNode",
	"HExpr",
	"HStmt",
	"HVar",
	"HField",
	"HCall",
	"HNew",
	"HOpaque",
	"HSpawn",
	"HAwait",
	"HBlock",
	"HLet",
	"HAssign",
	"HExprStmt",
	"HIf",
	"HWhile",
	"HReturn",
	"FnDecl",
	"Program",
]
