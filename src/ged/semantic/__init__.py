"""Semantic analysis of Go packages for ged."""

from .checker import CheckError, Checker, Info
from .loader import GoLoader, LoadedPackage
from .types import (
    Func,
    Named,
    Object,
    Package,
    Pointer,
    Selection,
    SelectionKind,
    Type,
    TypeName,
    Var,
)

__all__ = [
    # Loading
    "GoLoader",
    "LoadedPackage",
    "Checker",
    "CheckError",
    "Info",
    # Objects and types
    "Object",
    "TypeName",
    "Var",
    "Func",
    "Package",
    "Type",
    "Named",
    "Pointer",
    "Selection",
    "SelectionKind",
]
