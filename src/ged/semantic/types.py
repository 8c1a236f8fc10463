"""Resolved Go symbols and types.

These are the read-only facts a loader hands to the resolver: every
identifier use maps to an ``Object`` and every field or method access maps
to a ``Selection`` carrying the receiver ``Type``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator


class Package:
    """A Go package: import path, package name and package scope."""

    def __init__(self, path: str, name: str, opaque: bool = False) -> None:
        self.path = path
        self.name = name
        self.opaque = opaque
        self.scope = Scope(UNIVERSE, kind="package")
        self._opaque_objects: dict[str, Opaque] = {}

    def member(self, name: str) -> Object | None:
        """Look up a package-level name as seen through a qualified identifier."""
        if self.opaque:
            obj = self._opaque_objects.get(name)
            if obj is None:
                obj = Opaque(name, self)
                self._opaque_objects[name] = obj
            return obj
        return self.scope.lookup_local(name)

    def __repr__(self) -> str:
        return f"Package({self.path!r})"


# Objects


@dataclass(eq=False)
class Object:
    """A declared entity. Identity matters, so equality is by identity."""

    name: str
    pkg: Package | None
    _type: Type | None = field(default=None, repr=False)
    _lazy: Callable[[], Type | None] | None = field(default=None, repr=False)

    @property
    def type(self) -> Type | None:
        # A re-entrant request during resolution sees None, which breaks cycles.
        if self._lazy is not None:
            lazy, self._lazy = self._lazy, None
            self._type = lazy()
        return self._type

    @type.setter
    def type(self, value: Type | None) -> None:
        self._lazy = None
        self._type = value

    def exported(self) -> bool:
        return self.name[:1].isupper()

    def __repr__(self) -> str:
        pkg = self.pkg.path if self.pkg else "<universe>"
        return f"{self.__class__.__name__}({pkg}.{self.name})"


@dataclass(eq=False, repr=False)
class TypeName(Object):
    """A type declaration or alias."""

    pass


@dataclass(eq=False, repr=False)
class Var(Object):
    """A variable, parameter, result or struct field."""

    is_field: bool = False
    embedded: bool = False


@dataclass(eq=False, repr=False)
class Func(Object):
    """A function, or a method when ``recv`` is set."""

    recv: Var | None = None


@dataclass(eq=False, repr=False)
class Const(Object):
    pass


@dataclass(eq=False, repr=False)
class PkgName(Object):
    """An imported package name, declared in the importing file's scope."""

    imported: Package | None = None


@dataclass(eq=False, repr=False)
class Builtin(Object):
    pass


@dataclass(eq=False, repr=False)
class Nil(Object):
    pass


@dataclass(eq=False, repr=False)
class Opaque(Object):
    """A member of a package whose source is not available.

    It can be matched by name but is never a field or a method.
    """

    pass


# Types


class Type:
    """Base class for Go types."""

    @property
    def underlying(self) -> Type:
        return self


@dataclass(frozen=True)
class Basic(Type):
    name: str
    untyped: bool = False

    def __str__(self) -> str:
        return f"untyped {self.name}" if self.untyped else self.name


@dataclass(eq=False)
class Pointer(Type):
    elem: Type | None

    def __str__(self) -> str:
        return f"*{self.elem}"


@dataclass(eq=False)
class Slice(Type):
    elem: Type | None

    def __str__(self) -> str:
        return f"[]{self.elem}"


@dataclass(eq=False)
class Array(Type):
    elem: Type | None

    def __str__(self) -> str:
        return f"[...]{self.elem}"


@dataclass(eq=False)
class Map(Type):
    key: Type | None
    elem: Type | None

    def __str__(self) -> str:
        return f"map[{self.key}]{self.elem}"


@dataclass(eq=False)
class Chan(Type):
    elem: Type | None

    def __str__(self) -> str:
        return f"chan {self.elem}"


@dataclass(eq=False)
class Struct(Type):
    fields: list[Var] = field(default_factory=list)

    def field_by_name(self, name: str) -> tuple[int, Var] | None:
        for i, f in enumerate(self.fields):
            if f.name == name:
                return i, f
        return None

    def __str__(self) -> str:
        return "struct{...}"


@dataclass(eq=False)
class Interface(Type):
    methods: list[Func] = field(default_factory=list)
    embeddeds: list[Type | None] = field(default_factory=list)

    def all_methods(self) -> list[Func]:
        """Explicit methods plus those of embedded interfaces."""
        result: list[Func] = []
        self._collect(result, set())
        return result

    def _collect(self, result: list[Func], seen: set[int]) -> None:
        if id(self) in seen:
            return
        seen.add(id(self))
        result.extend(self.methods)
        for embedded in self.embeddeds:
            under = embedded.underlying if embedded is not None else None
            if isinstance(under, Interface):
                under._collect(result, seen)

    def __str__(self) -> str:
        return "interface{...}"


@dataclass(eq=False)
class Tuple(Type):
    types: list[Type | None] = field(default_factory=list)


@dataclass(eq=False)
class Signature(Type):
    params: list[Var] = field(default_factory=list)
    results: list[Var] = field(default_factory=list)
    variadic: bool = False
    recv: Var | None = None

    def result_type(self) -> Type | None:
        """The call result: a single type, a Tuple, or None for no value."""
        if not self.results:
            return None
        if len(self.results) == 1:
            return self.results[0].type
        return Tuple([r.type for r in self.results])

    def __str__(self) -> str:
        return "func(...)"


class Named(Type):
    """A defined type with its own method set."""

    def __init__(
        self,
        obj: TypeName,
        underlying: Callable[[], Type | None] | Type | None = None,
    ) -> None:
        self.obj = obj
        self.methods: list[Func] = []
        self._underlying: Type | None = None
        self._lazy: Callable[[], Type | None] | None = None
        self._resolving = False
        if callable(underlying):
            self._lazy = underlying
        else:
            self._underlying = underlying

    @property
    def underlying(self) -> Type:
        if self._lazy is not None and not self._resolving:
            self._resolving = True
            try:
                rhs = self._lazy()
            finally:
                self._lazy = None
                self._resolving = False
            # A named right-hand side contributes only its underlying type.
            if isinstance(rhs, Named):
                rhs = rhs.underlying if rhs is not self else None
            self._underlying = rhs
        return self._underlying if self._underlying is not None else _INVALID

    def method(self, name: str) -> Func | None:
        for m in self.methods:
            if m.name == name:
                return m
        return None

    def __str__(self) -> str:
        if self.obj.pkg is None:
            return self.obj.name
        return f"{self.obj.pkg.path}.{self.obj.name}"

    def __repr__(self) -> str:
        return f"Named({self})"


class TypeParam(Type):
    """A type parameter; its underlying type is its constraint."""

    def __init__(self, obj: TypeName, constraint: Callable[[], Type | None]) -> None:
        self.obj = obj
        self._constraint = constraint
        self._resolved: Type | None = None
        self._done = False

    @property
    def underlying(self) -> Type:
        if not self._done:
            self._done = True
            constraint = self._constraint()
            self._resolved = constraint.underlying if constraint is not None else None
        return self._resolved if self._resolved is not None else _INVALID

    def __str__(self) -> str:
        return self.obj.name


_INVALID = Basic("invalid type")


class SelectionKind(Enum):
    FIELD_VAL = "field"
    METHOD_VAL = "method"
    METHOD_EXPR = "method expression"


@dataclass(frozen=True)
class Selection:
    """A resolved ``x.f`` where ``f`` is a field or method of ``x``'s type.

    Attributes:
        kind: Field value, method value or method expression.
        recv: Type of ``x`` as written, before any implicit dereference.
        obj: The selected field (Var) or method (Func).
        index: Path through embedded fields; longer than 1 when promoted.
        indirect: Whether a pointer was dereferenced on the way.
    """

    kind: SelectionKind
    recv: Type | None
    obj: Object
    index: tuple[int, ...]
    indirect: bool = False


# Scopes


class Scope:
    """A lexical block mapping names to objects."""

    def __init__(self, parent: Scope | None, kind: str = "block") -> None:
        self.parent = parent
        self.kind = kind
        self.names: dict[str, Object] = {}

    def lookup_local(self, name: str) -> Object | None:
        return self.names.get(name)

    def lookup(self, name: str) -> Object | None:
        scope: Scope | None = self
        while scope is not None:
            obj = scope.lookup_local(name)
            if obj is not None:
                return obj
            scope = scope.parent
        return None

    def insert(self, obj: Object) -> Object | None:
        """Declare obj; returns the existing object if the name is taken."""
        if obj.name == "_":
            return None
        existing = self.names.get(obj.name)
        if existing is not None:
            return existing
        self.names[obj.name] = obj
        return None

    def __iter__(self) -> Iterator[Object]:
        return iter(self.names.values())


class FileScope(Scope):
    """Per-file imports, including the exported names of dot-imports."""

    def __init__(self, parent: Scope) -> None:
        super().__init__(parent, kind="file")
        self.dot_imports: list[Package] = []

    def lookup_local(self, name: str) -> Object | None:
        obj = self.names.get(name)
        if obj is not None:
            return obj
        if not name[:1].isupper():
            return None
        for pkg in self.dot_imports:
            obj = pkg.member(name)
            if obj is not None:
                return obj
        return None


# Universe


UNTYPED_BOOL = Basic("bool", untyped=True)
UNTYPED_INT = Basic("int", untyped=True)
UNTYPED_RUNE = Basic("rune", untyped=True)
UNTYPED_FLOAT = Basic("float64", untyped=True)
UNTYPED_COMPLEX = Basic("complex128", untyped=True)
UNTYPED_STRING = Basic("string", untyped=True)

_BASIC_NAMES = (
    "bool", "byte", "complex64", "complex128", "float32", "float64",
    "int", "int8", "int16", "int32", "int64", "rune", "string",
    "uint", "uint8", "uint16", "uint32", "uint64", "uintptr",
)

BUILTIN_FUNCS = (
    "append", "cap", "clear", "close", "complex", "copy", "delete", "imag",
    "len", "make", "max", "min", "new", "panic", "print", "println",
    "real", "recover",
)

UNIVERSE = Scope(None, kind="universe")

BASIC: dict[str, Basic] = {}
for _name in _BASIC_NAMES:
    BASIC[_name] = Basic(_name)
    UNIVERSE.insert(TypeName(_name, None, _type=BASIC[_name]))

_error_obj = TypeName("error", None)
ERROR = Named(_error_obj)
_error_obj.type = ERROR
_error_method = Func(
    "Error",
    None,
    _type=Signature(results=[Var("", None, _type=BASIC["string"])]),
)
ERROR._underlying = Interface(methods=[_error_method])
UNIVERSE.insert(_error_obj)

_comparable_obj = TypeName("comparable", None)
_comparable_obj.type = Named(_comparable_obj, Interface())
UNIVERSE.insert(_comparable_obj)
UNIVERSE.insert(TypeName("any", None, _type=Interface()))

UNIVERSE.insert(Const("true", None, _type=UNTYPED_BOOL))
UNIVERSE.insert(Const("false", None, _type=UNTYPED_BOOL))
UNIVERSE.insert(Const("iota", None, _type=UNTYPED_INT))
UNIVERSE.insert(Nil("nil", None))
for _name in BUILTIN_FUNCS:
    UNIVERSE.insert(Builtin(_name, None))


def default_type(typ: Type | None) -> Type | None:
    """The type an untyped constant takes when assigned to a variable."""
    if isinstance(typ, Basic) and typ.untyped:
        if typ.name == "rune":
            return BASIC["int32"]
        return BASIC[typ.name]
    return typ


def deref(typ: Type | None) -> tuple[Type | None, bool]:
    """Strip one pointer level, reporting whether one was stripped."""
    if isinstance(typ, Pointer):
        return typ.elem, True
    return typ, False


def lookup_field_or_method(
    typ: Type | None, name: str
) -> tuple[Object, tuple[int, ...], bool] | None:
    """Find the field or method ``name`` in the method set of ``typ``.

    Embedded fields are searched breadth first; the shallowest match wins and
    two matches at the same depth are ambiguous (no result). Returns
    (object, index path, indirect) or None.
    """
    if typ is None or name == "_":
        return None

    typ, indirect = deref(typ)

    current: list[tuple[Type, tuple[int, ...], bool]] = [(typ, (), indirect)]
    seen: set[int] = set()
    while current:
        found: list[tuple[Object, tuple[int, ...], bool]] = []
        next_level: list[tuple[Type, tuple[int, ...], bool]] = []
        for t, index, ind in current:
            if t is None:
                continue
            if isinstance(t, Named):
                if id(t) in seen:
                    continue
                seen.add(id(t))
                m = t.method(name)
                if m is not None:
                    found.append((m, index, ind))
                    continue
            under = t.underlying
            if isinstance(under, Struct):
                for i, f in enumerate(under.fields):
                    if f.name == name:
                        found.append((f, index + (i,), ind))
                    if f.embedded:
                        ftype, fptr = deref(f.type)
                        if ftype is not None:
                            next_level.append((ftype, index + (i,), ind or fptr))
            elif isinstance(under, Interface):
                for m in under.all_methods():
                    if m.name == name:
                        found.append((m, index, ind))
                        break
        if len(found) == 1:
            return found[0]
        if len(found) > 1:
            return None
        current = next_level
    return None


def method_set_known(typ: Type | None) -> bool:
    """Whether every field and method reachable from ``typ`` is resolved.

    A missing selector is only an error when nothing in the search was left
    unresolved: an opaque embedded type, a type parameter or an invalid
    underlying type may hide the name.
    """
    typ, _ = deref(typ)
    pending: list[Type | None] = [typ]
    seen: set[int] = set()
    while pending:
        t = pending.pop()
        if t is None or isinstance(t, TypeParam):
            return False
        if id(t) in seen:
            continue
        seen.add(id(t))
        under = t.underlying
        if under is _INVALID or isinstance(under, Pointer):
            return False
        if isinstance(under, Struct):
            for f in under.fields:
                if f.embedded:
                    pending.append(deref(f.type)[0])
        elif isinstance(under, Interface):
            pending.extend(under.embeddeds)
    return True
