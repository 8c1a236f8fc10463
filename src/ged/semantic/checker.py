"""Name and type resolution for a Go package, using Tree-sitter syntax.

The checker runs in two phases. ``collect`` declares every package-level
object (types, functions, methods, variables, constants) and each file's
imports; types of these objects are resolved lazily on first use, so
declaration order across files does not matter. ``check`` then walks every
declaration and function body with lexical scoping, recording which object
each identifier resolves to and which member each selector selects.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator

import tree_sitter

from .syntax import (
    IDENT_TYPES,
    NodeRef,
    SourceFile,
    field_children,
    selector_parts,
    string_value,
)
from .types import (
    BASIC,
    UNTYPED_BOOL,
    UNTYPED_COMPLEX,
    UNTYPED_FLOAT,
    UNTYPED_INT,
    UNTYPED_RUNE,
    UNTYPED_STRING,
    Array,
    Basic,
    Builtin,
    Chan,
    Const,
    FileScope,
    Func,
    Interface,
    Map,
    Named,
    Nil,
    Object,
    Opaque,
    Package,
    PkgName,
    Pointer,
    Scope,
    Selection,
    SelectionKind,
    Signature,
    Slice,
    Struct,
    Tuple,
    Type,
    TypeName,
    TypeParam,
    Var,
    default_type,
    deref,
    lookup_field_or_method,
    method_set_known,
)

logger = logging.getLogger(__name__)

Importer = Callable[[str], Package]

# Operand modes
VALUE = "value"
TYPE = "type"
PACKAGE = "package"
BUILTIN = "builtin"
NOVALUE = "novalue"

TYPE_NODES = frozenset(
    {
        "type_identifier",
        "qualified_type",
        "pointer_type",
        "slice_type",
        "array_type",
        "implicit_length_array_type",
        "map_type",
        "channel_type",
        "struct_type",
        "interface_type",
        "function_type",
        "generic_type",
        "parenthesized_type",
        "negated_type",
        "type_elem",
        "type_constraint",
    }
)

_COMPARISON_OPS = frozenset({"==", "!=", "<", "<=", ">", ">=", "&&", "||"})

_SKIPPED_STMTS = frozenset(
    {
        "comment",
        "label_name",
        "break_statement",
        "continue_statement",
        "goto_statement",
        "fallthrough_statement",
        "empty_statement",
    }
)


@dataclass
class Info:
    """Resolution tables for one package, keyed by stable node references.

    Attributes:
        uses: Identifier -> object it refers to (declarations excluded).
        defs: Identifier -> object it declares.
        selections: Selector expression -> selected field or method, for
            field values, method values and method expressions. Qualified
            identifiers (pkg.Name) have no selection.
    """

    uses: dict[NodeRef, Object] = field(default_factory=dict)
    defs: dict[NodeRef, Object] = field(default_factory=dict)
    selections: dict[NodeRef, Selection] = field(default_factory=dict)


@dataclass(frozen=True, order=True)
class CheckError:
    """A type error found in a package's source."""

    path: str
    line: int
    column: int
    message: str

    def __str__(self) -> str:
        return f"{self.path}:{self.line}:{self.column}: {self.message}"


@dataclass
class Operand:
    """Result of evaluating an expression: what it denotes and its type."""

    mode: str
    type: Type | None = None
    obj: Object | None = None


def _text(node: tree_sitter.Node) -> str:
    return node.text.decode() if node.text else ""


def _same(a: tree_sitter.Node | None, b: tree_sitter.Node | None) -> bool:
    if a is None or b is None:
        return False
    return a.start_byte == b.start_byte and a.end_byte == b.end_byte and a.type == b.type


def _named(node: tree_sitter.Node) -> list[tree_sitter.Node]:
    return [c for c in node.named_children if c.type != "comment"]


def _child(node: tree_sitter.Node, name: str, index: int = -1) -> tree_sitter.Node | None:
    """Child by grammar field, falling back to a positional named child."""
    found = node.child_by_field_name(name)
    if found is not None:
        return found
    kids = _named(node)
    if kids and -len(kids) <= index < len(kids):
        return kids[index]
    return None


class Checker:
    """Resolves the identifiers and selectors of one package."""

    def __init__(
        self,
        pkg: Package,
        files: list[SourceFile],
        importer: Importer,
        record: bool = True,
    ) -> None:
        self.pkg = pkg
        self.files = files
        self.importer = importer
        self.record = record
        self.info = Info()
        self.errors: list[CheckError] = []
        self._file: SourceFile | None = None
        self._file_scopes: dict[str, FileScope] = {}
        self._decl_objects: dict[NodeRef, list[Object]] = {}
        self._collected = False
        self._checked = False

    # Recording

    @contextmanager
    def _in_file(self, file: SourceFile) -> Iterator[None]:
        previous = self._file
        self._file = file
        try:
            yield
        finally:
            self._file = previous

    def _deferred(self, file: SourceFile, fn: Callable[[], Type | None]) -> Callable[[], Type | None]:
        def run() -> Type | None:
            with self._in_file(file):
                return fn()

        return run

    def _use(self, node: tree_sitter.Node, obj: Object | None) -> None:
        if obj is not None and self.record and self._file is not None:
            self.info.uses[self._file.ref(node)] = obj

    def _def(self, node: tree_sitter.Node, obj: Object | None) -> None:
        if obj is not None and self.record and self._file is not None:
            self.info.defs[self._file.ref(node)] = obj

    def _select(self, node: tree_sitter.Node, selection: Selection) -> None:
        if self.record and self._file is not None:
            self.info.selections[self._file.ref(node)] = selection

    def _error(self, node: tree_sitter.Node, message: str) -> None:
        if self._file is None:
            return
        row, column = node.start_point
        error = CheckError(self._file.path, row + 1, column + 1, message)
        if error not in self.errors:
            self.errors.append(error)
            logger.debug("%s: %s", self.pkg.path, error)

    # Phase 1: package-level declarations

    def collect(self) -> None:
        """Declare package-level objects and file imports."""
        if self._collected:
            return
        self._collected = True

        methods: list[tuple[SourceFile, tree_sitter.Node, FileScope]] = []
        for file in self.files:
            scope = FileScope(self.pkg.scope)
            self._file_scopes[file.path] = scope
            with self._in_file(file):
                for decl in file.root.named_children:
                    kind = decl.type
                    if kind == "import_declaration":
                        self._collect_imports(decl, scope)
                    elif kind == "function_declaration":
                        self._collect_func(file, decl, scope)
                    elif kind == "method_declaration":
                        methods.append((file, decl, scope))
                    elif kind == "type_declaration":
                        for spec in self._specs(decl, ("type_spec", "type_alias")):
                            self._declare_type(file, spec, self.pkg.scope, scope)
                    elif kind == "var_declaration":
                        for spec in self._specs(decl, ("var_spec",)):
                            self._declare_values(file, spec, Var, self.pkg.scope, scope, lazy=True)
                    elif kind == "const_declaration":
                        self._declare_consts(file, decl, self.pkg.scope, scope, lazy=True)

        # Methods attach to types that may be declared in any file.
        for file, decl, scope in methods:
            with self._in_file(file):
                self._collect_method(file, decl, scope)

    def _specs(self, decl: tree_sitter.Node, kinds: tuple[str, ...]) -> Iterator[tree_sitter.Node]:
        for child in decl.named_children:
            if child.type in kinds:
                yield child
            elif child.type.endswith("_list"):
                yield from (c for c in child.named_children if c.type in kinds)

    def _collect_imports(self, decl: tree_sitter.Node, scope: FileScope) -> None:
        for spec in self._specs(decl, ("import_spec",)):
            path_node = spec.child_by_field_name("path")
            if path_node is None:
                continue
            imported = self.importer(string_value(_text(path_node)))
            name_node = spec.child_by_field_name("name")
            if name_node is None:
                local = imported.name
            elif name_node.type == "dot":
                scope.dot_imports.append(imported)
                continue
            elif name_node.type == "blank_identifier":
                continue
            else:
                local = _text(name_node)
            obj = PkgName(local, self.pkg, imported=imported)
            scope.insert(obj)
            if name_node is not None:
                self._def(name_node, obj)

    def _collect_func(self, file: SourceFile, decl: tree_sitter.Node, scope: FileScope) -> None:
        name_node = decl.child_by_field_name("name")
        if name_node is None:
            return
        obj = Func(_text(name_node), self.pkg)
        obj._lazy = self._deferred(file, lambda: self._signature(decl, Scope(scope), declare=False))
        if obj.name != "init":
            self.pkg.scope.insert(obj)
        self._def(name_node, obj)
        self._decl_objects[file.ref(decl)] = [obj]

    def _collect_method(self, file: SourceFile, decl: tree_sitter.Node, scope: FileScope) -> None:
        name_node = decl.child_by_field_name("name")
        if name_node is None:
            return
        obj = Func(_text(name_node), self.pkg)
        obj._lazy = self._deferred(
            file, lambda: self._method_signature(decl, Scope(scope), declare=False)
        )
        base = self._receiver_base_name(decl.child_by_field_name("receiver"))
        owner = self.pkg.scope.lookup_local(base) if base else None
        if isinstance(owner, TypeName) and isinstance(owner._type, Named):
            owner._type.methods.append(obj)
        else:
            logger.debug("%s: method %s on unknown receiver %s", self.pkg.path, obj.name, base)
        self._def(name_node, obj)
        self._decl_objects[file.ref(decl)] = [obj]

    def _receiver_base_name(self, receiver: tree_sitter.Node | None) -> str | None:
        if receiver is None:
            return None
        for param in receiver.named_children:
            if param.type != "parameter_declaration":
                continue
            node = param.child_by_field_name("type")
            while node is not None and node.type in ("pointer_type", "parenthesized_type", "generic_type"):
                node = _child(node, "type", -1) if node.type != "generic_type" else node.child_by_field_name("type")
            if node is not None and node.type == "type_identifier":
                return _text(node)
        return None

    def _declare_type(
        self,
        file: SourceFile,
        spec: tree_sitter.Node,
        declare_in: Scope,
        resolve_in: Scope,
    ) -> TypeName | None:
        name_node = spec.child_by_field_name("name")
        type_node = spec.child_by_field_name("type")
        if name_node is None or type_node is None:
            return None
        tparams = spec.child_by_field_name("type_parameters")
        obj = TypeName(_text(name_node), self.pkg)

        def resolve() -> Type | None:
            scope = self._type_params(tparams, resolve_in) if tparams is not None else resolve_in
            return self._type_expr(type_node, scope)

        if spec.type == "type_alias":
            obj._lazy = self._deferred(file, resolve)
        else:
            obj.type = Named(obj, self._deferred(file, resolve))
        declare_in.insert(obj)
        self._def(name_node, obj)
        self._decl_objects[file.ref(spec)] = [obj]
        return obj

    def _declare_values(
        self,
        file: SourceFile,
        spec: tree_sitter.Node,
        cls: type[Var] | type[Const],
        declare_in: Scope,
        resolve_in: Scope,
        lazy: bool,
        type_node: tree_sitter.Node | None = None,
        value_node: tree_sitter.Node | None = None,
    ) -> list[Object]:
        names = field_children(spec, "name")
        if type_node is None and value_node is None:
            type_node = spec.child_by_field_name("type")
            value_node = spec.child_by_field_name("value")
        objs: list[Object] = [cls(_text(n), self.pkg) for n in names]

        def compute() -> list[Type | None]:
            return self._spec_types(type_node, value_node, len(objs), resolve_in)

        if lazy:
            cache: list[list[Type | None]] = []

            def group() -> list[Type | None]:
                if not cache:
                    # Re-entrant requests see no types.
                    cache.append([])
                    with self._in_file(file):
                        cache[0] = compute()
                return cache[0]

            for i, obj in enumerate(objs):
                obj._lazy = lambda i=i: (group()[i] if i < len(group()) else None)
        else:
            for obj, typ in zip(objs, compute()):
                obj.type = typ

        for name_node, obj in zip(names, objs):
            declare_in.insert(obj)
            self._def(name_node, obj)
        self._decl_objects[file.ref(spec)] = objs
        return objs

    def _declare_consts(
        self,
        file: SourceFile,
        decl: tree_sitter.Node,
        declare_in: Scope,
        resolve_in: Scope,
        lazy: bool,
    ) -> None:
        # A spec without type and values repeats the previous one (iota groups).
        last_type: tree_sitter.Node | None = None
        last_value: tree_sitter.Node | None = None
        for spec in self._specs(decl, ("const_spec",)):
            type_node = spec.child_by_field_name("type")
            value_node = spec.child_by_field_name("value")
            if type_node is None and value_node is None:
                type_node, value_node = last_type, last_value
            else:
                last_type, last_value = type_node, value_node
            self._declare_values(
                file, spec, Const, declare_in, resolve_in, lazy,
                type_node=type_node, value_node=value_node,
            )

    def _spec_types(
        self,
        type_node: tree_sitter.Node | None,
        value_node: tree_sitter.Node | None,
        count: int,
        scope: Scope,
    ) -> list[Type | None]:
        if type_node is not None:
            typ = self._type_expr(type_node, scope)
            self._exprs(value_node, scope)
            return [typ] * count
        return self._distribute(self._exprs(value_node, scope), count)

    def _distribute(self, ops: list[Operand | None], count: int) -> list[Type | None]:
        """Spread right-hand side operands over count left-hand names."""
        if len(ops) == 1 and count > 1:
            typ = ops[0].type if ops[0] is not None else None
            if isinstance(typ, Tuple):
                types = [default_type(t) for t in typ.types]
            else:
                # Comma-ok forms: map index, type assertion, channel receive.
                types = [default_type(typ), BASIC["bool"]]
        else:
            types = [default_type(op.type) if op is not None else None for op in ops]
        types = types[:count]
        return types + [None] * (count - len(types))

    # Phase 2: bodies

    def check(self) -> Info:
        """Resolve every declaration and function body in the package."""
        self.collect()
        if self._checked:
            return self.info
        self._checked = True
        for file in self.files:
            scope = self._file_scopes[file.path]
            with self._in_file(file):
                for decl in file.root.named_children:
                    self._check_decl(file, decl, scope)
        return self.info

    def _check_decl(self, file: SourceFile, decl: tree_sitter.Node, scope: FileScope) -> None:
        kind = decl.type
        if kind == "function_declaration":
            body = decl.child_by_field_name("body")
            fscope = Scope(scope, kind="function")
            self._signature(decl, fscope, declare=True)
            if body is not None:
                self._stmts(body, fscope)
        elif kind == "method_declaration":
            body = decl.child_by_field_name("body")
            fscope = Scope(scope, kind="function")
            self._method_signature(decl, fscope, declare=True)
            if body is not None:
                self._stmts(body, fscope)
        elif kind == "type_declaration":
            for spec in self._specs(decl, ("type_spec", "type_alias")):
                self._force(file.ref(spec))
        elif kind in ("var_declaration", "const_declaration"):
            for spec in self._specs(decl, ("var_spec", "const_spec")):
                self._force(file.ref(spec))

    def _force(self, ref: NodeRef) -> None:
        for obj in self._decl_objects.get(ref, []):
            typ = obj.type
            if isinstance(typ, Named) and typ.obj is obj:
                typ.underlying

    # Signatures

    def _signature(self, node: tree_sitter.Node, scope: Scope, declare: bool) -> Signature:
        tparams = node.child_by_field_name("type_parameters")
        if tparams is not None:
            self._declare_type_params(tparams, scope)
        params, variadic = self._params(node.child_by_field_name("parameters"), scope, declare)
        results = self._results(node.child_by_field_name("result"), scope, declare)
        return Signature(params=params, results=results, variadic=variadic)

    def _method_signature(self, decl: tree_sitter.Node, scope: Scope, declare: bool) -> Signature:
        recv: Var | None = None
        receiver = decl.child_by_field_name("receiver")
        if receiver is not None:
            for param in receiver.named_children:
                if param.type != "parameter_declaration":
                    continue
                type_node = param.child_by_field_name("type")
                rtype = self._receiver_type(type_node, scope) if type_node is not None else None
                names = field_children(param, "name")
                recv = Var(_text(names[0]) if names else "", self.pkg, _type=rtype)
                if declare and names:
                    scope.insert(recv)
                    self._def(names[0], recv)
                break
        sig = self._signature(decl, scope, declare)
        sig.recv = recv
        return sig

    def _receiver_type(self, node: tree_sitter.Node, scope: Scope) -> Type | None:
        if node.type == "pointer_type":
            inner = _child(node, "type", -1)
            return Pointer(self._receiver_type(inner, scope) if inner is not None else None)
        if node.type == "parenthesized_type":
            inner = _child(node, "type", 0)
            return self._receiver_type(inner, scope) if inner is not None else None
        if node.type == "generic_type":
            # Receiver type arguments declare the method's type parameters.
            args = node.child_by_field_name("type_arguments")
            if args is not None:
                for arg in _named(args):
                    ident = arg if arg.type in IDENT_TYPES else _child(arg, "type", 0)
                    if ident is None or ident.type not in IDENT_TYPES:
                        continue
                    tn = TypeName(_text(ident), self.pkg)
                    tn.type = TypeParam(tn, lambda: None)
                    scope.insert(tn)
                    self._def(ident, tn)
            base = node.child_by_field_name("type")
            return self._type_expr(base, scope) if base is not None else None
        return self._type_expr(node, scope)

    def _type_params(self, node: tree_sitter.Node, scope: Scope) -> Scope:
        inner = Scope(scope)
        self._declare_type_params(node, inner)
        return inner

    def _declare_type_params(self, node: tree_sitter.Node, scope: Scope) -> None:
        params: list[TypeParam] = []
        for decl in _named(node):
            if decl.type != "type_parameter_declaration":
                continue
            constraint = decl.child_by_field_name("type")
            for name_node in field_children(decl, "name"):
                tn = TypeName(_text(name_node), self.pkg)
                tp = TypeParam(
                    tn,
                    (lambda c=constraint: self._type_expr(c, scope) if c is not None else None),
                )
                tn.type = tp
                scope.insert(tn)
                self._def(name_node, tn)
                params.append(tp)
        # Constraints may mention any parameter of the list.
        for tp in params:
            tp.underlying

    def _params(
        self, node: tree_sitter.Node | None, scope: Scope, declare: bool
    ) -> tuple[list[Var], bool]:
        params: list[Var] = []
        variadic = False
        if node is None:
            return params, variadic
        for decl in _named(node):
            if decl.type not in ("parameter_declaration", "variadic_parameter_declaration"):
                continue
            type_node = decl.child_by_field_name("type")
            typ = self._type_expr(type_node, scope) if type_node is not None else None
            if decl.type == "variadic_parameter_declaration":
                typ = Slice(typ)
                variadic = True
            names = field_children(decl, "name")
            if not names:
                params.append(Var("", self.pkg, _type=typ))
                continue
            for name_node in names:
                var = Var(_text(name_node), self.pkg, _type=typ)
                params.append(var)
                if declare:
                    scope.insert(var)
                    self._def(name_node, var)
        return params, variadic

    def _results(self, node: tree_sitter.Node | None, scope: Scope, declare: bool) -> list[Var]:
        if node is None:
            return []
        if node.type == "parameter_list":
            return self._params(node, scope, declare)[0]
        return [Var("", self.pkg, _type=self._type_expr(node, scope))]

    # Type expressions

    def _type_expr(self, node: tree_sitter.Node, scope: Scope) -> Type | None:
        kind = node.type

        if kind in ("type_identifier", "identifier"):
            obj = scope.lookup(_text(node))
            if obj is None:
                self._error(node, f"undefined: {_text(node)}")
                return None
            self._use(node, obj)
            return obj.type if isinstance(obj, TypeName) else None

        if kind == "qualified_type":
            parts = selector_parts(node)
            if parts is None:
                return None
            pkg_node, name_node = parts
            pkg_obj = scope.lookup(_text(pkg_node))
            if pkg_obj is None:
                self._error(pkg_node, f"undefined: {_text(pkg_node)}")
                return None
            if not isinstance(pkg_obj, PkgName) or pkg_obj.imported is None:
                return None
            self._use(pkg_node, pkg_obj)
            obj = self._qualified(node, pkg_obj, _text(name_node))
            self._use(name_node, obj)
            return obj.type if isinstance(obj, TypeName) else None

        if kind == "pointer_type":
            inner = _child(node, "type", -1)
            return Pointer(self._type_expr(inner, scope) if inner is not None else None)

        if kind in ("slice_type", "implicit_length_array_type", "array_type"):
            length = node.child_by_field_name("length")
            if length is not None:
                self._expr(length, scope)
            elem_node = _child(node, "element", -1)
            elem = self._type_expr(elem_node, scope) if elem_node is not None else None
            return Slice(elem) if kind == "slice_type" else Array(elem)

        if kind == "map_type":
            key_node = _child(node, "key", 0)
            value_node = _child(node, "value", -1)
            key = self._type_expr(key_node, scope) if key_node is not None else None
            value = self._type_expr(value_node, scope) if value_node is not None else None
            return Map(key, value)

        if kind == "channel_type":
            value_node = _child(node, "value", -1)
            return Chan(self._type_expr(value_node, scope) if value_node is not None else None)

        if kind == "struct_type":
            return self._struct(node, scope)

        if kind == "interface_type":
            return self._interface(node, scope)

        if kind == "function_type":
            return self._signature(node, Scope(scope), declare=False)

        if kind == "generic_type":
            args = node.child_by_field_name("type_arguments")
            if args is not None:
                for arg in _named(args):
                    self._type_expr(arg, scope)
            base = node.child_by_field_name("type")
            return self._type_expr(base, scope) if base is not None else None

        if kind in ("parenthesized_type", "type_elem", "type_constraint", "negated_type", "type_arguments"):
            types = [self._type_expr(k, scope) for k in _named(node)]
            if len(types) == 1:
                return types[0]
            # A union denotes a type set, not a single type.
            return Interface()

        if kind in ("selector_expression", "parenthesized_expression", "unary_expression", "index_expression"):
            op = self._expr(node, scope)
            return op.type if op is not None and op.mode == TYPE else None

        for child in _named(node):
            self._node(child, scope)
        return None

    def _struct(self, node: tree_sitter.Node, scope: Scope) -> Struct:
        struct = Struct()
        for body in _named(node):
            if body.type != "field_declaration_list":
                continue
            for decl in _named(body):
                if decl.type != "field_declaration":
                    continue
                type_node = decl.child_by_field_name("type")
                typ = self._type_expr(type_node, scope) if type_node is not None else None
                names = field_children(decl, "name")
                if names:
                    for name_node in names:
                        var = Var(_text(name_node), self.pkg, _type=typ, is_field=True)
                        struct.fields.append(var)
                        self._def(name_node, var)
                    continue
                if type_node is None:
                    continue
                if any(c.type == "*" for c in decl.children):
                    typ = Pointer(typ)
                name_node = self._embedded_name(type_node)
                if name_node is None:
                    continue
                var = Var(_text(name_node), self.pkg, _type=typ, is_field=True, embedded=True)
                struct.fields.append(var)
                self._def(name_node, var)
        return struct

    def _embedded_name(self, node: tree_sitter.Node) -> tree_sitter.Node | None:
        while node is not None:
            if node.type in IDENT_TYPES:
                return node
            if node.type == "qualified_type":
                node = node.child_by_field_name("name")
            elif node.type == "generic_type":
                node = node.child_by_field_name("type")
            elif node.type == "pointer_type":
                node = _child(node, "type", -1)
            else:
                return None
        return None

    def _interface(self, node: tree_sitter.Node, scope: Scope) -> Interface:
        iface = Interface()
        for child in _named(node):
            if child.type in ("method_elem", "method_spec"):
                name_node = child.child_by_field_name("name")
                if name_node is None:
                    continue
                sig = self._signature(child, Scope(scope), declare=False)
                method = Func(_text(name_node), self.pkg, _type=sig)
                iface.methods.append(method)
                self._def(name_node, method)
            else:
                # Unresolved embeddeds are kept so the method set reads as partial.
                iface.embeddeds.append(self._type_expr(child, scope))
        return iface

    # Statements

    def _block(self, node: tree_sitter.Node, scope: Scope) -> None:
        self._stmts(node, Scope(scope))

    def _stmts(self, node: tree_sitter.Node, scope: Scope) -> None:
        for child in node.named_children:
            if child.type == "statement_list":
                self._stmts(child, scope)
            else:
                self._stmt(child, scope)

    def _stmt(self, node: tree_sitter.Node, scope: Scope) -> None:
        kind = node.type

        if kind in _SKIPPED_STMTS:
            return
        if kind == "block":
            self._block(node, scope)
        elif kind == "short_var_declaration":
            self._short_var_decl(node, scope)
        elif kind == "var_declaration":
            for spec in self._specs(node, ("var_spec",)):
                self._declare_values(self._file, spec, Var, scope, scope, lazy=False)
        elif kind == "const_declaration":
            self._declare_consts(self._file, node, scope, scope, lazy=False)
        elif kind == "type_declaration":
            for spec in self._specs(node, ("type_spec", "type_alias")):
                obj = self._declare_type(self._file, spec, scope, scope)
                if obj is not None:
                    typ = obj.type
                    if isinstance(typ, Named):
                        typ.underlying
        elif kind == "if_statement":
            self._if(node, scope)
        elif kind == "for_statement":
            self._for(node, scope)
        elif kind == "expression_switch_statement":
            self._expr_switch(node, scope)
        elif kind == "type_switch_statement":
            self._type_switch(node, scope)
        elif kind == "select_statement":
            self._select_stmt(node, scope)
        elif kind == "receive_statement":
            self._receive(node, scope)
        elif kind == "labeled_statement":
            for child in _named(node):
                if child.type != "label_name":
                    self._stmt(child, scope)
        elif kind.endswith("_statement") or kind == "expression_list":
            # Assignment, return, go, defer, send, inc/dec.
            for child in _named(node):
                self._node(child, scope)
        else:
            self._expr(node, scope)

    def _short_var_decl(self, node: tree_sitter.Node, scope: Scope) -> None:
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        ops = self._exprs(right, scope)
        names = _named(left) if left is not None else []
        self._define(names, self._distribute(ops, len(names)), scope)

    def _define(
        self, names: list[tree_sitter.Node], types: list[Type | None], scope: Scope
    ) -> None:
        """Declare the new names of a := form; already declared ones are uses."""
        for name_node, typ in zip(names, types):
            if name_node.type != "identifier":
                self._expr(name_node, scope)
                continue
            name = _text(name_node)
            if name == "_":
                continue
            existing = scope.lookup_local(name)
            if existing is not None:
                self._use(name_node, existing)
                continue
            var = Var(name, self.pkg, _type=typ)
            scope.insert(var)
            self._def(name_node, var)

    def _if(self, node: tree_sitter.Node, scope: Scope) -> None:
        inner = Scope(scope)
        init = node.child_by_field_name("initializer")
        if init is not None:
            self._stmt(init, inner)
        cond = node.child_by_field_name("condition")
        if cond is not None:
            self._expr(cond, inner)
        consequence = node.child_by_field_name("consequence")
        if consequence is not None:
            self._block(consequence, inner)
        alternative = node.child_by_field_name("alternative")
        if alternative is not None:
            self._stmt(alternative, inner)

    def _for(self, node: tree_sitter.Node, scope: Scope) -> None:
        inner = Scope(scope)
        body = node.child_by_field_name("body")
        for child in _named(node):
            if _same(child, body):
                continue
            if child.type == "for_clause":
                for name in ("initializer", "condition", "update"):
                    part = child.child_by_field_name(name)
                    if part is not None:
                        self._stmt(part, inner)
            elif child.type == "range_clause":
                self._range(child, inner)
            else:
                self._expr(child, inner)
        if body is not None:
            self._block(body, inner)

    def _range(self, node: tree_sitter.Node, scope: Scope) -> None:
        right = node.child_by_field_name("right")
        x = self._expr(right, scope) if right is not None else None
        key, value = self._range_types(x.type if x is not None else None)
        left = node.child_by_field_name("left")
        if left is None:
            return
        if any(c.type == ":=" for c in node.children):
            self._define(_named(left), [key, value], scope)
        else:
            self._exprs(left, scope)

    def _range_types(self, typ: Type | None) -> tuple[Type | None, Type | None]:
        under = typ.underlying if typ is not None else None
        if isinstance(under, Pointer) and under.elem is not None:
            under = under.elem.underlying
        if isinstance(under, Basic):
            if under.name == "string":
                return BASIC["int"], BASIC["int32"]
            return default_type(under), None
        if isinstance(under, (Slice, Array)):
            return BASIC["int"], under.elem
        if isinstance(under, Map):
            return under.key, under.elem
        if isinstance(under, Chan):
            return under.elem, None
        if isinstance(under, Signature) and under.params:
            # Range over a function iterator: func(yield func(K, V) bool).
            yield_sig = under.params[0].type
            yield_sig = yield_sig.underlying if yield_sig is not None else None
            if isinstance(yield_sig, Signature):
                types = [p.type for p in yield_sig.params] + [None, None]
                return types[0], types[1]
        return None, None

    def _case_body(self, case: tree_sitter.Node, skip: list[tree_sitter.Node], scope: Scope) -> None:
        for child in case.named_children:
            if any(_same(child, s) for s in skip):
                continue
            if child.type == "statement_list":
                self._stmts(child, scope)
            else:
                self._stmt(child, scope)

    def _expr_switch(self, node: tree_sitter.Node, scope: Scope) -> None:
        inner = Scope(scope)
        init = node.child_by_field_name("initializer")
        if init is not None:
            self._stmt(init, inner)
        value = node.child_by_field_name("value")
        if value is not None:
            self._expr(value, inner)
        for case in _named(node):
            if case.type not in ("expression_case", "default_case"):
                continue
            case_scope = Scope(inner)
            values = case.child_by_field_name("value")
            if values is not None:
                self._exprs(values, case_scope)
            self._case_body(case, [values] if values is not None else [], case_scope)

    def _type_switch(self, node: tree_sitter.Node, scope: Scope) -> None:
        inner = Scope(scope)
        init = node.child_by_field_name("initializer")
        if init is not None:
            self._stmt(init, inner)
        value = node.child_by_field_name("value")
        x = self._expr(value, inner) if value is not None else None
        alias = node.child_by_field_name("alias")
        alias_ident = None
        if alias is not None:
            idents = _named(alias) if alias.type == "expression_list" else [alias]
            alias_ident = idents[0] if idents else None

        for case in _named(node):
            if case.type not in ("type_case", "default_case"):
                continue
            case_scope = Scope(inner)
            type_nodes = field_children(case, "type")
            types = [None if t.type == "nil" else self._type_expr(t, case_scope) for t in type_nodes]
            if alias_ident is not None and _text(alias_ident) != "_":
                typ = types[0] if len(types) == 1 else (x.type if x is not None else None)
                var = Var(_text(alias_ident), self.pkg, _type=typ)
                case_scope.insert(var)
                self._def(alias_ident, var)
            self._case_body(case, type_nodes, case_scope)

    def _select_stmt(self, node: tree_sitter.Node, scope: Scope) -> None:
        for case in _named(node):
            if case.type not in ("communication_case", "default_case"):
                continue
            case_scope = Scope(scope)
            comm = case.child_by_field_name("communication")
            if comm is not None:
                self._stmt(comm, case_scope)
            self._case_body(case, [comm] if comm is not None else [], case_scope)

    def _receive(self, node: tree_sitter.Node, scope: Scope) -> None:
        right = node.child_by_field_name("right")
        ops = [self._expr(right, scope)] if right is not None else []
        left = node.child_by_field_name("left")
        if left is None:
            return
        if any(c.type == ":=" for c in node.children):
            names = _named(left)
            self._define(names, self._distribute(ops, len(names)), scope)
        else:
            self._exprs(left, scope)

    # Expressions

    def _node(self, node: tree_sitter.Node, scope: Scope) -> Operand | None:
        """Evaluate any node: statement, type or expression."""
        if node.type in TYPE_NODES:
            return Operand(TYPE, self._type_expr(node, scope))
        if node.type.endswith("_statement") or node.type in ("block", "short_var_declaration"):
            self._stmt(node, scope)
            return None
        return self._expr(node, scope)

    def _exprs(self, node: tree_sitter.Node | None, scope: Scope) -> list[Operand | None]:
        if node is None:
            return []
        if node.type != "expression_list":
            return [self._expr(node, scope)]
        return [self._expr(child, scope) for child in _named(node)]

    def _operand_for(self, obj: Object) -> Operand:
        if isinstance(obj, PkgName):
            return Operand(PACKAGE, None, obj)
        if isinstance(obj, TypeName):
            return Operand(TYPE, obj.type, obj)
        if isinstance(obj, Builtin):
            return Operand(BUILTIN, None, obj)
        if isinstance(obj, (Nil, Opaque)):
            return Operand(VALUE, None, obj)
        return Operand(VALUE, obj.type, obj)

    def _expr(self, node: tree_sitter.Node, scope: Scope) -> Operand | None:
        kind = node.type

        if kind in ("identifier", "type_identifier", "field_identifier", "package_identifier"):
            name = _text(node)
            if name == "_":
                return None
            obj = scope.lookup(name)
            if obj is None:
                if kind in ("identifier", "type_identifier"):
                    self._error(node, f"undefined: {name}")
                return None
            self._use(node, obj)
            return self._operand_for(obj)

        if kind in ("selector_expression", "qualified_type"):
            return self._selector(node, scope)
        if kind == "call_expression":
            return self._call(node, scope)
        if kind == "composite_literal":
            return self._composite(node, scope)
        if kind == "unary_expression":
            return self._unary(node, scope)
        if kind == "binary_expression":
            return self._binary(node, scope)
        if kind == "index_expression":
            return self._index(node, scope)
        if kind == "slice_expression":
            return self._slice(node, scope)

        if kind in ("type_assertion_expression", "type_conversion_expression"):
            operand = node.child_by_field_name("operand")
            if operand is not None:
                self._expr(operand, scope)
            type_node = node.child_by_field_name("type")
            return Operand(VALUE, self._type_expr(type_node, scope) if type_node is not None else None)

        if kind == "parenthesized_expression":
            inner = _named(node)
            return self._expr(inner[0], scope) if inner else None

        if kind == "func_literal":
            fscope = Scope(scope, kind="function")
            sig = self._signature(node, fscope, declare=True)
            body = node.child_by_field_name("body")
            if body is not None:
                self._stmts(body, fscope)
            return Operand(VALUE, sig)

        if kind == "int_literal":
            return Operand(VALUE, UNTYPED_INT)
        if kind == "float_literal":
            return Operand(VALUE, UNTYPED_FLOAT)
        if kind == "imaginary_literal":
            return Operand(VALUE, UNTYPED_COMPLEX)
        if kind == "rune_literal":
            return Operand(VALUE, UNTYPED_RUNE)
        if kind in ("interpreted_string_literal", "raw_string_literal"):
            return Operand(VALUE, UNTYPED_STRING)
        if kind in ("true", "false"):
            return Operand(VALUE, UNTYPED_BOOL)
        if kind == "iota":
            return Operand(VALUE, UNTYPED_INT)
        if kind == "nil":
            return Operand(VALUE, None)

        if kind in TYPE_NODES:
            return Operand(TYPE, self._type_expr(node, scope))

        for child in _named(node):
            self._node(child, scope)
        return None

    def _selector(self, node: tree_sitter.Node, scope: Scope) -> Operand | None:
        parts = selector_parts(node)
        if parts is None:
            return None
        base, member = parts
        x = self._expr(base, scope)
        if x is None:
            return None
        name = _text(member)

        if x.mode == PACKAGE:
            obj = self._qualified(node, x.obj, name) if isinstance(x.obj, PkgName) else None
            if obj is None:
                return None
            self._use(member, obj)
            return self._operand_for(obj)

        found = lookup_field_or_method(x.type, name)
        if found is None:
            self._missing_member(node, x.type, name)
            return None
        obj, index, indirect = found

        if x.mode == TYPE:
            if not isinstance(obj, Func):
                return None
            self._use(member, obj)
            self._select(node, Selection(SelectionKind.METHOD_EXPR, x.type, obj, index, indirect))
            sig = obj.type
            if isinstance(sig, Signature):
                recv = Var("", self.pkg, _type=x.type)
                sig = Signature([recv, *sig.params], sig.results, sig.variadic)
            return Operand(VALUE, sig, obj)

        kind = SelectionKind.FIELD_VAL if isinstance(obj, Var) else SelectionKind.METHOD_VAL
        self._use(member, obj)
        self._select(node, Selection(kind, x.type, obj, index, indirect))
        return Operand(VALUE, obj.type, obj)

    def _qualified(self, node: tree_sitter.Node, pkg_name: PkgName, name: str) -> Object | None:
        imported = pkg_name.imported
        if imported is None:
            return None
        obj = imported.member(name)
        if obj is None:
            self._error(node, f"undefined: {pkg_name.name}.{name}")
            return None
        if not obj.exported():
            self._error(node, f"name {name} not exported by package {imported.name}")
            return None
        return obj

    def _missing_member(self, node: tree_sitter.Node, typ: Type | None, name: str) -> None:
        # Only types with a fully resolved method set can be said to lack a member.
        base, _ = deref(typ)
        if not isinstance(base, Named) or base.obj.pkg is None or base.obj.pkg.opaque:
            return
        if not method_set_known(base):
            return
        self._error(node, f"{_text(node)} undefined (type {typ} has no field or method {name})")

    def _call(self, node: tree_sitter.Node, scope: Scope) -> Operand | None:
        fn_node = node.child_by_field_name("function")
        type_args = node.child_by_field_name("type_arguments")
        if type_args is not None:
            for arg in _named(type_args):
                self._type_expr(arg, scope)
        args_node = node.child_by_field_name("arguments")
        args = _named(args_node) if args_node is not None else []

        fn = self._expr(fn_node, scope) if fn_node is not None else None
        if fn is not None and fn.mode == BUILTIN:
            return self._builtin_call(fn.obj.name, args, scope)

        for arg in args:
            self._node(arg, scope)
        if fn is None:
            return None
        if fn.mode == TYPE:
            return Operand(VALUE, fn.type)
        sig = fn.type.underlying if fn.type is not None else None
        if isinstance(sig, Signature):
            result = sig.result_type()
            return Operand(VALUE, result) if result is not None else Operand(NOVALUE)
        return None

    def _builtin_call(
        self, name: str, args: list[tree_sitter.Node], scope: Scope
    ) -> Operand:
        ops = [self._node(arg, scope) for arg in args]
        first = ops[0].type if ops and ops[0] is not None else None
        if name == "new":
            return Operand(VALUE, Pointer(first))
        if name == "make":
            return Operand(VALUE, first)
        if name == "append":
            return Operand(VALUE, first)
        if name in ("min", "max"):
            return Operand(VALUE, first)
        if name in ("len", "cap", "copy"):
            return Operand(VALUE, BASIC["int"])
        if name == "complex":
            return Operand(VALUE, BASIC["complex128"])
        if name in ("real", "imag"):
            return Operand(VALUE, BASIC["float64"])
        if name == "recover":
            return Operand(VALUE, Interface())
        return Operand(NOVALUE)

    def _composite(self, node: tree_sitter.Node, scope: Scope) -> Operand:
        type_node = node.child_by_field_name("type")
        typ = self._type_expr(type_node, scope) if type_node is not None else None
        body = node.child_by_field_name("body")
        if body is not None:
            self._literal_value(body, typ, scope)
        return Operand(VALUE, typ)

    def _literal_value(self, node: tree_sitter.Node, typ: Type | None, scope: Scope) -> None:
        under = typ.underlying if typ is not None else None
        if isinstance(under, Pointer):
            # &T{...} elided inside a composite literal of *T elements.
            under = under.elem.underlying if under.elem is not None else None

        index = 0
        for element in _named(node):
            if element.type == "keyed_element":
                parts = _named(element)
                if len(parts) < 2:
                    continue
                key, value = self._unwrap_element(parts[0]), parts[-1]
                elem_type: Type | None = None
                if isinstance(under, Struct):
                    found = under.field_by_name(_text(key))
                    if found is not None:
                        self._use(key, found[1])
                        elem_type = found[1].type
                elif isinstance(under, Map):
                    self._element(key, under.key, scope)
                    elem_type = under.elem
                elif isinstance(under, (Slice, Array)):
                    self._expr(key, scope)
                    elem_type = under.elem
                elif key.type not in ("identifier", "field_identifier"):
                    # Unknown literal type: a bare key may name a field we cannot see.
                    self._element(key, None, scope)
                self._element(value, elem_type, scope)
            else:
                elem_type = None
                if isinstance(under, Struct):
                    if index < len(under.fields):
                        elem_type = under.fields[index].type
                elif isinstance(under, (Slice, Array, Map)):
                    elem_type = under.elem
                self._element(element, elem_type, scope)
                index += 1

    def _unwrap_element(self, node: tree_sitter.Node) -> tree_sitter.Node:
        if node.type in ("literal_element", "element"):
            inner = _named(node)
            if inner:
                return inner[0]
        return node

    def _element(self, node: tree_sitter.Node, typ: Type | None, scope: Scope) -> None:
        node = self._unwrap_element(node)
        if node.type == "literal_value":
            self._literal_value(node, typ, scope)
        else:
            self._expr(node, scope)

    def _unary(self, node: tree_sitter.Node, scope: Scope) -> Operand | None:
        operand = node.child_by_field_name("operand")
        op_node = node.child_by_field_name("operator")
        op = _text(op_node) if op_node is not None else (node.children[0].type if node.children else "")
        x = self._expr(operand, scope) if operand is not None else None
        if x is None:
            return None
        if op == "&":
            return Operand(VALUE, Pointer(x.type))
        if op == "*":
            if x.mode == TYPE:
                return Operand(TYPE, Pointer(x.type))
            under = x.type.underlying if x.type is not None else None
            return Operand(VALUE, under.elem if isinstance(under, Pointer) else None)
        if op == "<-":
            under = x.type.underlying if x.type is not None else None
            return Operand(VALUE, under.elem if isinstance(under, Chan) else None)
        if op == "!":
            return Operand(VALUE, UNTYPED_BOOL)
        return Operand(VALUE, x.type)

    def _binary(self, node: tree_sitter.Node, scope: Scope) -> Operand:
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        op_node = node.child_by_field_name("operator")
        x = self._expr(left, scope) if left is not None else None
        y = self._expr(right, scope) if right is not None else None
        op = _text(op_node) if op_node is not None else ""
        if op in _COMPARISON_OPS:
            return Operand(VALUE, UNTYPED_BOOL)
        xt = x.type if x is not None else None
        yt = y.type if y is not None else None
        if op in ("<<", ">>"):
            return Operand(VALUE, xt)
        if isinstance(xt, Basic) and xt.untyped and yt is not None:
            return Operand(VALUE, yt)
        return Operand(VALUE, xt)

    def _index(self, node: tree_sitter.Node, scope: Scope) -> Operand | None:
        operand = node.child_by_field_name("operand")
        x = self._expr(operand, scope) if operand is not None else None
        for child in _named(node):
            if not _same(child, operand):
                self._node(child, scope)
        if x is None:
            return None
        if x.mode == TYPE:
            # Generic type instantiation.
            return Operand(TYPE, x.type)
        under = x.type.underlying if x.type is not None else None
        if isinstance(under, Pointer) and under.elem is not None:
            under = under.elem.underlying
        if isinstance(under, (Slice, Array, Map)):
            return Operand(VALUE, under.elem)
        if isinstance(under, Basic) and under.name == "string":
            return Operand(VALUE, BASIC["byte"])
        if isinstance(under, Signature):
            # Generic function instantiation.
            return Operand(VALUE, x.type, x.obj)
        return Operand(VALUE, None)

    def _slice(self, node: tree_sitter.Node, scope: Scope) -> Operand | None:
        operand = node.child_by_field_name("operand")
        x = self._expr(operand, scope) if operand is not None else None
        for child in _named(node):
            if not _same(child, operand):
                self._expr(child, scope)
        if x is None:
            return None
        under = x.type.underlying if x.type is not None else None
        if isinstance(under, Pointer) and under.elem is not None:
            under = under.elem.underlying
        if isinstance(under, Array):
            return Operand(VALUE, Slice(under.elem))
        return Operand(VALUE, default_type(x.type))
