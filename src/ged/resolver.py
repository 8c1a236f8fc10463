"""Find the occurrences of a query in type-checked packages."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable

import tree_sitter

from .pattern import Pattern
from .report import Match, Matches, Position
from .semantic.loader import LoadedPackage
from .semantic.syntax import IDENT_TYPES, SELECTOR_TYPES, SourceFile, selector_parts, walk
from .semantic.types import Named, Object, Pointer, Type, TypeName

logger = logging.getLogger(__name__)


def receiver_object(recv: Type | None) -> TypeName | None:
    """The named type behind a selection receiver: T or *T, nothing else."""
    if isinstance(recv, Pointer):
        recv = recv.elem
    if isinstance(recv, Named):
        return recv.obj
    return None


def _position(file: SourceFile, node: tree_sitter.Node) -> Position:
    row, column = node.start_point
    return Position(file.path, row + 1, column + 1, node.start_byte)


def _member_match(pattern: Pattern, pkg_obj: Object, ident: str) -> Match:
    pkg_path = pkg_obj.pkg.path if pkg_obj.pkg is not None else ""
    if pattern.field is not None:
        return Match(pkg_path, ident, field=pkg_obj.name)
    return Match(pkg_path, ident, method=pkg_obj.name)


def find_in_package(pattern: Pattern, package: LoadedPackage) -> Matches:
    """Collect every occurrence of pattern in one package.

    Without a member pattern, every identifier resolving to a matching
    package-level object is reported. With one, every member access is
    examined: qualified accesses need a matching base identifier, field and
    method selections need a matching receiver type (T or *T).
    """
    info = package.info
    candidates = {
        ref for ref, obj in info.uses.items() if pattern.match_object(obj)
    }
    # No candidates does not mean no matches in member mode: promoted
    # selections need no matching base identifier.

    matches = Matches()
    for file in package.files:
        for node in walk(file.root):
            if not pattern.has_member:
                if node.type in IDENT_TYPES and file.ref(node) in candidates:
                    obj = info.uses[file.ref(node)]
                    matches.add(
                        Match(obj.pkg.path, file.text(node)), _position(file, node)
                    )
                continue

            if node.type not in SELECTOR_TYPES:
                continue
            parts = selector_parts(node)
            if parts is None:
                continue
            base, member = parts
            # Member matches are positioned at the selector start (the `x` of
            # `x.F1`), not at the member name.

            selection = info.selections.get(file.ref(node))
            if selection is None:
                if base.type not in IDENT_TYPES or file.ref(base) not in candidates:
                    continue
                member_obj = info.uses.get(file.ref(member))
                if pattern.match_member(member_obj):
                    matches.add(
                        _member_match(pattern, member_obj, file.text(base)),
                        _position(file, node),
                    )
                continue

            receiver = receiver_object(selection.recv)
            if receiver is None or not pattern.match_object(receiver):
                continue
            if pattern.match_member(selection.obj):
                matches.add(
                    _member_match(pattern, selection.obj, receiver.name),
                    _position(file, node),
                )

    logger.debug("%s: %d match(es) for %s", package.path, len(matches), pattern)
    return matches


def find_in_packages(
    pattern: Pattern, packages: Iterable[LoadedPackage], jobs: int = 1
) -> Matches:
    """Resolve pattern in every package and merge the results.

    With jobs > 1 packages are resolved on a thread pool; merging always
    happens in the calling thread.
    """
    packages = list(packages)
    result = Matches()
    if jobs <= 1 or len(packages) <= 1:
        for package in packages:
            result.merge(find_in_package(pattern, package))
        return result

    with ThreadPoolExecutor(max_workers=jobs) as executor:
        futures = [executor.submit(find_in_package, pattern, p) for p in packages]
        for future in as_completed(futures):
            result.merge(future.result())
    return result
