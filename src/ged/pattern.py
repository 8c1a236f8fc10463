"""Query pattern compilation.

A pattern has the form ``<pkg>:<ident>[:<field>|<method>()]``. Each segment
is a regular expression that must match the whole name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import InvalidPatternError
from .semantic.types import Func, Object, Var


@dataclass(frozen=True)
class Pattern:
    """A compiled query.

    Attributes:
        pkg: Matches the declaring package path.
        ident: Matches the package-level identifier name.
        method: Matches a method name, or None.
        field: Matches a field name, or None. Never set together with method.
    """

    pkg: re.Pattern[str]
    ident: re.Pattern[str]
    method: re.Pattern[str] | None = None
    field: re.Pattern[str] | None = None

    @property
    def has_member(self) -> bool:
        return self.method is not None or self.field is not None

    def match_package(self, path: str) -> bool:
        return self.pkg.match(path) is not None

    def match_ident(self, name: str) -> bool:
        return self.ident.match(name) is not None

    def match_object(self, obj: Object) -> bool:
        """Check an identifier's resolved object against pkg and ident."""
        if obj.pkg is None:
            return False
        return self.match_package(obj.pkg.path) and self.match_ident(obj.name)

    def match_member(self, obj: Object | None) -> bool:
        """Check a selected member against the field or method pattern.

        Only variables count as fields and only functions count as methods,
        so type names, constants and package names never match.
        """
        if obj is None:
            return False
        if self.field is not None:
            return isinstance(obj, Var) and self.field.match(obj.name) is not None
        if self.method is not None:
            return isinstance(obj, Func) and self.method.match(obj.name) is not None
        raise ValueError("pattern has no field/method pattern")

    def __str__(self) -> str:
        text = f"{self.pkg.pattern}:{self.ident.pattern}"
        if self.method is not None:
            return f"{text}:{self.method.pattern}()"
        if self.field is not None:
            return f"{text}:{self.field.pattern}"
        return text


def parse_pattern(text: str) -> Pattern:
    """
    Parse and compile a query pattern.

    Formats:
    - "pkg/path:Ident" -> any use of the identifier
    - "pkg/path:Ident:Field" -> field accesses on Ident
    - "pkg/path:Ident:Method()" -> method selections on Ident

    Raises:
        InvalidPatternError: If the pattern is empty, has the wrong number
            of segments, or a segment is empty or not a valid regex.
    """
    if not text:
        raise InvalidPatternError(text, "no pattern specified")

    segs = text.split(":")
    if len(segs) < 2 or len(segs) > 3:
        raise InvalidPatternError(text, f"invalid pattern specified: {text}")

    pkg = _compile_segment(text, segs[0], "pkg pattern")
    ident = _compile_segment(text, segs[1], "ident pattern")
    if len(segs) == 2:
        return Pattern(pkg=pkg, ident=ident)

    member = segs[2]
    is_method = member.endswith("()")
    if is_method:
        member = member[: -len("()")]
    compiled = _compile_segment(text, member, "method or field pattern")
    if is_method:
        return Pattern(pkg=pkg, ident=ident, method=compiled)
    return Pattern(pkg=pkg, ident=ident, field=compiled)


def _compile_segment(text: str, segment: str, label: str) -> re.Pattern[str]:
    """Anchor a non-empty segment at both ends and compile it."""
    if not segment:
        raise InvalidPatternError(text, f"{label}: empty pattern")
    if not segment.startswith("^"):
        segment = "^" + segment
    if not segment.endswith("$"):
        segment = segment + "$"
    try:
        return re.compile(segment)
    except re.error as e:
        raise InvalidPatternError(text, f"{label}: {e}") from e
