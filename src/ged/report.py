"""Aggregated symbol occurrences and their text/JSON rendering."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator


@dataclass(frozen=True, order=True)
class Match:
    """What was found, independent of where.

    Attributes:
        pkg: Path of the package declaring the matched symbol.
        ident: Package-level identifier (or receiver type name).
        method: Selected method name, or "".
        field: Selected field name, or "".
    """

    pkg: str
    ident: str
    method: str = ""
    field: str = ""

    def __str__(self) -> str:
        text = f"{self.pkg} {self.ident}"
        if self.method:
            return f"{text}.{self.method}()"
        if self.field:
            return f"{text}.{self.field}"
        return text

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"pkg": self.pkg, "ident": self.ident}
        if self.method:
            result["method"] = self.method
        if self.field:
            result["field"] = self.field
        return result


@dataclass(frozen=True, order=True)
class Position:
    """A source location. offset only breaks ordering ties."""

    filename: str  # module-relative, POSIX-style
    line: int  # 1-based
    column: int  # 1-based, in bytes
    offset: int = 0

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


class Matches:
    """Report accumulator: Match -> set of positions."""

    def __init__(self) -> None:
        self._entries: dict[Match, set[Position]] = {}

    def add(self, match: Match, position: Position) -> None:
        self._entries.setdefault(match, set()).add(position)

    def merge(self, other: Matches) -> None:
        for match, positions in other._entries.items():
            self._entries.setdefault(match, set()).update(positions)

    def positions(self, match: Match) -> list[Position]:
        return sorted(self._entries.get(match, ()))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Match]:
        return iter(sorted(self._entries))

    def __contains__(self, match: object) -> bool:
        return match in self._entries

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matches):
            return NotImplemented
        return self._entries == other._entries

    def render(self) -> str:
        """Render the report: one header per match, one tab-indented line per position."""
        lines = []
        for match in self:
            lines.append(f"{match}:\n")
            for pos in self.positions(match):
                lines.append(f"\t{pos}\n")
        return "".join(lines)

    def __str__(self) -> str:
        return self.render()

    def to_dict(self) -> list[dict[str, Any]]:
        result = []
        for match in self:
            entry = match.to_dict()
            entry["positions"] = [
                {"file": p.filename, "line": p.line, "column": p.column}
                for p in self.positions(match)
            ]
            result.append(entry)
        return result
