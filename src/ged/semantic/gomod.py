"""Go module discovery: go.mod parsing and import path resolution."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import GoModNotFoundError, LoadError

logger = logging.getLogger(__name__)

GO_MOD = "go.mod"

_COMMENT_RE = re.compile(r"//.*$")


@dataclass
class GoMod:
    """A parsed go.mod.

    Attributes:
        root: Directory containing go.mod.
        module: Module path declared by the ``module`` directive.
        go_version: Value of the ``go`` directive, if present.
        replaces: Module path -> local directory, for replacements that
            point at the filesystem.
    """

    root: Path
    module: str
    go_version: str | None = None
    replaces: dict[str, Path] = field(default_factory=dict)

    def in_module(self, import_path: str) -> bool:
        return import_path == self.module or import_path.startswith(self.module + "/")

    def import_path_for(self, directory: Path) -> str:
        """Import path of a package directory inside the main module."""
        rel = directory.resolve().relative_to(self.root)
        if rel == Path("."):
            return self.module
        return f"{self.module}/{rel.as_posix()}"

    def dir_for_import(self, import_path: str) -> Path | None:
        """Locate the source directory of an import path.

        Main module packages come first, then local ``replace`` targets
        (longest module path wins), then ``vendor/``. Returns None for
        imports with no local source.
        """
        if self.in_module(import_path):
            rel = import_path[len(self.module) :].lstrip("/")
            return self.root / rel if rel else self.root

        best: str | None = None
        for mod in self.replaces:
            if import_path == mod or import_path.startswith(mod + "/"):
                if best is None or len(mod) > len(best):
                    best = mod
        if best is not None:
            rel = import_path[len(best) :].lstrip("/")
            target = self.replaces[best]
            return target / rel if rel else target

        vendored = self.root / "vendor" / import_path
        if vendored.is_dir():
            return vendored
        return None


def find_go_mod(start: Path) -> Path:
    """Find the nearest go.mod at or above start.

    Raises:
        GoModNotFoundError: If no go.mod exists up to the filesystem root.
    """
    start = start.resolve()
    for directory in [start, *start.parents]:
        candidate = directory / GO_MOD
        if candidate.is_file():
            return candidate
    raise GoModNotFoundError(str(start))


def load_go_mod(start: Path) -> GoMod:
    """Find and parse the go.mod governing start."""
    path = find_go_mod(start)
    try:
        text = path.read_text()
    except OSError as e:
        raise LoadError(str(path), f"cannot read go.mod: {e}") from e
    gomod = parse_go_mod(text, path.parent)
    logger.debug("module %s at %s", gomod.module, gomod.root)
    return gomod


def parse_go_mod(text: str, root: Path) -> GoMod:
    """
    Parse the directives ged needs from go.mod text.

    Handles:
    - module example.com/m
    - go 1.22
    - replace a => ./local, including version suffixes and ( ... ) blocks

    Raises:
        LoadError: If the module directive is missing.
    """
    module: str | None = None
    go_version: str | None = None
    replaces: dict[str, Path] = {}
    block: str | None = None

    for raw in text.splitlines():
        line = _COMMENT_RE.sub("", raw).strip()
        if not line:
            continue

        if block is not None:
            if line == ")":
                block = None
            elif block == "replace":
                _add_replace(line, root, replaces)
            continue

        verb, _, rest = line.partition(" ")
        rest = rest.strip()
        if rest == "(":
            block = verb
        elif verb == "module":
            module = _unquote(rest)
        elif verb == "go":
            go_version = rest
        elif verb == "replace":
            _add_replace(rest, root, replaces)

    if not module:
        raise LoadError(str(root / GO_MOD), "no module directive")
    return GoMod(root=root.resolve(), module=module, go_version=go_version, replaces=replaces)


def _add_replace(spec: str, root: Path, replaces: dict[str, Path]) -> None:
    old, sep, new = spec.partition("=>")
    if not sep:
        return
    old_mod = _unquote(old.split()[0]) if old.split() else ""
    new_parts = new.split()
    if not old_mod or not new_parts:
        return
    target = _unquote(new_parts[0])
    # Only filesystem replacements have source we can read.
    if target.startswith(("./", "../", "/")):
        replaces[old_mod] = (root / target).resolve()


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] in "\"`" and text[-1] == text[0]:
        return text[1:-1]
    return text
