"""Loading and type-checking the Go packages of a module."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

import tree_sitter
import tree_sitter_go as tsgo

from ..errors import LoadError
from .build import BuildContext
from .checker import Checker, Info
from .gomod import GoMod, load_go_mod
from .syntax import SourceFile, find_syntax_error
from .types import Package

logger = logging.getLogger(__name__)

GO_LANGUAGE = tree_sitter.Language(tsgo.language())

_MAJOR_VERSION_RE = re.compile(r"^v[0-9]+$")
_GOPKG_VERSION_RE = re.compile(r"\.v[0-9]+$")


@dataclass
class LoadedPackage:
    """A type-checked package ready for resolution.

    Attributes:
        path: Import path.
        name: Package name from the package clause.
        dir: Source directory.
        files: Parsed files, with module-relative paths.
        types: The package object (scope and members).
        info: Resolution tables for every identifier and selector.
    """

    path: str
    name: str
    dir: Path
    files: list[SourceFile]
    types: Package
    info: Info


def default_package_name(import_path: str) -> str:
    """Guess a package name from its import path.

    Major version suffixes (example.com/m/v2, gopkg.in/yaml.v3) are not
    part of the name.
    """
    parts = import_path.split("/")
    name = parts[-1]
    if len(parts) > 1 and _MAJOR_VERSION_RE.match(name):
        name = parts[-2]
    name = _GOPKG_VERSION_RE.sub("", name)
    return name.replace("-", "_").replace(".", "_")


class GoLoader:
    """Loads packages of the Go module containing workdir."""

    def __init__(self, workdir: Path | str, build: BuildContext | None = None) -> None:
        self.workdir = Path(workdir).resolve()
        self.build = build or BuildContext()
        self.parser = tree_sitter.Parser(GO_LANGUAGE)
        self._gomod: GoMod | None = None
        self._checkers: dict[str, Checker] = {}
        self._targets: set[str] = set()

    @property
    def gomod(self) -> GoMod:
        if self._gomod is None:
            self._gomod = load_go_mod(self.workdir)
        return self._gomod

    def load(self, patterns: list[str] | None = None) -> list[LoadedPackage]:
        """Load and type-check the packages matched by patterns.

        Loading is all-or-nothing: any failure raises before a result is
        returned.

        Raises:
            LoadError: If a pattern matches nothing, a file cannot be read or
                parsed, an in-module import has no package, or a loaded
                package does not type-check.
        """
        patterns = patterns or ["."]
        targets: list[str] = []
        for pattern in patterns:
            for path in self.expand(pattern):
                if path not in targets:
                    targets.append(path)
        self._targets.update(targets)

        checkers = [self._checker(path) for path in targets]
        for checker in checkers:
            checker.record = True
            checker.check()
        self._raise_check_errors()

        loaded = []
        for path, checker in zip(targets, checkers):
            loaded.append(
                LoadedPackage(
                    path=path,
                    name=checker.pkg.name,
                    dir=self.gomod.dir_for_import(path) or self.gomod.root,
                    files=checker.files,
                    types=checker.pkg,
                    info=checker.info,
                )
            )
            logger.debug(
                "checked %s: %d uses, %d selections",
                path,
                len(checker.info.uses),
                len(checker.info.selections),
            )
        loaded.sort(key=lambda p: p.path)
        return loaded

    def _raise_check_errors(self) -> None:
        """Fail the whole load if any package, target or import, has type errors."""
        errors = sorted(e for checker in self._checkers.values() for e in checker.errors)
        if not errors:
            return
        for error in errors[1:]:
            logger.error("%s", error)
        first = errors[0]
        reason = first.message
        if len(errors) > 1:
            reason += f" (and {len(errors) - 1} more errors)"
        raise LoadError(f"{first.path}:{first.line}:{first.column}", reason)

    def expand(self, pattern: str) -> list[str]:
        """Expand one package pattern into import paths, sorted."""
        gomod = self.gomod
        recursive = pattern == "..." or pattern.endswith("/...")
        base = pattern[: -len("...")].rstrip("/") if recursive else pattern

        if base in ("", ".") or base.startswith(("./", "../")) or Path(base).is_absolute():
            directory = (self.workdir / (base or ".")).resolve()
        elif gomod.in_module(base):
            directory = gomod.dir_for_import(base)
        else:
            raise LoadError(pattern, f"package pattern is outside module {gomod.module}")

        try:
            directory.relative_to(gomod.root)
        except ValueError:
            raise LoadError(pattern, f"directory {directory} is outside module {gomod.module}")

        if recursive:
            dirs = self._walk_dirs(directory)
        else:
            dirs = [directory]
        paths = sorted(gomod.import_path_for(d) for d in dirs if self._go_files(d))
        if not paths:
            raise LoadError(pattern, "matched no packages")
        return paths

    def _walk_dirs(self, root: Path) -> list[Path]:
        result = []
        stack = [root]
        while stack:
            directory = stack.pop()
            if not directory.is_dir():
                continue
            result.append(directory)
            for child in sorted(directory.iterdir(), reverse=True):
                if not child.is_dir():
                    continue
                if child.name in ("testdata", "vendor") or child.name.startswith(("_", ".")):
                    continue
                # Nested modules are not part of this one.
                if (child / "go.mod").exists():
                    continue
                stack.append(child)
        return result

    def _go_files(self, directory: Path) -> list[Path]:
        if not directory.is_dir():
            return []
        return sorted(
            p for p in directory.iterdir() if p.is_file() and self.build.match_file_name(p.name)
        )

    def _checker(self, import_path: str) -> Checker:
        checker = self._checkers.get(import_path)
        if checker is not None:
            return checker

        directory = self.gomod.dir_for_import(import_path)
        if directory is None:
            raise LoadError(import_path, "no local source for package")
        files = self._parse_dir(directory)
        if not files:
            raise LoadError(import_path, f"no Go files in {directory}")

        name = self._package_name(import_path, files)
        pkg = Package(import_path, name)
        checker = Checker(pkg, files, self.import_package, record=import_path in self._targets)
        self._checkers[import_path] = checker

        logger.debug("loading %s (%d files)", import_path, len(files))
        checker.collect()
        return checker

    def import_package(self, import_path: str) -> Package:
        """Resolve an import path to a package, loading it if needed."""
        if import_path in self._checkers:
            return self._checkers[import_path].pkg
        gomod = self.gomod
        directory = gomod.dir_for_import(import_path)
        if directory is None:
            logger.debug("import %s has no local source, treating as opaque", import_path)
            pkg = Package(import_path, default_package_name(import_path), opaque=True)
            self._checkers[import_path] = Checker(pkg, [], self.import_package, record=False)
            return pkg
        if gomod.in_module(import_path) and not self._go_files(directory):
            raise LoadError(import_path, "imported package not found in module")
        return self._checker(import_path).pkg

    def _parse_dir(self, directory: Path) -> list[SourceFile]:
        files = []
        for path in self._go_files(directory):
            try:
                source = path.read_bytes()
            except OSError as e:
                raise LoadError(str(path), f"cannot read file: {e}") from e
            if not self.build.match_source(source):
                logger.debug("skipping %s: build constraints exclude it", path)
                continue
            tree = self.parser.parse(source)
            sf = SourceFile(path=self._rel_path(path), abs_path=path, source=source, tree=tree)
            error = find_syntax_error(tree.root_node)
            if error is not None:
                line, column = error.start_point
                raise LoadError(f"{sf.path}:{line + 1}:{column + 1}", "syntax error")
            files.append(sf)
        return files

    def _package_name(self, import_path: str, files: list[SourceFile]) -> str:
        names: dict[str, str] = {}
        for sf in files:
            for node in sf.root.named_children:
                if node.type == "package_clause":
                    ident = node.named_children[0] if node.named_children else None
                    if ident is not None:
                        names.setdefault(sf.text(ident), sf.path)
                    break
        if len(names) > 1:
            found = ", ".join(f"{n} ({p})" for n, p in sorted(names.items()))
            raise LoadError(import_path, f"found packages {found}")
        if not names:
            raise LoadError(import_path, "missing package clause")
        return next(iter(names))

    def _rel_path(self, path: Path) -> str:
        try:
            return path.relative_to(self.gomod.root).as_posix()
        except ValueError:
            return path.as_posix()
