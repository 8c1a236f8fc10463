"""Build constraint filtering for Go source files."""

from __future__ import annotations

import os
import platform
import re
import sys

KNOWN_OS = frozenset(
    {
        "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos",
        "ios", "js", "linux", "nacl", "netbsd", "openbsd", "plan9", "solaris",
        "wasip1", "windows", "zos",
    }
)

KNOWN_ARCH = frozenset(
    {
        "386", "amd64", "amd64p32", "arm", "arm64", "arm64be", "armbe",
        "loong64", "mips", "mips64", "mips64le", "mips64p32", "mips64p32le",
        "mipsle", "ppc", "ppc64", "ppc64le", "riscv", "riscv64", "s390",
        "s390x", "sparc", "sparc64", "wasm",
    }
)

UNIX_OS = frozenset(
    {
        "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos",
        "ios", "linux", "netbsd", "openbsd", "solaris",
    }
)

_MACHINE_TO_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "armv7l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
    "riscv64": "riscv64",
}

_BUILD_LINE_RE = re.compile(r"^//go:build\s+(.+)$")
_TOKEN_RE = re.compile(r"\s*(\(|\)|!|&&|\|\||[\w.]+)")


def host_os() -> str:
    """GOOS to evaluate constraints for, honouring the GOOS env variable."""
    if os.environ.get("GOOS"):
        return os.environ["GOOS"]
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform.startswith("freebsd"):
        return "freebsd"
    return sys.platform if sys.platform in KNOWN_OS else "linux"


def host_arch() -> str:
    """GOARCH to evaluate constraints for, honouring the GOARCH env variable."""
    if os.environ.get("GOARCH"):
        return os.environ["GOARCH"]
    return _MACHINE_TO_ARCH.get(platform.machine().lower(), "amd64")


class BuildContext:
    """Decides which files of a package directory take part in the build."""

    def __init__(self, goos: str | None = None, goarch: str | None = None) -> None:
        self.goos = goos or host_os()
        self.goarch = goarch or host_arch()

    def tags(self) -> set[str]:
        tags = {self.goos, self.goarch, "gc"}
        if self.goos in UNIX_OS:
            tags.add("unix")
        if self.goos == "android":
            tags.add("linux")
        if self.goos in ("ios", "illumos"):
            tags.add("darwin" if self.goos == "ios" else "solaris")
        return tags

    def match_file_name(self, name: str) -> bool:
        """Apply the filename rules: no tests, no _/. files, GOOS/GOARCH suffixes."""
        if not name.endswith(".go") or name.startswith(("_", ".")):
            return False
        if name.endswith("_test.go"):
            return False
        parts = name[: -len(".go")].split("_")
        if len(parts) >= 2 and parts[-1] in KNOWN_ARCH:
            if parts[-1] != self.goarch:
                return False
            if len(parts) >= 3 and parts[-2] in KNOWN_OS:
                return parts[-2] in self.tags()
            return True
        if len(parts) >= 2 and parts[-1] in KNOWN_OS:
            return parts[-1] in self.tags()
        return True

    def match_source(self, source: bytes) -> bool:
        """Evaluate a //go:build line in the file header, if there is one."""
        for raw in source.decode(errors="replace").splitlines():
            line = raw.strip()
            if not line:
                continue
            if line.startswith("package "):
                return True
            m = _BUILD_LINE_RE.match(line)
            if m:
                return self.eval_constraint(m.group(1))
        return True

    def eval_constraint(self, expr: str) -> bool:
        tokens = _TOKEN_RE.findall(expr)
        tags = self.tags()
        pos = 0

        def parse_or() -> bool:
            nonlocal pos
            value = parse_and()
            while pos < len(tokens) and tokens[pos] == "||":
                pos += 1
                rhs = parse_and()
                value = value or rhs
            return value

        def parse_and() -> bool:
            nonlocal pos
            value = parse_not()
            while pos < len(tokens) and tokens[pos] == "&&":
                pos += 1
                rhs = parse_not()
                value = value and rhs
            return value

        def parse_not() -> bool:
            nonlocal pos
            if pos < len(tokens) and tokens[pos] == "!":
                pos += 1
                return not parse_not()
            if pos < len(tokens) and tokens[pos] == "(":
                pos += 1
                value = parse_or()
                if pos < len(tokens) and tokens[pos] == ")":
                    pos += 1
                return value
            if pos >= len(tokens):
                return False
            tag = tokens[pos]
            pos += 1
            return tag in tags or tag.startswith("go1.")

        return parse_or()
