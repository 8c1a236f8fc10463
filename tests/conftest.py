"""Pytest fixtures for ged tests."""

import os
import subprocess
import sys
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).resolve().parent.parent / "src"

GO_MOD = """\
module uut

go 1.21
"""

PKG1 = """\
package pkg1

type T1 struct {
\tT1F1 int
\tT2
}

type T2 struct {
\tT2F1 string
}

type T3 struct {
\t*T1
}

func (T1) F1() {}

func (*T1) F2() {}

func F1() {}

var V1 = T1{}

const C1 = 1
"""

PKG2 = """\
package pkg2

type T1 struct{}

func (T1) F1() {}

func (*T1) F2() {}
"""

PKGTYPE = """\
package pkgtype

import (
\t"uut/pkg1"
)

func Use() {
\tvar _ pkg1.T1
}
"""

PKGFUNC = """\
package pkgfunc

import "uut/pkg1"

func Use() {
\tpkg1.F1()
}
"""

TYPEFIELD = """\
package typefield

import "uut/pkg1"

func Use() {
\tt := pkg1.T1{}
\t_ = t.T1F1
\t_ = t.T2F1
\t_ = t.T2
\t_ = t.T2.T2F1
}
"""

TYPEMETHOD = """\
package typemethod

import "uut/pkg1"

func Use() {
\tt := pkg1.T1{}
\tpt := &pkg1.T1{}
\tt.F1()
\tt.F2()
\tpt.F1()
\tpt.F2()
\t_ = pkg1.T1.F1
}
"""

PROMOTED = """\
package promoted

import "uut/pkg1"

func Use(t pkg1.T3) {
\tt.F1()
\tt.T1F1 = 1
}
"""

SHADOW = """\
package shadow

import "uut/pkg1"

func Use() {
\tpkg1.F1()
\t{
\t\tpkg1 := struct{ F1 func() }{}
\t\tpkg1.F1()
\t}
}
"""

CROSSPKGS = """\
package crosspkgs

import (
\t"uut/pkg1"
\t"uut/pkg2"
)

func Use() {
\ta := pkg1.T1{}
\tb := pkg2.T1{}
\ta.F1()
\tb.F1()
\tb.F2()
}
"""

LITERALS = """\
package literals

import "uut/pkg1"

func Use() []pkg1.T1 {
\tv := pkg1.T1{T1F1: 1}
\tts := []pkg1.T1{{T1F1: 2}, v}
\tfor _, t := range ts {
\t\t_ = t.T1F1
\t}
\treturn ts
}
"""

STDLIB = """\
package stdlib

import (
\t"fmt"
\tstr "strings"
)

func Use() string {
\tfmt.Println("x")
\treturn str.ToUpper("x")
}
"""

MODULE_FILES = {
    "go.mod": GO_MOD,
    "pkg1/pkg1.go": PKG1,
    "pkg2/pkg2.go": PKG2,
    "usepkg1/pkgtype/pkgtype.go": PKGTYPE,
    "usepkg1/pkgfunc/pkgfunc.go": PKGFUNC,
    "usepkg1/typefield/typefield.go": TYPEFIELD,
    "usepkg1/typemethod/typemethod.go": TYPEMETHOD,
    "usepkg1/promoted/promoted.go": PROMOTED,
    "usepkg1/shadow/shadow.go": SHADOW,
    "usepkg1/literals/literals.go": LITERALS,
    "crosspkgs/crosspkgs.go": CROSSPKGS,
    "stdlib/stdlib.go": STDLIB,
}


def write_files(root: Path, files: dict[str, str]) -> Path:
    """Write a tree of files under root and return root."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def _subprocess_env() -> dict[str, str]:
    """Environment that can import ged from the source tree."""
    paths = [str(SRC_DIR), os.environ.get("PYTHONPATH", "")]
    return {**os.environ, "PYTHONPATH": os.pathsep.join(p for p in paths if p)}


def run_ged(args: list[str], cwd: Path) -> subprocess.CompletedProcess:
    """Run the ged CLI as a subprocess."""
    return subprocess.run(
        [sys.executable, "-m", "ged.cli"] + args,
        cwd=cwd,
        capture_output=True,
        text=True,
        env=_subprocess_env(),
    )


@pytest.fixture
def go_module(tmp_path):
    """A Go module 'uut' with a provider package and several user packages."""
    return write_files(tmp_path / "uut", MODULE_FILES)
