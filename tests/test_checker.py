"""Tests for name and type resolution across Go statement and expression forms."""

import pytest

from ged.pattern import parse_pattern
from ged.resolver import find_in_packages
from ged.semantic.loader import GoLoader
from ged.semantic.types import Const, Func, Var

from conftest import MODULE_FILES, write_files

APP = """\
package app

import (
\t"errors"

\t"uut/pkg1"
)

type Store interface {
\tGet(key string) (pkg1.T1, error)
}

type Cache struct {
\tStore
\titems map[string]*pkg1.T1
}

type Pair[K comparable, V any] struct {
\tKey K
\tVal V
}

func (p Pair[K, V]) First() K { return p.Key }

const (
\tA = iota
\tB
)

func lookup(c *Cache, k string) (*pkg1.T1, bool) {
\tv, ok := c.items[k]
\treturn v, ok
}

func Use(c *Cache, x any) error {
\tt, err := c.Get("k")
\tif err != nil {
\t\treturn errors.New("x")
\t}
\t_ = t.T1F1
\tif p, ok := lookup(c, "k"); ok {
\t\tp.F2()
\t}
\tswitch v := x.(type) {
\tcase pkg1.T1:
\t\tv.F1()
\tcase *pkg1.T1:
\t\tv.F2()
\t}
\tch := make(chan pkg1.T1, 1)
\tselect {
\tcase got := <-ch:
\t\t_ = got.T2F1
\tdefault:
\t}
\tpair := Pair[string, pkg1.T1]{Key: "a"}
\t_ = pair.First()
\tfn := func(in pkg1.T1) int { return in.T1F1 }
\t_ = fn
\tvar arr [B]pkg1.T1
\tfor i := range arr {
\t\tarr[i].F1()
\t}
\treturn nil
}
"""


@pytest.fixture
def app_module(go_module):
    """The uut module plus an 'app' package exercising many Go forms."""
    return write_files(go_module, {"app/app.go": APP})


@pytest.fixture
def app(app_module):
    (package,) = GoLoader(app_module).load(["./app"])
    return package


def lines(app, pattern: str) -> dict[str, list[int]]:
    """Map each rendered match header to the lines it was found on."""
    matches = find_in_packages(parse_pattern(pattern), [app])
    return {str(m): [p.line for p in matches.positions(m)] for m in matches}


class TestStatements:
    """Tests for scoping and typing through statements."""

    def test_multi_value_call_through_embedded_interface(self, app):
        assert lines(app, "uut/pkg1:T1:T1F1") == {"uut/pkg1 T1.T1F1": [40, 58]}

    def test_if_initializer_and_type_switch(self, app):
        assert lines(app, "uut/pkg1:T1:F2()") == {"uut/pkg1 T1.F2()": [42, 48]}

    def test_type_switch_and_range_index(self, app):
        assert lines(app, "uut/pkg1:T1:F1()") == {"uut/pkg1 T1.F1()": [46, 62]}

    def test_select_receive(self, app):
        assert lines(app, "uut/pkg1:T1:T2F1") == {"uut/pkg1 T1.T2F1": [53]}


class TestDeclarations:
    """Tests for package-level declarations used in the same package."""

    def test_method_promoted_from_embedded_interface(self, app):
        assert lines(app, "uut/app:Cache:Get()") == {"uut/app Cache.Get()": [36]}

    def test_map_field_with_comma_ok(self, app):
        assert lines(app, "uut/app:Cache:items") == {"uut/app Cache.items": [31]}

    def test_generic_type_methods_and_fields(self, app):
        assert lines(app, "uut/app:Pair:First()") == {"uut/app Pair.First()": [57]}
        assert lines(app, "uut/app:Pair:Key") == {"uut/app Pair.Key": [23]}

    def test_iota_constant_in_array_length(self, app):
        assert lines(app, "uut/app:B") == {"uut/app B": [60]}

    def test_opaque_function(self, app):
        assert lines(app, "errors:New") == {"errors New": [38]}

    def test_store_get_is_not_reported_for_cache(self, app):
        assert lines(app, "uut/app:Store:Get()") == {}


class TestObjects:
    """Tests for the objects recorded in the uses table."""

    def _uses(self, app) -> dict[tuple[int, str], object]:
        files = {f.path: f for f in app.files}
        result = {}
        for (path, start, end), obj in app.info.uses.items():
            source = files[path].source
            line = source.count(b"\n", 0, start) + 1
            result[(line, source[start:end].decode())] = obj
        return result

    def test_locals_resolve_to_their_declarations(self, app):
        uses = self._uses(app)
        assert isinstance(uses[(37, "err")], Var)
        assert uses[(41, "ok")] is not uses[(32, "ok")]
        assert isinstance(uses[(60, "B")], Const)
        assert isinstance(uses[(57, "First")], Func)

    def test_universe_objects_have_no_package(self, app):
        uses = self._uses(app)
        assert uses[(50, "make")].pkg is None
        assert uses[(35, "any")].pkg is None

    def test_type_switch_alias_is_per_clause(self, app):
        uses = self._uses(app)
        assert uses[(46, "v")] is not uses[(48, "v")]

    def test_module_packages_are_unaffected(self, app_module):
        loaded = GoLoader(app_module).load(["./..."])
        paths = [p.path for p in loaded]
        assert "uut/app" in paths
        assert len(paths) == len({k.rsplit("/", 1)[0] for k in MODULE_FILES if k != "go.mod"}) + 1
