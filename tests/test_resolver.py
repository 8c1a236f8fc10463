"""Tests for resolving query occurrences in loaded packages."""

import pytest

from ged.pattern import parse_pattern
from ged.report import Match
from ged.resolver import find_in_package, find_in_packages, receiver_object
from ged.semantic.loader import GoLoader
from ged.semantic.types import Named, Package, Pointer, Slice, Struct, TypeName


def find(module, pattern: str, *packages: str, jobs: int = 1) -> str:
    loaded = GoLoader(module).load(list(packages))
    return find_in_packages(parse_pattern(pattern), loaded, jobs=jobs).render()


class TestReceiverObject:
    """Tests for receiver unwrapping."""

    def _named(self, name: str = "T") -> Named:
        obj = TypeName(name, Package("example.com/p", "p"))
        named = Named(obj, Struct())
        obj.type = named
        return named

    def test_named(self):
        named = self._named()
        assert receiver_object(named) is named.obj

    def test_pointer_to_named(self):
        named = self._named()
        assert receiver_object(Pointer(named)) is named.obj

    def test_pointer_to_pointer_is_not_a_receiver(self):
        assert receiver_object(Pointer(Pointer(self._named()))) is None

    def test_unnamed_types_are_not_receivers(self):
        assert receiver_object(Struct()) is None
        assert receiver_object(Slice(self._named())) is None
        assert receiver_object(None) is None


class TestBareIdentifiers:
    """Tests for queries without a member pattern."""

    def test_package_type(self, go_module):
        """A qualified type name in a var declaration is found."""
        out = find(go_module, "uut/pkg1:T1", "./usepkg1/pkgtype")
        assert out == "uut/pkg1 T1:\n\tusepkg1/pkgtype/pkgtype.go:8:13\n"

    def test_package_func(self, go_module):
        out = find(go_module, "uut/pkg1:F1", "./usepkg1/pkgfunc")
        assert out == "uut/pkg1 F1:\n\tusepkg1/pkgfunc/pkgfunc.go:6:7\n"

    def test_shadowed_package_name_is_not_a_use(self, go_module):
        """A local variable named like the import hides it."""
        out = find(go_module, "uut/pkg1:F1", "./usepkg1/shadow")
        assert out == "uut/pkg1 F1:\n\tusepkg1/shadow/shadow.go:6:7\n"

    def test_field_names_in_literals_and_selectors(self, go_module):
        """Keyed literal fields, elided literal types and range variables resolve."""
        out = find(go_module, "uut/pkg1:T1F1", "./usepkg1/literals")
        assert out == (
            "uut/pkg1 T1F1:\n"
            "\tusepkg1/literals/literals.go:6:15\n"
            "\tusepkg1/literals/literals.go:7:19\n"
            "\tusepkg1/literals/literals.go:9:9\n"
        )

    def test_one_match_per_package(self, go_module):
        """A wildcard package pattern yields a Match per declaring package."""
        out = find(go_module, "uut/pkg.*:T1", "./crosspkgs")
        assert out == (
            "uut/pkg1 T1:\n"
            "\tcrosspkgs/crosspkgs.go:9:12\n"
            "uut/pkg2 T1:\n"
            "\tcrosspkgs/crosspkgs.go:10:12\n"
        )

    def test_standard_library_symbols(self, go_module):
        """Imports without local source still resolve by name."""
        assert find(go_module, "fmt:Println", "./stdlib") == (
            "fmt Println:\n\tstdlib/stdlib.go:9:6\n"
        )
        assert find(go_module, "strings:ToUpper", "./stdlib") == (
            "strings ToUpper:\n\tstdlib/stdlib.go:10:13\n"
        )

    def test_declarations_are_not_uses(self, go_module):
        out = find(go_module, "uut/pkg1:T2", "./pkg1")
        # Only the embedded field's type reference, not the type declaration.
        assert out == "uut/pkg1 T2:\n\tpkg1/pkg1.go:5:2\n"

    def test_no_match_renders_empty(self, go_module):
        assert find(go_module, "uut/pkg1:Nothing", "./...") == ""


class TestFields:
    """Tests for field queries."""

    def test_regular_field(self, go_module):
        out = find(go_module, "uut/pkg1:T1:T1F1", "./usepkg1/typefield")
        assert out == "uut/pkg1 T1.T1F1:\n\tusepkg1/typefield/typefield.go:7:6\n"

    def test_embedded_field(self, go_module):
        """The position is the start of the whole selector expression."""
        out = find(go_module, "uut/pkg1:T1:T2", "./usepkg1/typefield")
        assert out == (
            "uut/pkg1 T1.T2:\n"
            "\tusepkg1/typefield/typefield.go:9:6\n"
            "\tusepkg1/typefield/typefield.go:10:6\n"
        )

    def test_field_of_embedded_field(self, go_module):
        out = find(go_module, "uut/pkg1:T1:T2F1", "./usepkg1/typefield")
        assert out == "uut/pkg1 T1.T2F1:\n\tusepkg1/typefield/typefield.go:8:6\n"

    def test_promoted_field_is_not_a_use_of_embedded_type(self, go_module):
        """t.T2F1 is reported under T1; only t.T2.T2F1 is a T2 access."""
        out = find(go_module, "uut/pkg1:T2:T2F1", "./usepkg1/typefield")
        assert out == "uut/pkg1 T2.T2F1:\n\tusepkg1/typefield/typefield.go:10:6\n"

    def test_field_pattern_ignores_methods(self, go_module):
        assert find(go_module, "uut/pkg1:T1:F1", "./usepkg1/typemethod") == ""

    def test_field_through_embedded_pointer(self, go_module):
        out = find(go_module, "uut/pkg1:T3:T1F1", "./usepkg1/promoted")
        assert out == "uut/pkg1 T3.T1F1:\n\tusepkg1/promoted/promoted.go:7:2\n"

    def test_keyed_literal_fields_are_not_selections(self, go_module):
        out = find(go_module, "uut/pkg1:T1:T1F1", "./usepkg1/literals")
        assert out == "uut/pkg1 T1.T1F1:\n\tusepkg1/literals/literals.go:9:7\n"


class TestMethods:
    """Tests for method queries."""

    def test_value_receiver_method(self, go_module):
        """Values, pointers and method expressions all select F1."""
        out = find(go_module, "uut/pkg1:T1:F1()", "./usepkg1/typemethod")
        assert out == (
            "uut/pkg1 T1.F1():\n"
            "\tusepkg1/typemethod/typemethod.go:8:2\n"
            "\tusepkg1/typemethod/typemethod.go:10:2\n"
            "\tusepkg1/typemethod/typemethod.go:12:6\n"
        )

    def test_pointer_receiver_method(self, go_module):
        out = find(go_module, "uut/pkg1:T1:F2()", "./usepkg1/typemethod")
        assert out == (
            "uut/pkg1 T1.F2():\n"
            "\tusepkg1/typemethod/typemethod.go:9:2\n"
            "\tusepkg1/typemethod/typemethod.go:11:2\n"
        )

    def test_method_pattern_ignores_fields(self, go_module):
        assert find(go_module, "uut/pkg1:T1:T1F1()", "./usepkg1/typefield") == ""

    def test_promoted_method(self, go_module):
        out = find(go_module, "uut/pkg1:T3:F1()", "./usepkg1/promoted")
        assert out == "uut/pkg1 T3.F1():\n\tusepkg1/promoted/promoted.go:6:2\n"

    def test_method_across_packages(self, go_module):
        out = find(go_module, "uut/pkg.*:T1:F1()", "./crosspkgs")
        assert out == (
            "uut/pkg1 T1.F1():\n"
            "\tcrosspkgs/crosspkgs.go:11:2\n"
            "uut/pkg2 T1.F1():\n"
            "\tcrosspkgs/crosspkgs.go:12:2\n"
        )

    def test_method_regex_across_packages(self, go_module):
        out = find(go_module, "uut/pkg.*:T1:F.*()", "./crosspkgs")
        assert out == (
            "uut/pkg1 T1.F1():\n"
            "\tcrosspkgs/crosspkgs.go:11:2\n"
            "uut/pkg2 T1.F1():\n"
            "\tcrosspkgs/crosspkgs.go:12:2\n"
            "uut/pkg2 T1.F2():\n"
            "\tcrosspkgs/crosspkgs.go:13:2\n"
        )


class TestFindInPackages:
    """Tests for resolving across several packages."""

    def test_single_package(self, go_module):
        loaded = GoLoader(go_module).load(["./usepkg1/pkgfunc"])
        matches = find_in_package(parse_pattern("uut/pkg1:F1"), loaded[0])
        assert list(matches) == [Match("uut/pkg1", "F1")]
        positions = matches.positions(Match("uut/pkg1", "F1"))
        assert [str(p) for p in positions] == ["usepkg1/pkgfunc/pkgfunc.go:6:7"]
        assert positions[0].line == 6

    @pytest.mark.parametrize("jobs", [1, 4])
    def test_jobs_do_not_change_result(self, go_module, jobs):
        serial = find(go_module, "uut/pkg1:.*", "./...")
        assert find(go_module, "uut/pkg1:.*", "./...", jobs=jobs) == serial
        assert "usepkg1/typemethod/typemethod.go" in serial

    def test_idempotent(self, go_module):
        loaded = GoLoader(go_module).load(["./..."])
        pattern = parse_pattern("uut/pkg1:T1:F.*()")
        assert find_in_packages(pattern, loaded) == find_in_packages(pattern, loaded)
