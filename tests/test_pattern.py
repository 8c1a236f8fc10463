"""Tests for query pattern compilation."""

import pytest

from ged.errors import InvalidPatternError
from ged.pattern import parse_pattern
from ged.semantic.types import Const, Func, Package, TypeName, Var


class TestParsePattern:
    """Tests for parse_pattern."""

    def test_empty_pattern(self):
        with pytest.raises(InvalidPatternError, match="no pattern specified"):
            parse_pattern("")

    @pytest.mark.parametrize("text", ["onlyonesegment", "a:b:c:d"])
    def test_wrong_segment_count(self, text):
        with pytest.raises(InvalidPatternError, match="invalid pattern specified") as exc:
            parse_pattern(text)
        assert exc.value.pattern == text

    def test_package_and_ident(self):
        p = parse_pattern("pkg:ident")
        assert p.pkg.pattern == "^pkg$"
        assert p.ident.pattern == "^ident$"
        assert p.field is None
        assert p.method is None
        assert not p.has_member

    def test_field(self):
        p = parse_pattern("pkg:ident:field")
        assert p.field.pattern == "^field$"
        assert p.method is None
        assert p.has_member

    def test_method(self):
        p = parse_pattern("pkg:ident:method()")
        assert p.method.pattern == "^method$"
        assert p.field is None

    def test_existing_anchors_are_kept(self):
        p = parse_pattern("^pkg$:^ident")
        assert p.pkg.pattern == "^pkg$"
        assert p.ident.pattern == "^ident$"

    @pytest.mark.parametrize(
        "text, label",
        [
            (":ident", "pkg pattern"),
            ("pkg:", "ident pattern"),
            ("pkg:ident:", "method or field pattern"),
            ("pkg:ident:()", "method or field pattern"),
        ],
    )
    def test_empty_segment(self, text, label):
        with pytest.raises(InvalidPatternError, match=f"{label}: empty pattern"):
            parse_pattern(text)

    @pytest.mark.parametrize(
        "text, label",
        [
            ("(:ident", "pkg pattern"),
            ("pkg:[", "ident pattern"),
            ("pkg:ident:*()", "method or field pattern"),
        ],
    )
    def test_invalid_regex(self, text, label):
        with pytest.raises(InvalidPatternError, match=label):
            parse_pattern(text)

    def test_str_round_trip(self):
        assert str(parse_pattern("a/b:T:M()")) == "^a/b$:^T$:^M$()"
        assert str(parse_pattern("a/b:T:F")) == "^a/b$:^T$:^F$"


class TestMatching:
    """Tests for the compiled predicates."""

    def test_anchoring_is_full_string(self):
        p = parse_pattern("uut/pkg1:T1")
        assert p.match_package("uut/pkg1")
        assert not p.match_package("uut/pkg10")
        assert not p.match_package("x/uut/pkg1")
        assert p.match_ident("T1")
        assert not p.match_ident("T10")

    def test_regex_segments(self):
        p = parse_pattern("uut/pkg.*:T[0-9]")
        assert p.match_package("uut/pkg2")
        assert p.match_ident("T7")

    def test_match_object(self):
        pkg = Package("uut/pkg1", "pkg1")
        p = parse_pattern("uut/pkg1:T1")
        assert p.match_object(TypeName("T1", pkg))
        assert not p.match_object(TypeName("T1", None))
        assert not p.match_object(TypeName("T1", Package("uut/pkg2", "pkg2")))

    def test_field_accepts_only_variables(self):
        pkg = Package("p", "p")
        p = parse_pattern("p:T:X")
        assert p.match_member(Var("X", pkg, is_field=True))
        assert not p.match_member(Func("X", pkg))
        assert not p.match_member(Const("X", pkg))
        assert not p.match_member(None)

    def test_method_accepts_only_functions(self):
        pkg = Package("p", "p")
        p = parse_pattern("p:T:X()")
        assert p.match_member(Func("X", pkg))
        assert not p.match_member(Var("X", pkg, is_field=True))

    def test_member_check_without_member_pattern(self):
        with pytest.raises(ValueError):
            parse_pattern("p:T").match_member(Var("X", None))

    def test_patterns_are_immutable(self):
        p = parse_pattern("p:T")
        with pytest.raises(AttributeError):
            p.ident = None
