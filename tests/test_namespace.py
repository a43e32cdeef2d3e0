"""Tests for identifier qualification and scopes."""

import itertools

import pytest

from cellspace import DuplicateIdentifier, InvalidIdentifier, Scope, qualify, unqualify
from cellspace.namespace import entered, from_widget_id, is_within, resolve, split, widget_id


class TestQualify:
    def test_root_scope(self):
        assert qualify("", "choice") == "choice"

    def test_nested(self):
        assert qualify("a", "choice") == "a.choice"
        assert qualify("outer.inner", "plot") == "outer.inner.plot"

    @pytest.mark.parametrize("name", ["", "has.dot", "has-dash", "sp ace", "ü"])
    def test_invalid_local_names(self, name):
        with pytest.raises(InvalidIdentifier):
            qualify("a", name)

    def test_invalid_scope(self):
        with pytest.raises(InvalidIdentifier):
            qualify("a..b", "x")

    def test_injective(self):
        scopes = ["", "a", "b", "a.b", "a_b", "ab", "1"]
        names = ["a", "b", "ab", "a_b", "1", "choice"]
        seen = {}
        for scope_id, name in itertools.product(scopes, names):
            qualified = qualify(scope_id, name)
            assert qualified not in seen, (scope_id, name, seen.get(qualified))
            seen[qualified] = (scope_id, name)

    def test_unqualify_inverts(self):
        assert unqualify("a.b", qualify("a.b", "plot")) == "plot"
        assert unqualify("", "plot") == "plot"

    def test_unqualify_rejects_non_members(self):
        with pytest.raises(InvalidIdentifier):
            unqualify("a", "b.plot")
        with pytest.raises(InvalidIdentifier):
            unqualify("a", "a.b.plot")

    def test_is_within(self):
        assert is_within("a", "a.choice")
        assert is_within("a", "a")
        assert not is_within("a", "ab.choice")
        assert is_within("", "anything.at.all")

    def test_split(self):
        assert split("") == ()
        assert split("a.b.c") == ("a", "b", "c")


class TestScope:
    def test_call_qualifies(self):
        ns = Scope("a")
        assert ns("choice") == "a.choice"

    def test_child_chain(self):
        root = Scope()
        inner = root.child("outer").child("inner")
        assert inner.id == "outer.inner"
        assert inner("x") == "outer.inner.x"

    def test_duplicate_sibling(self):
        root = Scope()
        root.child("a")
        with pytest.raises(DuplicateIdentifier) as excinfo:
            root.child("a")
        assert excinfo.value.qualified == "a"

    def test_same_name_under_different_parents(self):
        root = Scope()
        a = root.child("a").child("x")
        b = root.child("b").child("x")
        assert a.id != b.id

    def test_release_allows_reuse(self):
        root = Scope()
        root.child("a")
        root.release("a")
        assert root.child("a").id == "a"

    def test_resolve_uses_active_scope(self):
        assert resolve("x") == "x"
        with entered(Scope("panel")):
            assert resolve("x") == "panel.x"
        assert resolve("x") == "x"


class TestWidgetIds:
    @pytest.mark.parametrize("qualified", ["a", "a.choice", "outer.inner.plot", "1.x", "a.1", "_x.y"])
    def test_round_trip(self, qualified):
        encoded = widget_id(qualified)
        assert "." not in encoded
        assert not encoded[0].isdigit()
        assert from_widget_id(encoded) == qualified

    def test_distinct(self):
        assert widget_id("a.b") != widget_id("a_b")
