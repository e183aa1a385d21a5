"""
Unit tests for per-pass identity resolution.

Tests cover:
- Allocation order and sign
- Memoization per scoped key
- Scoping of field and param names
- Declared vs referenced bookkeeping
- Independence of contexts
"""

from typegraph.schema.identity import CompilationContext
from typegraph.schema.symbols import sym


class TestCompilationContext:
    """Tests for CompilationContext."""

    def test_allocates_decreasing_negative_ids(self):
        """Identities start at -1 and decrease."""
        ctx = CompilationContext()
        assert ctx.resolve("A") == -1
        assert ctx.resolve("B") == -2
        assert ctx.resolve("C") == -3

    def test_same_symbol_same_identity(self):
        """Repeated resolution returns the first identity."""
        ctx = CompilationContext()
        first = ctx.resolve("A")
        ctx.resolve("B")
        assert ctx.resolve("A") == first
        assert len(ctx) == 2

    def test_symbol_and_string_share_identity(self):
        """A Symbol and its name resolve to the same key."""
        ctx = CompilationContext()
        assert ctx.resolve(sym("A", interface=True)) == ctx.resolve("A")

    def test_fields_scoped_by_type(self):
        """Same field name under different types gets different identities."""
        ctx = CompilationContext()
        a_f = ctx.resolve("f", "A")
        b_f = ctx.resolve("f", "B")
        assert a_f != b_f
        assert ctx.resolve(sym("f"), sym("A")) == a_f

    def test_field_scope_does_not_collide_with_type_names(self):
        """A type named 'A-f' is not field f of A."""
        ctx = CompilationContext()
        assert ctx.resolve("A-f") != ctx.resolve("f", "A")

    def test_params_scoped_by_type_and_field(self):
        """Param identities include both owners."""
        ctx = CompilationContext()
        p1 = ctx.resolve("p", "A", "f")
        p2 = ctx.resolve("p", "A", "g")
        p3 = ctx.resolve("p", "B", "f")
        assert len({p1, p2, p3}) == 3
        assert ("A", "f", "p") in ctx

    def test_undeclared_tracks_references_only(self):
        """Symbols resolved but never declared are reported."""
        ctx = CompilationContext()
        ctx.declare("A")
        ctx.resolve("B")
        ctx.resolve("A")
        assert ctx.undeclared() == {("B",): -2}
        assert ctx.is_declared(-1)
        assert not ctx.is_declared(-2)

    def test_declare_after_reference_keeps_identity(self):
        """A forward reference and the later declaration agree."""
        ctx = CompilationContext()
        ref = ctx.resolve("B")
        assert ctx.declare("B") == ref
        assert ctx.undeclared() == {}

    def test_contexts_are_independent(self):
        """A new context starts from -1 again."""
        first = CompilationContext()
        first.resolve("A")
        first.resolve("B")
        second = CompilationContext()
        assert second.resolve("B") == -1
        assert first.resolve("B") == -2

    def test_strict_flag(self):
        """The malformed-shape policy travels with the context."""
        assert CompilationContext().strict is False
        assert CompilationContext(strict=True).strict is True
