"""
test_composite.py

Unit tests for the Composite tagged result union.

Tests prove:
- Parameterization is validated and cached
- The right handler is dispatched
- Unresolved composites refuse to resolve
- as_() narrowing never raises for declared variants
- Immutability
"""

import pytest

from capset.composite import Composite
from capset.errors import UnresolvableStateError


Result = Composite[str, Exception]


def method_that_succeeds() -> Result:
    return Result("All went well")


def method_that_fails() -> Result:
    return Result(ValueError("Oh no!"))


# =============================================================================
# SECTION 1: Parameterization
# =============================================================================

class TestParameterization:
    """Test Composite[...] construction."""

    def test_cached(self):
        assert Composite[str, Exception] is Result
        assert Composite[int, str] is not Composite[str, int]

    def test_name(self):
        assert Result.__name__ == "Composite[str, Exception]"

    @pytest.mark.parametrize("params", [(int,), (int, str, bool, float)])
    def test_arity(self, params):
        with pytest.raises(TypeError):
            Composite[params]

    def test_variants_must_be_classes(self):
        with pytest.raises(TypeError):
            Composite[int, "str"]

    def test_variants_must_be_distinct(self):
        with pytest.raises(TypeError):
            Composite[int, int]

    def test_cannot_reparameterize(self):
        with pytest.raises(TypeError):
            Result[int, str]

    def test_bare_composite_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            Composite("value")

    def test_value_must_match_a_variant(self):
        with pytest.raises(TypeError):
            Result(42)


# =============================================================================
# SECTION 2: Dispatch
# =============================================================================

class TestResolve:
    """Test handler dispatch."""

    def test_success_branch(self):
        calls = []
        method_that_succeeds().resolve(
            lambda ok: calls.append(("ok", ok)),
            lambda error: calls.append(("error", error)),
        )
        assert calls == [("ok", "All went well")]

    def test_error_branch_matches_subclass(self):
        """A ValueError resolves to the Exception variant."""
        result = method_that_fails()

        assert result.variant == 1
        assert result.resolve(lambda ok: None, lambda error: str(error)) == "Oh no!"

    def test_three_variants(self):
        Triple = Composite[bool, int, str]
        handlers = (lambda b: "bool", lambda i: "int", lambda s: "str")

        assert Triple(True).resolve(*handlers) == "bool"
        assert Triple(4).resolve(*handlers) == "int"
        assert Triple("s").resolve(*handlers) == "str"

    def test_exact_type_preferred_over_subclass(self):
        """bool is an int, but Composite[int, bool] still picks bool for True."""
        assert Composite[int, bool](True).variant == 1

    def test_none_is_first_variant(self):
        result = Result(None)

        assert result.is_resolved
        assert result.variant == 0
        assert result.resolve(lambda ok: ("ok", ok), lambda error: "error") == ("ok", None)

    def test_handler_count_must_match(self):
        with pytest.raises(TypeError):
            method_that_succeeds().resolve(lambda ok: ok)

    def test_unresolved_raises(self):
        empty = Result()

        assert not empty.is_resolved
        assert empty.variant is None
        with pytest.raises(UnresolvableStateError) as exc_info:
            empty.resolve(lambda ok: ok, lambda error: error)
        assert exc_info.value.error_code == "S006"


# =============================================================================
# SECTION 3: Narrowing
# =============================================================================

class TestNarrowing:
    """Test as_()."""

    def test_held_variant(self):
        assert Composite[int, str](4).as_(int) == 4

    def test_other_variant_returns_default(self):
        holder = Composite[bool, int, str](4)

        assert holder.as_(str) is None
        assert holder.as_(bool) is False

    def test_unresolved_returns_default(self):
        assert Composite[int, str]().as_(int) == 0

    def test_undeclared_variant(self):
        with pytest.raises(TypeError):
            Composite[int, str](4).as_(float)


# =============================================================================
# SECTION 4: Value Semantics
# =============================================================================

class TestValueSemantics:
    """Test immutability, equality and repr."""

    def test_immutable(self):
        result = method_that_succeeds()
        with pytest.raises(AttributeError):
            result._value = "changed"
        with pytest.raises(AttributeError):
            del result._index

    def test_equality(self):
        assert Result("a") == Result("a")
        assert Result("a") != Result("b")
        assert Composite[int, str](1) != Composite[str, int](1)
        assert hash(Result("a")) == hash(Result("a"))

    def test_repr(self):
        assert repr(Result("a")) == "Composite[str, Exception]('a')"
        assert "unresolved" in repr(Result())
