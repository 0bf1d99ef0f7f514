"""
mutability.py

Mutability Classifier.

A property's mutability is never declared directly. It is read off the
accessor shape the property exposes:

- read accessor only                      -> IMMUTABLE
- read accessor + construction-only write -> IMMUTABLE
- read accessor + free write              -> MUTABLE
- anything else (write-only, init + set)  -> invalid

Invalid shapes are not rejected here; the classifier reports ``None``
and the validator turns that into an UnsupportedMemberError.
"""

from enum import Enum
from typing import Iterable, Optional, Tuple

from capset.errors import ContractValidationError


class Accessor(Enum):
    """One accessor a property can expose."""
    GET = "get"
    INIT = "init"
    SET = "set"

    @classmethod
    def from_string(cls, value: str) -> "Accessor":
        """Convert string to Accessor."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ContractValidationError(
                f"Unknown accessor {value!r}, expected one of: "
                f"{', '.join(a.value for a in cls)}",
                field_name="accessors",
                error_code="C004",
            )


class Mutability(Enum):
    """Whether a property can be written after construction."""
    IMMUTABLE = "immutable"
    MUTABLE = "mutable"


# Canonical ordering used when normalizing a shape
_ACCESSOR_ORDER = {Accessor.GET: 0, Accessor.INIT: 1, Accessor.SET: 2}

_SHAPES = {
    (Accessor.GET,): Mutability.IMMUTABLE,
    (Accessor.GET, Accessor.INIT): Mutability.IMMUTABLE,
    (Accessor.GET, Accessor.SET): Mutability.MUTABLE,
}

DEFAULT_ACCESSORS: Tuple[Accessor, ...] = (Accessor.GET, Accessor.INIT)
MUTABLE_ACCESSORS: Tuple[Accessor, ...] = (Accessor.GET, Accessor.SET)


def normalize_accessors(accessors: Iterable["Accessor | str"]) -> Tuple[Accessor, ...]:
    """Parse, deduplicate and order an accessor shape."""
    if isinstance(accessors, (str, Accessor)):
        accessors = (accessors,)
    parsed = set()
    for accessor in accessors:
        if isinstance(accessor, str):
            accessor = Accessor.from_string(accessor)
        elif not isinstance(accessor, Accessor):
            raise ContractValidationError(
                f"accessors must be strings or Accessor, got {type(accessor).__name__}",
                field_name="accessors",
                error_code="C004",
            )
        parsed.add(accessor)
    return tuple(sorted(parsed, key=_ACCESSOR_ORDER.__getitem__))


def classify_accessors(accessors: Iterable["Accessor | str"]) -> Optional[Mutability]:
    """
    Classify an accessor shape.

    Returns:
        Mutability for a supported shape, None for a write-only or
        inconsistent one.
    """
    return _SHAPES.get(normalize_accessors(accessors))


def describe_shape(accessors: Iterable["Accessor | str"]) -> str:
    """Render a shape as ``get; init`` for error messages."""
    shape = normalize_accessors(accessors)
    if not shape:
        return "no accessors"
    return "; ".join(a.value for a in shape)
