"""
composite.py

Tagged Result Union.

A Composite holds exactly one of two or three declared variant types,
for exceptionless success/error style returns:

    Result = Composite[str, Exception]

    def load() -> Result:
        ...
        return Result("All went well")

    load().resolve(
        lambda ok: print(ok),
        lambda error: log(error),
    )

A default-constructed Composite holds nothing and refuses to resolve.

Design Invariants:
- Closed: the variant list is fixed by parameterization
- Exhaustive: resolve() requires one handler per variant
- Immutable after creation
"""

import threading
from typing import Any, Callable, Dict, Optional, Tuple

from capset.contract import type_default
from capset.errors import UnresolvableStateError

# Marker for "no variant assigned"
_UNRESOLVED = object()


class Composite:
    """
    Discriminated container for one of N variant values (N = 2 or 3).

    Parameterize before use: ``Composite[int, str]``. Parameterizations
    are cached, so ``Composite[int, str] is Composite[int, str]``.

    ``None`` is held as the first variant.
    """

    __slots__ = ('_index', '_value', '_frozen')

    _variants: Tuple[type, ...] = ()
    _specializations: Dict[Tuple[type, ...], type] = {}
    _specializations_lock = threading.Lock()

    def __class_getitem__(cls, params: Any) -> type:
        if cls._variants:
            raise TypeError(f"{cls.__name__} is already parameterized")
        if not isinstance(params, tuple):
            params = (params,)
        if not 2 <= len(params) <= 3:
            raise TypeError(f"Composite takes 2 or 3 variant types, got {len(params)}")
        for param in params:
            if not isinstance(param, type):
                raise TypeError(f"Composite variants must be classes, got {param!r}")
        if len(set(params)) != len(params):
            raise TypeError("Composite variant types must be distinct")

        specialized = cls._specializations.get(params)
        if specialized is not None:
            return specialized
        name = f"Composite[{', '.join(p.__name__ for p in params)}]"
        created = type(name, (cls,), {"__slots__": (), "_variants": params})
        with cls._specializations_lock:
            return cls._specializations.setdefault(params, created)

    def __init__(self, value: Any = _UNRESOLVED):
        if not self._variants:
            raise TypeError("Composite must be parameterized, e.g. Composite[str, Exception]")

        index: Optional[int] = None
        if value is None:
            index = 0
        elif value is not _UNRESOLVED:
            index = self._select_variant(value)
            if index is None:
                raise TypeError(
                    f"{type(self).__name__} cannot hold a value of type {type(value).__name__}"
                )
        else:
            value = None

        object.__setattr__(self, '_index', index)
        object.__setattr__(self, '_value', value)
        object.__setattr__(self, '_frozen', True)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, '_frozen', False):
            raise AttributeError(f"Composite is immutable, cannot set '{name}'")
        object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Composite is immutable, cannot delete '{name}'")

    @classmethod
    def _select_variant(cls, value: Any) -> Optional[int]:
        """Exact type match first, then the first variant the value is an instance of."""
        value_type = type(value)
        for index, variant in enumerate(cls._variants):
            if value_type is variant:
                return index
        for index, variant in enumerate(cls._variants):
            if isinstance(value, variant):
                return index
        return None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def variants(self) -> Tuple[type, ...]:
        return self._variants

    @property
    def variant(self) -> Optional[int]:
        """Index of the held variant, or None when unresolved."""
        return self._index

    @property
    def value(self) -> Any:
        return self._value

    @property
    def is_resolved(self) -> bool:
        return self._index is not None

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def resolve(self, *handlers: Callable[[Any], Any]) -> Any:
        """
        Call the handler matching the held variant.

        Args:
            handlers: One callable per variant, in variant order

        Returns:
            The handler's return value

        Raises:
            TypeError: handler count differs from the variant count
            UnresolvableStateError: no variant is held
        """
        if len(handlers) != len(self._variants):
            raise TypeError(
                f"{type(self).__name__}.resolve() takes {len(self._variants)} handlers, "
                f"got {len(handlers)}"
            )
        if self._index is None:
            raise UnresolvableStateError(type(self).__name__)
        return handlers[self._index](self._value)

    def as_(self, variant_type: type) -> Any:
        """
        Narrowing read.

        Returns the held value if it is the requested variant, otherwise the
        variant type's default. Never raises for a declared variant.
        """
        if variant_type not in self._variants:
            raise TypeError(f"{variant_type.__name__} is not a variant of {type(self).__name__}")
        if self._index is not None and self._variants[self._index] is variant_type:
            return self._value
        return type_default(variant_type)

    # -------------------------------------------------------------------------
    # Comparison Methods
    # -------------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Composite):
            return NotImplemented
        return (
            type(self) is type(other)
            and self._index == other._index
            and self._value == other._value
        )

    def __hash__(self) -> int:
        return hash((type(self), self._index, self._value))

    def __repr__(self) -> str:
        if self._index is None:
            return f"{type(self).__name__}(<unresolved>)"
        return f"{type(self).__name__}({self._value!r})"
