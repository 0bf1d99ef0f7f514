"""
template.py

Template: type-checked staging values for a contract.

A Template collects prospective property values before an instance
exists, so immutable properties can be populated through the full
constructor:

    template = Template(Product)
    template.set(Product.refs.id, 2).set(lambda m: m.name, "Widget")
    widget = template.activate()

Properties are addressed by reference, never by raw name:
- a PropertyRef (``contract.ref("id")`` / ``contract.refs.id``)
- a synthesized class attribute (``ProductType.id``)
- a selector callable (``lambda m: m.id``)

Templates are cheap, single-writer staging values; they are not
thread-safe.
"""

from typing import Any, Callable, Dict, Optional, Tuple

from capset.cache import TypeCache, default_cache
from capset.contract import Contract, PropertyDeclaration, PropertyRef, conforms, type_default
from capset.errors import (
    ConstructorSignatureMismatchError,
    InaccessiblePropertyError,
    PropertyTypeError,
    UnknownPropertyError,
)
from capset.synthesizer import is_synthesized
from capset.validator import validate


class _Unset:
    """Marker for a template value that was never set."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


class _Selected:
    __slots__ = ('name',)

    def __init__(self, name: str):
        self.name = name


class _SelectorProxy:
    """Stand-in model passed to selector callables; records the attribute read."""

    __slots__ = ()

    def __getattr__(self, name: str) -> _Selected:
        return _Selected(name)


_SELECTOR_PROXY = _SelectorProxy()


class Template:
    """
    Mutable staging map of public property values for one contract.

    Values carried in from a cast that the contract does not declare are
    kept in an overflow map, so casting back to a contract that declares
    them restores them unchanged.
    """

    __slots__ = ('_contract', '_resolved', '_values', '_overflow', '_cache')

    def __init__(
        self,
        contract: Contract,
        source: Any = None,
        *,
        cache: Optional[TypeCache] = None,
    ):
        if not isinstance(contract, Contract):
            raise TypeError(f"expected Contract, got {type(contract).__name__}")
        self._contract = contract
        self._resolved = validate(contract)
        self._values: Dict[str, Any] = {d.name: UNSET for d in self._resolved.public}
        self._overflow: Dict[str, Any] = {}
        self._cache = cache

        if source is not None:
            if not isinstance(source, contract):
                raise TypeError(
                    f"cannot snapshot {type(source).__name__}: it does not satisfy {contract.name}"
                )
            # None in a slot whose type-default is None was never populated
            for declaration in self._resolved.public:
                value = getattr(source, declaration.name)
                if value is None and type_default(declaration.value_type) is None:
                    continue
                self._values[declaration.name] = value

    @classmethod
    def snapshot(cls, instance: Any, *, cache: Optional[TypeCache] = None) -> "Template":
        """
        Template holding the public values of a synthesized instance.

        Properties holding None are left unset, so try_get() reports them
        as not found.
        """
        if not is_synthesized(instance):
            raise TypeError(f"{type(instance).__name__} is not a synthesized type")
        return cls(type(instance).__contract__, instance, cache=cache)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def contract(self) -> Contract:
        return self._contract

    @property
    def overflow(self) -> Dict[str, Any]:
        """Values carried from casts that this contract does not declare."""
        return dict(self._overflow)

    # -------------------------------------------------------------------------
    # Reference Resolution
    # -------------------------------------------------------------------------

    def _declaration_for(self, ref: Any) -> PropertyDeclaration:
        if isinstance(ref, PropertyRef):
            if not (self._contract.extends(ref.contract) or ref.contract.extends(self._contract)):
                raise UnknownPropertyError(
                    self._contract.name,
                    f"{ref.contract.name}.{ref.name}",
                )
            name = ref.name
        elif isinstance(ref, str):
            raise TypeError(
                f"use a property reference such as {self._contract.name}.refs.{ref}, "
                "not a raw name"
            )
        elif callable(ref):
            selected = ref(_SELECTOR_PROXY)
            if not isinstance(selected, _Selected):
                raise TypeError("a selector must return a single property access, e.g. lambda m: m.name")
            name = selected.name
        else:
            raise TypeError(f"expected a property reference, got {type(ref).__name__}")

        declaration = self._resolved.get(name)
        if declaration is None:
            raise UnknownPropertyError(self._contract.name, name, list(self._values))
        if declaration.restricted:
            raise InaccessiblePropertyError(self._contract.name, name)
        return declaration

    # -------------------------------------------------------------------------
    # Get / Set
    # -------------------------------------------------------------------------

    def get(self, ref: Any) -> Any:
        """Staged value, or the type-default when unset."""
        declaration = self._declaration_for(ref)
        value = self._values[declaration.name]
        if value is UNSET:
            return type_default(declaration.value_type)
        return value

    def try_get(self, ref: Any) -> Tuple[Any, bool]:
        """(value, found); found is False when the value was never set."""
        declaration = self._declaration_for(ref)
        value = self._values[declaration.name]
        if value is UNSET:
            return type_default(declaration.value_type), False
        return value, True

    def is_set(self, ref: Any) -> bool:
        return self._values[self._declaration_for(ref).name] is not UNSET

    def set(self, ref: Any, value: Any) -> "Template":
        """
        Stage a value.

        Raises:
            UnknownPropertyError: the contract has no such property
            InaccessiblePropertyError: the property is restricted
            PropertyTypeError: the value does not conform to the property type
        """
        declaration = self._declaration_for(ref)
        ok, value = conforms(value, declaration.value_type)
        if not ok:
            raise PropertyTypeError(
                self._contract.name, declaration.name,
                declaration.type_tag, type(value).__name__,
            )
        self._values[declaration.name] = value
        return self

    def unset(self, ref: Any) -> "Template":
        self._values[self._declaration_for(ref).name] = UNSET
        return self

    def values(self) -> Dict[str, Any]:
        """Values that have been set, in resolved order."""
        return {n: v for n, v in self._values.items() if v is not UNSET}

    def copy(self) -> "Template":
        duplicate = Template(self._contract, cache=self._cache)
        duplicate._values.update(self._values)
        duplicate._overflow.update(self._overflow)
        return duplicate

    # -------------------------------------------------------------------------
    # Cast
    # -------------------------------------------------------------------------

    def cast(self, contract: Contract) -> "Template":
        """
        Template for another contract carrying over every staged value.

        Shared properties keep their values. Everything else, including
        values that do not conform to the target's type, moves to the
        overflow map.
        """
        target = Template(contract, cache=self._cache)
        carried = dict(self._overflow)
        carried.update(self.values())
        for name, value in carried.items():
            declaration = target._resolved.get(name)
            if declaration is not None and name in target._values:
                ok, value_for_target = conforms(value, declaration.value_type)
                if ok:
                    target._values[name] = value_for_target
                    continue
            target._overflow[name] = value
        return target

    # -------------------------------------------------------------------------
    # Activation
    # -------------------------------------------------------------------------

    def arguments(self) -> Tuple[Any, ...]:
        """Full-constructor arguments in resolved order; unset slots pass type-defaults."""
        return tuple(
            type_default(d.value_type) if self._values[d.name] is UNSET else self._values[d.name]
            for d in self._resolved.public
        )

    def activate(self, target_type: Optional[type] = None) -> Any:
        """
        Construct an instance from the staged values.

        Args:
            target_type: Class to construct; defaults to the cached type of
                this template's contract

        Raises:
            ConstructorSignatureMismatchError: target_type's constructor does
                not match this template's resolved order or types
        """
        if target_type is None:
            cache = self._cache if self._cache is not None else default_cache()
            target_type = cache.get_or_synthesize(self._contract)

        expected = tuple((d.name, d.value_type) for d in self._resolved.public)
        properties = getattr(target_type, "__properties__", None)
        actual = tuple((d.name, d.value_type) for d in properties.public) if properties else None
        if actual != expected:
            raise ConstructorSignatureMismatchError(
                getattr(target_type, "__name__", repr(target_type)),
                f"constructor {_describe(actual)} does not match template for "
                f"{self._contract.name} {_describe(expected)}",
            )
        return target_type(*self.arguments())

    # -------------------------------------------------------------------------
    # String Representations
    # -------------------------------------------------------------------------

    def __repr__(self) -> str:
        values = ", ".join(f"{n}={v!r}" for n, v in self._values.items())
        return f"Template[{self._contract.name}]({values})"


def _describe(signature: Optional[Tuple[Tuple[str, type], ...]]) -> str:
    if signature is None:
        return "<not a synthesized type>"
    return "(" + ", ".join(f"{n}: {t.__name__}" for n, t in signature) + ")"


TemplateBuilder = Callable[[Template], Any]
