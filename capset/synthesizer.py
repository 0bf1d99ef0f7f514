"""
synthesizer.py

Type Synthesizer.

Builds a concrete class for a contract, optionally extending a base
class. The generated class has:

- one private slot per resolved property (``_cs_<name>``)
- a PropertySlot data descriptor per property (read accessor, plus the
  write accessor for mutable properties)
- an empty constructor: slots at type-default, then base ``__init__``
- a full constructor: one positional argument per public property in
  resolved order, stored directly in the slots, then base ``__init__``

A base class's parameterized constructor is never called; only its
empty one.

Use the cache (capset.cache) rather than calling synthesize() directly:
two calls here produce two distinct classes.
"""

import inspect
import logging
import types
from typing import Any, Callable, Dict, Optional, Tuple

from capset.contract import Contract, PropertyRef, conforms, type_default
from capset.errors import (
    ConstructorSignatureMismatchError,
    ImmutablePropertyError,
    IncompatibleBaseTypeError,
    PropertyTypeError,
)
from capset.resolver import ResolvedPropertySet
from capset.validator import validate

logger = logging.getLogger(__name__)

SLOT_PREFIX = "_cs_"

SYNTHESIZED_MODULE = "capset.synthesized"


# =============================================================================
# PropertySlot
# =============================================================================

class PropertySlot(PropertyRef):
    """
    Accessor pair for one property of a synthesized type.

    Reading returns the backing slot. Writing is allowed only for mutable
    properties and is type-checked. Also usable as a property reference
    in templates: ``template.set(Product.name, "Widget")``.
    """

    __slots__ = ('_slot', '_owner_name')

    def __init__(self, contract: Contract, declaration: Any):
        super().__init__(contract, declaration)
        object.__setattr__(self, '_slot', SLOT_PREFIX + declaration.name)
        object.__setattr__(self, '_owner_name', contract.name)

    def __set_name__(self, owner: type, name: str) -> None:
        object.__setattr__(self, '_owner_name', owner.__name__)

    @property
    def slot(self) -> str:
        return self._slot

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        return getattr(instance, self._slot)

    def __set__(self, instance: Any, value: Any) -> None:
        declaration = self._declaration
        if not declaration.mutable:
            raise ImmutablePropertyError(self._owner_name, declaration.name)
        ok, value = conforms(value, declaration.value_type)
        if not ok:
            raise PropertyTypeError(
                self._owner_name, declaration.name,
                declaration.type_tag, type(value).__name__,
            )
        object.__setattr__(instance, self._slot, value)

    def __delete__(self, instance: Any) -> None:
        raise ImmutablePropertyError(self._owner_name, self.name, operation="delete")

    def __repr__(self) -> str:
        return f"PropertySlot({self._owner_name}.{self.name})"


# =============================================================================
# Helper Functions
# =============================================================================

def _check_base_type(base_type: Any) -> None:
    """Reject base types whose empty constructor cannot be reached."""
    if not isinstance(base_type, type):
        raise IncompatibleBaseTypeError(base_type, "not a class")
    try:
        signature = inspect.signature(base_type)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures are checked at class creation
        return
    for parameter in signature.parameters.values():
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
            continue
        if parameter.default is parameter.empty:
            raise IncompatibleBaseTypeError(
                base_type,
                f"no empty constructor (parameter '{parameter.name}' has no default)",
            )


def _build_signature(resolved: ResolvedPropertySet) -> inspect.Signature:
    parameters = [inspect.Parameter("self", inspect.Parameter.POSITIONAL_ONLY)]
    for declaration in resolved.public:
        parameters.append(inspect.Parameter(
            declaration.name,
            inspect.Parameter.POSITIONAL_ONLY,
            annotation=declaration.value_type,
        ))
    return inspect.Signature(parameters)


def _make_init(
    type_name: str,
    resolved: ResolvedPropertySet,
    base_init: Optional[Callable[[Any], None]],
) -> Callable[..., None]:
    """Build the two-path constructor for a synthesized type."""
    defaults: Tuple[Tuple[str, Any], ...] = tuple(
        (SLOT_PREFIX + d.name, type_default(d.value_type)) for d in resolved
    )
    restricted_defaults = tuple(
        (SLOT_PREFIX + d.name, type_default(d.value_type)) for d in resolved if d.restricted
    )
    parameters = tuple(
        (SLOT_PREFIX + d.name, d.name, d.value_type, d.type_tag) for d in resolved.public
    )
    arity = len(parameters)

    def __init__(self, *args: Any) -> None:
        if not args:
            for slot, default in defaults:
                object.__setattr__(self, slot, default)
        elif len(args) == arity:
            for (slot, name, value_type, tag), value in zip(parameters, args):
                ok, value = conforms(value, value_type)
                if not ok:
                    raise ConstructorSignatureMismatchError(
                        type_name,
                        f"argument '{name}' expects {tag}, got {type(value).__name__}",
                    )
                object.__setattr__(self, slot, value)
            for slot, default in restricted_defaults:
                object.__setattr__(self, slot, default)
        else:
            raise ConstructorSignatureMismatchError(
                type_name,
                f"expected 0 or {arity} positional arguments, got {len(args)}",
            )
        if base_init is not None:
            base_init(self)

    __init__.__qualname__ = f"{type_name}.__init__"
    __init__.__signature__ = _build_signature(resolved)  # type: ignore[attr-defined]
    return __init__


def _repr(self: Any) -> str:
    names = type(self).__constructor__
    values = ", ".join(f"{n}={getattr(self, SLOT_PREFIX + n)!r}" for n in names)
    return f"{type(self).__name__}({values})"


# =============================================================================
# Synthesis
# =============================================================================

def synthesize(contract: Contract, base_type: Optional[type] = None) -> type:
    """
    Build a new class satisfying a contract.

    Args:
        contract: The contract to implement
        base_type: Optional class the result also extends

    Returns:
        A new class (not cached)

    Raises:
        UnsupportedMemberError: from validation
        PropertyNameConflictError: from validation
        IncompatibleBaseTypeError: base_type cannot be extended
    """
    resolved = validate(contract)
    if base_type is not None:
        _check_base_type(base_type)

    namespace: Dict[str, Any] = {
        "__slots__": tuple(SLOT_PREFIX + d.name for d in resolved),
        "__module__": SYNTHESIZED_MODULE,
        "__contract__": contract,
        "__base_type__": base_type,
        "__properties__": resolved,
        "__constructor__": resolved.constructor_names,
        "__contracts__": contract.lineage,
        "__repr__": _repr,
    }
    base_init = base_type.__init__ if base_type is not None else None
    if base_init is object.__init__:
        base_init = None
    namespace["__init__"] = _make_init(contract.name, resolved, base_init)
    for declaration in resolved:
        namespace[declaration.name] = PropertySlot(contract, declaration)

    bases = (base_type,) if base_type is not None else ()
    try:
        synthesized = types.new_class(
            contract.name, bases, exec_body=lambda ns: ns.update(namespace)
        )
    except TypeError as error:
        raise IncompatibleBaseTypeError(base_type, str(error)) from error

    abstract = getattr(synthesized, "__abstractmethods__", None)
    if abstract:
        raise IncompatibleBaseTypeError(
            base_type,
            f"abstract members not provided by the contract: {', '.join(sorted(abstract))}",
        )

    logger.debug(
        "Synthesized %s(%s)%s",
        contract.name,
        ", ".join(resolved.constructor_names),
        f" extending {base_type.__qualname__}" if base_type is not None else "",
    )
    return synthesized


# =============================================================================
# Instance Helpers
# =============================================================================

def is_synthesized(obj: Any) -> bool:
    """True for a synthesized class or an instance of one."""
    cls = obj if isinstance(obj, type) else type(obj)
    return isinstance(cls.__dict__.get("__properties__"), ResolvedPropertySet)


def _synthesized_type(instance: Any) -> type:
    cls = type(instance)
    if not is_synthesized(cls):
        raise TypeError(f"{cls.__name__} is not a synthesized type")
    return cls


def astuple(instance: Any) -> Tuple[Any, ...]:
    """Public property values in full-constructor order."""
    cls = _synthesized_type(instance)
    return tuple(getattr(instance, SLOT_PREFIX + n) for n in cls.__constructor__)


def asdict(instance: Any, *, include_restricted: bool = False) -> Dict[str, Any]:
    """Property values by name, in resolved order."""
    cls = _synthesized_type(instance)
    return {
        d.name: getattr(instance, SLOT_PREFIX + d.name)
        for d in cls.__properties__
        if include_restricted or not d.restricted
    }
