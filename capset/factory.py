"""
factory.py

Construction entry points.

    Product = Contract(name="Product", parents=[Name, Priced])

    empty = create_instance(Product)
    widget = create_instance(Product, lambda t: t
        .set(lambda m: m.id, 2)
        .set(lambda m: m.name, "Widget")
        .set(lambda m: m.price, Decimal("9.99")))

    as_product, as_base = create_instance_with_base(Product, Base)
    assert as_product is as_base

All types come from the process-wide TypeCache unless a cache is passed.
"""

from typing import Any, Callable, Optional, Tuple, Union

from capset.cache import TypeCache, default_cache
from capset.contract import Contract
from capset.errors import ConstructorSignatureMismatchError
from capset.template import Template
from capset.validator import is_valid

Initializer = Union[Template, Callable[[Template], Any], None]


def _activate(
    contract: Contract,
    target_type: type,
    init: Initializer,
    cache: TypeCache,
) -> Any:
    if init is None:
        return target_type()
    if isinstance(init, Template):
        if init.contract != contract:
            raise ConstructorSignatureMismatchError(
                target_type.__name__,
                f"template is for {init.contract.name}, not {contract.name}; cast it first",
            )
        return init.activate(target_type)
    if callable(init):
        template = Template(contract, cache=cache)
        init(template)
        return template.activate(target_type)
    raise TypeError(
        f"init must be a Template or a callable taking a Template, got {type(init).__name__}"
    )


def create_instance(
    contract: Contract,
    init: Initializer = None,
    *,
    cache: Optional[TypeCache] = None,
) -> Any:
    """
    Create an instance satisfying a contract.

    Args:
        contract: The contract to instantiate
        init: None for the empty constructor, a Template, or a builder
            callable that receives a fresh Template and sets values on it
        cache: TypeCache to use instead of the process-wide one
    """
    cache = cache if cache is not None else default_cache()
    return _activate(contract, cache.get_or_synthesize(contract), init, cache)


def create_instance_with_base(
    contract: Contract,
    base_type: type,
    init: Initializer = None,
    *,
    cache: Optional[TypeCache] = None,
) -> Tuple[Any, Any]:
    """
    Create an instance that satisfies a contract and extends base_type.

    Returns:
        (as_contract, as_base): the same object, viewed both ways
    """
    cache = cache if cache is not None else default_cache()
    instance = _activate(contract, cache.get_or_synthesize(contract, base_type), init, cache)
    return instance, instance


def clone(instance: Any, edit: Optional[Callable[[Template], Any]] = None) -> Any:
    """
    New instance of the same type with the same public values, optionally
    edited. Restricted properties start over at their defaults.
    """
    template = Template.snapshot(instance)
    if edit is not None:
        edit(template)
    return template.activate(type(instance))


def validate_contract(contract: Contract) -> bool:
    """True if the contract can be synthesized."""
    return is_valid(contract)
