"""
capset — Runtime Type Synthesis from Contracts
==============================================

capset builds concrete data classes at runtime from declarative
contracts: named capability sets of typed properties that compose by
multiple inheritance.

Stability Guarantees (v1.x)
---------------------------
All symbols exported from this module are part of the **public API**
and follow semantic versioning. Symbols prefixed with an underscore,
and the ``__*__`` attributes of synthesized classes other than
``__contract__``, ``__properties__`` and ``__constructor__``, are
internal.

What's Public
-------------
- **Contracts**: Contract, PropertyDeclaration, prop, PropertyRef, Visibility
- **Classification**: Accessor, Mutability, classify_accessors
- **Resolution/Validation**: resolve, ResolvedPropertySet, validate, is_valid
- **Synthesis**: TypeCache, default_cache, get_type, synthesize
- **Construction**: create_instance, create_instance_with_base, clone, Template
- **Results**: Composite
- **Exceptions**: everything in ``capset.errors``

Example
-------
::

    from decimal import Decimal
    from capset import Contract, prop, create_instance

    Article = Contract(name="Article", properties=[prop("id", int)])
    Name = Contract(name="Name", properties=[prop("name", str)], parents=[Article])
    Priced = Contract(name="Priced", properties=[prop("price", "decimal")], parents=[Article])
    Product = Contract(name="Product", parents=[Name, Priced])

    widget = create_instance(Product, lambda t: t
        .set(lambda m: m.id, 2)
        .set(lambda m: m.name, "Widget")
        .set(lambda m: m.price, Decimal("9.99")))
"""

__version__ = "1.0.0"

__all__ = [
    # --- Package Metadata ---
    "__version__",

    # --- Contract Model ---
    "Contract",
    "PropertyDeclaration",
    "PropertyRef",
    "Visibility",
    "prop",
    "BUILTIN_TYPE_TAGS",
    "type_default",

    # --- Mutability Classifier ---
    "Accessor",
    "Mutability",
    "classify_accessors",

    # --- Property Resolver ---
    "ResolvedPropertySet",
    "resolve",

    # --- Validator ---
    "validate",
    "is_valid",
    "try_validate",
    "collect_errors",

    # --- Type Synthesizer ---
    "synthesize",
    "PropertySlot",
    "astuple",
    "asdict",
    "is_synthesized",

    # --- Type Cache ---
    "TypeCache",
    "default_cache",
    "get_type",

    # --- Template ---
    "Template",
    "UNSET",

    # --- Construction ---
    "create_instance",
    "create_instance_with_base",
    "clone",
    "validate_contract",

    # --- Tagged Result Union ---
    "Composite",

    # --- Exceptions ---
    "SynthesisError",
    "ContractValidationError",
    "DuplicatePropertyError",
    "InvalidParentError",
    "ContractImmutabilityError",
    "UnsupportedMemberError",
    "PropertyNameConflictError",
    "IncompatibleBaseTypeError",
    "InaccessiblePropertyError",
    "ConstructorSignatureMismatchError",
    "UnresolvableStateError",
    "ImmutablePropertyError",
    "UnknownPropertyError",
    "PropertyTypeError",
]

from capset.cache import TypeCache, default_cache, get_type
from capset.composite import Composite
from capset.contract import (
    BUILTIN_TYPE_TAGS,
    Contract,
    PropertyDeclaration,
    PropertyRef,
    Visibility,
    prop,
    type_default,
)
from capset.errors import (
    ConstructorSignatureMismatchError,
    ContractImmutabilityError,
    ContractValidationError,
    DuplicatePropertyError,
    ImmutablePropertyError,
    InaccessiblePropertyError,
    IncompatibleBaseTypeError,
    InvalidParentError,
    PropertyNameConflictError,
    PropertyTypeError,
    SynthesisError,
    UnknownPropertyError,
    UnresolvableStateError,
    UnsupportedMemberError,
)
from capset.factory import (
    clone,
    create_instance,
    create_instance_with_base,
    validate_contract,
)
from capset.mutability import Accessor, Mutability, classify_accessors
from capset.resolver import ResolvedPropertySet, resolve
from capset.synthesizer import PropertySlot, asdict, astuple, is_synthesized, synthesize
from capset.template import UNSET, Template
from capset.validator import collect_errors, is_valid, try_validate, validate
