"""
validator.py

Contract Validator.

Checks, in order, over the contract and every ancestor:

1. Pure capability set: no members beyond accessor-shaped properties,
   no write-only or inconsistent accessor shapes, no restricted
   property that could never be populated   -> UnsupportedMemberError
2. Same-name declarations across the lattice must agree on value type,
   accessor shape and visibility            -> PropertyNameConflictError

Benign duplicates (same name, same shape) are not reported; the
resolver merges them by first occurrence.

Validation is advisory. The synthesizer runs it inline so an invalid
contract fails with a clear error instead of producing a broken type.
"""

from typing import Dict, List

from capset.composite import Composite
from capset.contract import Contract, PropertyDeclaration
from capset.errors import (
    PropertyNameConflictError,
    SynthesisError,
    UnsupportedMemberError,
)
from capset.mutability import Mutability, describe_shape
from capset.resolver import ResolvedPropertySet, iter_declarations, resolve

ValidationResult = Composite[ResolvedPropertySet, SynthesisError]


def collect_errors(contract: Contract) -> List[SynthesisError]:
    """
    Return every problem found in the contract lattice.

    Member errors come first, then name conflicts, each in resolution order.
    """
    errors: List[SynthesisError] = []

    # Step 1: members and accessor shapes
    for owner in (contract, *contract.ancestors()):
        for member in owner.members:
            errors.append(UnsupportedMemberError(
                owner.name, member, "contracts may only declare properties",
            ))
        for declaration in owner.properties:
            mutability = declaration.mutability
            if mutability is None:
                errors.append(UnsupportedMemberError(
                    owner.name,
                    declaration.name,
                    f"accessor shape '{describe_shape(declaration.accessors)}' "
                    "is write-only or inconsistent",
                ))
            elif declaration.restricted and mutability is not Mutability.MUTABLE:
                errors.append(UnsupportedMemberError(
                    owner.name,
                    declaration.name,
                    "restricted properties are not constructor parameters "
                    "and must be mutable",
                ))

    # Step 2: incompatible duplicates
    first_seen: Dict[str, PropertyDeclaration] = {}
    owners: Dict[str, List[str]] = {}
    conflicting: List[str] = []
    for owner, declaration in iter_declarations(contract):
        owners.setdefault(declaration.name, []).append(owner.name)
        first = first_seen.setdefault(declaration.name, declaration)
        if not first.is_compatible_with(declaration) and declaration.name not in conflicting:
            conflicting.append(declaration.name)
    for name in conflicting:
        errors.append(PropertyNameConflictError(contract.name, name, owners[name]))

    return errors


def validate(contract: Contract) -> ResolvedPropertySet:
    """
    Validate a contract and return its resolved properties.

    Raises:
        UnsupportedMemberError: behavioural member or invalid accessor shape
        PropertyNameConflictError: incompatible duplicate property names
    """
    if not isinstance(contract, Contract):
        raise TypeError(f"expected Contract, got {type(contract).__name__}")
    errors = collect_errors(contract)
    if errors:
        raise errors[0]
    return resolve(contract)


def is_valid(contract: Contract) -> bool:
    """True if the contract can be synthesized."""
    return not collect_errors(contract)


def try_validate(contract: Contract) -> ValidationResult:
    """Exceptionless validate(): the resolved set or the first error."""
    try:
        return ValidationResult(validate(contract))
    except SynthesisError as error:
        return ValidationResult(error)
