"""
errors.py

Error system for capset.

Every error carries a stable error code and formats as
``[<code>] <message>``. Errors that correspond to a built-in Python
failure category also derive from that built-in (``TypeError``,
``AttributeError``) so callers can catch them either way.

Error code ranges:
- C0xx: contract construction
- S0xx: synthesis, construction and staging
"""

from typing import Any, List, Optional, Sequence


class SynthesisError(Exception):
    """
    Base class for all capset errors.

    Raised synchronously to the caller that requested validation,
    synthesis or construction. Never swallowed internally.
    """

    def __init__(
        self,
        message: str,
        *,
        error_code: str = "S000",
    ):
        self.message = message
        self.error_code = error_code
        super().__init__(self.format())

    def format(self) -> str:
        """Format as human-readable error message."""
        return f"[{self.error_code}] {self.message}"


# =============================================================================
# Contract Errors (C0xx)
# =============================================================================

class ContractValidationError(SynthesisError):
    """Raised when a Contract or PropertyDeclaration cannot be constructed."""

    def __init__(
        self,
        message: str,
        *,
        field_name: Optional[str] = None,
        error_code: str = "C000",
    ):
        self.field_name = field_name
        super().__init__(message, error_code=error_code)

    def format(self) -> str:
        if self.field_name:
            return f"[{self.error_code}] Contract validation failed for '{self.field_name}': {self.message}"
        return f"[{self.error_code}] Contract validation failed: {self.message}"


class DuplicatePropertyError(ContractValidationError):
    """Raised when a contract declares the same property name twice."""

    def __init__(self, contract: str, name: str):
        self.contract = contract
        self.name = name
        super().__init__(
            f"Property '{name}' is declared more than once in contract '{contract}'",
            field_name="properties",
            error_code="C002",
        )


class InvalidParentError(ContractValidationError):
    """Raised when a parent is not a Contract or is listed twice."""

    def __init__(self, contract: str, reason: str):
        self.contract = contract
        self.reason = reason
        super().__init__(
            f"Invalid parent for contract '{contract}': {reason}",
            field_name="parents",
            error_code="C003",
        )


class ContractImmutabilityError(Exception):
    """Raised when attempting to mutate a contract after creation."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: Contract is immutable after creation"
        )


# =============================================================================
# Validation Errors (S001-S002)
# =============================================================================

class UnsupportedMemberError(SynthesisError):
    """S001: A contract declares something other than accessor-shaped properties."""

    def __init__(self, contract: str, member: str, reason: str):
        self.contract = contract
        self.member = member
        self.reason = reason
        super().__init__(
            f"Contract '{contract}' has unsupported member '{member}': {reason}",
            error_code="S001",
        )


class PropertyNameConflictError(SynthesisError):
    """S002: The same property name is declared with incompatible shapes."""

    def __init__(self, contract: str, name: str, declared_in: Sequence[str]):
        self.contract = contract
        self.name = name
        self.declared_in = list(declared_in)
        super().__init__(
            f"Property '{name}' of contract '{contract}' has incompatible "
            f"declarations in: {', '.join(self.declared_in)}",
            error_code="S002",
        )


# =============================================================================
# Synthesis and Construction Errors (S003-S009)
# =============================================================================

class IncompatibleBaseTypeError(SynthesisError, TypeError):
    """S003: The base type cannot be extended or has no reachable empty constructor."""

    def __init__(self, base_type: Any, reason: str):
        self.base_type = base_type
        self.reason = reason
        name = getattr(base_type, "__qualname__", repr(base_type))
        super().__init__(
            f"Cannot use '{name}' as base type: {reason}",
            error_code="S003",
        )


class InaccessiblePropertyError(SynthesisError):
    """S004: A restricted property was set through the public template surface."""

    def __init__(self, contract: str, name: str):
        self.contract = contract
        self.name = name
        super().__init__(
            f"{contract}.{name} is restricted and cannot be set by a template",
            error_code="S004",
        )


class ConstructorSignatureMismatchError(SynthesisError, TypeError):
    """S005: Construction arguments do not match the resolved constructor."""

    def __init__(self, type_name: str, reason: str):
        self.type_name = type_name
        self.reason = reason
        super().__init__(
            f"Cannot construct '{type_name}': {reason}",
            error_code="S005",
        )


class UnresolvableStateError(SynthesisError):
    """S006: A Composite was resolved before any variant was assigned."""

    def __init__(self, composite: str):
        self.composite = composite
        super().__init__(
            f"{composite} holds no variant and cannot be resolved",
            error_code="S006",
        )


class ImmutablePropertyError(SynthesisError, AttributeError):
    """S007: An immutable property was written after construction."""

    def __init__(self, type_name: str, name: str, operation: str = "set"):
        self.type_name = type_name
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {type_name}.{name}: property is fixed at construction",
            error_code="S007",
        )
        # AttributeError.__init__ resets name
        self.name = name


class UnknownPropertyError(SynthesisError, AttributeError):
    """S008: A property reference does not belong to the contract."""

    def __init__(self, contract: str, name: str, available: Optional[List[str]] = None):
        self.contract = contract
        self.available = list(available or [])
        message = f"Contract '{contract}' has no property '{name}'"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message, error_code="S008")
        self.name = name


class PropertyTypeError(SynthesisError, TypeError):
    """S009: A value does not conform to the declared property type."""

    def __init__(self, contract: str, name: str, expected: str, actual: str):
        self.contract = contract
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{contract}.{name} expects {expected}, got {actual}",
            error_code="S009",
        )
