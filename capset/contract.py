"""
contract.py

capset Contract Primitive.

A Contract is a declarative, immutable capability set:
- A name
- An ordered list of property declarations (name, value type, accessor shape)
- An ordered list of parent contracts it extends

Contracts carry no behaviour. Anything that is not an accessor-shaped
property is recorded in ``members`` so the validator can reject it.

Design Invariants:
- Immutable after creation
- Identity is a content hash (same definition = same contract_id)
- Parents must exist before the child, so the lattice is always a DAG
- Deterministic serialization (sorted keys)
"""

import datetime
import decimal
import hashlib
import json
import keyword
import typing
import uuid
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from capset.errors import (
    ContractImmutabilityError,
    ContractValidationError,
    DuplicatePropertyError,
    InvalidParentError,
    UnknownPropertyError,
)
from capset.mutability import (
    Accessor,
    DEFAULT_ACCESSORS,
    MUTABLE_ACCESSORS,
    Mutability,
    classify_accessors,
    normalize_accessors,
)
from capset.resolver import ResolvedPropertySet, resolve

# Save reference to built-in type before any shadowing
_builtin_type = type


# =============================================================================
# Value Types
# =============================================================================

BUILTIN_TYPE_TAGS: Dict[str, type] = {
    "int": int,
    "float": float,
    "decimal": decimal.Decimal,
    "bool": bool,
    "str": str,
    "bytes": bytes,
    "uuid": uuid.UUID,
    "datetime": datetime.datetime,
    "date": datetime.date,
    "any": object,
}

_TAGS_BY_TYPE: Dict[type, str] = {cls: tag for tag, cls in BUILTIN_TYPE_TAGS.items()}

# Registry of non-builtin classes seen in declarations, so that
# from_dict can map a qualified tag back to its class
_CUSTOM_TYPES: Dict[str, type] = {}


def type_tag(value_type: type) -> str:
    """Return the symbolic tag for a value type."""
    tag = _TAGS_BY_TYPE.get(value_type)
    if tag is not None:
        return tag
    return f"{value_type.__module__}.{value_type.__qualname__}"


def resolve_value_type(value: Any) -> type:
    """
    Turn a declared type (class or tag string) into a class.

    Raises:
        ContractValidationError: unknown tag or not a class
    """
    if isinstance(value, str):
        cls = BUILTIN_TYPE_TAGS.get(value.lower()) or _CUSTOM_TYPES.get(value)
        if cls is None:
            raise ContractValidationError(
                f"Unknown type tag {value!r}, expected a class or one of: "
                f"{', '.join(sorted(BUILTIN_TYPE_TAGS))}",
                field_name="type",
                error_code="C005",
            )
        return cls
    if not isinstance(value, type):
        raise ContractValidationError(
            f"type must be a class or a type tag, got {value!r}",
            field_name="type",
            error_code="C005",
        )
    if value not in _TAGS_BY_TYPE:
        tag = type_tag(value)
        known = _CUSTOM_TYPES.setdefault(tag, value)
        if known is not value:
            # Contract identity hashes the tag, so it must name one class
            raise ContractValidationError(
                f"Ambiguous type tag {tag!r}: another class with the same "
                "qualified name is already in use",
                field_name="type",
                error_code="C005",
            )
    return value


_ZERO_DEFAULT_TYPES = (int, float, decimal.Decimal, bool, complex)
_WIDENING_TARGETS = (float, decimal.Decimal, complex)


def type_default(value_type: type) -> Any:
    """
    The value an unpopulated slot of this type holds.

    Numeric types default to zero, everything else to None.
    """
    if value_type in _ZERO_DEFAULT_TYPES:
        return value_type()
    return None


def conforms(value: Any, value_type: type) -> Tuple[bool, Any]:
    """
    Check a value against a declared type.

    Returns:
        (ok, value) where value may be widened (int -> float/Decimal/complex)
    """
    if value is None or value_type is object:
        return True, value
    if isinstance(value, value_type):
        return True, value
    if (
        value_type in _WIDENING_TARGETS
        and isinstance(value, int)
        and not isinstance(value, bool)
    ):
        return True, value_type(value)
    return False, value


# =============================================================================
# Visibility
# =============================================================================

class Visibility(Enum):
    """Who may populate a property."""
    PUBLIC = "public"
    RESTRICTED = "restricted"

    @classmethod
    def from_string(cls, value: str) -> "Visibility":
        """Convert string to Visibility."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ContractValidationError(
                f"Unknown visibility {value!r}",
                field_name="visibility",
                error_code="C006",
            )


# =============================================================================
# Helper Functions
# =============================================================================

def _validate_name(value: Any, field_name: str) -> str:
    """Validate a contract or property name."""
    if not isinstance(value, str):
        raise ContractValidationError(
            f"{field_name} must be a string, got {_builtin_type(value).__name__}",
            field_name=field_name,
            error_code="C001",
        )
    if not value.isidentifier() or keyword.iskeyword(value):
        raise ContractValidationError(
            f"{field_name} must be a valid identifier, got {value!r}",
            field_name=field_name,
            error_code="C001",
        )
    if value.startswith("_"):
        raise ContractValidationError(
            f"{field_name} cannot start with an underscore, got {value!r}",
            field_name=field_name,
            error_code="C001",
        )
    return value


def _compute_hash(data: Dict[str, Any]) -> str:
    """Compute SHA-256 hash of JSON-serialized data."""
    json_str = json.dumps(data, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(json_str.encode('utf-8')).hexdigest()


# =============================================================================
# PropertyDeclaration
# =============================================================================

class PropertyDeclaration:
    """
    A single named, typed property of a contract.

    The accessor shape is kept exactly as declared; the mutability is
    derived from it and may be None for an unsupported shape.

    Attributes:
        name: Property name (identifier, no leading underscore)
        value_type: Python class of the value
        type_tag: Symbolic name of value_type
        accessors: Normalized accessor shape
        visibility: PUBLIC or RESTRICTED
        mutability: Classified mutability, or None if the shape is invalid
    """

    __slots__ = ('_name', '_value_type', '_accessors', '_visibility', '_frozen')

    def __init__(
        self,
        *,
        name: str,
        type: Any,
        accessors: Optional[Iterable[Accessor | str]] = None,
        mutable: Optional[bool] = None,
        visibility: str | Visibility = Visibility.PUBLIC,
    ):
        name = _validate_name(name, "name")
        value_type = resolve_value_type(type)

        if accessors is not None and mutable is not None:
            raise ContractValidationError(
                f"Property '{name}': give either accessors or mutable, not both",
                field_name="accessors",
                error_code="C004",
            )
        if accessors is None:
            accessors = MUTABLE_ACCESSORS if mutable else DEFAULT_ACCESSORS
        shape = normalize_accessors(accessors)

        if isinstance(visibility, str):
            visibility = Visibility.from_string(visibility)
        elif not isinstance(visibility, Visibility):
            raise ContractValidationError(
                f"visibility must be string or Visibility, got {_builtin_type(visibility).__name__}",
                field_name="visibility",
                error_code="C006",
            )

        object.__setattr__(self, '_name', name)
        object.__setattr__(self, '_value_type', value_type)
        object.__setattr__(self, '_accessors', shape)
        object.__setattr__(self, '_visibility', visibility)
        object.__setattr__(self, '_frozen', True)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, '_frozen', False):
            raise ContractImmutabilityError(f"set attribute '{name}'")
        object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        if getattr(self, '_frozen', False):
            raise ContractImmutabilityError(f"delete attribute '{name}'")
        object.__delattr__(self, name)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def value_type(self) -> type:
        return self._value_type

    @property
    def type_tag(self) -> str:
        return type_tag(self._value_type)

    @property
    def accessors(self) -> Tuple[Accessor, ...]:
        return self._accessors

    @property
    def visibility(self) -> Visibility:
        return self._visibility

    @property
    def restricted(self) -> bool:
        return self._visibility is Visibility.RESTRICTED

    @property
    def mutability(self) -> Optional[Mutability]:
        return classify_accessors(self._accessors)

    @property
    def mutable(self) -> bool:
        return self.mutability is Mutability.MUTABLE

    def is_compatible_with(self, other: "PropertyDeclaration") -> bool:
        """Same name may be merged only when type, shape and visibility agree."""
        return (
            self._value_type is other._value_type
            and self._accessors == other._accessors
            and self._visibility is other._visibility
        )

    # -------------------------------------------------------------------------
    # Comparison Methods
    # -------------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PropertyDeclaration):
            return NotImplemented
        return (
            self._name == other._name
            and self._value_type is other._value_type
            and self._accessors == other._accessors
            and self._visibility is other._visibility
        )

    def __hash__(self) -> int:
        return hash((self._name, self._value_type, self._accessors, self._visibility))

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary."""
        return {
            "accessors": [a.value for a in self._accessors],
            "name": self._name,
            "type": self.type_tag,
            "visibility": self._visibility.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PropertyDeclaration":
        """Construct from a dictionary."""
        if "name" not in data or "type" not in data:
            raise ContractValidationError(
                "property dict requires 'name' and 'type'",
                field_name="properties",
                error_code="C007",
            )
        return cls(
            name=data["name"],
            type=data["type"],
            accessors=data.get("accessors"),
            mutable=data.get("mutable"),
            visibility=data.get("visibility", Visibility.PUBLIC),
        )

    # -------------------------------------------------------------------------
    # String Representations
    # -------------------------------------------------------------------------

    def __repr__(self) -> str:
        shape = "; ".join(a.value for a in self._accessors)
        extra = ", restricted" if self.restricted else ""
        return f"PropertyDeclaration({self._name!r}: {self.type_tag} {{ {shape} }}{extra})"

    def __str__(self) -> str:
        marker = "~" if self.mutable else ""
        return f"{marker}{self._name}: {self.type_tag}"


def prop(
    name: str,
    type: Any,
    *,
    mutable: bool = False,
    restricted: bool = False,
) -> PropertyDeclaration:
    """Shorthand for the common property shapes."""
    return PropertyDeclaration(
        name=name,
        type=type,
        mutable=mutable,
        visibility=Visibility.RESTRICTED if restricted else Visibility.PUBLIC,
    )


# =============================================================================
# PropertyRef
# =============================================================================

class PropertyRef:
    """
    A typed reference to one resolved property of a contract.

    Obtained from ``contract.ref("name")`` or ``contract.refs.name``.
    Templates accept these in place of raw names.
    """

    __slots__ = ('_contract', '_declaration', '_frozen')

    def __init__(self, contract: "Contract", declaration: PropertyDeclaration):
        object.__setattr__(self, '_contract', contract)
        object.__setattr__(self, '_declaration', declaration)
        object.__setattr__(self, '_frozen', True)

    def __setattr__(self, name: str, value: Any) -> None:
        raise ContractImmutabilityError(f"set attribute '{name}'")

    @property
    def contract(self) -> "Contract":
        return self._contract

    @property
    def declaration(self) -> PropertyDeclaration:
        return self._declaration

    @property
    def name(self) -> str:
        return self._declaration.name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PropertyRef):
            return NotImplemented
        return self._contract == other._contract and self._declaration == other._declaration

    def __hash__(self) -> int:
        return hash((self._contract.contract_id, self._declaration))

    def __repr__(self) -> str:
        return f"PropertyRef({self._contract.name}.{self.name})"


class _RefNamespace:
    """Attribute-style access to a contract's property refs."""

    __slots__ = ('_contract',)

    def __init__(self, contract: "Contract"):
        object.__setattr__(self, '_contract', contract)

    def __getattr__(self, name: str) -> PropertyRef:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._contract.ref(name)

    def __dir__(self) -> List[str]:
        return list(self._contract.resolved().names)


# =============================================================================
# Contract
# =============================================================================

class Contract:
    """
    A named, composable capability set of typed properties.

    Attributes:
        contract_id: Content-based hash (computed, not user-provided)
        name: Contract name
        properties: Own declarations, in declaration order
        parents: Parent contracts, in declaration order
        members: Names of non-accessor members (rejected by the validator)
    """

    __slots__ = (
        '_contract_id',
        '_name',
        '_properties',
        '_parents',
        '_members',
        '_lineage',
        '_ancestors',
        '_frozen',
    )

    def __init__(
        self,
        *,
        name: str,
        properties: Optional[Iterable[PropertyDeclaration | Dict[str, Any]]] = None,
        parents: Optional[Iterable["Contract"]] = None,
        members: Optional[Mapping[str, Any]] = None,
    ):
        name = _validate_name(name, "name")

        # Parse and validate own declarations
        parsed: List[PropertyDeclaration] = []
        seen_names = set()
        for declaration in properties or ():
            if isinstance(declaration, dict):
                declaration = PropertyDeclaration.from_dict(declaration)
            elif not isinstance(declaration, PropertyDeclaration):
                raise ContractValidationError(
                    f"properties must be PropertyDeclaration or dict, "
                    f"got {_builtin_type(declaration).__name__}",
                    field_name="properties",
                    error_code="C007",
                )
            if declaration.name in seen_names:
                raise DuplicatePropertyError(name, declaration.name)
            seen_names.add(declaration.name)
            parsed.append(declaration)

        # Validate parents
        parent_list: List[Contract] = []
        parent_ids = set()
        for parent in parents or ():
            if not isinstance(parent, Contract):
                raise InvalidParentError(
                    name, f"expected Contract, got {_builtin_type(parent).__name__}"
                )
            if parent.contract_id in parent_ids:
                raise InvalidParentError(name, f"'{parent.name}' is listed more than once")
            parent_ids.add(parent.contract_id)
            parent_list.append(parent)

        # Members are recorded by name only
        if members is not None and not isinstance(members, Mapping):
            raise ContractValidationError(
                f"members must be a mapping, got {_builtin_type(members).__name__}",
                field_name="members",
                error_code="C008",
            )
        member_names = tuple(sorted(members or ()))

        object.__setattr__(self, '_name', name)
        object.__setattr__(self, '_properties', tuple(parsed))
        object.__setattr__(self, '_parents', tuple(parent_list))
        object.__setattr__(self, '_members', member_names)
        object.__setattr__(self, '_contract_id', self._compute_contract_id())

        ancestors = self._linearize()
        object.__setattr__(self, '_ancestors', ancestors)
        object.__setattr__(
            self,
            '_lineage',
            frozenset([self._contract_id, *(a.contract_id for a in ancestors)]),
        )
        object.__setattr__(self, '_frozen', True)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, '_frozen', False):
            raise ContractImmutabilityError(f"set attribute '{name}'")
        object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        if getattr(self, '_frozen', False):
            raise ContractImmutabilityError(f"delete attribute '{name}'")
        object.__delattr__(self, name)

    # -------------------------------------------------------------------------
    # Internal Helper Methods
    # -------------------------------------------------------------------------

    def _compute_contract_id(self) -> str:
        """Compute content-based hash for contract_id."""
        data = {
            "members": list(self._members),
            "name": self._name,
            "parents": [p.contract_id for p in self._parents],
            "properties": [d.to_dict() for d in self._properties],
        }
        return _compute_hash(data)

    def _linearize(self) -> Tuple["Contract", ...]:
        """
        Depth-first post-order over parents in declaration order.

        A parent follows its own ancestors; every ancestor appears once.
        """
        ordered: List[Contract] = []
        seen = set()

        def visit(contract: "Contract") -> None:
            for parent in contract._parents:
                if parent._contract_id in seen:
                    continue
                seen.add(parent._contract_id)
                visit(parent)
                ordered.append(parent)

        visit(self)
        return tuple(ordered)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def contract_id(self) -> str:
        """Content-based hash of this contract."""
        return self._contract_id

    @property
    def name(self) -> str:
        return self._name

    @property
    def properties(self) -> Tuple[PropertyDeclaration, ...]:
        """Own declarations only."""
        return self._properties

    @property
    def parents(self) -> Tuple["Contract", ...]:
        return self._parents

    @property
    def members(self) -> Tuple[str, ...]:
        return self._members

    @property
    def lineage(self) -> FrozenSet[str]:
        """Ids of this contract and all of its ancestors."""
        return self._lineage

    @property
    def refs(self) -> _RefNamespace:
        return _RefNamespace(self)

    # -------------------------------------------------------------------------
    # Lattice Queries
    # -------------------------------------------------------------------------

    def ancestors(self) -> Tuple["Contract", ...]:
        """All transitive parents in linearized order."""
        return self._ancestors

    def extends(self, other: "Contract") -> bool:
        """True if other is this contract or one of its ancestors."""
        return other._contract_id in self._lineage

    def resolved(self) -> ResolvedPropertySet:
        """Shorthand for resolver.resolve(self)."""
        return resolve(self)

    def ref(self, name: str) -> PropertyRef:
        """
        Reference a resolved property by name.

        Raises:
            UnknownPropertyError: name is not a resolved property
        """
        resolved = resolve(self)
        declaration = resolved.get(name)
        if declaration is None:
            raise UnknownPropertyError(self._name, name, list(resolved.names))
        return PropertyRef(self, declaration)

    def __instancecheck__(self, instance: Any) -> bool:
        contracts = getattr(_builtin_type(instance), "__contracts__", None)
        return contracts is not None and self._contract_id in contracts

    # -------------------------------------------------------------------------
    # Comparison Methods
    # -------------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Contract):
            return NotImplemented
        return self._contract_id == other._contract_id

    def __hash__(self) -> int:
        return hash(self._contract_id)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary, parents embedded."""
        result: Dict[str, Any] = {
            "contract_id": self._contract_id,
            "name": self._name,
            "parents": [p.to_dict() for p in self._parents],
            "properties": [d.to_dict() for d in self._properties],
        }
        if self._members:
            result["members"] = list(self._members)
        return result

    def to_json(self, *, indent: Optional[int] = None) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Contract":
        """
        Construct from a dictionary.

        Member objects cannot be serialized, so members round-trip as
        names mapped to None.
        """
        if "name" not in data:
            raise ContractValidationError(
                "contract dict requires 'name'",
                field_name="name",
                error_code="C001",
            )
        return cls(
            name=data["name"],
            properties=data.get("properties"),
            parents=[cls.from_dict(p) for p in data.get("parents", ())],
            members={m: None for m in data.get("members", ())},
        )

    @classmethod
    def from_json(cls, json_str: str) -> "Contract":
        """Construct from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def from_class(cls, source: type) -> "Contract":
        """
        Build a contract from a plain class used as an interface.

        - ``@property`` with only a getter: get; init
        - ``@property`` with getter and setter: get; set
        - ``@property`` with only a setter: set (rejected by the validator)
        - annotated name without a property: get; init
        - names listed in ``__restricted__``: restricted visibility
        - any other function: recorded as an unsupported member
        - base classes (except object) become parents
        """
        if not isinstance(source, type):
            raise ContractValidationError(
                f"from_class expects a class, got {_builtin_type(source).__name__}",
                field_name="source",
                error_code="C009",
            )

        namespace = vars(source)
        annotations = _class_annotations(source)
        restricted = set(namespace.get("__restricted__", ()))

        declarations: List[PropertyDeclaration] = []
        members: Dict[str, Any] = {}

        def visibility_of(name: str) -> Visibility:
            return Visibility.RESTRICTED if name in restricted else Visibility.PUBLIC

        for name, annotation in annotations.items():
            if isinstance(namespace.get(name), property):
                continue
            declarations.append(PropertyDeclaration(
                name=name,
                type=_annotation_type(annotation),
                visibility=visibility_of(name),
            ))

        for name, value in namespace.items():
            if name.startswith("__") and name.endswith("__"):
                continue
            if isinstance(value, property):
                shape: List[Accessor] = []
                if value.fget is not None:
                    shape.append(Accessor.GET)
                if value.fset is not None:
                    shape.append(Accessor.SET)
                elif value.fget is not None:
                    shape.append(Accessor.INIT)
                declarations.append(PropertyDeclaration(
                    name=name,
                    type=_property_type(value),
                    accessors=shape,
                    visibility=visibility_of(name),
                ))
            elif callable(value) or isinstance(value, (staticmethod, classmethod)):
                members[name] = value

        parents = [
            cls.from_class(base)
            for base in source.__bases__
            if base is not object and base.__module__ != "typing"
        ]
        return cls(
            name=source.__name__,
            properties=declarations,
            parents=parents,
            members=members,
        )

    # -------------------------------------------------------------------------
    # String Representations
    # -------------------------------------------------------------------------

    def __repr__(self) -> str:
        parents = f", parents=[{', '.join(p.name for p in self._parents)}]" if self._parents else ""
        return f"Contract({self._name}, id={self._contract_id[:12]}...{parents})"

    def __str__(self) -> str:
        lines = [f"Contract {self._name}"]
        if self._parents:
            lines[0] += f" extends {', '.join(p.name for p in self._parents)}"
        for declaration in self._properties:
            lines.append(f"  {declaration}")
        return "\n".join(lines)


# =============================================================================
# Class Introspection Helpers
# =============================================================================

def _class_annotations(source: type) -> Dict[str, Any]:
    """Own annotations of a class, evaluated when possible."""
    raw = dict(source.__dict__.get("__annotations__", {}))
    try:
        hints = typing.get_type_hints(source)
    except (NameError, TypeError):
        return raw
    return {name: hints.get(name, value) for name, value in raw.items()}


def _annotation_type(annotation: Any) -> Any:
    """Map an annotation to something resolve_value_type accepts."""
    if isinstance(annotation, (type, str)):
        return annotation
    # Optional[X] and other unions collapse to their first concrete class
    for arg in typing.get_args(annotation):
        if isinstance(arg, type) and arg is not _builtin_type(None):
            return arg
    return object


def _property_type(value: property) -> Any:
    """Value type of a property from its getter's (or setter's) annotations."""
    if value.fget is not None:
        accessor: Callable[..., Any] = value.fget
        key = "return"
    else:
        accessor = value.fset
        key = None
    try:
        hints = typing.get_type_hints(accessor)
    except (NameError, TypeError):
        hints = dict(getattr(accessor, "__annotations__", {}))
    if key is None:
        hints.pop("return", None)
        annotation = next(iter(hints.values()), object)
    else:
        annotation = hints.get(key, object)
    return _annotation_type(annotation)
