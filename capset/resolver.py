"""
resolver.py

Property Resolver.

Flattens a contract's parent lattice into one ordered, deduplicated
property list.

Traversal:
1. The contract's own declarations, in declaration order.
2. The own declarations of every ancestor, in linearized ancestor order
   (see Contract.ancestors: parents after their own ancestors, each
   ancestor once, at its first appearance).

The first occurrence of a name wins; later ones are skipped without
error. Rejecting incompatible duplicates is the validator's job.

Design Invariants:
- Pure function of the contract definition
- Order independent of call order and cache state
- Result immutable and memoized per contract id
"""

import threading
from typing import Any, Dict, Iterator, List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from capset.contract import Contract, PropertyDeclaration


class ResolvedPropertySet:
    """
    Ordered, name-unique sequence of PropertyDeclarations.

    Attributes:
        contract_name: Name of the contract this set was resolved for
        names: Property names in resolved order
        public: Declarations with public visibility, in resolved order
        constructor_names: Names of the full-constructor parameters
    """

    __slots__ = ('_contract_name', '_declarations', '_index', '_public', '_frozen')

    def __init__(self, contract_name: str, declarations: List["PropertyDeclaration"]):
        index: Dict[str, int] = {}
        for position, declaration in enumerate(declarations):
            if declaration.name in index:
                raise ValueError(f"Duplicate property '{declaration.name}' in resolved set")
            index[declaration.name] = position

        object.__setattr__(self, '_contract_name', contract_name)
        object.__setattr__(self, '_declarations', tuple(declarations))
        object.__setattr__(self, '_index', index)
        object.__setattr__(
            self, '_public', tuple(d for d in declarations if not d.restricted)
        )
        object.__setattr__(self, '_frozen', True)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, '_frozen', False):
            raise AttributeError(f"ResolvedPropertySet is immutable, cannot set '{name}'")
        object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"ResolvedPropertySet is immutable, cannot delete '{name}'")

    @property
    def contract_name(self) -> str:
        return self._contract_name

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(d.name for d in self._declarations)

    @property
    def public(self) -> Tuple["PropertyDeclaration", ...]:
        return self._public

    @property
    def constructor_names(self) -> Tuple[str, ...]:
        return tuple(d.name for d in self._public)

    def get(self, name: str) -> Optional["PropertyDeclaration"]:
        """Return the declaration for a name, or None."""
        position = self._index.get(name)
        if position is None:
            return None
        return self._declarations[position]

    def index(self, name: str) -> int:
        return self._index[name]

    def __len__(self) -> int:
        return len(self._declarations)

    def __iter__(self) -> Iterator["PropertyDeclaration"]:
        return iter(self._declarations)

    def __getitem__(self, position: int) -> "PropertyDeclaration":
        return self._declarations[position]

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResolvedPropertySet):
            return NotImplemented
        return self._declarations == other._declarations

    def __hash__(self) -> int:
        return hash(self._declarations)

    def __repr__(self) -> str:
        return f"ResolvedPropertySet({self._contract_name}: {', '.join(self.names)})"


# =============================================================================
# Resolution
# =============================================================================

_resolved: Dict[str, ResolvedPropertySet] = {}
_resolved_lock = threading.Lock()


def iter_declarations(contract: "Contract") -> Iterator[Tuple["Contract", "PropertyDeclaration"]]:
    """
    Yield (owner, declaration) for every declaration in the lattice,
    duplicates included, in resolution order.
    """
    for owner in (contract, *contract.ancestors()):
        for declaration in owner.properties:
            yield owner, declaration


def resolve(contract: "Contract") -> ResolvedPropertySet:
    """
    Resolve a contract's full, ordered property list.

    Args:
        contract: Any Contract

    Returns:
        ResolvedPropertySet, the same object for every call with an equal contract
    """
    cached = _resolved.get(contract.contract_id)
    if cached is not None:
        return cached

    declarations: List["PropertyDeclaration"] = []
    seen = set()
    for _, declaration in iter_declarations(contract):
        if declaration.name in seen:
            continue
        seen.add(declaration.name)
        declarations.append(declaration)

    result = ResolvedPropertySet(contract.name, declarations)
    with _resolved_lock:
        return _resolved.setdefault(contract.contract_id, result)
