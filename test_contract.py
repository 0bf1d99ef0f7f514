"""
test_contract.py

Unit tests for the capset Contract primitive.

Tests prove:
- PropertyDeclaration validation and accessor normalization
- Contract validation (names, duplicates, parents, members)
- Immutability (cannot modify after creation)
- Deterministic identity (same definition = same contract_id)
- Linearized ancestors
- Serialization round-trip
- Contracts built from plain classes
"""

import uuid
from decimal import Decimal

import pytest

from capset.contract import (
    BUILTIN_TYPE_TAGS,
    Contract,
    PropertyDeclaration,
    PropertyRef,
    Visibility,
    conforms,
    prop,
    type_default,
)
from capset.errors import (
    ContractImmutabilityError,
    ContractValidationError,
    DuplicatePropertyError,
    InvalidParentError,
    UnknownPropertyError,
)
from capset.mutability import Accessor, Mutability


# =============================================================================
# Helper Fixtures
# =============================================================================

@pytest.fixture
def article():
    return Contract(name="Article", properties=[prop("id", int)])


@pytest.fixture
def product(article):
    name = Contract(name="Name", properties=[prop("name", str)], parents=[article])
    priced = Contract(name="Priced", properties=[prop("price", Decimal)], parents=[article])
    return Contract(name="Product", parents=[name, priced])


# =============================================================================
# SECTION 1: PropertyDeclaration
# =============================================================================

class TestPropertyDeclaration:
    """Test PropertyDeclaration construction and behavior."""

    def test_default_shape_is_get_init(self):
        """A property is immutable unless declared otherwise."""
        declaration = PropertyDeclaration(name="id", type=int)

        assert declaration.accessors == (Accessor.GET, Accessor.INIT)
        assert declaration.mutability is Mutability.IMMUTABLE
        assert declaration.visibility is Visibility.PUBLIC
        assert not declaration.restricted

    def test_mutable_shorthand(self):
        """mutable=True means get; set."""
        declaration = PropertyDeclaration(name="count", type=int, mutable=True)

        assert declaration.accessors == (Accessor.GET, Accessor.SET)
        assert declaration.mutable

    def test_accessors_from_strings_are_normalized(self):
        """Accessor strings are parsed, deduplicated and ordered."""
        declaration = PropertyDeclaration(name="x", type=int, accessors=["set", "GET", "set"])

        assert declaration.accessors == (Accessor.GET, Accessor.SET)

    def test_accessors_and_mutable_are_exclusive(self):
        """Giving both accessors and mutable is rejected."""
        with pytest.raises(ContractValidationError) as exc_info:
            PropertyDeclaration(name="x", type=int, accessors=["get"], mutable=True)
        assert exc_info.value.error_code == "C004"

    def test_unknown_accessor_rejected(self):
        """Unknown accessor names are rejected."""
        with pytest.raises(ContractValidationError):
            PropertyDeclaration(name="x", type=int, accessors=["get", "write"])

    @pytest.mark.parametrize("name", ["1abc", "_hidden", "class", "has space", ""])
    def test_invalid_names_rejected(self, name):
        """Names must be public identifiers."""
        with pytest.raises(ContractValidationError) as exc_info:
            PropertyDeclaration(name=name, type=int)
        assert exc_info.value.error_code == "C001"

    def test_type_tags_resolve_to_classes(self):
        """Symbolic tags map to Python classes."""
        assert PropertyDeclaration(name="price", type="decimal").value_type is Decimal
        assert PropertyDeclaration(name="key", type="uuid").value_type is uuid.UUID
        assert PropertyDeclaration(name="n", type="INT").value_type is int

    def test_unknown_type_tag_rejected(self):
        """Unknown tags are rejected."""
        with pytest.raises(ContractValidationError) as exc_info:
            PropertyDeclaration(name="x", type="money")
        assert exc_info.value.error_code == "C005"

    def test_non_class_type_rejected(self):
        """The type must be a class or a tag."""
        with pytest.raises(ContractValidationError):
            PropertyDeclaration(name="x", type=42)

    def test_custom_class_tag_is_qualified(self):
        """Custom classes are tagged by module and qualified name."""
        class Money:
            pass

        declaration = PropertyDeclaration(name="amount", type=Money)
        assert declaration.type_tag.endswith("Money")
        assert declaration.value_type is Money

    def test_same_qualified_name_different_class_rejected(self):
        """Two classes sharing a qualified name cannot share a tag."""
        def make_money():
            class Money:
                pass
            return Money

        first, second = make_money(), make_money()
        Contract(name="Price", properties=[prop("amount", first)])

        with pytest.raises(ContractValidationError) as exc_info:
            Contract(name="Price", properties=[prop("amount", second)])
        assert exc_info.value.error_code == "C005"
        assert "Ambiguous" in exc_info.value.message

    def test_same_custom_class_reused(self):
        """Declaring the same class again keeps one identity."""
        class Sku:
            pass

        assert (
            Contract(name="Item", properties=[prop("sku", Sku)])
            == Contract(name="Item", properties=[prop("sku", Sku)])
        )

    def test_restricted_visibility(self):
        """Restricted properties are flagged."""
        declaration = prop("obsolete", bool, mutable=True, restricted=True)
        assert declaration.restricted
        assert declaration.visibility is Visibility.RESTRICTED

    def test_immutable(self):
        """Declarations cannot be modified."""
        declaration = prop("id", int)
        with pytest.raises(ContractImmutabilityError):
            declaration._name = "other"
        with pytest.raises(ContractImmutabilityError):
            del declaration._name

    def test_equality_and_hash(self):
        """Declarations compare by content."""
        assert prop("id", int) == prop("id", "int")
        assert hash(prop("id", int)) == hash(prop("id", "int"))
        assert prop("id", int) != prop("id", int, mutable=True)

    def test_compatibility(self):
        """Same type, shape and visibility are compatible."""
        assert prop("x", int).is_compatible_with(prop("x", int))
        assert not prop("x", int).is_compatible_with(prop("x", str))
        assert not prop("x", int).is_compatible_with(prop("x", int, mutable=True))

    def test_dict_round_trip(self):
        """to_dict/from_dict preserve the declaration."""
        declaration = prop("note", str, mutable=True, restricted=True)
        assert PropertyDeclaration.from_dict(declaration.to_dict()) == declaration


# =============================================================================
# SECTION 2: Value Types
# =============================================================================

class TestValueTypes:
    """Test type defaults and conformance."""

    def test_numeric_defaults_are_zero(self):
        assert type_default(int) == 0
        assert type_default(float) == 0.0
        assert type_default(Decimal) == Decimal(0)
        assert type_default(bool) is False

    def test_reference_defaults_are_none(self):
        assert type_default(str) is None
        assert type_default(uuid.UUID) is None
        assert type_default(object) is None

    def test_conforms(self):
        assert conforms(1, int) == (True, 1)
        assert conforms(None, int) == (True, None)
        assert conforms("a", int) == (False, "a")

    def test_int_widens_to_decimal_and_float(self):
        ok, value = conforms(95, Decimal)
        assert ok and value == Decimal(95) and isinstance(value, Decimal)
        ok, value = conforms(2, float)
        assert ok and isinstance(value, float)

    def test_bool_does_not_widen(self):
        assert conforms(True, Decimal)[0] is False

    def test_builtin_tags_cover_common_types(self):
        assert {"int", "str", "decimal", "uuid", "datetime"} <= set(BUILTIN_TYPE_TAGS)


# =============================================================================
# SECTION 3: Contract Construction
# =============================================================================

class TestContractConstruction:
    """Test Contract construction and validation."""

    def test_basic_creation(self, article):
        assert article.name == "Article"
        assert article.properties == (prop("id", int),)
        assert article.parents == ()
        assert article.members == ()

    def test_properties_from_dicts(self):
        """Declarations may be given as dicts."""
        contract = Contract(name="Tag", properties=[{"name": "label", "type": "str"}])
        assert contract.properties[0].value_type is str

    def test_duplicate_property_rejected(self):
        with pytest.raises(DuplicatePropertyError) as exc_info:
            Contract(name="Twice", properties=[prop("x", int), prop("x", int)])
        assert exc_info.value.name == "x"
        assert exc_info.value.error_code == "C002"

    def test_non_declaration_rejected(self):
        with pytest.raises(ContractValidationError):
            Contract(name="Bad", properties=["id"])

    def test_non_contract_parent_rejected(self):
        with pytest.raises(InvalidParentError):
            Contract(name="Child", parents=["Article"])

    def test_parent_listed_twice_rejected(self, article):
        with pytest.raises(InvalidParentError) as exc_info:
            Contract(name="Child", parents=[article, article])
        assert exc_info.value.error_code == "C003"

    def test_members_recorded_by_name(self):
        contract = Contract(name="Deconstructable", members={"deconstruct": lambda self: ()})
        assert contract.members == ("deconstruct",)

    def test_immutable(self, article):
        with pytest.raises(ContractImmutabilityError):
            article._name = "Other"
        with pytest.raises(ContractImmutabilityError):
            del article._parents


# =============================================================================
# SECTION 4: Identity
# =============================================================================

class TestContractIdentity:
    """Test content-based identity."""

    def test_same_definition_same_id(self):
        first = Contract(name="Article", properties=[prop("id", int)])
        second = Contract(name="Article", properties=[prop("id", "int")])

        assert first.contract_id == second.contract_id
        assert first == second
        assert hash(first) == hash(second)

    def test_different_definitions_differ(self, article):
        renamed = Contract(name="Item", properties=[prop("id", int)])
        retyped = Contract(name="Article", properties=[prop("id", str)])

        assert article != renamed
        assert article != retyped

    def test_parent_order_is_part_of_identity(self, article):
        other = Contract(name="Other", properties=[prop("x", int)])
        assert (
            Contract(name="C", parents=[article, other])
            != Contract(name="C", parents=[other, article])
        )

    def test_id_is_sha256_hex(self, article):
        assert len(article.contract_id) == 64
        int(article.contract_id, 16)


# =============================================================================
# SECTION 5: Lattice Queries
# =============================================================================

class TestLattice:
    """Test ancestors, extends and references."""

    def test_ancestors_are_linearized(self, product):
        """Parents follow their own ancestors; shared ancestors appear once."""
        assert [a.name for a in product.ancestors()] == ["Article", "Name", "Priced"]

    def test_extends(self, product, article):
        assert product.extends(article)
        assert product.extends(product)
        assert not article.extends(product)

    def test_lineage_contains_all_ids(self, product):
        assert len(product.lineage) == 4

    def test_ref_returns_property_ref(self, product):
        ref = product.ref("price")
        assert isinstance(ref, PropertyRef)
        assert ref.name == "price"
        assert ref.contract == product
        assert ref.declaration.value_type is Decimal

    def test_refs_namespace(self, product):
        assert product.refs.id == product.ref("id")

    def test_ref_unknown_name(self, product):
        with pytest.raises(UnknownPropertyError) as exc_info:
            product.ref("colour")
        assert "price" in exc_info.value.available


# =============================================================================
# SECTION 6: Serialization
# =============================================================================

class TestSerialization:
    """Test to_dict/to_json/from_dict."""

    def test_json_round_trip(self, product):
        restored = Contract.from_json(product.to_json())
        assert restored == product
        assert [a.name for a in restored.ancestors()] == ["Article", "Name", "Priced"]

    def test_to_dict_is_deterministic(self, product):
        assert product.to_json() == product.to_json()
        assert product.to_dict()["contract_id"] == product.contract_id

    def test_from_dict_requires_name(self):
        with pytest.raises(ContractValidationError):
            Contract.from_dict({"properties": []})


# =============================================================================
# SECTION 7: Contracts From Classes
# =============================================================================

class IArticle:
    @property
    def id(self) -> int: ...


class IDescription(IArticle):
    @property
    def description(self) -> str: ...

    @description.setter
    def description(self, value: str) -> None: ...


class IPersistent:
    __restricted__ = ("obsolete",)

    created_by: str

    @property
    def obsolete(self) -> bool: ...

    @obsolete.setter
    def obsolete(self, value: bool) -> None: ...

    def is_latest_version(self) -> bool:
        return True


class TestFromClass:
    """Test Contract.from_class accessor-shape introspection."""

    def test_getter_only_is_immutable(self):
        contract = Contract.from_class(IArticle)
        (declaration,) = contract.properties

        assert declaration.name == "id"
        assert declaration.value_type is int
        assert declaration.accessors == (Accessor.GET, Accessor.INIT)

    def test_getter_and_setter_is_mutable(self):
        contract = Contract.from_class(IDescription)
        (declaration,) = contract.properties

        assert declaration.mutability is Mutability.MUTABLE
        assert declaration.value_type is str

    def test_bases_become_parents(self):
        contract = Contract.from_class(IDescription)
        assert [p.name for p in contract.parents] == ["IArticle"]
        assert contract.resolved().names == ("description", "id")

    def test_annotations_restricted_and_methods(self):
        contract = Contract.from_class(IPersistent)
        by_name = {d.name: d for d in contract.properties}

        assert by_name["created_by"].accessors == (Accessor.GET, Accessor.INIT)
        assert by_name["obsolete"].restricted
        assert by_name["obsolete"].mutable
        assert contract.members == ("is_latest_version",)

    def test_setter_only_property_has_no_mutability(self):
        class IWriteOnly:
            secret = property(None, lambda self, value: None)

        (declaration,) = Contract.from_class(IWriteOnly).properties
        assert declaration.accessors == (Accessor.SET,)
        assert declaration.mutability is None

    def test_same_class_same_contract(self):
        assert Contract.from_class(IDescription) == Contract.from_class(IDescription)

    def test_rejects_non_class(self):
        with pytest.raises(ContractValidationError):
            Contract.from_class(IArticle())
