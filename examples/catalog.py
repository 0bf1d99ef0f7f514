"""
catalog.py

Product catalog import built on capset contracts.

Contract definitions come from a JSON-style schema, rows are staged
through Templates, and each row yields a Composite: the imported record
or the error that rejected it.

Use case: Load a supplier price list whose columns are only known at
runtime, reject bad rows individually, and reprice records without
mutating them.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping

from capset import (
    Composite,
    Contract,
    InvalidParentError,
    SynthesisError,
    Template,
    clone,
)

logger = logging.getLogger(__name__)


CATALOG_SCHEMA: Dict[str, Dict[str, Any]] = {
    "Article": {"properties": [{"name": "id", "type": "int"}]},
    "Name": {"properties": [{"name": "name", "type": "str"}], "parents": ["Article"]},
    "Priced": {"properties": [{"name": "price", "type": "decimal"}], "parents": ["Article"]},
    "Product": {"parents": ["Name", "Priced"]},
    "Stocked": {
        "properties": [{"name": "stock", "type": "int", "accessors": ["get", "set"]}],
        "parents": ["Product"],
    },
}


@dataclass
class ImportedRow:
    """A row that became a record."""
    line: int
    record: Any


RowResult = Composite[ImportedRow, SynthesisError]


def load_contracts(schema: Mapping[str, Mapping[str, Any]]) -> Dict[str, Contract]:
    """
    Build contracts from a schema.

    Parents must be defined before the contracts that extend them.

    Raises:
        InvalidParentError: a parent name is not defined yet
    """
    contracts: Dict[str, Contract] = {}
    for name, definition in schema.items():
        parents = []
        for parent_name in definition.get("parents", ()):
            if parent_name not in contracts:
                raise InvalidParentError(name, f"unknown parent '{parent_name}'")
            parents.append(contracts[parent_name])
        contracts[name] = Contract(
            name=name,
            properties=definition.get("properties"),
            parents=parents,
        )
    return contracts


def _coerce(value_type: type, value: Any) -> Any:
    """Price lists carry decimals as text."""
    if value_type is Decimal and isinstance(value, (str, float)):
        return Decimal(str(value))
    return value


def import_rows(contract: Contract, rows: Iterable[Mapping[str, Any]]) -> List[RowResult]:
    """
    Turn each row into a record of the contract's type.

    Unknown columns and values of the wrong type reject the row; the
    other rows are still imported.
    """
    results: List[RowResult] = []
    for line, row in enumerate(rows, start=1):
        try:
            template = Template(contract)
            for column, value in row.items():
                ref = contract.ref(column)
                template.set(ref, _coerce(ref.declaration.value_type, value))
            results.append(RowResult(ImportedRow(line, template.activate())))
        except SynthesisError as error:
            logger.warning("Rejected row %d: %s", line, error.format())
            results.append(RowResult(error))
    return results


def records(results: Iterable[RowResult]) -> List[Any]:
    """Imported records, rejected rows skipped."""
    return [r.as_(ImportedRow).record for r in results if r.variant == 0]


def summarize(results: Iterable[RowResult]) -> Dict[str, int]:
    """Count imported and rejected rows."""
    summary = {"imported": 0, "rejected": 0}
    for result in results:
        key = result.resolve(lambda row: "imported", lambda error: "rejected")
        summary[key] += 1
    return summary


def apply_discount(items: Iterable[Any], percent: int) -> List[Any]:
    """Repriced copies; the originals are left untouched."""
    factor = (Decimal(100) - Decimal(percent)) / Decimal(100)
    return [
        clone(item, lambda t, item=item: t.set(
            lambda m: m.price, (item.price * factor).quantize(Decimal("0.01"))
        ))
        for item in items
    ]
