"""
demo.py

Minimal CLI demo for capset.
- Builds the catalog contracts from a schema
- Imports a small price list, rejecting bad rows
- Prints the synthesized constructor and the imported records
"""

import logging

from capset import asdict
from examples.catalog import (
    CATALOG_SCHEMA,
    apply_discount,
    import_rows,
    load_contracts,
    records,
    summarize,
)


def main():
    logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    # --- Contracts ---
    contracts = load_contracts(CATALOG_SCHEMA)
    stocked = contracts["Stocked"]
    print(stocked)
    print(f"Resolved: {', '.join(stocked.resolved().names)}")

    # --- Import ---
    rows = [
        {"id": 1, "name": "Widget", "price": "9.99", "stock": 40},
        {"id": 2, "name": "Gadget", "price": "24.50"},
        {"id": "three", "name": "Broken"},
    ]
    results = import_rows(stocked, rows)
    imported = records(results)

    # --- Result ---
    print("\nImported:")
    for item in apply_discount(imported, 10):
        print(f"  {asdict(item)}")
    print(f"\nSummary: {summarize(results)}")


if __name__ == "__main__":
    main()
