"""Shared fixtures: a small parts catalog and its lookup index."""

import pytest

from partsdesk.catalog import CatalogIndex, catalog_from_records


PARTS = [
    {"primary_code": "E100", "description1": "MOTOR 110V", "description2": "M20 FRAME",
     "vendor_code": "V01", "vendor_item": "AC-100", "tariff": "8501.10",
     "category": "Motors", "vendor_name": "Acme Motors", "city": "Dayton", "state": "OH"},
    {"primary_code": "E200", "description1": "BALL VALVES", "description2": "BRASS 1/2",
     "vendor_code": "V02", "vendor_item": "BV-4017-2", "tariff": "8481.80",
     "category": "Valves", "vendor_name": "Flowco"},
    {"primary_code": "E300", "description1": "HEX BOLT", "description2": "SIZE 1170",
     "vendor_code": "V03", "vendor_item": "HB-1170", "tariff": "7318.15",
     "category": "Fasteners", "vendor_name": "Boltworks"},
    {"primary_code": "E400", "description1": "GASKET", "description2": "",
     "vendor_code": "V02", "vendor_item": "GK-9", "tariff": "",
     "category": "Seals", "vendor_name": "Flowco"},
]


@pytest.fixture
def catalog():
    return catalog_from_records(PARTS)


@pytest.fixture
def index(catalog):
    return CatalogIndex.build(catalog)


@pytest.fixture
def big_catalog():
    return catalog_from_records([
        {"primary_code": f"P{i:04d}", "description1": f"WIDGET {i}", "tariff": "9999.00"}
        for i in range(150)
    ])
