"""
tests/conftest.py
Shared fixtures for the relcheck test suite.

The reference model is a small transportation domain:

    Vehicles table:  Vehicle ◀─ PoweredVehicle ◀─ CompetitionVehicle
                     Engine (table splitting: identifying FK to Vehicle)
    Operators table: Operator (FK to Vehicle, index on VehicleName)

Fixtures return plain dicts so each test can mutate freely; real file I/O
happens inside pytest's ``tmp_path`` directories.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Callable, Dict, List

import pytest
import yaml


# ---------------------------------------------------------------------------
# Raw model data fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def transport_model_dict() -> Dict[str, Any]:
    """A valid model exercising inheritance, table splitting and FKs."""
    return {
        "entity_types": [
            {
                "name": "Vehicle",
                "table": "Vehicles",
                "properties": [
                    {"name": "Name", "value_type": "str", "max_length": 100},
                    {"name": "SeatingCapacity", "value_type": "int"},
                    {"name": "Discriminator", "value_type": "str", "max_length": 50},
                ],
                "primary_key": {"properties": ["Name"]},
                "discriminator_property": "Discriminator",
                "discriminator_value": "Vehicle",
            },
            {
                "name": "PoweredVehicle",
                "base_type": "Vehicle",
                "properties": [
                    {"name": "FuelType", "value_type": "str", "max_length": 30},
                ],
                "discriminator_value": "PoweredVehicle",
            },
            {
                "name": "CompetitionVehicle",
                "base_type": "PoweredVehicle",
                "properties": [
                    {"name": "RaceNumber", "value_type": "int", "nullable": True},
                ],
                "discriminator_value": "CompetitionVehicle",
            },
            {
                "name": "Engine",
                "table": "Vehicles",
                "properties": [
                    {
                        "name": "VehicleName",
                        "value_type": "str",
                        "max_length": 100,
                        "column_name": "Name",
                    },
                    {"name": "Description", "value_type": "str", "max_length": 200},
                ],
                "primary_key": {"properties": ["VehicleName"]},
                "foreign_keys": [
                    {
                        "properties": ["VehicleName"],
                        "principal_entity_type": "Vehicle",
                        "unique": True,
                    },
                ],
            },
            {
                "name": "Operator",
                "table": "Operators",
                "properties": [
                    {"name": "Id", "value_type": "int"},
                    {"name": "VehicleName", "value_type": "str", "max_length": 100},
                    {"name": "Licensed", "value_type": "bool"},
                ],
                "primary_key": {"properties": ["Id"]},
                "foreign_keys": [
                    {"properties": ["VehicleName"], "principal_entity_type": "Vehicle"},
                ],
                "indexes": [{"properties": ["VehicleName"]}],
            },
        ],
        "db_functions": [
            {
                "name": "GetVehicleCount",
                "function_name": "vehicle_count",
                "return_type": "int",
                "parameters": [{"name": "fuel", "value_type": "str"}],
            },
        ],
    }


@pytest.fixture()
def transport_document(transport_model_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Full input document: model plus validation config."""
    return {
        "config": {"dialect": "postgresql", "fail_fast": True},
        "model": transport_model_dict,
    }


@pytest.fixture()
def transport_yaml_path(
    transport_document: Dict[str, Any], tmp_path: pathlib.Path
) -> pathlib.Path:
    """Write the document to a temporary YAML file and return its path."""
    path = tmp_path / "model.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(transport_document, fh, default_flow_style=False, allow_unicode=True)
    return path


@pytest.fixture()
def transport_json_path(
    transport_document: Dict[str, Any], tmp_path: pathlib.Path
) -> pathlib.Path:
    """Write the document to a temporary JSON file and return its path."""
    path = tmp_path / "model.json"
    path.write_text(json.dumps(transport_document, indent=2), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Minimal / edge-case fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def single_entity_dict() -> Dict[str, Any]:
    """Smallest valid model: one entity type with one key property."""
    return {
        "entity_types": [
            {
                "name": "Item",
                "properties": [{"name": "Id", "value_type": "int"}],
                "primary_key": {"properties": ["Id"]},
            }
        ]
    }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def entity_of() -> Callable[[Dict[str, Any], str], Dict[str, Any]]:
    """Return a lookup ``entity_of(model_dict, name)`` for in-place edits."""

    def _lookup(model: Dict[str, Any], name: str) -> Dict[str, Any]:
        entity_types: List[Dict[str, Any]] = model["entity_types"]
        for entity in entity_types:
            if entity["name"] == name:
                return entity
        raise KeyError(name)

    return _lookup
