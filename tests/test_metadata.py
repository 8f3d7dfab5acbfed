"""
tests/test_metadata.py
Unit tests for relcheck.metadata: building the resolved model graph.

Tests cover:
- Hierarchy navigation (root, inclusive BFS, assignability)
- Table / schema resolution and query types
- Column facets (names, store types, nullability)
- Conventional key / FK / index names and delete behavior
- Principal key resolution and structural errors
- Discriminator inheritance
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import pytest

from relcheck.metadata import (
    EntityType,
    ModelStructureError,
    RelationalModel,
    TableIdentity,
    build_relational_model,
)
from relcheck.models import DatabaseDialect, DeleteBehavior, ModelDefinition, ValidationConfig

EntityLookup = Callable[[Dict[str, Any], str], Dict[str, Any]]


def _build(data: Dict[str, Any], **config: Any) -> RelationalModel:
    return build_relational_model(
        ModelDefinition.model_validate(data), ValidationConfig(**config)
    )


def _entity(model: RelationalModel, name: str) -> EntityType:
    entity_type: Optional[EntityType] = model.find_entity_type(name)
    assert entity_type is not None, f"entity type {name} missing"
    return entity_type


# ===========================================================================
# Hierarchy
# ===========================================================================


class TestHierarchy:
    """Base / derived navigation."""

    def test_roots_in_declaration_order(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        assert [e.name for e in model.get_root_entity_types()] == [
            "Vehicle",
            "Engine",
            "Operator",
        ]

    def test_root_type(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        competition = _entity(model, "CompetitionVehicle")
        assert competition.root_type() is _entity(model, "Vehicle")

    def test_derived_types_inclusive_is_breadth_first(self) -> None:
        data = {
            "entity_types": [
                {
                    "name": "Vehicle",
                    "properties": [{"name": "Id", "value_type": "int"}],
                    "primary_key": {"properties": ["Id"]},
                },
                {"name": "PoweredVehicle", "base_type": "Vehicle"},
                {"name": "CompetitionVehicle", "base_type": "PoweredVehicle"},
                {"name": "Bicycle", "base_type": "Vehicle"},
            ]
        }
        model = _build(data)
        names = [e.name for e in _entity(model, "Vehicle").get_derived_types_inclusive()]
        assert names == ["Vehicle", "PoweredVehicle", "Bicycle", "CompetitionVehicle"]

    def test_is_assignable_from(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        vehicle = _entity(model, "Vehicle")
        competition = _entity(model, "CompetitionVehicle")
        assert vehicle.is_assignable_from(competition)
        assert vehicle.is_assignable_from(vehicle)
        assert not competition.is_assignable_from(vehicle)
        assert not vehicle.is_assignable_from(_entity(model, "Engine"))

    def test_inherited_properties_come_first(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        names = [p.name for p in _entity(model, "CompetitionVehicle").get_properties()]
        assert names == ["Name", "SeatingCapacity", "Discriminator", "FuelType", "RaceNumber"]
        assert [p.name for p in _entity(model, "CompetitionVehicle").get_declared_properties()] == [
            "RaceNumber"
        ]

    def test_primary_key_inherited(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        assert (
            _entity(model, "CompetitionVehicle").find_primary_key()
            is _entity(model, "Vehicle").find_primary_key()
        )
        assert _entity(model, "CompetitionVehicle").get_declared_keys() == []


# ===========================================================================
# Tables
# ===========================================================================


class TestTableResolution:
    """Table identity defaults and inheritance."""

    def test_derived_types_share_base_table(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        assert _entity(model, "CompetitionVehicle").table == TableIdentity("Vehicles")

    def test_table_defaults_to_entity_name(self, single_entity_dict: Dict[str, Any]) -> None:
        model = _build(single_entity_dict)
        assert _entity(model, "Item").table == TableIdentity("Item")

    def test_default_schema_applies_to_roots(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict, default_schema="fleet")
        assert str(_entity(model, "Vehicle").table) == "fleet.Vehicles"
        assert str(_entity(model, "PoweredVehicle").table) == "fleet.Vehicles"

    def test_explicit_schema_wins(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        entity_of(transport_model_dict, "Operator")["schema"] = "staff"
        model = _build(transport_model_dict, default_schema="fleet")
        assert str(_entity(model, "Operator").table) == "staff.Operators"

    def test_table_identity_formatting(self) -> None:
        assert str(TableIdentity("Vehicles")) == "Vehicles"
        assert str(TableIdentity("Vehicles", "fleet")) == "fleet.Vehicles"

    def test_query_type_has_no_table(self, single_entity_dict: Dict[str, Any]) -> None:
        single_entity_dict["entity_types"].append(
            {
                "name": "VehicleSummary",
                "query_type": True,
                "properties": [{"name": "Id", "value_type": "int"}],
                "primary_key": {"properties": ["Id"]},
            }
        )
        single_entity_dict["entity_types"].append(
            {"name": "DetailedSummary", "base_type": "VehicleSummary"}
        )
        model = _build(single_entity_dict)
        assert _entity(model, "VehicleSummary").table is None
        assert _entity(model, "DetailedSummary").is_query_type


# ===========================================================================
# Properties
# ===========================================================================


class TestPropertyFacets:
    """Column names, store types and nullability."""

    def test_column_name_defaults_to_property_name(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        assert _entity(model, "Vehicle").find_property("SeatingCapacity").column_name == "SeatingCapacity"
        assert _entity(model, "Engine").find_property("VehicleName").column_name == "Name"

    def test_store_type_from_dialect(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict, dialect="sqlite")
        assert _entity(model, "Vehicle").find_property("SeatingCapacity").store_type == "INTEGER"
        assert _entity(model, "Vehicle").find_property("Name").store_type == "VARCHAR(100)"

    def test_explicit_column_type_wins(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        entity_of(transport_model_dict, "Vehicle")["properties"][1]["column_type"] = "tinyint"
        model = _build(transport_model_dict)
        assert _entity(model, "Vehicle").find_property("SeatingCapacity").store_type == "tinyint"

    def test_unknown_value_type_has_no_store_type(self, single_entity_dict: Dict[str, Any]) -> None:
        single_entity_dict["entity_types"][0]["properties"].append(
            {"name": "Location", "value_type": "GeoPoint"}
        )
        model = _build(single_entity_dict)
        assert _entity(model, "Item").find_property("Location").store_type is None

    def test_nullability_from_value_type(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        vehicle = _entity(model, "Vehicle")
        assert vehicle.find_property("Discriminator").nullable is True
        assert vehicle.find_property("SeatingCapacity").nullable is False
        assert _entity(model, "CompetitionVehicle").find_property("RaceNumber").nullable is True

    def test_key_properties_are_required(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        name = _entity(model, "Vehicle").find_property("Name")
        assert name.is_primary_key()
        assert name.nullable is False
        assert name.is_column_nullable() is False

    def test_nullable_key_property_rejected(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        entity_of(transport_model_dict, "Vehicle")["properties"][0]["nullable"] = True
        with pytest.raises(ModelStructureError, match="cannot be configured as nullable"):
            _build(transport_model_dict)


# ===========================================================================
# Keys, foreign keys, indexes
# ===========================================================================


class TestConstraintNames:
    """Conventional names and relationship facets."""

    def test_primary_key_name(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        assert _entity(model, "Vehicle").find_primary_key().name == "PK_Vehicles"
        assert _entity(model, "Engine").find_primary_key().name == "PK_Vehicles"

    def test_explicit_key_name(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        entity_of(transport_model_dict, "Vehicle")["primary_key"]["name"] = "PK_Vehicle"
        model = _build(transport_model_dict)
        assert _entity(model, "Vehicle").find_primary_key().name == "PK_Vehicle"

    def test_alternate_key_name(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        entity_of(transport_model_dict, "Operator")["keys"] = [{"properties": ["VehicleName"]}]
        model = _build(transport_model_dict)
        keys = _entity(model, "Operator").get_declared_keys()
        assert [k.name for k in keys] == ["PK_Operators", "AK_Operators_VehicleName"]
        assert keys[1].properties[0].nullable is False

    def test_foreign_key_name_and_delete_behavior(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        operator_fk = _entity(model, "Operator").get_declared_foreign_keys()[0]
        assert operator_fk.name == "FK_Operators_Vehicles_VehicleName"
        assert operator_fk.delete_behavior is DeleteBehavior.CLIENT_SET_NULL

        engine_fk = _entity(model, "Engine").get_declared_foreign_keys()[0]
        assert engine_fk.name == "FK_Vehicles_Vehicles_Name"
        assert engine_fk.delete_behavior is DeleteBehavior.CASCADE

    def test_index_name(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        index = _entity(model, "Operator").get_declared_indexes()[0]
        assert index.name == "IX_Operators_VehicleName"
        assert index.is_unique is False

    def test_identifying_foreign_key(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        engine = _entity(model, "Engine")
        assert [fk.principal_entity_type.name for fk in engine.find_identifying_foreign_keys()] == [
            "Vehicle"
        ]
        assert engine.get_declared_foreign_keys()[0].is_identifying()
        assert _entity(model, "Operator").find_identifying_foreign_keys() == []

    def test_non_unique_shared_key_fk_is_not_identifying(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        entity_of(transport_model_dict, "Engine")["foreign_keys"][0]["unique"] = False
        model = _build(transport_model_dict)
        assert _entity(model, "Engine").find_identifying_foreign_keys() == []

    def test_principal_alternate_key(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        vehicle = entity_of(transport_model_dict, "Vehicle")
        vehicle["properties"].append({"name": "Vin", "value_type": "str", "max_length": 17})
        vehicle["keys"] = [{"properties": ["Vin"]}]
        operator = entity_of(transport_model_dict, "Operator")
        operator["foreign_keys"][0]["principal_key"] = ["Vin"]
        model = _build(transport_model_dict)
        fk = _entity(model, "Operator").get_declared_foreign_keys()[0]
        assert fk.principal_key.name == "AK_Vehicles_Vin"
        assert not fk.principal_key.is_primary_key()

    def test_unmatched_principal_key_rejected(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        entity_of(transport_model_dict, "Operator")["foreign_keys"][0]["principal_key"] = [
            "SeatingCapacity"
        ]
        with pytest.raises(ModelStructureError, match="not a key of 'Vehicle'"):
            _build(transport_model_dict)

    def test_unknown_property_reference_rejected(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        entity_of(transport_model_dict, "Operator")["indexes"][0]["properties"] = ["Badge"]
        with pytest.raises(ModelStructureError, match="Badge"):
            _build(transport_model_dict)


# ===========================================================================
# Discriminators and model
# ===========================================================================


class TestDiscriminators:
    """Discriminator property inheritance."""

    def test_discriminator_property_inherited(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict)
        competition = _entity(model, "CompetitionVehicle")
        assert competition.discriminator_property is _entity(model, "Vehicle").find_property(
            "Discriminator"
        )
        assert competition.discriminator_value == "CompetitionVehicle"

    def test_discriminator_value_not_inherited(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        del entity_of(transport_model_dict, "PoweredVehicle")["discriminator_value"]
        model = _build(transport_model_dict)
        assert _entity(model, "PoweredVehicle").discriminator_value is None

    def test_unknown_discriminator_property_rejected(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        entity_of(transport_model_dict, "Vehicle")["discriminator_property"] = "Kind"
        with pytest.raises(ModelStructureError, match="Kind"):
            _build(transport_model_dict)

    def test_model_records_dialect_and_functions(self, transport_model_dict: Dict[str, Any]) -> None:
        model = _build(transport_model_dict, dialect="mysql")
        assert model.dialect is DatabaseDialect.MYSQL
        assert [f.name for f in model.db_functions] == ["GetVehicleCount"]
        assert model.db_functions[0].parameters[0].value_type == "str"
