# File: relcheck/models.py
"""
RelCheck - Model Definition Schema
===================================
Pydantic V2 models describing the *input document* handed to the validator:
entity types with their properties, keys, foreign keys, indexes and table
mapping, plus registered database functions and the ``ValidationConfig``.

These models only enforce the **shape** of the document (names present,
references resolvable, no inheritance cycles).  Mapping semantics are checked
later, on the resolved graph built by ``relcheck.metadata``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    computed_field,
    field_validator,
    model_validator,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relcheck.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DeleteBehavior(str, Enum):
    """What happens to dependents when their principal is deleted."""

    CASCADE = "Cascade"
    RESTRICT = "Restrict"
    SET_NULL = "SetNull"
    CLIENT_SET_NULL = "ClientSetNull"


class DatabaseDialect(str, Enum):
    """Target database dialects used to resolve store types."""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"
    MSSQL = "mssql"
    ORACLE = "oracle"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=False,
    frozen=False,
    extra="forbid",
)

# Discriminator values are compared type-strictly, so keep the scalar type the
# document used instead of letting Pydantic coerce "1" into 1.
DiscriminatorValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


def _no_duplicates(values: List[str], what: str) -> List[str]:
    if len(values) != len(set(values)):
        dupes: List[str] = sorted({v for v in values if values.count(v) > 1})
        raise ValueError(f"Duplicate {what}: {dupes}")
    return values


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class PropertyDef(BaseModel):
    """A scalar property of an entity type and its column facet."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Property name.")
    value_type: str = Field(
        ..., min_length=1, description="Value type, e.g. 'int', 'str', 'datetime'."
    )
    max_length: Optional[int] = Field(default=None, ge=1)
    precision: Optional[int] = Field(default=None, ge=0)
    scale: Optional[int] = Field(default=None, ge=0)
    nullable: Optional[bool] = Field(
        default=None,
        description="Explicit nullability; derived from the value type when omitted.",
    )
    column_name: Optional[str] = Field(
        default=None, min_length=1, description="Target column (defaults to name)."
    )
    column_type: Optional[str] = Field(
        default=None, min_length=1, description="Explicit store type, e.g. 'nvarchar(50)'."
    )
    default_value: Any = Field(default=None, description="Literal column default.")
    default_value_sql: Optional[str] = Field(
        default=None, description="SQL expression used as column default."
    )
    computed_column_sql: Optional[str] = Field(
        default=None, description="SQL expression for a computed column."
    )

    def __repr__(self) -> str:
        return f"<PropertyDef {self.name}: {self.value_type}>"


# ---------------------------------------------------------------------------
# Keys, foreign keys, indexes
# ---------------------------------------------------------------------------


class KeyDef(BaseModel):
    """Primary or alternate key."""

    model_config = _SHARED_CONFIG

    properties: List[str] = Field(..., min_length=1)
    name: Optional[str] = Field(default=None, min_length=1, description="Constraint name.")

    @field_validator("properties")
    @classmethod
    def _unique_properties(cls, v: List[str]) -> List[str]:
        return _no_duplicates(v, "key properties")


class ForeignKeyDef(BaseModel):
    """A foreign key declared on the dependent entity type."""

    model_config = _SHARED_CONFIG

    properties: List[str] = Field(..., min_length=1, description="Dependent properties.")
    principal_entity_type: str = Field(..., min_length=1)
    principal_key: Optional[List[str]] = Field(
        default=None,
        description="Principal key properties (defaults to the principal's primary key).",
    )
    name: Optional[str] = Field(default=None, min_length=1, description="Constraint name.")
    unique: bool = Field(default=False, description="One-to-one relationship?")
    delete_behavior: Optional[DeleteBehavior] = Field(
        default=None,
        description="Defaults to Cascade for required FKs, ClientSetNull otherwise.",
    )

    @field_validator("properties")
    @classmethod
    def _unique_properties(cls, v: List[str]) -> List[str]:
        return _no_duplicates(v, "foreign key properties")

    @model_validator(mode="after")
    def _principal_key_arity(self) -> "ForeignKeyDef":
        if self.principal_key is not None and len(self.principal_key) != len(self.properties):
            raise ValueError(
                f"Foreign key {self.properties} has {len(self.properties)} "
                f"properties but principal key {self.principal_key} has "
                f"{len(self.principal_key)}."
            )
        return self


class IndexDef(BaseModel):
    """Single or composite index."""

    model_config = _SHARED_CONFIG

    properties: List[str] = Field(..., min_length=1)
    name: Optional[str] = Field(default=None, min_length=1, description="Index name.")
    unique: bool = Field(default=False)

    @field_validator("properties")
    @classmethod
    def _unique_properties(cls, v: List[str]) -> List[str]:
        return _no_duplicates(v, "index properties")


# ---------------------------------------------------------------------------
# Entity type
# ---------------------------------------------------------------------------


class EntityTypeDef(BaseModel):
    """
    One entity type of the model.

    Derived types name their ``base_type``; they inherit its table, schema,
    primary key and discriminator property unless they set their own.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Display name (unique).")
    base_type: Optional[str] = Field(default=None, min_length=1)
    abstract: bool = Field(default=False, description="Not instantiable.")
    query_type: bool = Field(
        default=False, description="Query-only type without a physical table."
    )
    table: Optional[str] = Field(default=None, min_length=1)
    schema_name: Optional[str] = Field(default=None, alias="schema")
    properties: List[PropertyDef] = Field(default_factory=list)
    primary_key: Optional[KeyDef] = Field(default=None)
    keys: List[KeyDef] = Field(default_factory=list, description="Alternate keys.")
    foreign_keys: List[ForeignKeyDef] = Field(default_factory=list)
    indexes: List[IndexDef] = Field(default_factory=list)
    discriminator_property: Optional[str] = Field(default=None, min_length=1)
    discriminator_value: Optional[DiscriminatorValue] = Field(default=None)

    @computed_field  # type: ignore[misc]
    @property
    def property_names(self) -> List[str]:
        return [p.name for p in self.properties]

    @model_validator(mode="after")
    def _validate_unique_property_names(self) -> "EntityTypeDef":
        _no_duplicates(self.property_names, f"properties on entity type '{self.name}'")
        return self

    @model_validator(mode="after")
    def _validate_root_has_primary_key(self) -> "EntityTypeDef":
        if self.base_type is None and self.primary_key is None:
            raise ValueError(
                f"Entity type '{self.name}' has no base type and no primary key."
            )
        return self

    def __repr__(self) -> str:
        base: str = f" : {self.base_type}" if self.base_type else ""
        return f"<EntityTypeDef {self.name}{base} ({len(self.properties)} props)>"


# ---------------------------------------------------------------------------
# Database functions
# ---------------------------------------------------------------------------


class DbFunctionParameterDef(BaseModel):
    """A parameter of a mapped database function."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    value_type: str = Field(..., min_length=1)


class DbFunctionDef(BaseModel):
    """A method mapped to a database (scalar) function."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Method display name.")
    function_name: str = Field(default="", description="Store function name.")
    schema_name: Optional[str] = Field(default=None, alias="schema")
    return_type: str = Field(..., min_length=1)
    parameters: List[DbFunctionParameterDef] = Field(default_factory=list)
    has_translation: bool = Field(
        default=False, description="A custom translation replaces the type mapping."
    )


# ---------------------------------------------------------------------------
# Validation configuration
# ---------------------------------------------------------------------------


class ValidationConfig(BaseModel):
    """Settings that control a validation pass."""

    model_config = _SHARED_CONFIG

    dialect: DatabaseDialect = Field(
        default=DatabaseDialect.POSTGRESQL,
        description="Dialect used to resolve default store types.",
    )
    default_schema: Optional[str] = Field(
        default=None, description="Schema for root entity types without one."
    )
    fail_fast: bool = Field(
        default=True, description="Abort the pass on the first fatal error."
    )
    fail_on_warnings: bool = Field(
        default=False, description="Treat advisory warnings as a failed check."
    )
    warn_on_key_default_values: bool = Field(default=True)
    warn_on_bools_with_defaults: bool = Field(default=True)
    validate_db_functions: bool = Field(default=True)


# ---------------------------------------------------------------------------
# Model definition: top-level container
# ---------------------------------------------------------------------------


class ModelDefinition(BaseModel):
    """
    The root input model: every entity type and DB function to validate.

    Invariant: ``entity_types`` names are unique, every ``base_type`` and
    foreign-key principal names a defined entity type, and base chains are
    acyclic.
    """

    model_config = _SHARED_CONFIG

    entity_types: List[EntityTypeDef] = Field(default_factory=list)
    db_functions: List[DbFunctionDef] = Field(default_factory=list)

    _entity_type_map: Dict[str, EntityTypeDef] = {}

    @model_validator(mode="after")
    def _validate_unique_entity_type_names(self) -> "ModelDefinition":
        _no_duplicates([e.name for e in self.entity_types], "entity type names")
        return self

    @model_validator(mode="after")
    def _build_entity_type_map(self) -> "ModelDefinition":
        object.__setattr__(
            self,
            "_entity_type_map",
            {e.name: e for e in self.entity_types},
        )
        return self

    @model_validator(mode="after")
    def _validate_references_exist(self) -> "ModelDefinition":
        names: Set[str] = {e.name for e in self.entity_types}
        for entity_type in self.entity_types:
            if entity_type.base_type is not None and entity_type.base_type not in names:
                raise ValueError(
                    f"Entity type '{entity_type.name}' derives from "
                    f"'{entity_type.base_type}' which is not defined in the model."
                )
            for fk in entity_type.foreign_keys:
                if fk.principal_entity_type not in names:
                    raise ValueError(
                        f"Entity type '{entity_type.name}' has a foreign key to "
                        f"'{fk.principal_entity_type}' which is not defined in the model."
                    )
        return self

    @model_validator(mode="after")
    def _validate_acyclic_inheritance(self) -> "ModelDefinition":
        bases: Dict[str, Optional[str]] = {e.name: e.base_type for e in self.entity_types}
        for start in bases:
            seen: List[str] = [start]
            current: Optional[str] = bases.get(start)
            while current is not None:
                if current in seen:
                    chain: str = " -> ".join(seen + [current])
                    raise ValueError(f"Inheritance cycle detected: {chain}")
                seen.append(current)
                current = bases.get(current)
        return self

    def get_entity_type(self, name: str) -> Optional[EntityTypeDef]:
        """O(1) entity type lookup."""
        return self._entity_type_map.get(name)

    @computed_field  # type: ignore[misc]
    @property
    def entity_type_count(self) -> int:
        return len(self.entity_types)

    def __repr__(self) -> str:
        return (
            f"<ModelDefinition {self.entity_type_count} entity types, "
            f"{len(self.db_functions)} db functions>"
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DeleteBehavior",
    "DatabaseDialect",
    "DiscriminatorValue",
    "PropertyDef",
    "KeyDef",
    "ForeignKeyDef",
    "IndexDef",
    "EntityTypeDef",
    "DbFunctionParameterDef",
    "DbFunctionDef",
    "ValidationConfig",
    "ModelDefinition",
]

logger.debug("relcheck.models loaded — %d public symbols.", len(__all__))
