# File: relcheck/metadata.py
"""
RelCheck - Resolved Model Graph
================================
The read-only graph every validator walks.

``build_relational_model`` turns a ``ModelDefinition`` into linked
``EntityType`` / ``Property`` / ``Key`` / ``ForeignKey`` / ``Index`` objects
and resolves every relational facet exactly once:

    - table identity (derived types inherit their base's table and schema)
    - column names and store types (via ``relcheck.typemap``)
    - key / foreign-key / index names (``PK_``, ``AK_``, ``FK_``, ``IX_``)
    - nullability and default delete behavior
    - discriminator property (inherited from the nearest configured base)

Inheritance is an explicit forest: each entity type holds its ``base_type``
and its ``derived_types`` in declaration order.  Nothing here is mutated
after the builder returns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

from relcheck.models import (
    DatabaseDialect,
    DbFunctionDef,
    DeleteBehavior,
    EntityTypeDef,
    ForeignKeyDef,
    IndexDef,
    KeyDef,
    ModelDefinition,
    PropertyDef,
    ValidationConfig,
)
from relcheck.typemap import is_nullable_value_type, resolve_store_type
from relcheck.utils import format_table_name, join_name

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relcheck.metadata")


class ModelStructureError(ValueError):
    """The model definition references something that does not exist."""


# ---------------------------------------------------------------------------
# Table identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TableIdentity:
    """Physical table: optional schema plus name (case-sensitive)."""

    name: str
    schema: Optional[str] = None

    def __str__(self) -> str:
        return format_table_name(self.schema, self.name)


# ---------------------------------------------------------------------------
# Graph nodes
# ---------------------------------------------------------------------------


class Property:
    """A scalar property with its resolved column facet."""

    __slots__ = (
        "declaring_entity_type",
        "name",
        "value_type",
        "column_name",
        "store_type",
        "nullable",
        "default_value",
        "default_value_sql",
        "computed_column_sql",
    )

    def __init__(
        self,
        declaring_entity_type: "EntityType",
        definition: PropertyDef,
        dialect: DatabaseDialect,
    ) -> None:
        self.declaring_entity_type: EntityType = declaring_entity_type
        self.name: str = definition.name
        self.value_type: str = definition.value_type
        self.column_name: str = definition.column_name or definition.name
        self.store_type: Optional[str] = definition.column_type or resolve_store_type(
            definition.value_type,
            dialect,
            max_length=definition.max_length,
            precision=definition.precision,
            scale=definition.scale,
        )
        self.nullable: bool = (
            definition.nullable
            if definition.nullable is not None
            else is_nullable_value_type(definition.value_type)
        )
        self.default_value: Any = definition.default_value
        self.default_value_sql: Optional[str] = definition.default_value_sql
        self.computed_column_sql: Optional[str] = definition.computed_column_sql

    def is_primary_key(self) -> bool:
        pk: Optional[Key] = self.declaring_entity_type.find_primary_key()
        return pk is not None and self in pk.properties

    def is_column_nullable(self) -> bool:
        """Primary-key columns are never nullable."""
        return self.nullable and not self.is_primary_key()

    def __repr__(self) -> str:
        return f"<Property {self.declaring_entity_type.name}.{self.name} -> {self.column_name}>"


class Key:
    """Primary or alternate key."""

    __slots__ = ("declaring_entity_type", "properties", "name")

    def __init__(
        self,
        declaring_entity_type: "EntityType",
        properties: Tuple[Property, ...],
        name: str,
    ) -> None:
        self.declaring_entity_type: EntityType = declaring_entity_type
        self.properties: Tuple[Property, ...] = properties
        self.name: str = name

    def is_primary_key(self) -> bool:
        return self.declaring_entity_type.find_primary_key() is self

    def __repr__(self) -> str:
        return f"<Key {self.name} {[p.name for p in self.properties]}>"


class ForeignKey:
    """A foreign key declared on its dependent entity type."""

    __slots__ = (
        "declaring_entity_type",
        "properties",
        "principal_entity_type",
        "principal_key",
        "name",
        "is_unique",
        "delete_behavior",
    )

    def __init__(
        self,
        declaring_entity_type: "EntityType",
        properties: Tuple[Property, ...],
        principal_entity_type: "EntityType",
        principal_key: Key,
        name: str,
        is_unique: bool,
        delete_behavior: DeleteBehavior,
    ) -> None:
        self.declaring_entity_type: EntityType = declaring_entity_type
        self.properties: Tuple[Property, ...] = properties
        self.principal_entity_type: EntityType = principal_entity_type
        self.principal_key: Key = principal_key
        self.name: str = name
        self.is_unique: bool = is_unique
        self.delete_behavior: DeleteBehavior = delete_behavior

    def is_identifying_for(self, dependent: "EntityType") -> bool:
        """
        Unique, over exactly the dependent's primary key, and targeting the
        principal's primary key: a shared-key one-to-one (table splitting).
        """
        dependent_pk: Optional[Key] = dependent.find_primary_key()
        return (
            self.is_unique
            and dependent_pk is not None
            and self.properties == dependent_pk.properties
            and self.principal_key.is_primary_key()
        )

    def is_identifying(self) -> bool:
        return self.is_identifying_for(self.declaring_entity_type)

    def __repr__(self) -> str:
        return (
            f"<ForeignKey {self.name} {self.declaring_entity_type.name} -> "
            f"{self.principal_entity_type.name}>"
        )


class Index:
    """Single or composite index."""

    __slots__ = ("declaring_entity_type", "properties", "name", "is_unique")

    def __init__(
        self,
        declaring_entity_type: "EntityType",
        properties: Tuple[Property, ...],
        name: str,
        is_unique: bool,
    ) -> None:
        self.declaring_entity_type: EntityType = declaring_entity_type
        self.properties: Tuple[Property, ...] = properties
        self.name: str = name
        self.is_unique: bool = is_unique

    def __repr__(self) -> str:
        return f"<Index {self.name} {[p.name for p in self.properties]}>"


class EntityType:
    """An entity type node of the resolved graph."""

    def __init__(self, definition: EntityTypeDef) -> None:
        self.name: str = definition.name
        self.is_abstract: bool = definition.abstract
        self.is_query_type: bool = definition.query_type
        self.base_type: Optional[EntityType] = None
        self.derived_types: List[EntityType] = []
        self.table: Optional[TableIdentity] = None
        self.discriminator_property: Optional[Property] = None
        self.discriminator_value: Any = definition.discriminator_value

        self._declared_properties: List[Property] = []
        self._primary_key: Optional[Key] = None
        self._declares_primary_key: bool = definition.primary_key is not None
        self._declared_keys: List[Key] = []
        self._declared_foreign_keys: List[ForeignKey] = []
        self._declared_indexes: List[Index] = []

    # -- Hierarchy ----------------------------------------------------------

    def display_name(self) -> str:
        return self.name

    @property
    def is_instantiable(self) -> bool:
        return not self.is_abstract

    def root_type(self) -> "EntityType":
        current: EntityType = self
        while current.base_type is not None:
            current = current.base_type
        return current

    def base_types(self) -> Iterator["EntityType"]:
        """Ancestors, nearest first."""
        current: Optional[EntityType] = self.base_type
        while current is not None:
            yield current
            current = current.base_type

    def is_assignable_from(self, other: "EntityType") -> bool:
        """True when ``other`` is this type or one of its descendants."""
        return other is self or any(b is self for b in other.base_types())

    def get_derived_types_inclusive(self) -> List["EntityType"]:
        """This type followed by all descendants, breadth first."""
        result: List[EntityType] = [self]
        index: int = 0
        while index < len(result):
            result.extend(result[index].derived_types)
            index += 1
        return result

    # -- Properties ---------------------------------------------------------

    def get_declared_properties(self) -> List[Property]:
        return list(self._declared_properties)

    def get_properties(self) -> List[Property]:
        """Inherited properties (root first) followed by declared ones."""
        inherited: List[Property] = (
            self.base_type.get_properties() if self.base_type is not None else []
        )
        return inherited + self._declared_properties

    def find_property(self, name: str) -> Optional[Property]:
        for prop in self._declared_properties:
            if prop.name == name:
                return prop
        if self.base_type is not None:
            return self.base_type.find_property(name)
        return None

    # -- Keys ---------------------------------------------------------------

    def find_primary_key(self) -> Optional[Key]:
        return self._primary_key

    def get_declared_keys(self) -> List[Key]:
        """Keys declared on this type, primary key first when declared here."""
        return list(self._declared_keys)

    def get_keys(self) -> List[Key]:
        inherited: List[Key] = (
            self.base_type.get_keys() if self.base_type is not None else []
        )
        return inherited + self._declared_keys

    # -- Foreign keys -------------------------------------------------------

    def get_declared_foreign_keys(self) -> List[ForeignKey]:
        return list(self._declared_foreign_keys)

    def get_foreign_keys(self) -> List[ForeignKey]:
        inherited: List[ForeignKey] = (
            self.base_type.get_foreign_keys() if self.base_type is not None else []
        )
        return inherited + self._declared_foreign_keys

    def find_identifying_foreign_keys(self) -> List[ForeignKey]:
        """Foreign keys (own or inherited) sharing this type's primary key."""
        return [fk for fk in self.get_foreign_keys() if fk.is_identifying_for(self)]

    # -- Indexes ------------------------------------------------------------

    def get_declared_indexes(self) -> List[Index]:
        return list(self._declared_indexes)

    def __repr__(self) -> str:
        base: str = f" : {self.base_type.name}" if self.base_type else ""
        return f"<EntityType {self.name}{base} table={self.table}>"


class DbFunctionParameter(NamedTuple):
    name: str
    value_type: str


class DbFunction:
    """A method mapped to a database function."""

    __slots__ = ("name", "function_name", "schema", "return_type", "parameters", "has_translation")

    def __init__(self, definition: DbFunctionDef) -> None:
        self.name: str = definition.name
        self.function_name: str = definition.function_name
        self.schema: Optional[str] = definition.schema_name
        self.return_type: str = definition.return_type
        self.parameters: Tuple[DbFunctionParameter, ...] = tuple(
            DbFunctionParameter(p.name, p.value_type) for p in definition.parameters
        )
        self.has_translation: bool = definition.has_translation

    def __repr__(self) -> str:
        return f"<DbFunction {self.name} -> {self.function_name or '?'}>"


class RelationalModel:
    """The resolved model: entity types and DB functions in declaration order."""

    def __init__(
        self,
        entity_types: Sequence[EntityType],
        db_functions: Sequence[DbFunction],
        dialect: DatabaseDialect,
    ) -> None:
        self._entity_types: List[EntityType] = list(entity_types)
        self._entity_type_map: Dict[str, EntityType] = {e.name: e for e in entity_types}
        self.db_functions: List[DbFunction] = list(db_functions)
        self.dialect: DatabaseDialect = dialect

    def get_entity_types(self) -> List[EntityType]:
        return list(self._entity_types)

    def get_root_entity_types(self) -> List[EntityType]:
        return [e for e in self._entity_types if e.base_type is None]

    def find_entity_type(self, name: str) -> Optional[EntityType]:
        return self._entity_type_map.get(name)

    def __repr__(self) -> str:
        return (
            f"<RelationalModel {len(self._entity_types)} entity types, "
            f"{len(self.db_functions)} db functions, dialect={self.dialect.value}>"
        )


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def _resolve_properties(
    entity_type: EntityType, names: Sequence[str], what: str
) -> Tuple[Property, ...]:
    resolved: List[Property] = []
    for name in names:
        prop: Optional[Property] = entity_type.find_property(name)
        if prop is None:
            raise ModelStructureError(
                f"The {what} on entity type '{entity_type.name}' references "
                f"property '{name}' which does not exist on that type."
            )
        resolved.append(prop)
    return tuple(resolved)


def _table_name_for(entity_type: EntityType) -> str:
    return entity_type.table.name if entity_type.table is not None else entity_type.name


def _column_names(properties: Sequence[Property]) -> List[str]:
    return [p.column_name for p in properties]


def _resolve_table(
    entity_type: EntityType, definition: EntityTypeDef, default_schema: Optional[str]
) -> None:
    base: Optional[EntityType] = entity_type.base_type
    if base is not None and base.is_query_type:
        entity_type.is_query_type = True
    if entity_type.is_query_type:
        entity_type.table = None
        return

    base_table: Optional[TableIdentity] = base.table if base is not None else None
    name: str = definition.table or (base_table.name if base_table else entity_type.name)
    schema: Optional[str] = definition.schema_name or (
        base_table.schema if base_table else default_schema
    )
    entity_type.table = TableIdentity(name=name, schema=schema)


def _build_key(entity_type: EntityType, definition: KeyDef, prefix: str, what: str) -> Key:
    properties: Tuple[Property, ...] = _resolve_properties(
        entity_type, definition.properties, what
    )
    table: str = _table_name_for(entity_type)
    if definition.name:
        name: str = definition.name
    elif prefix == "PK":
        name = join_name("PK", table)
    else:
        name = join_name(prefix, table, _column_names(properties))
    return Key(entity_type, properties, name)


def _mark_key_properties_required(key: Key, definitions: Dict[Tuple[str, str], PropertyDef]) -> None:
    for prop in key.properties:
        explicit: Optional[bool] = definitions[
            (prop.declaring_entity_type.name, prop.name)
        ].nullable
        if explicit:
            raise ModelStructureError(
                f"The property '{prop.declaring_entity_type.name}.{prop.name}' is "
                f"part of key '{key.name}' and cannot be configured as nullable."
            )
        prop.nullable = False


def _find_principal_key(
    dependent: EntityType, definition: ForeignKeyDef, principal: EntityType
) -> Key:
    principal_pk: Optional[Key] = principal.find_primary_key()
    if definition.principal_key is None:
        if principal_pk is None:
            raise ModelStructureError(
                f"The principal '{principal.name}' of a foreign key on "
                f"'{dependent.name}' has no primary key."
            )
        return principal_pk

    wanted: List[str] = list(definition.principal_key)
    for key in principal.get_keys():
        if [p.name for p in key.properties] == wanted:
            return key
    raise ModelStructureError(
        f"The foreign key {definition.properties} on '{dependent.name}' targets "
        f"principal key {wanted} which is not a key of '{principal.name}'."
    )


def _build_foreign_key(
    entity_type: EntityType,
    definition: ForeignKeyDef,
    by_name: Dict[str, EntityType],
) -> ForeignKey:
    properties: Tuple[Property, ...] = _resolve_properties(
        entity_type, definition.properties, "foreign key"
    )
    principal: EntityType = by_name[definition.principal_entity_type]
    principal_key: Key = _find_principal_key(entity_type, definition, principal)

    name: str = definition.name or join_name(
        "FK",
        _table_name_for(entity_type),
        [_table_name_for(principal), *_column_names(properties)],
    )

    delete_behavior: Optional[DeleteBehavior] = definition.delete_behavior
    if delete_behavior is None:
        required: bool = not any(p.nullable for p in properties)
        delete_behavior = DeleteBehavior.CASCADE if required else DeleteBehavior.CLIENT_SET_NULL

    return ForeignKey(
        entity_type,
        properties,
        principal,
        principal_key,
        name,
        definition.unique,
        DeleteBehavior(delete_behavior),
    )


def _build_index(entity_type: EntityType, definition: IndexDef) -> Index:
    properties: Tuple[Property, ...] = _resolve_properties(
        entity_type, definition.properties, "index"
    )
    name: str = definition.name or join_name(
        "IX", _table_name_for(entity_type), _column_names(properties)
    )
    return Index(entity_type, properties, name, definition.unique)


def build_relational_model(
    definition: ModelDefinition,
    config: Optional[ValidationConfig] = None,
) -> RelationalModel:
    """
    Resolve ``definition`` into a ``RelationalModel``.

    Raises:
        ModelStructureError: a key, foreign key, index or discriminator
            references a property or principal key that does not exist, or a
            key property is configured as nullable.
    """
    config = config or ValidationConfig()
    dialect: DatabaseDialect = DatabaseDialect(config.dialect)

    definitions: Dict[str, EntityTypeDef] = {d.name: d for d in definition.entity_types}
    entity_types: List[EntityType] = [EntityType(d) for d in definition.entity_types]
    by_name: Dict[str, EntityType] = {e.name: e for e in entity_types}

    for entity_type in entity_types:
        base_name: Optional[str] = definitions[entity_type.name].base_type
        if base_name is not None:
            base: EntityType = by_name[base_name]
            entity_type.base_type = base
            base.derived_types.append(entity_type)

    # Bases before derived types from here on.
    hierarchy_order: List[EntityType] = [
        e for root in entity_types if root.base_type is None
        for e in root.get_derived_types_inclusive()
    ]

    property_defs: Dict[Tuple[str, str], PropertyDef] = {}
    for entity_type in hierarchy_order:
        entity_def: EntityTypeDef = definitions[entity_type.name]
        _resolve_table(entity_type, entity_def, config.default_schema)
        for prop_def in entity_def.properties:
            entity_type._declared_properties.append(Property(entity_type, prop_def, dialect))
            property_defs[(entity_type.name, prop_def.name)] = prop_def

    for entity_type in hierarchy_order:
        entity_def = definitions[entity_type.name]
        if entity_def.primary_key is not None:
            pk: Key = _build_key(entity_type, entity_def.primary_key, "PK", "primary key")
            entity_type._primary_key = pk
            entity_type._declared_keys.append(pk)
        elif entity_type.base_type is not None:
            entity_type._primary_key = entity_type.base_type.find_primary_key()
        for key_def in entity_def.keys:
            entity_type._declared_keys.append(
                _build_key(entity_type, key_def, "AK", "alternate key")
            )
        for key in entity_type._declared_keys:
            _mark_key_properties_required(key, property_defs)

    for entity_type in hierarchy_order:
        entity_def = definitions[entity_type.name]
        for fk_def in entity_def.foreign_keys:
            entity_type._declared_foreign_keys.append(
                _build_foreign_key(entity_type, fk_def, by_name)
            )
        for index_def in entity_def.indexes:
            entity_type._declared_indexes.append(_build_index(entity_type, index_def))

        if entity_def.discriminator_property is not None:
            discriminator: Optional[Property] = entity_type.find_property(
                entity_def.discriminator_property
            )
            if discriminator is None:
                raise ModelStructureError(
                    f"The discriminator property '{entity_def.discriminator_property}' "
                    f"configured on '{entity_type.name}' does not exist on that type."
                )
            entity_type.discriminator_property = discriminator
        elif entity_type.base_type is not None:
            entity_type.discriminator_property = entity_type.base_type.discriminator_property

    db_functions: List[DbFunction] = [DbFunction(f) for f in definition.db_functions]

    model: RelationalModel = RelationalModel(entity_types, db_functions, dialect)
    logger.debug("Built %r.", model)
    return model


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ModelStructureError",
    "TableIdentity",
    "Property",
    "Key",
    "ForeignKey",
    "Index",
    "EntityType",
    "DbFunctionParameter",
    "DbFunction",
    "RelationalModel",
    "build_relational_model",
]
