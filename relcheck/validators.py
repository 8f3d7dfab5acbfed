# File: relcheck/validators.py
"""
RelCheck - Relational Mapping Validators
=========================================
Validation pipeline over the resolved graph from ``relcheck.metadata``.

Pydantic (``relcheck.models``) and the graph builder reject documents that
are structurally broken.  This module checks that a well-formed model maps
onto a consistent physical schema:

    1. Shared tables: every table used by several entity types has one root
       and the other types are reachable from it through inheritance or
       identifying one-to-one foreign keys, with matching primary-key names.
    2. Shared artifacts per table: columns, keys, foreign keys and indexes
       with the same name must agree on every physical attribute.
    3. Inheritance: every concrete member of a multi-type hierarchy has a
       discriminator property and a unique discriminator value.
    4. Advisory checks (key default values, bools with defaults).
    5. Database functions have a store name and mappable types.

Every check returns a ``ValidationResult`` and stops at its first fatal
error.  ``validate_model`` either aborts the pass at the first error
(``fail_fast``) or keeps going across independent tables, hierarchies and
functions so that each contributes at most one error.

Usage:
    from relcheck.validators import validate_definition
    result = validate_definition(model_definition, config)
    result.raise_if_invalid()
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from relcheck.diagnostics import (
    BOOL_WITH_DEFAULT,
    DB_FUNCTION_INVALID_PARAMETER_TYPE,
    DB_FUNCTION_INVALID_RETURN_TYPE,
    DB_FUNCTION_NAME_EMPTY,
    DUPLICATE_COLUMN_COMPUTED_SQL_MISMATCH,
    DUPLICATE_COLUMN_DEFAULT_SQL_MISMATCH,
    DUPLICATE_COLUMN_DEFAULT_VALUE_MISMATCH,
    DUPLICATE_COLUMN_NULLABILITY_MISMATCH,
    DUPLICATE_COLUMN_TYPE_MISMATCH,
    DUPLICATE_DISCRIMINATOR_VALUE,
    DUPLICATE_FK_COLUMN_MISMATCH,
    DUPLICATE_FK_DELETE_BEHAVIOR_MISMATCH,
    DUPLICATE_FK_PRINCIPAL_COLUMN_MISMATCH,
    DUPLICATE_FK_PRINCIPAL_TABLE_MISMATCH,
    DUPLICATE_FK_UNIQUENESS_MISMATCH,
    DUPLICATE_INDEX_COLUMN_MISMATCH,
    DUPLICATE_INDEX_UNIQUENESS_MISMATCH,
    DUPLICATE_KEY_COLUMN_MISMATCH,
    KEY_DEFAULT_VALUE,
    NO_DISCRIMINATOR_PROPERTY,
    NO_DISCRIMINATOR_VALUE,
    TABLE_AMBIGUOUS_ROOT,
    TABLE_KEY_NAME_MISMATCH,
    TABLE_NO_RELATIONSHIP,
    ValidationResult,
    format_columns,
    format_properties,
    format_value,
)
from relcheck.metadata import (
    EntityType,
    ForeignKey,
    Index,
    Key,
    Property,
    RelationalModel,
    build_relational_model,
)
from relcheck.models import ModelDefinition, ValidationConfig
from relcheck.typemap import can_map, is_bool_value_type
from relcheck.utils import equals_ignore_case, value_key, values_equal

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relcheck.validators")


def _property_names(properties: Sequence[Property]) -> str:
    return format_properties([p.name for p in properties])


def _column_names(properties: Sequence[Property]) -> List[str]:
    return [p.column_name for p in properties]


# ---------------------------------------------------------------------------
# Table grouping
# ---------------------------------------------------------------------------


def group_entity_types_by_table(model: RelationalModel) -> Dict[str, List[EntityType]]:
    """
    Map ``schema.table`` (or ``table``) to the entity types stored in it.

    Groups and their members keep declaration order.  Query types have no
    table and are left out.
    """
    tables: Dict[str, List[EntityType]] = {}
    for entity_type in model.get_entity_types():
        if entity_type.is_query_type or entity_type.table is None:
            continue
        tables.setdefault(str(entity_type.table), []).append(entity_type)
    return tables


# ---------------------------------------------------------------------------
# Shared-table connectivity
# ---------------------------------------------------------------------------


def _links_to_group_member(
    entity_type: EntityType, members: Set[int]
) -> Optional[EntityType]:
    """The group member this type hangs off (base or identifying principal)."""
    if entity_type.base_type is not None:
        return entity_type.base_type
    for fk in entity_type.find_identifying_foreign_keys():
        principal: EntityType = fk.principal_entity_type
        if principal.root_type() is not entity_type and id(principal) in members:
            return principal
    return None


def _is_identifying_principal(dependent: EntityType, principal: EntityType) -> bool:
    return any(
        fk.principal_entity_type is principal
        for fk in dependent.find_identifying_foreign_keys()
    )


def _directly_connected(entity_type: EntityType, candidate: EntityType) -> bool:
    return (
        entity_type.is_assignable_from(candidate)
        or _is_identifying_principal(candidate, entity_type)
        or _is_identifying_principal(entity_type, candidate)
    )


def _walk_connections(
    root: EntityType, mapped_types: Sequence[EntityType]
) -> Iterator[Tuple[EntityType, EntityType]]:
    """Breadth-first (reached-from, reached) pairs, starting at ``root``."""
    unvalidated: Set[int] = {id(e) for e in mapped_types} - {id(root)}
    queue: Deque[EntityType] = deque([root])

    while queue:
        entity_type: EntityType = queue.popleft()
        for candidate in mapped_types:
            if id(candidate) in unvalidated and _directly_connected(entity_type, candidate):
                unvalidated.discard(id(candidate))
                queue.append(candidate)
                yield entity_type, candidate


def validate_shared_table_compatibility(
    mapped_types: Sequence[EntityType], table: str
) -> ValidationResult:
    """
    Check that the entity types sharing ``table`` form one connected graph.

    The root is the only member with no base type and no identifying foreign
    key to another member.  From it, a breadth-first walk follows subtype
    edges and identifying foreign keys (in either direction); the primary-key
    names of every connected pair must match.

    A second root candidate is reported as unrelated to the root, unless the
    walk from the root reaches it, in which case the root is ambiguous.

    Complexity: O(N^2 * F) for N mapped types and F foreign keys per type.
    """
    result: ValidationResult = ValidationResult()
    if len(mapped_types) < 2:
        return result

    members: Set[int] = {id(e) for e in mapped_types}
    candidates: List[EntityType] = [
        e for e in mapped_types if _links_to_group_member(e, members) is None
    ]

    if not candidates:
        last: EntityType = mapped_types[-1]
        linked: Optional[EntityType] = _links_to_group_member(last, members)
        return result.report_error(
            TABLE_AMBIGUOUS_ROOT,
            table=table,
            entity_type=last.display_name(),
            root=linked.display_name() if linked is not None else last.display_name(),
        )

    root: EntityType = candidates[0]
    if len(candidates) > 1:
        other: EntityType = candidates[1]
        reachable: Set[int] = {id(c) for _, c in _walk_connections(root, mapped_types)}
        return result.report_error(
            TABLE_AMBIGUOUS_ROOT if id(other) in reachable else TABLE_NO_RELATIONSHIP,
            table=table,
            entity_type=other.display_name(),
            root=root.display_name(),
        )

    reached: Set[int] = {id(root)}
    for entity_type, candidate in _walk_connections(root, mapped_types):
        key: Optional[Key] = entity_type.find_primary_key()
        other_key: Optional[Key] = candidate.find_primary_key()
        if key is not None and other_key is not None and key.name != other_key.name:
            return result.report_error(
                TABLE_KEY_NAME_MISMATCH,
                table=table,
                entity_type=entity_type.display_name(),
                other_entity_type=candidate.display_name(),
                key_name=key.name,
                key_properties=_property_names(key.properties),
                other_key_name=other_key.name,
                other_key_properties=_property_names(other_key.properties),
            )
        reached.add(id(candidate))

    for mapped_type in mapped_types:
        if id(mapped_type) not in reached:
            return result.report_error(
                TABLE_NO_RELATIONSHIP,
                table=table,
                entity_type=mapped_type.display_name(),
                root=root.display_name(),
            )

    logger.debug("Table '%s': %d entity types connected to '%s'.", table, len(mapped_types), root.name)
    return result


# ---------------------------------------------------------------------------
# Shared columns
# ---------------------------------------------------------------------------


def _column_context(
    first: Property, current: Property, table: str, **values: Any
) -> Dict[str, Any]:
    context: Dict[str, Any] = {
        "entity_type": first.declaring_entity_type.display_name(),
        "property": first.name,
        "other_entity_type": current.declaring_entity_type.display_name(),
        "other_property": current.name,
        "column": first.column_name,
        "table": table,
    }
    context.update(values)
    return context


def validate_shared_columns_compatibility(
    mapped_types: Sequence[EntityType], table: str
) -> ValidationResult:
    """
    Properties mapped to the same column must agree on store type,
    nullability, computed SQL, default value and default SQL.

    The first declared property of a column is the baseline; only declared
    (not inherited) properties are considered.
    """
    result: ValidationResult = ValidationResult()
    columns: Dict[str, Property] = {}

    for entity_type in mapped_types:
        for prop in entity_type.get_declared_properties():
            first: Optional[Property] = columns.get(prop.column_name)
            if first is None:
                columns[prop.column_name] = prop
                continue

            if not equals_ignore_case(first.store_type, prop.store_type):
                return result.report_error(
                    DUPLICATE_COLUMN_TYPE_MISMATCH,
                    **_column_context(
                        first, prop, table,
                        value=format_value(first.store_type),
                        other_value=format_value(prop.store_type),
                    ),
                )

            if first.is_column_nullable() != prop.is_column_nullable():
                return result.report_error(
                    DUPLICATE_COLUMN_NULLABILITY_MISMATCH,
                    **_column_context(
                        first, prop, table,
                        value=first.is_column_nullable(),
                        other_value=prop.is_column_nullable(),
                    ),
                )

            first_computed: str = first.computed_column_sql or ""
            computed: str = prop.computed_column_sql or ""
            if not equals_ignore_case(first_computed, computed):
                return result.report_error(
                    DUPLICATE_COLUMN_COMPUTED_SQL_MISMATCH,
                    **_column_context(
                        first, prop, table, value=first_computed, other_value=computed
                    ),
                )

            if not values_equal(first.default_value, prop.default_value):
                return result.report_error(
                    DUPLICATE_COLUMN_DEFAULT_VALUE_MISMATCH,
                    **_column_context(
                        first, prop, table,
                        value=format_value(first.default_value),
                        other_value=format_value(prop.default_value),
                    ),
                )

            first_default_sql: str = first.default_value_sql or ""
            default_sql: str = prop.default_value_sql or ""
            if not equals_ignore_case(first_default_sql, default_sql):
                return result.report_error(
                    DUPLICATE_COLUMN_DEFAULT_SQL_MISMATCH,
                    **_column_context(
                        first, prop, table, value=first_default_sql, other_value=default_sql
                    ),
                )

    return result


# ---------------------------------------------------------------------------
# Shared keys, foreign keys and indexes
# ---------------------------------------------------------------------------


def _artifact_context(
    current: Any, first: Any, table: str, **values: Any
) -> Dict[str, Any]:
    context: Dict[str, Any] = {
        "properties": _property_names(current.properties),
        "entity_type": current.declaring_entity_type.display_name(),
        "other_properties": _property_names(first.properties),
        "other_entity_type": first.declaring_entity_type.display_name(),
        "table": table,
        "name": current.name,
    }
    context.update(values)
    return context


def validate_shared_keys_compatibility(
    mapped_types: Sequence[EntityType], table: str
) -> ValidationResult:
    """Keys with the same name must cover the same columns."""
    result: ValidationResult = ValidationResult()
    keys: Dict[str, Key] = {}

    for entity_type in mapped_types:
        for key in entity_type.get_declared_keys():
            first: Optional[Key] = keys.get(key.name)
            if first is None:
                keys[key.name] = key
                continue

            if _column_names(key.properties) != _column_names(first.properties):
                return result.report_error(
                    DUPLICATE_KEY_COLUMN_MISMATCH,
                    **_artifact_context(
                        key, first, table,
                        value=format_columns(_column_names(key.properties)),
                        other_value=format_columns(_column_names(first.properties)),
                    ),
                )

    return result


def validate_shared_foreign_keys_compatibility(
    mapped_types: Sequence[EntityType], table: str
) -> ValidationResult:
    """
    Foreign keys with the same constraint name must agree on principal
    table, dependent columns, principal columns, uniqueness and delete
    behavior.
    """
    result: ValidationResult = ValidationResult()
    foreign_keys: Dict[str, ForeignKey] = {}

    for entity_type in mapped_types:
        for fk in entity_type.get_declared_foreign_keys():
            first: Optional[ForeignKey] = foreign_keys.get(fk.name)
            if first is None:
                foreign_keys[fk.name] = fk
                continue

            principal_table: str = str(fk.principal_entity_type.table or "")
            first_principal_table: str = str(first.principal_entity_type.table or "")
            if not equals_ignore_case(principal_table, first_principal_table):
                return result.report_error(
                    DUPLICATE_FK_PRINCIPAL_TABLE_MISMATCH,
                    **_artifact_context(
                        fk, first, table,
                        value=principal_table,
                        other_value=first_principal_table,
                    ),
                )

            if _column_names(fk.properties) != _column_names(first.properties):
                return result.report_error(
                    DUPLICATE_FK_COLUMN_MISMATCH,
                    **_artifact_context(
                        fk, first, table,
                        value=format_columns(_column_names(fk.properties)),
                        other_value=format_columns(_column_names(first.properties)),
                    ),
                )

            principal_columns: List[str] = _column_names(fk.principal_key.properties)
            first_principal_columns: List[str] = _column_names(first.principal_key.properties)
            if principal_columns != first_principal_columns:
                return result.report_error(
                    DUPLICATE_FK_PRINCIPAL_COLUMN_MISMATCH,
                    **_artifact_context(
                        fk, first, table,
                        value=format_columns(principal_columns),
                        other_value=format_columns(first_principal_columns),
                    ),
                )

            if fk.is_unique != first.is_unique:
                return result.report_error(
                    DUPLICATE_FK_UNIQUENESS_MISMATCH,
                    **_artifact_context(
                        fk, first, table, value=fk.is_unique, other_value=first.is_unique
                    ),
                )

            if fk.delete_behavior != first.delete_behavior:
                return result.report_error(
                    DUPLICATE_FK_DELETE_BEHAVIOR_MISMATCH,
                    **_artifact_context(
                        fk, first, table,
                        value=fk.delete_behavior.value,
                        other_value=first.delete_behavior.value,
                    ),
                )

    return result


def validate_shared_indexes_compatibility(
    mapped_types: Sequence[EntityType], table: str
) -> ValidationResult:
    """Indexes with the same name must agree on columns and uniqueness."""
    result: ValidationResult = ValidationResult()
    indexes: Dict[str, Index] = {}

    for entity_type in mapped_types:
        for index in entity_type.get_declared_indexes():
            first: Optional[Index] = indexes.get(index.name)
            if first is None:
                indexes[index.name] = index
                continue

            if _column_names(index.properties) != _column_names(first.properties):
                return result.report_error(
                    DUPLICATE_INDEX_COLUMN_MISMATCH,
                    **_artifact_context(
                        index, first, table,
                        value=format_columns(_column_names(index.properties)),
                        other_value=format_columns(_column_names(first.properties)),
                    ),
                )

            if index.is_unique != first.is_unique:
                return result.report_error(
                    DUPLICATE_INDEX_UNIQUENESS_MISMATCH,
                    **_artifact_context(
                        index, first, table, value=index.is_unique, other_value=first.is_unique
                    ),
                )

    return result


def validate_table_group(mapped_types: Sequence[EntityType], table: str) -> ValidationResult:
    """Connectivity, then columns, keys, foreign keys and indexes; stops at the first error."""
    for check in (
        validate_shared_table_compatibility,
        validate_shared_columns_compatibility,
        validate_shared_keys_compatibility,
        validate_shared_foreign_keys_compatibility,
        validate_shared_indexes_compatibility,
    ):
        result: ValidationResult = check(mapped_types, table)
        if result.has_errors:
            logger.debug("Table '%s' failed %s.", table, check.__name__)
            return result
    return ValidationResult()


def validate_shared_tables(model: RelationalModel, fail_fast: bool = True) -> ValidationResult:
    """Validate every table group in declaration order."""
    result: ValidationResult = ValidationResult()
    tables: Dict[str, List[EntityType]] = group_entity_types_by_table(model)
    logger.debug("Grouped entity types into %d table(s).", len(tables))

    for table, mapped_types in tables.items():
        result.merge(validate_table_group(mapped_types, table))
        if fail_fast and result.has_errors:
            break
    return result


# ---------------------------------------------------------------------------
# Inheritance / discriminators
# ---------------------------------------------------------------------------


def validate_discriminator_values(root: EntityType) -> ValidationResult:
    """
    Every concrete member of the hierarchy under ``root`` needs a
    discriminator property and a value no other member uses.

    Values are compared type-strictly: ``"1"``, ``1`` and ``True`` differ.
    """
    result: ValidationResult = ValidationResult()
    hierarchy: List[EntityType] = root.get_derived_types_inclusive()
    if len(hierarchy) == 1:
        return result

    seen: Dict[Any, EntityType] = {}
    for entity_type in hierarchy:
        if not entity_type.is_instantiable:
            continue

        if entity_type.discriminator_property is None:
            return result.report_error(
                NO_DISCRIMINATOR_PROPERTY, entity_type=entity_type.display_name()
            )
        if entity_type.discriminator_value is None:
            return result.report_error(
                NO_DISCRIMINATOR_VALUE, entity_type=entity_type.display_name()
            )

        value: Any = entity_type.discriminator_value
        duplicate: Optional[EntityType] = seen.get(value_key(value))
        if duplicate is not None:
            return result.report_error(
                DUPLICATE_DISCRIMINATOR_VALUE,
                entity_type=entity_type.display_name(),
                value=value,
                other_entity_type=duplicate.display_name(),
            )
        seen[value_key(value)] = entity_type

    return result


def validate_inheritance_mapping(model: RelationalModel, fail_fast: bool = True) -> ValidationResult:
    """Validate discriminators for every root entity type, in declaration order."""
    result: ValidationResult = ValidationResult()
    for root in model.get_root_entity_types():
        result.merge(validate_discriminator_values(root))
        if fail_fast and result.has_errors:
            break
    return result


# ---------------------------------------------------------------------------
# Advisory checks
# ---------------------------------------------------------------------------


def validate_default_values_on_keys(model: RelationalModel) -> ValidationResult:
    """Warn about key properties with a default value (only used on insert)."""
    result: ValidationResult = ValidationResult()
    warned: Set[int] = set()
    for entity_type in model.get_entity_types():
        for key in entity_type.get_declared_keys():
            for prop in key.properties:
                if prop.default_value is None or id(prop) in warned:
                    continue
                warned.add(id(prop))
                result.report_warning(
                    KEY_DEFAULT_VALUE,
                    entity_type=prop.declaring_entity_type.display_name(),
                    property=prop.name,
                    value=prop.default_value,
                )
    return result


def validate_bools_with_defaults(model: RelationalModel) -> ValidationResult:
    """Warn about bool properties with a database default (False is never sent)."""
    result: ValidationResult = ValidationResult()
    for entity_type in model.get_entity_types():
        for prop in entity_type.get_declared_properties():
            if not is_bool_value_type(prop.value_type):
                continue
            if prop.default_value is not None or prop.default_value_sql is not None:
                result.report_warning(
                    BOOL_WITH_DEFAULT,
                    entity_type=entity_type.display_name(),
                    property=prop.name,
                )
    return result


# ---------------------------------------------------------------------------
# Database functions
# ---------------------------------------------------------------------------


def validate_db_functions(model: RelationalModel, fail_fast: bool = True) -> ValidationResult:
    """
    Each mapped function needs a store name.  Functions without a custom
    translation also need a return type and parameter types the dialect
    can map.
    """
    result: ValidationResult = ValidationResult()

    for function in model.db_functions:
        if fail_fast and result.has_errors:
            break

        if not function.function_name.strip():
            result.report_error(DB_FUNCTION_NAME_EMPTY, function=function.name)
            continue

        if function.has_translation:
            continue

        if not can_map(function.return_type, model.dialect):
            result.report_error(
                DB_FUNCTION_INVALID_RETURN_TYPE,
                function=function.name,
                value_type=function.return_type,
            )
            continue

        for parameter in function.parameters:
            if not can_map(parameter.value_type, model.dialect):
                result.report_error(
                    DB_FUNCTION_INVALID_PARAMETER_TYPE,
                    function=function.name,
                    parameter=parameter.name,
                    value_type=parameter.value_type,
                )
                break

    return result


# ---------------------------------------------------------------------------
# Composite entry points
# ---------------------------------------------------------------------------


def validate_model(
    model: RelationalModel,
    config: Optional[ValidationConfig] = None,
) -> ValidationResult:
    """
    **Master validation entry point.**

    Runs shared-table checks, inheritance mapping, the advisory checks and
    DB function checks in that order.  With ``config.fail_fast`` the pass
    ends at the first fatal error.
    """
    config = config or ValidationConfig()
    fail_fast: bool = config.fail_fast
    logger.info(
        "Starting validation: %d entity types, %d db functions, dialect=%s",
        len(model.get_entity_types()),
        len(model.db_functions),
        model.dialect.value,
    )

    result: ValidationResult = ValidationResult()

    steps: List[Callable[[], ValidationResult]] = [
        lambda: validate_shared_tables(model, fail_fast),
        lambda: validate_inheritance_mapping(model, fail_fast),
    ]
    if config.warn_on_key_default_values:
        steps.append(lambda: validate_default_values_on_keys(model))
    if config.warn_on_bools_with_defaults:
        steps.append(lambda: validate_bools_with_defaults(model))
    if config.validate_db_functions:
        steps.append(lambda: validate_db_functions(model, fail_fast))

    for step in steps:
        result.merge(step())
        if fail_fast and result.has_errors:
            break

    if result.has_errors:
        logger.error(
            "Validation FAILED with %d error(s). %s",
            result.error_count,
            result.summary(),
        )
    else:
        logger.info("Validation PASSED. %s", result.summary())

    return result


def validate_definition(
    definition: ModelDefinition,
    config: Optional[ValidationConfig] = None,
) -> ValidationResult:
    """Build the resolved graph for ``definition`` and validate it."""
    config = config or ValidationConfig()
    model: RelationalModel = build_relational_model(definition, config)
    return validate_model(model, config)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "group_entity_types_by_table",
    "validate_shared_table_compatibility",
    "validate_shared_columns_compatibility",
    "validate_shared_keys_compatibility",
    "validate_shared_foreign_keys_compatibility",
    "validate_shared_indexes_compatibility",
    "validate_table_group",
    "validate_shared_tables",
    "validate_discriminator_values",
    "validate_inheritance_mapping",
    "validate_default_values_on_keys",
    "validate_bools_with_defaults",
    "validate_db_functions",
    "validate_model",
    "validate_definition",
]

logger.debug("relcheck.validators loaded — %d public symbols.", len(__all__))
