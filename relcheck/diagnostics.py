# File: relcheck/diagnostics.py
"""
RelCheck - Diagnostics
=======================
Error codes, the message catalogue, and the result containers returned by
every validator.

A check never raises on an invalid mapping.  It returns a
``ValidationResult``; the caller decides whether to halt.  Callers that prefer
exceptions can use ``ValidationResult.raise_if_invalid()``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relcheck.diagnostics")

# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

TABLE_AMBIGUOUS_ROOT: str = "TABLE_AMBIGUOUS_ROOT"
TABLE_NO_RELATIONSHIP: str = "TABLE_NO_RELATIONSHIP"
TABLE_KEY_NAME_MISMATCH: str = "TABLE_KEY_NAME_MISMATCH"

DUPLICATE_COLUMN_TYPE_MISMATCH: str = "DUPLICATE_COLUMN_TYPE_MISMATCH"
DUPLICATE_COLUMN_NULLABILITY_MISMATCH: str = "DUPLICATE_COLUMN_NULLABILITY_MISMATCH"
DUPLICATE_COLUMN_COMPUTED_SQL_MISMATCH: str = "DUPLICATE_COLUMN_COMPUTED_SQL_MISMATCH"
DUPLICATE_COLUMN_DEFAULT_VALUE_MISMATCH: str = "DUPLICATE_COLUMN_DEFAULT_VALUE_MISMATCH"
DUPLICATE_COLUMN_DEFAULT_SQL_MISMATCH: str = "DUPLICATE_COLUMN_DEFAULT_SQL_MISMATCH"

DUPLICATE_KEY_COLUMN_MISMATCH: str = "DUPLICATE_KEY_COLUMN_MISMATCH"

DUPLICATE_FK_PRINCIPAL_TABLE_MISMATCH: str = "DUPLICATE_FK_PRINCIPAL_TABLE_MISMATCH"
DUPLICATE_FK_COLUMN_MISMATCH: str = "DUPLICATE_FK_COLUMN_MISMATCH"
DUPLICATE_FK_PRINCIPAL_COLUMN_MISMATCH: str = "DUPLICATE_FK_PRINCIPAL_COLUMN_MISMATCH"
DUPLICATE_FK_UNIQUENESS_MISMATCH: str = "DUPLICATE_FK_UNIQUENESS_MISMATCH"
DUPLICATE_FK_DELETE_BEHAVIOR_MISMATCH: str = "DUPLICATE_FK_DELETE_BEHAVIOR_MISMATCH"

DUPLICATE_INDEX_COLUMN_MISMATCH: str = "DUPLICATE_INDEX_COLUMN_MISMATCH"
DUPLICATE_INDEX_UNIQUENESS_MISMATCH: str = "DUPLICATE_INDEX_UNIQUENESS_MISMATCH"

NO_DISCRIMINATOR_PROPERTY: str = "NO_DISCRIMINATOR_PROPERTY"
NO_DISCRIMINATOR_VALUE: str = "NO_DISCRIMINATOR_VALUE"
DUPLICATE_DISCRIMINATOR_VALUE: str = "DUPLICATE_DISCRIMINATOR_VALUE"

DB_FUNCTION_NAME_EMPTY: str = "DB_FUNCTION_NAME_EMPTY"
DB_FUNCTION_INVALID_RETURN_TYPE: str = "DB_FUNCTION_INVALID_RETURN_TYPE"
DB_FUNCTION_INVALID_PARAMETER_TYPE: str = "DB_FUNCTION_INVALID_PARAMETER_TYPE"

KEY_DEFAULT_VALUE: str = "KEY_DEFAULT_VALUE"
BOOL_WITH_DEFAULT: str = "BOOL_WITH_DEFAULT"

_CATEGORY_BY_PREFIX: Dict[str, str] = {
    "TABLE_": "shared_table",
    "DUPLICATE_COLUMN_": "column",
    "DUPLICATE_KEY_": "key",
    "DUPLICATE_FK_": "foreign_key",
    "DUPLICATE_INDEX_": "index",
    "NO_DISCRIMINATOR_": "inheritance",
    "DUPLICATE_DISCRIMINATOR_": "inheritance",
    "DB_FUNCTION_": "db_function",
    "KEY_DEFAULT_": "advisory",
    "BOOL_WITH_": "advisory",
}

# ---------------------------------------------------------------------------
# Message catalogue (str.format templates over the diagnostic context)
# ---------------------------------------------------------------------------

_MESSAGES: Dict[str, str] = {
    TABLE_AMBIGUOUS_ROOT: (
        "Cannot use table '{table}' for entity type '{entity_type}' since it "
        "is being used for entity type '{root}' and no relationship links "
        "the table to a single root: exactly one entity type mapped to it "
        "must have no base type and no identifying foreign key to another "
        "type in the table."
    ),
    TABLE_NO_RELATIONSHIP: (
        "Cannot use table '{table}' for entity type '{entity_type}' since it "
        "is being used for entity type '{root}' and there is no relationship "
        "between their primary keys."
    ),
    TABLE_KEY_NAME_MISMATCH: (
        "Cannot use table '{table}' for entity type '{other_entity_type}' "
        "since it is being used for entity type '{entity_type}' and the name "
        "'{other_key_name}' of the primary key {other_key_properties} does "
        "not match the name '{key_name}' of the primary key {key_properties}."
    ),
    DUPLICATE_COLUMN_TYPE_MISMATCH: (
        "'{entity_type}.{property}' and '{other_entity_type}.{other_property}' "
        "are both mapped to column '{column}' in '{table}' but are configured "
        "to use different data types ('{value}' and '{other_value}')."
    ),
    DUPLICATE_COLUMN_NULLABILITY_MISMATCH: (
        "'{entity_type}.{property}' and '{other_entity_type}.{other_property}' "
        "are both mapped to column '{column}' in '{table}' but are configured "
        "with different nullability."
    ),
    DUPLICATE_COLUMN_COMPUTED_SQL_MISMATCH: (
        "'{entity_type}.{property}' and '{other_entity_type}.{other_property}' "
        "are both mapped to column '{column}' in '{table}' but are configured "
        "to use different computed values ('{value}' and '{other_value}')."
    ),
    DUPLICATE_COLUMN_DEFAULT_VALUE_MISMATCH: (
        "'{entity_type}.{property}' and '{other_entity_type}.{other_property}' "
        "are both mapped to column '{column}' in '{table}' but are configured "
        "to use different default values ('{value}' and '{other_value}')."
    ),
    DUPLICATE_COLUMN_DEFAULT_SQL_MISMATCH: (
        "'{entity_type}.{property}' and '{other_entity_type}.{other_property}' "
        "are both mapped to column '{column}' in '{table}' but are configured "
        "to use different default SQL ('{value}' and '{other_value}')."
    ),
    DUPLICATE_KEY_COLUMN_MISMATCH: (
        "The key {properties} on '{entity_type}' and the key "
        "{other_properties} on '{other_entity_type}' are both mapped to "
        "'{table}.{name}' but with different columns ({value} and "
        "{other_value})."
    ),
    DUPLICATE_FK_PRINCIPAL_TABLE_MISMATCH: (
        "The foreign keys {properties} on '{entity_type}' and "
        "{other_properties} on '{other_entity_type}' are both mapped to "
        "'{table}.{name}' but referencing different principal tables "
        "('{value}' and '{other_value}')."
    ),
    DUPLICATE_FK_COLUMN_MISMATCH: (
        "The foreign keys {properties} on '{entity_type}' and "
        "{other_properties} on '{other_entity_type}' are both mapped to "
        "'{table}.{name}' but use different columns ({value} and "
        "{other_value})."
    ),
    DUPLICATE_FK_PRINCIPAL_COLUMN_MISMATCH: (
        "The foreign keys {properties} on '{entity_type}' and "
        "{other_properties} on '{other_entity_type}' are both mapped to "
        "'{table}.{name}' but referencing different principal columns "
        "({value} and {other_value})."
    ),
    DUPLICATE_FK_UNIQUENESS_MISMATCH: (
        "The foreign keys {properties} on '{entity_type}' and "
        "{other_properties} on '{other_entity_type}' are both mapped to "
        "'{table}.{name}' but with different uniqueness."
    ),
    DUPLICATE_FK_DELETE_BEHAVIOR_MISMATCH: (
        "The foreign keys {properties} on '{entity_type}' and "
        "{other_properties} on '{other_entity_type}' are both mapped to "
        "'{table}.{name}' but with different delete behavior "
        "('{value}' and '{other_value}')."
    ),
    DUPLICATE_INDEX_COLUMN_MISMATCH: (
        "The indexes {properties} on '{entity_type}' and {other_properties} "
        "on '{other_entity_type}' are both mapped to '{table}.{name}' but "
        "with different columns ({value} and {other_value})."
    ),
    DUPLICATE_INDEX_UNIQUENESS_MISMATCH: (
        "The indexes {properties} on '{entity_type}' and {other_properties} "
        "on '{other_entity_type}' are both mapped to '{table}.{name}' but "
        "with different uniqueness."
    ),
    NO_DISCRIMINATOR_PROPERTY: (
        "The entity type '{entity_type}' is part of a hierarchy, but does "
        "not have a discriminator property configured."
    ),
    NO_DISCRIMINATOR_VALUE: (
        "The entity type '{entity_type}' is part of a hierarchy, but does "
        "not have a discriminator value configured."
    ),
    DUPLICATE_DISCRIMINATOR_VALUE: (
        "The discriminator value for '{entity_type}' is '{value}' which is "
        "the same for '{other_entity_type}'. Every concrete entity type in "
        "the hierarchy needs to have a unique discriminator value."
    ),
    DB_FUNCTION_NAME_EMPTY: (
        "The database function '{function}' does not have a name set."
    ),
    DB_FUNCTION_INVALID_RETURN_TYPE: (
        "The database function '{function}' has an invalid return type "
        "'{value_type}'. Ensure that the return type can be mapped by the "
        "current provider."
    ),
    DB_FUNCTION_INVALID_PARAMETER_TYPE: (
        "The parameter '{parameter}' for the database function '{function}' "
        "has an invalid type '{value_type}'. Ensure the parameter type can be "
        "mapped by the current provider."
    ),
    KEY_DEFAULT_VALUE: (
        "The property '{property}' on entity type '{entity_type}' is part of "
        "a key and so cannot be modified or marked as modified. A default "
        "value is configured for it, which is used only when inserting."
    ),
    BOOL_WITH_DEFAULT: (
        "The 'bool' property '{property}' on entity type '{entity_type}' is "
        "configured with a database-generated default. This default will "
        "always be used for inserts when the property has the value 'false', "
        "since this is the CLR default for the 'bool' type."
    ),
}


def category_for(code: str) -> str:
    """Map a diagnostic code to its category (``general`` when unknown)."""
    for prefix, category in _CATEGORY_BY_PREFIX.items():
        if code.startswith(prefix):
            return category
    return "general"


def format_message(code: str, context: Dict[str, Any]) -> str:
    """Render the catalogue message for ``code`` from ``context``."""
    template: Optional[str] = _MESSAGES.get(code)
    if template is None:
        return f"{code}: {context}"
    return template.format(**context)


def format_properties(names: Sequence[str]) -> str:
    """``['Id', 'Name']`` → ``{'Id', 'Name'}``."""
    return "{" + ", ".join(f"'{n}'" for n in names) + "}"


def format_columns(names: Sequence[str]) -> str:
    """``['Id', 'Name']`` → ``{'Id', 'Name'}`` (column flavour, same shape)."""
    return format_properties(names)


def format_value(value: Any) -> str:
    """Render a configured value; ``None`` is shown as ``NULL``."""
    return "NULL" if value is None else str(value)


# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight diagnostic descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def category(self) -> str:
        return category_for(self.code)

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "category": self.category,
            "message": self.message,
            "context": self.context,
        }


class InvalidModelError(ValueError):
    """Raised by ``ValidationResult.raise_if_invalid`` for the first fatal error."""

    def __init__(self, error: ValidationError) -> None:
        super().__init__(error.message)
        self.error: ValidationError = error

    @property
    def code(self) -> str:
        return self.error.code


class ValidationResult:
    """
    Accumulates ``ValidationError`` instances produced by the pipeline.

    Items keep the order in which the checks found them, which is the
    stable order fail-fast reporting depends on.
    """

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def report_error(self, code: str, **context: Any) -> "ValidationResult":
        """Add an error whose message comes from the catalogue; returns self."""
        self.add_error(code, format_message(code, context), context)
        return self

    def report_warning(self, code: str, **context: Any) -> "ValidationResult":
        """Add a warning whose message comes from the catalogue; returns self."""
        message: str = format_message(code, context)
        logger.warning("%s: %s", code, message)
        self.add_warning(code, message, context)
        return self

    def merge(self, other: "ValidationResult") -> None:
        """Append the other result's items, keeping their order."""
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def first_error(self) -> Optional[ValidationError]:
        return next((e for e in self._items if e.is_error), None)

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def has_warnings(self) -> bool:
        return any(e.is_warning for e in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def raise_if_invalid(self) -> None:
        """Raise ``InvalidModelError`` for the first fatal diagnostic, if any."""
        error: Optional[ValidationError] = self.first_error
        if error is not None:
            raise InvalidModelError(error)

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), "
            f"{self.warning_count} warning(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }

    def format_report(self) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            prefix: str = "✗" if item.is_error else "⚠"
            lines.append(f"  {prefix} [{item.code}] {item.message}")
            for k, v in item.context.items():
                lines.append(f"       {k}: {v}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "TABLE_AMBIGUOUS_ROOT",
    "TABLE_NO_RELATIONSHIP",
    "TABLE_KEY_NAME_MISMATCH",
    "DUPLICATE_COLUMN_TYPE_MISMATCH",
    "DUPLICATE_COLUMN_NULLABILITY_MISMATCH",
    "DUPLICATE_COLUMN_COMPUTED_SQL_MISMATCH",
    "DUPLICATE_COLUMN_DEFAULT_VALUE_MISMATCH",
    "DUPLICATE_COLUMN_DEFAULT_SQL_MISMATCH",
    "DUPLICATE_KEY_COLUMN_MISMATCH",
    "DUPLICATE_FK_PRINCIPAL_TABLE_MISMATCH",
    "DUPLICATE_FK_COLUMN_MISMATCH",
    "DUPLICATE_FK_PRINCIPAL_COLUMN_MISMATCH",
    "DUPLICATE_FK_UNIQUENESS_MISMATCH",
    "DUPLICATE_FK_DELETE_BEHAVIOR_MISMATCH",
    "DUPLICATE_INDEX_COLUMN_MISMATCH",
    "DUPLICATE_INDEX_UNIQUENESS_MISMATCH",
    "NO_DISCRIMINATOR_PROPERTY",
    "NO_DISCRIMINATOR_VALUE",
    "DUPLICATE_DISCRIMINATOR_VALUE",
    "DB_FUNCTION_NAME_EMPTY",
    "DB_FUNCTION_INVALID_RETURN_TYPE",
    "DB_FUNCTION_INVALID_PARAMETER_TYPE",
    "KEY_DEFAULT_VALUE",
    "BOOL_WITH_DEFAULT",
    "category_for",
    "format_message",
    "format_properties",
    "format_columns",
    "format_value",
    "ValidationError",
    "InvalidModelError",
    "ValidationResult",
]
