# File: relcheck/typemap.py
"""
RelCheck - Store Type Mapping
==============================
Resolves the default store type of a property from its value type.

Value types are mapped to SQLAlchemy type objects, which are then compiled
against the configured dialect to get the DDL type string (``INTEGER``,
``VARCHAR(50)``, ``BIT``, ...).  A value type that has no mapping, or whose
SQLAlchemy type the dialect cannot render, resolves to ``None``.

Resolution results are cached per (value type, facets, dialect): a model
typically repeats the same handful of combinations thousands of times.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy import types as sqltypes
from sqlalchemy.dialects import mssql, mysql, oracle, postgresql, sqlite
from sqlalchemy.engine.interfaces import Dialect

from relcheck.models import DatabaseDialect

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relcheck.typemap")

# ---------------------------------------------------------------------------
# Value type names
# ---------------------------------------------------------------------------

_ALIASES: Dict[str, str] = {
    "integer": "int",
    "int32": "int",
    "long": "bigint",
    "int64": "bigint",
    "biginteger": "bigint",
    "short": "smallint",
    "int16": "smallint",
    "smallinteger": "smallint",
    "single": "float",
    "numeric": "decimal",
    "boolean": "bool",
    "string": "str",
    "text": "str",
    "binary": "bytes",
    "bytearray": "bytes",
    "timestamp": "datetime",
    "interval": "timedelta",
    "guid": "uuid",
}

# Value types whose properties are nullable unless configured otherwise.
NULLABLE_VALUE_TYPES = frozenset({"str", "bytes", "json"})

_DIALECT_FACTORIES: Dict[DatabaseDialect, Callable[[], Dialect]] = {
    DatabaseDialect.POSTGRESQL: postgresql.dialect,
    DatabaseDialect.MYSQL: mysql.dialect,
    DatabaseDialect.SQLITE: sqlite.dialect,
    DatabaseDialect.MSSQL: mssql.dialect,
    DatabaseDialect.ORACLE: oracle.dialect,
}


def normalize_value_type(value_type: str) -> str:
    """Lower-case the value type name and fold aliases onto canonical names."""
    name: str = value_type.strip().lower()
    return _ALIASES.get(name, name)


def is_nullable_value_type(value_type: str) -> bool:
    return normalize_value_type(value_type) in NULLABLE_VALUE_TYPES


def is_bool_value_type(value_type: str) -> bool:
    return normalize_value_type(value_type) == "bool"


@functools.lru_cache(maxsize=None)
def get_dialect(dialect: DatabaseDialect) -> Dialect:
    """Return a (shared) SQLAlchemy dialect instance; no DBAPI is loaded."""
    return _DIALECT_FACTORIES[DatabaseDialect(dialect)]()


def find_sqlalchemy_type(
    value_type: str,
    *,
    max_length: Optional[int] = None,
    precision: Optional[int] = None,
    scale: Optional[int] = None,
) -> Optional[sqltypes.TypeEngine]:
    """Map a value type to a SQLAlchemy type object, or ``None`` if unknown."""
    name: str = normalize_value_type(value_type)

    if name == "int":
        return sqltypes.Integer()
    if name == "bigint":
        return sqltypes.BigInteger()
    if name == "smallint":
        return sqltypes.SmallInteger()
    if name == "float":
        return sqltypes.Float()
    if name == "double":
        return sqltypes.Double()
    if name == "decimal":
        return sqltypes.Numeric(
            precision=precision if precision is not None else 18,
            scale=scale if scale is not None else 2,
        )
    if name == "bool":
        return sqltypes.Boolean()
    if name == "str":
        # Unbounded strings map to the dialect's large text type.
        return sqltypes.String(max_length) if max_length else sqltypes.Text()
    if name == "bytes":
        return sqltypes.LargeBinary(max_length) if max_length else sqltypes.LargeBinary()
    if name == "date":
        return sqltypes.Date()
    if name == "datetime":
        return sqltypes.DateTime()
    if name == "time":
        return sqltypes.Time()
    if name == "timedelta":
        return sqltypes.Interval()
    if name == "uuid":
        return sqltypes.Uuid()
    if name == "json":
        return sqltypes.JSON()
    return None


@functools.lru_cache(maxsize=None)
def resolve_store_type(
    value_type: str,
    dialect: DatabaseDialect,
    *,
    max_length: Optional[int] = None,
    precision: Optional[int] = None,
    scale: Optional[int] = None,
) -> Optional[str]:
    """
    Return the DDL store type for ``value_type`` under ``dialect``.

    Returns ``None`` when the value type is unknown or the dialect has no
    rendering for it (e.g. JSON on Oracle).
    """
    sa_type: Optional[sqltypes.TypeEngine] = find_sqlalchemy_type(
        value_type, max_length=max_length, precision=precision, scale=scale
    )
    if sa_type is None:
        logger.debug("No type mapping for value type '%s'.", value_type)
        return None

    try:
        return sa_type.compile(dialect=get_dialect(dialect))
    except sa_exc.CompileError as exc:
        logger.debug(
            "Dialect '%s' cannot render value type '%s': %s",
            DatabaseDialect(dialect).value,
            value_type,
            exc,
        )
        return None


def can_map(value_type: str, dialect: DatabaseDialect) -> bool:
    """True when ``value_type`` resolves to a store type under ``dialect``."""
    return resolve_store_type(value_type, dialect) is not None


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "NULLABLE_VALUE_TYPES",
    "normalize_value_type",
    "is_nullable_value_type",
    "is_bool_value_type",
    "get_dialect",
    "find_sqlalchemy_type",
    "resolve_store_type",
    "can_map",
]
