# File: relcheck/__init__.py
"""
RelCheck — Relational Mapping Validator
========================================

Validates an entity model before it is turned into a relational schema:
entity types that share a table must be provably related and agree on every
shared column, key, foreign key and index, and the members of an
inheritance hierarchy must be told apart by unique discriminator values.

Architecture overview::

    ┌──────────────┐     ┌───────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│  ModelChecker  │────▶│    validators    │
    │   (cli.py)   │     │  (runner.py)   │     │      (.py)       │
    └──────────────┘     └───────┬───────┘     └────────┬─────────┘
                                 │                      │
                    ┌────────────┼────────────┐         ▼
                    ▼            ▼            ▼   ┌───────────┐
             ┌──────────┐ ┌───────────┐ ┌────────┐│diagnostics│
             │  models  │ │ metadata  │ │typemap ││   (.py)   │
             │  (.py)   │ │  (.py)    │ │ (.py)  │└───────────┘
             └──────────┘ └───────────┘ └────────┘

Usage::

    # As a library
    from relcheck import ModelDefinition, ValidationConfig, validate_definition
    result = validate_definition(ModelDefinition.model_validate(doc))
    result.raise_if_invalid()

    # From the command line
    python -m relcheck --model model.yaml --collect-all -v

Public API:
    - ModelChecker           — file/object pipeline producing a CheckReport
    - ModelDefinition        — input model (Pydantic)
    - ValidationConfig       — validation settings (Pydantic)
    - build_relational_model — resolve a definition into the model graph
    - validate_model         — validate a resolved graph
    - validate_definition    — build + validate in one call
    - ValidationResult       — diagnostics container
"""

from __future__ import annotations

__version__: str = "1.0.0"
__author__: str = "RelCheck Team"
__license__: str = "MIT"

from relcheck.models import (
    DatabaseDialect,
    DbFunctionDef,
    DbFunctionParameterDef,
    DeleteBehavior,
    EntityTypeDef,
    ForeignKeyDef,
    IndexDef,
    KeyDef,
    ModelDefinition,
    PropertyDef,
    ValidationConfig,
)
from relcheck.metadata import (
    EntityType,
    ModelStructureError,
    RelationalModel,
    TableIdentity,
    build_relational_model,
)
from relcheck.diagnostics import InvalidModelError, ValidationError, ValidationResult
from relcheck.validators import validate_definition, validate_model
from relcheck.runner import CheckReport, ModelChecker, load_model_file, parse_raw_model

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Orchestrator
    "ModelChecker",
    "CheckReport",
    "load_model_file",
    "parse_raw_model",
    # Input models
    "DatabaseDialect",
    "DbFunctionDef",
    "DbFunctionParameterDef",
    "DeleteBehavior",
    "EntityTypeDef",
    "ForeignKeyDef",
    "IndexDef",
    "KeyDef",
    "ModelDefinition",
    "PropertyDef",
    "ValidationConfig",
    # Resolved graph
    "EntityType",
    "ModelStructureError",
    "RelationalModel",
    "TableIdentity",
    "build_relational_model",
    # Validation
    "validate_model",
    "validate_definition",
    "ValidationError",
    "ValidationResult",
    "InvalidModelError",
]
