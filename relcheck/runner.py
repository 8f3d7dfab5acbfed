# File: relcheck/runner.py
"""
RelCheck - Check Pipeline (Orchestrator)
=========================================
Connects every phase of a check run:

    Model file → Pydantic parse → resolved graph → validation → report

The ``ModelChecker`` class provides both a programmatic API and the backend
for the CLI.

Workflow::

    1. Load the model document from a JSON/YAML file (or accept objects).
    2. Parse into ``ModelDefinition`` + ``ValidationConfig`` (models.py).
    3. Build the ``RelationalModel`` graph (metadata.py).
    4. Run the validation pipeline (validators.py).
    5. Return a ``CheckReport`` with step metrics and the verdict.

Error handling strategy:
    - Input problems (missing file, bad JSON/YAML, structurally invalid
      model) are recorded as input errors; the pipeline stops there.
    - Mapping problems are validation diagnostics carried by the report's
      ``ValidationResult``.
    - ``fail_on_warnings`` turns advisory warnings into a failed verdict.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pydantic
import yaml

from relcheck.diagnostics import ValidationError, ValidationResult
from relcheck.metadata import ModelStructureError, RelationalModel, build_relational_model
from relcheck.models import ModelDefinition, ValidationConfig
from relcheck.utils import Timer
from relcheck.validators import group_entity_types_by_table, validate_model

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relcheck.runner")

# Exit codes shared with the CLI
EXIT_OK: int = 0
EXIT_VALIDATION_FAILED: int = 1
EXIT_INPUT_ERROR: int = 2

_MODEL_KEYS: Tuple[str, ...] = ("model", "model_definition")
_CONFIG_KEYS: Tuple[str, ...] = ("config", "validation_config")


# ---------------------------------------------------------------------------
# Check report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class CheckStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class CheckReport:
    """
    Report produced by ``ModelChecker.check()`` / ``check_file()``.

    ``input_errors`` holds problems that prevented validation from running;
    ``result`` holds the validation diagnostics when it did run.
    """

    success: bool = False
    model_path: str = ""
    dialect: str = ""
    fail_on_warnings: bool = False

    # Metrics
    total_entity_types: int = 0
    total_tables: int = 0
    total_db_functions: int = 0
    total_elapsed_seconds: float = 0.0

    step_metrics: List[CheckStepMetric] = field(default_factory=list)
    input_errors: List[str] = field(default_factory=list)
    result: Optional[ValidationResult] = None

    @property
    def validation_errors(self) -> List[ValidationError]:
        return self.result.errors if self.result is not None else []

    @property
    def validation_warnings(self) -> List[ValidationError]:
        return self.result.warnings if self.result is not None else []

    @property
    def exit_code(self) -> int:
        if self.input_errors:
            return EXIT_INPUT_ERROR
        return EXIT_OK if self.success else EXIT_VALIDATION_FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "model_path": self.model_path,
            "dialect": self.dialect,
            "entity_types": self.total_entity_types,
            "tables": self.total_tables,
            "db_functions": self.total_db_functions,
            "elapsed_seconds": round(self.total_elapsed_seconds, 6),
            "input_errors": list(self.input_errors),
            "errors": [e.to_dict() for e in self.validation_errors],
            "warnings": [w.to_dict() for w in self.validation_warnings],
        }

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ VALID" if self.success else "❌ INVALID"
        lines.append(f"{'='*60}")
        lines.append("  RelCheck — Model Validation Report")
        lines.append(f"{'='*60}")
        lines.append(f"  Status:           {status}")
        if self.model_path:
            lines.append(f"  Model:            {self.model_path}")
        if self.dialect:
            lines.append(f"  Dialect:          {self.dialect}")
        lines.append(f"  Entity types:     {self.total_entity_types}")
        lines.append(f"  Tables:           {self.total_tables}")
        lines.append(f"  DB functions:     {self.total_db_functions}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        lines.append(f"{'─'*60}")

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<28s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )

        if self.input_errors:
            lines.append(f"{'─'*60}")
            lines.append(f"  Input Errors ({len(self.input_errors)}):")
            for err in self.input_errors:
                lines.append(f"    ✗ {err}")

        errors: List[ValidationError] = self.validation_errors
        if errors:
            lines.append(f"{'─'*60}")
            lines.append(f"  Validation Errors ({len(errors)}):")
            for error in errors:
                lines.append(f"    ✗ [{error.code}] {error.message}")

        warnings: List[ValidationError] = self.validation_warnings
        if warnings:
            lines.append(f"{'─'*60}")
            lines.append(f"  Validation Warnings ({len(warnings)}):")
            for warning in warnings:
                lines.append(f"    ⚠ [{warning.code}] {warning.message}")

        lines.append(f"{'='*60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Model loader helpers
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    """Load and parse a JSON file. Raises ValueError on parse errors."""
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a JSON object at top level, got {type(data).__name__}."
        )
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file. Raises ValueError on parse errors."""
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a YAML mapping at top level, got {type(data).__name__}."
        )
    return data


def load_model_file(path: Path) -> Dict[str, Any]:
    """
    Load a model document (JSON or YAML), dispatching on the extension.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Model file not found: {path}")

    if not path.is_file():
        raise ValueError(f"Model path is not a file: {path}")

    suffix: str = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    elif suffix == ".json":
        return _load_json_file(path)
    else:
        logger.info("Unknown extension '%s' — trying JSON then YAML.", suffix)
        try:
            return _load_json_file(path)
        except ValueError:
            return _load_yaml_file(path)


def _find_config_key(raw: Dict[str, Any]) -> Optional[str]:
    return next((k for k in _CONFIG_KEYS if k in raw), None)


def parse_raw_model(raw: Dict[str, Any]) -> Tuple[ModelDefinition, ValidationConfig]:
    """
    Parse a raw dictionary (from JSON/YAML) into validated Pydantic models.

    Accepted layouts:
        - ``{"model": {"entity_types": [...], "db_functions": [...]}, "config": {...}}``
        - ``{"entity_types": [...], "db_functions": [...], "config": {...}}``

    Raises:
        ValueError: If the model can't be found or fails validation.
    """
    model_data: Optional[Dict[str, Any]] = None
    for key in _MODEL_KEYS:
        if key in raw:
            if not isinstance(raw[key], dict):
                raise ValueError(f"Top-level key '{key}' must be a mapping.")
            model_data = raw[key]
            break

    if model_data is None:
        if "entity_types" not in raw:
            raise ValueError(
                "Cannot find a model definition in input. "
                "Expected top-level key: 'model', 'model_definition' or 'entity_types'."
            )
        model_data = {
            k: v for k, v in raw.items() if k in ("entity_types", "db_functions")
        }

    config_key: Optional[str] = _find_config_key(raw)
    config_data: Any = raw.get(config_key) if config_key else None
    if config_data is None:
        logger.info("No validation config found in input — using defaults.")
        config_data = {}
    elif not isinstance(config_data, dict):
        raise ValueError(f"Top-level key '{config_key}' must be a mapping.")

    try:
        definition: ModelDefinition = ModelDefinition.model_validate(model_data)
    except pydantic.ValidationError as exc:
        raise ValueError(f"Model validation failed: {exc}") from exc

    try:
        config: ValidationConfig = ValidationConfig.model_validate(config_data)
    except pydantic.ValidationError as exc:
        raise ValueError(f"Config validation failed: {exc}") from exc

    return definition, config


# ---------------------------------------------------------------------------
# ModelChecker — orchestrator
# ---------------------------------------------------------------------------


class ModelChecker:
    """
    Pipeline orchestrator for model validation.

    Usage::

        checker = ModelChecker()

        # From a file
        report = checker.check_file(Path("model.yaml"))

        # From in-memory objects
        report = checker.check(definition, ValidationConfig(fail_fast=False))

        print(report.summary())

    The checker is reusable — create once, call check() many times.
    """

    def __init__(self, *, fail_on_warnings: bool = False) -> None:
        """
        Args:
            fail_on_warnings: Treat advisory warnings as a failed verdict
                even when the config does not ask for it.
        """
        self._fail_on_warnings: bool = fail_on_warnings
        logger.debug("ModelChecker initialised: fail_on_warnings=%s.", fail_on_warnings)

    # -----------------------------------------------------------------
    # Public: check from file
    # -----------------------------------------------------------------

    def check_file(
        self,
        model_path: Path,
        *,
        config_overrides: Optional[Dict[str, Any]] = None,
    ) -> CheckReport:
        """
        Full pipeline: load file → parse → build graph → validate.

        Args:
            model_path: Path to a JSON/YAML model document.
            config_overrides: Values that replace the document's ``config``.
        """
        model_path = Path(model_path)
        report: CheckReport = CheckReport(model_path=str(model_path))

        with Timer("load_model") as t_load:
            try:
                raw_data: Dict[str, Any] = load_model_file(model_path)
            except (FileNotFoundError, ValueError) as exc:
                raw_data = {}
                load_error: Optional[str] = str(exc)
            else:
                load_error = None

        if load_error is not None:
            return self._fail_input(report, "Load Model File", t_load.elapsed, load_error)

        logger.info("Loaded model file: %s (%d top-level keys).", model_path, len(raw_data))
        report.step_metrics.append(CheckStepMetric(
            step_name="Load Model File",
            success=True,
            elapsed_seconds=t_load.elapsed,
            detail=f"from {model_path.name}",
        ))

        with Timer("parse_model") as t_parse:
            try:
                if config_overrides:
                    config_key: str = _find_config_key(raw_data) or "config"
                    existing: Any = raw_data.get(config_key)
                    if existing is not None and not isinstance(existing, dict):
                        raise ValueError(f"Top-level key '{config_key}' must be a mapping.")
                    merged: Dict[str, Any] = dict(existing or {})
                    merged.update(config_overrides)
                    raw_data[config_key] = merged
                definition, config = parse_raw_model(raw_data)
            except ValueError as exc:
                parse_error: Optional[str] = str(exc)
            else:
                parse_error = None

        if parse_error is not None:
            return self._fail_input(
                report, "Parse Model", t_load.elapsed + t_parse.elapsed, parse_error
            )

        report.step_metrics.append(CheckStepMetric(
            step_name="Parse Model",
            success=True,
            elapsed_seconds=t_parse.elapsed,
            detail=f"{definition.entity_type_count} entity types parsed",
        ))

        return self._run_pipeline(definition, config, report)

    # -----------------------------------------------------------------
    # Public: check in-memory objects
    # -----------------------------------------------------------------

    def check(
        self,
        definition: ModelDefinition,
        config: Optional[ValidationConfig] = None,
    ) -> CheckReport:
        """Run the pipeline on an already-parsed model definition."""
        return self._run_pipeline(definition, config or ValidationConfig(), CheckReport())

    # -----------------------------------------------------------------
    # Internal: pipeline
    # -----------------------------------------------------------------

    def _run_pipeline(
        self,
        definition: ModelDefinition,
        config: ValidationConfig,
        report: CheckReport,
    ) -> CheckReport:
        pipeline_start: float = time.perf_counter()
        report.dialect = config.dialect.value
        report.fail_on_warnings = self._fail_on_warnings or config.fail_on_warnings

        model: Optional[RelationalModel] = self._step_build(definition, config, report)
        if model is None:
            return self._finalise_report(report, time.perf_counter() - pipeline_start)

        self._step_validate(model, config, report)
        return self._finalise_report(report, time.perf_counter() - pipeline_start)

    def _step_build(
        self,
        definition: ModelDefinition,
        config: ValidationConfig,
        report: CheckReport,
    ) -> Optional[RelationalModel]:
        """Resolve the graph; structural problems become input errors."""
        with Timer("build_model") as t:
            try:
                model: Optional[RelationalModel] = build_relational_model(definition, config)
            except ModelStructureError as exc:
                model = None
                report.input_errors.append(str(exc))
                logger.error("Model structure error: %s", exc)

        if model is None:
            report.step_metrics.append(CheckStepMetric(
                step_name="Build Model Graph",
                success=False,
                elapsed_seconds=t.elapsed,
                detail=report.input_errors[-1],
            ))
            return None

        report.total_entity_types = len(model.get_entity_types())
        report.total_tables = len(group_entity_types_by_table(model))
        report.total_db_functions = len(model.db_functions)
        report.step_metrics.append(CheckStepMetric(
            step_name="Build Model Graph",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{report.total_entity_types} entity types, {report.total_tables} tables",
        ))
        return model

    def _step_validate(
        self,
        model: RelationalModel,
        config: ValidationConfig,
        report: CheckReport,
    ) -> None:
        with Timer("validation") as t:
            result: ValidationResult = validate_model(model, config)
        report.result = result

        if result.has_errors:
            detail: str = f"{result.error_count} error(s)"
            for err in result.errors:
                logger.error("  ✗ %s", err)
        elif result.has_warnings:
            detail = f"{result.warning_count} warning(s)"
        else:
            detail = "all checks passed"

        report.step_metrics.append(CheckStepMetric(
            step_name="Validate Model",
            success=result.is_valid,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))

    # -----------------------------------------------------------------
    # Internal: report helpers
    # -----------------------------------------------------------------

    def _fail_input(
        self,
        report: CheckReport,
        step_name: str,
        elapsed: float,
        message: str,
    ) -> CheckReport:
        logger.error("%s failed: %s", step_name, message)
        report.input_errors.append(message)
        report.step_metrics.append(CheckStepMetric(
            step_name=step_name,
            success=False,
            elapsed_seconds=elapsed,
            detail=message,
        ))
        return self._finalise_report(report, elapsed)

    def _finalise_report(
        self,
        report: CheckReport,
        total_elapsed: float,
    ) -> CheckReport:
        """Set final status and timing on the report."""
        report.total_elapsed_seconds = total_elapsed

        result: Optional[ValidationResult] = report.result
        failed: bool = (
            bool(report.input_errors)
            or result is None
            or result.has_errors
            or (report.fail_on_warnings and result.has_warnings)
        )
        report.success = not failed
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "EXIT_OK",
    "EXIT_VALIDATION_FAILED",
    "EXIT_INPUT_ERROR",
    "CheckStepMetric",
    "CheckReport",
    "ModelChecker",
    "load_model_file",
    "parse_raw_model",
]

logger.debug("relcheck.runner loaded.")
