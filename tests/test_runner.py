"""
tests/test_runner.py
Unit tests for relcheck.runner: file loading, document parsing and the
ModelChecker pipeline.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Callable, Dict

import pytest
import yaml

from relcheck import diagnostics as codes
from relcheck.models import DatabaseDialect, ModelDefinition, ValidationConfig
from relcheck.runner import (
    EXIT_INPUT_ERROR,
    EXIT_OK,
    EXIT_VALIDATION_FAILED,
    CheckReport,
    ModelChecker,
    load_model_file,
    parse_raw_model,
)

EntityLookup = Callable[[Dict[str, Any], str], Dict[str, Any]]


def _write_yaml(path: pathlib.Path, data: Dict[str, Any]) -> pathlib.Path:
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False)
    return path


# ===========================================================================
# load_model_file
# ===========================================================================


class TestLoadModelFile:
    """JSON / YAML loading and extension dispatch."""

    def test_load_yaml(self, transport_yaml_path: pathlib.Path) -> None:
        raw = load_model_file(transport_yaml_path)
        assert raw["config"]["dialect"] == "postgresql"
        assert len(raw["model"]["entity_types"]) == 5

    def test_load_json(self, transport_json_path: pathlib.Path) -> None:
        raw = load_model_file(transport_json_path)
        assert set(raw) == {"config", "model"}

    def test_unknown_extension_falls_back(
        self, transport_document: Dict[str, Any], tmp_path: pathlib.Path
    ) -> None:
        as_json = tmp_path / "model.txt"
        as_json.write_text(json.dumps(transport_document), encoding="utf-8")
        as_yaml = _write_yaml(tmp_path / "model.conf", transport_document)
        assert load_model_file(as_json) == load_model_file(as_yaml)

    def test_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_model_file(tmp_path / "nope.yaml")

    def test_directory_is_rejected(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(ValueError, match="not a file"):
            load_model_file(tmp_path)

    def test_invalid_json(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid JSON"):
            load_model_file(path)

    def test_invalid_yaml(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("entity_types: [unclosed", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_model_file(path)

    def test_top_level_must_be_mapping(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        with pytest.raises(ValueError, match="JSON object"):
            load_model_file(path)


# ===========================================================================
# parse_raw_model
# ===========================================================================


class TestParseRawModel:
    """Accepted document layouts."""

    def test_nested_layout(self, transport_document: Dict[str, Any]) -> None:
        definition, config = parse_raw_model(transport_document)
        assert definition.entity_type_count == 5
        assert config.dialect is DatabaseDialect.POSTGRESQL

    def test_flat_layout(self, transport_model_dict: Dict[str, Any]) -> None:
        raw = dict(transport_model_dict, config={"fail_fast": False})
        definition, config = parse_raw_model(raw)
        assert definition.entity_type_count == 5
        assert config.fail_fast is False

    def test_alternate_key_names(self, transport_model_dict: Dict[str, Any]) -> None:
        raw = {
            "model_definition": transport_model_dict,
            "validation_config": {"dialect": "sqlite"},
        }
        _, config = parse_raw_model(raw)
        assert config.dialect is DatabaseDialect.SQLITE

    def test_config_defaults_when_absent(self, single_entity_dict: Dict[str, Any]) -> None:
        _, config = parse_raw_model(single_entity_dict)
        assert config == ValidationConfig()

    def test_missing_model(self) -> None:
        with pytest.raises(ValueError, match="Cannot find a model definition"):
            parse_raw_model({"config": {}})

    def test_model_must_be_mapping(self) -> None:
        with pytest.raises(ValueError, match="must be a mapping"):
            parse_raw_model({"model": ["Vehicle"]})

    def test_invalid_model(self) -> None:
        with pytest.raises(ValueError, match="Model validation failed"):
            parse_raw_model({"entity_types": [{"name": "NoKey"}]})

    @pytest.mark.parametrize("config", [5, "fast", ["fail_fast"]])
    def test_config_must_be_mapping(self, single_entity_dict: Dict[str, Any], config: Any) -> None:
        raw = dict(single_entity_dict, config=config)
        with pytest.raises(ValueError, match="Top-level key 'config' must be a mapping"):
            parse_raw_model(raw)

    def test_invalid_config(self, single_entity_dict: Dict[str, Any]) -> None:
        raw = dict(single_entity_dict, config={"dialect": "db2"})
        with pytest.raises(ValueError, match="Config validation failed"):
            parse_raw_model(raw)


# ===========================================================================
# ModelChecker
# ===========================================================================


class TestModelChecker:
    """End-to-end pipeline runs."""

    def test_check_file_valid(self, transport_yaml_path: pathlib.Path) -> None:
        report = ModelChecker().check_file(transport_yaml_path)
        assert report.success
        assert report.exit_code == EXIT_OK
        assert report.dialect == "postgresql"
        assert report.total_entity_types == 5
        assert report.total_tables == 2
        assert report.total_db_functions == 1
        assert [s.step_name for s in report.step_metrics] == [
            "Load Model File",
            "Parse Model",
            "Build Model Graph",
            "Validate Model",
        ]
        assert all(s.success for s in report.step_metrics)

    def test_check_file_json(self, transport_json_path: pathlib.Path) -> None:
        assert ModelChecker().check_file(transport_json_path).success

    def test_missing_file_is_input_error(self, tmp_path: pathlib.Path) -> None:
        report = ModelChecker().check_file(tmp_path / "missing.yaml")
        assert not report.success
        assert report.exit_code == EXIT_INPUT_ERROR
        assert report.result is None
        assert "not found" in report.input_errors[0]

    def test_parse_error_is_input_error(self, tmp_path: pathlib.Path) -> None:
        path = _write_yaml(tmp_path / "bad.yaml", {"entity_types": [{"name": "NoKey"}]})
        report = ModelChecker().check_file(path)
        assert report.exit_code == EXIT_INPUT_ERROR
        assert report.step_metrics[-1].step_name == "Parse Model"
        assert not report.step_metrics[-1].success

    def test_structure_error_is_input_error(
        self,
        transport_document: Dict[str, Any],
        entity_of: EntityLookup,
        tmp_path: pathlib.Path,
    ) -> None:
        operator = entity_of(transport_document["model"], "Operator")
        operator["indexes"] = [{"properties": ["Badge"]}]
        report = ModelChecker().check_file(_write_yaml(tmp_path / "model.yaml", transport_document))
        assert report.exit_code == EXIT_INPUT_ERROR
        assert "Badge" in report.input_errors[0]
        assert report.step_metrics[-1].step_name == "Build Model Graph"

    def test_validation_failure(
        self,
        transport_document: Dict[str, Any],
        entity_of: EntityLookup,
        tmp_path: pathlib.Path,
    ) -> None:
        entity_of(transport_document["model"], "Engine")["foreign_keys"] = []
        report = ModelChecker().check_file(_write_yaml(tmp_path / "model.yaml", transport_document))
        assert not report.success
        assert report.exit_code == EXIT_VALIDATION_FAILED
        assert [e.code for e in report.validation_errors] == [codes.TABLE_NO_RELATIONSHIP]
        assert report.step_metrics[-1].detail == "1 error(s)"

    def test_config_overrides_replace_document_config(
        self, transport_yaml_path: pathlib.Path
    ) -> None:
        report = ModelChecker().check_file(
            transport_yaml_path, config_overrides={"dialect": "mssql"}
        )
        assert report.success
        assert report.dialect == "mssql"

    @pytest.mark.parametrize("config", [5, "fast"])
    def test_overrides_with_scalar_config_is_input_error(
        self, transport_document: Dict[str, Any], tmp_path: pathlib.Path, config: Any
    ) -> None:
        transport_document["config"] = config
        path = _write_yaml(tmp_path / "model.yaml", transport_document)
        report = ModelChecker().check_file(path, config_overrides={"fail_fast": False})
        assert report.exit_code == EXIT_INPUT_ERROR
        assert report.input_errors == ["Top-level key 'config' must be a mapping."]
        assert report.step_metrics[-1].step_name == "Parse Model"

    def test_invalid_override_is_input_error(self, transport_yaml_path: pathlib.Path) -> None:
        report = ModelChecker().check_file(
            transport_yaml_path, config_overrides={"dialect": "db2"}
        )
        assert report.exit_code == EXIT_INPUT_ERROR
        assert "Config validation failed" in report.input_errors[0]

    def test_check_in_memory(self, transport_model_dict: Dict[str, Any]) -> None:
        definition = ModelDefinition.model_validate(transport_model_dict)
        report = ModelChecker().check(definition, ValidationConfig(dialect="sqlite"))
        assert report.success
        assert report.dialect == "sqlite"
        assert report.model_path == ""

    def test_collect_all_override(
        self, transport_document: Dict[str, Any], tmp_path: pathlib.Path
    ) -> None:
        transport_document["model"]["db_functions"] = [
            {"name": "Now", "return_type": "datetime"},
            {"name": "Today", "return_type": "date"},
        ]
        path = _write_yaml(tmp_path / "model.yaml", transport_document)
        fail_fast = ModelChecker().check_file(path)
        collected = ModelChecker().check_file(path, config_overrides={"fail_fast": False})
        assert len(fail_fast.validation_errors) == 1
        assert len(collected.validation_errors) == 2


class TestWarningsVerdict:
    """fail_on_warnings from the checker or the document config."""

    @pytest.fixture()
    def warning_model(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> ModelDefinition:
        entity_of(transport_model_dict, "Operator")["properties"][2]["default_value"] = False
        return ModelDefinition.model_validate(transport_model_dict)

    def test_warnings_pass_by_default(self, warning_model: ModelDefinition) -> None:
        report = ModelChecker().check(warning_model)
        assert report.success
        assert [w.code for w in report.validation_warnings] == [codes.BOOL_WITH_DEFAULT]
        assert report.step_metrics[-1].detail == "1 warning(s)"

    def test_checker_fail_on_warnings(self, warning_model: ModelDefinition) -> None:
        report = ModelChecker(fail_on_warnings=True).check(warning_model)
        assert not report.success
        assert report.exit_code == EXIT_VALIDATION_FAILED
        assert report.fail_on_warnings

    def test_config_fail_on_warnings(self, warning_model: ModelDefinition) -> None:
        report = ModelChecker().check(warning_model, ValidationConfig(fail_on_warnings=True))
        assert report.exit_code == EXIT_VALIDATION_FAILED


# ===========================================================================
# CheckReport
# ===========================================================================


class TestCheckReport:
    """Report rendering."""

    def test_empty_report_is_not_successful(self) -> None:
        report = CheckReport()
        assert not report.success
        assert report.exit_code == EXIT_VALIDATION_FAILED
        assert report.validation_errors == []

    def test_summary_lists_steps_and_errors(
        self, transport_model_dict: Dict[str, Any], entity_of: EntityLookup
    ) -> None:
        entity_of(transport_model_dict, "Engine")["primary_key"]["name"] = "PK_Engine"
        report = ModelChecker().check(ModelDefinition.model_validate(transport_model_dict))
        text = report.summary()
        assert "INVALID" in text
        assert "Build Model Graph" in text
        assert codes.TABLE_KEY_NAME_MISMATCH in text

    def test_summary_valid(self, transport_yaml_path: pathlib.Path) -> None:
        text = ModelChecker().check_file(transport_yaml_path).summary()
        assert "VALID" in text
        assert "INVALID" not in text
        assert "model.yaml" in text

    def test_to_dict_is_json_ready(self, transport_yaml_path: pathlib.Path) -> None:
        payload = json.loads(json.dumps(ModelChecker().check_file(transport_yaml_path).to_dict()))
        assert payload["success"] is True
        assert payload["entity_types"] == 5
        assert payload["tables"] == 2
        assert payload["errors"] == []
        assert payload["warnings"] == []
