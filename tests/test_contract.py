"""Tests for the phase result JSON contract."""

import io
import json

import pytest

from theme_qa.errors import CaptureAborted, ConfigError, PhaseContractViolation
from theme_qa.models.results import PhaseResult, ScreenshotRecord
from theme_qa.phases.contract import emit_result, extract_result, failure_result


def _result(**kwargs) -> PhaseResult:
    defaults = dict(phase="create", page_id="42", preview_url="https://m.example/page/preview/42",
                    summary="Created page 42")
    defaults.update(kwargs)
    return PhaseResult(**defaults)


class TestEmitResult:
    def test_writes_one_json_object(self):
        stream = io.StringIO()
        emit_result(_result(), stream)
        data = json.loads(stream.getvalue())
        assert data["phase"] == "create"
        assert data["page_id"] == "42"
        assert data["success"] is True


class TestExtractResult:
    def test_plain_object(self):
        stream = io.StringIO()
        emit_result(_result(), stream)
        assert extract_result(stream.getvalue(), "create") == _result()

    def test_object_surrounded_by_progress_text(self):
        body = _result().model_dump_json()
        output = "Logging in...\nSelecting theme\n" + body + "\nDone.\n"
        assert extract_result(output, "create").page_id == "42"

    def test_nested_braces_are_kept(self):
        result = _result(summary="theme {logan}")
        output = "progress\n" + result.model_dump_json(indent=2) + "\n"
        assert extract_result(output).summary == "theme {logan}"

    def test_no_object(self):
        with pytest.raises(PhaseContractViolation, match="No JSON object"):
            extract_result("Traceback (most recent call last):\n  boom\n", "capture")

    def test_invalid_json(self):
        with pytest.raises(PhaseContractViolation, match="invalid JSON"):
            extract_result('{"phase": "create", "success": tru}', "create")

    def test_schema_mismatch(self):
        with pytest.raises(PhaseContractViolation, match="schema"):
            extract_result('{"success": true}', "create")

    def test_wrong_phase(self):
        with pytest.raises(PhaseContractViolation, match="Expected result of phase 'cleanup'"):
            extract_result(_result().model_dump_json(), "cleanup")

    def test_empty_output(self):
        with pytest.raises(PhaseContractViolation):
            extract_result("", "setup")


class TestFailureResult:
    def test_qa_error_kind(self):
        result = failure_result("setup", ConfigError("Missing configuration: password (MAUTIC_PASSWORD)"))
        assert result.success is False
        assert result.error_kind == "config_error"
        assert "MAUTIC_PASSWORD" in result.error

    def test_foreign_error_kind_is_class_name(self):
        result = failure_result("capture", RuntimeError("browser crashed"))
        assert result.error_kind == "RuntimeError"

    def test_keeps_partial_capture(self):
        partial = PhaseResult(
            phase="capture",
            page_id="42",
            screenshots=[ScreenshotRecord(viewport="mobile-414x896", width=414, height=896, path="a.png")],
        )
        error = CaptureAborted("mobile-390x844", RuntimeError("crash"), partial)
        result = failure_result("capture", error)
        assert result.error_kind == "capture_aborted"
        assert result.page_id == "42"
        assert [s.viewport for s in result.screenshots] == ["mobile-414x896"]
