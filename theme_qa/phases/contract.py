"""Phase result contract: one JSON object per phase on standard output.

Progress text may surround the object; the reader takes the outermost
``{...}`` span of the output and validates it as a PhaseResult.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import TextIO

from pydantic import ValidationError

from theme_qa.errors import PhaseContractViolation, QAError
from theme_qa.models.results import PhaseResult

logger = logging.getLogger(__name__)


def emit_result(result: PhaseResult, stream: TextIO | None = None) -> None:
    """Write the phase result object to ``stream`` (stdout by default)."""
    stream = stream or sys.stdout
    stream.write(result.model_dump_json(indent=2))
    stream.write("\n")
    stream.flush()


def extract_result(output: str, phase: str = "") -> PhaseResult:
    """Recover the PhaseResult from a phase's raw output.

    Raises PhaseContractViolation when no object can be found, parsed or
    validated, or when it names a different phase than expected.
    """
    first = output.find("{")
    last = output.rfind("}")
    if first == -1 or last <= first:
        raise PhaseContractViolation(
            f"No JSON object in output of phase '{phase or '?'}' ({len(output)} chars)"
        )

    try:
        data = json.loads(output[first:last + 1])
    except json.JSONDecodeError as e:
        logger.debug("Unparsable phase output:\n%s", output[-2000:])
        raise PhaseContractViolation(f"Phase '{phase or '?'}' emitted invalid JSON: {e}") from e

    try:
        result = PhaseResult.model_validate(data)
    except ValidationError as e:
        raise PhaseContractViolation(f"Phase '{phase or '?'}' result does not match schema: {e}") from e

    if phase and result.phase != phase:
        raise PhaseContractViolation(f"Expected result of phase '{phase}', got '{result.phase}'")
    return result


def failure_result(phase: str, error: BaseException) -> PhaseResult:
    """Turn a raised error into the failure object a phase process emits."""
    kind = error.kind if isinstance(error, QAError) else type(error).__name__
    result = PhaseResult(
        phase=phase,
        success=False,
        summary=f"{phase} failed: {error}",
        error=str(error),
        error_kind=kind,
    )
    partial = getattr(error, "partial", None)
    if isinstance(partial, PhaseResult):
        result.screenshots = partial.screenshots
        result.issues = partial.issues
        result.failures = partial.failures
        result.page_id = partial.page_id
    return result
