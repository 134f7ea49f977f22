"""Error taxonomy for the theme QA workflow."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from theme_qa.models.results import PhaseResult


class QAError(Exception):
    """Base class for every error the workflow raises on purpose."""

    kind = "qa_error"


class ConfigError(QAError):
    """Missing or invalid URL / credentials. Fatal, never retried."""

    kind = "config_error"


class LoginError(QAError):
    kind = "login_error"


class ResolverError(QAError):
    """A snapshot query could not locate an expected element."""

    kind = "resolver_error"

    def __init__(self, message: str, row_matcher: str = "", control_matcher: str = "",
                 search_window: int | None = None):
        details = []
        if row_matcher:
            details.append(f"row={row_matcher}")
        if control_matcher:
            details.append(f"control={control_matcher}")
        if search_window is not None:
            details.append(f"window={search_window}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)
        self.row_matcher = row_matcher
        self.control_matcher = control_matcher
        self.search_window = search_window


class RowNotFound(ResolverError):
    """No snapshot line satisfied the row matcher."""

    kind = "row_not_found"


class ControlNotFound(ResolverError):
    """The row matched, but no control was found within the search window."""

    kind = "control_not_found"


class TemplateNotFoundError(ResolverError):
    kind = "template_not_found"


class StaleReferenceError(QAError):
    """An ElementRef was resolved against a page whose snapshot has moved on."""

    kind = "stale_reference"


class IdExtractionError(QAError):
    kind = "id_extraction_error"


class PhaseContractViolation(QAError):
    """A phase produced no parsable JSON result object."""

    kind = "phase_contract_violation"


class PhaseTimeout(QAError):
    kind = "phase_timeout"

    def __init__(self, phase: str, seconds: float):
        super().__init__(f"Phase '{phase}' timed out after {seconds:g}s")
        self.phase = phase
        self.seconds = seconds


class CaptureAborted(QAError):
    """A viewport failed under the abort policy; carries what was captured so far."""

    kind = "capture_aborted"

    def __init__(self, viewport: str, cause: BaseException, partial: PhaseResult):
        super().__init__(f"Capture aborted at viewport '{viewport}': {cause}")
        self.viewport = viewport
        self.cause = cause
        self.partial = partial


class AlreadyAbsent(QAError):
    """Cleanup target is not in the listing. Callers treat this as success."""

    kind = "already_absent"


class PhaseFailed(QAError):
    """A phase ran to completion and reported ``success: false``."""

    kind = "phase_failed"

    def __init__(self, result: PhaseResult):
        super().__init__(result.error or result.summary or f"Phase '{result.phase}' failed")
        self.result = result
        if result.error_kind:
            self.kind = result.error_kind
