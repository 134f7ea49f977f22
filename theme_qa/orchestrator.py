"""Sequences setup, create, capture and cleanup for one run.

State machine::

    idle -> setup -> create -> capture -> cleanup -> done
                       \\          \\
                        `----------`--> cleanup (forced) -> failed

Once the create phase yields a page id, a cleanup obligation is attached
to the run context; it is discharged by the normal cleanup phase or, when
anything fails, by a forced cleanup on the way out. A failing forced
cleanup is recorded next to the original error and never replaces it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import AsyncExitStack
from enum import Enum
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel

from theme_qa.errors import CaptureAborted, PhaseContractViolation, PhaseFailed, PhaseTimeout, QAError
from theme_qa.marker import MarkerStore
from theme_qa.models.config import QAConfig
from theme_qa.models.results import PhaseResult, RunReport
from theme_qa.phases.runner import PhaseRunner
from theme_qa.reporter import build_summary

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    SETUP = "setup"
    CREATE = "create"
    CAPTURE = "capture"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


class RunOptions(BaseModel):
    theme: str
    title: Optional[str] = None
    viewports: str = "all"
    skip_cleanup: bool = False
    screenshot_dir: str = "./screenshots"
    analyze: bool = False


class CleanupObligation:
    """A page that must be cleaned up before the run context closes."""

    def __init__(self, orchestrator: "Orchestrator", report: RunReport, page_id: str, skip: bool):
        self.orchestrator = orchestrator
        self.report = report
        self.page_id = page_id
        self.skip = skip
        self.discharged = False

    async def discharge(self, forced: bool = False) -> PhaseResult:
        self.discharged = True
        return await self.orchestrator._phase(
            self.report, RunState.CLEANUP,
            lambda: self.orchestrator.runner.cleanup(self.page_id, skip=self.skip),
            forced=forced,
        )

    async def __aenter__(self) -> "CleanupObligation":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is None or self.discharged:
            return False
        logger.warning("Run failed (%s); forcing cleanup of page %s", exc, self.page_id)
        try:
            await self.discharge(forced=True)
        except Exception as cleanup_exc:
            logger.error("Forced cleanup of page %s failed: %s", self.page_id, cleanup_exc)
            self.report.cleanup_error = str(cleanup_exc)
        return False


class Orchestrator:
    """Coordinates the four phases of one theme QA run."""

    def __init__(self, config: QAConfig, runner: PhaseRunner, marker: MarkerStore | None = None):
        self.config = config
        self.runner = runner
        self.marker = marker

    def run(self, options: RunOptions) -> RunReport:
        """Execute the complete setup -> create -> capture -> cleanup run."""
        return asyncio.run(self.run_async(options))

    async def run_async(self, options: RunOptions) -> RunReport:
        start = time.time()
        report = RunReport(
            theme=options.theme,
            viewports=options.viewports,
            started_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(start)),
        )
        self._transition(report, RunState.IDLE)
        logger.info("=== Theme QA run: %s on %s ===", options.theme, self.config.mautic_url)

        leftover = self.marker.get() if self.marker else None

        try:
            async with self.runner:
                async with AsyncExitStack() as run_context:
                    await self._phase(report, RunState.SETUP,
                                      lambda: self.runner.setup(options.screenshot_dir))

                    if leftover:
                        await self._delete_leftover(report, leftover)

                    page_id = await self._create(report, options, run_context, leftover)

                    obligation = CleanupObligation(self, report, page_id, options.skip_cleanup)
                    await run_context.enter_async_context(obligation)

                    await self._phase(report, RunState.CAPTURE, lambda: self.runner.capture(
                        report.page.preview_url, options.theme, options.viewports,
                        options.screenshot_dir, analyze=options.analyze, page_id=page_id,
                    ))

                    await obligation.discharge()
            report.success = True
            self._transition(report, RunState.DONE)
        except Exception as e:
            report.success = False
            report.error = str(e)
            report.error_kind = e.kind if isinstance(e, QAError) else type(e).__name__
            self._transition(report, RunState.FAILED)
            logger.error("Run failed in %s: %s", report.failed_phase or "startup", e)

        report.duration_seconds = round(time.time() - start, 2)
        report.summary = build_summary(report)
        logger.info("=== Run %s in %.1fs: %s ===",
                    "succeeded" if report.success else "failed",
                    report.duration_seconds, report.summary)
        return report

    async def _delete_leftover(self, report: RunReport, page_id: str) -> None:
        """Delete the page an earlier run left in the marker.

        The marker tracks one page at most, so create must not run while it
        still points at another one. On failure the marker is left as it is.
        """
        logger.warning("Marker still holds page %s from an earlier run; deleting it first", page_id)
        timeout = self.config.timeouts.cleanup
        try:
            try:
                result = await asyncio.wait_for(self.runner.cleanup(page_id), timeout)
            except asyncio.TimeoutError:
                raise PhaseTimeout(RunState.CLEANUP.value, timeout) from None
            if not isinstance(result, PhaseResult):
                raise PhaseContractViolation(f"Phase 'cleanup' returned {type(result).__name__}")
            if not result.success:
                raise PhaseFailed(result)
        except Exception as e:
            report.failed_phase = RunState.SETUP.value
            raise QAError(
                f"Page {page_id} from an earlier run could not be deleted ({e}); "
                f"run 'theme-qa phase cleanup {page_id}'"
            ) from e

        report.phases["leftover_cleanup"] = result
        logger.info("Leftover page %s: %s", page_id, result.summary)

    async def _create(
        self, report: RunReport, options: RunOptions, run_context: AsyncExitStack,
        leftover: str | None,
    ) -> str:
        try:
            result = await self._phase(report, RunState.CREATE,
                                       lambda: self.runner.create(options.theme, options.title))
        except Exception:
            # The page may exist even though create did not return, e.g. a
            # timeout after the id reached the marker
            orphan = self.marker.get() if self.marker else None
            if orphan and orphan != leftover:
                logger.warning("Create failed after persisting page %s", orphan)
                obligation = CleanupObligation(self, report, orphan, options.skip_cleanup)
                await run_context.enter_async_context(obligation)
            raise

        page = result.page_record()
        if page is None:
            report.failed_phase = RunState.CREATE.value
            raise PhaseContractViolation("Create phase reported success without a page id and preview URL")
        report.page = page
        return page.id

    async def _phase(
        self,
        report: RunReport,
        state: RunState,
        call: Callable[[], Awaitable[PhaseResult]],
        forced: bool = False,
    ) -> PhaseResult:
        """Run one phase under its timeout and fold its result into the report.

        Returns only successful results; failures raise.
        """
        self._transition(report, state)
        timeout = getattr(self.config.timeouts, state.value)
        logger.info("--- Phase: %s%s ---", state.value, " (forced)" if forced else "")
        phase_start = time.time()

        try:
            try:
                result = await asyncio.wait_for(call(), timeout)
            except asyncio.TimeoutError:
                raise PhaseTimeout(state.value, timeout) from None
            except CaptureAborted as e:
                self._record(report, state, e.partial)
                raise

            if not isinstance(result, PhaseResult):
                raise PhaseContractViolation(f"Phase '{state.value}' returned {type(result).__name__}")
            self._record(report, state, result)
            logger.info("--- Phase %s %s in %.1fs: %s ---",
                        state.value, "ok" if result.success else "FAILED",
                        time.time() - phase_start, result.summary)
            if not result.success:
                raise PhaseFailed(result)
        except Exception:
            if report.failed_phase is None:
                report.failed_phase = state.value
            raise
        return result

    @staticmethod
    def _record(report: RunReport, state: RunState, result: PhaseResult) -> None:
        report.phases[state.value] = result
        report.screenshots.extend(result.screenshots)
        report.issues.extend(result.issues)

    @staticmethod
    def _transition(report: RunReport, state: RunState) -> None:
        logger.debug("State: %s -> %s", report.state, state.value)
        report.state = state.value
        report.states.append(state.value)

