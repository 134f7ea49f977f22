"""How the orchestrator invokes the four phases.

``InProcessPhaseRunner`` calls the phase functions directly and shares one
browser session across them. ``SubprocessPhaseRunner`` runs each phase as
``theme-qa phase <name> ...`` and reads its result through the JSON
contract, so every phase gets its own browser and process.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from contextlib import AsyncExitStack
from typing import Callable, Optional, Protocol

from theme_qa.analysis.base import Analyzer, build_analyzer
from theme_qa.errors import PhaseContractViolation
from theme_qa.marker import MarkerStore
from theme_qa.models.config import QAConfig
from theme_qa.models.results import PhaseResult
from theme_qa.phases.capture import run_capture
from theme_qa.phases.cleanup import run_cleanup
from theme_qa.phases.contract import extract_result
from theme_qa.phases.create import run_create
from theme_qa.phases.setup import run_setup
from theme_qa.session.client import connect

logger = logging.getLogger(__name__)

CONFIG_ENV = "THEME_QA_CONFIG_JSON"


class PhaseRunner(Protocol):
    async def __aenter__(self) -> "PhaseRunner": ...

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]: ...

    async def setup(self, screenshot_dir: str) -> PhaseResult: ...

    async def create(self, theme: str, title: str | None) -> PhaseResult: ...

    async def capture(
        self, preview_url: str, theme: str, viewports: str, screenshot_dir: str,
        analyze: bool = False, page_id: str | None = None,
    ) -> PhaseResult: ...

    async def cleanup(self, page_id: str | None, skip: bool = False) -> PhaseResult: ...


class InProcessPhaseRunner:
    """Runs phases as direct calls against one shared session client."""

    def __init__(
        self,
        config: QAConfig,
        marker: MarkerStore,
        client_factory: Callable = connect,
        analyzer_factory: Callable[[QAConfig, str], Analyzer] = build_analyzer,
    ):
        self.config = config
        self.marker = marker
        self.client_factory = client_factory
        self.analyzer_factory = analyzer_factory
        self.client = None
        self._stack: AsyncExitStack | None = None

    async def __aenter__(self) -> "InProcessPhaseRunner":
        self._stack = AsyncExitStack()
        self.client = await self._stack.enter_async_context(
            self.client_factory(headless=self.config.headless)
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        stack, self._stack = self._stack, None
        self.client = None
        if stack is not None:
            await stack.aclose()

    def _require_client(self):
        if self.client is None:
            raise RuntimeError("InProcessPhaseRunner must be entered with 'async with'")
        return self.client

    async def setup(self, screenshot_dir: str) -> PhaseResult:
        return await run_setup(self._require_client(), self.config, screenshot_dir)

    async def create(self, theme: str, title: str | None) -> PhaseResult:
        return await run_create(self._require_client(), self.config, self.marker, theme, title)

    async def capture(
        self, preview_url: str, theme: str, viewports: str, screenshot_dir: str,
        analyze: bool = False, page_id: str | None = None,
    ) -> PhaseResult:
        analyzer = self.analyzer_factory(self.config, theme) if analyze else None
        return await run_capture(
            self._require_client(), self.config, preview_url, theme,
            viewports=viewports, screenshot_dir=screenshot_dir,
            analyzer=analyzer, page_id=page_id,
        )

    async def cleanup(self, page_id: str | None, skip: bool = False) -> PhaseResult:
        return await run_cleanup(self._require_client(), self.config, self.marker, page_id, skip=skip)


class SubprocessPhaseRunner:
    """Runs each phase in its own ``theme-qa phase`` process."""

    def __init__(self, config: QAConfig, python: str | None = None):
        self.config = config
        self.python = python or sys.executable

    async def __aenter__(self) -> "SubprocessPhaseRunner":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def setup(self, screenshot_dir: str) -> PhaseResult:
        return await self._invoke("setup", screenshot_dir)

    async def create(self, theme: str, title: str | None) -> PhaseResult:
        return await self._invoke("create", theme, *([title] if title else []))

    async def capture(
        self, preview_url: str, theme: str, viewports: str, screenshot_dir: str,
        analyze: bool = False, page_id: str | None = None,
    ) -> PhaseResult:
        flags = ["--analyze"] if analyze else []
        if page_id:
            flags += ["--page-id", page_id]
        return await self._invoke("capture", *flags, preview_url, theme, viewports, screenshot_dir)

    async def cleanup(self, page_id: str | None, skip: bool = False) -> PhaseResult:
        flags = ["--skip"] if skip else []
        return await self._invoke("cleanup", *flags, *([page_id] if page_id else []))

    def command(self, phase: str, *args: str) -> list[str]:
        return [self.python, "-m", "theme_qa.cli", "phase", phase, *args]

    async def _invoke(self, phase: str, *args: str) -> PhaseResult:
        cmd = self.command(phase, *args)
        logger.debug("Spawning: %s", " ".join(cmd))
        env = {**os.environ, CONFIG_ENV: self.config.model_dump_json()}
        proc = await asyncio.create_subprocess_exec(
            *cmd, stdout=asyncio.subprocess.PIPE, env=env,
        )
        try:
            stdout, _ = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        output = stdout.decode("utf-8", errors="replace")
        result = extract_result(output, phase)
        if proc.returncode != 0 and result.success:
            raise PhaseContractViolation(
                f"Phase '{phase}' exited with {proc.returncode} but reported success"
            )
        logger.debug("Phase '%s' exited %d: %s", phase, proc.returncode, result.summary)
        return result
