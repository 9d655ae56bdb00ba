"""Colored pipeline logger: ANSI-colored console logging for the import pipeline.

Every line is prefixed with the import id so interleaved imports stay
readable when several run at once.

Color scheme:
    🔵 Blue    Scraping
    🟡 Yellow  Media download
    🟣 Magenta Media upload
    🟠 Cyan    Recipe extraction
    🟢 Green   Recipe stored / ready
    🔴 Red     Errors, cancellation
    ⚪ Gray    Cleanup, details
"""

import logging
import time
from contextlib import contextmanager
from typing import Any


# ── ANSI Color Codes ─────────────────────────────────────────────────

class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    GRAY = "\033[90m"


# ── Pipeline Stage Definitions ───────────────────────────────────────

class PipelineStage:
    """Import pipeline stages with colors and icons."""

    SCRAPE = ("SCRAPE", _Colors.BLUE, "🔎")
    DOWNLOAD = ("DOWNLOAD", _Colors.YELLOW, "📥")
    UPLOAD = ("UPLOAD", _Colors.MAGENTA, "📤")
    EXTRACT = ("EXTRACT", _Colors.CYAN, "🤖")
    STORE = ("STORE", _Colors.GREEN, "💾")
    CLEANUP = ("CLEANUP", _Colors.GRAY, "🧹")
    PIPELINE = ("PIPELINE", _Colors.WHITE, "⚙️")
    CANCEL = ("CANCEL", _Colors.RED, "⛔")
    ERROR = ("ERROR", _Colors.RED, "❌")
    COMPLETE = ("COMPLETE", _Colors.GREEN, "✅")


# ── PipelineLogger ───────────────────────────────────────────────────

class PipelineLogger:
    """Color-coded logger for one component of the import pipeline.

    Usage:
        log = PipelineLogger("ImportPipeline")
        log.step_start(PipelineStage.SCRAPE, job_id, "Scraping post")
        log.detail(job_id, "caption", chars=512)
        log.step_complete(PipelineStage.SCRAPE, job_id, "Post scraped")
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)

    @staticmethod
    def _prefix(job_id: str | None) -> str:
        return f"{_Colors.DIM}[import {job_id}]{_Colors.RESET} " if job_id else ""

    @staticmethod
    def _details(kwargs: dict[str, Any]) -> str:
        if not kwargs:
            return ""
        details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
        return f" {_Colors.GRAY}({details}){_Colors.RESET}"

    def step_start(
        self, stage: tuple[str, str, str], job_id: str | None, message: str, **kwargs: Any
    ) -> None:
        label, color, icon = stage
        self._logger.info(
            f"{self._prefix(job_id)}{color}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{color}{message}{_Colors.RESET}{self._details(kwargs)}"
        )

    def step_complete(
        self, stage: tuple[str, str, str], job_id: str | None, message: str, **kwargs: Any
    ) -> None:
        label, color, icon = stage
        self._logger.info(
            f"{self._prefix(job_id)}{color}{icon} [{label}]{_Colors.RESET} "
            f"{_Colors.GREEN}✓ {message}{_Colors.RESET}{self._details(kwargs)}"
        )

    def step_warning(
        self, stage: tuple[str, str, str], job_id: str | None, message: str, **kwargs: Any
    ) -> None:
        label, _, icon = stage
        self._logger.warning(
            f"{self._prefix(job_id)}{_Colors.YELLOW}{icon} [{label}] {message}{_Colors.RESET}"
            f"{self._details(kwargs)}"
        )

    def step_error(
        self,
        stage: tuple[str, str, str],
        job_id: str | None,
        message: str,
        error: BaseException | None = None,
    ) -> None:
        label, _, icon = stage
        formatted = (
            f"{self._prefix(job_id)}{_Colors.RED}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{_Colors.RED}{message}{_Colors.RESET}"
        )
        if error:
            formatted += f" {_Colors.DIM}→ {type(error).__name__}: {error}{_Colors.RESET}"
        self._logger.error(formatted)

    def detail(self, job_id: str | None, message: str, **kwargs: Any) -> None:
        self._logger.info(
            f"{self._prefix(job_id)}   {_Colors.GRAY}├─ {message}{_Colors.RESET}{self._details(kwargs)}"
        )

    @contextmanager
    def timed_step(
        self, stage: tuple[str, str, str], job_id: str | None, message: str, **kwargs: Any
    ):
        """Context manager that logs start/end with elapsed time.

        Usage:
            with log.timed_step(PipelineStage.EXTRACT, job_id, "Extracting recipe"):
                data = await extractor.extract_recipe(...)
        """
        self.step_start(stage, job_id, message, **kwargs)
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            elapsed = time.perf_counter() - start
            self.step_error(stage, job_id, f"{message}: failed after {elapsed:.2f}s", error=e)
            raise
        else:
            elapsed = time.perf_counter() - start
            self.step_complete(stage, job_id, f"{message} ({elapsed:.2f}s)")
