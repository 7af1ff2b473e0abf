"""Console output formatting utilities for stepci."""

from __future__ import annotations

import sys
from typing import Callable, Optional


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, mask: Optional[Callable[[str], str]] = None):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            mask: Optional filter applied to every line (hides secret values)
        """
        self.debug = debug
        self.mask = mask

    def _emit(self, text: str, *, err: bool = False) -> None:
        if self.mask is not None:
            text = self.mask(text)
        print(text, file=sys.stderr if err else sys.stdout)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._emit(f"\n{title}")
        self._emit("-" * len(title))

    def print_pipeline_started(
        self,
        repository: str,
        workflow: str,
        pipeline: str,
        step_count: int,
    ) -> None:
        """Print run start information."""
        self._emit("\nPIPELINE STARTED")
        self._emit(f"Repository: {repository}")
        self._emit(f"Workflow: {workflow}")
        self._emit(f"Pipeline: {pipeline}")
        self._emit(f"Steps: {step_count}")
        self._emit("")

    def print_step(self, name: str) -> None:
        """Print step start message."""
        self._emit(f"\nSTEP: {name}")

    def print_output(self, text: str) -> None:
        """Print captured command output."""
        self._emit(text)

    def print_success(self, name: str) -> None:
        self._emit("STATUS: success")

    def print_step_skipped(self, name: str, reason: str) -> None:
        """Print step skipped message."""
        self._emit(f"\nSTEP: {name}")
        self._emit(f"STATUS: skipped ({reason})")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Step name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
        """
        self._emit(f"STEP FAILED: {name}")
        if exit_code is not None:
            self._emit(f"Exit code: {exit_code}")
        if hint:
            self._emit(f"Hint: {hint}")
        if self.debug:
            self._emit(f"Error details: {reason}")
        else:
            # first line only outside debug mode
            error_line = reason.split("\n")[0] if reason else ""
            if error_line:
                self._emit(f"Error: {error_line}")

    def print_cache_hit(self, key: str, reason: str) -> None:
        self._emit(f"CACHE: hit ({reason})")

    def print_cache_miss(self, reason: str) -> None:
        self._emit(f"CACHE: miss ({reason})" if reason != "cache miss" else "CACHE: miss")

    def print_cache_saved(self, key: str) -> None:
        short_key = key[:12] + "..." if len(key) > 12 else key
        self._emit(f"CACHE: saved ({short_key})")

    def print_plan_step(self, index: int, name: str, enabled: bool, kind: str) -> None:
        """Print one line of the static step plan."""
        state = "enabled" if enabled else "disabled"
        self._emit(f"  {index:>2}. {name} [{kind}, {state}]")

    def print_results(self, results: dict[str, str]) -> None:
        """Print final results summary."""
        self._emit("\n" + "=" * 40)
        self._emit("RESULTS")
        self._emit("=" * 40)
        for step, status in results.items():
            status_display = status.upper() if status != "ok" else "SUCCESS"
            self._emit(f"  {step}: {status_display}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """Print structured error message."""
        self._emit(f"\nERROR: {title}", err=True)
        self._emit(f"{message}", err=True)
        if details:
            for detail in details:
                self._emit(f"  {detail}", err=True)
        if suggestion:
            self._emit(f"\n{suggestion}", err=True)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            self._emit(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        self._emit(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
