"""
Tool command adapter — run one external analyzer as a subprocess.

This is the bridge between a ToolDescriptor and the engine: it probes
for the binary, renders the argument template, runs the tool under a
timeout with the project as a read-only working directory, and hands
the captured output to the descriptor's parser.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any

from codeaudit.adapters.base import AnalysisContext, Analyzer
from codeaudit.adapters.parsers import ToolOutput, get_parser
from codeaudit.core.errors import (
    ToolExecutionError,
    ToolOutputParseError,
    ToolTimeout,
    ToolUnavailable,
)
from codeaudit.core.models.finding import Confidence, normalize_path
from codeaudit.core.models.tool import ToolDescriptor

logger = logging.getLogger(__name__)

# Probe calls must stay cheap
_PROBE_TIMEOUT = 5


class ToolCommandAdapter(Analyzer):
    """Run a ToolDescriptor's command and parse its output.

    Temporary output files live in a private directory that is removed
    before run() returns, whatever the outcome.
    """

    def __init__(self, descriptor: ToolDescriptor):
        self._descriptor = descriptor

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def descriptor(self) -> ToolDescriptor:
        return self._descriptor

    def is_available(self) -> bool:
        binary = shutil.which(self._descriptor.binary)
        if binary is None:
            return False
        if not self._descriptor.version_args:
            return True
        try:
            result = subprocess.run(
                [binary, *self._descriptor.version_args],
                capture_output=True,
                stdin=subprocess.DEVNULL,
                timeout=_PROBE_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired):
            return False
        return result.returncode == 0

    def run(self, context: AnalysisContext) -> list[Any]:
        d = self._descriptor
        if shutil.which(d.binary) is None:
            raise ToolUnavailable(d.name, f"'{d.binary}' not found on PATH")

        if d.uses_output_file:
            with tempfile.TemporaryDirectory(prefix=f"codeaudit-{d.name}-") as tmp:
                tmp_dir = Path(tmp)
                out_dir = tmp_dir / "out"
                out_dir.mkdir()
                args = render_command(d.command, context, tmp_dir / "output", out_dir)
                output = self._execute(args, context, tmp_dir / "output", out_dir)
        else:
            output = self._execute(render_command(d.command, context), context)

        parser = get_parser(d.parser)
        try:
            records = parser(output, context)
        except ToolOutputParseError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ToolOutputParseError(d.name, f"{d.parser} parser failed: {e}") from e

        return [self._stamp(r, context) for r in records]

    def _execute(
        self,
        args: list[str],
        context: AnalysisContext,
        output_file: Path | None = None,
        output_dir: Path | None = None,
    ) -> ToolOutput:
        d = self._descriptor
        cwd = context.scope.target
        logger.debug("Executing %s: %s (cwd=%s, timeout=%s)", d.name, args, cwd, context.timeout)
        start = time.monotonic()

        try:
            result = subprocess.run(
                args,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                errors="replace",
                stdin=subprocess.DEVNULL,
                timeout=context.timeout,
            )
        except subprocess.TimeoutExpired as e:
            # subprocess.run kills the child before re-raising
            raise ToolTimeout(d.name, context.timeout or 0.0) from e
        except FileNotFoundError as e:
            raise ToolUnavailable(d.name, str(e)) from e
        except OSError as e:
            raise ToolExecutionError(d.name, f"failed to launch: {e}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("%s exited with %d in %dms", d.name, result.returncode, elapsed_ms)

        if result.returncode not in d.ok_exit_codes:
            stderr = (result.stderr or "").strip()
            raise ToolExecutionError(
                d.name,
                f"exit code {result.returncode}: {stderr[-300:]}" if stderr
                else f"exit code {result.returncode}",
            )

        files = {}
        if output_file is not None and output_file.is_file():
            files["output"] = output_file.read_text(encoding="utf-8", errors="replace")
        if output_dir is not None:
            for path in sorted(output_dir.rglob("*")):
                if path.is_file():
                    files[str(path.relative_to(output_dir))] = path.read_text(
                        encoding="utf-8", errors="replace",
                    )

        return ToolOutput(
            tool=d.name,
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            files=files,
        )

    def _stamp(self, record: Any, context: AnalysisContext) -> Any:
        """Fill in the fields every tool record shares."""
        if not isinstance(record, dict):
            return record
        record.setdefault("category", context.category)
        record.setdefault("provenance", (self.name,))
        record.setdefault("confidence", Confidence.HIGH.value)
        if record.get("file"):
            record["file"] = relativize(str(record["file"]), context)
        return record


def render_command(
    template: tuple[str, ...],
    context: AnalysisContext,
    output_file: Path | None = None,
    output_dir: Path | None = None,
) -> list[str]:
    """Substitute placeholders in an argument template."""
    values = {
        "root": str(context.scope.root),
        "target": str(context.scope.target),
    }
    if output_file is not None:
        values["output"] = str(output_file)
    if output_dir is not None:
        values["output_dir"] = str(output_dir)
    rendered = []
    for arg in template:
        for key, value in values.items():
            arg = arg.replace("{" + key + "}", value)
        rendered.append(arg)
    return rendered


def relativize(file: str, context: AnalysisContext) -> str:
    """Express a tool-reported path relative to the project root.

    Tools report paths either absolute or relative to their working
    directory (the scope target).
    """
    root = context.scope.root.resolve()
    path = Path(file)
    if not path.is_absolute():
        path = (context.scope.target / path).resolve()
    else:
        path = path.resolve()
    try:
        return normalize_path(path.relative_to(root).as_posix())
    except ValueError:
        return normalize_path(file)
