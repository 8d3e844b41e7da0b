"""Parsers for compiler and style-checker output.

Both parsers accept arbitrary text and never raise: output that does not
look like what the tool normally prints becomes a synthetic diagnostic.
"""

import json
import os
import re

import structlog

from ..cache.models import Diagnostic, Severity

logger = structlog.get_logger("parsers.diagnostics")

# src/app.ts(12,5): error TS2322: Type 'string' is not assignable to type 'number'.
_COMPILER_LINE = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+),(?P<column>\d+)\):\s+"
    r"(?P<severity>error|warning|info)\s+(?P<code>TS\d+):\s+(?P<message>.+)$"
)
_COMPILER_NOISE = ("Found ", "Watching for file changes")


def parse_compiler_output(output: str, workspace_root: str | None = None) -> list[Diagnostic]:
    """Structured diagnostics from ``file(line,col): severity CODE: message`` lines."""
    diagnostics: list[Diagnostic] = []

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        match = _COMPILER_LINE.match(line)
        if match:
            file_path = match.group("file")
            if workspace_root and os.path.isabs(file_path):
                file_path = os.path.relpath(file_path, workspace_root)
            diagnostics.append(Diagnostic(
                file=file_path,
                line=int(match.group("line")),
                column=int(match.group("column")),
                rule=match.group("code"),
                message=match.group("message").strip(),
                severity=match.group("severity"),
            ))
        elif not any(noise in line for noise in _COMPILER_NOISE):
            diagnostics.append(Diagnostic(message=line, severity="error"))

    return diagnostics


def _as_int(value: object, default: int = 1) -> int:
    try:
        return int(value) or default
    except (TypeError, ValueError):
        return default


def _map_eslint_severity(severity: object) -> Severity:
    if severity == 2:
        return "error"
    if severity == 1:
        return "warning"
    return "info"


def parse_eslint_json(output: str, file_path: str | None = None) -> list[Diagnostic]:
    """Diagnostics from ``eslint --format json`` output."""
    if not output.strip():
        return []

    try:
        results = json.loads(output)
    except json.JSONDecodeError as e:
        logger.warning("Style checker output is not JSON", error=str(e))
        return [Diagnostic(
            file=file_path,
            line=1,
            column=1,
            rule="parse-error",
            message=output.strip()[:2000],
            severity="error",
        )]

    diagnostics: list[Diagnostic] = []
    if not isinstance(results, list):
        return diagnostics

    for file_result in results:
        if not isinstance(file_result, dict):
            continue
        messages = file_result.get("messages")
        if not isinstance(messages, list):
            continue
        for message in messages:
            if not isinstance(message, dict):
                continue
            diagnostics.append(Diagnostic(
                file=file_path,
                line=_as_int(message.get("line")),
                column=_as_int(message.get("column")),
                rule=str(message.get("ruleId") or "unknown"),
                message=str(message.get("message") or "Unknown lint issue"),
                severity=_map_eslint_severity(message.get("severity")),
            ))

    return diagnostics


def failure_diagnostic(tool: str, error: str | None, file_path: str | None = None) -> Diagnostic:
    """Single error diagnostic standing in for a run that produced nothing parseable."""
    return Diagnostic(
        file=file_path,
        message=f"{tool} failed: {error or 'no output'}",
        severity="error",
    )
