"""Process execution for external checkers."""

import asyncio
from dataclasses import dataclass

import structlog

logger = structlog.get_logger("utils.process")


@dataclass
class CommandResult:
    """Captured outcome of one checker invocation."""

    success: bool
    output: str
    error: str | None = None
    exit_code: int | None = None
    launched: bool = True
    stderr: str = ""


async def run_command(
    command: list[str],
    cwd: str | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run ``command`` to completion and capture stdout, stderr and exit status.

    Launch failures (executable missing, bad cwd) come back as a result with
    ``launched=False`` rather than an exception.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.warning("Failed to launch command", command=command, error=str(e))
        return CommandResult(success=False, output="", error=str(e), launched=False)

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        logger.warning("Command timed out", command=command, timeout=timeout)
        return CommandResult(
            success=False,
            output="",
            error=f"Command timed out after {timeout}s",
            exit_code=process.returncode,
        )

    output = stdout.decode("utf-8", errors="replace")
    error_text = stderr.decode("utf-8", errors="replace")
    success = process.returncode == 0

    logger.debug("Command finished", command=command, exit_code=process.returncode)
    return CommandResult(
        success=success,
        output=output,
        error=None if success else (error_text or f"exit status {process.returncode}"),
        exit_code=process.returncode,
        stderr=error_text,
    )
