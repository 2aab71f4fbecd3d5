"""Running a registered function and capturing what it printed."""

from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass
from typing import Any

from .manager import FunctionManager
from .util import info

DEFAULT_TIMEOUT = 5.0


@dataclass
class InvokeResult:
    """Output, exit status and wall-clock duration of one invocation."""

    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form sent back to callers."""
        return {
            "Stdout": self.stdout,
            "Stderr": self.stderr,
            "ExitCode": self.exit_code,
            "DurationMs": self.duration_ms,
        }


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return data.decode(errors="replace")


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def invoke_bin(
    bin_path: str, input_text: str = "", timeout: float = DEFAULT_TIMEOUT
) -> InvokeResult:
    """Run a native binary, feeding input_text on stdin, killing it after timeout seconds.

    A process that could not be started, or that died from a signal or the
    timeout, reports exit code -1.
    """
    run_kwargs: dict[str, Any] = {
        "stdout": subprocess.PIPE,
        "stderr": subprocess.PIPE,
        "timeout": timeout,
        "check": False,
    }
    if input_text:
        run_kwargs["input"] = input_text.encode()
    else:
        run_kwargs["stdin"] = subprocess.DEVNULL

    start = time.monotonic()
    try:
        proc = subprocess.run([bin_path], **run_kwargs)
    except subprocess.TimeoutExpired as exc:
        duration = _elapsed_ms(start)
        result = InvokeResult(
            stdout=_decode(exc.stdout),
            stderr=_decode(exc.stderr),
            exit_code=-1,
            duration_ms=duration,
        )
    except OSError as exc:
        duration = _elapsed_ms(start)
        result = InvokeResult(
            stdout="", stderr=str(exc), exit_code=-1, duration_ms=duration
        )
    else:
        duration = _elapsed_ms(start)
        code = proc.returncode if proc.returncode >= 0 else -1
        result = InvokeResult(
            stdout=_decode(proc.stdout),
            stderr=_decode(proc.stderr),
            exit_code=code,
            duration_ms=duration,
        )

    info("invoke bin")
    return result


def invoke_function(
    manager: FunctionManager, function_id: str, input_text: str = ""
) -> InvokeResult:
    """Look up a function and run its native binary with input_text.

    Raises FunctionNotFoundError when the id is unknown.
    """
    fn = manager.get(function_id)
    return invoke_bin(fn.bin_path, input_text)