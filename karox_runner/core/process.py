"""
Process — blocking invocation of external tools.

All collaborators (cargo, qemu, dtc) are reached through ``ProcessRunner``
so that tests can substitute a recording fake.  Every call blocks until
the child exits; there is no cancellation.
"""
from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

EXIT_TIMEOUT = -1
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a finished external process."""

    command: Tuple[str, ...]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def stderr_tail(self, lines: int = 20) -> str:
        return "\n".join(self.stderr.strip().splitlines()[-lines:])


class ProcessRunner:
    """Runs external commands synchronously."""

    def __init__(self, timeout: int = 900):
        self.timeout = timeout

    def run(
        self,
        cmd: Sequence[str],
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessResult:
        """Run *cmd* with captured output and return its ProcessResult."""
        command = tuple(str(c) for c in cmd)
        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)

        logger.debug("exec: %s", " ".join(command))
        t0 = time.monotonic()
        try:
            result = subprocess.run(
                command,
                cwd=str(cwd) if cwd else None,
                env=full_env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return ProcessResult(
                command=command,
                exit_code=EXIT_TIMEOUT,
                stderr=f"TIMEOUT after {self.timeout}s",
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
        except OSError as e:
            return ProcessResult(
                command=command,
                exit_code=EXIT_NOT_FOUND,
                stderr=str(e),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )

        return ProcessResult(
            command=command,
            exit_code=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )

    def run_interactive(self, cmd: Sequence[str], cwd: Optional[Path] = None) -> int:
        """Run *cmd* attached to the caller's terminal and return its exit status."""
        command = [str(c) for c in cmd]
        logger.info("exec: %s", " ".join(command))
        try:
            return subprocess.call(command, cwd=str(cwd) if cwd else None)
        except OSError as e:
            logger.error("failed to start %s: %s", command[0], e)
            return EXIT_NOT_FOUND
