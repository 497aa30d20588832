"""
Canonical exception types for karox_runner.

Every error is fatal to the current invocation.  The CLI catches
``LauncherError`` and exits non-zero; nothing is retried.
"""
from __future__ import annotations

from typing import Optional, Sequence


class LauncherError(Exception):
    """Base class for all build / launch failures."""


class UnknownTarget(LauncherError, KeyError):
    """The requested target name is not declared in the registry."""

    def __init__(self, name: str, known: Sequence[str] = ()):
        self.name = name
        self.known = list(known)
        super().__init__(name)

    def __str__(self) -> str:
        msg = f"unknown target '{self.name}'"
        if self.known:
            msg += f" (known targets: {', '.join(self.known)})"
        return msg


class MalformedVersion(LauncherError, ValueError):
    """A version string is not a dotted sequence of non-negative integers."""

    def __init__(self, version: str, reason: str = ""):
        self.version = version
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"malformed version string {version!r}{detail}")


class PreparationFailed(LauncherError):
    """A preparation step (introspection or translation) failed."""

    def __init__(self, target: str, step: str, detail: str = ""):
        self.target = target
        self.step = step
        self.detail = detail
        msg = f"[{target}] preparation step '{step}' failed"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class CompileFailed(LauncherError):
    """The external compiler exited non-zero or produced no artifact."""

    def __init__(
        self,
        target: str,
        command: Sequence[str],
        exit_code: Optional[int],
        stderr: str = "",
    ):
        self.target = target
        self.command = list(command)
        self.exit_code = exit_code
        self.stderr = stderr
        msg = f"[{target}] compile failed (exit {exit_code}): {' '.join(self.command)}"
        if stderr:
            msg += f"\n{stderr}"
        super().__init__(msg)


class VersionQueryFailed(LauncherError):
    """The emulator did not report a parseable version."""

    def __init__(self, emulator: str, output: str = ""):
        self.emulator = emulator
        self.output = output
        super().__init__(
            f"could not determine version of '{emulator}' "
            f"from output: {output.strip()[:200]!r}"
        )


class UnsupportedEmulatorVersion(LauncherError):
    """The installed emulator is older than the required minimum."""

    def __init__(self, emulator: str, required: str, actual: str):
        self.emulator = emulator
        self.required = required
        self.actual = actual
        super().__init__(
            f"Unsupported QEMU Version: {actual}\n"
            f"Minimum Supported QEMU Version is: {required}.\n"
            f"Install a newer '{emulator}' or point PATH at one."
        )


__all__ = [
    "LauncherError",
    "UnknownTarget",
    "MalformedVersion",
    "PreparationFailed",
    "CompileFailed",
    "VersionQueryFailed",
    "UnsupportedEmulatorVersion",
]
