"""
Shared pytest fixtures for karox_runner tests.

External tools are never executed.  ``FakeRunner`` stands in for
ProcessRunner and simulates cargo, qemu and dtc by writing the files
each of them would produce.

The kernel image must be a real ELF file for the header check; the
running interpreter binary is used for that, so tests needing it are
skipped where the interpreter is not ELF (macOS, native Windows).
"""
import shutil
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from karox_runner.config import Settings
from karox_runner.core.preparation import ExtractAndTranslate
from karox_runner.core.process import ProcessResult
from karox_runner.policy.profile import TargetProfile
from karox_runner.policy.registry import TargetRegistry
from karox_runner.runner import make_launcher

QEMU_VERSION_OUTPUT = (
    "QEMU emulator version 9.1.0 (v9.1.0)\n"
    "Copyright (c) 2003-2024 Fabrice Bellard and the QEMU Project developers\n"
)


def _flag_value(cmd: Tuple[str, ...], flag: str) -> Optional[str]:
    if flag in cmd:
        return cmd[cmd.index(flag) + 1]
    return None


class FakeRunner:
    """Records every command; answers like the real tools would."""

    def __init__(self, kernel_source: Optional[Path] = None):
        self.kernel_source = kernel_source
        self.calls: List[Tuple[str, ...]] = []
        self.interactive_calls: List[List[str]] = []
        self.version_output = QEMU_VERSION_OUTPUT
        self.interactive_status = 0
        self.failures: Dict[str, ProcessResult] = {}
        self.handlers: Dict[str, Callable[[Tuple[str, ...]], ProcessResult]] = {}

    # -- helpers for assertions ---------------------------------------

    def programs(self) -> List[str]:
        return [cmd[0] for cmd in self.calls]

    def calls_to(self, program: str) -> List[Tuple[str, ...]]:
        return [cmd for cmd in self.calls if cmd[0] == program]

    def fail(self, key: str, exit_code: int = 1, stderr: str = "boom") -> None:
        """Make every matching command fail.  *key* is a program name or 'cargo:<crate>'."""
        self.failures[key] = ProcessResult(command=(), exit_code=exit_code, stderr=stderr)

    # -- ProcessRunner interface --------------------------------------

    def run(self, cmd, cwd=None, env=None) -> ProcessResult:
        command = tuple(str(c) for c in cmd)
        self.calls.append(command)
        program = command[0]

        for key in (program, f"cargo:{_flag_value(command, '-p')}"):
            if key in self.failures:
                failed = self.failures[key]
                return ProcessResult(command=command, exit_code=failed.exit_code, stderr=failed.stderr)

        if program in self.handlers:
            return self.handlers[program](command)
        if program == "cargo":
            return self._cargo(command)
        if program == "dtc":
            Path(_flag_value(command, "-o")).write_text("/dts-v1/;\n/ {\n};\n")
            return ProcessResult(command=command, exit_code=0)
        if program.startswith("qemu-system-"):
            if "--version" in command:
                return ProcessResult(command=command, exit_code=0, stdout=self.version_output)
            machine = _flag_value(command, "-machine") or ""
            if "dumpdtb=" in machine:
                Path(machine.split("dumpdtb=", 1)[1]).write_bytes(b"\xd0\x0d\xfe\xed" + b"\x00" * 60)
            return ProcessResult(command=command, exit_code=0)
        return ProcessResult(command=command, exit_code=127, stderr=f"{program}: not found")

    def _cargo(self, command: Tuple[str, ...]) -> ProcessResult:
        crate = _flag_value(command, "-p")
        mode = "release" if "--release" in command else "debug"
        out = Path(_flag_value(command, "--target-dir")) / _flag_value(command, "--target") / mode / crate
        out.parent.mkdir(parents=True, exist_ok=True)
        if crate == "karox" and self.kernel_source is not None:
            shutil.copy2(self.kernel_source, out)
        else:
            out.write_bytes(b"user-space artifact " + crate.encode())
        return ProcessResult(command=command, exit_code=0)

    def run_interactive(self, cmd, cwd=None) -> int:
        self.interactive_calls.append([str(c) for c in cmd])
        return self.interactive_status


# ── Profiles ─────────────────────────────────────────────────────────────────

def _new_profile(**overrides) -> TargetProfile:
    fields = dict(
        name="testarch",
        triple="x86_64-unknown-none",
        arch_id="x86_64",
        emulator="qemu-system-x86_64",
        machine="q35",
        memory="256M",
        cpus=2,
        link_flags={"KERNEL_ENTRY_ADDR": 0x20_0000},
    )
    fields.update(overrides)
    return TargetProfile(**fields)


@pytest.fixture
def make_profile() -> Callable[..., TargetProfile]:
    """Factory for test profiles; keyword arguments override the defaults."""
    return _new_profile


@pytest.fixture
def plain_profile() -> TargetProfile:
    return _new_profile()


@pytest.fixture
def dtb_profile() -> TargetProfile:
    return _new_profile(
        name="dtbarch",
        emulator="qemu-system-loongarch64",
        machine="virt",
        memory="1G",
        cpus=1,
        preparation=ExtractAndTranslate(blob_name="board.dtb", text_name="board.dts"),
    )


@pytest.fixture
def registry(plain_profile, dtb_profile) -> TargetRegistry:
    return TargetRegistry([plain_profile, dtb_profile], default="testarch")


# ── ELF kernel stand-in ──────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def elf_image() -> Path:
    """An ELF binary usable as a kernel image (the Python interpreter)."""
    exe = Path(sys.executable).resolve()
    with open(exe, "rb") as f:
        if f.read(4) != b"\x7fELF":
            pytest.skip("interpreter is not an ELF binary on this platform")
    return exe


# ── Wiring ───────────────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(PROJECT_ROOT=str(tmp_path), MIN_EMULATOR_VERSION="9.0.50")


@pytest.fixture
def make_runner() -> Callable[..., FakeRunner]:
    """Factory for extra FakeRunner instances (custom kernel source, isolation)."""
    return FakeRunner


@pytest.fixture
def fake_runner(elf_image) -> FakeRunner:
    return FakeRunner(kernel_source=elf_image)


@pytest.fixture
def launcher(settings, registry, fake_runner):
    return make_launcher(settings, registry=registry, runner=fake_runner)
