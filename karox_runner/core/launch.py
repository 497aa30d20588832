"""
Launch — assemble the emulator command line and run it.

``run_only`` sequence:
  1. pre-run preparation
  2. ``<emulator> --version`` → version token
  3. version gate
  4. argument assembly (fixed field order, see ``assemble``)
  5. emulator invocation; its exit status is the run's outcome
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from karox_runner.core.orchestrator import BuildOrchestrator
from karox_runner.core.process import ProcessRunner
from karox_runner.core.version import extract_version
from karox_runner.errors import VersionQueryFailed
from karox_runner.io.schema import LaunchRecord, ResolvedLaunch
from karox_runner.io.writer import write_launch_record
from karox_runner.policy.gate import effective_requirement, gate_emulator
from karox_runner.policy.profile import BuildConfig, TargetProfile, VersionRequirement

logger = logging.getLogger(__name__)


def assemble(
    profile: TargetProfile,
    kernel_image: Path,
    emulator_version: str,
    display_args: Sequence[str] = ("-nographic",),
) -> ResolvedLaunch:
    """
    Build the emulator argument list for *profile*.

    Field order never depends on the profile:
      -machine, -m, -smp, -kernel, [-bios], display args, extra args.
    ``-bios`` is omitted when the profile uses the emulator default.
    """
    argv = [
        "-machine", profile.machine,
        "-m", profile.memory,
        "-smp", str(profile.cpus),
        "-kernel", str(kernel_image),
    ]
    firmware = None
    if not profile.uses_default_firmware:
        firmware = profile.firmware
        argv.extend(["-bios", firmware])
    argv.extend(display_args)
    argv.extend(profile.extra_args)

    return ResolvedLaunch(
        target=profile.name,
        emulator=profile.emulator,
        argv=tuple(argv),
        machine=profile.machine,
        memory=profile.memory,
        cpus=profile.cpus,
        kernel_image=str(kernel_image),
        firmware=firmware,
        emulator_version=emulator_version,
    )


class LaunchAssembler:
    """Gates on the emulator version and launches a built kernel."""

    def __init__(
        self,
        orchestrator: BuildOrchestrator,
        requirement: VersionRequirement,
        runner: Optional[ProcessRunner] = None,
        display_args: Sequence[str] = ("-nographic",),
    ):
        self.orchestrator = orchestrator
        self.registry = orchestrator.registry
        self.requirement = requirement
        self.runner = runner or orchestrator.runner
        self.display_args = tuple(display_args)

    def query_version(self, profile: TargetProfile) -> str:
        """Ask the emulator for its version; raise VersionQueryFailed if unreadable."""
        result = self.runner.run([profile.emulator, "--version"])
        if not result.ok:
            raise VersionQueryFailed(profile.emulator, result.stderr or result.stdout)
        version = extract_version(result.stdout)
        if version is None:
            raise VersionQueryFailed(profile.emulator, result.stdout)
        logger.info("[%s] %s reports version %s", profile.name, profile.emulator, version)
        return version

    def prepare(self, config: BuildConfig) -> ResolvedLaunch:
        """Steps 1–4 of run_only: everything short of executing the emulator."""
        profile = self.registry.resolve(config.target)
        scratch = self.orchestrator.scratch_dir(profile.name)

        profile.preparation.run_pre_run(profile, scratch, self.runner)

        actual = self.query_version(profile)
        requirement = effective_requirement(profile, self.requirement)
        gate_emulator(profile, requirement, actual)

        image = config.output_path(self.orchestrator.root)
        launch = assemble(profile, image, actual, self.display_args)
        write_launch_record(
            LaunchRecord(required_version=requirement.minimum, launch=launch),
            self.orchestrator.runtime_dir(profile.name),
        )
        return launch

    def run_only(self, config: BuildConfig) -> int:
        """Launch an already-built kernel; returns the emulator's exit status."""
        launch = self.prepare(config)
        status = self.runner.run_interactive(launch.command, cwd=self.orchestrator.root)
        logger.info("[%s] emulator exited with status %d", launch.target, status)
        return status

    def run(self, config: BuildConfig) -> int:
        """Build, then launch."""
        self.orchestrator.build(config)
        return self.run_only(config)
