"""
Compiler — cargo as an opaque build step.

Contract: each call produces an artifact at a known path under the cargo
target directory or raises CompileFailed with the failing command and
the tail of its stderr.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from karox_runner.core.process import ProcessRunner
from karox_runner.errors import CompileFailed
from karox_runner.policy.profile import BuildMode, TargetProfile

logger = logging.getLogger(__name__)


class CargoCompiler:
    """Builds user-space crates and the kernel crate for a target triple."""

    def __init__(
        self,
        root: Path,
        target_dir: Path,
        runner: Optional[ProcessRunner] = None,
        cargo: str = "cargo",
        kernel_crate: str = "karox",
        user_crates: Sequence[str] = ("init",),
    ):
        self.root = Path(root)
        self.target_dir = Path(target_dir)
        self.runner = runner or ProcessRunner()
        self.cargo = cargo
        self.kernel_crate = kernel_crate
        self.user_crates = list(user_crates)

    def artifact_path(self, profile: TargetProfile, mode: BuildMode, crate: str) -> Path:
        return self.target_dir / profile.triple / mode.value / crate

    def _cargo_build(
        self,
        profile: TargetProfile,
        mode: BuildMode,
        crate: str,
        features: str = "",
        env: Optional[Dict[str, str]] = None,
    ) -> Path:
        cmd = [
            self.cargo, "build",
            "-p", crate,
            "--target", profile.triple,
            "--target-dir", str(self.target_dir),
        ]
        if mode is BuildMode.RELEASE:
            cmd.append("--release")
        if features:
            cmd.extend(["--features", features])

        logger.info("[%s] cargo build -p %s (%s)", profile.name, crate, mode.value)
        result = self.runner.run(cmd, cwd=self.root, env=env)
        if not result.ok:
            raise CompileFailed(profile.name, result.command, result.exit_code, result.stderr_tail())

        artifact = self.artifact_path(profile, mode, crate)
        if not artifact.is_file():
            raise CompileFailed(
                profile.name, result.command, result.exit_code,
                f"no artifact at {artifact}",
            )
        return artifact

    def compile_user(self, profile: TargetProfile, mode: BuildMode) -> List[Path]:
        """Build every user-space crate; returns artifact paths in crate order."""
        return [self._cargo_build(profile, mode, crate) for crate in self.user_crates]

    def compile_kernel(
        self,
        profile: TargetProfile,
        mode: BuildMode,
        link_flags_file: Path,
        prep_dir: Path,
    ) -> Path:
        """Build the kernel crate with the profile's features."""
        env = {
            "KAROX_LINK_FLAGS": str(link_flags_file),
            "KAROX_PREP_DIR": str(prep_dir),
        }
        return self._cargo_build(
            profile, mode, self.kernel_crate,
            features=profile.feature_list(), env=env,
        )
