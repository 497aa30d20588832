"""
Orchestrator — build one target's kernel image.

Steps, strictly ordered; a failure at any step aborts the rest and the
original exception propagates unchanged:

  1. resolve the target profile
  2. run the preparation pipeline's pre-compile stage
  3. compile user-space crates
  4. stage them into runtime/<target>/user/
  5. compile the kernel, check its ELF header, then copy it to the
     configured output path and write a build receipt
"""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List, Optional, Tuple

from karox_runner.core.compiler import CargoCompiler
from karox_runner.core.image import ImageMeta, inspect_image
from karox_runner.core.process import ProcessRunner
from karox_runner.errors import CompileFailed
from karox_runner.io.schema import BuildReceipt, ImageInfo, now_iso
from karox_runner.io.writer import write_build_receipt, write_link_flags
from karox_runner.policy.profile import BuildConfig, BuildMode, TargetProfile
from karox_runner.policy.registry import TargetRegistry

logger = logging.getLogger(__name__)


class BuildOrchestrator:
    """Sequences compilation and preparation for a single target."""

    def __init__(
        self,
        registry: TargetRegistry,
        compiler: CargoCompiler,
        root: Path,
        runtime_root: Path,
        runner: Optional[ProcessRunner] = None,
    ):
        self.registry = registry
        self.compiler = compiler
        self.root = Path(root)
        self.runtime_root = Path(runtime_root)
        self.runner = runner or ProcessRunner()

    # -----------------------------------------------------------------
    # Layout
    # -----------------------------------------------------------------

    def runtime_dir(self, target: str) -> Path:
        return self.runtime_root / target

    def scratch_dir(self, target: str) -> Path:
        return self.runtime_dir(target) / "prep"

    def stage_dir(self, target: str) -> Path:
        return self.runtime_dir(target) / "user"

    # -----------------------------------------------------------------
    # Steps
    # -----------------------------------------------------------------

    def _stage(self, profile: TargetProfile, artifacts: List[Path]) -> List[Path]:
        """Copy user-space artifacts into the target's runtime directory."""
        dest_dir = self.stage_dir(profile.name)
        if dest_dir.exists():
            shutil.rmtree(dest_dir)
        dest_dir.mkdir(parents=True)

        staged = []
        for artifact in artifacts:
            dest = dest_dir / artifact.name
            shutil.copy2(artifact, dest)
            staged.append(dest)
        logger.info("[%s] staged %d user artifact(s) in %s", profile.name, len(staged), dest_dir)
        return staged

    def _install_image(self, profile: TargetProfile, built: Path, config: BuildConfig) -> Tuple[Path, ImageMeta]:
        output = config.output_path(self.root)
        # A rejected image must not leave an older kernel behind for run-only.
        for stale in (output, output.parent / "build_receipt.json"):
            stale.unlink(missing_ok=True)

        meta = inspect_image(built)
        if not meta.is_elf:
            raise CompileFailed(profile.name, [str(built)], 0, f"{built} is not an ELF image")
        if profile.elf_machine and meta.machine != profile.elf_machine:
            raise CompileFailed(
                profile.name, [str(built)], 0,
                f"{built} is {meta.machine}, expected {profile.elf_machine}",
            )

        output.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(built, output)
        return output, meta

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def build(self, config: BuildConfig) -> Path:
        """Build *config.target* and return the kernel image path."""
        started = now_iso()

        # ── Step 1: resolve ──────────────────────────────────────────────
        profile = self.registry.resolve(config.target)
        logger.info("[%s] build (%s) for %s", profile.name, config.mode.value, profile.triple)

        # ── Step 2: pre-compile preparation ──────────────────────────────
        scratch = self.scratch_dir(profile.name)
        profile.preparation.run_pre_compile(profile, scratch, self.runner)

        # ── Step 3: user space ───────────────────────────────────────────
        user_artifacts = self.compiler.compile_user(profile, config.mode)

        # ── Step 4: stage ────────────────────────────────────────────────
        staged = self._stage(profile, user_artifacts)

        # ── Step 5: kernel ───────────────────────────────────────────────
        flags_file = write_link_flags(profile, self.runtime_dir(profile.name) / "link_flags.json")
        built = self.compiler.compile_kernel(profile, config.mode, flags_file, scratch)
        image, meta = self._install_image(profile, built, config)

        receipt = BuildReceipt(
            target=profile.name,
            triple=profile.triple,
            mode=config.mode.value,
            features=sorted(profile.features),
            image=ImageInfo(
                path=str(image),
                sha256=meta.sha256,
                size_bytes=meta.size_bytes,
                elf_class=meta.elf_class,
                machine=meta.machine,
                entry=hex(meta.entry) if meta.entry is not None else None,
            ),
            user_artifacts=[str(p) for p in staged],
            preparation=profile.preparation.kind,
            preparation_outputs=[str(p) for p in profile.preparation.outputs(scratch)],
            started_at=started,
        )
        write_build_receipt(receipt, image.parent)

        logger.info("[%s] kernel image at %s", profile.name, image)
        return image

    def build_all(self, mode: BuildMode = BuildMode.RELEASE, output_template: Optional[str] = None) -> List[Path]:
        """
        Build every registered target in declaration order.

        Fail-fast: the first failing target aborts the sequence and its
        error propagates; targets after it are not attempted.
        """
        images = []
        for name in self.registry.all_targets():
            if output_template is None:
                config = BuildConfig(target=name, mode=mode)
            else:
                config = BuildConfig(target=name, mode=mode, output_template=output_template)
            images.append(self.build(config))
        return images
