"""
Preparation — per-target side effects around compilation.

Two variants:
  - NoOpPreparation       — nothing to do; the scratch dir is never touched.
  - ExtractAndTranslate   — ask the emulator to dump the machine's flattened
                            device tree (sized by the profile's memory and
                            CPU count), then convert it to DTS text with dtc.
                            The kernel embeds the binary blob at compile time.

``run_pre_compile`` resets the scratch directory whenever the pipeline has
steps, so nothing from a previous invocation survives.
"""
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, List

from karox_runner.core.process import ProcessRunner
from karox_runner.errors import PreparationFailed

if TYPE_CHECKING:
    from karox_runner.policy.profile import TargetProfile

logger = logging.getLogger(__name__)


class PreparationPipeline:
    """Base class: both hooks are no-ops."""

    kind = "none"

    @property
    def has_steps(self) -> bool:
        return False

    def run_pre_compile(
        self, profile: "TargetProfile", scratch_dir: Path, runner: ProcessRunner,
    ) -> None:
        pass

    def run_pre_run(
        self, profile: "TargetProfile", scratch_dir: Path, runner: ProcessRunner,
    ) -> None:
        pass

    def outputs(self, scratch_dir: Path) -> List[Path]:
        """Files this pipeline leaves in *scratch_dir* after pre-compile."""
        return []


@dataclass(frozen=True)
class NoOpPreparation(PreparationPipeline):
    """Profile with no preparation requirement."""


@dataclass(frozen=True)
class ExtractAndTranslate(PreparationPipeline):
    """Dump the emulator's device tree and translate it to text."""

    blob_name: str
    text_name: str
    translator: str = "dtc"

    kind = "extract_and_translate"

    @property
    def has_steps(self) -> bool:
        return True

    def outputs(self, scratch_dir: Path) -> List[Path]:
        return [scratch_dir / self.blob_name, scratch_dir / self.text_name]

    def run_pre_compile(
        self, profile: "TargetProfile", scratch_dir: Path, runner: ProcessRunner,
    ) -> None:
        if scratch_dir.exists():
            shutil.rmtree(scratch_dir)
        scratch_dir.mkdir(parents=True)

        blob, text = self.outputs(scratch_dir)

        # ── Step 1: introspection — emulator writes the DTB and exits ────
        extract_cmd = [
            profile.emulator,
            "-machine", f"{profile.machine},dumpdtb={blob}",
            "-m", profile.memory,
            "-smp", str(profile.cpus),
            "-nographic",
        ]
        logger.info("[%s] extracting device tree -> %s", profile.name, blob)
        result = runner.run(extract_cmd)
        if not result.ok:
            raise PreparationFailed(
                profile.name, "extract",
                f"exit {result.exit_code}: {result.stderr_tail()}",
            )
        if not blob.is_file():
            raise PreparationFailed(
                profile.name, "extract", f"emulator produced no file at {blob}",
            )

        # ── Step 2: translation — DTB → DTS ──────────────────────────────
        translate_cmd = [self.translator, "-I", "dtb", "-O", "dts", "-o", str(text), str(blob)]
        logger.info("[%s] translating device tree -> %s", profile.name, text)
        result = runner.run(translate_cmd)
        if not result.ok:
            raise PreparationFailed(
                profile.name, "translate",
                f"exit {result.exit_code}: {result.stderr_tail()}",
            )
        if not text.is_file():
            raise PreparationFailed(
                profile.name, "translate", f"translator produced no file at {text}",
            )

    def run_pre_run(
        self, profile: "TargetProfile", scratch_dir: Path, runner: ProcessRunner,
    ) -> None:
        blob = scratch_dir / self.blob_name
        if not blob.is_file():
            raise PreparationFailed(
                profile.name, "stage",
                f"device tree {blob} is missing; build the target first",
            )
        logger.debug("[%s] device tree present at %s", profile.name, blob)
