"""
Profile — per-target build and emulation parameters.

A TargetProfile captures everything that differs between architectures
so that the orchestrator and launch assembler contain no per-arch
branches.  Adding a target is a table change, not a code change.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, unique
from pathlib import Path
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple

from karox_runner.core.preparation import NoOpPreparation, PreparationPipeline
from karox_runner.core.version import parse_version

# Firmware sentinel: let the emulator pick its built-in default.
FIRMWARE_DEFAULT = "default"

DEFAULT_OUTPUT_TEMPLATE = "bin/{mode}/{target}/kernel.elf"

_MEMORY_RE = re.compile(r"[0-9]+[KMGT]?")


@unique
class BuildMode(str, Enum):
    """Cargo build profile."""
    RELEASE = "release"
    DEBUG = "debug"


@dataclass(frozen=True)
class TargetProfile:
    """Immutable description of one build / launch target."""

    # Identity
    name: str
    triple: str              # rustc target triple, e.g. riscv64gc-unknown-none-elf
    arch_id: str             # cargo target_arch, keys link_flags.json

    # Emulation
    emulator: str
    machine: str
    memory: str              # QEMU size string: 128M, 1G
    cpus: int
    firmware: str = FIRMWARE_DEFAULT
    extra_args: Tuple[str, ...] = ()

    # Build
    features: FrozenSet[str] = frozenset()
    elf_machine: Optional[str] = None   # expected e_machine of the kernel image
    link_flags: Mapping[str, int] = field(default_factory=dict, hash=False)

    preparation: PreparationPipeline = field(default_factory=NoOpPreparation)
    min_emulator_version: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("target name must not be empty")
        if not self.triple:
            raise ValueError(f"target '{self.name}' has no architecture triple")
        if self.cpus < 1:
            raise ValueError(f"target '{self.name}': cpus must be >= 1, got {self.cpus}")
        if not _MEMORY_RE.fullmatch(self.memory):
            raise ValueError(f"target '{self.name}': bad memory size {self.memory!r}")
        if self.min_emulator_version is not None:
            parse_version(self.min_emulator_version)
        # read-only view over a private copy
        object.__setattr__(self, "link_flags", MappingProxyType(dict(self.link_flags)))

    @property
    def uses_default_firmware(self) -> bool:
        return self.firmware == FIRMWARE_DEFAULT

    def feature_list(self) -> str:
        """Comma-joined features in a stable order (cargo --features)."""
        return ",".join(sorted(self.features))


@dataclass(frozen=True)
class BuildConfig:
    """Caller-selected build request."""

    target: str
    mode: BuildMode = BuildMode.RELEASE
    output_template: str = DEFAULT_OUTPUT_TEMPLATE

    def __post_init__(self):
        # Coerce plain strings ("debug") coming from the CLI or settings.
        object.__setattr__(self, "mode", BuildMode(self.mode))
        for placeholder in ("{mode}", "{target}"):
            if placeholder not in self.output_template:
                raise ValueError(
                    f"output template {self.output_template!r} lacks {placeholder}"
                )

    def output_path(self, root: Path) -> Path:
        """Kernel image path for this (mode, target) pair under *root*."""
        rel = self.output_template.format(mode=self.mode.value, target=self.target)
        return Path(root) / rel

    def for_target(self, target: str) -> "BuildConfig":
        return BuildConfig(target=target, mode=self.mode, output_template=self.output_template)


@dataclass(frozen=True)
class VersionRequirement:
    """Minimum acceptable emulator version."""

    minimum: str

    def __post_init__(self):
        parse_version(self.minimum)

    def __str__(self) -> str:
        return self.minimum
