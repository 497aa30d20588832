"""
Loader — build a TargetRegistry from a declarative JSON table.

Table shape::

    {
      "default": "riscv64",
      "targets": [
        {"name": "riscv64", "triple": "riscv64gc-unknown-none-elf", ...,
         "link_flags": {"KERNEL_ENTRY_ADDR": "0x8020_0000"},
         "preparation": {"kind": "none"}}
      ]
    }
"""
from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from karox_runner.core.preparation import (
    ExtractAndTranslate,
    NoOpPreparation,
    PreparationPipeline,
)
from karox_runner.io.schema import PreparationSpec, TargetSpec, TargetTable
from karox_runner.policy.profile import TargetProfile
from karox_runner.policy.registry import TargetRegistry

logger = logging.getLogger(__name__)


def parse_hex(value: str) -> int:
    """Parse ``0x8020_0000``-style strings (prefix and underscores optional)."""
    clean = value.strip().lower()
    if clean.startswith("0x"):
        clean = clean[2:]
    return int(clean.replace("_", ""), 16)


def _build_preparation(spec: PreparationSpec, target: str) -> PreparationPipeline:
    if spec.kind == "none":
        return NoOpPreparation()
    if spec.kind == "extract_and_translate":
        if not spec.blob_name or not spec.text_name:
            raise ValueError(
                f"target '{target}': extract_and_translate needs blob_name and text_name"
            )
        return ExtractAndTranslate(
            blob_name=spec.blob_name,
            text_name=spec.text_name,
            translator=spec.translator,
        )
    raise ValueError(f"target '{target}': unknown preparation kind '{spec.kind}'")


def _build_profile(spec: TargetSpec) -> TargetProfile:
    return TargetProfile(
        name=spec.name,
        triple=spec.triple,
        arch_id=spec.arch_id,
        emulator=spec.emulator,
        machine=spec.machine,
        memory=spec.memory,
        cpus=spec.cpus,
        firmware=spec.firmware,
        extra_args=tuple(spec.extra_args),
        features=frozenset(spec.features),
        elf_machine=spec.elf_machine,
        link_flags={k: parse_hex(v) for k, v in spec.link_flags.items()},
        preparation=_build_preparation(spec.preparation, spec.name),
        min_emulator_version=spec.min_emulator_version,
    )


def load_registry(path: Path) -> TargetRegistry:
    """
    Read and validate a JSON target table.

    Raises ValueError on schema violations, duplicate names or an
    undeclared default target.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    try:
        table = TargetTable.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"invalid target table {path}: {e}") from e

    registry = TargetRegistry(
        (_build_profile(spec) for spec in table.targets),
        default=table.default,
    )
    logger.info("loaded %d targets from %s", len(registry), path)
    return registry
