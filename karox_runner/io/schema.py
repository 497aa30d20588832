"""
Schema — Pydantic models for everything written to or read from disk.

  1. build_receipt.json  — provenance of one kernel image.
  2. launch.json         — the resolved emulator invocation of one run.
  3. targets JSON table  — optional declarative target registry.

Runtime contract fields (present in every output):
  package_name, package_version, schema_version.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from karox_runner import PACKAGE_NAME, SCHEMA_VERSION, __version__


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Build receipt ────────────────────────────────────────────────────────────

class ImageInfo(BaseModel):
    """Header facts of the produced kernel image."""
    path: str
    sha256: str
    size_bytes: int
    elf_class: Optional[int] = None
    machine: Optional[str] = None
    entry: Optional[str] = None      # hex


class BuildReceipt(BaseModel):
    """Provenance record written beside each kernel image."""

    package_name: str = PACKAGE_NAME
    package_version: str = __version__
    schema_version: str = SCHEMA_VERSION

    target: str
    triple: str
    mode: str
    features: List[str] = Field(default_factory=list)

    image: ImageInfo
    user_artifacts: List[str] = Field(default_factory=list)
    preparation: str = "none"
    preparation_outputs: List[str] = Field(default_factory=list)

    started_at: str
    finished_at: str = Field(default_factory=now_iso)


# ── Resolved launch ──────────────────────────────────────────────────────────

class ResolvedLaunch(BaseModel):
    """The materialized emulator invocation; immutable once assembled."""

    model_config = ConfigDict(frozen=True)

    target: str
    emulator: str
    argv: Tuple[str, ...]
    machine: str
    memory: str
    cpus: int
    kernel_image: str
    firmware: Optional[str] = None   # None → emulator default
    emulator_version: str

    @property
    def command(self) -> List[str]:
        return [self.emulator, *self.argv]


class LaunchRecord(BaseModel):
    """launch.json wrapper."""

    package_name: str = PACKAGE_NAME
    package_version: str = __version__
    schema_version: str = SCHEMA_VERSION
    required_version: str
    launch: ResolvedLaunch
    created_at: str = Field(default_factory=now_iso)


# ── Declarative target table ─────────────────────────────────────────────────

class PreparationSpec(BaseModel):
    kind: str = "none"               # none | extract_and_translate
    blob_name: Optional[str] = None
    text_name: Optional[str] = None
    translator: str = "dtc"


class TargetSpec(BaseModel):
    """One entry of a JSON target table."""

    model_config = ConfigDict(extra="forbid")

    name: str
    triple: str
    arch_id: str
    emulator: str
    machine: str
    memory: str
    cpus: int = Field(ge=1)
    firmware: str = "default"
    extra_args: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    elf_machine: Optional[str] = None
    link_flags: Dict[str, str] = Field(default_factory=dict)   # hex strings
    preparation: PreparationSpec = Field(default_factory=PreparationSpec)
    min_emulator_version: Optional[str] = None


class TargetTable(BaseModel):
    default: Optional[str] = None
    targets: List[TargetSpec]
