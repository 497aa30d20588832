"""
Writer — serialize receipts and build inputs to JSON files.

Filesystem layout per target:
    <root>/bin/<mode>/<target>/build_receipt.json
    <root>/runtime/<target>/link_flags.json
    <root>/runtime/<target>/launch.json
"""
import json
from pathlib import Path

from pydantic import BaseModel

from karox_runner.io.schema import BuildReceipt, LaunchRecord
from karox_runner.policy.profile import TargetProfile


def _write_model(model: BaseModel, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(model.model_dump(mode="json"), indent=2, sort_keys=True) + "\n"
    )
    return path


def write_build_receipt(receipt: BuildReceipt, output_dir: Path) -> Path:
    """Write build_receipt.json into *output_dir*; returns the file path."""
    return _write_model(receipt, output_dir / "build_receipt.json")


def write_launch_record(record: LaunchRecord, output_dir: Path) -> Path:
    """Write launch.json into *output_dir*; returns the file path."""
    return _write_model(record, output_dir / "launch.json")


def write_link_flags(profile: TargetProfile, path: Path) -> Path:
    """
    Write the linker parameters the kernel build script reads.

    Keyed by cargo ``target_arch`` with hex-string values, e.g.
    ``{"riscv64": {"KERNEL_ENTRY_ADDR": "0x80200000", ...}}``.
    """
    flags = {key: hex(value) for key, value in sorted(profile.link_flags.items())}
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({profile.arch_id: flags}, indent=2, sort_keys=True) + "\n")
    return path
