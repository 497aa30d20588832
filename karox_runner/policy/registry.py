"""
Registry — the immutable table of known targets.

Constructed once at startup (``TargetRegistry.builtin()`` or a JSON table
via ``karox_runner.io.loader.load_registry``) and passed explicitly to the
orchestrator and launch assembler.  There is no mutation after
construction.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, List, Optional

from karox_runner.core.preparation import ExtractAndTranslate
from karox_runner.errors import UnknownTarget
from karox_runner.policy.profile import FIRMWARE_DEFAULT, TargetProfile


class TargetRegistry:
    """Name → TargetProfile lookup with a stable declaration order."""

    def __init__(self, profiles: Iterable[TargetProfile], default: Optional[str] = None):
        table = {}
        for profile in profiles:
            if profile.name in table:
                raise ValueError(f"duplicate target name '{profile.name}'")
            table[profile.name] = profile
        if not table:
            raise ValueError("registry must declare at least one target")

        if default is None:
            default = next(iter(table))
        if default not in table:
            raise ValueError(f"default target '{default}' is not declared")

        self._profiles = MappingProxyType(table)
        self._default = default

    def resolve(self, name: str) -> TargetProfile:
        try:
            return self._profiles[name]
        except KeyError:
            raise UnknownTarget(name, self.all_targets()) from None

    def default_target(self) -> str:
        return self._default

    def all_targets(self) -> List[str]:
        """Target names in declaration order."""
        return list(self._profiles)

    def __contains__(self, name: object) -> bool:
        return name in self._profiles

    def __iter__(self) -> Iterator[TargetProfile]:
        return iter(self._profiles.values())

    def __len__(self) -> int:
        return len(self._profiles)

    @classmethod
    def builtin(cls) -> "TargetRegistry":
        """The Karox targets: riscv64 (SBI boot) and loongarch64 (embedded DTB)."""
        return cls(BUILTIN_TARGETS, default="riscv64")


BUILTIN_TARGETS = (
    TargetProfile(
        name="riscv64",
        triple="riscv64gc-unknown-none-elf",
        arch_id="riscv64",
        emulator="qemu-system-riscv64",
        machine="virt",
        memory="128M",
        cpus=4,
        firmware=FIRMWARE_DEFAULT,
        features=frozenset({"naked"}),
        elf_machine="EM_RISCV",
        link_flags={
            "KERNEL_ENTRY_ADDR": 0x8020_0000,
            "KERNEL_SPACE_OFFSET": 0xFFFF_FFC0_0000_0000,
        },
    ),
    TargetProfile(
        name="loongarch64",
        triple="loongarch64-unknown-none",
        arch_id="loongarch64",
        emulator="qemu-system-loongarch64",
        machine="virt",
        memory="1G",
        cpus=1,
        firmware=FIRMWARE_DEFAULT,
        features=frozenset({"naked"}),
        elf_machine="EM_LOONGARCH",
        link_flags={
            "KERNEL_ENTRY_ADDR": 0x20_0000,
            "KERNEL_SPACE_OFFSET": 0x9000_0000_0000_0000,
        },
        preparation=ExtractAndTranslate(
            blob_name="qemu-loongarch64.dtb",
            text_name="qemu-loongarch64.dts",
        ),
    ),
)
