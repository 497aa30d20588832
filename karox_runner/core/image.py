"""
Image — inspect the compiled kernel image.

Confirms that the compiler produced an ELF file for the expected
machine before anything is launched.  No section or symbol parsing.
"""
import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile


@dataclass(frozen=True)
class ImageMeta:
    """Header-level facts about a kernel image."""

    path: str
    sha256: str
    size_bytes: int
    elf_class: Optional[int] = None     # 32 or 64
    machine: Optional[str] = None       # e.g. "EM_RISCV"
    entry: Optional[int] = None
    is_elf: bool = False


def _sha256(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def inspect_image(path: Path) -> ImageMeta:
    """Read the ELF header of *path*; non-ELF files yield ``is_elf=False``."""
    path = Path(path)
    sha = _sha256(path)
    size = path.stat().st_size
    try:
        with open(path, "rb") as f:
            elf = ELFFile(f)
            machine = elf.header["e_machine"]
            return ImageMeta(
                path=str(path),
                sha256=sha,
                size_bytes=size,
                elf_class=elf.elfclass,
                machine=str(machine),
                entry=elf.header["e_entry"],
                is_elf=True,
            )
    except ELFError:
        return ImageMeta(path=str(path), sha256=sha, size_bytes=size)
