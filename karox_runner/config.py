"""
Runner configuration
"""
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runner settings, overridable from the environment (KAROX_*) or .env"""

    # Layout
    PROJECT_ROOT: str = "."
    BIN_DIR: str = "bin"
    RUNTIME_DIR: str = "runtime"
    CARGO_TARGET_DIR: str = "target"

    # Build
    DEFAULT_TARGET: Optional[str] = None
    BUILD_MODE: str = "release"
    OUTPUT_TEMPLATE: str = "bin/{mode}/{target}/kernel.elf"
    KERNEL_CRATE: str = "karox"
    USER_CRATES: List[str] = ["init"]
    TARGETS_FILE: Optional[str] = None

    # External tools
    CARGO: str = "cargo"
    COMMAND_TIMEOUT: int = 900  # seconds, per external process

    # Emulator
    MIN_EMULATOR_VERSION: str = "9.0.50"
    DISPLAY_ARGS: List[str] = ["-nographic"]

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def root(self) -> Path:
        return Path(self.PROJECT_ROOT).resolve()

    @property
    def runtime_root(self) -> Path:
        return self.root / self.RUNTIME_DIR

    @property
    def cargo_target_root(self) -> Path:
        return self.root / self.CARGO_TARGET_DIR

    def runtime_dir(self, target: str) -> Path:
        """Per-target runtime directory (staged user space, launch record)."""
        return self.runtime_root / target

    def scratch_dir(self, target: str) -> Path:
        """Per-target preparation scratch directory, reset on every build."""
        return self.runtime_dir(target) / "prep"

    def clean_paths(self) -> List[Path]:
        return [
            self.root / self.BIN_DIR,
            self.cargo_target_root,
            self.runtime_root,
        ]

    class Config:
        env_file = ".env"
        env_prefix = "KAROX_"
        case_sensitive = True


settings = Settings()
