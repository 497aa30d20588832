"""
karox_runner — build the Karox kernel for a target and launch it under QEMU.

Targets are declared once in a static registry; each run resolves a
profile, prepares any hardware description the kernel embeds, compiles
user space and the kernel with cargo, then gates on the emulator version
before launching.
"""

__version__ = "0.1.0"
PACKAGE_NAME = "karox_runner"
SCHEMA_VERSION = "0.1"
