"""
Gate — decide whether the installed emulator may launch a target.

Policy only: the version comes in already extracted, the decision goes
out as an exception.  Never runs processes.
"""
from karox_runner.core.version import meets_minimum
from karox_runner.errors import UnsupportedEmulatorVersion
from karox_runner.policy.profile import TargetProfile, VersionRequirement


def effective_requirement(profile: TargetProfile, default: VersionRequirement) -> VersionRequirement:
    """Per-profile minimum if declared, else the global one."""
    if profile.min_emulator_version is not None:
        return VersionRequirement(profile.min_emulator_version)
    return default


def gate_emulator(profile: TargetProfile, requirement: VersionRequirement, actual: str) -> None:
    """Raise UnsupportedEmulatorVersion if *actual* is below *requirement*."""
    if not meets_minimum(requirement.minimum, actual):
        raise UnsupportedEmulatorVersion(profile.emulator, requirement.minimum, actual)
