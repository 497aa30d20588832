"""
Runner — wire settings, registry and collaborators into the top-level
operations (build / build-all / run / run-only / clean).

This is the single place that reads ``Settings``; everything below it
receives explicit arguments.  Call from the CLI or from scripts.
"""
import logging
import shutil
from pathlib import Path
from typing import List, Optional

from karox_runner.config import Settings, settings as default_settings
from karox_runner.core.compiler import CargoCompiler
from karox_runner.core.launch import LaunchAssembler
from karox_runner.core.orchestrator import BuildOrchestrator
from karox_runner.core.process import ProcessRunner
from karox_runner.io.loader import load_registry
from karox_runner.policy.profile import BuildConfig, BuildMode, VersionRequirement
from karox_runner.policy.registry import TargetRegistry

logger = logging.getLogger(__name__)

ALL_TARGETS = "all"


def make_registry(cfg: Settings) -> TargetRegistry:
    if cfg.TARGETS_FILE:
        return load_registry(Path(cfg.TARGETS_FILE))
    return TargetRegistry.builtin()


def make_launcher(
    cfg: Optional[Settings] = None,
    registry: Optional[TargetRegistry] = None,
    runner: Optional[ProcessRunner] = None,
    compiler: Optional[CargoCompiler] = None,
) -> LaunchAssembler:
    """Assemble the object graph; any collaborator may be injected."""
    cfg = cfg or default_settings
    registry = registry or make_registry(cfg)
    runner = runner or ProcessRunner(timeout=cfg.COMMAND_TIMEOUT)
    compiler = compiler or CargoCompiler(
        root=cfg.root,
        target_dir=cfg.cargo_target_root,
        runner=runner,
        cargo=cfg.CARGO,
        kernel_crate=cfg.KERNEL_CRATE,
        user_crates=cfg.USER_CRATES,
    )
    orchestrator = BuildOrchestrator(
        registry=registry,
        compiler=compiler,
        root=cfg.root,
        runtime_root=cfg.runtime_root,
        runner=runner,
    )
    return LaunchAssembler(
        orchestrator=orchestrator,
        requirement=VersionRequirement(cfg.MIN_EMULATOR_VERSION),
        runner=runner,
        display_args=cfg.DISPLAY_ARGS,
    )


def make_config(launcher: LaunchAssembler, target: Optional[str], cfg: Settings, mode: Optional[str] = None) -> BuildConfig:
    """Resolve the target name (falling back to the default) into a BuildConfig."""
    name = target or cfg.DEFAULT_TARGET or launcher.registry.default_target()
    return BuildConfig(
        target=name,
        mode=BuildMode(mode or cfg.BUILD_MODE),
        output_template=cfg.OUTPUT_TEMPLATE,
    )


def build(launcher: LaunchAssembler, target: Optional[str], cfg: Settings, mode: Optional[str] = None) -> List[Path]:
    """Build one target, or every target (sequential, fail-fast) for ``all``."""
    if target == ALL_TARGETS:
        return launcher.orchestrator.build_all(
            mode=BuildMode(mode or cfg.BUILD_MODE),
            output_template=cfg.OUTPUT_TEMPLATE,
        )
    config = make_config(launcher, target, cfg, mode)
    return [launcher.orchestrator.build(config)]


def run(launcher: LaunchAssembler, target: Optional[str], cfg: Settings, mode: Optional[str] = None) -> int:
    return launcher.run(make_config(launcher, target, cfg, mode))


def run_only(launcher: LaunchAssembler, target: Optional[str], cfg: Settings, mode: Optional[str] = None) -> int:
    return launcher.run_only(make_config(launcher, target, cfg, mode))


def clean(cfg: Settings) -> List[Path]:
    """Remove bin/, target/ and runtime/ under the project root."""
    removed = []
    for path in cfg.clean_paths():
        if path.exists():
            shutil.rmtree(path)
            removed.append(path)
            logger.info("removed %s", path)
    return removed
