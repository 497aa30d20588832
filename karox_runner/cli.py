from __future__ import annotations

import argparse
import logging
import sys

from karox_runner import __version__
from karox_runner.config import Settings
from karox_runner.errors import LauncherError

logger = logging.getLogger("karox_runner")

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def make_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="karox-runner", description="Build and launch Karox under QEMU")
    p.add_argument("--root", default=None, help="Project root (default: $KAROX_PROJECT_ROOT or .)")
    p.add_argument("--mode", choices=["release", "debug"], default=None, help="Cargo build mode")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="cmd", required=True)

    # build
    pb = sub.add_parser("build", help="Compile user space and the kernel")
    pb.add_argument("target", nargs="?", default=None, help="Target name, or 'all'")

    # run
    pr = sub.add_parser("run", help="Build, then launch under the emulator")
    pr.add_argument("target", nargs="?", default=None)

    # run-only
    po = sub.add_parser("run-only", help="Launch an already-built kernel")
    po.add_argument("target", nargs="?", default=None)

    # clean
    sub.add_parser("clean", help="Remove bin/, target/ and runtime/")

    # list
    sub.add_parser("list", help="List declared targets")

    return p


def _settings(ns: argparse.Namespace) -> Settings:
    overrides = {}
    if ns.root is not None:
        overrides["PROJECT_ROOT"] = ns.root
    return Settings(**overrides)


def main(argv=None) -> int:
    # lazy import to keep --help fast
    from karox_runner import runner

    ns = make_parser().parse_args(argv)
    cfg = _settings(ns)
    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else cfg.LOG_LEVEL,
        format=LOG_FORMAT,
    )

    try:
        if ns.cmd == "clean":
            runner.clean(cfg)
            return 0

        launcher = runner.make_launcher(cfg)

        if ns.cmd == "list":
            default = launcher.registry.default_target()
            for profile in launcher.registry:
                marker = "*" if profile.name == default else " "
                print(f"{marker} {profile.name:<16} {profile.triple:<32} {profile.emulator}")
            return 0

        if ns.cmd == "build":
            runner.build(launcher, ns.target, cfg, ns.mode)
            return 0
        if ns.cmd == "run":
            return runner.run(launcher, ns.target, cfg, ns.mode)
        if ns.cmd == "run-only":
            return runner.run_only(launcher, ns.target, cfg, ns.mode)
    except (LauncherError, ValueError, OSError) as e:
        logger.debug("aborted", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1

    return 2


if __name__ == "__main__":
    sys.exit(main())
