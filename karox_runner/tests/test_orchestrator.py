"""
test_orchestrator — build sequencing.

  - Steps run in order: preparation, user space, stage, kernel.
  - A preparation failure means the compiler is never called.
  - Failures propagate unchanged; build-all is fail-fast.
"""
import json

import pytest

from karox_runner.errors import CompileFailed, PreparationFailed, UnknownTarget
from karox_runner.policy.profile import BuildConfig, BuildMode
from karox_runner.policy.registry import TargetRegistry
from karox_runner.runner import make_launcher


class TestBuild:

    def test_plain_target(self, launcher, fake_runner, tmp_path):
        image = launcher.orchestrator.build(BuildConfig(target="testarch"))

        assert image == tmp_path / "bin" / "release" / "testarch" / "kernel.elf"
        assert image.is_file()
        cargo = fake_runner.calls_to("cargo")
        assert [c[c.index("-p") + 1] for c in cargo] == ["init", "karox"]
        assert all("--release" in c for c in cargo)
        assert all(c[c.index("--target") + 1] == "x86_64-unknown-none" for c in cargo)
        # no preparation steps for a plain profile
        assert fake_runner.programs() == ["cargo", "cargo"]
        assert not (tmp_path / "runtime" / "testarch" / "prep").exists()

    def test_user_space_staged(self, launcher, tmp_path):
        launcher.orchestrator.build(BuildConfig(target="testarch"))
        staged = tmp_path / "runtime" / "testarch" / "user" / "init"
        assert staged.read_bytes() == b"user-space artifact init"

    def test_debug_mode(self, launcher, fake_runner, tmp_path):
        image = launcher.orchestrator.build(BuildConfig(target="testarch", mode=BuildMode.DEBUG))
        assert image == tmp_path / "bin" / "debug" / "testarch" / "kernel.elf"
        assert not any("--release" in c for c in fake_runner.calls_to("cargo"))

    def test_preparation_before_compile(self, launcher, fake_runner):
        launcher.orchestrator.build(BuildConfig(target="dtbarch"))
        assert fake_runner.programs() == ["qemu-system-loongarch64", "dtc", "cargo", "cargo"]

    def test_link_flags_written(self, launcher, fake_runner, tmp_path):
        launcher.orchestrator.build(BuildConfig(target="testarch"))
        flags = json.loads((tmp_path / "runtime" / "testarch" / "link_flags.json").read_text())
        assert flags == {"x86_64": {"KERNEL_ENTRY_ADDR": "0x200000"}}

    def test_receipt_written(self, launcher, tmp_path):
        image = launcher.orchestrator.build(BuildConfig(target="dtbarch"))
        receipt = json.loads((image.parent / "build_receipt.json").read_text())
        assert receipt["target"] == "dtbarch"
        assert receipt["mode"] == "release"
        assert receipt["preparation"] == "extract_and_translate"
        assert receipt["image"]["path"] == str(image)
        assert len(receipt["image"]["sha256"]) == 64
        assert receipt["image"]["machine"].startswith("EM_")
        assert receipt["package_name"] == "karox_runner"


class TestBuildFailures:

    def test_unknown_target(self, launcher, fake_runner):
        with pytest.raises(UnknownTarget):
            launcher.orchestrator.build(BuildConfig(target="unknown-target"))
        assert fake_runner.calls == []

    def test_preparation_failure_skips_compiler(self, launcher, fake_runner):
        fake_runner.fail("dtc")
        with pytest.raises(PreparationFailed):
            launcher.orchestrator.build(BuildConfig(target="dtbarch"))
        assert fake_runner.calls_to("cargo") == []

    def test_user_compile_failure(self, launcher, fake_runner):
        fake_runner.fail("cargo:init", exit_code=101, stderr="error[E0425]: cannot find value")
        with pytest.raises(CompileFailed) as exc:
            launcher.orchestrator.build(BuildConfig(target="testarch"))
        assert exc.value.exit_code == 101
        assert exc.value.target == "testarch"
        assert "E0425" in exc.value.stderr
        # kernel never attempted
        assert len(fake_runner.calls_to("cargo")) == 1

    def test_kernel_compile_failure_leaves_no_image(self, launcher, fake_runner, tmp_path):
        fake_runner.fail("cargo:karox")
        with pytest.raises(CompileFailed):
            launcher.orchestrator.build(BuildConfig(target="testarch"))
        assert not (tmp_path / "bin" / "release" / "testarch" / "kernel.elf").exists()

    def test_non_elf_image_rejected(self, settings, registry, tmp_path, make_runner):
        not_elf = tmp_path / "not_elf"
        not_elf.write_text("this is not an ELF file\n")
        launcher = make_launcher(settings, registry=registry, runner=make_runner(kernel_source=not_elf))
        with pytest.raises(CompileFailed, match="not an ELF"):
            launcher.orchestrator.build(BuildConfig(target="testarch"))
        assert not (tmp_path / "bin" / "release" / "testarch" / "kernel.elf").exists()

    def test_wrong_machine_rejected(self, settings, fake_runner, make_profile, tmp_path):
        reg = TargetRegistry([make_profile(elf_machine="EM_NONE")])
        launcher = make_launcher(settings, registry=reg, runner=fake_runner)
        with pytest.raises(CompileFailed, match="expected EM_NONE"):
            launcher.orchestrator.build(BuildConfig(target="testarch"))
        assert not (tmp_path / "bin" / "release" / "testarch").exists()

    def test_rejected_rebuild_removes_previous_image(self, settings, registry, fake_runner, make_runner, tmp_path):
        good = make_launcher(settings, registry=registry, runner=fake_runner)
        image = good.orchestrator.build(BuildConfig(target="testarch"))
        assert image.is_file()

        not_elf = tmp_path / "not_elf"
        not_elf.write_text("truncated link output\n")
        bad = make_launcher(settings, registry=registry, runner=make_runner(kernel_source=not_elf))
        with pytest.raises(CompileFailed):
            bad.orchestrator.build(BuildConfig(target="testarch"))
        assert not image.exists()
        assert not (image.parent / "build_receipt.json").exists()


class TestBuildAll:

    def test_all_in_order(self, launcher, tmp_path):
        images = launcher.orchestrator.build_all(BuildMode.RELEASE)
        assert [p.parent.name for p in images] == ["testarch", "dtbarch"]

    def test_fail_fast(self, launcher, fake_runner):
        fake_runner.fail("cargo:init")
        with pytest.raises(CompileFailed) as exc:
            launcher.orchestrator.build_all(BuildMode.RELEASE)
        assert exc.value.target == "testarch"
        # second target never started
        assert "qemu-system-loongarch64" not in fake_runner.programs()
