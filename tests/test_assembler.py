import os
import stat

import pytest

from webui_boot.assembler import identity as ident
from webui_boot.assembler.packages import PackageInstaller
from webui_boot.assembler.pipeline import ANONYMOUS_TELEMETRY_ID, ImageAssembler
from webui_boot.config.config import BuildParameters, ComputeRuntime
from webui_boot.errors import BuildFatal
from webui_boot.models import read_manifest


def _assembler(params, layout, runner, loaders):
	installer = PackageInstaller(runner, python="/usr/local/bin/python3")
	return ImageAssembler(params, layout, runner, installer, loaders.warmer(), tls_key_size=2048)


def test_root_build_produces_sealed_image(layout, runner, make_loaders, chown_calls):
	loaders = make_loaders()
	manifest = _assembler(BuildParameters(build_identifier="abc"), layout, runner, loaders).assemble()

	assert runner.commands("addgroup") == [] and runner.commands("adduser") == []
	assert chown_calls == []
	assert layout.manifest_path.is_file()
	stored = read_manifest(layout.manifest_path)
	assert stored.build_identifier == "abc"
	assert stored.compute.runtime == "cpu"
	assert [c.kind for c in stored.caches] == ["tokenizer", "embedding", "speech_to_text"]
	assert all(c.verified for c in stored.caches)
	assert manifest.agents == ["tailscale"]

	assert stat.S_IMODE(layout.key_path.stat().st_mode) == 0o600
	assert layout.telemetry_id_file.read_text() == ANONYMOUS_TELEMETRY_ID
	assert layout.data_dir.is_dir()
	script = layout.startup_script
	assert os.access(script, os.X_OK)
	assert "webui_boot.cli start" in script.read_text()


def test_non_root_build_hands_every_path_to_identity(layout, runner, make_loaders, chown_calls, monkeypatch):
	monkeypatch.setattr(ident, "_group_exists", lambda gid: False)
	params = BuildParameters(uid=1000, gid=1000)
	_assembler(params, layout, runner, make_loaders()).assemble()

	assert len(runner.commands("adduser")) == 1
	assert len(runner.commands("addgroup")) == 1
	owned = {p for p, _, _ in chown_calls}
	assert {(u, g) for _, u, g in chown_calls} == {(1000, 1000)}
	assert len(owned) == len(chown_calls)
	for path in [layout.key_path, layout.cert_path, layout.startup_script, layout.data_dir, layout.telemetry_id_file]:
		assert str(path) in owned
	assert str(layout.cache_dir("embedding") / "model.bin") in owned


def test_identity_is_created_before_anything_is_chowned(layout, runner, make_loaders, monkeypatch):
	from webui_boot.assembler import ownership

	monkeypatch.setattr(ident, "_group_exists", lambda gid: True)
	order = []
	original_run = runner.run

	def tracking_run(cmd):
		order.append(cmd[0])
		return original_run(cmd)

	monkeypatch.setattr(runner, "run", tracking_run)
	monkeypatch.setattr(ownership, "_chown", lambda path, uid, gid: order.append("chown"))
	_assembler(BuildParameters(uid=1000, gid=1000), layout, runner, make_loaders()).assemble()
	assert order.index("adduser") < order.index("chown")
	# ownership is one contiguous pass at the very end
	first = order.index("chown")
	assert all(step == "chown" for step in order[first:])


def test_model_probe_failure_aborts_without_manifest(layout, runner, make_loaders, chown_calls):
	assembler = _assembler(BuildParameters(), layout, runner, make_loaders(fail_kind="embedding"))
	with pytest.raises(BuildFatal) as exc:
		assembler.assemble()
	assert exc.value.step == "warm-cache:embedding"
	assert "not reachable" in str(exc.value)
	assert not layout.manifest_path.exists()
	assert not layout.startup_script.exists()
	assert chown_calls == []


def test_identity_failure_stops_before_tls(layout, make_runner, make_loaders, monkeypatch):
	monkeypatch.setattr(ident, "_group_exists", lambda gid: False)
	runner = make_runner(fail_on="adduser")
	assembler = _assembler(BuildParameters(uid=1000, gid=1000), layout, runner, make_loaders())
	with pytest.raises(BuildFatal) as exc:
		assembler.assemble()
	assert exc.value.step == "resolve-identity"
	assert assembler.completed_steps == ["clear-seal"]
	assert not layout.key_path.exists()


def test_gpu_fallback_to_cpu_wheel_fails_the_build(layout, make_runner, make_loaders):
	runner = make_runner(torch_info={"version": "2.3.1+cpu", "cuda": None, "available": False})
	params = BuildParameters(compute=ComputeRuntime.CUDA, gpu_runtime_variant="cu121")
	with pytest.raises(BuildFatal) as exc:
		_assembler(params, layout, runner, make_loaders()).assemble()
	assert exc.value.step == "install-cuda-runtime"
	assert not layout.manifest_path.exists()


def test_optional_agents_follow_flags(layout, make_runner, make_loaders):
	runner = make_runner()
	params = BuildParameters(use_vpn_agent=False, use_ollama=True)
	manifest = _assembler(params, layout, runner, make_loaders()).assemble()
	assert manifest.agents == ["ollama"]
	scripts = [c[2] for c in runner.commands("sh")]
	assert any("ollama.com/install.sh" in s for s in scripts)
	assert not any("tailscale" in s for s in scripts)


def test_agent_missing_after_install_is_fatal(layout, make_runner, make_loaders):
	runner = make_runner(binaries=())
	with pytest.raises(BuildFatal) as exc:
		_assembler(BuildParameters(use_vpn_agent=True), layout, runner, make_loaders()).assemble()
	assert exc.value.step == "system-packages"


def test_failed_rebuild_removes_previous_seal(layout, runner, make_loaders):
	_assembler(BuildParameters(), layout, runner, make_loaders()).assemble()
	assert layout.manifest_path.exists()
	with pytest.raises(BuildFatal):
		_assembler(BuildParameters(), layout, runner, make_loaders(fail_kind="tokenizer")).assemble()
	assert not layout.manifest_path.exists()


def test_non_root_build_owns_home_directory(layout, runner, make_loaders, chown_calls, monkeypatch):
	monkeypatch.setattr(ident, "_group_exists", lambda gid: True)
	_assembler(BuildParameters(uid=1000, gid=1000), layout, runner, make_loaders()).assemble()
	owned = [p for p, _, _ in chown_calls]
	assert str(layout.home_dir) in owned
	assert str(layout.home_cache_dir) in owned
	assert owned.count(str(layout.home_cache_dir)) == 1


def test_unremovable_previous_seal_is_a_named_failure(layout, runner, make_loaders):
	layout.manifest_path.mkdir(parents=True)
	(layout.manifest_path / "leftover").write_text("x")
	assembler = _assembler(BuildParameters(), layout, runner, make_loaders())
	with pytest.raises(BuildFatal) as exc:
		assembler.assemble()
	assert exc.value.step == "clear-seal"
	assert runner.calls == []
