import json
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `import webui_boot` works under pytest
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
	sys.path.insert(0, str(ROOT_DIR))

from webui_boot.assembler.commands import CommandError
from webui_boot.assembler.model_cache import ModelCacheWarmer
from webui_boot.assembler.packages import PackageInstaller
from webui_boot.config.config import Layout

CPU_TORCH = {"version": "2.3.1+cpu", "cuda": None, "available": False}
CUDA_TORCH = {"version": "2.3.1+cu121", "cuda": "12.1", "available": True}


class FakeRunner:
	def __init__(self, torch_info=None, fail_on=None, binaries=("ollama", "tailscale")) -> None:
		self.calls = []
		self.torch_info = dict(torch_info or CPU_TORCH)
		self.fail_on = fail_on
		self.binaries = set(binaries)

	def run(self, cmd):
		cmd = list(cmd)
		self.calls.append(cmd)
		if self.fail_on and self.fail_on in cmd:
			raise CommandError(cmd, 1, f"{self.fail_on}: simulated failure")
		if "-c" in cmd:
			return "noise from import\n" + json.dumps(self.torch_info) + "\n"
		return ""

	def run_shell(self, script):
		self.calls.append(["sh", "-c", script])
		if self.fail_on and self.fail_on in script:
			raise CommandError(script, 1, "simulated failure")
		return ""

	def which(self, binary):
		return f"/usr/bin/{binary}" if binary in self.binaries else None

	def commands(self, name):
		return [c for c in self.calls if c and c[0] == name]


class RecordingLoaders:
	def __init__(self, fail_kind=None) -> None:
		self.loaded = []
		self.fail_kind = fail_kind

	def loader(self, kind):
		def _load(source, cache_dir):
			if kind == self.fail_kind:
				raise OSError(f"{source} is not reachable")
			(cache_dir / "model.bin").write_text(source)
			self.loaded.append((kind, source, cache_dir))
			return object()
		return _load

	def warmer(self):
		kinds = ["tokenizer", "embedding", "reranking", "speech_to_text"]
		return ModelCacheWarmer({k: self.loader(k) for k in kinds})


@pytest.fixture
def layout(tmp_path):
	return Layout(app_root=tmp_path / "app", home_dir=tmp_path / "home")


@pytest.fixture
def runner():
	return FakeRunner()


@pytest.fixture
def installer(runner):
	return PackageInstaller(runner, python="/usr/local/bin/python3")


@pytest.fixture
def chown_calls(monkeypatch):
	from webui_boot.assembler import ownership

	calls = []
	monkeypatch.setattr(ownership, "_chown", lambda path, uid, gid: calls.append((path, uid, gid)))
	return calls


@pytest.fixture
def make_runner():
	return FakeRunner


@pytest.fixture
def make_loaders():
	return RecordingLoaders
