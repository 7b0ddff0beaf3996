"""Image assembly: one strictly ordered sequence of provisioning steps.

Each step either completes or raises ``BuildFatal`` naming it; there is no
retry and no resume. The build manifest is moved into place only after the
final ownership pass, so its presence marks a fully assembled image.
"""

import logging
import os
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..config.config import BuildParameters, Layout
from ..errors import BuildFatal
from ..models import BuildManifest, ComputeInfo, ModelCacheEntry, TlsInfo
from .commands import CommandRunner
from .identity import Identity, resolve_identity
from .model_cache import ModelCacheWarmer
from .ownership import assign_ownership
from .packages import PackageInstaller
from .runtime import RuntimeReport, install_compute_runtime
from .startup_script import emit_startup_script
from .tls import TlsMaterial, provision_tls

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

ANONYMOUS_TELEMETRY_ID = "00000000-0000-0000-0000-000000000000"


def cache_entries_for(params: BuildParameters, layout: Layout) -> list[ModelCacheEntry]:
    sources = [
        ("tokenizer", params.tokenizer_encoding_name),
        ("embedding", params.embedding_model_id),
        ("reranking", params.reranking_model_id),
        ("speech_to_text", params.speech_to_text_model),
    ]
    return [
        ModelCacheEntry(kind=kind, source_identifier=source, local_cache_dir=str(layout.cache_dir(kind)))
        for kind, source in sources
        if source
    ]


class ImageAssembler:
    def __init__(
        self,
        params: BuildParameters,
        layout: Layout,
        runner: CommandRunner,
        installer: PackageInstaller,
        warmer: ModelCacheWarmer,
        tls_key_size: int = 4096,
    ) -> None:
        self.params = params
        self.layout = layout
        self.runner = runner
        self.installer = installer
        self.warmer = warmer
        self.tls_key_size = tls_key_size
        self.completed_steps: list[str] = []

    def _step(self, name: str, fn: Callable[[], T]) -> T:
        _LOGGER.info("[build] %s ...", name)
        try:
            result = fn()
        except BuildFatal:
            raise
        except Exception as exc:
            _LOGGER.error("[build] %s failed: %s", name, exc)
            raise BuildFatal(name, str(exc)) from exc
        self.completed_steps.append(name)
        _LOGGER.info("[build] %s done", name)
        return result

    def _opt_out_of_telemetry(self) -> None:
        target = self.layout.telemetry_id_file
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(ANONYMOUS_TELEMETRY_ID, encoding="utf-8")

    def _install_system_packages(self) -> list[str]:
        self.installer.install_system_packages()
        agents: list[str] = []
        if self.params.use_ollama:
            self.installer.install_ollama()
            agents.append("ollama")
        if self.params.use_vpn_agent:
            self.installer.install_vpn_agent()
            agents.append("tailscale")
        return agents

    def _ensure_data_dir(self) -> None:
        self.layout.data_dir.mkdir(parents=True, exist_ok=True)

    def _stage_manifest(self, manifest: BuildManifest) -> Path:
        staged = self.layout.manifest_path.with_name(self.layout.manifest_path.name + ".partial")
        staged.parent.mkdir(parents=True, exist_ok=True)
        staged.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")
        return staged

    def _clear_seal(self) -> None:
        # a rebuild must not leave a stale seal behind if it fails
        if self.layout.manifest_path.exists():
            self.layout.manifest_path.unlink()

    def assemble(self) -> BuildManifest:
        params, layout = self.params, self.layout
        self._step("clear-seal", self._clear_seal)

        identity: Identity = self._step(
            "resolve-identity",
            lambda: resolve_identity(self.runner, params.uid, params.gid, layout.home_dir),
        )
        self._step("telemetry-opt-out", self._opt_out_of_telemetry)
        agents: list[str] = self._step("system-packages", self._install_system_packages)
        tls: TlsMaterial = self._step("provision-tls", lambda: provision_tls(layout.ssl_dir, key_size=self.tls_key_size))
        runtime: RuntimeReport = self._step(
            f"install-{params.compute.value}-runtime",
            lambda: install_compute_runtime(self.installer, params.compute, params.gpu_runtime_variant),
        )
        self._step("python-dependencies", lambda: self.installer.install_python_dependencies(layout.requirements_file))

        caches: list[ModelCacheEntry] = []
        for entry in cache_entries_for(params, layout):
            caches.append(self._step(f"warm-cache:{entry.kind}", lambda e=entry: self.warmer.warm_and_verify(e)))

        self._step("data-dir", self._ensure_data_dir)
        self._step("startup-script", lambda: emit_startup_script(layout.startup_script, self.installer.python))

        manifest = BuildManifest(
            build_identifier=params.build_identifier,
            uid=identity.uid,
            gid=identity.gid,
            compute=ComputeInfo(
                runtime=runtime.runtime.value,
                variant=runtime.variant,
                torch_version=runtime.torch_version,
                cuda_build=runtime.cuda_build,
                gpu_visible_at_build=runtime.gpu_visible,
            ),
            tls=TlsInfo(
                cert_path=str(tls.cert_path),
                key_path=str(tls.key_path),
                subject_cn=tls.subject_cn,
                san_entries=list(tls.san_entries),
                validity_days=tls.validity_days,
            ),
            caches=caches,
            agents=agents,
        )
        staged = self._step("stage-manifest", lambda: self._stage_manifest(manifest))
        self._step(
            "assign-ownership",
            lambda: assign_ownership(layout.owned_paths(), identity.uid, identity.gid),
        )
        self._step("seal", lambda: os.replace(staged, layout.manifest_path))
        return manifest


def describe(manifest: BuildManifest) -> dict[str, Any]:
    return {
        "build": manifest.build_identifier,
        "identity": f"{manifest.uid}:{manifest.gid}",
        "compute": manifest.compute.runtime,
        "caches": [c.kind for c in manifest.caches if c.verified],
        "agents": manifest.agents,
    }
