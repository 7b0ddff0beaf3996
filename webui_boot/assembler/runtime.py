import json
import logging
from dataclasses import dataclass

from ..config.config import ComputeRuntime
from .packages import PackageInstaller

_LOGGER = logging.getLogger(__name__)

TORCH_PACKAGES = ["torch", "torchvision", "torchaudio"]
TORCH_INDEX = "https://download.pytorch.org/whl/{variant}"

_PROBE = (
    "import json, torch; "
    "print(json.dumps({'version': torch.__version__, 'cuda': torch.version.cuda, "
    "'available': bool(torch.cuda.is_available())}))"
)


class RuntimeMismatch(RuntimeError):
    pass


@dataclass(frozen=True)
class RuntimeReport:
    runtime: ComputeRuntime
    variant: str | None
    torch_version: str
    cuda_build: str | None
    gpu_visible: bool


def _probe(installer: PackageInstaller) -> dict:
    out = installer.runner.run([installer.python, "-c", _PROBE])
    lines = [line for line in out.strip().splitlines() if line.strip()]
    if not lines:
        raise RuntimeMismatch("torch probe produced no output")
    try:
        return json.loads(lines[-1])
    except json.JSONDecodeError as exc:
        raise RuntimeMismatch(f"torch probe output is not JSON: {lines[-1]!r}") from exc


def install_gpu_runtime(installer: PackageInstaller, variant: str) -> RuntimeReport:
    installer.pip_install(*TORCH_PACKAGES, "--index-url", TORCH_INDEX.format(variant=variant))
    info = _probe(installer)
    if not info.get("cuda"):
        # CPU wheel under a GPU request: surface it, never ship it
        raise RuntimeMismatch(
            f"GPU runtime {variant} requested but installed torch {info.get('version')} has no CUDA build"
        )
    if not info.get("available"):
        _LOGGER.warning(
            "torch %s (CUDA %s) installed but no GPU is visible on the build host; "
            "device visibility will be decided at run time",
            info.get("version"),
            info.get("cuda"),
        )
    return RuntimeReport(
        runtime=ComputeRuntime.CUDA,
        variant=variant,
        torch_version=str(info.get("version")),
        cuda_build=info.get("cuda"),
        gpu_visible=bool(info.get("available")),
    )


def install_cpu_runtime(installer: PackageInstaller) -> RuntimeReport:
    installer.pip_install(*TORCH_PACKAGES, "--index-url", TORCH_INDEX.format(variant="cpu"))
    info = _probe(installer)
    if info.get("cuda"):
        raise RuntimeMismatch(
            f"CPU runtime requested but installed torch {info.get('version')} is a CUDA {info.get('cuda')} build"
        )
    return RuntimeReport(
        runtime=ComputeRuntime.CPU,
        variant=None,
        torch_version=str(info.get("version")),
        cuda_build=None,
        gpu_visible=False,
    )


def install_compute_runtime(installer: PackageInstaller, compute: ComputeRuntime, variant: str) -> RuntimeReport:
    if compute is ComputeRuntime.CUDA:
        return install_gpu_runtime(installer, variant)
    if compute is ComputeRuntime.CPU:
        return install_cpu_runtime(installer)
    raise ValueError(f"Unhandled compute runtime: {compute}")
