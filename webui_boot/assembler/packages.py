import logging
import sys
from pathlib import Path

from .commands import CommandRunner

_LOGGER = logging.getLogger(__name__)

SYSTEM_PACKAGES = [
    "git", "build-essential", "pandoc", "netcat-openbsd", "curl",
    "gcc", "python3-dev", "ffmpeg", "libsm6", "libxext6",
    "openssl", "ca-certificates", "wget",
    "libssl-dev", "libcurl4-openssl-dev",
]

CORE_PYTHON_PACKAGES = ["tiktoken", "certifi", "requests[security]"]

OLLAMA_INSTALL = "curl -fsSL https://ollama.com/install.sh | sh"
TAILSCALE_KEYRING = "https://pkgs.tailscale.com/stable/debian/bullseye.noarmor.gpg"
TAILSCALE_SOURCES = "https://pkgs.tailscale.com/stable/debian/bullseye.tailscale-keyring.list"


class PackageInstaller:
    def __init__(self, runner: CommandRunner, python: str | None = None) -> None:
        self.runner = runner
        self.python = python or sys.executable

    def install_system_packages(self, packages: list[str] | None = None) -> None:
        self.runner.run(["apt-get", "update"])
        self.runner.run(["apt-get", "install", "-y", "--no-install-recommends", *(packages or SYSTEM_PACKAGES)])
        self.runner.run(["update-ca-certificates"])

    def install_ollama(self) -> str:
        self.runner.run_shell(OLLAMA_INSTALL)
        return self._require_binary("ollama")

    def install_vpn_agent(self) -> str:
        self.runner.run_shell(
            f"curl -fsSL {TAILSCALE_KEYRING} > /usr/share/keyrings/tailscale-archive-keyring.gpg && "
            f"curl -fsSL {TAILSCALE_SOURCES} > /etc/apt/sources.list.d/tailscale.list"
        )
        self.runner.run(["apt-get", "update"])
        self.runner.run(["apt-get", "install", "-y", "tailscale"])
        return self._require_binary("tailscale")

    def pip_install(self, *args: str) -> None:
        self.runner.run([self.python, "-m", "pip", "install", "--no-cache-dir", *args])

    def install_python_dependencies(self, requirements: Path | None = None) -> None:
        self.pip_install(*CORE_PYTHON_PACKAGES)
        if requirements is not None and requirements.is_file():
            self.pip_install("-r", str(requirements))
        else:
            _LOGGER.info("no requirements file at %s; core packages only", requirements)

    def _require_binary(self, name: str) -> str:
        path = self.runner.which(name)
        if not path:
            raise RuntimeError(f"{name} was installed but is not on PATH")
        _LOGGER.info("%s available at %s", name, path)
        return path
