"""Listener selection and process hand-off.

Init reads the resolved ``RuntimeConfig`` and moves to exactly one terminal
state, PlainListen or SslListen. The supervisor then replaces itself with the
application process; nothing stays resident.
"""

import enum
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Sequence

from ..config.config import Layout
from ..errors import BootstrapFatal
from ..models import BuildManifest
from .runtime_config import RuntimeConfig

_LOGGER = logging.getLogger(__name__)

Exec = Callable[[str, Sequence[str], Mapping[str, str]], None]

CACHE_ENV = {
	"tokenizer": ("TIKTOKEN_ENCODING_NAME", "TIKTOKEN_CACHE_DIR"),
	"embedding": ("RAG_EMBEDDING_MODEL", "SENTENCE_TRANSFORMERS_HOME"),
	"reranking": ("RAG_RERANKING_MODEL", None),
	"speech_to_text": ("WHISPER_MODEL", "WHISPER_MODEL_DIR"),
}

BASE_ENV = {
	"ENV": "prod",
	"DOCKER": "true",
	"SCARF_NO_ANALYTICS": "true",
	"DO_NOT_TRACK": "true",
	"ANONYMIZED_TELEMETRY": "false",
}


class ListenerMode(str, enum.Enum):
	PLAIN = "plain"
	SSL = "ssl"


@dataclass(frozen=True)
class LaunchPlan:
	mode: ListenerMode
	host: str
	port: int
	argv: tuple[str, ...]

	@property
	def banner(self) -> str:
		if self.mode is ListenerMode.SSL:
			return f"Starting server with SSL on port {self.port}"
		return f"Starting server without SSL on port {self.port}"


def _require_readable(path: Path, label: str) -> None:
	if not path.is_file():
		raise BootstrapFatal(f"USE_SSL=true but {label} {path} does not exist or is not a regular file")
	try:
		with open(path, "rb") as f:
			f.read(1)
	except OSError as e:
		raise BootstrapFatal(f"USE_SSL=true but {label} {path} is not readable: {e.strerror or e}") from e


def plan_launch(config: RuntimeConfig, python: str | None = None) -> LaunchPlan:
	argv = [
		python or sys.executable,
		"-m", "uvicorn", config.app_target,
		"--host", config.host,
		"--port", str(config.active_port),
	]
	if not config.use_ssl:
		return LaunchPlan(mode=ListenerMode.PLAIN, host=config.host, port=config.plain_port, argv=tuple(argv))

	_require_readable(config.ssl_key_path, "SSL_KEY_PATH")
	_require_readable(config.ssl_cert_path, "SSL_CERT_PATH")
	argv += [f"--ssl-keyfile={config.ssl_key_path}", f"--ssl-certfile={config.ssl_cert_path}"]
	return LaunchPlan(mode=ListenerMode.SSL, host=config.host, port=config.ssl_port, argv=tuple(argv))


def build_launch_env(environ: Mapping[str, str], layout: Layout, manifest: BuildManifest | None) -> dict[str, str]:
	defaults: dict[str, str] = dict(BASE_ENV)
	defaults["HF_HOME"] = str(layout.cache_dir("embedding"))
	for kind, (_, dir_var) in CACHE_ENV.items():
		if dir_var:
			defaults[dir_var] = str(layout.cache_dir(kind))
	if manifest is not None:
		defaults["WEBUI_BUILD_VERSION"] = manifest.build_identifier
		for entry in manifest.caches:
			model_var, _ = CACHE_ENV[entry.kind]
			defaults[model_var] = entry.source_identifier
	env = defaults
	env.update(environ)
	return env


def launch(plan: LaunchPlan, env: Mapping[str, str], execvpe: Exec | None = None) -> None:
	print(plan.banner, flush=True)
	_LOGGER.info("%s (%s)", plan.banner, " ".join(plan.argv))
	sys.stderr.flush()
	(execvpe or os.execvpe)(plan.argv[0], list(plan.argv), dict(env))
