import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from ..config.config import Layout, read_env
from ..errors import BootstrapFatal

DEFAULT_PORT = 8080
DEFAULT_SSL_PORT = 8443
DEFAULT_HOST = "0.0.0.0"
DEFAULT_APP_TARGET = "main:app"


@dataclass(frozen=True)
class RuntimeConfig:
	use_ssl: bool
	ssl_key_path: Path
	ssl_cert_path: Path
	plain_port: int = DEFAULT_PORT
	ssl_port: int = DEFAULT_SSL_PORT
	host: str = DEFAULT_HOST
	app_target: str = DEFAULT_APP_TARGET

	@property
	def active_port(self) -> int:
		return self.ssl_port if self.use_ssl else self.plain_port

	@property
	def scheme(self) -> str:
		return "https" if self.use_ssl else "http"


def _parse_port(name: str, default: int, environ: Mapping[str, str], strict: bool) -> int:
	raw = (read_env(name, "", environ=environ) or "").strip()
	if not raw:
		return default
	try:
		port = int(raw)
	except ValueError:
		port = -1
	if not 1 <= port <= 65535:
		if strict:
			raise BootstrapFatal(f"{name}={raw!r} is not a valid TCP port")
		return default
	return port


def resolve_runtime_config(environ: Mapping[str, str] | None = None, layout: Layout | None = None) -> RuntimeConfig:
	"""Build the listener configuration from one environment snapshot.

	Only the literal ``USE_SSL=true`` selects the SSL listener. The port of the
	inactive listener is never allowed to fail the start.
	"""
	env = os.environ if environ is None else environ
	layout = layout or Layout()
	use_ssl = read_env("USE_SSL", "false", environ=env) == "true"
	return RuntimeConfig(
		use_ssl=use_ssl,
		plain_port=_parse_port("PORT", DEFAULT_PORT, env, strict=not use_ssl),
		ssl_port=_parse_port("SSL_PORT", DEFAULT_SSL_PORT, env, strict=use_ssl),
		ssl_key_path=Path(read_env("SSL_KEY_PATH", "", environ=env) or layout.key_path),
		ssl_cert_path=Path(read_env("SSL_CERT_PATH", "", environ=env) or layout.cert_path),
		app_target=read_env("APP_TARGET", DEFAULT_APP_TARGET, environ=env) or DEFAULT_APP_TARGET,
	)
