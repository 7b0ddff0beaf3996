import enum
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


def read_env(name: str, default: str | None = None, required: bool = False, environ: Mapping[str, str] | None = None) -> str | None:
	env = os.environ if environ is None else environ
	value = env.get(name, default)
	if required and (value is None or value == ""):
		raise RuntimeError(f"Missing required environment variable: {name}")
	return value


def read_flag(name: str, default: bool = False, environ: Mapping[str, str] | None = None) -> bool:
	# Shell semantics: only the literal "true" enables a flag.
	raw = read_env(name, "true" if default else "false", environ=environ)
	return raw == "true"


def read_int(name: str, default: int, environ: Mapping[str, str] | None = None) -> int:
	raw = read_env(name, str(default), environ=environ)
	if raw is None or raw.strip() == "":
		return default
	try:
		return int(raw.strip())
	except ValueError:
		raise ValueError(f"{name} must be an integer, got {raw!r}") from None


class ComputeRuntime(str, enum.Enum):
	CPU = "cpu"
	CUDA = "cuda"


_CUDA_VARIANT = re.compile(r"^cu\d{3,4}$")

DEFAULT_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_TOKENIZER_ENCODING = "cl100k_base"
DEFAULT_SPEECH_TO_TEXT_MODEL = "base"
DEFAULT_CUDA_VARIANT = "cu121"
DEFAULT_BUILD_IDENTIFIER = "dev-build"


@dataclass(frozen=True)
class BuildParameters:
	"""Build arguments, fixed once the image is assembled."""

	compute: ComputeRuntime = ComputeRuntime.CPU
	gpu_runtime_variant: str = DEFAULT_CUDA_VARIANT
	use_vpn_agent: bool = True
	use_ollama: bool = False
	embedding_model_id: str = DEFAULT_EMBEDDING_MODEL
	reranking_model_id: str = ""
	tokenizer_encoding_name: str = DEFAULT_TOKENIZER_ENCODING
	speech_to_text_model: str = DEFAULT_SPEECH_TO_TEXT_MODEL
	build_identifier: str = DEFAULT_BUILD_IDENTIFIER
	uid: int = 0
	gid: int = 0

	def __post_init__(self) -> None:
		if self.uid < 0 or self.gid < 0:
			raise ValueError(f"uid/gid must be non-negative, got uid={self.uid} gid={self.gid}")
		if self.compute is ComputeRuntime.CUDA and not _CUDA_VARIANT.match(self.gpu_runtime_variant):
			raise ValueError(f"Unsupported GPU runtime variant: {self.gpu_runtime_variant!r} (expected e.g. cu121)")
		if not self.embedding_model_id:
			raise ValueError("An embedding model id is required")
		if not self.tokenizer_encoding_name:
			raise ValueError("A tokenizer encoding name is required")

	@property
	def use_gpu(self) -> bool:
		return self.compute is ComputeRuntime.CUDA

	@classmethod
	def from_env(cls, environ: Mapping[str, str] | None = None) -> "BuildParameters":
		use_gpu = read_flag("USE_CUDA", environ=environ)
		return cls(
			compute=ComputeRuntime.CUDA if use_gpu else ComputeRuntime.CPU,
			gpu_runtime_variant=read_env("USE_CUDA_VER", DEFAULT_CUDA_VARIANT, environ=environ) or DEFAULT_CUDA_VARIANT,
			use_vpn_agent=read_flag("USE_VPN_AGENT", default=True, environ=environ),
			use_ollama=read_flag("USE_OLLAMA", environ=environ),
			embedding_model_id=read_env("USE_EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL, environ=environ) or DEFAULT_EMBEDDING_MODEL,
			reranking_model_id=read_env("USE_RERANKING_MODEL", "", environ=environ) or "",
			tokenizer_encoding_name=read_env("USE_TIKTOKEN_ENCODING_NAME", DEFAULT_TOKENIZER_ENCODING, environ=environ)
			or DEFAULT_TOKENIZER_ENCODING,
			speech_to_text_model=read_env("WHISPER_MODEL", DEFAULT_SPEECH_TO_TEXT_MODEL, environ=environ)
			or DEFAULT_SPEECH_TO_TEXT_MODEL,
			build_identifier=read_env("BUILD_HASH", DEFAULT_BUILD_IDENTIFIER, environ=environ) or DEFAULT_BUILD_IDENTIFIER,
			uid=read_int("UID", 0, environ=environ),
			gid=read_int("GID", 0, environ=environ),
		)


@dataclass(frozen=True)
class Layout:
	"""Well-known paths inside the image."""

	app_root: Path = Path("/app")
	home_dir: Path = Path("/root")

	@property
	def backend_dir(self) -> Path:
		return self.app_root / "backend"

	@property
	def ssl_dir(self) -> Path:
		return self.backend_dir / "ssl"

	@property
	def cert_path(self) -> Path:
		return self.ssl_dir / "cert.pem"

	@property
	def key_path(self) -> Path:
		return self.ssl_dir / "key.pem"

	@property
	def data_dir(self) -> Path:
		return self.backend_dir / "data"

	@property
	def cache_root(self) -> Path:
		return self.data_dir / "cache"

	@property
	def startup_script(self) -> Path:
		return self.backend_dir / "start-with-ssl.sh"

	@property
	def manifest_path(self) -> Path:
		return self.backend_dir / "build-manifest.json"

	@property
	def requirements_file(self) -> Path:
		return self.backend_dir / "requirements.txt"

	@property
	def home_cache_dir(self) -> Path:
		return self.home_dir / ".cache"

	@property
	def telemetry_id_file(self) -> Path:
		return self.home_cache_dir / "chroma" / "telemetry_user_id"

	def cache_dir(self, kind: str) -> Path:
		subdirs = {
			"tokenizer": "tiktoken",
			"embedding": "embedding/models",
			"reranking": "reranking/models",
			"speech_to_text": "whisper/models",
		}
		if kind not in subdirs:
			raise KeyError(f"Unknown cache kind: {kind}")
		return self.cache_root / subdirs[kind]

	def owned_paths(self) -> list[Path]:
		"""Paths that must belong to the runtime identity before start."""
		return [self.app_root, self.home_dir, self.ssl_dir, self.data_dir]

	@classmethod
	def from_env(cls, environ: Mapping[str, str] | None = None) -> "Layout":
		return cls(
			app_root=Path(read_env("APP_ROOT", "/app", environ=environ) or "/app"),
			home_dir=Path(read_env("HOME", "/root", environ=environ) or "/root"),
		)
