from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


CacheKind = Literal["tokenizer", "embedding", "reranking", "speech_to_text"]


class ModelCacheEntry(BaseModel):
	kind: CacheKind
	source_identifier: str
	local_cache_dir: str
	verified: bool = False


class TlsInfo(BaseModel):
	cert_path: str
	key_path: str
	subject_cn: str = "localhost"
	san_entries: list[str] = ["DNS:localhost", "IP:127.0.0.1"]
	validity_days: int = 365


class ComputeInfo(BaseModel):
	runtime: Literal["cpu", "cuda"]
	variant: Optional[str] = None
	torch_version: Optional[str] = None
	cuda_build: Optional[str] = None
	gpu_visible_at_build: bool = False


class BuildManifest(BaseModel):
	build_identifier: str
	uid: int
	gid: int
	compute: ComputeInfo
	tls: TlsInfo
	caches: list[ModelCacheEntry] = []
	agents: list[str] = []
	created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class HealthStatus(BaseModel):
	status: bool
	version: Optional[str] = None


def read_manifest(path: Path) -> Optional[BuildManifest]:
	if not path.is_file():
		return None
	return BuildManifest.model_validate_json(path.read_text(encoding="utf-8"))
