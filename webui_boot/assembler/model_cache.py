import gc
import logging
import os
from pathlib import Path
from typing import Any, Callable

from ..models import ModelCacheEntry

_LOGGER = logging.getLogger(__name__)

Loader = Callable[[str, Path], Any]


def load_tokenizer(encoding_name: str, cache_dir: Path) -> Any:
	try:
		import tiktoken  # type: ignore
	except Exception as e:
		raise RuntimeError("tiktoken is required to warm the tokenizer cache") from e
	# tiktoken reads its cache location from the environment on each fetch
	os.environ["TIKTOKEN_CACHE_DIR"] = str(cache_dir)
	return tiktoken.get_encoding(encoding_name)


def load_embedding(model_id: str, cache_dir: Path) -> Any:
	try:
		from sentence_transformers import SentenceTransformer  # type: ignore
	except Exception as e:
		raise RuntimeError("sentence-transformers is required to warm the embedding cache") from e
	return SentenceTransformer(model_id, device="cpu", cache_folder=str(cache_dir))


def load_reranking(model_id: str, cache_dir: Path) -> Any:
	try:
		from sentence_transformers import CrossEncoder  # type: ignore
	except Exception as e:
		raise RuntimeError("sentence-transformers is required to warm the reranking cache") from e
	return CrossEncoder(model_id, device="cpu", cache_folder=str(cache_dir))


def load_speech_to_text(model_name: str, cache_dir: Path) -> Any:
	try:
		from faster_whisper import WhisperModel  # type: ignore
	except Exception as e:
		raise RuntimeError("faster-whisper is required to warm the speech-to-text cache") from e
	return WhisperModel(model_name, device="cpu", compute_type="int8", download_root=str(cache_dir))


DEFAULT_LOADERS: dict[str, Loader] = {
	"tokenizer": load_tokenizer,
	"embedding": load_embedding,
	"reranking": load_reranking,
	"speech_to_text": load_speech_to_text,
}


class ModelCacheWarmer:
	def __init__(self, loaders: dict[str, Loader] | None = None) -> None:
		self.loaders = dict(DEFAULT_LOADERS)
		if loaders:
			self.loaders.update(loaders)

	def warm_and_verify(self, entry: ModelCacheEntry) -> ModelCacheEntry:
		"""Load the model into its cache directory and discard it.

		Exceptions from the loader propagate unchanged; the caller treats them
		as fatal to the build.
		"""
		loader = self.loaders.get(entry.kind)
		if loader is None:
			raise KeyError(f"No loader registered for cache kind {entry.kind!r}")
		cache_dir = Path(entry.local_cache_dir)
		cache_dir.mkdir(parents=True, exist_ok=True)
		_LOGGER.info("warming %s cache from %s into %s", entry.kind, entry.source_identifier, cache_dir)
		loaded = loader(entry.source_identifier, cache_dir)
		del loaded
		gc.collect()
		return entry.model_copy(update={"verified": True})
