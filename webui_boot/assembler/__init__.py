from .pipeline import ImageAssembler, cache_entries_for

__all__ = ["ImageAssembler", "cache_entries_for"]
