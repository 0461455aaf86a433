"""Result persistence."""

from .result_store import ResultStore, JsonResultStore, build_record

__all__ = ["ResultStore", "JsonResultStore", "build_record"]
