"""
Persistent index cache (``<project>/.mxr/index.json``).

Stores, per project-relative file path, the file's mtime/size and the @MapperScan
configuration found in it (if any), so unchanged files are not re-read across sessions.
Freshness is mtime+size only: an edit that keeps both unchanged is not detected.
"""
from __future__ import annotations

import json
import logging
import os
import time
from typing import Dict, Iterable, List, Optional, Tuple

from mxr.models.mapping import CacheEntry, MapperScanConfig
from mxr.utils.logger import get_logger

INDEX_VERSION = "1.0"
INDEX_FILE = "index.json"


class IndexCache:
    def __init__(self, project_root: str, cache_dir: str = ".mxr", logger: Optional[logging.Logger] = None):
        self.project_root = os.path.abspath(project_root)
        self.index_path = os.path.join(self.project_root, cache_dir, INDEX_FILE)
        self.logger = logger or get_logger(__name__)
        self._entries: Dict[str, CacheEntry] = {}
        self._loaded = False

    # ------------------------------------------------------------ persistence

    def load(self) -> int:
        """
        캐시 파일을 읽어 메모리에 적재합니다.

        버전 또는 프로젝트 루트가 다르면 캐시를 비우고, 손상된 파일은 없는 것으로 취급합니다.

        Returns:
            적재된 엔트리 수
        """
        self._entries.clear()
        self._loaded = True
        try:
            with open(self.index_path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            self.logger.debug(f"No index cache at {self.index_path}")
            return 0
        except (OSError, ValueError) as exc:
            self.logger.debug(f"Index cache unreadable, rebuilding: {exc}")
            return 0

        if not isinstance(data, dict) or data.get("version") != INDEX_VERSION:
            self.logger.info(f"Index cache version mismatch ({data.get('version') if isinstance(data, dict) else None}"
                             f" vs {INDEX_VERSION}), rebuilding")
            self.clear_cache()
            return 0
        if data.get("projectRoot") != self.project_root:
            self.logger.info("Project root changed, rebuilding index cache")
            self.clear_cache()
            return 0

        for raw in data.get("entries") or []:
            entry = _entry_from_json(raw)
            if entry is not None:
                self._entries[entry.path] = entry
        self.logger.info(f"Loaded index cache with {len(self._entries)} entries")
        return len(self._entries)

    def save(self) -> bool:
        if not self._loaded:
            return False
        payload = {
            "version": INDEX_VERSION,
            "timestamp": int(time.time() * 1000),
            "projectRoot": self.project_root,
            "entries": [_entry_to_json(entry) for entry in self._entries.values()],
        }
        try:
            os.makedirs(os.path.dirname(self.index_path), exist_ok=True)
            temp_path = self.index_path + ".tmp"
            with open(temp_path, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
            os.replace(temp_path, self.index_path)
        except OSError as exc:
            self.logger.debug(f"Failed to save index cache: {exc}")
            return False
        self.logger.debug(f"Saved index cache with {len(self._entries)} entries")
        return True

    def clear_cache(self) -> None:
        self._entries.clear()
        try:
            os.remove(self.index_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            self.logger.debug(f"Failed to delete index cache: {exc}")

    # ---------------------------------------------------------------- entries

    def relative_key(self, file_path: str) -> str:
        return os.path.relpath(os.path.abspath(file_path), self.project_root).replace(os.sep, "/")

    def lookup(self, file_path: str) -> Optional[CacheEntry]:
        """Return the entry if its mtime and size still match the file, else None."""
        key = self.relative_key(file_path)
        entry = self._entries.get(key)
        if entry is None:
            return None
        stat = _stat(file_path)
        if stat is None:
            del self._entries[key]
            return None
        if stat == (entry.mtime, entry.size):
            return entry.model_copy(deep=True)
        return None

    def is_cached(self, file_path: str) -> bool:
        return self.lookup(file_path) is not None

    def update_entry(self, file_path: str, mapper_scan: Optional[MapperScanConfig] = None) -> bool:
        stat = _stat(file_path)
        if stat is None:
            self.logger.debug(f"Failed to update cache for {file_path}: file not found")
            return False
        key = self.relative_key(file_path)
        self._entries[key] = CacheEntry(path=key, mtime=stat[0], size=stat[1], mapper_scan=mapper_scan)
        return True

    def update_entries(self, items: Iterable[Tuple[str, Optional[MapperScanConfig]]]) -> None:
        for file_path, mapper_scan in items:
            self.update_entry(file_path, mapper_scan)
        self.save()

    def remove_entry(self, file_path: str) -> bool:
        return self._entries.pop(self.relative_key(file_path), None) is not None

    def get_all_configs(self) -> List[MapperScanConfig]:
        return [entry.mapper_scan.model_copy(deep=True) for entry in self._entries.values() if entry.mapper_scan]

    def cleanup(self) -> int:
        """존재하지 않는 파일의 엔트리를 제거하고 저장합니다."""
        missing = [key for key in self._entries
                   if not os.path.exists(os.path.join(self.project_root, key))]
        for key in missing:
            del self._entries[key]
        if missing:
            self.logger.info(f"Removed {len(missing)} stale cache entries")
            self.save()
        return len(missing)

    def get_stats(self) -> Dict[str, object]:
        return {
            "total_entries": len(self._entries),
            "entries_with_config": sum(1 for entry in self._entries.values() if entry.mapper_scan),
            "index_path": self.index_path,
        }


def _stat(file_path: str) -> Optional[Tuple[int, int]]:
    try:
        stat = os.stat(file_path)
    except OSError:
        return None
    return stat.st_mtime_ns, stat.st_size


def _entry_to_json(entry: CacheEntry) -> dict:
    data = {"path": entry.path, "mtime": entry.mtime, "size": entry.size}
    if entry.mapper_scan:
        data["mapperScan"] = {
            "basePackages": list(entry.mapper_scan.base_packages),
            "sourceFile": entry.mapper_scan.source_file,
        }
    return data


def _entry_from_json(raw: object) -> Optional[CacheEntry]:
    if not isinstance(raw, dict):
        return None
    try:
        mapper_scan = None
        if isinstance(raw.get("mapperScan"), dict):
            mapper_scan = MapperScanConfig(
                base_packages=list(raw["mapperScan"].get("basePackages") or []),
                source_file=str(raw["mapperScan"].get("sourceFile", "")),
            )
        return CacheEntry(path=str(raw["path"]), mtime=int(raw["mtime"]), size=int(raw["size"]),
                          mapper_scan=mapper_scan)
    except (KeyError, TypeError, ValueError):
        return None


__all__ = ["IndexCache", "INDEX_VERSION"]
