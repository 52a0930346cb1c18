"""IndexCache 영속 캐시 테스트"""

import json
import os

from mxr.models.mapping import MapperScanConfig
from mxr.services.index_cache import INDEX_VERSION, IndexCache
from mxr.utils.logger import null_logger


def new_cache(project):
    cache = IndexCache(project.root, logger=null_logger())
    cache.load()
    return cache


def touch_later(path):
    """mtime을 확실히 바꿔서 변경을 흉내냄"""
    stat = os.stat(path)
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))


class TestPersistence:
    """index.json 저장/로드"""

    def test_save_writes_camel_case_entries(self, project):
        path = project.write("src/AppConfig.java", "@MapperScan(\"a.b\") class AppConfig {}")
        cache = new_cache(project)
        cache.update_entry(path, MapperScanConfig(base_packages=["a.b"], source_file=path))
        project.write("src/Plain.java", "class Plain {}")
        cache.update_entry(project.path("src/Plain.java"))

        assert cache.save() is True

        with open(cache.index_path, encoding="utf-8") as handle:
            data = json.load(handle)
        assert data["version"] == INDEX_VERSION
        assert data["projectRoot"] == os.path.abspath(project.root)
        assert isinstance(data["timestamp"], int)
        entries = {entry["path"]: entry for entry in data["entries"]}
        assert entries["src/AppConfig.java"]["mapperScan"] == {"basePackages": ["a.b"], "sourceFile": path}
        assert "mapperScan" not in entries["src/Plain.java"]
        assert cache.index_path == os.path.join(project.root, ".mxr", "index.json")

    def test_round_trip_through_new_instance(self, project):
        path = project.write("src/AppConfig.java", "x")
        cache = new_cache(project)
        cache.update_entry(path, MapperScanConfig(base_packages=["a.b"], source_file=path))
        cache.save()

        reloaded = IndexCache(project.root, logger=null_logger())

        assert reloaded.load() == 1
        assert reloaded.lookup(path).mapper_scan.base_packages == ["a.b"]
        assert [config.base_packages for config in reloaded.get_all_configs()] == [["a.b"]]

    def test_save_requires_load(self, project):
        """load 전에는 저장하지 않음"""
        cache = IndexCache(project.root, logger=null_logger())

        assert cache.save() is False
        assert not os.path.exists(cache.index_path)

    def test_version_mismatch_discards_cache(self, project):
        project.write(".mxr/index.json", json.dumps({"version": "0.9", "projectRoot": project.root, "entries": []}))
        cache = IndexCache(project.root, logger=null_logger())

        assert cache.load() == 0
        assert not os.path.exists(cache.index_path)

    def test_project_root_mismatch_discards_cache(self, project):
        payload = {
            "version": INDEX_VERSION,
            "projectRoot": "/somewhere/else",
            "entries": [{"path": "a.java", "mtime": 1, "size": 1}],
        }
        project.write(".mxr/index.json", json.dumps(payload))

        assert IndexCache(project.root, logger=null_logger()).load() == 0

    def test_corrupt_file_is_treated_as_empty(self, project):
        project.write(".mxr/index.json", "{not json")

        assert IndexCache(project.root, logger=null_logger()).load() == 0

    def test_invalid_entries_are_skipped(self, project):
        payload = {
            "version": INDEX_VERSION,
            "projectRoot": os.path.abspath(project.root),
            "entries": [{"path": "a.java", "mtime": 1, "size": 2}, {"path": "b.java"}, "junk"],
        }
        project.write(".mxr/index.json", json.dumps(payload))

        assert IndexCache(project.root, logger=null_logger()).load() == 1

    def test_clear_cache_deletes_file(self, project):
        path = project.write("src/A.java", "x")
        cache = new_cache(project)
        cache.update_entry(path)
        cache.save()

        cache.clear_cache()

        assert not os.path.exists(cache.index_path)
        assert cache.get_stats()["total_entries"] == 0


class TestFreshness:
    """mtime + size 일치 여부"""

    def test_unchanged_file_hits(self, project):
        path = project.write("src/A.java", "content")
        cache = new_cache(project)
        cache.update_entry(path)

        assert cache.is_cached(path) is True

    def test_modified_file_misses(self, project):
        path = project.write("src/A.java", "content")
        cache = new_cache(project)
        cache.update_entry(path)

        touch_later(path)

        assert cache.lookup(path) is None

    def test_size_change_misses(self, project):
        path = project.write("src/A.java", "content")
        cache = new_cache(project)
        cache.update_entry(path)
        stat = os.stat(path)

        with open(path, "a", encoding="utf-8") as handle:
            handle.write(" more")
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns))

        assert cache.lookup(path) is None

    def test_deleted_file_is_dropped(self, project):
        path = project.write("src/A.java", "content")
        cache = new_cache(project)
        cache.update_entry(path)

        os.remove(path)

        assert cache.lookup(path) is None
        assert cache.get_stats()["total_entries"] == 0

    def test_update_missing_file(self, project):
        cache = new_cache(project)

        assert cache.update_entry(project.path("src/Missing.java")) is False

    def test_lookup_returns_copy(self, project):
        path = project.write("src/A.java", "content")
        cache = new_cache(project)
        cache.update_entry(path, MapperScanConfig(base_packages=["a.b"], source_file=path))

        cache.lookup(path).mapper_scan.base_packages.append("x.y")

        assert cache.lookup(path).mapper_scan.base_packages == ["a.b"]


class TestMaintenance:
    def test_cleanup_removes_missing_entries(self, project):
        kept = project.write("src/A.java", "a")
        removed = project.write("src/B.java", "b")
        cache = new_cache(project)
        cache.update_entries([(kept, None), (removed, None)])

        os.remove(removed)

        assert cache.cleanup() == 1
        assert cache.get_stats()["total_entries"] == 1
        assert IndexCache(project.root, logger=null_logger()).load() == 1

    def test_remove_entry(self, project):
        path = project.write("src/A.java", "a")
        cache = new_cache(project)
        cache.update_entry(path)

        assert cache.remove_entry(path) is True
        assert cache.remove_entry(path) is False

    def test_stats(self, project):
        path = project.write("src/A.java", "a")
        cache = new_cache(project)
        cache.update_entry(path, MapperScanConfig(base_packages=["a.b"], source_file=path))
        cache.update_entry(project.write("src/B.java", "b"))

        stats = cache.get_stats()

        assert stats["total_entries"] == 2
        assert stats["entries_with_config"] == 1
