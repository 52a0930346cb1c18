"""IncrementalUpdater 단일 파일 갱신 테스트"""

import asyncio
import os

import pytest

from mxr.models.mapping import FileEvent
from mxr.parsers.base import normalize_path_key
from mxr.parsers.java.mapper import parse_java_mapper
from mxr.parsers.xml.mapper import parse_xml_mapper
from mxr.services.incremental import IncrementalUpdater
from mxr.services.index_cache import IndexCache
from mxr.services.mapping_index import MappingIndex
from mxr.utils.logger import null_logger

USER_XML = "src/main/resources/mapper/UserMapper.xml"
JAVAP_OUTPUT = """  org.mybatis.spring.annotation.MapperScan(
    value=["com.compiled.dao"]
  )
"""


class FakeInspector:
    async def inspect(self, class_path):
        return JAVAP_OUTPUT


@pytest.fixture
def indexed(project):
    """UserMapper Java/XML 쌍이 인덱싱된 상태"""
    java_path = project.java_mapper("com.acme.dao", "UserMapper", ["findById", "findAll"])
    xml_path = project.xml_mapper(USER_XML, "com.acme.dao.UserMapper", ["findById", "findAll"])
    index = MappingIndex(logger=null_logger())
    index.build_mapping(parse_java_mapper(java_path), parse_xml_mapper(xml_path))
    updater = IncrementalUpdater(project.root, index, logger=null_logger())
    return updater, java_path, xml_path


class TestXmlRescan:
    """XML 파일 변경"""

    def test_sql_ids_are_synchronized(self, project, indexed):
        """XML에서 사라진 SQL-id는 제거되고 새 id는 추가"""
        updater, java_path, xml_path = indexed
        project.xml_mapper(USER_XML, "com.acme.dao.UserMapper", ["findById", "countAll"])

        mapping = asyncio.run(updater.rescan_xml_file(xml_path))

        assert set(mapping.methods) == {"findById", "countAll"}
        assert mapping.methods["countAll"].xml_position.line == 5
        assert mapping.java_path == java_path

    def test_namespace_change_without_java_becomes_orphan(self, project, indexed):
        updater, java_path, xml_path = indexed
        project.xml_mapper(USER_XML, "com.legacy.OrderMapper", ["findOrders"])

        assert asyncio.run(updater.rescan_xml_file(xml_path)) is None

        entry = updater.index.get_by_java_path(java_path)
        assert entry.xml_path is None
        assert all(method.xml_position is None for method in entry.methods.values())
        assert normalize_path_key(xml_path) in updater.orphans

    def test_orphan_is_claimed_by_new_java(self, project, indexed):
        """나중에 생성된 Java 매퍼가 보관된 XML과 연결"""
        updater, _, xml_path = indexed
        project.xml_mapper(USER_XML, "com.legacy.OrderMapper", ["findOrders"])
        asyncio.run(updater.rescan_xml_file(xml_path))

        order_path = project.java_mapper("com.acme.order", "OrderMapper", ["findOrders"])
        mapping = asyncio.run(updater.rescan_java_file(order_path))

        assert mapping.xml_path == xml_path
        assert mapping.namespace == "com.legacy.OrderMapper"
        assert updater.orphans == {}

    def test_new_xml_pairs_with_unique_simple_name(self, project):
        java_path = project.java_mapper("com.acme.dao", "ItemMapper", ["findItem"])
        index = MappingIndex(logger=null_logger())
        index.build_mapping(parse_java_mapper(java_path))
        updater = IncrementalUpdater(project.root, index, logger=null_logger())
        xml_path = project.xml_mapper("src/main/resources/ItemMapper.xml", "old.ItemMapper", ["findItem"])

        mapping = asyncio.run(updater.rescan_xml_file(xml_path))

        assert mapping.xml_path == xml_path
        assert mapping.java_path == java_path

    def test_deleted_xml_keeps_java_entry(self, indexed):
        updater, java_path, xml_path = indexed
        os.remove(xml_path)

        assert asyncio.run(updater.rescan_xml_file(xml_path)) is None

        entry = updater.index.get_by_java_path(java_path)
        assert entry is not None
        assert entry.xml_path is None


class TestJavaRescan:
    """Java 파일 변경"""

    def test_existing_xml_is_kept(self, project, indexed):
        updater, java_path, xml_path = indexed
        project.java_mapper("com.acme.dao", "UserMapper", ["findById", "findAll", "insertUser"])

        mapping = asyncio.run(updater.rescan_java_file(java_path))

        assert mapping.xml_path == xml_path
        assert set(mapping.methods) == {"findById", "findAll"}

    def test_no_longer_a_mapper(self, project, indexed):
        """매퍼가 아니게 되면 엔트리 제거, XML은 보관"""
        updater, java_path, xml_path = indexed
        project.write(os.path.relpath(java_path, project.root).replace(os.sep, "/"), "public class UserMapper {}\n")

        assert asyncio.run(updater.rescan_java_file(java_path)) is None
        assert updater.index.has_mapping(java_path) is False
        assert normalize_path_key(xml_path) in updater.orphans

    def test_remove_java_file(self, indexed):
        updater, java_path, xml_path = indexed

        assert updater.remove_java_file(java_path) is True
        assert updater.remove_java_file(java_path) is False
        assert updater.index.get_by_namespace("com.acme.dao.UserMapper") is None
        assert normalize_path_key(xml_path) in updater.orphans

    def test_deleted_then_recreated(self, project, indexed):
        updater, java_path, xml_path = indexed
        os.remove(java_path)
        asyncio.run(updater.rescan_java_file(java_path))

        project.java_mapper("com.acme.dao", "UserMapper", ["findById"])
        mapping = asyncio.run(updater.rescan_java_file(java_path))

        assert mapping.xml_path == xml_path


class TestClassFiles:
    """컴파일된 설정 클래스 갱신"""

    def test_config_class_updates_cache(self, project):
        cache = IndexCache(project.root, logger=null_logger())
        cache.load()
        updater = IncrementalUpdater(project.root, MappingIndex(logger=null_logger()), cache=cache,
                                     inspector=FakeInspector(), logger=null_logger())
        class_path = project.write("target/classes/com/acme/AppConfig.class", "cafebabe")

        config = asyncio.run(updater.refresh_class_file(class_path))

        assert config.base_packages == ["com.compiled.dao"]
        assert cache.lookup(class_path).mapper_scan.base_packages == ["com.compiled.dao"]
        assert os.path.exists(cache.index_path)

    def test_other_classes_are_ignored(self, project):
        cache = IndexCache(project.root, logger=null_logger())
        cache.load()
        updater = IncrementalUpdater(project.root, MappingIndex(logger=null_logger()), cache=cache,
                                     inspector=FakeInspector(), logger=null_logger())
        class_path = project.write("target/classes/com/acme/UserService.class", "cafebabe")

        assert asyncio.run(updater.refresh_class_file(class_path)) is None
        assert cache.lookup(class_path) is None

    def test_deleted_class_is_removed_from_cache(self, project):
        cache = IndexCache(project.root, logger=null_logger())
        cache.load()
        updater = IncrementalUpdater(project.root, MappingIndex(logger=null_logger()), cache=cache,
                                     inspector=FakeInspector(), logger=null_logger())
        class_path = project.write("target/classes/com/acme/AppConfig.class", "cafebabe")
        asyncio.run(updater.refresh_class_file(class_path))

        asyncio.run(updater.handle_file_event(FileEvent(path=class_path, type="delete")))

        assert cache.get_stats()["total_entries"] == 0


class TestFileEvents:
    """이벤트 디스패치"""

    def test_unknown_event_type(self, indexed):
        updater, java_path, _ = indexed

        with pytest.raises(ValueError):
            asyncio.run(updater.handle_file_event(FileEvent(path=java_path, type="rename")))

    def test_event_outside_project_is_ignored(self, tmp_path, indexed):
        updater, _, _ = indexed
        outside = os.path.join(os.path.dirname(str(tmp_path)), "elsewhere", "UserMapper.java")

        assert asyncio.run(updater.handle_file_event(FileEvent(path=outside, type="delete"))) is None
        assert len(updater.index) == 1

    def test_change_and_delete_events(self, project, indexed):
        updater, java_path, xml_path = indexed
        project.xml_mapper(USER_XML, "com.acme.dao.UserMapper", ["findById"])

        mapping = asyncio.run(updater.handle_file_event(FileEvent(path=xml_path, type="change")))
        assert set(mapping.methods) == {"findById"}

        asyncio.run(updater.handle_file_event(FileEvent(path=xml_path, type="delete")))
        assert updater.index.get_by_java_path(java_path).xml_path is None

        asyncio.run(updater.handle_file_event(FileEvent(path=java_path, type="delete")))
        assert len(updater.index) == 0

    def test_unrelated_file_types(self, project, indexed):
        updater, _, _ = indexed
        path = project.write("README.md", "# readme")

        assert asyncio.run(updater.handle_file_event(FileEvent(path=path, type="create"))) is None
