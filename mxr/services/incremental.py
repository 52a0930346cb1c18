"""
Incremental Updater - applies single-file create/change/delete events to the mapping index.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Dict, Iterable, Optional

from mxr.models.mapping import FileEvent, JavaMapperInfo, MapperMapping, MapperScanConfig, XmlMapperInfo
from mxr.parsers.base import is_within, normalize_path_key
from mxr.parsers.java.mapper import parse_java_mapper
from mxr.parsers.xml.mapper import parse_xml_mapper
from mxr.services.bytecode_inspector import BytecodeInspector, inspect_mapper_scan
from mxr.services.config_resolver import CONFIG_CLASS_PATTERN
from mxr.services.index_cache import IndexCache
from mxr.services.mapping_index import MappingIndex
from mxr.utils.logger import get_logger

EVENT_TYPES = ("create", "change", "delete")


class IncrementalUpdater:
    """
    Re-indexes single files without a full scan.

    XML mappers that have no Java counterpart are kept as orphans so that a Java
    mapper created later can be paired with them.
    """

    def __init__(
        self,
        project_root: str,
        index: MappingIndex,
        cache: Optional[IndexCache] = None,
        inspector: Optional[BytecodeInspector] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.project_root = os.path.abspath(project_root)
        self.index = index
        self.cache = cache
        self.inspector = inspector
        self.logger = logger or get_logger(__name__)
        self.orphans: Dict[str, XmlMapperInfo] = {}

    def remember_orphans(self, xml_mappers: Iterable[XmlMapperInfo]) -> None:
        self.orphans = {normalize_path_key(xml.file_path): xml for xml in xml_mappers}

    # ------------------------------------------------------------------- java

    async def rescan_java_file(self, file_path: str) -> Optional[MapperMapping]:
        """
        Java 파일을 다시 파싱해 엔트리를 재구성합니다.

        Returns:
            재구성된 엔트리, 매퍼가 아니게 되었거나 삭제된 경우 None
        """
        if not os.path.isfile(file_path):
            self.remove_java_file(file_path)
            return None

        java = await asyncio.to_thread(parse_java_mapper, file_path)
        if java is None:
            if self.index.has_mapping(file_path):
                self.logger.debug(f"{file_path} is no longer a mapper, removing")
                self.remove_java_file(file_path)
            return None

        xml: Optional[XmlMapperInfo] = None
        existing = self.index.get_by_java_path(file_path)
        if existing is not None and existing.xml_path:
            xml = await asyncio.to_thread(parse_xml_mapper, existing.xml_path)
        if xml is None:
            xml = self._claim_orphan(java)

        mapping = self.index.build_mapping(java, xml)
        if xml is not None:
            self.orphans.pop(normalize_path_key(xml.file_path), None)
        self.logger.debug(f"Rescanned Java mapper {mapping.namespace}")
        return mapping

    def remove_java_file(self, file_path: str) -> bool:
        existing = self.index.get_by_java_path(file_path)
        if existing is None:
            return False
        self.index.remove_mapping(file_path)
        if existing.xml_path:
            xml = parse_xml_mapper(existing.xml_path)
            if xml is not None:
                self.orphans[normalize_path_key(xml.file_path)] = xml
        return True

    def _claim_orphan(self, java: JavaMapperInfo) -> Optional[XmlMapperInfo]:
        ordered = sorted(self.orphans.items())
        for _, xml in ordered:
            if xml.namespace == java.class_name:
                return xml
        candidates = [xml for _, xml in ordered if xml.simple_name == java.simple_name]
        return candidates[0] if len(candidates) == 1 else None

    # -------------------------------------------------------------------- xml

    async def rescan_xml_file(self, file_path: str) -> Optional[MapperMapping]:
        """
        XML 파일을 다시 파싱해 namespace로 엔트리를 찾아 갱신합니다.

        Returns:
            갱신/생성된 엔트리, 대응하는 Java 매퍼가 없으면 None
        """
        if not os.path.isfile(file_path):
            self.remove_xml_file(file_path)
            return None

        xml = await asyncio.to_thread(parse_xml_mapper, file_path)
        if xml is None:
            self.remove_xml_file(file_path)
            return None

        positions = {sql_id: statement.position for sql_id, statement in xml.statements.items()}
        entry = self.index.get_by_namespace(xml.namespace)
        if entry is not None:
            # Java 쪽은 건드리지 않고 XML 경로와 위치만 갱신
            self.index.update_xml_path(entry.java_path, file_path)
            self.index.update_method_positions(entry.java_path, positions, prune=True)
            self.orphans.pop(normalize_path_key(file_path), None)
            return self.index.get_by_namespace(xml.namespace)

        counterpart = self._find_java_counterpart(xml, file_path)
        if counterpart is not None:
            java = await asyncio.to_thread(parse_java_mapper, counterpart.java_path)
            if java is not None:
                self.orphans.pop(normalize_path_key(file_path), None)
                return self.index.build_mapping(java, xml)

        # 대응하는 Java가 없으면 기존 연결을 해제하고 보관
        self.index.remove_xml_mapping(file_path)
        self.orphans[normalize_path_key(file_path)] = xml
        self.logger.debug(f"No Java mapper for {xml.namespace}, kept as orphan")
        return None

    def _find_java_counterpart(self, xml: XmlMapperInfo, file_path: str) -> Optional[MapperMapping]:
        xml_key = normalize_path_key(file_path)
        candidates = [
            mapping for mapping in self.index.find_by_simple_name(xml.simple_name)
            if not mapping.xml_path or normalize_path_key(mapping.xml_path) == xml_key
        ]
        return candidates[0] if len(candidates) == 1 else None

    def remove_xml_file(self, file_path: str) -> bool:
        self.orphans.pop(normalize_path_key(file_path), None)
        return self.index.remove_xml_mapping(file_path)

    # ------------------------------------------------------------------ class

    async def refresh_class_file(self, file_path: str, deleted: bool = False) -> Optional[MapperScanConfig]:
        """설정 클래스(.class)가 바뀌면 캐시의 @MapperScan 정보를 갱신합니다."""
        if self.cache is None or not CONFIG_CLASS_PATTERN.search(os.path.basename(file_path)):
            return None
        if deleted or not os.path.isfile(file_path):
            if self.cache.remove_entry(file_path):
                self.cache.save()
            return None

        config = await inspect_mapper_scan(self.inspector, file_path)
        self.cache.update_entry(file_path, config)
        self.cache.save()
        if config:
            self.logger.info(f"Updated @MapperScan from {os.path.basename(file_path)}: {config.base_packages}")
        return config

    # ----------------------------------------------------------------- events

    async def handle_file_event(self, event: FileEvent) -> Optional[MapperMapping]:
        if event.type not in EVENT_TYPES:
            raise ValueError(f"Unknown file event type: {event.type}")
        if not is_within(event.path, self.project_root):
            self.logger.debug(f"Ignoring event outside project: {event.path}")
            return None

        deleted = event.type == "delete"
        lower = event.path.lower()
        if lower.endswith(".java"):
            if deleted:
                self.remove_java_file(event.path)
                return None
            return await self.rescan_java_file(event.path)
        if lower.endswith(".xml"):
            if deleted:
                self.remove_xml_file(event.path)
                return None
            return await self.rescan_xml_file(event.path)
        if lower.endswith(".class"):
            await self.refresh_class_file(event.path, deleted=deleted)
        return None


__all__ = ["IncrementalUpdater", "EVENT_TYPES"]
