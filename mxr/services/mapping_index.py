"""
Mapping Index - bidirectional in-memory store of Java mapper <-> XML mapper pairings.

Entries are keyed by namespace. Four derived maps are kept consistent with the primary
map on every mutation: Java path, XML path, simple class name and package prefix.
Path keys are case-folded and NFC-normalized. Callers always receive copies.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from mxr.models.mapping import (
    JavaMapperInfo,
    MapperMapping,
    MapperPair,
    MethodMapping,
    Position,
    XmlMapperInfo,
)
from mxr.parsers.base import normalize_path_key
from mxr.services.events import EventEmitter
from mxr.utils.logger import get_logger

MAPPING_BUILT = "mapping_built"
MAPPINGS_BATCH_BUILT = "mappings_batch_built"
MAPPING_UPDATED = "mapping_updated"
MAPPING_REMOVED = "mapping_removed"
MAPPINGS_CLEARED = "mappings_cleared"


def strip_parameter_list(method_name: str) -> str:
    """'findById(String)' -> 'findById'"""
    return method_name.split("(", 1)[0].strip()


def package_prefixes(package_name: str) -> List[str]:
    """'com.acme.dao' -> ['com', 'com.acme', 'com.acme.dao']"""
    if not package_name:
        return []
    parts = package_name.split(".")
    return [".".join(parts[:index]) for index in range(1, len(parts) + 1)]


class MappingIndex:
    """Namespace-keyed mapping store with O(1) secondary lookups."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger(__name__)
        self.events = EventEmitter(self.logger)

        self._namespace_index: Dict[str, MapperMapping] = {}
        self._java_path_index: Dict[str, str] = {}
        self._xml_path_index: Dict[str, str] = {}
        # dict를 순서 있는 집합으로 사용 (first-match-wins 결정성)
        self._class_name_index: Dict[str, Dict[str, None]] = {}
        self._package_index: Dict[str, Dict[str, None]] = {}

    # ------------------------------------------------------------------ build

    def build_mapping(self, java: JavaMapperInfo, xml: Optional[XmlMapperInfo] = None) -> MapperMapping:
        """
        Java/XML 쌍으로 인덱스 엔트리를 생성(또는 교체)합니다.

        Args:
            java: 파싱된 Java 매퍼
            xml: 짝지어진 XML 매퍼 (없으면 None)

        Returns:
            생성된 엔트리의 복사본
        """
        mapping = self._create_mapping(java, xml)
        self._store(mapping)
        copy = self._copy(mapping)
        self.events.emit(MAPPING_BUILT, copy)
        return copy

    def build_mappings(self, pairs: Iterable[MapperPair]) -> int:
        count = 0
        for pair in pairs:
            self._store(self._create_mapping(pair.java, pair.xml))
            count += 1
        self.logger.debug(f"Built {count} mappings ({len(self._namespace_index)} in index)")
        self.events.emit(MAPPINGS_BATCH_BUILT, count)
        return count

    def _create_mapping(self, java: JavaMapperInfo, xml: Optional[XmlMapperInfo]) -> MapperMapping:
        namespace = xml.namespace if xml and xml.namespace else java.class_name
        methods: Dict[str, MethodMapping] = {}
        if xml:
            for sql_id, statement in xml.statements.items():
                methods[sql_id] = MethodMapping(
                    method_name=sql_id,
                    sql_id=sql_id,
                    java_position=None,
                    xml_position=statement.position,
                )
        return MapperMapping(
            namespace=namespace,
            java_path=java.file_path,
            xml_path=xml.file_path if xml else None,
            class_name=java.class_name,
            simple_class_name=java.simple_name,
            package_name=java.package_name,
            methods=methods,
            last_updated=datetime.now(),
        )

    def _store(self, mapping: MapperMapping) -> None:
        java_key = normalize_path_key(mapping.java_path)

        previous_namespace = self._java_path_index.get(java_key)
        if previous_namespace is not None and previous_namespace != mapping.namespace:
            self._unindex(previous_namespace)

        existing = self._namespace_index.get(mapping.namespace)
        if existing is not None:
            if normalize_path_key(existing.java_path) != java_key:
                self.logger.warning(
                    f"Duplicate namespace {mapping.namespace}: {existing.java_path} replaced by {mapping.java_path}"
                )
            self._unindex(mapping.namespace)

        if mapping.xml_path:
            self._detach_xml_owner(normalize_path_key(mapping.xml_path), mapping.namespace)

        self._namespace_index[mapping.namespace] = mapping
        self._java_path_index[java_key] = mapping.namespace
        if mapping.xml_path:
            self._xml_path_index[normalize_path_key(mapping.xml_path)] = mapping.namespace
        self._class_name_index.setdefault(mapping.simple_class_name, {})[mapping.namespace] = None
        for prefix in package_prefixes(mapping.package_name):
            self._package_index.setdefault(prefix, {})[mapping.namespace] = None

    def _unindex(self, namespace: str) -> Optional[MapperMapping]:
        mapping = self._namespace_index.pop(namespace, None)
        if mapping is None:
            return None

        java_key = normalize_path_key(mapping.java_path)
        if self._java_path_index.get(java_key) == namespace:
            del self._java_path_index[java_key]
        if mapping.xml_path:
            xml_key = normalize_path_key(mapping.xml_path)
            if self._xml_path_index.get(xml_key) == namespace:
                del self._xml_path_index[xml_key]

        self._discard(self._class_name_index, mapping.simple_class_name, namespace)
        for prefix in package_prefixes(mapping.package_name):
            self._discard(self._package_index, prefix, namespace)
        return mapping

    @staticmethod
    def _discard(index: Dict[str, Dict[str, None]], key: str, namespace: str) -> None:
        members = index.get(key)
        if members is None:
            return
        members.pop(namespace, None)
        if not members:
            del index[key]

    def _detach_xml_owner(self, xml_key: str, new_namespace: str) -> None:
        """다른 엔트리가 같은 XML 경로를 가지고 있으면 그 연결을 해제"""
        owner = self._xml_path_index.get(xml_key)
        if owner is None or owner == new_namespace:
            return
        del self._xml_path_index[xml_key]
        entry = self._namespace_index.get(owner)
        if entry is not None:
            self._clear_xml(entry)

    @staticmethod
    def _clear_xml(entry: MapperMapping) -> None:
        entry.xml_path = None
        for method in entry.methods.values():
            method.xml_position = None
        entry.last_updated = datetime.now()

    # ----------------------------------------------------------------- lookup

    def get_by_namespace(self, namespace: str) -> Optional[MapperMapping]:
        return self._copy(self._namespace_index.get(namespace))

    def get_by_java_path(self, java_path: str) -> Optional[MapperMapping]:
        namespace = self._java_path_index.get(normalize_path_key(java_path))
        return self._copy(self._namespace_index.get(namespace)) if namespace else None

    def get_by_xml_path(self, xml_path: str) -> Optional[MapperMapping]:
        namespace = self._xml_path_index.get(normalize_path_key(xml_path))
        return self._copy(self._namespace_index.get(namespace)) if namespace else None

    def get_by_class_name(self, class_name: str) -> Optional[MapperMapping]:
        """Fully qualified name first, then simple name (first match wins)."""
        if class_name in self._namespace_index:
            return self._copy(self._namespace_index[class_name])
        for mapping in self._namespace_index.values():
            if mapping.class_name == class_name:
                return self._copy(mapping)

        simple_name = class_name.rsplit(".", 1)[-1]
        for namespace in self._class_name_index.get(simple_name, {}):
            return self._copy(self._namespace_index[namespace])
        return None

    def find_by_package_prefix(self, package_prefix: str) -> List[MapperMapping]:
        namespaces = self._package_index.get(package_prefix.strip("."), {})
        return [self._copy(self._namespace_index[namespace]) for namespace in namespaces]

    def find_by_simple_name(self, simple_name: str) -> List[MapperMapping]:
        namespaces = self._class_name_index.get(simple_name, {})
        return [self._copy(self._namespace_index[namespace]) for namespace in namespaces]

    def get_method_mapping(self, java_path: str, method_name: str) -> Optional[MethodMapping]:
        namespace = self._java_path_index.get(normalize_path_key(java_path))
        if namespace is None:
            return None
        methods = self._namespace_index[namespace].methods
        method = methods.get(method_name) or methods.get(strip_parameter_list(method_name))
        return method.model_copy(deep=True) if method else None

    def has_sql_for_method(self, namespace: str, method_name: str) -> bool:
        """
        Exact SQL-id match first, then with a trailing ``(...)`` parameter list stripped.
        """
        mapping = self._namespace_index.get(namespace)
        if mapping is None:
            return False
        if method_name in mapping.methods:
            return True
        return strip_parameter_list(method_name) in mapping.methods

    def find_java_for_xml(self, xml_path: str, namespace: str) -> Optional[MapperMapping]:
        """
        XML 파일에 대응하는 Java 매퍼를 찾습니다.

        Order: existing XML-path entry, namespace entry, unique simple-name entry.
        The latter two are re-pointed at ``xml_path``.
        """
        existing = self.get_by_xml_path(xml_path)
        if existing is not None:
            return existing

        mapping = self._namespace_index.get(namespace)
        if mapping is None:
            candidates = self._class_name_index.get(namespace.rsplit(".", 1)[-1], {})
            if len(candidates) != 1:
                return None
            mapping = self._namespace_index[next(iter(candidates))]

        self.update_xml_path(mapping.java_path, xml_path)
        return self._copy(mapping)

    def search_mappings(self, query: str) -> List[MapperMapping]:
        needle = query.casefold()
        results = []
        for mapping in self._namespace_index.values():
            haystacks = (mapping.namespace, mapping.simple_class_name, mapping.java_path, mapping.xml_path or "")
            if any(needle in value.casefold() for value in haystacks):
                results.append(self._copy(mapping))
        return results

    def get_all_mappings(self) -> List[MapperMapping]:
        return [self._copy(mapping) for mapping in self._namespace_index.values()]

    def has_mapping(self, java_path: str) -> bool:
        return normalize_path_key(java_path) in self._java_path_index

    def has_xml_mapping(self, xml_path: str) -> bool:
        return normalize_path_key(xml_path) in self._xml_path_index

    def __len__(self) -> int:
        return len(self._namespace_index)

    # ----------------------------------------------------------------- mutate

    def update_xml_path(self, java_path: str, xml_path: Optional[str]) -> bool:
        mapping = self._entry_for_java(java_path)
        if mapping is None:
            return False

        if mapping.xml_path:
            old_key = normalize_path_key(mapping.xml_path)
            if self._xml_path_index.get(old_key) == mapping.namespace:
                del self._xml_path_index[old_key]

        if xml_path:
            new_key = normalize_path_key(xml_path)
            self._detach_xml_owner(new_key, mapping.namespace)
            self._xml_path_index[new_key] = mapping.namespace
            mapping.xml_path = xml_path
            mapping.last_updated = datetime.now()
        else:
            self._clear_xml(mapping)

        self.events.emit(MAPPING_UPDATED, self._copy(mapping))
        return True

    def update_method_positions(self, java_path: str, positions: Dict[str, Position],
                                prune: bool = False) -> bool:
        """
        SQL-id별 XML 위치를 갱신합니다.

        Args:
            java_path: 엔트리의 Java 경로
            positions: SQL-id -> XML 위치
            prune: True이면 positions에 없는 메서드를 제거 (XML SQL-id 집합과 동기화)
        """
        mapping = self._entry_for_java(java_path)
        if mapping is None:
            return False

        for sql_id, position in positions.items():
            method = mapping.methods.get(sql_id)
            if method is None:
                mapping.methods[sql_id] = MethodMapping(method_name=sql_id, sql_id=sql_id, xml_position=position)
            else:
                method.xml_position = position
        if prune:
            for sql_id in [name for name in mapping.methods if name not in positions]:
                del mapping.methods[sql_id]

        mapping.last_updated = datetime.now()
        self.events.emit(MAPPING_UPDATED, self._copy(mapping))
        return True

    def update_java_positions(self, java_path: str, positions: Dict[str, Position]) -> bool:
        """Store Java-side positions for methods that already have an SQL id."""
        mapping = self._entry_for_java(java_path)
        if mapping is None:
            return False
        for name, position in positions.items():
            method = mapping.methods.get(name) or mapping.methods.get(strip_parameter_list(name))
            if method is not None:
                method.java_position = position
        return True

    def remove_mapping(self, java_path: str) -> bool:
        namespace = self._java_path_index.get(normalize_path_key(java_path))
        if namespace is None:
            return False
        removed = self._unindex(namespace)
        self.events.emit(MAPPING_REMOVED, self._copy(removed))
        return True

    def remove_xml_mapping(self, xml_path: str) -> bool:
        """XML 연결만 끊고 Java 엔트리는 유지합니다."""
        xml_key = normalize_path_key(xml_path)
        namespace = self._xml_path_index.pop(xml_key, None)
        if namespace is None:
            return False
        mapping = self._namespace_index.get(namespace)
        if mapping is not None:
            self._clear_xml(mapping)
            self.events.emit(MAPPING_UPDATED, self._copy(mapping))
        return True

    def clear(self) -> None:
        self._namespace_index.clear()
        self._java_path_index.clear()
        self._xml_path_index.clear()
        self._class_name_index.clear()
        self._package_index.clear()
        self.events.emit(MAPPINGS_CLEARED)

    # ------------------------------------------------------------ diagnostics

    def get_stats(self) -> Dict[str, int]:
        mappings = self._namespace_index.values()
        return {
            "total": len(self._namespace_index),
            "with_xml": sum(1 for mapping in mappings if mapping.xml_path),
            "total_methods": sum(len(mapping.methods) for mapping in mappings),
            "unique_class_names": len(self._class_name_index),
        }

    def get_diagnostics(self) -> Dict[str, int]:
        return {
            "namespace_index": len(self._namespace_index),
            "java_path_index": len(self._java_path_index),
            "xml_path_index": len(self._xml_path_index),
            "class_name_index": len(self._class_name_index),
            "package_index": len(self._package_index),
        }

    def _entry_for_java(self, java_path: str) -> Optional[MapperMapping]:
        namespace = self._java_path_index.get(normalize_path_key(java_path))
        return self._namespace_index.get(namespace) if namespace else None

    @staticmethod
    def _copy(mapping: Optional[MapperMapping]) -> Optional[MapperMapping]:
        return mapping.model_copy(deep=True) if mapping is not None else None


__all__ = [
    "MappingIndex",
    "strip_parameter_list",
    "package_prefixes",
    "MAPPING_BUILT",
    "MAPPINGS_BATCH_BUILT",
    "MAPPING_UPDATED",
    "MAPPING_REMOVED",
    "MAPPINGS_CLEARED",
]
