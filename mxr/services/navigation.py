"""
Navigation between Java mapper methods and XML SQL statements.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Dict, List, Optional

from mxr.models.mapping import MapperMapping, MethodSummary, NavigationTarget, Position
from mxr.parsers.base import read_head, read_text
from mxr.parsers.xml.mapper import looks_like_mapper_xml, parse_xml_mapper
from mxr.services.mapping_index import strip_parameter_list
from mxr.services.scanner import MapperScanner
from mxr.services.symbol_provider import SymbolProvider, resolve_method_symbols
from mxr.utils.logger import get_logger

SQL_ID_LINE_PATTERN = re.compile(r"<(select|insert|update|delete)\s+[^>]*\bid\s*=\s*[\"']([^\"']+)[\"']")
NAMESPACE_SEARCH_LIMIT = 20


class NavigationService:
    def __init__(
        self,
        scanner: MapperScanner,
        symbol_provider: Optional[SymbolProvider] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.scanner = scanner
        self.symbol_provider = symbol_provider
        self.logger = logger or get_logger(__name__)

    @property
    def index(self):
        self.scanner.ensure_initialized("navigation")
        return self.scanner.index

    # ------------------------------------------------------------ java -> xml

    async def java_to_xml(self, java_path: str, method_name: Optional[str] = None) -> Optional[NavigationTarget]:
        """
        Java 매퍼(또는 메서드)에 대응하는 XML 위치를 찾습니다.

        Args:
            java_path: Java 파일 경로
            method_name: 메서드명 (파라미터 목록이 붙어 있어도 됨)

        Returns:
            NavigationTarget, 찾지 못하면 None
        """
        mapping = self.index.get_by_java_path(java_path)
        if mapping is None:
            mapping = await self.scanner.rescan_java_file(java_path)
        if mapping is None:
            return None

        if not mapping.xml_path:
            mapping = await self._recover_xml_by_namespace(mapping)
            if mapping is None or not mapping.xml_path:
                return None

        position = None
        if method_name:
            method = mapping.methods.get(method_name) or mapping.methods.get(strip_parameter_list(method_name))
            if method is not None:
                position = method.xml_position
        return NavigationTarget(file_path=mapping.xml_path, position=position)

    async def _recover_xml_by_namespace(self, mapping: MapperMapping) -> Optional[MapperMapping]:
        """인덱스에 XML이 없을 때 '<SimpleName>.xml' 파일을 찾아 연결"""
        candidates = await self.scanner.finder.find_async(
            f"**/{mapping.simple_class_name}.xml", limit=NAMESPACE_SEARCH_LIMIT
        )
        for path in candidates:
            try:
                head = await asyncio.to_thread(read_head, path)
            except OSError:
                continue
            if not looks_like_mapper_xml(head):
                continue
            xml = await asyncio.to_thread(parse_xml_mapper, path)
            if xml is not None and xml.namespace == mapping.namespace:
                return await self.scanner.rescan_xml_file(path)
        return mapping

    # ------------------------------------------------------------ xml -> java

    async def xml_to_java(self, xml_path: str, sql_id: Optional[str] = None) -> Optional[NavigationTarget]:
        mapping = self.index.get_by_xml_path(xml_path)
        if mapping is None:
            xml = await asyncio.to_thread(parse_xml_mapper, xml_path)
            if xml is None:
                return None
            mapping = self.index.get_by_namespace(xml.namespace)
        if mapping is None:
            mapping = await self.scanner.rescan_xml_file(xml_path)
        if mapping is None:
            return None

        position = None
        if sql_id:
            positions = await self.resolve_java_positions(mapping.java_path)
            position = positions.get(sql_id)
        return NavigationTarget(file_path=mapping.java_path, position=position)

    async def resolve_java_positions(self, java_path: str) -> Dict[str, Position]:
        """Symbol Provider(없으면 정규식)로 메서드 위치를 구하고 인덱스에 저장합니다."""
        symbols = await resolve_method_symbols(java_path, self.symbol_provider, self.logger)
        positions: Dict[str, Position] = {}
        for symbol in symbols:
            positions.setdefault(strip_parameter_list(symbol.name), symbol.selection_range.start)
        if positions:
            await self.scanner.update_java_positions(java_path, positions)
        return positions

    # ---------------------------------------------------------------- helpers

    async def describe_java_methods(self, java_path: str) -> List[MethodSummary]:
        mapping = self.index.get_by_java_path(java_path)
        symbols = await resolve_method_symbols(java_path, self.symbol_provider, self.logger)
        summaries: List[MethodSummary] = []
        for symbol in symbols:
            name = strip_parameter_list(symbol.name)
            method = mapping.methods.get(name) if mapping else None
            summaries.append(MethodSummary(
                name=name,
                position=symbol.selection_range.start,
                has_sql=bool(mapping and self.index.has_sql_for_method(mapping.namespace, symbol.name)),
                xml_position=method.xml_position if method else None,
            ))
        return summaries

    def sql_id_at(self, xml_content: str, line: int) -> Optional[str]:
        """커서 줄부터 위로 올라가며 가장 가까운 SQL id를 찾습니다."""
        lines = xml_content.splitlines()
        for line_no in range(min(line, len(lines) - 1), -1, -1):
            match = SQL_ID_LINE_PATTERN.search(lines[line_no])
            if match:
                return match.group(2)
        return None

    async def sql_id_at_file(self, xml_path: str, line: int) -> Optional[str]:
        content = await asyncio.to_thread(read_text, xml_path)
        return self.sql_id_at(content, line)

    def can_navigate(self, path: str) -> bool:
        lower = path.lower()
        if lower.endswith(".java"):
            return self.index.has_mapping(path)
        if lower.endswith(".xml"):
            return self.index.has_xml_mapping(path)
        return False


__all__ = ["NavigationService"]
