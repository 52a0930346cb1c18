"""
MyBatis XML mapper parser.
"""
from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Dict, Optional

from mxr.models.mapping import SQL_STATEMENT_TYPES, SqlStatement, XmlMapperInfo
from mxr.parsers.base import offset_to_line_column, read_text
from mxr.utils.logger import get_logger

logger = get_logger(__name__)

NAMESPACE_PATTERN = re.compile(r"<mapper\b[^>]*?\bnamespace\s*=\s*[\"']([^\"']*)[\"']", re.DOTALL)
STATEMENT_PATTERN = re.compile(
    r"<(select|insert|update|delete)\b[^>]*?\bid\s*=\s*[\"']([^\"']+)[\"']", re.DOTALL
)
COMMENT_PATTERN = re.compile(r"<!--.*?-->", re.DOTALL)


def looks_like_mapper_xml(head: str) -> bool:
    """파일 앞부분만으로 매퍼 XML 여부를 빠르게 판별"""
    return "namespace" in head and "mapper" in head


def mask_comments(content: str) -> str:
    """XML 주석을 공백으로 지웁니다 (줄바꿈은 유지해 위치가 그대로)"""
    return COMMENT_PATTERN.sub(lambda match: re.sub(r"[^\n]", " ", match.group(0)), content)


def find_statement_position(content: str, sql_type: str, sql_id: str):
    """Return the 0-based (line, column) of ``<sql_type ... id="sql_id"`` outside comments, or None."""
    return _locate_statement(mask_comments(content), sql_type, sql_id)


def _locate_statement(searchable: str, sql_type: str, sql_id: str):
    pattern = re.compile(
        rf"<{re.escape(sql_type)}\b[^>]*?\bid\s*=\s*[\"']{re.escape(sql_id)}[\"']", re.DOTALL
    )
    match = pattern.search(searchable)
    if not match:
        return None
    return offset_to_line_column(searchable, match.start())


def parse_xml_mapper_content(content: str, file_path: str) -> Optional[XmlMapperInfo]:
    """
    MyBatis 매퍼 XML 텍스트를 XmlMapperInfo로 변환합니다.

    Args:
        content: XML 텍스트
        file_path: XML 파일 경로

    Returns:
        namespace가 있는 매퍼이면 XmlMapperInfo, 아니면 None
    """
    try:
        root = ET.fromstring(content)
    except (ET.ParseError, ValueError) as exc:
        # DTD 엔티티 등으로 파싱이 실패해도 정규식으로 재시도
        logger.debug(f"XML parse failed for {file_path}, using regex fallback: {exc}")
        return _parse_with_regex(content, file_path)

    if root.tag != "mapper":
        return None
    namespace = (root.get("namespace") or "").strip()
    if not namespace:
        return None

    searchable = mask_comments(content)
    statements: Dict[str, SqlStatement] = {}
    for sql_type in SQL_STATEMENT_TYPES:
        for element in root.findall(sql_type):
            sql_id = (element.get("id") or "").strip()
            if not sql_id or sql_id in statements:
                continue
            position = _locate_statement(searchable, sql_type, sql_id) or (0, 0)
            statements[sql_id] = SqlStatement(type=sql_type, line=position[0], column=position[1])

    return XmlMapperInfo(file_path=file_path, namespace=namespace, statements=_in_file_order(statements))


def _parse_with_regex(content: str, file_path: str) -> Optional[XmlMapperInfo]:
    searchable = mask_comments(content)
    namespace_match = NAMESPACE_PATTERN.search(searchable)
    if not namespace_match or not namespace_match.group(1).strip():
        return None

    statements: Dict[str, SqlStatement] = {}
    for match in STATEMENT_PATTERN.finditer(searchable):
        sql_type, sql_id = match.group(1), match.group(2).strip()
        if sql_id in statements:
            continue
        line, column = offset_to_line_column(searchable, match.start())
        statements[sql_id] = SqlStatement(type=sql_type, line=line, column=column)

    return XmlMapperInfo(file_path=file_path, namespace=namespace_match.group(1).strip(), statements=statements)


def _in_file_order(statements: Dict[str, SqlStatement]) -> Dict[str, SqlStatement]:
    return dict(sorted(statements.items(), key=lambda item: (item[1].line, item[1].column)))


def parse_xml_mapper(file_path: str) -> Optional[XmlMapperInfo]:
    """Read and parse an XML file; unreadable files are treated as non-mappers."""
    try:
        content = read_text(file_path)
    except OSError as exc:
        logger.debug(f"Cannot read XML file {file_path}: {exc}")
        return None
    return parse_xml_mapper_content(content, file_path)


__all__ = [
    "looks_like_mapper_xml",
    "mask_comments",
    "find_statement_position",
    "parse_xml_mapper",
    "parse_xml_mapper_content",
]
