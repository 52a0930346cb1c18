"""
Java mapper interface parser.

A source file counts as a mapper when it declares an interface and either carries a
``@Mapper`` marker or imports a MyBatis-family package. Structure is read with javalang;
sources javalang cannot handle fall back to regex extraction.
"""
from __future__ import annotations

import re
from typing import List, Optional, Tuple

import javalang

from mxr.models.mapping import JavaMapperInfo, JavaMethod, Position
from mxr.parsers.base import file_stem, offset_to_line_column, read_text
from mxr.utils.logger import get_logger

logger = get_logger(__name__)

INTERFACE_PATTERN = re.compile(r"(?<!@)\binterface\s+(\w+)")
MAPPER_ANNOTATION_PATTERN = re.compile(r"@(?:[\w.]*\.)?Mapper\b")
MYBATIS_IMPORT_PATTERN = re.compile(
    r"^\s*import\s+(?:static\s+)?(?:org\.apache\.ibatis|org\.mybatis|com\.baomidou\.mybatisplus)\b",
    re.MULTILINE,
)
PACKAGE_PATTERN = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)

# 인터페이스 메서드 선언 (한 줄 기준, ';' 또는 '{'로 끝남)
METHOD_LINE_PATTERN = re.compile(
    r"^\s*(?:@\w+(?:\([^)]*\))?\s+)*"
    r"(?:(?:public|private|protected|default|static|abstract|final)\s+)*"
    r"(?:<[^>]+>\s*)?"
    r"[\w<>\[\],.?\s]+?\s+"
    r"(\w+)\s*\("
)
JAVA_KEYWORDS = frozenset({
    "if", "for", "while", "switch", "catch", "return", "new", "throw", "else", "synchronized",
})


def is_mapper_source(content: str) -> bool:
    """인터페이스 선언 + (@Mapper 또는 MyBatis import) 여부"""
    if not INTERFACE_PATTERN.search(content):
        return False
    return bool(MAPPER_ANNOTATION_PATTERN.search(content) or MYBATIS_IMPORT_PATTERN.search(content))


def parse_java_mapper_content(content: str, file_path: str) -> Optional[JavaMapperInfo]:
    """
    Java 소스 텍스트를 JavaMapperInfo로 변환합니다.

    Args:
        content: Java 소스 텍스트
        file_path: 소스 파일 경로

    Returns:
        매퍼 인터페이스이면 JavaMapperInfo, 아니면 None
    """
    if not is_mapper_source(content):
        return None

    try:
        parsed = _parse_with_javalang(content, file_path)
    except Exception as exc:  # javalang raises several unrelated error types
        logger.debug(f"javalang could not parse {file_path}, using regex fallback: {exc}")
        parsed = None

    if parsed is None:
        parsed = _parse_with_regex(content, file_path)
    if parsed is None:
        return None

    package_name, simple_name, methods = parsed
    class_name = f"{package_name}.{simple_name}" if package_name else simple_name
    return JavaMapperInfo(
        file_path=file_path,
        class_name=class_name,
        package_name=package_name,
        methods=methods,
    )


def parse_java_mapper(file_path: str) -> Optional[JavaMapperInfo]:
    """Read and parse a Java file; unreadable files are treated as non-mappers."""
    try:
        content = read_text(file_path)
    except OSError as exc:
        logger.debug(f"Cannot read Java file {file_path}: {exc}")
        return None
    return parse_java_mapper_content(content, file_path)


def _parse_with_javalang(content: str, file_path: str) -> Optional[Tuple[str, str, List[JavaMethod]]]:
    tree = javalang.parse.parse(content)
    package_name = tree.package.name if tree.package else ""

    interfaces = [
        type_decl for type_decl in tree.types
        if isinstance(type_decl, javalang.tree.InterfaceDeclaration)
    ]
    if not interfaces:
        return None

    # 파일명과 같은 이름의 인터페이스 우선
    stem = file_stem(file_path)
    declaration = next((decl for decl in interfaces if decl.name == stem), interfaces[0])

    methods: List[JavaMethod] = []
    search_from = 0
    for method in declaration.methods:
        hint_line = method.position.line - 1 if method.position else None
        position, search_from = _locate_method_name(content, method.name, hint_line, search_from)
        methods.append(JavaMethod(name=method.name, position=position))
    return package_name, declaration.name, methods


def _parse_with_regex(content: str, file_path: str) -> Optional[Tuple[str, str, List[JavaMethod]]]:
    interface_match = INTERFACE_PATTERN.search(content)
    if not interface_match:
        return None
    package_match = PACKAGE_PATTERN.search(content)
    package_name = package_match.group(1) if package_match else ""

    body_start = content.find("{", interface_match.end())
    if body_start < 0:
        return package_name, interface_match.group(1), []

    methods: List[JavaMethod] = []
    offset = body_start + 1
    for line in content[body_start + 1:].splitlines(keepends=True):
        match = METHOD_LINE_PATTERN.match(line)
        first_word = line.strip().split(" ", 1)[0]
        if match and first_word not in JAVA_KEYWORDS and match.group(1) not in JAVA_KEYWORDS:
            line_no, column = offset_to_line_column(content, offset + match.start(1))
            methods.append(JavaMethod(name=match.group(1), position=Position(line=line_no, column=column)))
        offset += len(line)
    return package_name, interface_match.group(1), methods


def _locate_method_name(content: str, name: str, hint_line: Optional[int],
                        search_from: int) -> Tuple[Position, int]:
    """메서드 이름 토큰의 위치를 찾습니다 (javalang 위치는 수식어 시작 지점이므로)."""
    pattern = re.compile(rf"\b{re.escape(name)}\s*\(")
    start = search_from
    if hint_line is not None:
        line_offset = _line_offset(content, hint_line)
        if line_offset is not None:
            start = max(start, line_offset)
    match = pattern.search(content, start) or pattern.search(content, search_from) or pattern.search(content)
    if not match:
        return Position(line=hint_line or 0, column=0), search_from
    line, column = offset_to_line_column(content, match.start())
    return Position(line=line, column=column), match.end()


def _line_offset(content: str, line: int) -> Optional[int]:
    offset = 0
    for _ in range(line):
        offset = content.find("\n", offset)
        if offset < 0:
            return None
        offset += 1
    return offset


__all__ = [
    "is_mapper_source",
    "parse_java_mapper",
    "parse_java_mapper_content",
]
