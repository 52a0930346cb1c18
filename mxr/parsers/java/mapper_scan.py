"""
@MapperScan extraction from Java sources, archive entries and disassembled class files.
"""
from __future__ import annotations

import re
from typing import List, Optional

from mxr.models.mapping import MapperScanConfig

PACKAGE_NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*(\.[a-zA-Z][a-zA-Z0-9_]*)*$")

MAPPER_SCAN_PATTERN = re.compile(r"@(?:[\w.]*\.)?MapperScan\s*\((?P<args>[^)]*)\)", re.DOTALL)
LITERAL = r"(\{[^}]*\}|\"[^\"]*\")"
POSITIONAL_VALUE_PATTERN = re.compile(r"^\s*" + LITERAL)
NAMED_VALUE_PATTERN = re.compile(r"\b(?:value|basePackages)\s*=\s*" + LITERAL)
CLASS_VALUE_PATTERN = re.compile(r"\bbasePackageClasses\s*=\s*(\{[^}]*\}|[\w.]+\.class)")
CLASS_REFERENCE_PATTERN = re.compile(r"([\w.]+)\.class\b")
QUOTED_PATTERN = re.compile(r"\"([^\"]*)\"")
PACKAGE_DECLARATION_PATTERN = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)

BYTECODE_ANNOTATION = "org.mybatis.spring.annotation.MapperScan"
BYTECODE_VALUE_PATTERN = re.compile(r"value=\[([^\]]+)\]")
BYTECODE_BASE_PACKAGES_PATTERN = re.compile(r"basePackages=[\[{]([^\]}]+)[\]}]")


def is_valid_package_name(name: str) -> bool:
    return bool(PACKAGE_NAME_PATTERN.match(name))


def extract_package_names(value: str, content: str = "") -> List[str]:
    """
    어노테이션 값 표현식에서 패키지명을 추출합니다.

    Handles three literal shapes: ``"pkg"``, ``{"a", "b"}`` and ``{A.class, B.class}``.
    Class references are resolved through the file's imports (then its own package).

    Args:
        value: 어노테이션 값 표현식
        content: 같은 파일의 전체 소스 (import 해석용)

    Returns:
        유효한 패키지명 리스트 (중복 제거, 순서 유지)
    """
    value = value.strip()
    packages: List[str] = []

    if ".class" in value:
        for match in CLASS_REFERENCE_PATTERN.finditer(value):
            package = _resolve_class_package(match.group(1), content)
            if package:
                packages.append(package)
    elif value.startswith("{"):
        packages.extend(QUOTED_PATTERN.findall(value))
    else:
        packages.append(value.replace('"', "").strip())

    return _dedupe([pkg.strip() for pkg in packages if is_valid_package_name(pkg.strip())])


def _resolve_class_package(reference: str, content: str) -> Optional[str]:
    if "." in reference:
        return reference.rsplit(".", 1)[0]
    import_match = re.search(rf"^\s*import\s+([\w.]+)\.{re.escape(reference)}\s*;", content, re.MULTILINE)
    if import_match:
        return import_match.group(1)
    # import 없이 참조되면 같은 패키지의 클래스
    package_match = PACKAGE_DECLARATION_PATTERN.search(content)
    return package_match.group(1) if package_match else None


def parse_mapper_scan_content(content: str, source_file: str) -> Optional[MapperScanConfig]:
    """Return the packages declared by every @MapperScan in ``content``, or None."""
    if "MapperScan" not in content:
        return None

    packages: List[str] = []
    for annotation in MAPPER_SCAN_PATTERN.finditer(content):
        args = annotation.group("args")
        values = []
        positional = POSITIONAL_VALUE_PATTERN.match(args)
        if positional:
            values.append(positional.group(1))
        values.extend(match.group(1) for match in NAMED_VALUE_PATTERN.finditer(args))
        values.extend(match.group(1) for match in CLASS_VALUE_PATTERN.finditer(args))
        for value in values:
            packages.extend(extract_package_names(value, content))

    packages = _dedupe(packages)
    if not packages:
        return None
    return MapperScanConfig(base_packages=packages, source_file=source_file)


def parse_mapper_scan_bytecode(output: str, source_file: str) -> Optional[MapperScanConfig]:
    """
    javap -v 출력에서 @MapperScan 값 배열을 찾습니다.

    Args:
        output: 역어셈블된 클래스 텍스트
        source_file: 클래스 파일 경로

    Returns:
        MapperScanConfig 또는 None
    """
    if "MapperScan" not in output:
        return None

    packages: List[str] = []
    in_mapper_scan = False
    for line in output.splitlines():
        trimmed = line.strip()
        if BYTECODE_ANNOTATION in trimmed:
            in_mapper_scan = True
        if not in_mapper_scan:
            continue

        for pattern in (BYTECODE_VALUE_PATTERN, BYTECODE_BASE_PACKAGES_PATTERN):
            match = pattern.search(trimmed)
            if match:
                packages.extend(_split_bytecode_array(match.group(1)))

        if trimmed == ")" or re.match(r"^\d+:", trimmed):
            in_mapper_scan = False

    packages = _dedupe(packages)
    if not packages:
        return None
    return MapperScanConfig(base_packages=packages, source_file=source_file)


def _split_bytecode_array(raw: str) -> List[str]:
    items = [item.strip().replace('"', "") for item in raw.split(",")]
    return [item for item in items if "." in item and is_valid_package_name(item)]


def _dedupe(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


__all__ = [
    "is_valid_package_name",
    "extract_package_names",
    "parse_mapper_scan_content",
    "parse_mapper_scan_bytecode",
]
