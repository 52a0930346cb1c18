"""
Parsers for the places that declare where MyBatis XML mappers live:
``mybatis-config.xml`` and Spring application configuration (YAML / properties).
"""
from __future__ import annotations

import os
import re
import xml.etree.ElementTree as ET
from typing import Any, Iterable, List
from urllib.parse import unquote, urlparse

import yaml

from mxr.parsers.base import is_within, to_relative_posix
from mxr.utils.logger import get_logger

logger = get_logger(__name__)

LOCATION_KEYS = ("mapper-locations", "mapperLocations", "mapper_locations")
LOCATION_PREFIXES = ("mybatis", "mybatis-plus")
CLASSPATH_PREFIX_PATTERN = re.compile(r"^classpath\*?:")
FILE_GLOB_PATTERN = re.compile(r"(?:\*|\?|\})[^/]*\.xml$|\*$")


def parse_mybatis_config_content(content: str, project_root: str = "") -> List[str]:
    """
    mybatis-config.xml의 <mappers> 항목에서 매퍼 위치 문자열을 추출합니다.

    Args:
        content: mybatis-config.xml 텍스트
        project_root: url 항목을 상대 경로로 바꿀 때 사용할 프로젝트 루트

    Returns:
        정규화 전의 위치 문자열 리스트
    """
    try:
        root = ET.fromstring(content)
    except (ET.ParseError, ValueError) as exc:
        logger.debug(f"Invalid mybatis-config.xml: {exc}")
        return []

    mappers = root.find("mappers") if root.tag == "configuration" else None
    if mappers is None:
        return []

    locations: List[str] = []
    for element in mappers:
        if element.tag == "mapper":
            if element.get("resource"):
                locations.append(element.get("resource").strip())
            elif element.get("class"):
                # MyBatis 규칙: 인터페이스와 같은 경로의 XML
                locations.append(element.get("class").strip().replace(".", "/") + ".xml")
            elif element.get("url"):
                locations.append(_url_to_location(element.get("url").strip(), project_root))
        elif element.tag == "package" and element.get("name"):
            locations.append(element.get("name").strip().replace(".", "/"))
    return [location for location in locations if location]


def _url_to_location(url: str, project_root: str) -> str:
    parsed = urlparse(url)
    path = unquote(parsed.path) if parsed.scheme == "file" else url
    if project_root and os.path.isabs(path) and is_within(path, project_root):
        return to_relative_posix(path, project_root)
    return os.path.basename(path)


def parse_yaml_mapper_locations(content: str) -> List[str]:
    """YAML 문서들에서 mybatis(-plus).mapper-locations 값을 읽습니다."""
    locations: List[str] = []
    for document in yaml.safe_load_all(content):
        if isinstance(document, dict):
            locations.extend(_locations_from_mapping(document))
    return locations


def _locations_from_mapping(document: dict) -> List[str]:
    found: List[str] = []
    for prefix in LOCATION_PREFIXES:
        section = document.get(prefix)
        if isinstance(section, dict):
            for key in LOCATION_KEYS:
                if key in section:
                    found.extend(_as_location_list(section[key]))
        # 'mybatis.mapper-locations: ...' 처럼 점 표기 키
        for key in LOCATION_KEYS:
            dotted = f"{prefix}.{key}"
            if dotted in document:
                found.extend(_as_location_list(document[dotted]))
    return found


def _as_location_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items: Iterable[Any] = value
    else:
        items = str(value).split(",")
    return [str(item).strip() for item in items if str(item).strip()]


def parse_properties_mapper_locations(content: str) -> List[str]:
    """key=value 형식 설정에서 mapper-locations 값을 읽습니다."""
    keys = {f"{prefix}.{key}" for prefix in LOCATION_PREFIXES for key in LOCATION_KEYS}
    locations: List[str] = []
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("#", "!")):
            continue
        match = re.match(r"^([^=:\s]+)\s*[=:]\s*(.*)$", line)
        if not match:
            continue
        key = match.group(1).strip()
        # 리스트 인덱스 표기: mybatis.mapper-locations[0]=...
        base_key = re.sub(r"\[\d+\]$", "", key)
        if base_key in keys:
            locations.extend(_as_location_list(match.group(2)))
    return locations


def normalize_location(location: str) -> str:
    """
    위치 문자열을 glob 패턴으로 정규화합니다.

    - ``classpath:`` / ``classpath*:`` 접두어 제거
    - 이미 파일 glob으로 끝나면 그대로 사용
    - 구체적인 .xml 파일이면 ``**/<file>``
    - 그 외에는 디렉토리로 보고 ``<dir>/**/*.xml``
    """
    pattern = CLASSPATH_PREFIX_PATTERN.sub("", location.strip()).replace("\\", "/").lstrip("/")
    if not pattern:
        return "**/*.xml"
    if FILE_GLOB_PATTERN.search(pattern):
        return pattern
    if pattern.lower().endswith(".xml"):
        return pattern if pattern.startswith("**/") else f"**/{pattern}"
    return f"{pattern.rstrip('/')}/**/*.xml"


def normalize_locations(locations: Iterable[str]) -> List[str]:
    """Normalize and de-duplicate, keeping first-seen order."""
    return list(dict.fromkeys(normalize_location(location) for location in locations if location.strip()))


__all__ = [
    "parse_mybatis_config_content",
    "parse_yaml_mapper_locations",
    "parse_properties_mapper_locations",
    "normalize_location",
    "normalize_locations",
]
