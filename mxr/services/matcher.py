"""
Matcher - pairs parsed Java mappers with parsed XML mappers.

Rules, first success wins:

1. exact: XML namespace == Java fully-qualified class name
2. simple name: exactly one unclaimed XML whose namespace simple name equals the Java simple name
3. filename similarity: several such candidates; longest common prefix of the lower-cased file names wins
4. no match: Java mapper without XML

Inputs are ordered by normalized path first, so the output does not depend on input order.
Exact matches claim their XML before any fallback rule runs.
"""
from __future__ import annotations

import os
from typing import Dict, Iterable, List, Optional, Set

from mxr.models.mapping import JavaMapperInfo, MapperPair, XmlMapperInfo
from mxr.parsers.base import normalize_path_key


def common_prefix_length(left: str, right: str) -> int:
    length = 0
    for a, b in zip(left, right):
        if a != b:
            break
        length += 1
    return length


def filename_score(java: JavaMapperInfo, xml: XmlMapperInfo) -> int:
    # 확장자 포함 파일명 비교
    return common_prefix_length(os.path.basename(java.file_path).lower(), os.path.basename(xml.file_path).lower())


def _pick_by_filename(java: JavaMapperInfo, candidates: List[XmlMapperInfo]) -> XmlMapperInfo:
    best = candidates[0]
    best_score = filename_score(java, best)
    for candidate in candidates[1:]:
        score = filename_score(java, candidate)
        if score > best_score:
            best, best_score = candidate, score
    return best


def match_mappers(java_mappers: Iterable[JavaMapperInfo],
                  xml_mappers: Iterable[XmlMapperInfo]) -> List[MapperPair]:
    """
    Java 매퍼마다 정확히 하나의 MapperPair를 만듭니다.

    Args:
        java_mappers: 파싱된 Java 매퍼들
        xml_mappers: 파싱된 XML 매퍼들

    Returns:
        MapperPair 리스트 (XML 없는 쌍이 먼저, 각 그룹은 Java 경로 순)
    """
    java_sorted = sorted(java_mappers, key=lambda info: normalize_path_key(info.file_path))
    xml_sorted = sorted(xml_mappers, key=lambda info: normalize_path_key(info.file_path))

    xml_by_namespace: Dict[str, XmlMapperInfo] = {}
    xml_by_simple_name: Dict[str, List[XmlMapperInfo]] = {}
    for xml in xml_sorted:
        xml_by_namespace.setdefault(xml.namespace, xml)
        xml_by_simple_name.setdefault(xml.simple_name, []).append(xml)

    java_class_names = {java.class_name for java in java_sorted}
    claimed: Set[str] = set()
    matched: Dict[str, Optional[XmlMapperInfo]] = {}

    # 1. exact
    for java in java_sorted:
        xml = xml_by_namespace.get(java.class_name)
        if xml is not None and xml.file_path not in claimed:
            claimed.add(xml.file_path)
            matched[java.file_path] = xml

    # 2/3. simple name, then filename similarity
    for java in java_sorted:
        if java.file_path in matched:
            continue
        candidates = [
            xml for xml in xml_by_simple_name.get(java.simple_name, [])
            if xml.file_path not in claimed and xml.namespace not in java_class_names
        ]
        if not candidates:
            matched[java.file_path] = None
            continue
        chosen = candidates[0] if len(candidates) == 1 else _pick_by_filename(java, candidates)
        claimed.add(chosen.file_path)
        matched[java.file_path] = chosen

    pairs = [MapperPair(java=java, xml=matched.get(java.file_path)) for java in java_sorted]
    # 같은 클래스명이 중복될 때 XML이 있는 쌍이 나중에 인덱싱되도록 정렬
    pairs.sort(key=lambda pair: (pair.xml is not None, normalize_path_key(pair.java.file_path)))
    return pairs


__all__ = ["match_mappers", "common_prefix_length", "filename_score"]
