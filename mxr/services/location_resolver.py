"""
XML Location Resolver - finds where mapper XML files live.

Two independent sources run concurrently: ``mybatis-config.xml`` <mappers> entries and
Spring application configuration (``mapper-locations``). Results are glob patterns.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import List, Optional

from mxr.config import ScanSettings
from mxr.parsers.base import read_text
from mxr.parsers.xml.locations import (
    normalize_locations,
    parse_mybatis_config_content,
    parse_properties_mapper_locations,
    parse_yaml_mapper_locations,
)
from mxr.services.file_finder import FileFinder
from mxr.utils.logger import get_logger

MYBATIS_CONFIG_PATTERN = "**/mybatis-config.xml"
APPLICATION_CONFIG_PATTERNS = (
    "**/application{,-*}.yml",
    "**/application{,-*}.yaml",
    "**/application{,-*}.properties",
)
CONFIG_FILE_LIMIT = 5


class XmlLocationResolver:
    def __init__(
        self,
        project_root: str,
        settings: Optional[ScanSettings] = None,
        finder: Optional[FileFinder] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.project_root = os.path.abspath(project_root)
        self.settings = settings or ScanSettings()
        self.finder = finder or FileFinder(self.project_root, self.settings.exclude_dirs)
        self.logger = logger or get_logger(__name__)
        self.resolved_locations: List[str] = []

    async def resolve_xml_locations(self) -> List[str]:
        """
        두 소스를 병렬로 조회하고 정규화된 glob 패턴 목록을 반환합니다.

        Returns:
            중복 제거된 glob 패턴 리스트 (없으면 빈 리스트)
        """
        mybatis_locations, spring_locations = await asyncio.gather(
            self._guarded(self.resolve_from_mybatis_config(), "mybatis-config.xml"),
            self._guarded(self.resolve_from_spring_config(), "application config"),
        )
        self.resolved_locations = normalize_locations(mybatis_locations + spring_locations)
        if self.resolved_locations:
            self.logger.info(f"Resolved XML locations: {self.resolved_locations}")
        else:
            self.logger.debug("No XML mapper locations configured")
        return list(self.resolved_locations)

    async def _guarded(self, coroutine, source: str) -> List[str]:
        try:
            return await coroutine
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.debug(f"Failed to read mapper locations from {source}: {exc}")
            return []

    async def resolve_from_mybatis_config(self) -> List[str]:
        files = await self.finder.find_async(MYBATIS_CONFIG_PATTERN, limit=CONFIG_FILE_LIMIT)
        locations: List[str] = []
        for file_path in files:
            try:
                content = await asyncio.to_thread(read_text, file_path)
            except OSError as exc:
                self.logger.debug(f"Cannot read {file_path}: {exc}")
                continue
            locations.extend(parse_mybatis_config_content(content, self.project_root))
        return locations

    async def resolve_from_spring_config(self) -> List[str]:
        found = await asyncio.gather(*(
            self.finder.find_async(pattern, limit=CONFIG_FILE_LIMIT) for pattern in APPLICATION_CONFIG_PATTERNS
        ))
        locations: List[str] = []
        for file_path in [path for paths in found for path in paths]:
            try:
                content = await asyncio.to_thread(read_text, file_path)
                if file_path.endswith(".properties"):
                    locations.extend(parse_properties_mapper_locations(content))
                else:
                    locations.extend(parse_yaml_mapper_locations(content))
            except Exception as exc:  # pylint: disable=broad-except
                # YAML 문법 오류 등: 해당 파일만 건너뜀
                self.logger.debug(f"Cannot parse {file_path}: {exc}")
        return locations


__all__ = ["XmlLocationResolver", "MYBATIS_CONFIG_PATTERN", "APPLICATION_CONFIG_PATTERNS"]
