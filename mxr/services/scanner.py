"""
Mapper Scanner - orchestrates config/location resolution, file discovery, parsing,
matching and the index rebuild.

Lifecycle: construct, ``initialize()``, then ``scan()`` / ``rescan_*()`` / ``handle_file_event()``,
and finally ``shutdown()``. Full scans and incremental updates run one at a time.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from mxr.config import ScanSettings
from mxr.exceptions import ScannerNotInitializedError
from mxr.models.mapping import (
    FileEvent,
    JavaMapperInfo,
    MapperMapping,
    Position,
    ScanProgressEvent,
    ScanResult,
    XmlMapperInfo,
)
from mxr.parsers.base import read_head
from mxr.parsers.java.mapper import parse_java_mapper
from mxr.parsers.xml.mapper import looks_like_mapper_xml, parse_xml_mapper
from mxr.services.batching import run_in_batches
from mxr.services.bytecode_inspector import BytecodeInspector, JavapInspector
from mxr.services.config_resolver import ConfigResolver
from mxr.services.events import EventEmitter, Subscription
from mxr.services.file_finder import FileFinder
from mxr.services.incremental import IncrementalUpdater
from mxr.services.index_cache import IndexCache
from mxr.services.location_resolver import XmlLocationResolver
from mxr.services.mapping_index import MappingIndex
from mxr.services.matcher import match_mappers
from mxr.utils.logger import get_logger

T = TypeVar("T")

SCAN_STARTED = "scan_started"
SCAN_PROGRESS = "progress"
JAVA_FOUND = "java_found"
XML_FOUND = "xml_found"
SCAN_COMPLETED = "scan_completed"
SCAN_ERROR = "scan_error"

HEURISTIC_XML_PATTERNS = [
    "**/mapper/**/*.xml",
    "**/mappers/**/*.xml",
    "**/resources/**/*Mapper.xml",
    "**/resources/**/*Dao.xml",
    "**/*Mapper.xml",
]
HEURISTIC_JAVA_PATTERNS = [
    "**/*Mapper.java",
    "**/*Dao.java",
    "**/*DAO.java",
    "**/mapper/**/*.java",
    "**/mappers/**/*.java",
    "**/dao/**/*.java",
]


def package_glob(package_name: str) -> str:
    return f"**/{package_name.replace('.', '/')}/**/*.java"


class MapperScanner:
    def __init__(
        self,
        project_root: str,
        settings: Optional[ScanSettings] = None,
        logger: Optional[logging.Logger] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.project_root = os.path.abspath(project_root)
        self.settings = settings or ScanSettings()
        self.logger = logger or get_logger(__name__)
        self.environ = environ
        self.events = EventEmitter(self.logger)

        self.index: Optional[MappingIndex] = None
        self.finder: Optional[FileFinder] = None
        self.cache: Optional[IndexCache] = None
        self.inspector: Optional[BytecodeInspector] = None
        self.config_resolver: Optional[ConfigResolver] = None
        self.location_resolver: Optional[XmlLocationResolver] = None
        self.updater: Optional[IncrementalUpdater] = None

        self.last_result: Optional[ScanResult] = None
        self._initialized = False
        self._is_scanning = False
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self._subscriptions: List[Subscription] = []

    # -------------------------------------------------------------- lifecycle

    def initialize(
        self,
        index: Optional[MappingIndex] = None,
        finder: Optional[FileFinder] = None,
        cache: Optional[IndexCache] = None,
        inspector: Optional[BytecodeInspector] = None,
        config_resolver: Optional[ConfigResolver] = None,
        location_resolver: Optional[XmlLocationResolver] = None,
    ) -> "MapperScanner":
        """
        협력 객체를 연결합니다. 전달되지 않은 객체는 기본 구현으로 생성합니다.

        Returns:
            self (체이닝용)
        """
        if self._initialized:
            return self

        self.index = index or MappingIndex(logger=self.logger)
        self.finder = finder or FileFinder(self.project_root, self.settings.exclude_dirs)
        if cache is None and self.settings.use_cache:
            cache = IndexCache(self.project_root, self.settings.cache_dir, logger=self.logger)
        self.cache = cache
        if self.cache is not None:
            self.cache.load()
        if inspector is None and self.settings.layer_enabled(4):
            inspector = JavapInspector(self.settings.javap_path, self.settings.inspector_timeout, logger=self.logger)
        self.inspector = inspector

        self.config_resolver = config_resolver or ConfigResolver(
            self.project_root, self.settings, finder=self.finder, cache=self.cache,
            inspector=self.inspector, environ=self.environ, logger=self.logger,
        )
        self.location_resolver = location_resolver or XmlLocationResolver(
            self.project_root, self.settings, finder=self.finder, logger=self.logger,
        )
        self.updater = IncrementalUpdater(
            self.project_root, self.index, cache=self.cache, inspector=self.inspector, logger=self.logger,
        )
        self._initialized = True
        self.logger.debug(f"Scanner initialized for {self.project_root}")
        return self

    def shutdown(self) -> None:
        if not self._initialized:
            return
        if self.cache is not None:
            self.cache.save()
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()
        self.events.clear()
        self._initialized = False
        self.logger.debug("Scanner shut down")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_scanning(self) -> bool:
        return self._is_scanning

    def on(self, event: str, listener: Callable) -> Subscription:
        """이벤트 구독 (shutdown 시 자동 해제)"""
        subscription = self.events.subscribe(event, listener)
        self._subscriptions.append(subscription)
        return subscription

    def ensure_initialized(self, operation: str) -> None:
        if not self._initialized:
            raise ScannerNotInitializedError(operation)

    def _get_lock(self) -> asyncio.Lock:
        # 실행 중인 이벤트 루프마다 하나의 Lock
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    # ------------------------------------------------------------------- scan

    async def scan(self) -> Optional[ScanResult]:
        """
        인덱스를 비우고 처음부터 다시 구성합니다.

        이미 스캔 중이면 경고만 남기고 None을 반환합니다 (대기열에 넣지 않음).

        Returns:
            ScanResult, 실패하거나 무시된 경우 None
        """
        self.ensure_initialized("scan")
        if self._is_scanning:
            self.logger.warning("Scan already in progress, request ignored")
            return None

        self._is_scanning = True
        try:
            async with self._get_lock():
                return await self._run_scan()
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.exception("Mapper scan failed")
            self.events.emit(SCAN_ERROR, exc)
            return None
        finally:
            self._is_scanning = False

    async def _run_scan(self) -> ScanResult:
        started = time.perf_counter()
        self.index.clear()
        self.events.emit(SCAN_STARTED)
        self.logger.info(f"Scanning MyBatis mappers in {self.project_root}")

        resolution, locations = await asyncio.gather(
            self.config_resolver.resolve_all_configs(),
            self.location_resolver.resolve_xml_locations(),
        )
        packages = list(dict.fromkeys(pkg for config in resolution.configs for pkg in config.base_packages))

        if packages or locations:
            mode = "configured"
            java_files, xml_files = await asyncio.gather(
                self._find_java_files(packages),
                self._find_xml_files(locations),
            )
        else:
            mode = "heuristic"
            java_files, xml_files = await asyncio.gather(
                self._find_by_patterns(HEURISTIC_JAVA_PATTERNS, self.settings.max_java_files),
                self._find_xml_files(HEURISTIC_XML_PATTERNS),
            )
        self.logger.info(f"{mode} scan: {len(java_files)} Java files, {len(xml_files)} XML files")
        self.events.emit(JAVA_FOUND, len(java_files))
        self.events.emit(XML_FOUND, len(xml_files))

        java_mappers: List[JavaMapperInfo] = await self._parse_files(java_files, parse_java_mapper, "java")
        xml_mappers: List[XmlMapperInfo] = await self._parse_files(xml_files, parse_xml_mapper, "xml")

        pairs = match_mappers(java_mappers, xml_mappers)
        self.index.build_mappings(pairs)
        paired = {pair.xml.file_path for pair in pairs if pair.xml is not None}
        self.updater.remember_orphans(xml for xml in xml_mappers if xml.file_path not in paired)

        if self.cache is not None:
            self.cache.save()

        stats = self.index.get_stats()
        self.last_result = ScanResult(
            mode=mode,
            java_files=len(java_files),
            xml_files=len(xml_files),
            java_mappers=len(java_mappers),
            xml_mappers=len(xml_mappers),
            mappings=stats["total"],
            with_xml=stats["with_xml"],
            configs=resolution.configs,
            xml_locations=locations,
            duration_seconds=time.perf_counter() - started,
        )
        self.logger.info(
            f"Scan complete: {stats['total']} mappings ({stats['with_xml']} with XML) "
            f"in {self.last_result.duration_seconds:.2f}s"
        )
        self.events.emit(SCAN_COMPLETED, {"result": self.last_result, "sources": resolution.sources})
        return self.last_result

    async def _find_java_files(self, packages: List[str]) -> List[str]:
        if not packages:
            # XML 위치만 설정된 경우 전체 Java 파일 대상
            return await self.finder.find_async("**/*.java", limit=self.settings.max_java_files)
        return await self._find_by_patterns([package_glob(pkg) for pkg in packages], self.settings.max_java_files,
                                            parallel=True)

    async def _find_by_patterns(self, patterns: Sequence[str], budget: int, parallel: bool = False) -> List[str]:
        if parallel:
            found = await asyncio.gather(*(self.finder.find_async(pattern, limit=budget) for pattern in patterns))
        else:
            found = []
            for pattern in patterns:
                found.append(await self.finder.find_async(pattern, limit=budget))
        return list(dict.fromkeys(path for paths in found for path in paths))[:budget]

    async def _find_xml_files(self, patterns: Sequence[str]) -> List[str]:
        files: List[str] = []
        seen = set()
        for pattern in patterns:
            remaining = self.settings.max_xml_files - len(files)
            if remaining <= 0:
                break
            for path in await self.finder.find_async(pattern, limit=remaining):
                if path.lower().endswith(".xml") and path not in seen:
                    seen.add(path)
                    files.append(path)

        if len(files) < self.settings.min_xml_threshold:
            broad = await self.finder.find_async("**/*.xml", limit=self.settings.broad_xml_limit)
            candidates = [path for path in broad if path not in seen]
            sniffed = await run_in_batches(
                candidates, self._sniff_mapper_xml, self.settings.batch_size, self.settings.parallel_limit
            )
            extra = [path for path, is_mapper in zip(candidates, sniffed) if is_mapper]
            if extra:
                self.logger.debug(f"Broad XML search added {len(extra)} mapper candidates")
            files.extend(extra[:max(0, self.settings.max_xml_files - len(files))])
        return files

    async def _sniff_mapper_xml(self, path: str) -> bool:
        try:
            head = await asyncio.to_thread(read_head, path, self.settings.sniff_bytes)
        except OSError:
            return False
        return looks_like_mapper_xml(head)

    async def _parse_files(self, files: List[str], parser: Callable[[str], Optional[T]], phase: str) -> List[T]:
        async def parse(path: str) -> Optional[T]:
            try:
                return await asyncio.to_thread(parser, path)
            except Exception as exc:  # pylint: disable=broad-except
                self.logger.debug(f"Failed to parse {path}: {exc}")
                return None

        def report(total: int, processed: int, current: Optional[str]) -> None:
            self.events.emit(SCAN_PROGRESS, ScanProgressEvent(
                total=total, processed=processed, phase=phase, current_file=current,
            ))

        results = await run_in_batches(
            files, parse, self.settings.batch_size, self.settings.parallel_limit, on_batch=report
        )
        return [result for result in results if result is not None]

    # ------------------------------------------------------------ incremental

    async def rescan_java_file(self, file_path: str) -> Optional[MapperMapping]:
        self.ensure_initialized("rescan_java_file")
        async with self._get_lock():
            return await self.updater.rescan_java_file(file_path)

    async def rescan_xml_file(self, file_path: str) -> Optional[MapperMapping]:
        self.ensure_initialized("rescan_xml_file")
        async with self._get_lock():
            return await self.updater.rescan_xml_file(file_path)

    async def remove_java_file(self, file_path: str) -> bool:
        self.ensure_initialized("remove_java_file")
        async with self._get_lock():
            return self.updater.remove_java_file(file_path)

    async def remove_xml_file(self, file_path: str) -> bool:
        self.ensure_initialized("remove_xml_file")
        async with self._get_lock():
            return self.updater.remove_xml_file(file_path)

    async def handle_file_event(self, event: FileEvent) -> Optional[MapperMapping]:
        self.ensure_initialized("handle_file_event")
        async with self._get_lock():
            return await self.updater.handle_file_event(event)

    async def update_java_positions(self, java_path: str, positions: Dict[str, Position]) -> bool:
        """심볼에서 얻은 Java 메서드 위치를 인덱스에 반영"""
        self.ensure_initialized("update_java_positions")
        async with self._get_lock():
            return self.index.update_java_positions(java_path, positions)


__all__ = [
    "MapperScanner",
    "HEURISTIC_XML_PATTERNS",
    "HEURISTIC_JAVA_PATTERNS",
    "package_glob",
    "SCAN_STARTED",
    "SCAN_PROGRESS",
    "JAVA_FOUND",
    "XML_FOUND",
    "SCAN_COMPLETED",
    "SCAN_ERROR",
]
