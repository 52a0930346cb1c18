"""
Config Resolver - discovers @MapperScan-style package roots through six layers:

1. current-project sources        4. compiled classes (bytecode inspector)
2. sub-module sources             5. environment variables
3. dependency source archives     6. user settings

Every layer is best-effort: its failure is logged and contributes nothing.
"""
from __future__ import annotations

import asyncio
import logging
import os
import re
import zipfile
from typing import Dict, Iterable, List, Mapping, Optional, Set

from mxr.config import ScanSettings, split_list_value
from mxr.models.mapping import ConfigResolution, ConfigSource, MapperScanConfig
from mxr.parsers.base import read_text
from mxr.parsers.java.mapper_scan import is_valid_package_name, parse_mapper_scan_content
from mxr.services.batching import run_in_batches
from mxr.services.bytecode_inspector import BytecodeInspector, inspect_mapper_scan
from mxr.services.file_finder import FileFinder
from mxr.services.index_cache import IndexCache
from mxr.utils.logger import get_logger

# 설정 클래스일 가능성이 높은 파일부터 검색
LAYER1_PATTERNS = [
    "**/*Config*.java",
    "**/*Configuration*.java",
    "**/*Application*.java",
    "**/*Mybatis*.java",
    "**/*Mapper*.java",
    "**/config/**/*.java",
    "**/configuration/**/*.java",
    "**/spring/**/*.java",
    "**/boot/**/*.java",
    "**/*.java",
]
MODULE_PATTERN = "**/*{Config,Configuration,Application,Mybatis}*.java"
SOURCE_ARCHIVE_PATTERN = re.compile(r"-sources\.(?:jar|zip)$", re.IGNORECASE)
SOURCE_ARCHIVE_HINTS = ("mybatis", "mapper", "dao")
CONFIG_CLASS_PATTERN = re.compile(r"(?:Config|Configuration|Application|AutoConfiguration)\.class$")
CLASS_OUTPUT_DIRS = (os.path.join("target", "classes"), os.path.join("build", "classes"))
ENV_TOKENS = ("MYBATIS", "MAPPER_SCAN")

MAVEN_MODULES_PATTERN = re.compile(r"<modules>(.*?)</modules>", re.DOTALL)
MAVEN_MODULE_PATTERN = re.compile(r"<module>\s*([^<]+?)\s*</module>")
GRADLE_INCLUDE_LINE_PATTERN = re.compile(r"^\s*include\b(.*)$", re.MULTILINE)
GRADLE_QUOTED_PATTERN = re.compile(r"['\"]([^'\"]+)['\"]")

LAYER_NAMES = {
    1: ("source", "current-project"),
    2: ("source", "sub-modules"),
    3: ("jar", "source-jars"),
    4: ("jar", "compiled-classes"),
    5: ("environment", "env-vars"),
    6: ("settings", "user-settings"),
}


def config_key(config: MapperScanConfig) -> str:
    return ",".join(sorted(config.base_packages))


def dedupe_configs(configs: Iterable[MapperScanConfig]) -> List[MapperScanConfig]:
    """Collapse configs that declare the same package set (order-insensitive)."""
    unique: Dict[str, MapperScanConfig] = {}
    for config in configs:
        unique.setdefault(config_key(config), config)
    return list(unique.values())


def parse_maven_modules(content: str) -> List[str]:
    modules: List[str] = []
    for block in MAVEN_MODULES_PATTERN.findall(content):
        modules.extend(MAVEN_MODULE_PATTERN.findall(block))
    return modules


def parse_gradle_modules(content: str) -> List[str]:
    modules: List[str] = []
    for line in GRADLE_INCLUDE_LINE_PATTERN.findall(content):
        for name in GRADLE_QUOTED_PATTERN.findall(line):
            # ':core:dao' -> 'core/dao'
            modules.append(name.strip(":").replace(":", "/"))
    return [module for module in modules if module]


class ConfigResolver:
    """Six-layer @MapperScan configuration discovery for one project."""

    def __init__(
        self,
        project_root: str,
        settings: Optional[ScanSettings] = None,
        finder: Optional[FileFinder] = None,
        cache: Optional[IndexCache] = None,
        inspector: Optional[BytecodeInspector] = None,
        environ: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.project_root = os.path.abspath(project_root)
        self.settings = settings or ScanSettings()
        self.finder = finder or FileFinder(self.project_root, self.settings.exclude_dirs)
        self.cache = cache
        self.inspector = inspector
        self.environ = environ if environ is not None else os.environ
        self.logger = logger or get_logger(__name__)
        self.last_resolution: Optional[ConfigResolution] = None
        self._checked: Set[str] = set()

    async def resolve_configs(self) -> List[MapperScanConfig]:
        resolution = await self.resolve_all_configs()
        return resolution.configs

    async def resolve_all_configs(self) -> ConfigResolution:
        """
        모든 레이어를 우선순위 순서로 실행하고 결과를 합칩니다.

        Returns:
            ConfigResolution (configs, sources, stats)
        """
        self._checked = set()
        configs: List[MapperScanConfig] = []
        sources: List[ConfigSource] = []
        stats = {"total_layers": 0, "source_configs": 0, "jar_configs": 0, "runtime_configs": 0}

        self.logger.info("Starting config resolution...")
        modules: Optional[List[str]] = None

        for layer in range(1, 7):
            if len(configs) >= self.settings.config_target:
                self.logger.debug(f"Config target reached ({len(configs)}), skipping layers {layer}-6")
                break
            if not self.settings.layer_enabled(layer):
                continue

            try:
                if layer == 1:
                    found = await self._resolve_from_current_project()
                elif layer == 2:
                    modules = await asyncio.to_thread(self.detect_modules)
                    found = await self._resolve_from_modules(modules) if modules else []
                elif layer == 3:
                    found = await self._resolve_from_source_archives()
                elif layer == 4:
                    if modules is None:
                        modules = await asyncio.to_thread(self.detect_modules)
                    found = await self._resolve_from_compiled_classes(modules)
                elif layer == 5:
                    found = self._resolve_from_environment()
                else:
                    found = self._resolve_from_settings()
            except Exception as exc:  # pylint: disable=broad-except
                self.logger.debug(f"Config layer {layer} failed: {exc}")
                found = []
            stats["total_layers"] += 1

            if not found:
                continue
            configs.extend(found)
            source_type, location = LAYER_NAMES[layer]
            sources.append(ConfigSource(type=source_type, location=location, priority=layer, count=len(found)))
            if layer <= 2:
                stats["source_configs"] += len(found)
            elif layer <= 4:
                stats["jar_configs"] += len(found)
            else:
                stats["runtime_configs"] += len(found)
            self.logger.info(f"Layer {layer} ({location}): found {len(found)} configs")

        unique = dedupe_configs(configs)
        self.logger.info(f"Config resolution complete: {len(unique)} unique configs from {len(sources)} sources")
        self.last_resolution = ConfigResolution(configs=unique, sources=sources, stats=stats)
        return self.last_resolution

    # ---------------------------------------------------------------- layer 1

    async def _resolve_from_current_project(self) -> List[MapperScanConfig]:
        configs: List[MapperScanConfig] = []
        for pattern in LAYER1_PATTERNS:
            files = await self.finder.find_async(pattern, limit=self.settings.layer1_pattern_limit)
            configs.extend(await self._parse_source_files(files))
            if len(configs) >= self.settings.config_target:
                break
        return configs

    async def _parse_source_files(self, files: List[str]) -> List[MapperScanConfig]:
        pending = [path for path in files if path not in self._checked]
        self._checked.update(pending)
        results = await run_in_batches(
            pending, self._parse_source_file, self.settings.batch_size, self.settings.parallel_limit
        )
        return [config for config in results if config]

    async def _parse_source_file(self, file_path: str) -> Optional[MapperScanConfig]:
        if self.cache is not None:
            entry = self.cache.lookup(file_path)
            if entry is not None:
                return entry.mapper_scan

        try:
            content = await asyncio.to_thread(read_text, file_path)
        except OSError as exc:
            self.logger.debug(f"Cannot read {file_path}: {exc}")
            return None

        config = parse_mapper_scan_content(content, file_path) if "@MapperScan" in content else None
        if self.cache is not None:
            self.cache.update_entry(file_path, config)
        return config

    # ---------------------------------------------------------------- layer 2

    def detect_modules(self) -> List[str]:
        """Maven <modules> / Gradle include 선언에서 서브 모듈 경로를 찾습니다."""
        names: List[str] = []
        pom_path = os.path.join(self.project_root, "pom.xml")
        if os.path.isfile(pom_path):
            names.extend(parse_maven_modules(read_text(pom_path)))
        for settings_file in ("settings.gradle", "settings.gradle.kts"):
            path = os.path.join(self.project_root, settings_file)
            if os.path.isfile(path):
                names.extend(parse_gradle_modules(read_text(path)))

        modules: List[str] = []
        for name in dict.fromkeys(names):
            module_path = os.path.normpath(os.path.join(self.project_root, name))
            if os.path.isdir(module_path):
                modules.append(module_path)
        if modules:
            self.logger.debug(f"Detected {len(modules)} sub-modules")
        return modules

    async def _resolve_from_modules(self, modules: List[str]) -> List[MapperScanConfig]:
        async def search(module_path: str) -> List[str]:
            return await self.finder.find_async(
                MODULE_PATTERN, limit=self.settings.module_pattern_limit, base=module_path
            )

        found = await run_in_batches(modules, search, self.settings.batch_size, self.settings.parallel_limit)
        files = list(dict.fromkeys(path for module_files in found for path in module_files))
        return await self._parse_source_files(files)

    # ---------------------------------------------------------------- layer 3

    def find_source_archives(self) -> List[str]:
        archives: List[str] = []
        limit = self.settings.source_jar_limit
        for cache_dir in self.settings.dependency_cache_dirs:
            cache_dir = os.path.expanduser(cache_dir)
            if not os.path.isdir(cache_dir) or len(archives) >= limit:
                continue
            for path in FileFinder(cache_dir, exclude_dirs=()).walk():
                name = os.path.basename(path).lower()
                if SOURCE_ARCHIVE_PATTERN.search(name) and any(hint in name for hint in SOURCE_ARCHIVE_HINTS):
                    archives.append(path)
                    if len(archives) >= limit:
                        break
        return archives

    async def _resolve_from_source_archives(self) -> List[MapperScanConfig]:
        if self.settings.source_jar_limit <= 0:
            return []
        archives = await asyncio.to_thread(self.find_source_archives)
        if not archives:
            return []
        self.logger.debug(f"Scanning {len(archives)} dependency source archives")

        async def scan(archive: str) -> Optional[MapperScanConfig]:
            if self.cache is not None:
                entry = self.cache.lookup(archive)
                if entry is not None:
                    return entry.mapper_scan
            try:
                config = await asyncio.to_thread(self.scan_source_archive, archive)
            except Exception as exc:  # pylint: disable=broad-except
                self.logger.debug(f"Failed to scan archive {archive}: {exc}")
                return None
            if self.cache is not None:
                self.cache.update_entry(archive, config)
            return config

        results = await run_in_batches(archives, scan, self.settings.batch_size, self.settings.parallel_limit)
        return [config for config in results if config]

    def scan_source_archive(self, archive_path: str) -> Optional[MapperScanConfig]:
        """
        소스 아카이브의 .java 엔트리에서 @MapperScan을 찾아 하나의 설정으로 합칩니다.
        """
        packages: List[str] = []
        found = 0
        try:
            with zipfile.ZipFile(archive_path) as archive:
                for name in archive.namelist():
                    if not name.endswith(".java"):
                        continue
                    content = archive.read(name).decode("utf-8", errors="replace")
                    if "@MapperScan" not in content:
                        continue
                    config = parse_mapper_scan_content(content, f"{archive_path}!{name}")
                    if config:
                        packages.extend(config.base_packages)
                        found += 1
                        if found >= self.settings.jar_config_scan_limit:
                            break
        except (OSError, zipfile.BadZipFile) as exc:
            self.logger.debug(f"Cannot read archive {archive_path}: {exc}")
            return None

        packages = list(dict.fromkeys(packages))
        return MapperScanConfig(base_packages=packages, source_file=archive_path) if packages else None

    # ---------------------------------------------------------------- layer 4

    def find_config_class_files(self, modules: Optional[List[str]] = None) -> List[str]:
        roots = [self.project_root] + list(modules or [])
        class_files: List[str] = []
        limit = self.settings.class_file_scan_limit
        for root in roots:
            for output_dir in CLASS_OUTPUT_DIRS:
                base = os.path.join(root, output_dir)
                if not os.path.isdir(base):
                    continue
                for path in FileFinder(base, exclude_dirs=()).walk():
                    name = os.path.basename(path)
                    if "$" not in name and CONFIG_CLASS_PATTERN.search(name):
                        class_files.append(path)
                        if len(class_files) >= limit:
                            return class_files
        return class_files

    async def _resolve_from_compiled_classes(self, modules: Optional[List[str]]) -> List[MapperScanConfig]:
        if self.inspector is None or self.settings.class_file_scan_limit <= 0:
            return []
        available = getattr(self.inspector, "is_available", None)
        if callable(available) and not available():
            return []

        class_files = await asyncio.to_thread(self.find_config_class_files, modules)

        async def inspect(class_path: str) -> Optional[MapperScanConfig]:
            if self.cache is not None:
                entry = self.cache.lookup(class_path)
                if entry is not None:
                    return entry.mapper_scan
            try:
                config = await inspect_mapper_scan(self.inspector, class_path)
            except Exception as exc:  # pylint: disable=broad-except
                self.logger.debug(f"Failed to inspect {class_path}: {exc}")
                return None
            if self.cache is not None:
                self.cache.update_entry(class_path, config)
            return config

        results = await run_in_batches(class_files, inspect, self.settings.batch_size, self.settings.parallel_limit)
        return [config for config in results if config]

    # ---------------------------------------------------------------- layer 5

    def _resolve_from_environment(self) -> List[MapperScanConfig]:
        configs: List[MapperScanConfig] = []
        for key in sorted(self.environ):
            if not any(token in key.upper() for token in ENV_TOKENS):
                continue
            packages = [pkg for pkg in split_list_value(self.environ[key]) if is_valid_package_name(pkg)]
            if packages:
                configs.append(MapperScanConfig(base_packages=packages, source_file=f"environment:{key}"))
        profiles = self.environ.get("SPRING_PROFILES_ACTIVE")
        if profiles:
            self.logger.debug(f"Active Spring profiles: {profiles}")
        return configs

    # ---------------------------------------------------------------- layer 6

    def _resolve_from_settings(self) -> List[MapperScanConfig]:
        packages = [pkg.strip() for pkg in self.settings.custom_mapper_packages if is_valid_package_name(pkg.strip())]
        if not packages:
            return []
        return [MapperScanConfig(base_packages=list(dict.fromkeys(packages)), source_file="settings")]


__all__ = [
    "ConfigResolver",
    "CONFIG_CLASS_PATTERN",
    "LAYER1_PATTERNS",
    "config_key",
    "dedupe_configs",
    "parse_maven_modules",
    "parse_gradle_modules",
]
