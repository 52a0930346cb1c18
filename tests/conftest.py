"""공통 테스트 픽스처: tmp_path 아래에 임시 Java/XML 프로젝트를 구성합니다."""

import os
from typing import Iterable, Optional

import pytest

from mxr.config import ScanSettings
from mxr.services.scanner import MapperScanner
from mxr.utils.logger import null_logger

JAVA_ROOT = "src/main/java"
RESOURCES_ROOT = "src/main/resources"


def java_mapper_source(package: str, name: str, methods: Iterable[str] = (), annotated: bool = True) -> str:
    lines = [f"package {package};", ""]
    if annotated:
        lines += ["import org.apache.ibatis.annotations.Mapper;", "", "@Mapper"]
    lines.append(f"public interface {name} {{")
    for method in methods:
        lines.append(f"    Object {method}(String id);")
    lines.append("}")
    return "\n".join(lines) + "\n"


def xml_mapper_source(namespace: str, sql_ids: Iterable[str] = ()) -> str:
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<mapper namespace="{namespace}">',
    ]
    for sql_id in sql_ids:
        lines.append(f'    <select id="{sql_id}" resultType="map">')
        lines.append("        SELECT 1")
        lines.append("    </select>")
    lines.append("</mapper>")
    return "\n".join(lines) + "\n"


class ProjectBuilder:
    """임시 프로젝트에 파일을 쓰는 도우미"""

    def __init__(self, root: str):
        self.root = root

    def path(self, relative: str) -> str:
        return os.path.join(self.root, *relative.split("/"))

    def write(self, relative: str, content: str) -> str:
        path = self.path(relative)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(content)
        return path

    def java_mapper(self, package: str, name: str, methods: Iterable[str] = (),
                    annotated: bool = True, source_root: str = JAVA_ROOT) -> str:
        relative = f"{source_root}/{package.replace('.', '/')}/{name}.java"
        return self.write(relative, java_mapper_source(package, name, methods, annotated))

    def xml_mapper(self, relative: str, namespace: str, sql_ids: Iterable[str] = ()) -> str:
        return self.write(relative, xml_mapper_source(namespace, sql_ids))


@pytest.fixture
def project(tmp_path) -> ProjectBuilder:
    return ProjectBuilder(str(tmp_path))


def make_settings(**overrides) -> ScanSettings:
    values = {
        "dependency_cache_dirs": [],
        "enabled_layers": [1, 2, 3, 5, 6],
        "use_cache": False,
    }
    values.update(overrides)
    return ScanSettings(**values)


@pytest.fixture
def settings() -> ScanSettings:
    return make_settings()


def make_scanner(root: str, settings: Optional[ScanSettings] = None, environ=None, **dependencies) -> MapperScanner:
    scanner = MapperScanner(
        root,
        settings or make_settings(),
        logger=null_logger(),
        environ=environ if environ is not None else {},
    )
    return scanner.initialize(**dependencies)


@pytest.fixture
def scanner_factory():
    """make_scanner를 픽스처로 노출 (settings/environ/협력 객체 주입 가능)"""
    created = []

    def factory(root: str, settings: Optional[ScanSettings] = None, environ=None, **dependencies) -> MapperScanner:
        scanner = make_scanner(root, settings, environ, **dependencies)
        created.append(scanner)
        return scanner

    yield factory
    for scanner in created:
        scanner.shutdown()


@pytest.fixture
def settings_factory():
    return make_settings
