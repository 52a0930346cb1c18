"""ConfigResolver 레이어별 테스트"""

import asyncio
import os
import zipfile

from mxr.models.mapping import MapperScanConfig
from mxr.services import config_resolver as config_resolver_module
from mxr.services.config_resolver import (
    ConfigResolver,
    dedupe_configs,
    parse_gradle_modules,
    parse_maven_modules,
)
from mxr.services.index_cache import IndexCache
from mxr.utils.logger import null_logger

APP_CONFIG = """package com.acme;

import org.mybatis.spring.annotation.MapperScan;

@MapperScan({"com.acme.dao", "com.acme.mapper"})
public class AppConfig {}
"""

JAVAP_OUTPUT = """RuntimeVisibleAnnotations:
  0: #20(#21=[s#22])
    org.mybatis.spring.annotation.MapperScan(
      value=["com.compiled.dao"]
    )
"""


class FakeInspector:
    def __init__(self, output=JAVAP_OUTPUT):
        self.output = output
        self.inspected = []

    async def inspect(self, class_path):
        self.inspected.append(class_path)
        return self.output


class BrokenFinder:
    """모든 검색이 실패하는 finder"""

    async def find_async(self, pattern, limit=None, base=None):
        raise RuntimeError("disk on fire")


def resolver_for(root, settings, **kwargs):
    kwargs.setdefault("environ", {})
    return ConfigResolver(root, settings, logger=null_logger(), **kwargs)


class TestCurrentProjectLayer:
    """레이어 1: 현재 프로젝트 소스"""

    def test_mapper_scan_with_two_packages(self, project, settings):
        """하나의 설정에 두 패키지가 모두 포함"""
        path = project.write("src/main/java/com/acme/AppConfig.java", APP_CONFIG)

        resolution = asyncio.run(resolver_for(project.root, settings).resolve_all_configs())

        assert len(resolution.configs) == 1
        assert resolution.configs[0].base_packages == ["com.acme.dao", "com.acme.mapper"]
        assert resolution.configs[0].source_file == path
        assert [(s.type, s.location, s.priority, s.count) for s in resolution.sources] == [
            ("source", "current-project", 1, 1)
        ]
        assert resolution.stats["source_configs"] == 1

    def test_resolve_configs_returns_only_configs(self, project, settings):
        project.write("src/main/java/com/acme/AppConfig.java", APP_CONFIG)

        configs = asyncio.run(resolver_for(project.root, settings).resolve_configs())

        assert [config.base_packages for config in configs] == [["com.acme.dao", "com.acme.mapper"]]

    def test_same_package_set_is_deduplicated(self, project, settings):
        """패키지 순서만 다른 설정은 하나로"""
        project.write("src/main/java/com/acme/AppConfig.java", APP_CONFIG)
        project.write(
            "src/main/java/com/acme/OtherConfig.java",
            '@MapperScan({"com.acme.mapper", "com.acme.dao"})\npublic class OtherConfig {}\n',
        )

        configs = asyncio.run(resolver_for(project.root, settings).resolve_configs())

        assert len(configs) == 1

    def test_no_configuration(self, project, settings):
        project.java_mapper("com.acme.dao", "UserMapper", ["findById"])

        resolution = asyncio.run(resolver_for(project.root, settings).resolve_all_configs())

        assert resolution.configs == []
        assert resolution.sources == []

    def test_persistent_cache_is_reused(self, project, settings, monkeypatch):
        """mtime/size가 같은 파일은 다시 읽지 않고 캐시 결과 사용"""
        path = project.write("src/main/java/com/acme/AppConfig.java", APP_CONFIG)
        cache = IndexCache(project.root, logger=null_logger())
        cache.load()
        asyncio.run(resolver_for(project.root, settings, cache=cache).resolve_configs())
        assert cache.lookup(path).mapper_scan.base_packages == ["com.acme.dao", "com.acme.mapper"]

        def fail_read(*args, **kwargs):
            raise OSError("should not be read")

        monkeypatch.setattr(config_resolver_module, "read_text", fail_read)
        configs = asyncio.run(resolver_for(project.root, settings, cache=cache).resolve_configs())

        assert [config.base_packages for config in configs] == [["com.acme.dao", "com.acme.mapper"]]


class TestModuleDetection:
    """레이어 2: 서브 모듈"""

    def test_parse_maven_modules(self):
        content = "<project><modules>\n  <module>core</module>\n  <module> web </module>\n</modules></project>"

        assert parse_maven_modules(content) == ["core", "web"]

    def test_parse_gradle_modules(self):
        content = "rootProject.name = 'shop'\ninclude 'core', ':web:api'\ninclude(\"batch\")\n"

        assert parse_gradle_modules(content) == ["core", "web/api", "batch"]

    def test_detect_modules_keeps_existing_directories(self, project, settings):
        project.write("pom.xml", "<project><modules><module>core</module><module>missing</module></modules></project>")
        project.write("core/pom.xml", "<project/>")

        modules = resolver_for(project.root, settings).detect_modules()

        assert modules == [project.path("core")]

    def test_module_config_is_found(self, project, settings_factory):
        """레이어 1이 꺼져 있어도 모듈의 설정 클래스를 찾음"""
        project.write("settings.gradle", "include 'persistence'\n")
        project.write(
            "persistence/src/main/java/com/shop/DbConfig.java",
            '@MapperScan("com.shop.persistence.mapper")\npublic class DbConfig {}\n',
        )

        resolution = asyncio.run(
            resolver_for(project.root, settings_factory(enabled_layers=[2])).resolve_all_configs()
        )

        assert resolution.configs[0].base_packages == ["com.shop.persistence.mapper"]
        assert resolution.sources[0].location == "sub-modules"


class TestSourceArchiveLayer:
    """레이어 3: 의존성 소스 아카이브"""

    def test_archive_configs_are_merged(self, tmp_path, project, settings_factory):
        repo = tmp_path / "m2"
        archive_dir = repo / "com" / "acme" / "acme-mybatis-starter" / "1.0"
        archive_dir.mkdir(parents=True)
        archive = archive_dir / "acme-mybatis-starter-1.0-sources.jar"
        with zipfile.ZipFile(archive, "w") as handle:
            handle.writestr("com/acme/lib/LibConfig.java", '@MapperScan("com.acme.lib.mapper")\nclass LibConfig {}\n')
            handle.writestr("com/acme/lib/ExtraConfig.java", '@MapperScan("com.acme.lib.extra")\nclass ExtraConfig {}\n')
            handle.writestr("com/acme/lib/Plain.java", "class Plain {}\n")
        (archive_dir / "unrelated-1.0-sources.jar").write_bytes(b"not a zip")

        settings = settings_factory(enabled_layers=[3], dependency_cache_dirs=[str(repo)])
        resolution = asyncio.run(resolver_for(project.root, settings).resolve_all_configs())

        assert len(resolution.configs) == 1
        assert resolution.configs[0].base_packages == ["com.acme.lib.mapper", "com.acme.lib.extra"]
        assert resolution.configs[0].source_file == str(archive)
        assert resolution.stats["jar_configs"] == 1

    def test_corrupt_archive_is_skipped(self, tmp_path, project, settings_factory):
        repo = tmp_path / "m2"
        repo.mkdir()
        (repo / "broken-mapper-1.0-sources.jar").write_bytes(b"not a zip")
        settings = settings_factory(enabled_layers=[3], dependency_cache_dirs=[str(repo)])

        resolution = asyncio.run(resolver_for(project.root, settings).resolve_all_configs())

        assert resolution.configs == []

    def test_failing_archive_does_not_drop_siblings(self, tmp_path, project, settings_factory):
        """압축 방식을 지원하지 않는 아카이브가 있어도 다른 아카이브의 설정은 유지"""
        repo = tmp_path / "m2"
        repo.mkdir()
        with zipfile.ZipFile(repo / "a-mybatis-1.0-sources.jar", "w") as handle:
            handle.writestr("com/good/GoodConfig.java", '@MapperScan("com.good.mapper")\nclass GoodConfig {}\n')
        broken = repo / "b-mybatis-1.0-sources.jar"
        with zipfile.ZipFile(broken, "w") as handle:
            handle.writestr("com/bad/BadConfig.java", '@MapperScan("com.bad.mapper")\nclass BadConfig {}\n')
        # 중앙 디렉토리의 압축 방식을 99로 바꿔 읽을 때 NotImplementedError 발생
        data = bytearray(broken.read_bytes())
        header = data.find(b"PK\x01\x02")
        data[header + 10:header + 12] = (99).to_bytes(2, "little")
        broken.write_bytes(bytes(data))
        settings = settings_factory(enabled_layers=[3], dependency_cache_dirs=[str(repo)])

        resolution = asyncio.run(resolver_for(project.root, settings).resolve_all_configs())

        assert [config.base_packages for config in resolution.configs] == [["com.good.mapper"]]


class TestCompiledClassLayer:
    """레이어 4: 컴파일된 클래스 (바이트코드 인스펙터)"""

    def test_config_classes_are_inspected(self, project, settings_factory):
        config_class = project.write("target/classes/com/acme/AppConfig.class", "cafebabe")
        project.write("target/classes/com/acme/UserService.class", "cafebabe")
        project.write("target/classes/com/acme/AppConfig$Inner.class", "cafebabe")
        inspector = FakeInspector()

        resolution = asyncio.run(
            resolver_for(project.root, settings_factory(enabled_layers=[4]), inspector=inspector).resolve_all_configs()
        )

        assert inspector.inspected == [config_class]
        assert resolution.configs[0].base_packages == ["com.compiled.dao"]
        assert resolution.sources[0].location == "compiled-classes"

    def test_without_inspector(self, project, settings_factory):
        """인스펙터가 없으면 레이어 4는 결과 없음"""
        project.write("target/classes/com/acme/AppConfig.class", "cafebabe")

        resolution = asyncio.run(
            resolver_for(project.root, settings_factory(enabled_layers=[4])).resolve_all_configs()
        )

        assert resolution.configs == []

    def test_failing_inspection_does_not_drop_siblings(self, project, settings_factory):
        """한 클래스의 검사 예외는 그 클래스만 건너뜀"""
        project.write("target/classes/com/acme/AppConfig.class", "cafebabe")
        broken_class = project.write("target/classes/com/acme/BrokenConfig.class", "cafebabe")

        class PartlyBrokenInspector(FakeInspector):
            async def inspect(self, class_path):
                if class_path == broken_class:
                    raise ValueError("truncated class file")
                return await super().inspect(class_path)

        resolution = asyncio.run(
            resolver_for(
                project.root, settings_factory(enabled_layers=[4]), inspector=PartlyBrokenInspector()
            ).resolve_all_configs()
        )

        assert [config.base_packages for config in resolution.configs] == [["com.compiled.dao"]]


class TestRuntimeLayers:
    """레이어 5(환경변수), 6(사용자 설정)"""

    def test_environment_variables(self, project, settings):
        environ = {
            "MYBATIS_MAPPER_PACKAGES": "com.env.dao;com.env.mapper",
            "APP_MAPPER_SCAN": "${placeholder}",
            "PATH": "/usr/bin",
        }

        resolution = asyncio.run(resolver_for(project.root, settings, environ=environ).resolve_all_configs())

        assert [(c.base_packages, c.source_file) for c in resolution.configs] == [
            (["com.env.dao", "com.env.mapper"], "environment:MYBATIS_MAPPER_PACKAGES")
        ]
        assert resolution.sources[0].type == "environment"
        assert resolution.stats["runtime_configs"] == 1

    def test_user_settings(self, project, settings_factory):
        settings = settings_factory(custom_mapper_packages=["com.custom.dao", "not a package"])

        resolution = asyncio.run(resolver_for(project.root, settings).resolve_all_configs())

        assert [(c.base_packages, c.source_file) for c in resolution.configs] == [(["com.custom.dao"], "settings")]
        assert resolution.sources[0].priority == 6


class TestLayerControl:
    """레이어 진행 규칙"""

    def test_stops_when_target_reached(self, project, settings_factory):
        """설정 수가 목표에 도달하면 남은 레이어는 건너뜀"""
        project.write("src/main/java/com/acme/AppConfig.java", APP_CONFIG)
        settings = settings_factory(config_target=1, custom_mapper_packages=["com.custom.dao"])

        resolution = asyncio.run(
            resolver_for(project.root, settings, environ={"MYBATIS_PKG": "com.env.dao"}).resolve_all_configs()
        )

        assert [source.priority for source in resolution.sources] == [1]

    def test_failing_layer_does_not_stop_others(self, project, settings_factory):
        """레이어 예외는 해당 레이어만 비움"""
        settings = settings_factory(enabled_layers=[1, 2, 6], custom_mapper_packages=["com.custom.dao"])
        resolver = resolver_for(project.root, settings, finder=BrokenFinder())

        resolution = asyncio.run(resolver.resolve_all_configs())

        assert [config.source_file for config in resolution.configs] == ["settings"]
        assert resolution.stats["total_layers"] == 3

    def test_disabled_layers_are_skipped(self, project, settings_factory):
        project.write("src/main/java/com/acme/AppConfig.java", APP_CONFIG)

        resolution = asyncio.run(
            resolver_for(project.root, settings_factory(enabled_layers=[5])).resolve_all_configs()
        )

        assert resolution.configs == []
        assert resolution.stats["total_layers"] == 1


class TestDedupeConfigs:
    def test_order_insensitive(self):
        configs = [
            MapperScanConfig(base_packages=["a.b", "c.d"], source_file="one"),
            MapperScanConfig(base_packages=["c.d", "a.b"], source_file="two"),
            MapperScanConfig(base_packages=["e.f"], source_file="three"),
        ]

        assert [config.source_file for config in dedupe_configs(configs)] == ["one", "three"]


def test_relative_module_paths_are_normalized(project, settings):
    project.write("settings.gradle", "include ':libs:core'\n")
    os.makedirs(project.path("libs/core"))

    assert resolver_for(project.root, settings).detect_modules() == [project.path("libs/core")]
