"""매퍼 위치 설정 파서 및 glob 정규화 테스트"""

import os

from mxr.parsers.xml.locations import (
    normalize_location,
    normalize_locations,
    parse_mybatis_config_content,
    parse_properties_mapper_locations,
    parse_yaml_mapper_locations,
)


class TestParseMybatisConfig:
    """mybatis-config.xml <mappers>"""

    def test_all_entry_kinds(self, tmp_path):
        """resource / class / url / package 항목"""
        root = str(tmp_path)
        item_path = os.path.join(root, "conf", "ItemMapper.xml")
        content = f"""<?xml version="1.0" encoding="UTF-8"?>
<configuration>
  <mappers>
    <mapper resource="mapper/UserMapper.xml"/>
    <mapper class="com.acme.dao.OrderMapper"/>
    <mapper url="file://{item_path}"/>
    <package name="com.acme.mapper"/>
  </mappers>
</configuration>
"""
        locations = parse_mybatis_config_content(content, root)

        assert locations == [
            "mapper/UserMapper.xml",
            "com/acme/dao/OrderMapper.xml",
            "conf/ItemMapper.xml",
            "com/acme/mapper",
        ]

    def test_url_outside_project_keeps_file_name(self, tmp_path):
        content = '<configuration><mappers><mapper url="file:///elsewhere/LegacyMapper.xml"/></mappers></configuration>'

        assert parse_mybatis_config_content(content, str(tmp_path / "project")) == ["LegacyMapper.xml"]

    def test_without_mappers(self):
        assert parse_mybatis_config_content("<configuration><settings/></configuration>") == []

    def test_invalid_xml(self):
        """잘못된 XML은 빈 결과"""
        assert parse_mybatis_config_content("<configuration><mappers>") == []


class TestParseYamlMapperLocations:
    """application.yml mapper-locations"""

    def test_nested_key(self):
        content = "mybatis:\n  mapper-locations: classpath:mapper/**/*.xml\n"

        assert parse_yaml_mapper_locations(content) == ["classpath:mapper/**/*.xml"]

    def test_list_multi_document_and_dotted_keys(self):
        """여러 문서, 리스트 값, 점 표기 키, 콤마 구분"""
        content = (
            "mybatis-plus:\n"
            "  mapperLocations:\n"
            "    - classpath*:mappers/*.xml\n"
            "---\n"
            "mybatis.mapper-locations: classpath:a/*.xml,classpath:b/*.xml\n"
        )

        assert parse_yaml_mapper_locations(content) == [
            "classpath*:mappers/*.xml",
            "classpath:a/*.xml",
            "classpath:b/*.xml",
        ]

    def test_unrelated_configuration(self):
        content = "server:\n  port: 8080\nspring:\n  datasource:\n    url: jdbc:h2:mem:test\n"

        assert parse_yaml_mapper_locations(content) == []


class TestParsePropertiesMapperLocations:
    """application.properties mapper-locations"""

    def test_keys_and_indexed_keys(self):
        content = (
            "# mybatis\n"
            "mybatis.mapper-locations=classpath:mapper/*.xml\n"
            "mybatis-plus.mapper-locations[0]=classpath:x/*.xml\n"
            "server.port=8080\n"
        )

        assert parse_properties_mapper_locations(content) == ["classpath:mapper/*.xml", "classpath:x/*.xml"]

    def test_colon_separator(self):
        assert parse_properties_mapper_locations("mybatis.mapperLocations: mapper/") == ["mapper/"]


class TestNormalizeLocation:
    """위치 문자열 -> glob"""

    def test_classpath_glob(self):
        assert normalize_location("classpath:mapper/**/*.xml") == "mapper/**/*.xml"

    def test_classpath_star_and_leading_slash(self):
        """classpath*: 와 선행 '/' 제거, 구체 파일은 어느 깊이에서나"""
        assert normalize_location("classpath*:/mappers/UserMapper.xml") == "**/mappers/UserMapper.xml"

    def test_directory(self):
        assert normalize_location("com/acme/mapper") == "com/acme/mapper/**/*.xml"
        assert normalize_location("mapper/") == "mapper/**/*.xml"

    def test_trailing_star(self):
        assert normalize_location("mapper/*") == "mapper/*"

    def test_empty_after_prefix(self):
        assert normalize_location("classpath:") == "**/*.xml"

    def test_normalize_locations_dedupes(self):
        """정규화 결과가 같은 위치는 하나로"""
        assert normalize_locations(["mapper/", "classpath:mapper", " ", "a/*.xml"]) == [
            "mapper/**/*.xml",
            "a/*.xml",
        ]
