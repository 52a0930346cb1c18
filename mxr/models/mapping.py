"""
Data models shared between the parsers, the resolvers, the scanner and the mapping index.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

SQL_STATEMENT_TYPES = ("select", "insert", "update", "delete")


class Position(BaseModel):
    """0-based line/column inside a source file."""

    line: int = 0
    column: int = 0


class MapperScanConfig(BaseModel):
    """Package roots declared by a scan annotation, a setting or an environment variable."""

    base_packages: List[str]
    source_file: str


class ConfigSource(BaseModel):
    """Diagnostic record for one discovery layer that produced configs."""

    type: str
    location: str
    priority: int
    count: int = 0


class ConfigResolution(BaseModel):
    configs: List[MapperScanConfig] = Field(default_factory=list)
    sources: List[ConfigSource] = Field(default_factory=list)
    stats: Dict[str, int] = Field(default_factory=dict)


class JavaMethod(BaseModel):
    name: str
    position: Position


class JavaMapperInfo(BaseModel):
    """One parsed Java mapper interface."""

    file_path: str
    class_name: str
    package_name: str = ""
    methods: List[JavaMethod] = Field(default_factory=list)

    @property
    def simple_name(self) -> str:
        return self.class_name.rsplit(".", 1)[-1]


class SqlStatement(BaseModel):
    type: str
    line: int
    column: int

    @property
    def position(self) -> Position:
        return Position(line=self.line, column=self.column)


class XmlMapperInfo(BaseModel):
    """One parsed MyBatis XML mapper: namespace plus SQL-id -> statement."""

    file_path: str
    namespace: str
    statements: Dict[str, SqlStatement] = Field(default_factory=dict)

    @property
    def simple_name(self) -> str:
        return self.namespace.rsplit(".", 1)[-1]


class MapperPair(BaseModel):
    java: JavaMapperInfo
    xml: Optional[XmlMapperInfo] = None


class MethodMapping(BaseModel):
    method_name: str
    sql_id: str
    java_position: Optional[Position] = None
    xml_position: Optional[Position] = None


class MapperMapping(BaseModel):
    """Durable mapping-index entry, keyed by namespace."""

    namespace: str
    java_path: str
    xml_path: Optional[str] = None
    class_name: str
    simple_class_name: str
    package_name: str = ""
    methods: Dict[str, MethodMapping] = Field(default_factory=dict)
    last_updated: datetime = Field(default_factory=datetime.now)

    def content_key(self) -> Dict[str, Any]:
        """타임스탬프를 제외한 비교용 dict"""
        return self.model_dump(exclude={"last_updated"})


class ScanProgressEvent(BaseModel):
    total: int
    processed: int
    phase: str = ""
    current_file: Optional[str] = None


class ScanResult(BaseModel):
    """Summary of one completed full scan."""

    mode: str = "heuristic"
    java_files: int = 0
    xml_files: int = 0
    java_mappers: int = 0
    xml_mappers: int = 0
    mappings: int = 0
    with_xml: int = 0
    configs: List[MapperScanConfig] = Field(default_factory=list)
    xml_locations: List[str] = Field(default_factory=list)
    duration_seconds: float = 0.0


class FileEvent(BaseModel):
    """Pre-debounced file-watch notification."""

    path: str
    type: str  # create | change | delete


class CacheEntry(BaseModel):
    path: str
    mtime: int
    size: int
    mapper_scan: Optional[MapperScanConfig] = None


class NavigationTarget(BaseModel):
    file_path: str
    position: Optional[Position] = None


class MethodSummary(BaseModel):
    name: str
    position: Position
    has_sql: bool = False
    xml_position: Optional[Position] = None


__all__ = [
    "SQL_STATEMENT_TYPES",
    "Position",
    "MapperScanConfig",
    "ConfigSource",
    "ConfigResolution",
    "JavaMethod",
    "JavaMapperInfo",
    "SqlStatement",
    "XmlMapperInfo",
    "MapperPair",
    "MethodMapping",
    "MapperMapping",
    "ScanProgressEvent",
    "ScanResult",
    "FileEvent",
    "CacheEntry",
    "NavigationTarget",
    "MethodSummary",
]
