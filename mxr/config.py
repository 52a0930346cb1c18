"""
Scan settings: tunable limits and the user-supplied mapper package list.

Values are layered: defaults <- ``mxr.yml`` in the project root <- ``MXR_*`` environment variables.
"""
from __future__ import annotations

import os
import re
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

SETTINGS_FILE_NAMES = ("mxr.yml", "mxr.yaml", ".mxr.yml")
ENV_PREFIX = "MXR_"

DEFAULT_EXCLUDE_DIRS = ["node_modules", ".git", "target", "build", "out", "dist"]


def _default_dependency_cache_dirs() -> List[str]:
    home = os.path.expanduser("~")
    return [
        os.path.join(home, ".m2", "repository"),
        os.path.join(home, ".gradle", "caches", "modules-2", "files-2.1"),
    ]


class ScanSettings(BaseModel):
    """Limits and switches used by the resolvers and the scanner."""

    batch_size: int = Field(default=50, ge=1)
    parallel_limit: int = Field(default=10, ge=1)
    max_xml_files: int = Field(default=5000, ge=1)
    max_java_files: int = Field(default=10000, ge=1)
    min_xml_threshold: int = Field(default=10, ge=0)
    broad_xml_limit: int = Field(default=200, ge=1)
    sniff_bytes: int = Field(default=500, ge=1)

    config_target: int = Field(default=5, ge=1)
    layer1_pattern_limit: int = Field(default=100, ge=1)
    module_pattern_limit: int = Field(default=20, ge=1)
    source_jar_limit: int = Field(default=50, ge=0)
    jar_config_scan_limit: int = Field(default=5, ge=1)
    class_file_scan_limit: int = Field(default=100, ge=0)
    inspector_timeout: float = Field(default=2.0, gt=0)
    javap_path: str = "javap"
    enabled_layers: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6])

    custom_mapper_packages: List[str] = Field(default_factory=list)
    dependency_cache_dirs: List[str] = Field(default_factory=_default_dependency_cache_dirs)
    exclude_dirs: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    cache_dir: str = ".mxr"
    use_cache: bool = True

    def layer_enabled(self, layer: int) -> bool:
        return layer in self.enabled_layers

    @classmethod
    def load(cls, project_root: Optional[str] = None,
             environ: Optional[Mapping[str, str]] = None) -> "ScanSettings":
        """
        프로젝트 설정 파일과 환경변수를 합쳐 ScanSettings를 생성합니다.

        Args:
            project_root: mxr.yml을 찾을 프로젝트 루트 (None이면 파일 설정 생략)
            environ: 환경변수 매핑 (None이면 .env 로드 후 os.environ 사용)

        Returns:
            ScanSettings 인스턴스
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        values: Dict[str, Any] = {}
        if project_root:
            values.update(_read_settings_file(project_root))
        values.update(_read_env_overrides(environ))
        return cls(**values)


def _read_settings_file(project_root: str) -> Dict[str, Any]:
    for file_name in SETTINGS_FILE_NAMES:
        path = os.path.join(project_root, file_name)
        if not os.path.isfile(path):
            continue
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: top-level mapping expected")
        # 'mxr:' 섹션 아래에 둔 경우도 허용
        section = data.get("mxr", data)
        return {key.replace("-", "_"): value for key, value in section.items()
                if key.replace("-", "_") in ScanSettings.model_fields}
    return {}


def _read_env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for field_name, field in ScanSettings.model_fields.items():
        raw = environ.get(ENV_PREFIX + field_name.upper())
        if raw is None or raw.strip() == "":
            continue
        if _is_list_field(field.annotation):
            overrides[field_name] = split_list_value(raw)
        elif field.annotation is bool:
            overrides[field_name] = raw.strip().lower() in ("1", "true", "yes", "on")
        else:
            overrides[field_name] = raw.strip()
    return overrides


def _is_list_field(annotation: Any) -> bool:
    return getattr(annotation, "__origin__", None) is list


def split_list_value(raw: str) -> List[str]:
    """콤마/세미콜론으로 구분된 값을 리스트로 분리"""
    return [item.strip() for item in re.split(r"[,;]", raw) if item.strip()]


__all__ = ["ScanSettings", "DEFAULT_EXCLUDE_DIRS", "split_list_value"]
