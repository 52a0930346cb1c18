import json
import os
from typing import Any, Optional

import click
from pydantic import BaseModel

from mxr.config import ScanSettings
from mxr.services.scanner import MapperScanner
from mxr.utils.logger import get_logger

PROJECT_ROOT_ENV = "MXR_PROJECT_ROOT"


def resolve_project_root(project_root: Optional[str]) -> str:
    """옵션 > MXR_PROJECT_ROOT > 현재 디렉토리 순으로 프로젝트 루트를 결정합니다."""
    root = project_root or os.getenv(PROJECT_ROOT_ENV, ".")
    root = os.path.abspath(root)
    if not os.path.isdir(root):
        raise click.ClickException(f"Project root does not exist: {root}")
    return root


def load_settings(project_root: str) -> ScanSettings:
    try:
        return ScanSettings.load(project_root)
    except ValueError as exc:
        # pydantic ValidationError도 ValueError 하위 클래스
        raise click.ClickException(f"Invalid settings: {exc}") from exc


def open_scanner(project_root: str, use_cache: bool = True, command: Optional[str] = None) -> MapperScanner:
    """
    설정을 읽어 초기화된 MapperScanner를 만듭니다.

    Args:
        project_root: 프로젝트 루트 (절대 경로)
        use_cache: False면 영속 캐시를 사용하지 않음
        command: 로그 파일명에 쓸 명령 이름

    Returns:
        initialize()까지 끝난 MapperScanner
    """
    settings = load_settings(project_root)
    if not use_cache:
        settings = settings.model_copy(update={"use_cache": False})

    logger = get_logger("mxr", command=command)
    return MapperScanner(project_root, settings, logger=logger).initialize()


def echo_json(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    elif isinstance(payload, list):
        payload = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in payload]
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))


__all__ = ["resolve_project_root", "load_settings", "open_scanner", "echo_json", "PROJECT_ROOT_ENV"]
