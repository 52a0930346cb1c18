"""
Bytecode inspection through ``javap -v``.

Best-effort only: a missing javap, a timeout or a non-zero exit yields ``None``.
"""
from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
from typing import Optional, Protocol

from mxr.models.mapping import MapperScanConfig
from mxr.parsers.java.mapper_scan import parse_mapper_scan_bytecode
from mxr.utils.logger import get_logger


class BytecodeInspector(Protocol):
    async def inspect(self, class_path: str) -> Optional[str]:
        """Return disassembled text for a class file, or None."""


class JavapInspector:
    def __init__(self, javap_path: str = "javap", timeout: float = 2.0, logger: Optional[logging.Logger] = None):
        self.javap_path = javap_path
        self.timeout = timeout
        self.logger = logger or get_logger(__name__)
        self._available: Optional[bool] = None

    def is_available(self) -> bool:
        if self._available is None:
            self._available = shutil.which(self.javap_path) is not None
            if not self._available:
                self.logger.debug(f"{self.javap_path} not found, bytecode inspection disabled")
        return self._available

    def inspect_sync(self, class_path: str) -> Optional[str]:
        if not self.is_available():
            return None
        try:
            result = subprocess.run(
                [self.javap_path, "-v", class_path],
                capture_output=True, text=True, check=True, encoding="utf-8", errors="ignore",
                timeout=self.timeout,
            )
        except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired, OSError) as exc:
            self.logger.debug(f"javap failed for {class_path}: {exc}")
            return None
        return result.stdout

    async def inspect(self, class_path: str) -> Optional[str]:
        return await asyncio.to_thread(self.inspect_sync, class_path)


async def inspect_mapper_scan(inspector: Optional[BytecodeInspector], class_path: str) -> Optional[MapperScanConfig]:
    """클래스 파일의 @MapperScan 설정을 추출 (인스펙터가 없으면 None)"""
    if inspector is None:
        return None
    output = await inspector.inspect(class_path)
    if not output:
        return None
    return parse_mapper_scan_bytecode(output, class_path)


__all__ = ["BytecodeInspector", "JavapInspector", "inspect_mapper_scan"]
