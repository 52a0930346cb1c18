"""
Symbol Provider contract and the regex fallback used when no provider is available.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import List, Optional, Protocol

from pydantic import BaseModel

from mxr.models.mapping import Position
from mxr.parsers.base import read_text
from mxr.utils.logger import get_logger

METHOD_KIND = "Method"
METHOD_DECLARATION_PATTERN = re.compile(
    r"^\s*(?:@\w+(?:\([^)]*\))?\s+)*"
    r"(?:public|private|protected|default)?\s*(?:static|final|abstract)?\s*"
    r"(?:<[^>]+>\s*)?[\w<>,.\[\]?\s]+\s+(\w+)\s*\((?:[^()]|\([^()]*\))*\)\s*(?:throws\s+[\w.,\s]+)?\s*[;{]"
)
CONTROL_KEYWORDS = frozenset({"if", "for", "while", "switch", "catch", "return", "new", "else", "throw"})


class SymbolRange(BaseModel):
    start: Position
    end: Position


class JavaSymbol(BaseModel):
    name: str
    kind: str
    range: SymbolRange
    selection_range: SymbolRange


class SymbolProvider(Protocol):
    async def document_symbols(self, file_path: str) -> List[JavaSymbol]:
        """Return the symbols of one source file."""


def extract_method_symbols(content: str) -> List[JavaSymbol]:
    """한 줄 메서드 선언을 정규식으로 찾아 Method 심볼로 변환"""
    symbols: List[JavaSymbol] = []
    for line_no, line in enumerate(content.splitlines()):
        match = METHOD_DECLARATION_PATTERN.match(line)
        if not match:
            continue
        name = match.group(1)
        first_word = line.strip().split(" ", 1)[0]
        if name in CONTROL_KEYWORDS or first_word in CONTROL_KEYWORDS:
            continue
        start = match.start(1)
        symbols.append(JavaSymbol(
            name=name,
            kind=METHOD_KIND,
            range=SymbolRange(start=Position(line=line_no, column=0), end=Position(line=line_no, column=len(line))),
            selection_range=SymbolRange(
                start=Position(line=line_no, column=start),
                end=Position(line=line_no, column=start + len(name)),
            ),
        ))
    return symbols


class RegexSymbolProvider:
    async def document_symbols(self, file_path: str) -> List[JavaSymbol]:
        content = await asyncio.to_thread(read_text, file_path)
        return extract_method_symbols(content)


async def resolve_method_symbols(
    file_path: str,
    provider: Optional[SymbolProvider] = None,
    logger: Optional[logging.Logger] = None,
) -> List[JavaSymbol]:
    """
    메서드 심볼을 가져옵니다.

    The provider is asked first; when it is missing, fails or reports no methods,
    the regex fallback is used.
    """
    logger = logger or get_logger(__name__)
    if provider is not None:
        try:
            symbols = await provider.document_symbols(file_path)
            methods = [symbol for symbol in symbols or [] if symbol.kind == METHOD_KIND]
            if methods:
                return methods
        except Exception as exc:  # pylint: disable=broad-except
            logger.debug(f"Symbol provider failed for {file_path}: {exc}")
    try:
        return await RegexSymbolProvider().document_symbols(file_path)
    except OSError as exc:
        logger.debug(f"Cannot read {file_path}: {exc}")
        return []


__all__ = [
    "JavaSymbol",
    "SymbolRange",
    "SymbolProvider",
    "RegexSymbolProvider",
    "extract_method_symbols",
    "resolve_method_symbols",
    "METHOD_KIND",
]
