"""메서드 심볼 추출 테스트"""

import asyncio

from mxr.models.mapping import Position
from mxr.services.symbol_provider import (
    METHOD_KIND,
    JavaSymbol,
    SymbolRange,
    extract_method_symbols,
    resolve_method_symbols,
)

SOURCE = """package com.acme.dao;

public interface UserMapper {
    @Select("SELECT * FROM users")
    List<User> findAll();

    public User findById(@Param("id") Long id);

    default int countAll() {
        if (true) {
            return 0;
        }
    }
}
"""


class TestExtractMethodSymbols:
    """정규식 기반 추출"""

    def test_declarations(self):
        symbols = extract_method_symbols(SOURCE)

        assert [symbol.name for symbol in symbols] == ["findAll", "findById", "countAll"]
        assert all(symbol.kind == METHOD_KIND for symbol in symbols)

    def test_selection_range_points_at_name(self):
        symbols = {symbol.name: symbol for symbol in extract_method_symbols(SOURCE)}

        find_all = symbols["findAll"].selection_range
        assert find_all.start == Position(line=4, column=15)
        assert find_all.end == Position(line=4, column=22)
        assert symbols["findById"].selection_range.start == Position(line=6, column=16)

    def test_control_statements_are_ignored(self):
        """if/return 등은 메서드가 아님"""
        names = [symbol.name for symbol in extract_method_symbols("if (x) {\n  return foo(1);\n}\n")]

        assert names == []


class MixedProvider:
    """메서드가 아닌 심볼만 돌려주는 provider"""

    async def document_symbols(self, file_path):
        position = Position(line=0, column=0)
        return [JavaSymbol(name="UserMapper", kind="Interface",
                           range=SymbolRange(start=position, end=position),
                           selection_range=SymbolRange(start=position, end=position))]


class TestResolveMethodSymbols:
    def test_falls_back_when_provider_has_no_methods(self, project):
        path = project.write("src/UserMapper.java", SOURCE)

        symbols = asyncio.run(resolve_method_symbols(path, MixedProvider()))

        assert [symbol.name for symbol in symbols] == ["findAll", "findById", "countAll"]

    def test_without_provider(self, project):
        path = project.write("src/UserMapper.java", SOURCE)

        assert len(asyncio.run(resolve_method_symbols(path))) == 3

    def test_missing_file(self, project):
        """읽을 수 없는 파일은 빈 결과"""
        assert asyncio.run(resolve_method_symbols(project.path("src/Missing.java"))) == []
