"""Convenience exports for the parser package."""

from mxr.parsers.java.mapper import parse_java_mapper, parse_java_mapper_content
from mxr.parsers.java.mapper_scan import parse_mapper_scan_bytecode, parse_mapper_scan_content
from mxr.parsers.xml.mapper import parse_xml_mapper, parse_xml_mapper_content

__all__ = [
    "parse_java_mapper",
    "parse_java_mapper_content",
    "parse_mapper_scan_bytecode",
    "parse_mapper_scan_content",
    "parse_xml_mapper",
    "parse_xml_mapper_content",
]
