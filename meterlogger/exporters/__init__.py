"""
データエクスポーターパッケージ
"""
from .base import MultiExporter, ReadingExporterBase
from .http_sender import HttpSender
from .json_file import JsonFileExporter, JsonLinesExporter
from .tsv import TsvExporter, TsvFileExporter, format_record

__all__ = [
    "ReadingExporterBase",
    "MultiExporter",
    "TsvExporter",
    "TsvFileExporter",
    "JsonFileExporter",
    "JsonLinesExporter",
    "HttpSender",
    "format_record",
]
