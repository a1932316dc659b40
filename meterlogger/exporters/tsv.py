"""
タブ区切り（TSV）出力エクスポーター

1行1測定: ``YYYY-MM-DD HH:MM:SS +HHMM<TAB>温度<TAB>湿度``、ヘッダー行なし。
"""
import logging
import os
import sys
from typing import Optional, TextIO

from .base import ExportData, ReadingExporterBase, as_record_list
from ..models.sensor_data import TimestampedReading

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %z"


def format_record(record: TimestampedReading) -> str:
    """
    測定データをTSVの1行に変換

    Args:
        record: 測定データ

    Returns:
        改行を含まないTSV行
    """
    return "\t".join((
        record.timestamp.strftime(TIMESTAMP_FORMAT),
        f"{record.reading.temperature:.1f}",
        str(record.reading.humidity),
    ))


class TsvExporter(ReadingExporterBase):
    """ストリーム（既定は標準出力）にTSV行を出力するエクスポーター"""

    def __init__(self, stream: Optional[TextIO] = None):
        """
        TSVエクスポーターを初期化

        Args:
            stream: 出力先ストリーム（Noneの場合は標準出力）
        """
        self.stream = stream

    async def export(self, data: ExportData) -> bool:
        """
        測定データをTSV行として出力

        Returns:
            出力が成功した場合True、失敗した場合False
        """
        stream = self.stream or sys.stdout
        try:
            for record in as_record_list(data):
                stream.write(format_record(record) + "\n")
            stream.flush()
            return True
        except (OSError, ValueError) as e:
            # ValueError: 閉じられたストリームへの書き込み
            logger.error(f"TSV出力エラー: {e}")
            return False


class TsvFileExporter(ReadingExporterBase):
    """TSV行をファイルに追記するエクスポーター"""

    def __init__(self, file_path: str):
        """
        TSVファイルエクスポーターを初期化

        Args:
            file_path: 出力ファイルのパス
        """
        self.file_path = file_path

    async def export(self, data: ExportData) -> bool:
        """
        測定データをファイルに追記

        Returns:
            出力が成功した場合True、失敗した場合False
        """
        try:
            directory = os.path.dirname(self.file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            with open(self.file_path, "a", encoding="utf-8") as file:
                for record in as_record_list(data):
                    file.write(format_record(record) + "\n")

            logger.debug(f"TSVファイルに出力: {self.file_path}")
            return True

        except OSError as e:
            logger.error(f"TSVファイル出力エラー: {e}")
            return False
