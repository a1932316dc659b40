"""
データエクスポーター基底クラス
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Sequence, Union

from ..exceptions import SinkError
from ..models.sensor_data import TimestampedReading

logger = logging.getLogger(__name__)

ExportData = Union[TimestampedReading, List[TimestampedReading]]


def as_record_list(data: ExportData) -> List[TimestampedReading]:
    """単一データまたはリストをリストに正規化"""
    if isinstance(data, list):
        return data
    return [data]


class ReadingExporterBase(ABC):
    """データエクスポーターの抽象基底クラス"""

    @abstractmethod
    async def export(self, data: ExportData) -> bool:
        """
        測定データをエクスポートする

        Args:
            data: エクスポートする測定データ（単一またはリスト）

        Returns:
            エクスポートが成功した場合True、失敗した場合False

        Raises:
            SinkError: 出力先が失敗を例外で報告する場合
        """
        pass


class MultiExporter(ReadingExporterBase):
    """複数のエクスポーターへ同じデータを出力するエクスポーター"""

    def __init__(self, exporters: Sequence[ReadingExporterBase]):
        """
        マルチエクスポーターを初期化

        Args:
            exporters: 出力先エクスポーターのリスト
        """
        self.exporters = list(exporters)

    async def export(self, data: ExportData) -> bool:
        """
        全てのエクスポーターにデータを出力

        1つが失敗しても残りのエクスポーターには出力する。

        Returns:
            全て成功した場合True
        """
        success = True
        first_error = None
        for exporter in self.exporters:
            try:
                if not await exporter.export(data):
                    success = False
            except SinkError as e:
                logger.error(f"{type(exporter).__name__} 出力エラー: {e}")
                first_error = first_error or e

        if first_error is not None:
            raise first_error
        return success
