"""
JSONファイル出力エクスポーター
"""
import json
import logging
import os
from typing import Any, Dict, List

from .base import ExportData, ReadingExporterBase, as_record_list
from ..exceptions import SinkError

logger = logging.getLogger(__name__)


def _ensure_parent_directory(file_path: str):
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)


class JsonFileExporter(ReadingExporterBase):
    """測定データをJSON配列ファイルに出力するエクスポーター"""

    def __init__(self, file_path: str, append_mode: bool = False):
        """
        JSONファイルエクスポーターを初期化

        Args:
            file_path: 出力ファイルのパス
            append_mode: 追記モード（Trueの場合は既存ファイルに追記）
        """
        self.file_path = file_path
        self.append_mode = append_mode

    def _load_existing_data(self) -> List[Dict[str, Any]]:
        """
        既存のJSONファイルからデータを読み込み

        Returns:
            既存データのリスト（ファイルが存在しない、または空の場合は空リスト）

        Raises:
            SinkError: 既存ファイルが読めない、またはJSON配列でない場合
        """
        if not os.path.exists(self.file_path):
            return []

        try:
            with open(self.file_path, "r", encoding="utf-8") as file:
                content = file.read().strip()
        except OSError as e:
            raise SinkError(f"Cannot read {self.file_path}: {e}") from e

        if not content:
            return []

        try:
            existing = json.loads(content)
        except json.JSONDecodeError as e:
            # 壊れた既存ファイルは上書きしない
            raise SinkError(f"Refusing to overwrite {self.file_path}: not valid JSON ({e})") from e

        if not isinstance(existing, list):
            raise SinkError(f"Refusing to overwrite {self.file_path}: not a JSON array")
        return existing

    async def export(self, data: ExportData) -> bool:
        """
        測定データをJSONファイルに出力

        Returns:
            エクスポートが成功した場合True

        Raises:
            SinkError: 既存ファイルが壊れている、またはファイルの書き込みに失敗した場合
        """
        new_data_list = [record.to_dict() for record in as_record_list(data)]

        # 追記モードの場合は既存データを読み込み
        if self.append_mode:
            all_data = self._load_existing_data() + new_data_list
        else:
            all_data = new_data_list

        try:
            _ensure_parent_directory(self.file_path)
            with open(self.file_path, "w", encoding="utf-8") as file:
                json.dump(all_data, file, indent=2, ensure_ascii=False)

        except OSError as e:
            logger.error(f"JSONファイル出力エラー: {e}")
            raise SinkError(f"Cannot write {self.file_path}: {e}") from e

        logger.info(f"JSONファイルに{len(new_data_list)}件のデータを出力: {self.file_path}")
        return True


class JsonLinesExporter(ReadingExporterBase):
    """
    測定データを1行1レコードのJSON Lines形式で追記するエクスポーター

    既存の内容は読み込まずに末尾へ追記するだけなので、連続出力に向いている。
    """

    def __init__(self, file_path: str):
        """
        Args:
            file_path: 出力ファイルのパス
        """
        self.file_path = file_path

    async def export(self, data: ExportData) -> bool:
        """
        測定データをファイル末尾に追記

        Raises:
            SinkError: ファイルの書き込みに失敗した場合
        """
        lines = [
            json.dumps(record.to_dict(), ensure_ascii=False) + "\n"
            for record in as_record_list(data)
        ]

        try:
            _ensure_parent_directory(self.file_path)
            with open(self.file_path, "a", encoding="utf-8") as file:
                file.writelines(lines)
                file.flush()

        except OSError as e:
            logger.error(f"JSON Lines出力エラー: {e}")
            raise SinkError(f"Cannot write {self.file_path}: {e}") from e

        logger.debug(f"JSON Linesに{len(lines)}件のデータを追記: {self.file_path}")
        return True
