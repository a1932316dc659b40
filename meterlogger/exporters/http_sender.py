"""
HTTP送信エクスポーター
"""
import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, List, Union

import aiohttp

from .base import ExportData, ReadingExporterBase

logger = logging.getLogger(__name__)


class HttpSender(ReadingExporterBase):
    """
    測定データをHTTPでサーバーに送信するエクスポーター

    リトライ（待機と各試行のタイムアウトを含む）は合計retry_budget秒以内に打ち切る。
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_budget: float = 15.0,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """
        HTTP送信エクスポーターを初期化

        Args:
            url: 送信先のURL
            timeout: 1回の送信のタイムアウト時間（秒）
            max_retries: 最大リトライ回数
            retry_budget: 1件の送信に費やす時間の上限（秒）
            monotonic: 経過時間の計測に使う時計
        """
        if retry_budget <= 0:
            raise ValueError("retry_budget must be positive")
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_budget = retry_budget
        self.monotonic = monotonic
        self.headers = {
            "Content-Type": "application/json",
            "User-Agent": "meterlogger/0.1"
        }

    async def _post_once(self, payload: Union[Dict[str, Any], List[Dict[str, Any]]], timeout: float) -> bool:
        attempt_timeout = aiohttp.ClientTimeout(total=timeout)
        async with aiohttp.ClientSession(timeout=attempt_timeout) as session:
            async with session.post(
                self.url,
                data=json.dumps(payload),
                headers=self.headers
            ) as response:
                if 200 <= response.status < 300:
                    logger.debug(f"データ送信成功: {self.url}")
                    return True

                error_text = await response.text()
                logger.warning(f"HTTP送信失敗: ステータス={response.status}, レスポンス={error_text}")
                return False

    async def _send_data(self, payload: Union[Dict[str, Any], List[Dict[str, Any]]]) -> bool:
        """
        データをHTTPで送信

        Args:
            payload: 送信するペイロード

        Returns:
            送信が成功した場合True、失敗した場合False
        """
        deadline = self.monotonic() + self.retry_budget

        for attempt in range(self.max_retries + 1):
            remaining = deadline - self.monotonic()
            if remaining <= 0:
                logger.error(f"リトライ時間の上限{self.retry_budget:.0f}秒に達しました: {self.url}")
                return False
            try:
                if await self._post_once(payload, min(self.timeout, remaining)):
                    return True
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.error(f"HTTP送信エラー (試行{attempt + 1}/{self.max_retries + 1}): {e}")

            if attempt == self.max_retries:
                break

            # リトライ前に待機（指数バックオフ）
            delay = (2 ** attempt) * 1.0
            if self.monotonic() + delay >= deadline:
                logger.error(f"リトライ時間の上限{self.retry_budget:.0f}秒に達しました: {self.url}")
                return False
            await asyncio.sleep(delay)

        logger.error(f"最大リトライ回数を超えました: {self.url}")
        return False

    async def export(self, data: ExportData) -> bool:
        """
        測定データをHTTPで送信

        単一データはオブジェクト、リストは配列として送信する。

        Returns:
            送信が成功した場合True、失敗した場合False
        """
        if isinstance(data, list):
            payload = [record.to_dict() for record in data]
        else:
            payload = data.to_dict()

        return await self._send_data(payload)
