"""bus ライブラリの例外型定義"""

from __future__ import annotations


class BusError(Exception):
    """bus ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class BusErrorCodes:
    """BusError のエラーコード定数。"""

    # 設定エラー
    TOPIC_REQUIRED: str = "TOPIC_REQUIRED"
    CHANNEL_REQUIRED: str = "CHANNEL_REQUIRED"
    HANDLER_REQUIRED: str = "HANDLER_REQUIRED"
    INVALID_CONFIG: str = "INVALID_CONFIG"

    # トピックプロビジョニング
    LOOKUP_FAILED: str = "LOOKUP_FAILED"
    NO_NODES: str = "NO_NODES"
    TOPIC_CREATE_FAILED: str = "TOPIC_CREATE_FAILED"

    # メッセージ処理
    DECODE_FAILED: str = "DECODE_FAILED"
    SERIALIZATION_ERROR: str = "SERIALIZATION_ERROR"
    PUBLISH_FAILED: str = "PUBLISH_FAILED"
    CONNECTION_FAILED: str = "CONNECTION_FAILED"
