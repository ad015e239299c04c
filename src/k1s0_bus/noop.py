"""テスト用 NoOp エミッター / トランスポート"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .transport import MessageCallback, Transport


class NoOpEmitter:
    """テスト用の NoOp エミッター。発行したメッセージを記録する。"""

    def __init__(self) -> None:
        self.published: list[tuple[str, Any]] = []

    async def publish(self, topic: str, payload: Any) -> None:  # noqa: ANN401
        self.published.append((topic, payload))


class NoOpTransport(Transport):
    """テスト用の NoOp トランスポート。登録と接続を記録し、deliver で手動配送する。"""

    def __init__(self) -> None:
        self.handler: MessageCallback | None = None
        self.concurrency: int | None = None
        self.connected_to: list[str] = []
        self.closed = False

    def add_concurrent_handlers(self, handler: MessageCallback, concurrency: int) -> None:
        self.handler = handler
        self.concurrency = concurrency

    def connect_to_lookupds(self, addresses: Sequence[str]) -> None:
        self.connected_to = list(addresses)

    async def deliver(self, raw: Any) -> None:  # noqa: ANN401
        """登録済みハンドラーに raw メッセージを 1 件配送する。"""
        if self.handler is None:
            raise RuntimeError("no handler registered")
        await self.handler(raw)

    def close(self) -> None:
        self.closed = True
