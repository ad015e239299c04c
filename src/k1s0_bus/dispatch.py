"""ユーザーハンドラーをトランスポートのコールバックに変換する"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from .emitter import Emitter, Publisher
from .models import EmitterConfig, Handler, Message

logger = logging.getLogger(__name__)

EmitterFactory = Callable[[], Publisher]


def default_emitter_factory() -> Publisher:
    """デフォルト設定のエミッターを生成する。"""
    return Emitter(EmitterConfig())


class MessageDispatcher:
    """1 メッセージごとに デコード → ハンドラー → リプライ発行 を行う。

    例外はすべてトランスポートへそのまま伝播させ、再配送はトランスポートに任せる。
    リプライ発行の失敗も受信メッセージの失敗として扱う。
    """

    def __init__(self, handler: Handler, emitter_factory: EmitterFactory | None = None) -> None:
        self._handler = handler
        self._emitter_factory = emitter_factory or default_emitter_factory

    async def __call__(self, raw: Any) -> None:  # noqa: ANN401
        message = Message.decode(raw)
        result = await self._invoke(message)

        if not message.reply_to:
            return

        emitter = self._emitter_factory()
        await emitter.publish(message.reply_to, result)
        logger.debug(
            "Reply published",
            extra={"message_id": message.id, "reply_to": message.reply_to},
        )

    async def _invoke(self, message: Message) -> Any:  # noqa: ANN401
        if inspect.iscoroutinefunction(self._handler):
            return await self._handler(message)
        # 同期ハンドラーはブロックしうるのでスレッドプールで実行する
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self._handler, message)
        if inspect.isawaitable(result):
            result = await result
        return result
