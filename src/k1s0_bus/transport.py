"""メッセージトランスポート"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from .exceptions import BusError, BusErrorCodes
from .lookup import http_url

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Any], Awaitable[None]]


class Transport(ABC):
    """メッセージを配送するトランスポートの抽象基底クラス。

    コールバックが例外を送出したメッセージの再配送はトランスポートが決める。
    """

    @abstractmethod
    def add_concurrent_handlers(self, handler: MessageCallback, concurrency: int) -> None:
        """最大 concurrency 並列で handler を呼び出すよう登録する。"""
        ...

    @abstractmethod
    def connect_to_lookupds(self, addresses: Sequence[str]) -> None:
        """nsqlookupd 経由で nsqd に接続し配送を開始する。"""
        ...

    @abstractmethod
    def close(self) -> None:
        """購読を停止する。"""
        ...


class NsqTransport(Transport):
    """pynsq の Reader を使ったトランスポート。

    実行中のイベントループ上で接続すること (Reader は tornado の IOLoop を使う)。
    """

    def __init__(
        self,
        topic: str,
        channel: str,
        max_tries: int = 5,
        lookupd_poll_interval: int = 60,
    ) -> None:
        self._topic = topic
        self._channel = channel
        self._max_tries = max_tries
        self._lookupd_poll_interval = lookupd_poll_interval
        self._handler: MessageCallback | None = None
        self._concurrency = 1
        self._semaphore: asyncio.Semaphore | None = None
        self._reader: Any = None
        self._tasks: set[asyncio.Task[None]] = set()

    def add_concurrent_handlers(self, handler: MessageCallback, concurrency: int) -> None:
        self._handler = handler
        self._concurrency = max(concurrency, 1)

    def connect_to_lookupds(self, addresses: Sequence[str]) -> None:
        if self._handler is None:
            raise BusError(
                code=BusErrorCodes.CONNECTION_FAILED,
                message="no handler registered before connect",
            )
        self._semaphore = asyncio.Semaphore(self._concurrency)
        try:
            import nsq

            self._reader = nsq.Reader(
                topic=self._topic,
                channel=self._channel,
                message_handler=self._on_message,
                lookupd_http_addresses=[http_url(a) for a in addresses],
                max_in_flight=self._concurrency,
                max_tries=self._max_tries,
                lookupd_poll_interval=self._lookupd_poll_interval,
            )
        except Exception as e:
            raise BusError(
                code=BusErrorCodes.CONNECTION_FAILED,
                message=f"Failed to connect to nsqlookupd {list(addresses)}: {e}",
                cause=e,
            ) from e
        logger.info(
            "NSQ reader started",
            extra={
                "topic": self._topic,
                "channel": self._channel,
                "concurrency": self._concurrency,
            },
        )

    def _on_message(self, message: Any) -> None:  # noqa: ANN401
        if self._handler is None or self._semaphore is None:
            raise BusError(
                code=BusErrorCodes.CONNECTION_FAILED,
                message="message received before connect",
            )
        # finish / requeue はタスク側で行う
        message.enable_async()
        task = asyncio.ensure_future(self._process(message, self._handler, self._semaphore))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process(
        self,
        message: Any,  # noqa: ANN401
        handler: MessageCallback,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            try:
                await handler(message)
            except Exception as e:
                logger.warning(
                    "Message handling failed, requeueing",
                    extra={
                        "topic": self._topic,
                        "channel": self._channel,
                        "attempts": getattr(message, "attempts", None),
                        "error": str(e),
                    },
                )
                message.requeue()
                return
            message.finish()

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None
