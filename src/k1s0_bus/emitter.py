"""nsqd HTTP API を使ったメッセージエミッター"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from .exceptions import BusError, BusErrorCodes
from .lookup import http_url
from .models import EmitterConfig, Handler, ListenerConfig, encode_message

if TYPE_CHECKING:
    from .transport import Transport


class Publisher(Protocol):
    """リプライ発行に使うプロトコル。"""

    async def publish(self, topic: str, payload: Any) -> None: ...  # noqa: ANN401


class Emitter:
    """nsqd の /pub エンドポイントへメッセージを発行するエミッター。"""

    def __init__(self, config: EmitterConfig | None = None) -> None:
        self._config = config or EmitterConfig()

    @property
    def config(self) -> EmitterConfig:
        return self._config

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=http_url(self._config.nsqd_http_address),
            timeout=self._config.timeout_seconds,
        )

    async def publish(self, topic: str, payload: Any, reply_to: str = "") -> None:  # noqa: ANN401
        """payload をエンコードして topic に発行する。配信確認は行わない。"""
        if not topic:
            raise BusError(code=BusErrorCodes.TOPIC_REQUIRED, message="topic is mandatory")
        body = encode_message(payload, reply_to)
        try:
            async with self._make_client() as client:
                resp = await client.post("/pub", params={"topic": topic}, content=body)
        except Exception as e:
            raise BusError(
                code=BusErrorCodes.PUBLISH_FAILED,
                message=f"Failed to publish message to {topic}: {e}",
                cause=e,
            ) from e
        if resp.status_code >= 300:
            raise BusError(
                code=BusErrorCodes.PUBLISH_FAILED,
                message=f"Failed to publish message to {topic}: HTTP {resp.status_code}: {resp.text}",
            )

    async def create_topic(self, topic: str) -> None:
        """nsqd の /topic/create でトピックを作成する。既存なら何もしない。"""
        try:
            async with self._make_client() as client:
                resp = await client.post("/topic/create", params={"topic": topic})
        except Exception as e:
            raise BusError(
                code=BusErrorCodes.TOPIC_CREATE_FAILED,
                message=f"Failed to create topic {topic} on {self._config.nsqd_http_address}: {e}",
                cause=e,
            ) from e
        if resp.status_code != 200:
            raise BusError(
                code=BusErrorCodes.TOPIC_CREATE_FAILED,
                message=f"failed to create topic: {resp.status_code} {resp.reason_phrase}",
            )

    async def request(
        self,
        topic: str,
        payload: Any,  # noqa: ANN401
        handler: Handler,
        transport: Transport | None = None,
    ) -> Transport:
        """リクエストを発行し、リプライを handler で受け取る。

        一時的なリプライ用トピックを発行先の nsqd に作成して購読してから、
        replyTo 付きで payload を発行する。

        Returns:
            リプライ購読のトランスポート (close() で購読を停止する)
        """
        from .listener import on

        if not topic:
            raise BusError(code=BusErrorCodes.TOPIC_REQUIRED, message="topic is mandatory")

        reply_to = f"reply-{uuid.uuid4().hex}#ephemeral"
        await self.create_topic(reply_to)
        reply_transport = await on(
            ListenerConfig(
                topic=reply_to,
                channel="reply#ephemeral",
                handler=handler,
                lookupd_http_addresses=self._config.lookupd_http_addresses,
                timeout_seconds=self._config.timeout_seconds,
            ),
            transport=transport,
        )
        try:
            await self.publish(topic, payload, reply_to=reply_to)
        except BusError:
            reply_transport.close()
            raise
        return reply_transport
