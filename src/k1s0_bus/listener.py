"""リスナー: 設定の検証・デフォルト補完・購読開始"""

from __future__ import annotations

import dataclasses
import logging

from .dispatch import EmitterFactory, MessageDispatcher
from .exceptions import BusError, BusErrorCodes
from .models import DEFAULT_LOOKUPD_HTTP_ADDRESS, Handler, ListenerConfig
from .provisioner import ensure_topic
from .transport import NsqTransport, Transport

logger = logging.getLogger(__name__)


def validate(config: ListenerConfig) -> Handler:
    """設定を検証する。最初に見つかった違反で BusError を送出する。

    Returns:
        検証済みのハンドラー
    """
    if not config.topic:
        raise BusError(code=BusErrorCodes.TOPIC_REQUIRED, message="topic is mandatory")
    if not config.channel:
        raise BusError(code=BusErrorCodes.CHANNEL_REQUIRED, message="channel is mandatory")
    if config.handler is None:
        raise BusError(code=BusErrorCodes.HANDLER_REQUIRED, message="handler is mandatory")
    if config.concurrency < 0:
        raise BusError(
            code=BusErrorCodes.INVALID_CONFIG,
            message=f"concurrency must be >= 0, got {config.concurrency}",
        )
    return config.handler


def with_defaults(config: ListenerConfig) -> ListenerConfig:
    """未指定の項目をデフォルト値で埋めた新しい設定を返す。"""
    changes: dict[str, object] = {}
    if not config.lookupd_http_addresses:
        changes["lookupd_http_addresses"] = (DEFAULT_LOOKUPD_HTTP_ADDRESS,)
    if config.concurrency == 0:
        changes["concurrency"] = 1
    if not changes:
        return config
    return dataclasses.replace(config, **changes)


async def on(
    config: ListenerConfig,
    transport: Transport | None = None,
    emitter_factory: EmitterFactory | None = None,
) -> Transport:
    """topic / channel を購読し、メッセージを handler に配送する。

    検証とトピック作成が成功した後でのみトランスポートへ登録・接続する。
    失敗時は BusError (またはトランスポートの例外) をそのまま送出し、リトライしない。

    Args:
        config: リスナー設定
        transport: 使用するトランスポート (未指定時は NsqTransport)
        emitter_factory: リプライ発行用エミッターの生成関数

    Returns:
        購読中のトランスポート
    """
    handler = validate(config)
    config = with_defaults(config)

    if config.auto_create_topic:
        await ensure_topic(
            config.lookupd_http_addresses[0],
            config.topic,
            timeout_seconds=config.timeout_seconds,
        )

    if transport is None:
        transport = NsqTransport(config.topic, config.channel, max_tries=config.max_tries)

    dispatcher = MessageDispatcher(handler, emitter_factory=emitter_factory)
    transport.add_concurrent_handlers(dispatcher, config.concurrency)
    transport.connect_to_lookupds(list(config.lookupd_http_addresses))
    logger.info(
        "Listening",
        extra={
            "topic": config.topic,
            "channel": config.channel,
            "concurrency": config.concurrency,
        },
    )
    return transport
