"""トピックの存在確認と自動作成"""

from __future__ import annotations

import logging

import httpx

from .exceptions import BusError, BusErrorCodes
from .lookup import LookupClient, http_url
from .models import BrokerNode

logger = logging.getLogger(__name__)


class TopicProvisioner:
    """nsqlookupd でトピックを確認し、未登録なら nsqd に作成を依頼する。

    リトライ・バックオフは行わない。各ステップは最初のエラーで即座に失敗する。
    ノード一覧は毎回取得し直し、キャッシュしない。
    """

    def __init__(self, lookup: LookupClient, timeout_seconds: float = 10.0) -> None:
        self._lookup = lookup
        self._timeout_seconds = timeout_seconds

    async def ensure_topic(self, topic: str) -> bool:
        """トピックが存在することを保証する。

        Returns:
            作成した場合 True、既に存在した場合 False

        Raises:
            BusError: 確認・ノード取得・作成のいずれかに失敗した場合
        """
        if await self._lookup.topic_exists(topic):
            logger.debug("Topic already exists", extra={"topic": topic})
            return False

        nodes = await self._lookup.nodes()
        if not nodes:
            raise BusError(
                code=BusErrorCodes.NO_NODES,
                message="no nsqd nodes found in lookup",
            )

        # 負荷分散はせず先頭ノードのみ使う
        await self._create_topic(nodes[0], topic)
        logger.info(
            "Topic created",
            extra={"topic": topic, "node": nodes[0].address},
        )
        return True

    async def _create_topic(self, node: BrokerNode, topic: str) -> None:
        try:
            async with httpx.AsyncClient(
                base_url=http_url(node.address),
                timeout=self._timeout_seconds,
            ) as client:
                resp = await client.post("/topic/create", params={"topic": topic})
        except Exception as e:
            raise BusError(
                code=BusErrorCodes.TOPIC_CREATE_FAILED,
                message=f"Failed to create topic {topic} on {node.address}: {e}",
                cause=e,
            ) from e

        if resp.status_code != 200:
            raise BusError(
                code=BusErrorCodes.TOPIC_CREATE_FAILED,
                message=f"failed to create topic: {resp.status_code} {resp.reason_phrase}",
            )


async def ensure_topic(lookupd_address: str, topic: str, timeout_seconds: float = 10.0) -> bool:
    """lookupd_address の nsqlookupd を使って topic を用意する。"""
    lookup = LookupClient(lookupd_address, timeout_seconds=timeout_seconds)
    return await TopicProvisioner(lookup, timeout_seconds=timeout_seconds).ensure_topic(topic)
