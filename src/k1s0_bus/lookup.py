"""nsqlookupd HTTP クライアント"""

from __future__ import annotations

from typing import Any

import httpx

from .exceptions import BusError, BusErrorCodes
from .models import BrokerNode


def http_url(address: str) -> str:
    """host:port 形式のアドレスを http URL にする。"""
    if "://" in address:
        return address
    return f"http://{address}"


class LookupClient:
    """httpx を使った nsqlookupd クライアント。状態は持たない。"""

    def __init__(self, address: str, timeout_seconds: float = 10.0) -> None:
        self._address = address
        self._timeout_seconds = timeout_seconds

    @property
    def address(self) -> str:
        return self._address

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=http_url(self._address),
            timeout=self._timeout_seconds,
        )

    async def topic_exists(self, topic: str) -> bool:
        """トピックが nsqlookupd に登録済みかを返す。

        200 は存在、404 は未登録。それ以外のステータスはエラーとする。
        """
        try:
            async with self._make_client() as client:
                resp = await client.get("/lookup", params={"topic": topic})
        except Exception as e:
            raise BusError(
                code=BusErrorCodes.LOOKUP_FAILED,
                message=f"Failed to lookup topic {topic}: {e}",
                cause=e,
            ) from e

        if resp.status_code == 200:
            return True
        if resp.status_code == 404:
            return False
        raise BusError(
            code=BusErrorCodes.LOOKUP_FAILED,
            message=f"unexpected status code: {resp.status_code}",
        )

    async def nodes(self) -> list[BrokerNode]:
        """稼働中の nsqd ノード一覧を取得する。"""
        try:
            async with self._make_client() as client:
                resp = await client.get("/nodes")
            if resp.status_code != 200:
                raise BusError(
                    code=BusErrorCodes.LOOKUP_FAILED,
                    message=(
                        "failed to get nsqd address from lookup: "
                        f"{resp.status_code} {resp.reason_phrase}"
                    ),
                )
            return [BrokerNode.from_dict(p) for p in _producers(resp.json())]
        except BusError:
            raise
        except Exception as e:
            raise BusError(
                code=BusErrorCodes.LOOKUP_FAILED,
                message=f"Failed to list nsqd nodes: {e}",
                cause=e,
            ) from e


def _producers(data: Any) -> list[dict[str, Any]]:  # noqa: ANN401
    # 配列そのもの、{"producers": [...]}、旧形式 {"data": {"producers": [...]}} を受け付ける
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if "producers" in data:
            return data["producers"] or []
        inner = data.get("data")
        if isinstance(inner, dict):
            return inner.get("producers") or []
    raise ValueError(f"unexpected /nodes response: {data!r}")
