"""Emitter のユニットテスト（respx モック）"""

import json

import httpx
import pytest
import respx

from k1s0_bus.emitter import Emitter
from k1s0_bus.exceptions import BusError, BusErrorCodes
from k1s0_bus.models import EmitterConfig, Message
from k1s0_bus.noop import NoOpTransport

NSQD_URL = "http://nsqd:4151"
LOOKUPD_URL = "http://disc:4161"


def make_emitter() -> Emitter:
    return Emitter(
        EmitterConfig(
            nsqd_http_address="nsqd:4151",
            lookupd_http_addresses=("disc:4161",),
            timeout_seconds=1.0,
        )
    )


@respx.mock
async def test_publish_posts_envelope() -> None:
    """/pub にエンベロープ形式の本文を POST すること。"""
    route = respx.post(f"{NSQD_URL}/pub").mock(return_value=httpx.Response(200, text="OK"))

    await make_emitter().publish("billing.reply", {"total": 10})

    request = route.calls.last.request
    assert request.url.params["topic"] == "billing.reply"
    assert json.loads(request.content) == {"replyTo": "", "payload": {"total": 10}}


async def test_publish_empty_topic_raises() -> None:
    """トピック未指定で TOPIC_REQUIRED になること。"""
    with pytest.raises(BusError) as exc_info:
        await make_emitter().publish("", {"total": 10})
    assert exc_info.value.code == BusErrorCodes.TOPIC_REQUIRED


@respx.mock
async def test_publish_http_error() -> None:
    """nsqd がエラーを返すと PUBLISH_FAILED になること。"""
    respx.post(f"{NSQD_URL}/pub").mock(return_value=httpx.Response(400, text="INVALID_TOPIC"))
    with pytest.raises(BusError) as exc_info:
        await make_emitter().publish("bad topic", 1)
    assert exc_info.value.code == BusErrorCodes.PUBLISH_FAILED
    assert "INVALID_TOPIC" in str(exc_info.value)


async def test_publish_network_error() -> None:
    """接続エラーが PUBLISH_FAILED にラップされること。"""
    with respx.mock:
        respx.post(f"{NSQD_URL}/pub").mock(side_effect=httpx.ConnectError("Connection refused"))
        with pytest.raises(BusError) as exc_info:
            await make_emitter().publish("orders", 1)
        assert exc_info.value.code == BusErrorCodes.PUBLISH_FAILED


@pytest.mark.respx(assert_all_called=False)
async def test_request_creates_reply_topic_on_nsqd_http(respx_mock: respx.MockRouter) -> None:
    """request がリプライトピックを nsqd の HTTP API で作成し、replyTo 付きで発行すること。"""
    lookup = respx_mock.get(url__regex=r".*/lookup.*").mock(return_value=httpx.Response(404))
    nodes = respx_mock.get(url__regex=r".*/nodes.*").mock(
        return_value=httpx.Response(
            200,
            json={
                "producers": [{"broadcast_address": "n1", "tcp_port": 4150, "http_port": 4151}]
            },
        )
    )
    tcp_create = respx_mock.post("http://n1:4150/topic/create").mock(
        return_value=httpx.Response(200)
    )
    create = respx_mock.post(f"{NSQD_URL}/topic/create").mock(return_value=httpx.Response(200))
    pub = respx_mock.post(f"{NSQD_URL}/pub").mock(return_value=httpx.Response(200))
    transport = NoOpTransport()

    async def on_reply(message: Message) -> None:
        return None

    result = await make_emitter().request("orders", {"id": 1}, on_reply, transport=transport)

    assert result is transport
    assert transport.connected_to == ["disc:4161"]
    assert transport.handler is not None
    body = json.loads(pub.calls.last.request.content)
    reply_to = body["replyTo"]
    assert reply_to.startswith("reply-")
    assert reply_to.endswith("#ephemeral")
    assert body["payload"] == {"id": 1}
    assert pub.calls.last.request.url.params["topic"] == "orders"
    assert create.call_count == 1
    assert create.calls.last.request.url.params["topic"] == reply_to
    assert not tcp_create.called
    assert not lookup.called
    assert not nodes.called


@respx.mock
async def test_request_reply_topic_creation_failure() -> None:
    """リプライトピックの作成に失敗したら購読も発行もしないこと。"""
    respx.post(f"{NSQD_URL}/topic/create").mock(return_value=httpx.Response(500))
    transport = NoOpTransport()

    async def on_reply(message: Message) -> None:
        return None

    with pytest.raises(BusError) as exc_info:
        await make_emitter().request("orders", {"id": 1}, on_reply, transport=transport)
    assert exc_info.value.code == BusErrorCodes.TOPIC_CREATE_FAILED
    assert transport.handler is None
    assert transport.connected_to == []


@respx.mock
async def test_request_closes_reply_subscription_on_publish_failure() -> None:
    """発行に失敗したらリプライ購読を閉じること。"""
    respx.post(f"{NSQD_URL}/topic/create").mock(return_value=httpx.Response(200))
    respx.post(f"{NSQD_URL}/pub").mock(return_value=httpx.Response(500, text="E_FAILED"))
    transport = NoOpTransport()

    async def on_reply(message: Message) -> None:
        return None

    with pytest.raises(BusError) as exc_info:
        await make_emitter().request("orders", {"id": 1}, on_reply, transport=transport)
    assert exc_info.value.code == BusErrorCodes.PUBLISH_FAILED
    assert transport.closed is True


async def test_request_empty_topic_raises() -> None:
    """トピック未指定の request は TOPIC_REQUIRED になること。"""
    transport = NoOpTransport()

    async def on_reply(message: Message) -> None:
        return None

    with pytest.raises(BusError) as exc_info:
        await make_emitter().request("", {"id": 1}, on_reply, transport=transport)
    assert exc_info.value.code == BusErrorCodes.TOPIC_REQUIRED
    assert transport.connected_to == []
