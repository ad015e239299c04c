"""bus データモデル"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from .exceptions import BusError, BusErrorCodes

T = TypeVar("T")

DEFAULT_LOOKUPD_HTTP_ADDRESS = "localhost:4161"
DEFAULT_NSQD_HTTP_ADDRESS = "localhost:4151"

# メッセージ本文のキー。大文字始まりは Go 実装のプロデューサーとの互換用。
_REPLY_TO_KEYS = ("replyTo", "ReplyTo")
_PAYLOAD_KEYS = ("payload", "Payload")

_envelope_adapter: TypeAdapter[dict[str, Any]] = TypeAdapter(dict[str, Any])

Handler = Callable[["Message"], Any]


@dataclass(frozen=True)
class ListenerConfig:
    """1 つの購読 (topic, channel) に対するリスナー設定。"""

    topic: str = ""
    channel: str = ""
    handler: Handler | None = None
    lookupd_http_addresses: tuple[str, ...] = ()
    concurrency: int = 0
    auto_create_topic: bool = False
    timeout_seconds: float = 10.0
    max_tries: int = 5

    def __post_init__(self) -> None:
        # list で渡されても不変にする
        object.__setattr__(self, "lookupd_http_addresses", tuple(self.lookupd_http_addresses))


@dataclass(frozen=True)
class EmitterConfig:
    """リプライ発行用エミッター設定。"""

    nsqd_http_address: str = DEFAULT_NSQD_HTTP_ADDRESS
    lookupd_http_addresses: tuple[str, ...] = (DEFAULT_LOOKUPD_HTTP_ADDRESS,)
    timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "lookupd_http_addresses", tuple(self.lookupd_http_addresses))


@dataclass(frozen=True)
class BrokerNode:
    """nsqlookupd の /nodes から得た nsqd ノード。"""

    broadcast_address: str
    tcp_port: int

    @property
    def address(self) -> str:
        return f"{self.broadcast_address}:{self.tcp_port}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BrokerNode:
        """/nodes レスポンスの 1 要素から BrokerNode を生成する。"""
        return cls(
            broadcast_address=data["broadcast_address"],
            tcp_port=int(data["tcp_port"]),
        )


@dataclass
class Message:
    """ハンドラーに渡されるメッセージエンベロープ。"""

    body: bytes
    reply_to: str = ""
    payload: Any = None
    id: str = ""
    timestamp: int = 0
    attempts: int = 0
    raw: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def decode(cls, raw: Any) -> Message:  # noqa: ANN401
        """トランスポートのメッセージ本文を JSON としてデコードする。

        Args:
            raw: body / id / timestamp / attempts 属性を持つトランスポートのメッセージ

        Raises:
            BusError: 本文が JSON オブジェクトとして解釈できない場合
        """
        body: bytes = raw.body
        try:
            data = json.loads(body)
        except (ValueError, TypeError) as e:
            raise BusError(
                code=BusErrorCodes.DECODE_FAILED,
                message=f"Failed to decode message body: {e}",
                cause=e,
            ) from e
        if not isinstance(data, dict):
            raise BusError(
                code=BusErrorCodes.DECODE_FAILED,
                message=f"Message body must be a JSON object, got {type(data).__name__}",
            )

        reply_to = _first(data, _REPLY_TO_KEYS)
        if reply_to is None:
            reply_to = ""
        elif not isinstance(reply_to, str):
            raise BusError(
                code=BusErrorCodes.DECODE_FAILED,
                message="replyTo must be a string",
            )

        msg_id = getattr(raw, "id", "")
        if isinstance(msg_id, bytes):
            msg_id = msg_id.decode("ascii", errors="replace")
        return cls(
            body=body,
            reply_to=reply_to,
            payload=_first(data, _PAYLOAD_KEYS),
            id=msg_id or "",
            timestamp=getattr(raw, "timestamp", 0) or 0,
            attempts=getattr(raw, "attempts", 0) or 0,
            raw=raw,
        )

    def decode_payload(self, model: type[T]) -> T:
        """payload を指定の型に検証・変換する。"""
        try:
            return TypeAdapter(model).validate_python(self.payload)
        except ValidationError as e:
            raise BusError(
                code=BusErrorCodes.DECODE_FAILED,
                message=f"Failed to decode payload as {getattr(model, '__name__', model)}: {e}",
                cause=e,
            ) from e


def encode_message(payload: Any, reply_to: str = "") -> bytes:  # noqa: ANN401
    """payload と replyTo をメッセージ本文 (JSON) にエンコードする。"""
    try:
        return _envelope_adapter.dump_json({"replyTo": reply_to, "payload": payload})
    except Exception as e:
        raise BusError(
            code=BusErrorCodes.SERIALIZATION_ERROR,
            message=f"Failed to encode message payload: {e}",
            cause=e,
        ) from e


def _first(data: dict[str, Any], keys: tuple[str, ...]) -> Any:  # noqa: ANN401
    for key in keys:
        if key in data:
            return data[key]
    return None
