"""YAML 設定ファイルの読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import BusError, BusErrorCodes
from .models import (
    DEFAULT_LOOKUPD_HTTP_ADDRESS,
    DEFAULT_NSQD_HTTP_ADDRESS,
    EmitterConfig,
    Handler,
    ListenerConfig,
)


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class BusSettings(BaseModel):
    """bus 全体設定。"""

    lookupd_http_addresses: list[str] = Field(
        default_factory=lambda: [DEFAULT_LOOKUPD_HTTP_ADDRESS], min_length=1
    )
    nsqd_http_address: str = DEFAULT_NSQD_HTTP_ADDRESS
    timeout_seconds: float = Field(default=10.0, gt=0)
    concurrency: int = Field(default=1, ge=1)
    auto_create_topic: bool = False
    max_tries: int = Field(default=5, ge=0)
    log: LogSection = Field(default_factory=LogSection)

    def listener_config(self, topic: str, channel: str, handler: Handler) -> ListenerConfig:
        """この設定を元に ListenerConfig を生成する。"""
        return ListenerConfig(
            topic=topic,
            channel=channel,
            handler=handler,
            lookupd_http_addresses=tuple(self.lookupd_http_addresses),
            concurrency=self.concurrency,
            auto_create_topic=self.auto_create_topic,
            timeout_seconds=self.timeout_seconds,
            max_tries=self.max_tries,
        )

    def emitter_config(self) -> EmitterConfig:
        """この設定を元に EmitterConfig を生成する。"""
        return EmitterConfig(
            nsqd_http_address=self.nsqd_http_address,
            lookupd_http_addresses=tuple(self.lookupd_http_addresses),
            timeout_seconds=self.timeout_seconds,
        )


def load_settings(path: Path) -> BusSettings:
    """YAML ファイルを読み込んで BusSettings を返す。

    トップレベルに bus セクションがあればそれを使う。
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise BusError(
            code=BusErrorCodes.INVALID_CONFIG,
            message=f"Failed to read config file: {path}",
            cause=e,
        ) from e
    try:
        data: Any = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise BusError(
            code=BusErrorCodes.INVALID_CONFIG,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if isinstance(data, dict) and isinstance(data.get("bus"), dict):
        data = data["bus"]
    try:
        return BusSettings.model_validate(data)
    except ValidationError as e:
        raise BusError(
            code=BusErrorCodes.INVALID_CONFIG,
            message=f"Config validation failed: {e}",
            cause=e,
        ) from e
