# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from typing import Any, ClassVar

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings, frozen=True):
    """Client settings with environment variable support.

    Every field can be set through ``CONTRACTWIRE_<FIELD>`` or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONTRACTWIRE_",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    DEFAULT_TIMEOUT: float | None = Field(
        default=None,
        description="Request timeout in seconds when neither call nor client sets one",
    )
    STRICT_REGISTRY: bool = Field(
        default=False,
        description="Reject duplicate endpoint keys instead of overwriting",
    )
    USER_AGENT: str = Field(
        default="contractwire",
        description="User-Agent sent by the aiohttp transport",
    )

    _instance: ClassVar[Any] = None


settings = AppSettings()
AppSettings._instance = settings
