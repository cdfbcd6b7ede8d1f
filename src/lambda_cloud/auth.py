"""Client configuration and Authorization header strategies."""

from __future__ import annotations

from enum import Enum

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


DEFAULT_BASE_URL = "https://cloud.lambdalabs.com"


class AuthMethod(str, Enum):
    """How the API key is rendered into the Authorization header."""

    bearer = "bearer"
    basic = "basic"


class ClientConfig(BaseModel):
    """Immutable settings shared by every request a client makes."""

    model_config = ConfigDict(frozen=True)

    api_key: SecretStr = Field(description="Lambda Cloud API key")
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="API base URL, without the /api/v1 prefix",
    )
    auth_method: AuthMethod = Field(
        default=AuthMethod.bearer,
        description="Authorization header strategy",
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


def authorization_header(config: ClientConfig) -> str:
    """Render the Authorization header value for ``config``.

    Basic auth sends the API key as the user name with an empty password.
    """
    api_key = config.api_key.get_secret_value()
    match config.auth_method:
        case AuthMethod.basic:
            return aiohttp.BasicAuth(api_key, "", encoding="utf-8").encode()
        case AuthMethod.bearer:
            return f"Bearer {api_key}"
    raise ValueError(f"Unknown auth method: {config.auth_method}")
