"""Global configuration models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, SecretStr

from lambda_cloud import AuthMethod


class ListResource(str, Enum):
    """Resource types that can be listed."""

    instances = "instances"
    instance_types = "instance-types"
    images = "images"
    filesystems = "filesystems"
    ssh_keys = "ssh-keys"
    firewall_rules = "firewall-rules"


class ApiConfig(BaseModel):
    """Lambda Cloud API configuration."""

    base_url: str = Field(
        description="Base URL for Lambda Cloud API",
    )
    api_key: SecretStr = Field(
        description="API key for Lambda Cloud",
    )
    auth_method: AuthMethod = Field(
        description="Authorization header strategy",
    )


class SshConfig(BaseModel):
    """SSH configuration."""

    username: str = Field(
        description="Default SSH username",
    )
