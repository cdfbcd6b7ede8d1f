"""Lambda Cloud API client library."""

from lambda_cloud.auth import AuthMethod, ClientConfig
from lambda_cloud.client import (
    ApiError,
    LambdaCloudClient,
    LambdaCloudError,
    MalformedResponseError,
)
from lambda_cloud.models import (
    AddSSHKeyRequest,
    Filesystem,
    FilesystemCreateRequest,
    FilesystemDeleteResponse,
    FirewallRule,
    FirewallRulesPutRequest,
    GeneratedSSHKey,
    Image,
    ImageSpecificationFamily,
    ImageSpecificationID,
    Instance,
    InstanceLaunchRequest,
    InstanceLaunchResponse,
    InstanceModificationRequest,
    InstanceRestartRequest,
    InstanceRestartResponse,
    InstanceTerminateRequest,
    InstanceTerminateResponse,
    InstanceTypes,
    SSHKey,
)


__version__ = "0.1.0"

__all__ = [
    "AddSSHKeyRequest",
    "ApiError",
    "AuthMethod",
    "ClientConfig",
    "LambdaCloudClient",
    "LambdaCloudError",
    "MalformedResponseError",
    "Filesystem",
    "FilesystemCreateRequest",
    "FilesystemDeleteResponse",
    "FirewallRule",
    "FirewallRulesPutRequest",
    "GeneratedSSHKey",
    "Image",
    "ImageSpecificationFamily",
    "ImageSpecificationID",
    "Instance",
    "InstanceLaunchRequest",
    "InstanceLaunchResponse",
    "InstanceModificationRequest",
    "InstanceRestartRequest",
    "InstanceRestartResponse",
    "InstanceTerminateRequest",
    "InstanceTerminateResponse",
    "InstanceTypes",
    "SSHKey",
]
