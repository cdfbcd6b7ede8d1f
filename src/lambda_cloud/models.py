"""Lambda Cloud API request and response models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Generic, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    RootModel,
    Tag,
    model_validator,
)


T = TypeVar("T")


class LambdaModel(BaseModel):
    """Immutable base for all API models."""

    model_config = ConfigDict(frozen=True)


# ============================================================================
# Common
# ============================================================================


class PublicRegionCode(str, Enum):
    europe_central_1 = "europe-central-1"
    asia_south_1 = "asia-south-1"
    australia_east_1 = "australia-east-1"
    me_west_1 = "me-west-1"
    asia_northeast_1 = "asia-northeast-1"
    asia_northeast_2 = "asia-northeast-2"
    us_east_1 = "us-east-1"
    us_west_2 = "us-west-2"
    us_west_1 = "us-west-1"
    us_south_1 = "us-south-1"
    us_west_3 = "us-west-3"
    us_midwest_1 = "us-midwest-1"
    us_east_2 = "us-east-2"
    us_south_2 = "us-south-2"
    us_south_3 = "us-south-3"
    us_east_3 = "us-east-3"
    us_midwest_2 = "us-midwest-2"
    test_east_1 = "test-east-1"
    test_west_1 = "test-west-1"


class Region(LambdaModel):
    name: PublicRegionCode
    description: str


class UserStatus(str, Enum):
    active = "active"
    deactivated = "deactivated"


class User(LambdaModel):
    id: str
    email: str
    status: UserStatus


class EmptyResponse(LambdaModel):
    """Payload of endpoints that return ``{}`` on success."""


class ApiErrorDetail(LambdaModel):
    """Error body returned by the API for any failed request."""

    code: str
    message: str
    suggestion: str | None = None


class SuccessEnvelope(LambdaModel, Generic[T]):
    """``{"data": ...}`` wrapper around every successful response."""

    data: T


class ErrorEnvelope(LambdaModel):
    """``{"error": {...}}`` wrapper around every failed response."""

    error: ApiErrorDetail


# ============================================================================
# Instances
# ============================================================================


class InstanceStatus(str, Enum):
    booting = "booting"
    active = "active"
    unhealthy = "unhealthy"
    terminated = "terminated"
    terminating = "terminating"


class InstanceActionUnavailableCode(str, Enum):
    vm_has_not_launched = "vm-has-not-launched"
    vm_is_too_old = "vm-is-too-old"
    vm_is_terminating = "vm-is-terminating"


class InstanceTypeSpecs(LambdaModel):
    vcpus: int
    memory_gib: int
    storage_gib: int
    gpus: int


class InstanceType(LambdaModel):
    name: str
    description: str
    gpu_description: str
    price_cents_per_hour: int
    specs: InstanceTypeSpecs


class InstanceActionAvailabilityDetails(LambdaModel):
    available: bool
    # Codes the API adds later are kept as plain strings
    reason_code: InstanceActionUnavailableCode | str | None = Field(
        default=None, union_mode="left_to_right"
    )
    reason_description: str | None = None


class InstanceActionAvailability(LambdaModel):
    """Which lifecycle actions the instance currently allows."""

    migrate: InstanceActionAvailabilityDetails
    rebuild: InstanceActionAvailabilityDetails
    restart: InstanceActionAvailabilityDetails
    cold_reboot: InstanceActionAvailabilityDetails
    terminate: InstanceActionAvailabilityDetails


class Instance(LambdaModel):
    id: str
    name: str | None = None
    # Not assigned until the instance has booted
    ip: str | None = None
    private_ip: str | None = None
    status: InstanceStatus
    ssh_key_names: list[str]
    file_system_names: list[str]
    region: Region
    instance_type: InstanceType
    hostname: str | None = None
    jupyter_token: str | None = None
    jupyter_url: str | None = None
    is_reserved: bool | None = None
    actions: InstanceActionAvailability


class InstanceTypesItem(LambdaModel):
    instance_type: InstanceType
    regions_with_capacity_available: list[Region]


class InstanceTypes(RootModel[dict[str, InstanceTypesItem]]):
    """Instance types keyed by instance type name."""

    model_config = ConfigDict(frozen=True)

    def __getitem__(self, name: str) -> InstanceTypesItem:
        return self.root[name]

    def __contains__(self, name: object) -> bool:
        return name in self.root

    def __len__(self) -> int:
        return len(self.root)


class ImageSpecificationID(LambdaModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str


class ImageSpecificationFamily(LambdaModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    family: str


def _image_specification_tag(value: Any) -> str | None:
    if isinstance(value, ImageSpecificationID):
        return "id"
    if isinstance(value, ImageSpecificationFamily):
        return "family"
    if isinstance(value, dict):
        has_id = "id" in value
        has_family = "family" in value
        if has_id != has_family:
            return "id" if has_id else "family"
    # Both keys or neither: no tag, pydantic reports a union_tag_not_found error
    return None


ImageSpecification = Annotated[
    Union[
        Annotated[ImageSpecificationID, Tag("id")],
        Annotated[ImageSpecificationFamily, Tag("family")],
    ],
    Discriminator(_image_specification_tag),
]


class InstanceLaunchRequest(LambdaModel):
    region_name: PublicRegionCode
    instance_type_name: str
    ssh_key_names: list[str] = Field(min_length=1)
    file_system_names: list[str] | None = None
    name: str | None = None
    image: ImageSpecification | None = None
    user_data: str | None = None


class InstanceLaunchResponse(LambdaModel):
    instance_ids: list[str]


class InstanceRestartRequest(LambdaModel):
    instance_ids: list[str]


class InstanceRestartResponse(LambdaModel):
    restarted_instances: list[Instance]


class InstanceTerminateRequest(LambdaModel):
    instance_ids: list[str]


class InstanceTerminateResponse(LambdaModel):
    terminated_instances: list[Instance]


class InstanceModificationRequest(LambdaModel):
    name: str | None = None


# ============================================================================
# SSH keys
# ============================================================================


class SSHKey(LambdaModel):
    id: str
    name: str
    public_key: str


class GeneratedSSHKey(SSHKey):
    """SSH key generated by the API. The private key is only returned once."""

    private_key: str


def _ssh_key_tag(value: Any) -> str:
    if isinstance(value, dict):
        return "generated" if "private_key" in value else "existing"
    return "generated" if isinstance(value, GeneratedSSHKey) else "existing"


AddSSHKeyResult = Annotated[
    Union[
        Annotated[GeneratedSSHKey, Tag("generated")],
        Annotated[SSHKey, Tag("existing")],
    ],
    Discriminator(_ssh_key_tag),
]


class AddSSHKeyRequest(LambdaModel):
    """Request to add an SSH key.

    Omitting ``public_key`` asks the API to generate a new key pair.
    """

    name: str
    public_key: str | None = None


# ============================================================================
# Filesystems
# ============================================================================


class Filesystem(LambdaModel):
    id: str
    name: str
    mount_point: str
    created: datetime
    created_by: User
    is_in_use: bool
    region: Region
    bytes_used: int | None = None


class FilesystemCreateRequest(LambdaModel):
    name: str
    region: PublicRegionCode


class FilesystemDeleteResponse(LambdaModel):
    deleted_ids: list[str]


# ============================================================================
# Images
# ============================================================================


class ImageArchitecture(str, Enum):
    x86_64 = "x86_64"
    arm64 = "arm64"


class Image(LambdaModel):
    id: str
    created_time: datetime
    updated_time: datetime
    name: str
    description: str
    family: str
    version: str
    architecture: ImageArchitecture
    region: Region


# ============================================================================
# Firewall
# ============================================================================


class SecurityGroupRuleProtocol(str, Enum):
    tcp = "tcp"
    udp = "udp"
    icmp = "icmp"
    all = "all"


PortNumber = Annotated[int, Field(ge=1, le=65535)]


class FirewallRule(LambdaModel):
    """Inbound firewall rule.

    ``port_range`` is an inclusive ``(low, high)`` pair. It is required for
    every protocol except ICMP, which has no ports.
    """

    protocol: SecurityGroupRuleProtocol
    port_range: tuple[PortNumber, PortNumber] | None = None
    source_network: str
    description: str

    @model_validator(mode="after")
    def _check_port_range(self) -> FirewallRule:
        if self.protocol == SecurityGroupRuleProtocol.icmp:
            if self.port_range is not None:
                raise ValueError("port_range is not allowed for icmp rules")
        elif self.port_range is None:
            raise ValueError(
                f"port_range is required for {self.protocol.value} rules"
            )
        elif self.port_range[0] > self.port_range[1]:
            raise ValueError(
                f"port_range start {self.port_range[0]} is greater than "
                f"end {self.port_range[1]}"
            )
        return self


class FirewallRulesPutRequest(LambdaModel):
    """Replacement rule set. It becomes the entire set of inbound rules."""

    data: list[FirewallRule]
