"""Lambda Cloud API async client."""

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

import aiohttp
from pydantic import BaseModel, SecretStr, TypeAdapter, ValidationError

from lambda_cloud.auth import (
    DEFAULT_BASE_URL,
    AuthMethod,
    ClientConfig,
    authorization_header,
)
from lambda_cloud.models import (
    AddSSHKeyRequest,
    AddSSHKeyResult,
    ApiErrorDetail,
    EmptyResponse,
    ErrorEnvelope,
    Filesystem,
    FilesystemCreateRequest,
    FilesystemDeleteResponse,
    FirewallRule,
    FirewallRulesPutRequest,
    GeneratedSSHKey,
    Image,
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
    SuccessEnvelope,
)


T = TypeVar("T")

log = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

# Type adapters for response envelopes
error_envelope_adapter = TypeAdapter(ErrorEnvelope)
instance_list_adapter = TypeAdapter(SuccessEnvelope[list[Instance]])
instance_adapter = TypeAdapter(SuccessEnvelope[Instance])
instance_types_adapter = TypeAdapter(SuccessEnvelope[InstanceTypes])
instance_launch_response_adapter = TypeAdapter(
    SuccessEnvelope[InstanceLaunchResponse]
)
instance_restart_response_adapter = TypeAdapter(
    SuccessEnvelope[InstanceRestartResponse]
)
instance_terminate_response_adapter = TypeAdapter(
    SuccessEnvelope[InstanceTerminateResponse]
)
ssh_key_list_adapter = TypeAdapter(SuccessEnvelope[list[SSHKey]])
add_ssh_key_adapter = TypeAdapter(SuccessEnvelope[AddSSHKeyResult])
empty_response_adapter = TypeAdapter(SuccessEnvelope[EmptyResponse])
filesystem_list_adapter = TypeAdapter(SuccessEnvelope[list[Filesystem]])
filesystem_adapter = TypeAdapter(SuccessEnvelope[Filesystem])
filesystem_delete_response_adapter = TypeAdapter(
    SuccessEnvelope[FilesystemDeleteResponse]
)
image_list_adapter = TypeAdapter(SuccessEnvelope[list[Image]])
firewall_rule_list_adapter = TypeAdapter(SuccessEnvelope[list[FirewallRule]])


class LambdaCloudError(Exception):
    """Base class for errors raised by the client."""


class ApiError(LambdaCloudError):
    """The API answered with a non-2xx status and an error body.

    The message is ``"<code>: <message>"``, followed by
    ``" - <suggestion>"`` when the API sent a suggestion. Error codes are not
    classified; inspect ``error.code`` to tell them apart.

    Attributes:
        status: HTTP status code
        method: HTTP method
        path: API endpoint path
        error: Parsed error details (code, message, suggestion)
    """

    def __init__(
        self,
        status: int,
        method: str,
        path: str,
        error: ApiErrorDetail,
    ):
        self.status = status
        self.method = method
        self.path = path
        self.error = error

        message = f"{error.code}: {error.message}"
        if error.suggestion:
            message += f" - {error.suggestion}"

        super().__init__(message)


class MalformedResponseError(LambdaCloudError):
    """The response body was not JSON or not the expected envelope.

    Attributes:
        status: HTTP status code
        method: HTTP method
        path: API endpoint path
        raw_text: Start of the response body
    """

    def __init__(self, status: int, method: str, path: str, raw_text: str):
        self.status = status
        self.method = method
        self.path = path
        self.raw_text = raw_text[:200]

        super().__init__(
            f"{method} {path} -> {status}: malformed response: {self.raw_text!r}"
        )


class LambdaCloudClient:
    """Async Lambda Cloud API client.

    Example:
        async with LambdaCloudClient(api_key="sk_xxx") as client:
            instances = await client.list_instances()
            for instance in instances:
                print(instance.id, instance.status)
    """

    def __init__(
        self,
        api_key: str | SecretStr,
        base_url: str = DEFAULT_BASE_URL,
        auth_method: AuthMethod = AuthMethod.bearer,
        *,
        timeout: aiohttp.ClientTimeout | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize client.

        Args:
            api_key: Lambda Cloud API key
            base_url: API base URL, trailing slashes are dropped
            auth_method: Authorization header strategy
            timeout: Optional timeout for the session the client opens.
                Requests never time out unless one is given.
            session: Optional externally owned session. The client uses it
                as is and does not close it.
        """
        self.config = ClientConfig(
            api_key=api_key, base_url=base_url, auth_method=auth_method
        )
        self.timeout = timeout or aiohttp.ClientTimeout()
        self._session = session
        self._owns_session = session is None

    @property
    def base_url(self) -> str:
        return self.config.base_url

    async def __aenter__(self) -> LambdaCloudClient:
        """Enter async context."""
        if self._owns_session:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        """Exit async context."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": authorization_header(self.config),
        }

    async def _request(
        self,
        method: str,
        path: str,
        response_adapter: TypeAdapter[SuccessEnvelope[T]],
        *,
        body: BaseModel | None = None,
    ) -> T:
        """Make an API request and unwrap the response envelope.

        Args:
            method: HTTP method
            path: API endpoint path
            response_adapter: TypeAdapter for the success envelope
            body: Optional Pydantic model for request body

        Returns:
            The ``data`` payload of the success envelope

        Raises:
            ApiError: If the API answered with an error envelope
            MalformedResponseError: If the body does not match the envelope
                expected for the status
        """
        assert self._session is not None, "Client must be used as async context manager"

        url = f"{self.config.base_url}{path}"

        request_json = None
        if body is not None:
            request_json = body.model_dump(
                exclude_none=True, by_alias=True, mode="json"
            )

        async with self._session.request(
            method, url, headers=self._headers(), json=request_json
        ) as resp:
            status = resp.status
            text = await resp.text()

        log.debug("%s %s -> %d", method, url, status)

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(status, method, path, text) from e

        if 200 <= status < 300:
            try:
                envelope = response_adapter.validate_python(payload)
            except ValidationError as e:
                raise MalformedResponseError(status, method, path, text) from e
            return envelope.data

        try:
            failure = error_envelope_adapter.validate_python(payload)
        except ValidationError as e:
            raise MalformedResponseError(status, method, path, text) from e
        raise ApiError(status=status, method=method, path=path, error=failure.error)

    # Instance operations

    async def list_instances(self) -> list[Instance]:
        """List all instances.

        Returns:
            List of Instance objects
        """
        return await self._request(
            "GET", f"{API_PREFIX}/instances", instance_list_adapter
        )

    async def get_instance(self, instance_id: str) -> Instance:
        """Get instance by ID.

        Args:
            instance_id: Instance ID

        Returns:
            Instance object
        """
        return await self._request(
            "GET", f"{API_PREFIX}/instances/{instance_id}", instance_adapter
        )

    async def update_instance(
        self,
        instance_id: str,
        request: InstanceModificationRequest,
    ) -> Instance:
        """Update instance details. Unset fields are left unchanged.

        Args:
            instance_id: Instance ID
            request: Modification request

        Returns:
            Updated instance
        """
        return await self._request(
            "POST",
            f"{API_PREFIX}/instances/{instance_id}",
            instance_adapter,
            body=request,
        )

    async def launch_instance(
        self,
        request: InstanceLaunchRequest,
    ) -> InstanceLaunchResponse:
        """Launch instance(s).

        Only the new IDs are returned; fetch the instances for their state.

        Args:
            request: Launch instance request

        Returns:
            Launch response with instance IDs
        """
        return await self._request(
            "POST",
            f"{API_PREFIX}/instance-operations/launch",
            instance_launch_response_adapter,
            body=request,
        )

    async def restart_instances(
        self,
        request: InstanceRestartRequest,
    ) -> InstanceRestartResponse:
        """Restart instances.

        Args:
            request: Restart instances request

        Returns:
            Restart response with the updated instances
        """
        return await self._request(
            "POST",
            f"{API_PREFIX}/instance-operations/restart",
            instance_restart_response_adapter,
            body=request,
        )

    async def terminate_instances(
        self,
        request: InstanceTerminateRequest,
    ) -> InstanceTerminateResponse:
        """Terminate instances.

        Args:
            request: Terminate instances request

        Returns:
            Terminate response with the updated instances
        """
        return await self._request(
            "POST",
            f"{API_PREFIX}/instance-operations/terminate",
            instance_terminate_response_adapter,
            body=request,
        )

    # Instance types

    async def list_instance_types(self) -> InstanceTypes:
        """List available instance types.

        Returns:
            Instance types keyed by name, with regional availability
        """
        return await self._request(
            "GET", f"{API_PREFIX}/instance-types", instance_types_adapter
        )

    # SSH keys

    async def list_ssh_keys(self) -> list[SSHKey]:
        """List SSH keys.

        Returns:
            List of SSH keys
        """
        return await self._request(
            "GET", f"{API_PREFIX}/ssh-keys", ssh_key_list_adapter
        )

    async def add_ssh_key(
        self,
        request: AddSSHKeyRequest,
    ) -> SSHKey | GeneratedSSHKey:
        """Add an SSH key, or generate one if no public key is given.

        Args:
            request: Add key request

        Returns:
            The stored key. A GeneratedSSHKey carrying the private key when
            the API generated the key pair.
        """
        return await self._request(
            "POST", f"{API_PREFIX}/ssh-keys", add_ssh_key_adapter, body=request
        )

    async def delete_ssh_key(self, key_id: str) -> EmptyResponse:
        """Delete an SSH key.

        Args:
            key_id: SSH key ID
        """
        return await self._request(
            "DELETE", f"{API_PREFIX}/ssh-keys/{key_id}", empty_response_adapter
        )

    # Filesystems

    async def list_filesystems(self) -> list[Filesystem]:
        """List filesystems.

        Returns:
            List of filesystems
        """
        return await self._request(
            "GET", f"{API_PREFIX}/file-systems", filesystem_list_adapter
        )

    async def create_filesystem(
        self,
        request: FilesystemCreateRequest,
    ) -> Filesystem:
        """Create a filesystem.

        Args:
            request: Filesystem creation request

        Returns:
            The new filesystem
        """
        return await self._request(
            "POST", f"{API_PREFIX}/filesystems", filesystem_adapter, body=request
        )

    async def delete_filesystem(self, filesystem_id: str) -> FilesystemDeleteResponse:
        """Delete a filesystem.

        Args:
            filesystem_id: Filesystem ID

        Returns:
            IDs of the deleted filesystems
        """
        return await self._request(
            "DELETE",
            f"{API_PREFIX}/filesystems/{filesystem_id}",
            filesystem_delete_response_adapter,
        )

    # Images

    async def list_images(self) -> list[Image]:
        """List available images.

        Returns:
            List of images
        """
        return await self._request("GET", f"{API_PREFIX}/images", image_list_adapter)

    # Firewall rules

    async def list_firewall_rules(self) -> list[FirewallRule]:
        """List inbound firewall rules.

        Returns:
            List of firewall rules
        """
        return await self._request(
            "GET", f"{API_PREFIX}/firewall-rules", firewall_rule_list_adapter
        )

    async def set_firewall_rules(
        self,
        request: FirewallRulesPutRequest,
    ) -> list[FirewallRule]:
        """Replace the inbound firewall rules.

        The rules in ``request`` become the entire rule set.

        Args:
            request: Replacement rule set

        Returns:
            The rule set now in effect
        """
        return await self._request(
            "PUT",
            f"{API_PREFIX}/firewall-rules",
            firewall_rule_list_adapter,
            body=request,
        )
