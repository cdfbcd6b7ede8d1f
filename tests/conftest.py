"""Shared fixtures: an in-process stand-in for the Lambda Cloud API."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from multidict import CIMultiDict

from lambda_cloud import LambdaCloudClient


API_KEY = "secret_test_abc123"


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: CIMultiDict[str]
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body)


class FakeLambdaApi:
    """aiohttp app that serves canned responses and records requests."""

    def __init__(self) -> None:
        self.base_url = ""
        self.requests: list[RecordedRequest] = []
        self._routes: dict[tuple[str, str], tuple[int, str, float]] = {}
        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self._handle)

    def respond(
        self,
        method: str,
        path: str,
        payload: Any = None,
        *,
        status: int = 200,
        text: str | None = None,
        delay: float = 0.0,
    ) -> None:
        body = text if text is not None else json.dumps(payload)
        self._routes[(method, path)] = (status, body, delay)

    def data(self, method: str, path: str, data: Any, **kwargs: Any) -> None:
        self.respond(method, path, {"data": data}, **kwargs)

    def error(
        self,
        method: str,
        path: str,
        code: str,
        message: str,
        suggestion: str | None = None,
        *,
        status: int = 400,
    ) -> None:
        error: dict[str, str] = {"code": code, "message": message}
        if suggestion is not None:
            error["suggestion"] = suggestion
        self.respond(method, path, {"error": error}, status=status)

    @property
    def last(self) -> RecordedRequest:
        return self.requests[-1]

    async def _handle(self, request: web.Request) -> web.Response:
        body = await request.read()
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path=request.path,
                headers=request.headers.copy(),
                body=body,
            )
        )
        try:
            status, text, delay = self._routes[(request.method, request.path)]
        except KeyError:
            return web.json_response(
                {"error": {"code": "global/not-found", "message": "No such route"}},
                status=404,
            )
        if delay:
            await asyncio.sleep(delay)
        return web.Response(status=status, text=text, content_type="application/json")


@pytest_asyncio.fixture
async def fake_api():
    api = FakeLambdaApi()
    server = TestServer(api.app)
    await server.start_server()
    api.base_url = str(server.make_url("/")).rstrip("/")
    try:
        yield api
    finally:
        await server.close()


@pytest_asyncio.fixture
async def client(fake_api):
    async with LambdaCloudClient(api_key=API_KEY, base_url=fake_api.base_url) as client:
        yield client


# ============================================================================
# Payload factories
# ============================================================================


def _region(name: str = "us-east-1") -> dict[str, str]:
    return {"name": name, "description": f"Region {name}"}


def _instance_type(name: str = "gpu_1x_a10") -> dict[str, Any]:
    return {
        "name": name,
        "description": "1x A10 (24 GB PCIe)",
        "gpu_description": "A10 (24 GB PCIe)",
        "price_cents_per_hour": 75,
        "specs": {"vcpus": 30, "memory_gib": 200, "storage_gib": 1400, "gpus": 1},
    }


def _actions() -> dict[str, Any]:
    available = {"available": True}
    return {
        "migrate": {
            "available": False,
            "reason_code": "vm-is-too-old",
            "reason_description": "Instance is too old to migrate",
        },
        "rebuild": available,
        "restart": available,
        "cold_reboot": available,
        "terminate": available,
    }


@pytest.fixture
def make_region():
    return _region


@pytest.fixture
def make_instance_type():
    return _instance_type


@pytest.fixture
def make_instance():
    def make(
        instance_id: str = "0920582c7ff041399e34823a0be62549",
        status: str = "active",
        ip: str | None = "10.0.0.1",
        name: str | None = "training-node",
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": instance_id,
            "status": status,
            "ssh_key_names": ["macbook-pro"],
            "file_system_names": ["shared-fs"],
            "region": _region(),
            "instance_type": _instance_type(),
            "actions": _actions(),
        }
        if ip is not None:
            payload["ip"] = ip
            payload["private_ip"] = "10.19.0.4"
        if name is not None:
            payload["name"] = name
        return payload

    return make


@pytest.fixture
def make_filesystem():
    def make(
        filesystem_id: str = "398578a2336b49079e74043f0bd2cfe8",
        name: str = "shared-fs",
        region: str = "us-east-1",
    ) -> dict[str, Any]:
        return {
            "id": filesystem_id,
            "name": name,
            "mount_point": f"/lambda/nfs/{name}",
            "created": "2023-02-24T20:48:56+00:00",
            "created_by": {
                "id": "3e1f5f0b6c6b4d7c9b2a1f0e9d8c7b6a",
                "email": "teammate@example.com",
                "status": "active",
            },
            "is_in_use": False,
            "region": _region(region),
            "bytes_used": 2147483648,
        }

    return make


@pytest.fixture
def make_image():
    def make(
        image_id: str = "43336648-096d-4b6f-a2ba-1e2c0d3e4f50",
        region: str = "us-east-1",
        family: str = "lambda-stack-22-04",
    ) -> dict[str, Any]:
        return {
            "id": image_id,
            "created_time": "2024-06-11T12:00:00Z",
            "updated_time": "2024-06-12T12:00:00Z",
            "name": "Lambda Stack 22.04",
            "description": "Ubuntu 22.04 with Lambda Stack",
            "family": family,
            "version": "22.04",
            "architecture": "x86_64",
            "region": _region(region),
        }

    return make
