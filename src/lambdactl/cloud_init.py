"""Cloud-init user data rendering with Jinja2."""

from __future__ import annotations

import base64
from importlib.resources import files
from typing import Any

from jinja2 import StrictUndefined, Template


CLOUD_INIT_TEMPLATE = "cloud-init.yaml.j2"


def load_cloud_init_template(context: dict[str, Any]) -> str:
    """Render the packaged cloud-init user data.

    A context missing a template variable raises ``jinja2.UndefinedError``.
    """
    source = (
        files("lambdactl")
        .joinpath("templates", CLOUD_INIT_TEMPLATE)
        .read_text(encoding="utf-8")
    )
    return Template(source, undefined=StrictUndefined).render(**context)


def encode_cloud_init(content: str) -> str:
    """Encode cloud-init content to base64.

    Args:
        content: Cloud-init YAML content

    Returns:
        Base64-encoded string suitable for the launch request user_data field
    """
    return base64.b64encode(content.encode("utf-8")).decode("ascii")
