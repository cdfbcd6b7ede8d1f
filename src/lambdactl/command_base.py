"""Base classes for command pattern implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from pydantic import BaseModel, Field
from rich.console import Console

from lambda_cloud import LambdaCloudClient
from lambdactl.config import ApiConfig, SshConfig


class CommandError(Exception):
    """Command execution error."""

    pass


class BaseCommand(ABC):
    """Base class for commands."""

    def __init__(
        self, config: BaseCommandConfig, console: Console | None = None
    ) -> None:
        """Initialize command.

        Args:
            config: Full configuration (includes command-specific fields)
            console: Rich console for output (creates default if None)
        """
        self.config = config
        self.console = console or Console()

    def client(self) -> LambdaCloudClient:
        """Create an API client from the global API configuration."""
        return LambdaCloudClient(
            api_key=self.config.api.api_key,
            base_url=self.config.api.base_url,
            auth_method=self.config.api.auth_method,
        )

    @abstractmethod
    async def run(self) -> None:
        """Execute the command.

        Raises:
            CommandError: If command execution fails
        """
        ...


class BaseCommandConfig(BaseModel, ABC):
    """Base configuration for all commands.

    This serves as the root config. All global configs are here,
    and command-specific fields are added in subclasses.
    """

    # Global configurations (available to all commands)
    api: ApiConfig = Field(description="API configuration")
    ssh: SshConfig = Field(description="SSH configuration")

    # Command class binding
    _command_class: ClassVar[type[BaseCommand]]

    def create_command(self, console: Console | None = None) -> BaseCommand:
        """Create command instance from this config.

        Args:
            console: Rich console for output (creates default if None)

        Returns:
            Command instance with full config
        """
        return self._command_class(config=self, console=console)
