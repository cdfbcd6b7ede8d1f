"""Command implementations using command pattern."""

from __future__ import annotations

import logging
import os
from collections import defaultdict
from pathlib import Path
from typing import Annotated, ClassVar, Literal

from pydantic import Field, TypeAdapter, model_validator
from rich.panel import Panel
from rich.table import Table

from lambda_cloud import (
    AddSSHKeyRequest,
    FilesystemCreateRequest,
    FirewallRule,
    FirewallRulesPutRequest,
    GeneratedSSHKey,
    Image,
    ImageSpecificationFamily,
    ImageSpecificationID,
    InstanceLaunchRequest,
    InstanceModificationRequest,
    InstanceRestartRequest,
    InstanceTerminateRequest,
    LambdaCloudClient,
)
from lambda_cloud.models import InstanceStatus, PublicRegionCode
from lambdactl.cloud_init import encode_cloud_init, load_cloud_init_template
from lambdactl.command_base import BaseCommand, BaseCommandConfig, CommandError
from lambdactl.config import ListResource


log = logging.getLogger(__name__)


def ssh_command(ip: str, username: str) -> str:
    """Generate SSH command string.

    Args:
        ip: Instance IP address
        username: SSH username

    Returns:
        SSH command string
    """
    return f"ssh {username}@{ip}"


def format_ports(rule: FirewallRule) -> str:
    """Render a rule's port range as ``80`` or ``8000-8080``."""
    if rule.port_range is None:
        return "-"
    low, high = rule.port_range
    return str(low) if low == high else f"{low}-{high}"


def format_bytes(size: int | None) -> str:
    if size is None:
        return "Unknown"
    size_gb = size / (1024**3)
    if size_gb < 1:
        return f"{size / (1024**2):.1f} MB"
    return f"{size_gb:.1f} GB"


def _details_table() -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1), expand=False)
    table.add_column(style="dim", justify="right", no_wrap=True)
    table.add_column(style="white")
    return table


# ============================================================================
# List Command
# ============================================================================


class ListCommand(BaseCommand):
    """List Lambda Cloud resources."""

    config: ListCommandConfig

    async def run(self) -> None:
        """Execute list command."""
        async with self.client() as client:
            match self.config.resource:
                case ListResource.instances:
                    await self._list_instances(client)
                case ListResource.instance_types:
                    await self._list_instance_types(client)
                case ListResource.images:
                    await self._list_images(client)
                case ListResource.filesystems:
                    await self._list_filesystems(client)
                case ListResource.ssh_keys:
                    await self._list_ssh_keys(client)
                case ListResource.firewall_rules:
                    await self._list_firewall_rules(client)
                case _:
                    raise CommandError(f"Unknown resource: {self.config.resource}")

    async def _available_regions(self, client: LambdaCloudClient) -> set[str]:
        """Regions where at least one instance type has capacity."""
        instance_types = await client.list_instance_types()
        return {
            region.name.value
            for item in instance_types.root.values()
            for region in item.regions_with_capacity_available
        }

    async def _list_instances(self, client: LambdaCloudClient) -> None:
        instances = await client.list_instances()

        if not instances:
            self.console.print("[dim]No instances found[/dim]")
            return

        table = Table(title="Lambda Cloud Instances")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Status", style="magenta")
        table.add_column("IP", style="green")
        table.add_column("Region", style="blue")
        table.add_column("Type", style="yellow")
        table.add_column("Name", style="white")

        for inst in instances:
            status_style = {
                InstanceStatus.active: "bold green",
                InstanceStatus.booting: "bold yellow",
                InstanceStatus.unhealthy: "bold red",
                InstanceStatus.terminating: "yellow",
                InstanceStatus.terminated: "dim",
            }[inst.status]

            table.add_row(
                inst.id,
                f"[{status_style}]{inst.status.value}[/{status_style}]",
                inst.ip or "-",
                inst.region.name.value,
                inst.instance_type.name,
                inst.name or "",
            )

        self.console.print(table)

    async def _list_instance_types(self, client: LambdaCloudClient) -> None:
        data = await client.list_instance_types()

        items = list(data.root.items())
        if self.config.available_only:
            items = [
                (name, item)
                for name, item in items
                if item.regions_with_capacity_available
            ]

        # Available first, then most expensive first
        items.sort(
            key=lambda x: (
                not x[1].regions_with_capacity_available,
                -x[1].instance_type.price_cents_per_hour,
                x[0],
            )
        )

        for _name, item in items:
            it = item.instance_type
            specs = it.specs
            price = it.price_cents_per_hour / 100

            if item.regions_with_capacity_available:
                regions = ", ".join(
                    r.name.value for r in item.regions_with_capacity_available
                )
                regions_display = f"[green]✓[/green] {regions}"
            else:
                regions_display = "[dim]None[/dim]"

            self.console.print(f"\n[bold cyan]{it.name}[/bold cyan] - {it.description}")

            table = _details_table()
            table.add_row("GPU Type:", it.gpu_description)
            table.add_row(
                "GPUs:", str(specs.gpus) if specs.gpus > 0 else "0 (CPU only)"
            )
            table.add_row("vCPUs:", str(specs.vcpus))
            table.add_row("RAM:", f"{specs.memory_gib} GiB")
            table.add_row("Storage:", f"{specs.storage_gib} GiB")
            table.add_row(
                "Price:", f"${price:.2f}/hour (${price * 24:.2f}/day)"
            )
            table.add_row("Available:", regions_display)
            self.console.print(table)

        available_count = sum(
            1 for item in data.root.values() if item.regions_with_capacity_available
        )
        self.console.print(
            f"\n[bold]{available_count}[/bold] of {len(data.root)} instance types have capacity available"
        )

    async def _list_images(self, client: LambdaCloudClient) -> None:
        images = await client.list_images()

        available_regions: set[str] = set()
        if self.config.available_only:
            available_regions = await self._available_regions(client)
            images = [
                img for img in images if img.region.name.value in available_regions
            ]

        if not images:
            self.console.print("[dim]No images found[/dim]")
            return

        # One group per image, with a variant per region
        groups: dict[tuple[str, str, str], list[Image]] = defaultdict(list)
        for img in images:
            groups[(img.family, img.version, img.architecture.value)].append(img)

        for (family, version, architecture), variants in sorted(groups.items()):
            first = variants[0]
            self.console.print(f"\n[bold cyan]{first.name}[/bold cyan]")
            self.console.print(f"[dim]Description:[/dim] {first.description}")
            self.console.print(
                f"[dim]Family:[/dim] {family}  [dim]Version:[/dim] {version}  "
                f"[dim]Architecture:[/dim] {architecture}"
            )

            table = Table(show_header=True, box=None, padding=(0, 1))
            table.add_column("ID", style="yellow", no_wrap=True)
            table.add_column("Region", style="cyan")
            table.add_column("Updated", style="dim")
            for img in sorted(variants, key=lambda x: x.region.name.value):
                table.add_row(
                    img.id,
                    img.region.name.value,
                    img.updated_time.strftime("%Y-%m-%d"),
                )
            self.console.print(table)

        self.console.print(
            f"\n[bold]{len(groups)}[/bold] unique images with {len(images)} regional variants"
        )

    async def _list_filesystems(self, client: LambdaCloudClient) -> None:
        filesystems = await client.list_filesystems()

        if self.config.available_only:
            available_regions = await self._available_regions(client)
            filesystems = [
                fs for fs in filesystems if fs.region.name.value in available_regions
            ]

        if not filesystems:
            self.console.print("[dim]No filesystems found[/dim]")
            return

        for fs in filesystems:
            self.console.print(f"\n[bold cyan]{fs.name}[/bold cyan]")
            table = _details_table()
            table.add_row("ID:", fs.id)
            table.add_row("Region:", fs.region.name.value)
            table.add_row("Mount Point:", fs.mount_point)
            table.add_row(
                "Status:",
                "[green]In use[/green]" if fs.is_in_use else "[dim]Not in use[/dim]",
            )
            table.add_row("Size:", format_bytes(fs.bytes_used))
            table.add_row("Created:", fs.created.strftime("%Y-%m-%d %H:%M:%S"))
            table.add_row("Created By:", fs.created_by.email)
            self.console.print(table)

        self.console.print(f"\n[bold]{len(filesystems)}[/bold] filesystems")

    async def _list_ssh_keys(self, client: LambdaCloudClient) -> None:
        ssh_keys = await client.list_ssh_keys()

        if not ssh_keys:
            self.console.print("[dim]No SSH keys found[/dim]")
            return

        for ssh_key in ssh_keys:
            self.console.print(f"\n[bold cyan]{ssh_key.name}[/bold cyan]")
            table = _details_table()
            table.add_row("ID:", ssh_key.id)
            table.add_row("Public Key:", ssh_key.public_key)
            self.console.print(table)

        self.console.print(f"\n[bold]{len(ssh_keys)}[/bold] SSH keys")

    async def _list_firewall_rules(self, client: LambdaCloudClient) -> None:
        rules = await client.list_firewall_rules()

        if not rules:
            self.console.print("[dim]No firewall rules found[/dim]")
            return

        table = Table(title="Inbound Firewall Rules")
        table.add_column("Protocol", style="cyan")
        table.add_column("Ports", style="yellow")
        table.add_column("Source", style="green")
        table.add_column("Description", style="white")
        for rule in rules:
            table.add_row(
                rule.protocol.value,
                format_ports(rule),
                rule.source_network,
                rule.description,
            )
        self.console.print(table)


class ListCommandConfig(BaseCommandConfig):
    """Configuration for list command."""

    command: Literal["list"] = "list"
    resource: ListResource = Field(description="Resource type to list")
    available_only: bool = Field(
        default=False,
        description="Only show resources in regions with available capacity",
    )

    _command_class: ClassVar[type[BaseCommand]] = ListCommand


# ============================================================================
# Up Command
# ============================================================================


class UpCommand(BaseCommand):
    """Launch an instance, optionally with cloud-init user data."""

    config: UpCommandConfig

    def build_request(self) -> InstanceLaunchRequest:
        """Build the launch request from the command configuration."""
        image: ImageSpecificationID | ImageSpecificationFamily | None = None
        if self.config.image_id:
            image = ImageSpecificationID(id=self.config.image_id)
        elif self.config.image_family:
            image = ImageSpecificationFamily(family=self.config.image_family)

        user_data = None
        if self.config.cloud_init:
            user_data = encode_cloud_init(
                load_cloud_init_template(self._build_cloud_init_context())
            )

        return InstanceLaunchRequest(
            region_name=self.config.region,
            instance_type_name=self.config.instance_type,
            ssh_key_names=[self.config.ssh_key_name],
            file_system_names=(
                [self.config.filesystem_name] if self.config.filesystem_name else None
            ),
            name=self.config.instance_name,
            image=image,
            user_data=user_data,
        )

    async def run(self) -> None:
        """Execute up command."""
        request = self.build_request()

        async with self.client() as client:
            with self.console.status(
                f"[bold green]Launching {self.config.instance_type} in {self.config.region.value}..."
            ):
                response = await client.launch_instance(request)

        if not response.instance_ids:
            log.warning("Launch returned no instance IDs")
            self.console.print("[yellow]⚠[/yellow] Launch returned no instance IDs")
            return

        for instance_id in response.instance_ids:
            self.console.print(f"[green]✓[/green] Launched: [cyan]{instance_id}[/cyan]")

    def _build_cloud_init_context(self) -> dict[str, str | None]:
        """Build Jinja2 context for cloud-init template rendering.

        Returns:
            Dictionary of template variables
        """
        filesystem_mount = None
        if self.config.filesystem_name:
            # Lambda mounts filesystems under /lambda/nfs/<name>
            filesystem_mount = f"/lambda/nfs/{self.config.filesystem_name}"

        return {
            "filesystem_name": self.config.filesystem_name,
            "filesystem_mount": filesystem_mount,
            "ssh_username": self.config.ssh.username,
        }


class UpCommandConfig(BaseCommandConfig):
    """Configuration for up (launch) command."""

    command: Literal["up"] = "up"
    region: PublicRegionCode = Field(description="Lambda Cloud region")
    instance_type: str = Field(description="Instance type name")
    ssh_key_name: str = Field(description="SSH key name")
    filesystem_name: str | None = Field(
        default=None, description="Filesystem name to attach"
    )
    instance_name: str | None = Field(default=None, description="Instance name")
    image_id: str | None = Field(default=None, description="Image ID to use")
    image_family: str | None = Field(default=None, description="Image family to use")
    cloud_init: bool = Field(
        default=False, description="Send rendered cloud-init as user data"
    )

    _command_class: ClassVar[type[BaseCommand]] = UpCommand

    @model_validator(mode="after")
    def _check_image(self) -> UpCommandConfig:
        if self.image_id and self.image_family:
            raise ValueError("image_id and image_family are mutually exclusive")
        return self


# ============================================================================
# Down Command
# ============================================================================


class DownCommand(BaseCommand):
    """Terminate an instance."""

    config: DownCommandConfig

    async def run(self) -> None:
        """Execute down command."""
        request = InstanceTerminateRequest(instance_ids=[self.config.instance_id])

        async with self.client() as client:
            with self.console.status(
                f"[bold red]Terminating instance {self.config.instance_id}..."
            ):
                response = await client.terminate_instances(request)

        for inst in response.terminated_instances:
            self.console.print(
                f"[green]✓[/green] Instance [cyan]{inst.id}[/cyan] is {inst.status.value}"
            )


class DownCommandConfig(BaseCommandConfig):
    """Configuration for down (terminate) command."""

    command: Literal["down"] = "down"
    instance_id: str = Field(description="Instance ID to terminate")

    _command_class: ClassVar[type[BaseCommand]] = DownCommand


# ============================================================================
# Restart Command
# ============================================================================


class RestartCommand(BaseCommand):
    """Restart an instance."""

    config: RestartCommandConfig

    async def run(self) -> None:
        """Execute restart command."""
        request = InstanceRestartRequest(instance_ids=[self.config.instance_id])

        async with self.client() as client:
            with self.console.status(
                f"[bold yellow]Restarting instance {self.config.instance_id}..."
            ):
                response = await client.restart_instances(request)

        for inst in response.restarted_instances:
            self.console.print(
                f"[green]✓[/green] Instance [cyan]{inst.id}[/cyan] is {inst.status.value}"
            )


class RestartCommandConfig(BaseCommandConfig):
    """Configuration for restart command."""

    command: Literal["restart"] = "restart"
    instance_id: str = Field(description="Instance ID to restart")

    _command_class: ClassVar[type[BaseCommand]] = RestartCommand


# ============================================================================
# Rename Command
# ============================================================================


class RenameCommand(BaseCommand):
    """Rename an instance."""

    config: RenameCommandConfig

    async def run(self) -> None:
        """Execute rename command."""
        request = InstanceModificationRequest(name=self.config.instance_name)

        async with self.client() as client:
            inst = await client.update_instance(self.config.instance_id, request)

        self.console.print(
            f"[green]✓[/green] Instance [cyan]{inst.id}[/cyan] renamed to [bold]{inst.name}[/bold]"
        )


class RenameCommandConfig(BaseCommandConfig):
    """Configuration for rename command."""

    command: Literal["rename"] = "rename"
    instance_id: str = Field(description="Instance ID")
    instance_name: str = Field(description="New instance name")

    _command_class: ClassVar[type[BaseCommand]] = RenameCommand


# ============================================================================
# SSH Command
# ============================================================================


class SshCommand(BaseCommand):
    """Get SSH command for an instance."""

    config: SshCommandConfig

    async def run(self) -> None:
        """Execute ssh command."""
        async with self.client() as client:
            with self.console.status(
                f"[bold cyan]Fetching instance {self.config.instance_id}..."
            ):
                inst = await client.get_instance(self.config.instance_id)

        if not inst.ip:
            raise CommandError(
                f"Instance {self.config.instance_id} has no IP address yet"
            )

        self.console.print(
            Panel(
                ssh_command(inst.ip, username=self.config.ssh.username),
                title=f"SSH Command for {self.config.instance_id}",
                border_style="cyan",
            )
        )


class SshCommandConfig(BaseCommandConfig):
    """Configuration for ssh command."""

    command: Literal["ssh"] = "ssh"
    instance_id: str = Field(description="Instance ID")

    _command_class: ClassVar[type[BaseCommand]] = SshCommand


# ============================================================================
# SSH Key Commands
# ============================================================================


class KeyAddCommand(BaseCommand):
    """Add an SSH key, or have the API generate one."""

    config: KeyAddCommandConfig

    async def run(self) -> None:
        """Execute key-add command."""
        public_key = None
        if self.config.public_key_file:
            public_key = self.config.public_key_file.read_text(encoding="utf-8").strip()

        # A generated private key is returned only once
        private_key_path = self.config.private_key_file or Path(
            f"{self.config.key_name}.pem"
        )
        if public_key is None and private_key_path.exists():
            raise CommandError(
                f"Private key file {private_key_path} already exists, "
                "refusing to generate a key"
            )

        request = AddSSHKeyRequest(name=self.config.key_name, public_key=public_key)

        async with self.client() as client:
            key = await client.add_ssh_key(request)

        self.console.print(
            f"[green]✓[/green] Added SSH key [cyan]{key.name}[/cyan] ({key.id})"
        )

        if isinstance(key, GeneratedSSHKey):
            self._write_private_key(private_key_path, key.private_key)
            self.console.print(
                f"[yellow]Private key written to[/yellow] {private_key_path}"
            )

    @staticmethod
    def _write_private_key(path: Path, private_key: str) -> None:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(private_key)


class KeyAddCommandConfig(BaseCommandConfig):
    """Configuration for key-add command."""

    command: Literal["key-add"] = "key-add"
    key_name: str = Field(description="SSH key name")
    public_key_file: Path | None = Field(
        default=None,
        description="Public key to upload; a key pair is generated if omitted",
    )
    private_key_file: Path | None = Field(
        default=None,
        description="Where to write a generated private key",
    )

    _command_class: ClassVar[type[BaseCommand]] = KeyAddCommand


class KeyDeleteCommand(BaseCommand):
    """Delete an SSH key."""

    config: KeyDeleteCommandConfig

    async def run(self) -> None:
        """Execute key-delete command."""
        async with self.client() as client:
            await client.delete_ssh_key(self.config.key_id)

        self.console.print(
            f"[green]✓[/green] Deleted SSH key [cyan]{self.config.key_id}[/cyan]"
        )


class KeyDeleteCommandConfig(BaseCommandConfig):
    """Configuration for key-delete command."""

    command: Literal["key-delete"] = "key-delete"
    key_id: str = Field(description="SSH key ID")

    _command_class: ClassVar[type[BaseCommand]] = KeyDeleteCommand


# ============================================================================
# Filesystem Commands
# ============================================================================


class FsCreateCommand(BaseCommand):
    """Create a filesystem."""

    config: FsCreateCommandConfig

    async def run(self) -> None:
        """Execute fs-create command."""
        request = FilesystemCreateRequest(
            name=self.config.filesystem_name,
            region=self.config.region,
        )

        async with self.client() as client:
            fs = await client.create_filesystem(request)

        self.console.print(
            f"[green]✓[/green] Created filesystem [cyan]{fs.name}[/cyan] ({fs.id}) "
            f"mounted at {fs.mount_point}"
        )


class FsCreateCommandConfig(BaseCommandConfig):
    """Configuration for fs-create command."""

    command: Literal["fs-create"] = "fs-create"
    filesystem_name: str = Field(description="Filesystem name")
    region: PublicRegionCode = Field(description="Lambda Cloud region")

    _command_class: ClassVar[type[BaseCommand]] = FsCreateCommand


class FsDeleteCommand(BaseCommand):
    """Delete a filesystem."""

    config: FsDeleteCommandConfig

    async def run(self) -> None:
        """Execute fs-delete command."""
        async with self.client() as client:
            response = await client.delete_filesystem(self.config.filesystem_id)

        for deleted_id in response.deleted_ids:
            self.console.print(
                f"[green]✓[/green] Deleted filesystem [cyan]{deleted_id}[/cyan]"
            )


class FsDeleteCommandConfig(BaseCommandConfig):
    """Configuration for fs-delete command."""

    command: Literal["fs-delete"] = "fs-delete"
    filesystem_id: str = Field(description="Filesystem ID")

    _command_class: ClassVar[type[BaseCommand]] = FsDeleteCommand


# ============================================================================
# Firewall Command
# ============================================================================


class FirewallSetCommand(BaseCommand):
    """Replace the inbound firewall rules."""

    config: FirewallSetCommandConfig

    async def run(self) -> None:
        """Execute firewall-set command."""
        request = FirewallRulesPutRequest(data=self.config.rules)

        async with self.client() as client:
            rules = await client.set_firewall_rules(request)

        self.console.print(
            f"[green]✓[/green] Firewall now has [bold]{len(rules)}[/bold] inbound rule(s)"
        )
        for rule in rules:
            self.console.print(
                f"  {rule.protocol.value:<5} {format_ports(rule):<12} "
                f"{rule.source_network:<18} {rule.description}"
            )


class FirewallSetCommandConfig(BaseCommandConfig):
    """Configuration for firewall-set command."""

    command: Literal["firewall-set"] = "firewall-set"
    rules: list[FirewallRule] = Field(
        description="Complete inbound rule set; replaces the existing rules"
    )

    _command_class: ClassVar[type[BaseCommand]] = FirewallSetCommand


# ============================================================================
# Discriminated Union
# ============================================================================

CommandConfig = Annotated[
    ListCommandConfig
    | UpCommandConfig
    | DownCommandConfig
    | RestartCommandConfig
    | RenameCommandConfig
    | SshCommandConfig
    | KeyAddCommandConfig
    | KeyDeleteCommandConfig
    | FsCreateCommandConfig
    | FsDeleteCommandConfig
    | FirewallSetCommandConfig,
    Field(discriminator="command"),
]

# Type adapter for validation
command_adapter: TypeAdapter[CommandConfig] = TypeAdapter(CommandConfig)
