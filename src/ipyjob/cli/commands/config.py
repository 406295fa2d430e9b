"""Configuration management commands."""

import click


@click.group()
def config():
    """Manage ipyjob configuration files."""
    pass


@config.command(name="init")
@click.option(
    "--location",
    type=click.Choice(["user", "project"], case_sensitive=False),
    default="user",
    help="Where to create the configuration file.",
)
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing configuration file.",
)
def config_init(location, force):
    """Create an example configuration file.

    By default, a user-level config file is created at
    ~/.config/ipyjob/config.toml (or the platform equivalent). Use
    --location=project to create .ipyjob/config.toml in the current directory.

    Examples:
        ipyjob config init                     # Create user config
        ipyjob config init --location=project  # Create project config
        ipyjob config init --force             # Overwrite existing config
    """
    from ipyjob.infrastructure.config import (
        get_config_file_locations,
        write_example_config,
    )

    config_path = get_config_file_locations()[location.lower()]

    if config_path.exists() and not force:
        click.echo(f"Configuration file already exists at {config_path}\nUse --force to overwrite.")
        return

    try:
        created_path = write_example_config(location=location.lower())
    except OSError as e:
        click.echo(f"Error creating configuration file: {e}", err=True)
        raise SystemExit(1) from e
    click.echo(f"Created configuration file: {created_path}")
    click.echo("\nEdit this file to register your kernels.")


@config.command(name="show")
def config_show():
    """Show the current configuration, merged from all sources."""
    from ipyjob.infrastructure.config import get_config

    cfg = get_config(reload=True)

    click.echo("Current ipyjob Configuration:")
    click.echo("=" * 60)

    click.echo(f"\ndefault_kernel: {cfg.default_kernel or '(first server)'}")

    for index, server in enumerate(cfg.servers):
        click.echo(f"\n[Server {index}]")
        click.echo(f"  server_name: {server.server_name}")
        click.echo(f"  kernel: {server.kernel}")
        click.echo(f"  launch_timeout: {server.launch_timeout:g}")
        click.echo(f"  max_results: {server.max_results}")
        if server.execution_timeout is None:
            click.echo("  execution_timeout: (no limit)")
        else:
            click.echo(f"  execution_timeout: {server.execution_timeout:g}")
        click.echo(f"  connection_file: {server.connection_file or '(not set)'}")

    click.echo("\n[Paths]")
    click.echo(f"  workspace_path: {cfg.paths.workspace_path or '(not set)'}")
    click.echo(f"  artifact_dir: {cfg.paths.artifact_dir or '(not set)'}")
    click.echo(f"  report_file: {cfg.paths.report_file or '(not set)'}")

    click.echo("\n[Logging]")
    click.echo(f"  log_level: {cfg.logging.log_level}")
    click.echo(f"  console_logging: {cfg.logging.console_logging}")


@config.command(name="locate")
def config_locate():
    """Show where ipyjob looks for configuration files."""
    from ipyjob.infrastructure.config import find_config_files, get_config_file_locations

    locations = get_config_file_locations()
    existing = find_config_files()

    click.echo("Configuration File Locations:")
    click.echo("=" * 60)

    for kind, title in (
        ("system", "System config (lowest priority)"),
        ("user", "User config"),
        ("project", "Project config (highest priority)"),
    ):
        click.echo(f"\n{title}:")
        click.echo(f"  Path: {existing[kind] or locations[kind]}")
        click.echo(f"  Status: {'Exists' if existing[kind] else 'Not found'}")

    click.echo("\nPriority order (highest to lowest):")
    click.echo("  1. Environment variables")
    click.echo("  2. Project config (.ipyjob/config.toml or ipyjob.toml)")
    click.echo("  3. User config (~/.config/ipyjob/config.toml)")
    click.echo("  4. System config (/etc/ipyjob/config.toml)")
    click.echo("  5. Default values")
