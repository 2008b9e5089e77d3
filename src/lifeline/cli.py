"""CLI interface for lifeline"""

import logging
import sys

import click

from lifeline.core.config import Config
from lifeline.transport.ssh import SSHConnection

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

config_option = click.option(
    "-c",
    "--config",
    required=True,
    type=click.Path(exists=True),
    help="Path to configuration YAML file",
)
env_file_option = click.option(
    "-e",
    "--env-file",
    multiple=True,
    type=click.Path(exists=True),
    help="Load environment variables from file (can be used multiple times)",
)


def _load(config: str, env_file: tuple) -> Config:
    cfg = Config(config, env_files=list(env_file) if env_file else None)
    if not cfg.validate():
        raise click.ClickException("Configuration validation failed")
    return cfg


def _connection(cfg: Config) -> SSHConnection:
    return SSHConnection(cfg.identity, cfg.preference, cfg.options)


def _echo_chunk(data) -> None:
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    click.echo(data, nl=False)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug mode with verbose output",
)
@click.version_option(package_name="lifeline")
@click.pass_context
def cli(ctx, debug):
    """Lifeline - resilient SSH for flaky hosts

    Run commands and copy files on remote machines whose address and network
    may come and go.
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    if debug:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command("exec")
@config_option
@env_file_option
@click.option("--pty", is_flag=True, help="Request a pseudo-terminal for the command")
@click.option("--stdin", "stdin_text", default=None, help="Text sent to the command's standard input")
@click.option("--silent", is_flag=True, help="Suppress retry warnings")
@click.option(
    "--max-connection-tries",
    type=int,
    default=None,
    help="Connection attempts per address before moving on (default: 11)",
)
@click.argument("command", nargs=-1, required=True)
def exec_command(config: str, env_file: tuple, pty: bool, stdin_text, silent: bool,
                 max_connection_tries, command: tuple):
    """Execute COMMAND on the configured host

    Examples:
        lifeline exec -c host.yaml -- uname -a
        lifeline exec -c host.yaml --stdin "y" -- ./install.sh
    """
    try:
        cfg = _load(config, env_file)
        options = cfg.options
        options["pty"] = pty or options.get("pty", False)
        options["silent"] = silent or options.get("silent", False)
        if stdin_text is not None:
            options["stdin"] = stdin_text
        if max_connection_tries is not None:
            options["max_connection_tries"] = max_connection_tries

        with _connection(cfg) as connection:
            result = connection.execute(" ".join(command), options, _echo_chunk)
        sys.exit(result.exit_code)

    except click.ClickException:
        raise
    except Exception as e:
        click.echo(f"✗ Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@config_option
@env_file_option
@click.option("--recursive/--no-recursive", default=None, help="Copy directories recursively")
@click.option("--chunk-size", type=int, default=None, help="Transfer chunk size in bytes (default: 16384)")
@click.argument("source")
@click.argument("target")
def put(config: str, env_file: tuple, recursive, chunk_size, source: str, target: str):
    """Copy local SOURCE to TARGET on the configured host"""
    _transfer("put", config, env_file, recursive, chunk_size, source, target)


@cli.command()
@config_option
@env_file_option
@click.option("--recursive/--no-recursive", default=None, help="Copy directories recursively")
@click.option("--chunk-size", type=int, default=None, help="Transfer chunk size in bytes (default: 16384)")
@click.argument("source")
@click.argument("target")
def get(config: str, env_file: tuple, recursive, chunk_size, source: str, target: str):
    """Copy SOURCE on the configured host to local TARGET"""
    _transfer("get", config, env_file, recursive, chunk_size, source, target)


def _transfer(direction: str, config: str, env_file: tuple, recursive, chunk_size,
              source: str, target: str) -> None:
    try:
        cfg = _load(config, env_file)
        options = {"recursive": recursive, "chunk_size": chunk_size}

        with _connection(cfg) as connection:
            connection.connect()
            if direction == "put":
                result = connection.scp_to(source, target, options)
            else:
                result = connection.scp_from(source, target, options)
            # a failed copy closes the session instead of raising
            copied = connection.connected

        click.echo(result.stdout)
        if not copied:
            click.echo("✗ Transfer failed, connection was closed", err=True)
            sys.exit(1)
        sys.exit(0)

    except click.ClickException:
        raise
    except Exception as e:
        click.echo(f"✗ Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@config_option
@env_file_option
def probe(config: str, env_file: tuple):
    """Wait until the host drops its SSH connection (e.g. during a reboot)

    Exits 0 once the connection failed, 1 if it stayed up for every probe.
    """
    try:
        cfg = _load(config, env_file)
        with _connection(cfg) as connection:
            connection.connect()
            failed = connection.wait_for_connection_failure(cfg.options, _echo_chunk)

        if failed:
            click.echo("✓ Connection failure observed")
            sys.exit(0)
        click.echo("✗ Connection stayed up")
        sys.exit(1)

    except click.ClickException:
        raise
    except Exception as e:
        click.echo(f"✗ Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@config_option
@env_file_option
def validate(config: str, env_file: tuple):
    """Validate configuration file

    Examples:
        lifeline validate -c host.yaml
        lifeline validate -c host.yaml -e .env.prod
    """
    try:
        cfg = Config(config, env_files=list(env_file) if env_file else None)

        if not cfg.validate():
            click.echo("✗ Configuration validation failed")
            sys.exit(1)

        identity = cfg.identity
        click.echo("✓ Configuration is valid")
        click.echo(f"  Host: {identity.name}")
        click.echo(f"  User: {identity.user}")
        click.echo(f"  Preference: {', '.join(cfg.preference)}")
        sys.exit(0)

    except Exception as e:
        click.echo(f"✗ Error: {e}")
        sys.exit(1)


def main():
    """Entry point for CLI"""
    cli()


if __name__ == "__main__":
    main()
