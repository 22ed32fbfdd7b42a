"""CLI for the NTAG424 SDM codec.

This module provides commands to generate master keys, encode tag data
into SDM URLs, decode and verify SDM messages, and list SDM profiles.

Example:
    $ ntag424-sdm keygen
    $ ntag424-sdm encode --key 00112233445566778899AABBCCDDEEFF \\
          --uid 04AABBCCDDEE80 --counter 42
    $ ntag424-sdm decode --key 00112233445566778899AABBCCDDEEFF \\
          "https://example.com/nfc?picc_data=...&cmac=..."
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ntag424 import get_version_info
from ntag424.observability import LoggerManager, LoggingConfig
from ntag424.sdm import (
    PROFILES,
    CodecOptions,
    Decoder,
    DerivationMethod,
    Encoder,
    NTAG424Error,
    generate_master_key,
)

console = Console()
err_console = Console(stderr=True)

METHOD_CHOICES = [method.value for method in DerivationMethod]


def setup_logging(verbose: bool = False, log_format: str = "text") -> None:
    """Set up logging with a Rich handler, or JSON lines on stderr."""
    level = "DEBUG" if verbose else "WARNING"
    if log_format == "json":
        LoggerManager(LoggingConfig(level=level, format="json")).configure()
        return
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
    )


def load_options(
    config: Optional[Path],
    method: Optional[str] = None,
    profile: Optional[str] = None,
    **flags: Any,
) -> CodecOptions:
    """Build codec options from a YAML file plus command-line overrides."""
    data: Dict[str, Any] = {}
    if config:
        with open(config) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise click.BadParameter("configuration file must contain a mapping", param_hint="--config")

    options = CodecOptions.from_dict(data)
    overrides: Dict[str, Any] = {k: v for k, v in flags.items() if v is not None}
    if method:
        overrides["key_derivation_method"] = method
    if profile:
        overrides["sdm_profile"] = profile
    return options.merged(overrides)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Log output format",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_format: str) -> None:
    """NTAG424 DNA Secure Dynamic Messaging codec.

    Encodes and decodes the encrypted, CMAC-authenticated UID and read
    counter that NTAG424 DNA tags mirror into their URLs.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose, log_format)


@cli.command()
@click.option("-n", "--count", type=click.IntRange(min=1), default=1, help="Number of keys")
def keygen(count: int) -> None:
    """Generate random 16-byte master keys."""
    for _ in range(count):
        click.echo(generate_master_key())


@cli.command()
@click.option(
    "-k", "--key",
    required=True,
    envvar="NTAG424_MASTER_KEY",
    help="Master key as 32 hex characters",
)
@click.option("-u", "--uid", required=True, help="Tag UID as 14 hex characters (starts with 04)")
@click.option("-n", "--counter", type=int, required=True, help="Read counter (0 to 16777215)")
@click.option("-d", "--file-data", default=None, help="File data to encrypt (requires 'full' profile)")
@click.option("-m", "--method", type=click.Choice(METHOD_CHOICES), default=None, help="Key derivation method")
@click.option("-p", "--profile", type=click.Choice(list(PROFILES)), default=None, help="SDM profile")
@click.option("-b", "--base-url", default="https://example.com/nfc", help="Base URL for the tag")
@click.option(
    "-c", "--config",
    type=click.Path(exists=True, path_type=Path),
    help="YAML configuration file",
)
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
def encode(
    key: str,
    uid: str,
    counter: int,
    file_data: Optional[str],
    method: Optional[str],
    profile: Optional[str],
    base_url: str,
    config: Optional[Path],
    as_json: bool,
) -> None:
    """Encrypt a UID and read counter into an SDM URL."""
    try:
        options = load_options(config, method, profile)
        result = Encoder(options).encrypt(key, uid, counter, file_data)
    except NTAG424Error as e:
        err_console.print(f"[red]Error:[/red] {e.message}")
        err_console.print(f"[dim]Hint: {e.hint}[/dim]")
        sys.exit(1)

    if as_json:
        output = result.to_dict()
        output["url"] = result.generate_url(base_url)
        click.echo(json.dumps(output, indent=2))
        return

    table = Table(title="Encoded SDM Message")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("PICC", result.encrypted.picc)
    if result.encrypted.enc:
        table.add_row("ENC", result.encrypted.enc)
    table.add_row("CMAC", result.encrypted.cmac)
    table.add_row("Profile", result.metadata["profile_used"])
    table.add_row("Method", result.original_data["key_derivation_method"])
    console.print(table)
    click.echo(result.generate_url(base_url))


@cli.command()
@click.argument("message")
@click.option(
    "-k", "--key",
    required=True,
    envvar="NTAG424_MASTER_KEY",
    help="Master key as 32 hex characters",
)
@click.option("-m", "--method", type=click.Choice(METHOD_CHOICES), default=None, help="Key derivation method")
@click.option("-p", "--profile", type=click.Choice(list(PROFILES)), default=None, help="SDM profile")
@click.option("--no-cmac", is_flag=True, help="Skip CMAC verification")
@click.option("--strict", is_flag=True, help="Strict input validation")
@click.option(
    "-c", "--config",
    type=click.Path(exists=True, path_type=Path),
    help="YAML configuration file",
)
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
def decode(
    message: str,
    key: str,
    method: Optional[str],
    profile: Optional[str],
    no_cmac: bool,
    strict: bool,
    config: Optional[Path],
    as_json: bool,
) -> None:
    """Decrypt and verify an SDM URL or query string.

    Exits with status 1 unless the message decodes and its CMAC verifies.
    """
    try:
        options = load_options(
            config,
            method,
            profile,
            validate_cmac=False if no_cmac else None,
            strict_validation=True if strict else None,
        )
        decoder = Decoder(key, options)
    except NTAG424Error as e:
        err_console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)

    with decoder:
        result = decoder.decrypt(message)

    if as_json:
        output = result.to_dict()
        # Session keys are informational; never print them from the CLI
        output.pop("session_keys", None)
        click.echo(json.dumps(output, indent=2, default=str))
    elif result.success:
        table = Table(title="Decoded SDM Message")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("UID", result.uid or "-")
        table.add_row("Read counter", "-" if result.read_counter is None else str(result.read_counter))
        if result.file_data is not None:
            table.add_row("File data", result.file_data)
        if options.validate_cmac:
            status = "[green]valid[/green]" if result.cmac_valid else "[red]INVALID[/red]"
        else:
            status = "[yellow]not checked[/yellow]"
        table.add_row("CMAC", status)
        table.add_row("Profile", result.metadata["profile_used"])
        console.print(table)
    else:
        err_console.print(f"[red]Decode failed ({result.error_code}):[/red] {result.error}")

    if not result.success or (options.validate_cmac and not result.cmac_valid):
        sys.exit(1)


@cli.command()
def profiles() -> None:
    """List predefined SDM profiles."""
    table = Table(title="SDM Profiles")
    table.add_column("Profile", style="cyan")
    table.add_column("UID")
    table.add_column("Counter")
    table.add_column("File data")
    table.add_column("Layout", style="dim")

    for name, profile in PROFILES.items():
        layout = []
        if profile.include_uid:
            layout.append(f"uid@{profile.uid_offset}/{profile.uid_length}")
        if profile.include_counter:
            layout.append(f"ctr@{profile.counter_offset}/{profile.counter_length}")
        table.add_row(
            name,
            "yes" if profile.include_uid else "no",
            "yes" if profile.include_counter else "no",
            "yes" if profile.include_file_data else "no",
            " ".join(layout),
        )
    console.print(table)


@cli.command()
def version() -> None:
    """Show version information."""
    for key, value in get_version_info().items():
        click.echo(f"{key}: {value}")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
