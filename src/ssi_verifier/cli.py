"""
Command-line interface for the SSI verifier.

Usage:
    ssi-verify --trusted-issuer did:key:z... credential credential.jwt
    ssi-verify presentation presentation.jwt --audience did:web:verifier.example
    ssi-verify match presentation.jwt definition.json
    cat credential.jwt | ssi-verify credential -
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ssi_verifier.adapters import (
    EbsiTrustedIssuerAdapter,
    StaticLegalEntityResolver,
    default_public_key_resolvers,
)
from ssi_verifier.config import VerifierConfig
from ssi_verifier.errors import SSIError
from ssi_verifier.presentation_definition import match_presentation_definition
from ssi_verifier.resolvers import LegalEntityResolver
from ssi_verifier.verifier import STAGES, VerificationResult, Verifier, VerifyOptions


console = Console()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def format_result(result: VerificationResult, title: str) -> None:
    """Format and print verification result."""
    if result.is_valid:
        status_icon = "[bold green]VALID[/]"
        panel_style = "green"
    else:
        status_icon = "[bold red]INVALID[/]"
        panel_style = "red"

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value")

    table.add_row("Status", status_icon)
    if result.credential_id:
        table.add_row("ID", result.credential_id)
    if result.issuer:
        table.add_row("Issuer", result.issuer)

    for stage in STAGES:
        outcome = getattr(result.validations, stage)
        if outcome is None:
            stage_str = "[dim]Skipped[/]"
        elif outcome:
            stage_str = "[green]Passed[/]"
        else:
            stage_str = "[red]Failed[/]"
        table.add_row(stage.replace("_", " ").capitalize(), stage_str)

    console.print(Panel(table, title=title, border_style=panel_style))

    if result.errors:
        console.print("\n[bold red]Errors:[/]")
        for error in result.errors:
            console.print(f"  [red]x[/] {error}")


def load_source(source: str, timeout: float = 30.0) -> str:
    """Load an artifact from file, URL, or stdin.

    Args:
        source: File path, URL, or "-" for stdin.
        timeout: HTTP timeout for URL sources.

    Returns:
        The artifact text, a compact JWT or a JSON document.
    """
    if source == "-":
        return sys.stdin.read().strip()

    if source.startswith("http://") or source.startswith("https://"):
        with httpx.Client(timeout=timeout) as client:
            response = client.get(
                source,
                headers={"Accept": "application/jwt, application/vc+ld+json, application/json"},
            )
            response.raise_for_status()
            return response.text.strip()

    path = Path(source)
    if not path.exists():
        raise click.BadParameter(f"File not found: {source}", param_hint="SOURCE")
    return path.read_text(encoding="utf-8").strip()


def _fail(message: str, json_output: bool) -> None:
    if json_output:
        console.print_json(data={"error": message})
    else:
        console.print(f"[red]Error:[/] {message}")
    sys.exit(2)


def _report(result: VerificationResult, title: str, json_output: bool) -> None:
    if json_output:
        console.print_json(data=result.to_dict())
    else:
        format_result(result, title)
    sys.exit(0 if result.is_valid else 1)


def _build_verifier(ctx: click.Context) -> Verifier:
    settings = ctx.obj
    config: VerifierConfig = settings["config"]
    trust: list[LegalEntityResolver] = []
    if settings["trusted_issuers"]:
        trust.append(StaticLegalEntityResolver(settings["trusted_issuers"]))
    if settings["ebsi_trust"]:
        trust.append(
            EbsiTrustedIssuerAdapter(
                config.trusted_issuers_registry_url,
                timeout=config.timeout,
                verify_ssl=config.verify_ssl,
            )
        )
    return Verifier(
        key_resolver=default_public_key_resolvers(config),
        trust_resolver=trust,
        config=config,
    )


@click.group()
@click.option("--no-constraint", is_flag=True, help="Skip expiry, not-before and audience checks")
@click.option("--no-signature", is_flag=True, help="Skip issuer trust and signature checks")
@click.option("--no-attribute-mapping", is_flag=True, help="Skip JWT claim / document consistency checks")
@click.option("--no-schema", is_flag=True, help="Skip JSON Schema validation")
@click.option(
    "--trusted-issuer",
    "trusted_issuers",
    multiple=True,
    metavar="DID",
    help="Issuer DID to trust (repeatable)",
)
@click.option("--ebsi-trust", is_flag=True, help="Check issuers against the EBSI Trusted Issuers Registry")
@click.option("--no-ssl-verify", is_flag=True, help="Disable SSL certificate verification")
@click.option("--timeout", type=float, default=None, help="HTTP request timeout in seconds")
@click.option("--json-output", is_flag=True, help="Output result as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(package_name="ssi-verifier")
@click.pass_context
def main(
    ctx: click.Context,
    no_constraint: bool,
    no_signature: bool,
    no_attribute_mapping: bool,
    no_schema: bool,
    trusted_issuers: tuple[str, ...],
    ebsi_trust: bool,
    no_ssl_verify: bool,
    timeout: float | None,
    json_output: bool,
    verbose: bool,
) -> None:
    """Verify W3C Verifiable Credentials and Presentations.

    SOURCE can be a file path, a URL, or "-" to read from stdin.

    Examples:

        ssi-verify --trusted-issuer did:key:z... credential vc.jwt

        ssi-verify presentation vp.jwt --audience did:web:verifier.example

        ssi-verify match vp.jwt definition.json
    """
    configure_logging(verbose)
    config = VerifierConfig.from_env()
    if timeout is not None:
        config = replace(config, timeout=timeout)
    if no_ssl_verify:
        config = replace(config, verify_ssl=False)

    ctx.obj = {
        "config": config,
        "options": VerifyOptions(
            constraint_validation=not no_constraint,
            signature_validation=not no_signature,
            attribute_mapping_validation=not no_attribute_mapping,
            schema_validation=not no_schema,
        ),
        "trusted_issuers": trusted_issuers,
        "ebsi_trust": ebsi_trust,
        "json_output": json_output,
    }


@main.command()
@click.argument("source", required=True)
@click.pass_context
def credential(ctx: click.Context, source: str) -> None:
    """Verify a Verifiable Credential."""
    json_output = ctx.obj["json_output"]
    try:
        artifact = load_source(source, ctx.obj["config"].timeout)
        verifier = _build_verifier(ctx)
        result = asyncio.run(verifier.verify_credential(artifact, ctx.obj["options"]))
    except httpx.HTTPError as e:
        _fail(f"HTTP error: {e}", json_output)
    except SSIError as e:
        _fail(str(e), json_output)
    else:
        _report(result, "Credential Verification", json_output)


@main.command()
@click.argument("source", required=True)
@click.option(
    "--audience",
    "audiences",
    multiple=True,
    required=True,
    help="Expected audience (repeatable)",
)
@click.pass_context
def presentation(ctx: click.Context, source: str, audiences: tuple[str, ...]) -> None:
    """Verify a Verifiable Presentation and its credentials."""
    json_output = ctx.obj["json_output"]
    audience: str | list[str] = audiences[0] if len(audiences) == 1 else list(audiences)
    try:
        artifact = load_source(source, ctx.obj["config"].timeout)
        verifier = _build_verifier(ctx)
        result = asyncio.run(
            verifier.verify_presentation(artifact, audience, ctx.obj["options"])
        )
    except httpx.HTTPError as e:
        _fail(f"HTTP error: {e}", json_output)
    except SSIError as e:
        _fail(str(e), json_output)
    else:
        _report(result, "Presentation Verification", json_output)


@main.command()
@click.argument("source", required=True)
@click.argument("definition", required=True)
@click.pass_context
def match(ctx: click.Context, source: str, definition: str) -> None:
    """Match a presentation against a presentation definition.

    Exits 0 when at least one input descriptor is satisfied, 1 otherwise.
    """
    json_output = ctx.obj["json_output"]
    try:
        artifact = load_source(source, ctx.obj["config"].timeout)
        definition_data: Any = json.loads(load_source(definition, ctx.obj["config"].timeout))
        result = match_presentation_definition(artifact, definition_data)
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON: {e}", json_output)
    except (KeyError, TypeError, AttributeError) as e:
        _fail(f"Invalid presentation definition: {e}", json_output)
    except httpx.HTTPError as e:
        _fail(f"HTTP error: {e}", json_output)
    except SSIError as e:
        _fail(str(e), json_output)
    else:
        if result is None:
            if json_output:
                console.print_json(data={"match": None})
            else:
                console.print("[bold red]No input descriptor is satisfied[/]")
            sys.exit(1)

        if json_output:
            console.print_json(data=result.to_dict())
        else:
            submission = result.presentation_submission
            table = Table(title=f"Presentation Submission {submission.id}")
            table.add_column("Descriptor")
            table.add_column("Format")
            table.add_column("Path")
            for element in submission.descriptor_map:
                table.add_row(element.id, element.format, element.path)
            console.print(table)
        sys.exit(0)


if __name__ == "__main__":
    main()
