"""grc-evidence CLI: all commands defined here."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click

from grc_evidence import __version__
from grc_evidence.config import (
    DEFAULT_CONFIG_DIR,
    GrcConfig,
    load_config_or_default,
    save_config,
)
from grc_evidence.evidence import DEFAULT_DOMAINS, DOMAIN_ALIASES, Domain, EvidenceReport
from grc_evidence.exceptions import GrcConfigError
from grc_evidence.utils.logging import get_logger, set_level

logger = get_logger("cli")


@click.group()
@click.version_option(version=__version__, prog_name="grc-evidence")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to config file (default: ~/.grc-evidence/config.yaml).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """grc-evidence: compliance evidence collection for Azure subscriptions."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if verbose:
        set_level(logging.DEBUG)


def _load_config_or_exit(ctx: click.Context) -> GrcConfig:
    """Load config (or env-only defaults) or exit with a helpful message."""
    try:
        return load_config_or_default(ctx.obj.get("config_path"))
    except GrcConfigError as exc:
        click.echo(click.style(f"Error: {exc}", fg="red"), err=True)
        raise SystemExit(1) from exc


# -- init command --


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Set up grc-evidence configuration (Azure service principal)."""
    click.echo(click.style("grc-evidence Setup", fg="cyan", bold=True))
    click.echo(
        "You'll need a service principal with Reader access to the subscription\n"
        "(and Security Reader for Defender for Cloud data).\n"
    )

    tenant_id = click.prompt("Azure AD Tenant ID")
    client_id = click.prompt("Application (client) ID")
    client_secret = click.prompt("Client secret value", hide_input=True)
    subscription_id = click.prompt("Subscription ID", default="", show_default=False)

    config = GrcConfig(tenant_id=tenant_id, client_id=client_id, subscription_id=subscription_id)
    config.client_secret = client_secret

    config_path = ctx.obj.get("config_path")
    save_config(config, config_path)

    click.echo(click.style("\nConfiguration saved.", fg="green"))
    click.echo(f"  Config: {config_path or DEFAULT_CONFIG_DIR / 'config.yaml'}")


# -- collect command --


@cli.command()
@click.option("--subscription", "subscription_id", default=None, help="Azure subscription ID.")
@click.option(
    "--domain",
    "domains",
    multiple=True,
    help="Evidence domain to collect (repeatable). Collects the default set if omitted.",
)
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table")
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Write the JSON report to this file.",
)
@click.pass_context
def collect(
    ctx: click.Context,
    subscription_id: str | None,
    domains: tuple[str, ...],
    output_format: str,
    output_path: Path | None,
) -> None:
    """Collect compliance evidence from an Azure subscription."""
    config = _load_config_or_exit(ctx)
    subject_id = subscription_id or config.resolved_subscription_id()
    if not subject_id:
        click.echo(
            click.style(
                "Error: no subscription. Pass --subscription or set AZURE_SUBSCRIPTION_ID.",
                fg="red",
            ),
            err=True,
        )
        raise SystemExit(1)

    from grc_evidence.orchestrator import EvidenceOrchestrator
    from grc_evidence.session import ArmSessionProvider

    orchestrator = EvidenceOrchestrator(
        ArmSessionProvider(config),
        settings=config.settings(),
    )
    report = asyncio.run(orchestrator.collect(subject_id, list(domains) or None))

    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
        logger.info("Report written to %s", output_path)

    if output_format == "json":
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_table(report)


def _print_table(report: EvidenceReport) -> None:
    if report.mock_mode is not None:
        click.echo(click.style("MOCK MODE: no live data collected", fg="yellow", bold=True))
        click.echo(f"  {report.mock_mode.reason}")
        if report.mock_mode.required_credentials:
            click.echo("  Required credentials:")
            for name in report.mock_mode.required_credentials:
                click.echo(f"    - {name}")
        return

    click.echo(click.style(f"Evidence for subscription {report.subject_id}", fg="cyan", bold=True))
    for finding in report.findings:
        if finding.error is not None:
            status = click.style("ERROR", fg="magenta")
            detail = finding.error
        elif finding.collector_mock_mode is not None:
            status = click.style("MOCK", fg="yellow")
            detail = finding.collector_mock_mode.reason
        else:
            status = click.style("OK", fg="green")
            detail = f"{finding.count} resources" if finding.count is not None else ""
        click.echo(f"  {finding.type:20s} {status:16s} {detail}")

    s = report.summary
    click.echo(
        f"\n  Total resources: {s.total_resources}  "
        f"compliant: {s.compliant_resources}  non-compliant: {s.non_compliant_resources}"
    )


# -- domains command --


@cli.command()
def domains() -> None:
    """List the evidence domains and accepted aliases."""
    for domain in Domain:
        marker = "default" if domain in DEFAULT_DOMAINS else "baseline"
        aliases = sorted(a for a, d in DOMAIN_ALIASES.items() if d is domain)
        suffix = f"  (aliases: {', '.join(aliases)})" if aliases else ""
        click.echo(f"  {domain.value:18s} {marker}{suffix}")
