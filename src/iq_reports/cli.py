"""CLI interface for iq-reports."""

import asyncio
import json
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import AppConfig, load_config
from .iq_client import IQError, PolicyReportComponent, Report, Stage
from .logging_utils import setup_logging
from .reports import AggregateResult, ReportService

app = typer.Typer(
    name="iq-reports",
    help="Retrieve and compare Nexus IQ application evaluation reports",
    no_args_is_help=True,
)
console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to config file"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable verbose/debug output"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Print the full result as JSON"),
]


def get_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from file and environment."""
    try:
        return load_config(config_path)
    except Exception as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(1) from None


def run_with_service(
    config_path: Path | None,
    verbose: bool,
    action: Callable[[ReportService], Coroutine[Any, Any, Any]],
) -> Any:
    """Run *action* against a service built from config, reporting IQ errors."""
    config = get_config(config_path)
    setup_logging(verbose, secret=config.iq.password)

    async def _run() -> Any:
        async with ReportService(config) as service:
            return await action(service)

    try:
        return asyncio.run(_run())
    except IQError as e:
        console.print(f"[red]{type(e).__name__}: {e}[/red]")
        raise typer.Exit(1) from None


def print_json(value: BaseModel | list[BaseModel]) -> None:
    """Print models using their wire field names."""
    if isinstance(value, list):
        data: Any = [v.model_dump(mode="json", by_alias=True) for v in value]
    else:
        data = value.model_dump(mode="json", by_alias=True)
    console.print_json(json.dumps(data))


def print_errors(result: AggregateResult[Any]) -> None:
    """Show the sources an aggregation had to skip."""
    if not result.errors:
        return
    body = "\n".join(f"{e.source}: {e.message}" for e in result.errors)
    console.print(
        Panel(body, title=f"{len(result.errors)} source(s) failed", border_style="yellow")
    )


def report_summary_table(reports: list[Report], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Application", style="cyan")
    table.add_column("Stage")
    table.add_column("Report ID", style="dim")
    table.add_column("Evaluated")
    table.add_column("Components", justify="right")
    table.add_column("Violations", justify="right")
    table.add_column("Waived", justify="right", style="green")

    for report in reports:
        info = report.raw.report_info
        violations = [v for c in report.policy.components for v in c.violations]
        table.add_row(
            report.policy.application.public_id or info.application_id,
            info.stage,
            info.report_id,
            info.evaluation_date_str,
            str(len(report.raw.components)),
            str(len(violations)),
            str(sum(1 for v in violations if v.waived)),
        )
    return table


def component_table(components: list[PolicyReportComponent], title: str, style: str) -> Table:
    table = Table(title=title, title_style=style)
    table.add_column("Component", style="cyan")
    table.add_column("Hash", style="dim")
    table.add_column("Policies")

    for c in components:
        policies = ", ".join(sorted({v.policy_name or v.policy_id for v in c.violations}))
        table.add_row(c.display_name or c.package_url, c.hash, policies)
    return table


@app.command()
def verify(
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Verify the connection to the IQ server."""
    console.print("[bold]Verifying IQ connection...[/bold]\n")
    orgs = run_with_service(config_path, verbose, lambda s: s.verify_connection())
    console.print(f"[green]✓ Connected[/green] ({len(orgs)} organizations visible)")


@app.command()
def infos(
    application: Annotated[str, typer.Argument(help="Application public ID")],
    stage: Annotated[
        Stage | None,
        typer.Option("--stage", "-s", help="Only show the report for this stage"),
    ] = None,
    as_json: JsonOption = False,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """List the report summaries of an application."""
    results = run_with_service(config_path, verbose, lambda s: s.report_infos(application))
    if stage is not None:
        results = [i for i in results if i.stage == stage]

    if as_json:
        print_json(results)
        return

    if not results:
        console.print(f"[yellow]No reports found for {application}[/yellow]")
        return

    table = Table(title=f"Reports for {application}")
    table.add_column("Stage", style="cyan")
    table.add_column("Report ID")
    table.add_column("Evaluated")
    table.add_column("Report", style="dim")
    for info in results:
        table.add_row(info.stage, info.report_id, info.evaluation_date_str, info.report_html_url)
    console.print(table)


@app.command()
def report(
    application: Annotated[str, typer.Argument(help="Application public ID")],
    stage: Annotated[
        Stage | None,
        typer.Option("--stage", "-s", help="Pipeline stage of the report"),
    ] = None,
    report_id: Annotated[
        str | None,
        typer.Option("--report-id", "-r", help="Report ID (instead of --stage)"),
    ] = None,
    as_json: JsonOption = False,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Fetch the policy and raw report of an application.

    Examples:

        iq-reports report my-app --stage build

        iq-reports report my-app --report-id 4bb67dcfc86344e3a483832f8c496419 --json
    """
    if (stage is None) == (report_id is None):
        console.print("[red]Specify exactly one of --stage or --report-id[/red]")
        raise typer.Exit(1)

    if report_id is not None:
        result = run_with_service(
            config_path, verbose, lambda s: s.report_by_id(application, report_id)
        )
    else:
        result = run_with_service(config_path, verbose, lambda s: s.report(application, stage))

    if as_json:
        print_json(result)
        return
    console.print(report_summary_table([result], f"Report for {application}"))


@app.command()
def diff(
    application: Annotated[str, typer.Argument(help="Application public ID")],
    report_id_1: Annotated[str, typer.Argument(help="First report ID")],
    report_id_2: Annotated[str, typer.Argument(help="Second report ID")],
    as_json: JsonOption = False,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Show components fixed or waived between two reports of an application."""
    result = run_with_service(
        config_path, verbose, lambda s: s.diff(application, report_id_1, report_id_2)
    )

    if as_json:
        print_json(result)
        return

    earlier, later = result.reports
    console.print(
        f"[bold]{application}[/bold]: "
        f"{earlier.report_info.report_id} ({earlier.report_info.evaluation_date_str}) -> "
        f"{later.report_info.report_id} ({later.report_info.evaluation_date_str})\n"
    )
    if not result.fixed and not result.waived:
        console.print("[dim]No fixed or waived components[/dim]")
        return
    if result.fixed:
        console.print(component_table(result.fixed, "Fixed", "green"))
    if result.waived:
        console.print(component_table(result.waived, "Waived", "yellow"))


@app.command()
def org(
    organization: Annotated[str, typer.Argument(help="Organization name")],
    reports: Annotated[
        bool,
        typer.Option(
            "--reports",
            help="Fetch build, stage-release, release and operate reports instead of summaries",
        ),
    ] = False,
    as_json: JsonOption = False,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """List the reports of every application in an organization."""
    if reports:
        result = run_with_service(
            config_path, verbose, lambda s: s.organization_reports(organization)
        )
    else:
        result = run_with_service(
            config_path, verbose, lambda s: s.organization_infos(organization)
        )

    if as_json:
        print_json(result.items)
    elif reports:
        console.print(report_summary_table(result.items, f"Reports for {organization}"))
    else:
        table = Table(title=f"Report summaries for {organization}")
        table.add_column("Application", style="cyan")
        table.add_column("Stage")
        table.add_column("Report ID", style="dim")
        table.add_column("Evaluated")
        for info in result.items:
            table.add_row(
                info.application_id, info.stage, info.report_id, info.evaluation_date_str
            )
        console.print(table)

    print_errors(result)


@app.command()
def components(
    application: Annotated[
        str | None,
        typer.Option("--app", "-a", help="Application public ID (default: whole instance)"),
    ] = None,
    as_json: JsonOption = False,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """List component details, de-duplicated by hash."""
    result = run_with_service(config_path, verbose, lambda s: s.components(application))

    if as_json:
        print_json(result.items)
    else:
        table = Table(title=f"Components ({len(result.items)})")
        table.add_column("Component", style="cyan")
        table.add_column("Match")
        table.add_column("Licenses")
        table.add_column("Security issues", justify="right")
        for detail in result.items:
            c = detail.component
            licenses = ", ".join(
                lic.license_id for lic in detail.license_data.effective_licenses
            )
            table.add_row(
                c.display_name or c.package_url,
                detail.match_state,
                licenses,
                str(len(detail.security_data.security_issues)),
            )
        console.print(table)

    print_errors(result)


if __name__ == "__main__":
    app()
