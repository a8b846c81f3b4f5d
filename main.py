#!/usr/bin/env python3
"""App-Factory CLI - Entry point for iterative LLM-driven app builds.

Usage:
    # Estimate complexity and price only
    python main.py --input ./requirements.md --estimate-only

    # Full paid build
    python main.py --input ./requirements.md --session-id cs_live_...

    # Sync each iteration to GitHub and resume an interrupted build
    python main.py --input ./requirements.md --session-id cs_... \\
        --github-repo acme/shop --build-id shop-1 --resume
"""

import sys
import json
import logging
from pathlib import Path
from typing import Optional

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
    from rich.panel import Panel
    from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn
    from rich.table import Table
except ImportError:
    print("Missing dependencies. Run: pip install click rich")
    sys.exit(1)

from contracts import BuildResult, BuildSnapshot, BuildState, CostEstimate, LogSeverity
from estimator import estimate_cost
from codegen import generate_preview_html, get_file_stats
from integrations import GitHubSync, StripePaymentGate, write_bundle
from orchestrator import generate_iteration_summary, run_build
from providers import list_providers as get_available_providers
from config import settings


console = Console()

SEVERITY_STYLES = {
    LogSeverity.INFO: "dim",
    LogSeverity.SUCCESS: "green",
    LogSeverity.WARNING: "yellow",
    LogSeverity.ERROR: "red",
}


def read_requirements(input_path: str) -> str:
    """Read the requirements document from a file, or treat the argument as literal text."""
    path = Path(input_path)
    if path.is_file():
        return path.read_text(encoding="utf-8", errors="replace")
    return input_path


def resolve_source_control(github_repo: Optional[str]) -> Optional[GitHubSync]:
    """Return a GitHub sync client for the repo, or None when sync cannot run."""
    if not github_repo:
        return None
    source_control = GitHubSync()
    if not source_control.is_available():
        console.print("[yellow]No GitHub token configured; iteration sync will be skipped[/yellow]")
        return None
    return source_control


def print_estimate(estimate: CostEstimate) -> None:
    analysis = estimate.analysis
    features = analysis.features

    table = Table(title="Build Estimate", show_header=False)
    table.add_row("Complexity", f"{analysis.complexity_tier.value} - {estimate.label}")
    table.add_row("Pages / components", f"{analysis.page_count} / {analysis.component_count}")
    table.add_row("Estimated lines of code", f"{analysis.estimated_lines_of_code:,}")
    detected = [
        name for name in ("authentication", "database", "payments", "file_upload", "realtime", "dashboard")
        if getattr(features, name)
    ]
    table.add_row("Detected features", ", ".join(detected) or "none")
    table.add_row("Iterations", str(estimate.tokens.iteration_count))
    table.add_row("Tokens (in / out)", f"{estimate.tokens.input_tokens:,} / {estimate.tokens.output_tokens:,}")
    table.add_row("Price", f"${estimate.pricing.total_cost:.2f}")
    console.print(table)


def write_outputs(result: BuildResult, estimate: CostEstimate, output_root: Path, project_name: str) -> Path:
    """Write files, archive, preview, run summary, and cost manifest for a build."""
    output_path = output_root / result.build_id
    files_dir = output_path / "files"
    for f in result.files:
        target = files_dir / f.path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f.content, encoding="utf-8")

    archive = write_bundle(result.files, output_path, project_name)
    (output_path / "preview.html").write_text(generate_preview_html(result.files), encoding="utf-8")
    (output_path / "cost_manifest.json").write_text(json.dumps(result.cost_manifest, indent=2))

    history = result.context.iteration_history if result.context else []
    summary = {
        "build_id": result.build_id,
        "status": result.state.value,
        "started_at": result.started_at.isoformat(),
        "completed_at": result.completed_at.isoformat() if result.completed_at else None,
        "projected_price_usd": estimate.pricing.total_cost,
        "iterations": estimate.tokens.iteration_count,
        "failed_iterations": result.failed_iterations,
        "file_stats": get_file_stats(result.files),
        "todo_list": [
            {"id": t.id, "status": t.status.value, "target_iteration": t.target_iteration}
            for t in (result.context.todo_list if result.context else [])
        ],
        "archive": str(archive),
    }
    (output_path / "run_summary.json").write_text(json.dumps(summary, indent=2))
    (output_path / "iterations.md").write_text(
        "\n".join(
            generate_iteration_summary(
                r.iteration, r.files_created + r.files_updated, r.test_result
            )
            for r in history
        ),
        encoding="utf-8",
    )
    return output_path


@click.command()
@click.option(
    "--input", "-i", "input_path",
    required=False,
    help="Path to the requirements document or literal requirements text"
)
@click.option(
    "--estimate-only",
    is_flag=True,
    help="Only estimate complexity and price, don't build"
)
@click.option(
    "--session-id", "-s",
    default=None,
    help="Paid Stripe checkout session id"
)
@click.option(
    "--github-repo", "-g",
    default=None,
    help="owner/repo to commit each iteration to"
)
@click.option(
    "--build-id",
    default=None,
    help="Build id used for recovery state (default: timestamped)"
)
@click.option(
    "--resume",
    is_flag=True,
    help="Resume the build with --build-id from its recovery snapshot"
)
@click.option(
    "--project-name",
    default="app-factory-app",
    help="Folder name inside the generated archive"
)
@click.option(
    "--output", "-o", "output_dir",
    default=None,
    help="Output directory (default: ./outputs)"
)
@click.option(
    "--provider", "-p",
    type=click.Choice(["anthropic", "openai", "deepseek", "litellm"]),
    default=None,
    help=f"LLM provider (default: {settings.default_provider})"
)
@click.option(
    "--model",
    default=None,
    help="Model name (e.g., claude-sonnet, gpt-4o, deepseek-chat)"
)
@click.option(
    "--list-providers",
    is_flag=True,
    help="List available providers and exit"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Verbose output"
)
def main(
    input_path: Optional[str],
    estimate_only: bool,
    session_id: Optional[str],
    github_repo: Optional[str],
    build_id: Optional[str],
    resume: bool,
    project_name: str,
    output_dir: Optional[str],
    provider: Optional[str],
    model: Optional[str],
    list_providers: bool,
    verbose: bool,
):
    """App-Factory: iterative AI web-app builder.

    Estimates a requirements document, then builds the application over a
    fixed number of generate-parse-merge-validate iterations.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

    # Handle --list-providers
    if list_providers:
        console.print("[bold]Available LLM Providers:[/bold]\n")
        for name, available in get_available_providers().items():
            status = "[green]✓ Ready[/green]" if available else "[red]✗ No API key[/red]"
            console.print(f"  {name:12} {status}")
        console.print("\n[dim]Set API keys via environment variables:[/dim]")
        console.print("  ANTHROPIC_API_KEY, OPENAI_API_KEY, DEEPSEEK_API_KEY")
        return

    if not input_path:
        console.print("[red]Error: --input is required[/red]")
        sys.exit(1)
    if resume and not build_id:
        console.print("[red]Error: --resume requires --build-id[/red]")
        sys.exit(1)

    console.print(Panel.fit(
        "[bold blue]App-Factory[/bold blue]\n"
        "[dim]Iterative AI Web-App Builder[/dim]",
        border_style="blue"
    ))

    requirements = read_requirements(input_path)
    if not requirements.strip():
        console.print("[red]Error: Requirements are empty[/red]")
        sys.exit(1)
    console.print(f"[dim]Requirements size:[/dim] {len(requirements):,} characters\n")

    estimate = estimate_cost(requirements)
    print_estimate(estimate)
    if estimate_only:
        return

    source_control = resolve_source_control(github_repo)

    console.print(f"\n[bold]Building...[/bold]")
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
    ) as progress:
        task = progress.add_task("Verifying payment...", total=100)

        def on_update(snapshot: BuildSnapshot) -> None:
            p = snapshot.progress
            description = f"Iteration {p.current_iteration}/{p.total_iterations} [{snapshot.state.value}]"
            if snapshot.current_file:
                description += f" {snapshot.current_file}"
            progress.update(task, description=description, completed=p.percent)

        result = run_build(
            requirements,
            session_id=session_id,
            payment_gate=StripePaymentGate(),
            estimate=estimate,
            provider=provider,
            model=model,
            source_control=source_control,
            repo_ref=github_repo,
            build_id=build_id,
            resume=resume,
            on_update=on_update,
        )

    console.print("\n" + "=" * 60)
    for entry in result.log:
        style = SEVERITY_STYLES[entry.severity]
        console.print(f"[{style}][{entry.iteration}] {entry.message}[/{style}]")

    if result.state == BuildState.ERROR:
        console.print(f"\n[red]Error:[/red] {result.fatal_error}")
        sys.exit(1)

    output_root = Path(output_dir) if output_dir else settings.get_output_path()
    output_path = write_outputs(result, estimate, output_root, project_name)
    summary = result.cost_manifest.get("summary", {})

    console.print(f"\n[green]Status:[/green] {result.state.value}")
    console.print(f"[green]Build ID:[/green] {result.build_id}")
    console.print(f"[green]Files:[/green] {len(result.files)}")
    if result.failed_iterations:
        console.print(f"[yellow]Failed iterations:[/yellow] {result.failed_iterations}")
    console.print("\n[bold]Cost Summary:[/bold]")
    console.print(f"  Input tokens:  {summary.get('total_input_tokens', 0):,}")
    console.print(f"  Output tokens: {summary.get('total_output_tokens', 0):,}")
    console.print(f"  Total cost:    ${summary.get('total_cost_usd', 0):.4f}")
    console.print(f"  Budget used:   {summary.get('budget_used_percent', 0)}%")
    console.print(f"\n[bold]Output saved to:[/bold] {output_path}")
    console.print("\n" + "=" * 60)


if __name__ == "__main__":
    main()
