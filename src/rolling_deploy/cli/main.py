"""Main CLI entry point."""

import sys
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from rolling_deploy.config.models import RollingDeployConfig
from rolling_deploy.config.parser import Config, ConfigValidationError
from rolling_deploy.orchestrator.events import ProgressEvent
from rolling_deploy.orchestrator.orchestrator import RollingDeployOrchestrator
from rolling_deploy.utils.errors import ErrorContext, error_handler
from rolling_deploy.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


@click.group()
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.option('--log-dir', default='.rolling-deploy/logs', help='Directory for JSON log files')
@click.pass_context
def cli(ctx, log_level, log_dir):
    """Rolling deploys for OpsWorks layers behind load balancers."""
    ctx.ensure_object(dict)
    ctx.obj['log_level'] = log_level

    setup_logging(log_level, log_dir=log_dir)


def load_config(
    config_path: str,
    percent: Optional[float] = None,
    deploy_timeout: Optional[float] = None
) -> RollingDeployConfig:
    """Load and validate configuration file, applying command-line overrides."""
    try:
        config = Config(config_path).load()
        return config.with_overrides(percent=percent, deploy_timeout=deploy_timeout)
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] Configuration file not found: {config_path}")
        sys.exit(1)
    except ConfigValidationError as e:
        console.print("[red]Configuration validation failed:[/red]\n")
        console.print(escape(str(e)))
        sys.exit(1)


class RichProgressCallback:
    """Progress callback that prints milestones using Rich."""

    STYLES = {
        ProgressEvent.LOCK_WAITING: "[yellow]⏳ Waiting for deploy lock...[/yellow]",
        ProgressEvent.LOCK_ACQUIRED: "[green]🔒 Got deploy lock[/green]",
        ProgressEvent.LOCK_TIMEOUT: "[red]✗ Timed out waiting for deploy lock[/red]",
        ProgressEvent.LOCK_RELEASED: "[dim]🔓 Deploy lock released[/dim]",
        ProgressEvent.NO_LOAD_BALANCERS_FOUND: "  [yellow]No load balancers to detach from[/yellow]",
        ProgressEvent.DEPLOY_ALL_COMPLETE: "[bold green]✓ Rolling deploy complete[/bold green]",
    }

    def __init__(self, console: Console):
        self.console = console

    def __call__(self, event: ProgressEvent, details: Dict[str, Any]) -> None:
        if event in self.STYLES:
            self.console.print(self.STYLES[event])
        elif event == ProgressEvent.BATCH_STARTED:
            self.console.print(
                f"\n[bold cyan]Batch {details['batch']}:[/bold cyan] "
                f"{', '.join(details.get('instance_ids', []))}"
            )
        elif event == ProgressEvent.DETACHED_FROM:
            self.console.print(f"  [green]✓[/green] detached from {details['load_balancer']}")
        elif event == ProgressEvent.DEPLOY_STARTED:
            self.console.print(f"  [cyan]Deploying[/cyan] (deployment {details['deployment_id']})...")
        elif event == ProgressEvent.DEPLOY_COMPLETED:
            self.console.print(f"  [green]✓[/green] deploy completed in {details['duration']:.0f}s")
        elif event == ProgressEvent.REATTACHED_TO:
            self.console.print(f"  [green]✓[/green] re-attached to {details['load_balancer']}")
        elif event == ProgressEvent.BATCH_DONE:
            self.console.print(f"[dim]Batch {details['batch']} done ({details['duration']:.0f}s)[/dim]")


@cli.command()
@click.option('--config', 'config_path', default='rolling-deploy.yaml', help='Path to configuration file')
@click.option('--percent', type=float, help='Fraction of online instances per batch (0 < percent <= 1)')
@click.option('--deploy-timeout', type=float, help='Seconds each batch deployment may take')
def deploy(config_path, percent, deploy_timeout):
    """Run a locked rolling deploy of the configured app."""
    settings = load_config(config_path, percent=percent, deploy_timeout=deploy_timeout)
    target = settings.target

    console.print(Panel(
        f"Stack: {target.stack_id}\nLayer: {target.layer_id}\nApp:   {target.app_id}\n"
        f"Batch: {f'{target.percent:.0%} of online instances' if target.percent else 'all online instances'}",
        title="Rolling deploy",
        style="bold blue",
    ))

    try:
        orchestrator = RollingDeployOrchestrator.from_config(
            settings,
            progress_callback=RichProgressCallback(console),
        )
        result = orchestrator.rolling_deploy(
            stack_id=target.stack_id,
            layer_id=target.layer_id,
            app_id=target.app_id,
            percent=target.percent,
            deploy_timeout=settings.deploy_timeout,
        )
    except Exception as e:
        error = error_handler.handle_exception(e, ErrorContext(operation='rolling_deploy'))
        error_handler.log_error(error)
        console.print(f"\n[red]{escape(error.to_user_message())}[/red]")
        sys.exit(1)

    console.print(
        f"\n[green]Deployed {len(result.deployed_instance_ids)} instance(s) in "
        f"{len(result.batch_results)} batch(es), {result.duration:.0f}s[/green]"
    )


@cli.command()
@click.option('--config', 'config_path', default='rolling-deploy.yaml', help='Path to configuration file')
@click.option('--percent', type=float, help='Fraction of online instances per batch (0 < percent <= 1)')
def plan(config_path, percent):
    """Show the batches a rolling deploy would use, without touching anything."""
    settings = load_config(config_path, percent=percent)
    target = settings.target

    try:
        orchestrator = RollingDeployOrchestrator.from_config(settings)
        batches = orchestrator.plan(target.layer_id, target.percent)
    except Exception as e:
        error = error_handler.handle_exception(e, ErrorContext(operation='plan'))
        error_handler.log_error(error)
        console.print(f"[red]{escape(error.to_user_message())}[/red]")
        sys.exit(1)

    if not batches:
        console.print(f"[yellow]No online instances in layer {target.layer_id}[/yellow]")
        return

    table = Table(title=f"Rolling deploy plan for app {target.app_id}", show_header=True, header_style="bold")
    table.add_column("Batch", style="cyan", justify="right")
    table.add_column("Hostname", style="white")
    table.add_column("Instance", style="dim")

    for batch in batches:
        for index, instance in enumerate(batch.instances):
            table.add_row(
                str(batch.number) if index == 0 else "",
                instance.hostname,
                instance.instance_id,
            )

    console.print(table)


def main():
    """Console script entry point."""
    cli(obj={})


if __name__ == '__main__':
    main()
