"""
Command-line interface for ceiba.
"""

import sys
from functools import wraps
from pathlib import Path
from typing import List, Optional, Tuple

import click
import yaml
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import CeibaConfig, configure_logging
from .exceptions import CeibaError, ConfigurationError
from .schema.hashing import hash_dataset, hash_properties, hash_table, hash_tables
from .schema.models import DatasetSpec


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except CeibaError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {e}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """ceiba: Declarative, non-destructive schema sync for BigQuery datasets."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="ceiba-config.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Initialize a new ceiba configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    config = _create_default_config()
    config.to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Set your project and declare your datasets and tables")
    console.print("2. Run: ceiba validate-config -c your-config.yaml")
    console.print("3. Run: ceiba sync -c your-config.yaml --output state.yaml")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def validate_config(config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    try:
        ceiba_config = CeibaConfig.from_yaml(config)
        ceiba_config.validate_config()

        console.print("[green]✓[/green] Configuration is valid")

        _display_config_summary(ceiba_config)

    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        sys.exit(1)


@main.command(name="hash")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--dataset",
    "-d",
    "dataset_ids",
    multiple=True,
    help="Only show these datasets",
)
@handle_errors
def hash_command(config: str, dataset_ids: Tuple[str, ...]):
    """Show the content hashes a sync would record."""
    ceiba_config = CeibaConfig.from_yaml(config)

    for dataset in _select_datasets(ceiba_config, dataset_ids):
        hash_table_view = Table(title=f"{dataset.project}.{dataset.id}")
        hash_table_view.add_column("Scope", style="cyan")
        hash_table_view.add_column("Hash", style="green")

        hash_table_view.add_row("dataset", hash_dataset(dataset))
        hash_table_view.add_row("tables", hash_tables(dataset.tables))
        hash_table_view.add_row("properties", hash_properties(dataset.properties))
        for table in dataset.tables:
            hash_table_view.add_row(f"table {table.id}", hash_table(table))

        console.print(hash_table_view)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--dataset",
    "-d",
    "dataset_ids",
    multiple=True,
    help="Only sync these datasets",
)
@click.option(
    "--ignore-cache",
    is_flag=True,
    help="Disregard cached hash labels and fully reconcile",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="Write the synchronized dataset specs to this YAML file",
)
@click.pass_context
@handle_errors
def sync(ctx, config: str, dataset_ids: Tuple[str, ...], ignore_cache: bool, output: Optional[str]):
    """Synchronize declared datasets with BigQuery."""
    ceiba_config = CeibaConfig.from_yaml(config)
    configure_logging(ceiba_config.logging, debug=ctx.obj.get("debug", False))

    results = []
    for dataset in _select_datasets(ceiba_config, dataset_ids):
        reconciler = _build_reconciler(ceiba_config, dataset, ignore_cache)
        results.append(reconciler.sync(dataset))

    _display_sync_results(results)

    if output:
        _write_datasets(output, [r.dataset for r in results])
        console.print(f"[green]✓[/green] Synchronized specs written to {output}")


@main.command(name="sync-tables")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--dataset",
    "-d",
    "dataset_id",
    required=True,
    help="Dataset holding the tables",
)
@click.option(
    "--table",
    "-t",
    "table_ids",
    multiple=True,
    help="Table to sync (repeatable); all declared tables if omitted",
)
@click.option(
    "--ignore-cache",
    is_flag=True,
    help="Disregard cached hash labels",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="Write the synchronized dataset spec to this YAML file",
)
@click.pass_context
@handle_errors
def sync_tables(
    ctx,
    config: str,
    dataset_id: str,
    table_ids: Tuple[str, ...],
    ignore_cache: bool,
    output: Optional[str],
):
    """Synchronize a subset of one dataset's tables."""
    ceiba_config = CeibaConfig.from_yaml(config)
    configure_logging(ceiba_config.logging, debug=ctx.obj.get("debug", False))

    dataset = ceiba_config.get_dataset(dataset_id)
    reconciler = _build_reconciler(ceiba_config, dataset, ignore_cache)
    result = reconciler.sync_tables(dataset, list(table_ids) or None)

    _display_sync_results([result])

    if output:
        _write_datasets(output, [result.dataset])
        console.print(f"[green]✓[/green] Synchronized spec written to {output}")


def _select_datasets(config: CeibaConfig, dataset_ids: Tuple[str, ...]) -> List[DatasetSpec]:
    if not dataset_ids:
        return list(config.datasets)
    return [config.get_dataset(dataset_id) for dataset_id in dataset_ids]


def _build_reconciler(config: CeibaConfig, dataset: DatasetSpec, ignore_cache: bool):
    # Import here so the google client is only loaded for commands that talk to BigQuery
    from .store.bigquery import BigQueryStore
    from .sync.reconciler import DatasetReconciler

    store = BigQueryStore(
        project=dataset.project,
        location=dataset.location,
        credentials_file=config.credentials_file,
    )
    return DatasetReconciler(store, ignore_cache=ignore_cache or config.ignore_cache)


def _write_datasets(path: str, datasets: List[DatasetSpec]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(
            {"datasets": [d.to_dict() for d in datasets]},
            f,
            default_flow_style=False,
            indent=2,
            sort_keys=False,
        )


def _create_default_config() -> CeibaConfig:
    """Create a default configuration with examples."""
    dataset = DatasetSpec.from_dict(
        {
            "project": "${GCP_PROJECT}",
            "location": "US",
            "id": "analytics",
            "properties": {
                "description": "Analytics warehouse",
                "labels": {"team": "data"},
            },
            "tables": [
                {
                    "id": "events",
                    "type": "standard",
                    "description": "Raw application events",
                    "fields": [
                        {"name": "event_id", "type": "string", "mode": "required"},
                        {"name": "occurred_at", "type": "timestamp", "mode": "required"},
                        {"name": "payload", "type": "json"},
                    ],
                    "constraints": {"primaryKeys": ["event_id"], "foreignKeys": []},
                },
                {
                    "id": "daily_events",
                    "type": "view",
                    "viewQuery": (
                        "SELECT DATE(occurred_at) AS day, COUNT(*) AS events "
                        "FROM analytics.events GROUP BY day"
                    ),
                },
            ],
        }
    )
    return CeibaConfig(project="${GCP_PROJECT}", datasets=[dataset])


def _display_config_summary(config: CeibaConfig):
    """Display a summary of the configuration."""
    console.print("\n[blue]Configuration Summary[/blue]")

    ds_table = Table(title="Datasets")
    ds_table.add_column("Project", style="cyan")
    ds_table.add_column("Dataset", style="magenta")
    ds_table.add_column("Location", style="green")
    ds_table.add_column("Tables", style="yellow")

    for dataset in config.datasets:
        ds_table.add_row(
            dataset.project,
            dataset.id,
            dataset.location,
            str(len(dataset.tables)),
        )

    console.print(ds_table)

    if any(d.tables for d in config.datasets):
        table_table = Table(title="Declared Tables")
        table_table.add_column("Dataset", style="cyan")
        table_table.add_column("Table", style="magenta")
        table_table.add_column("Type", style="green")
        table_table.add_column("Fields", style="yellow")

        for dataset in config.datasets:
            for table in dataset.tables:
                table_table.add_row(
                    dataset.id,
                    table.id,
                    table.type.value,
                    str(len(table.fields)),
                )

        console.print(table_table)


def _display_sync_results(results):
    """Display a summary of sync results."""
    result_table = Table(title="Sync Results")
    result_table.add_column("Dataset", style="cyan")
    result_table.add_column("Status", style="magenta")
    result_table.add_column("Created", style="green")
    result_table.add_column("Altered", style="yellow")
    result_table.add_column("Adopted", style="yellow")
    result_table.add_column("Writes", style="blue")
    result_table.add_column("Time (ms)")

    for result in results:
        report = result.tables
        result_table.add_row(
            result.dataset.id,
            result.status.value,
            ", ".join(report.created) if report else "",
            ", ".join(report.altered) if report else "",
            ", ".join(report.adopted) if report else "",
            str(result.remote_writes),
            f"{result.execution_time_ms:.1f}",
        )

    console.print(result_table)


if __name__ == "__main__":
    main()
