"""
Command-line interface for ddlsync.
"""

import asyncio
import sys
from functools import wraps
from pathlib import Path
from typing import Dict, List, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import DdlSyncConfig
from .exceptions import ConfigurationError, DdlSyncError


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DdlSyncError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)
        except click.ClickException:
            raise
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


def _load_config(path: str, debug: bool = False) -> DdlSyncConfig:
    """Load and validate configuration, then set up logging from it."""
    config = DdlSyncConfig.from_yaml(path)
    config.validate_config()
    config.logging.apply(debug=debug or config.debug)
    return config


def _select_models(config: DdlSyncConfig, names: Tuple[str, ...]):
    schemas = config.build_schemas()
    if not names:
        return schemas
    by_name = {schema.name: schema for schema in schemas}
    missing = [name for name in names if name not in by_name]
    if missing:
        raise ConfigurationError(f"Model configuration '{missing[0]}' not found")
    return [by_name[name] for name in names]


def _build_reconciler(config: DdlSyncConfig, pool, dry_run: bool):
    # Import here to keep CLI startup light
    from .database.introspection import MySQLIntrospector
    from .schema.operations import ExecutionMode, SqlExecutor
    from .schema.reconciler import DropPolicy, SchemaReconciler

    settings = config.schema_management
    mode = ExecutionMode.DRY_RUN if dry_run or settings.dry_run else ExecutionMode.APPLY
    return SchemaReconciler(
        inspector=MySQLIntrospector(pool),
        executor=SqlExecutor(pool, mode),
        type_mapper=config.build_type_mapper(),
        engine=settings.engine,
        default_id_field=settings.default_id_field,
        drop_policy=DropPolicy(settings.drop_policy),
        registry=config.build_registry(),
    )


def _open_pool(config: DdlSyncConfig):
    from .database.connection import ConnectionPool

    return ConnectionPool(config.get_connection_config())


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """ddlsync: keep MySQL tables in sync with declared models."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


config_option = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="ddlsync.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Initialize a new ddlsync configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    _create_default_config().to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Edit the database connection and declare your models")
    console.print("2. Run: ddlsync validate-config -c your-config.yaml")
    console.print("3. Run: ddlsync plan -c your-config.yaml")


@main.command()
@config_option
@click.pass_context
@handle_errors
def validate_config(ctx, config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    try:
        ddlsync_config = _load_config(config, ctx.obj["debug"])
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {escape(str(e))}")
        sys.exit(1)

    console.print("[green]✓[/green] Configuration is valid")
    _display_config_summary(ddlsync_config)


@main.command()
@config_option
@click.option("--model", "-m", "models", multiple=True, help="Model to plan (repeatable)")
@click.pass_context
@handle_errors
def plan(ctx, config: str, models: Tuple[str, ...]):
    """Show the DDL that reconcile would execute."""
    ddlsync_config = _load_config(config, ctx.obj["debug"])
    selected = _select_models(ddlsync_config, models)

    async def run_plan() -> Dict[str, List[str]]:
        async with _open_pool(ddlsync_config) as pool:
            reconciler = _build_reconciler(ddlsync_config, pool, dry_run=True)
            plans = await reconciler.plan_all(selected)
        for table, action_plan in plans.items():
            if action_plan.orphan_columns:
                console.print(
                    f"[yellow]{table}: undeclared columns "
                    f"{', '.join(action_plan.orphan_columns)}[/yellow]"
                )
        return {table: action_plan.render() for table, action_plan in plans.items()}

    planned = asyncio.run(run_plan())
    _display_statements(planned)


@main.command()
@config_option
@click.option("--model", "-m", "models", multiple=True, help="Model to reconcile (repeatable)")
@click.option(
    "--drop",
    "drops",
    multiple=True,
    help="Live column to drop (requires exactly one --model)",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be done without making changes",
)
@click.pass_context
@handle_errors
def reconcile(ctx, config: str, models: Tuple[str, ...], drops: Tuple[str, ...], dry_run: bool):
    """Reconcile database tables with the declared models."""
    console.print("[blue]Schema reconciliation[/blue]")
    ddlsync_config = _load_config(config, ctx.obj["debug"])

    if drops and len(models) != 1:
        raise click.UsageError("--drop requires exactly one --model")
    selected = _select_models(ddlsync_config, models)

    if dry_run or ddlsync_config.schema_management.dry_run:
        console.print("[yellow]Dry run mode - no changes will be made[/yellow]")

    async def run_reconcile():
        async with _open_pool(ddlsync_config) as pool:
            reconciler = _build_reconciler(ddlsync_config, pool, dry_run)
            if drops:
                result = await reconciler.reconcile(selected[0], drop=drops)
                return {result.table: result}
            return await reconciler.reconcile_all(selected)

    results = asyncio.run(run_reconcile())

    table = Table(title="Reconciliation")
    table.add_column("Table", style="cyan")
    table.add_column("Status")
    table.add_column("Statements", justify="right")
    table.add_column("Undeclared columns")
    for name, result in results.items():
        table.add_row(
            name,
            result.status.value,
            str(len(result.statements)),
            ", ".join(result.orphan_columns),
        )
    console.print(table)
    _display_statements({name: r.statements for name, r in results.items()})


@main.command()
@config_option
@click.argument("table_name")
@click.pass_context
@handle_errors
def describe(ctx, config: str, table_name: str):
    """Show the live columns of a table."""
    ddlsync_config = _load_config(config, ctx.obj["debug"])

    async def run_describe():
        from .database.introspection import MySQLIntrospector

        async with _open_pool(ddlsync_config) as pool:
            return await MySQLIntrospector(pool).get_table_info(table_name)

    info = asyncio.run(run_describe())
    if info is None:
        console.print(f"[red]✗ Table {table_name} does not exist[/red]")
        sys.exit(1)

    table = Table(title=f"`{table_name}`")
    table.add_column("Field", style="cyan")
    table.add_column("Type")
    table.add_column("Null")
    table.add_column("Key")
    table.add_column("Default")
    table.add_column("Extra")
    for column in info.columns.values():
        table.add_row(
            column.name,
            column.data_type,
            "YES" if column.is_nullable else "NO",
            column.key,
            "" if column.default_value is None else str(column.default_value),
            column.extra,
        )
    console.print(table)


@main.command()
@config_option
@click.pass_context
@handle_errors
def test_connection(ctx, config: str):
    """Test the database connection."""
    console.print("[blue]Testing connection...[/blue]")
    ddlsync_config = _load_config(config, ctx.obj["debug"])

    async def run_connection_test():
        async with _open_pool(ddlsync_config) as pool:
            return await pool.test_connection()

    status = asyncio.run(run_connection_test())
    if status["status"] == "connected":
        console.print(f"  ✅ [green]Connected[/green] to {status['database']} as {status['user']}")
        console.print(f"     MySQL version: {status['version']}")
    else:
        console.print(f"  ❌ [red]Connection failed: {escape(status['error'])}[/red]")
        sys.exit(1)


def _display_statements(statements: Dict[str, List[str]]) -> None:
    for table_name, sqls in statements.items():
        if not sqls:
            console.print(f"[green]✓[/green] {table_name}: up to date")
            continue
        console.print(f"\n[bold cyan]{table_name}[/bold cyan]")
        for sql in sqls:
            console.print(f"  {sql};", markup=False, highlight=False)


def _display_config_summary(config: DdlSyncConfig) -> None:
    settings = config.schema_management
    console.print(f"\n[bold]Engine:[/bold] {settings.engine}")
    console.print(f"[bold]Drop policy:[/bold] {settings.drop_policy}")

    table = Table(title="Models")
    table.add_column("Model", style="cyan")
    table.add_column("Table")
    table.add_column("Primary key")
    table.add_column("Fields", justify="right")
    for model in config.models:
        table.add_row(model.name, model.table_name, model.id_field, str(len(model.fields)))
    console.print(table)


def _create_default_config() -> DdlSyncConfig:
    """Create a default configuration with examples."""
    from .config import FieldConfig, ModelConfig
    from .database.connection import ConnectionConfig

    return DdlSyncConfig(
        database=ConnectionConfig(
            host="localhost",
            port=3306,
            database="app",
            user="app",
            password="${MYSQL_PASSWORD}",
        ),
        models=[
            ModelConfig(
                name="user",
                table="users",
                fields=[
                    FieldConfig(name="id", type="int"),
                    FieldConfig(name="name", type="string", params={"length": 50}),
                    FieldConfig(name="created", type="datetime"),
                ],
            ),
            ModelConfig(
                name="order",
                table="orders",
                fields=[
                    FieldConfig(name="id", type="int"),
                    FieldConfig(name="user_id", type="reference", references="user"),
                    FieldConfig(name="total", type="money"),
                    FieldConfig(name="note", type="text"),
                ],
            ),
        ],
    )


if __name__ == "__main__":
    main()
