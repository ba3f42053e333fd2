"""LogiFlow CLI - Main entry point."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from . import database
from .config import settings

app = typer.Typer(
    name="logiflow",
    help="LogiFlow: e-commerce logistics backend",
    no_args_is_help=True,
)
console = Console()


async def _run_with_session(fn):
    """Run ``fn(session)`` against the configured database, creating tables first."""
    try:
        await database.create_all()
        async with database.async_session_factory() as session:
            return await fn(session)
    finally:
        await database.engine.dispose()


@app.command()
def serve(
    port: int = typer.Option(8030, "--port", "-p", help="Port to run on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Launch the LogiFlow API server."""
    import uvicorn

    console.print(f"[bold cyan]Starting LogiFlow at http://{host}:{port}[/bold cyan]")
    uvicorn.run("logiflow.app:app", host=host, port=port, reload=reload)


@app.command("init-admin-user")
def init_admin_user(
    email: str = typer.Option(None, "--email", "-e", help="Admin e-mail (default: LOGIFLOW_ADMIN_EMAIL)"),
    name: str = typer.Option(None, "--name", "-n", help="Admin display name (default: LOGIFLOW_ADMIN_NAME)"),
):
    """Create (or promote) the Admin staff record. Safe to run repeatedly."""
    from .services import user_svc

    email = (email or settings.admin_email or "").strip()
    name = (name or settings.admin_name or "").strip()
    if not email or not name:
        console.print("[red]Admin e-mail and name are required (LOGIFLOW_ADMIN_EMAIL / LOGIFLOW_ADMIN_NAME).[/red]")
        raise typer.Exit(1)

    user, created = asyncio.run(_run_with_session(lambda db: user_svc.ensure_admin(db, email, name)))
    if created:
        console.print(f"[green]Admin user created:[/green] {user.email} ({user.id_usuario})")
    else:
        console.print(f"[yellow]Admin user already exists:[/yellow] {user.email} ({user.id_usuario})")


@app.command()
def seed(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """Clear orders, clients, inventory and users, then load demo data."""
    from .services import seed_svc

    if settings.is_production:
        console.print("[red]Refusing to seed a production database.[/red]")
        raise typer.Exit(1)
    if not yes:
        typer.confirm("This deletes all orders, clients, inventory and users. Continue?", abort=True)

    counts = asyncio.run(_run_with_session(seed_svc.seed_all))

    table = Table(title="Seeded")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)


@app.command()
def stores():
    """List the configured Shopify stores."""
    store_map = settings.shopify_store_map
    if not store_map:
        console.print("[yellow]No Shopify stores configured (LOGIFLOW_SHOPIFY_STORES).[/yellow]")
        return

    table = Table(title="Shopify Stores")
    table.add_column("Store ID", style="cyan")
    table.add_column("Name")
    table.add_column("Domain")
    table.add_column("API Version")
    table.add_column("Webhook Secret")
    table.add_column("Active")
    for store_id, store in sorted(store_map.items()):
        table.add_row(
            store_id,
            store.name,
            store.domain,
            store.api_version,
            "[green]set[/green]" if store.webhook_secret else "[red]missing[/red]",
            "yes" if store.active else "no",
        )
    console.print(table)


if __name__ == "__main__":
    app()
