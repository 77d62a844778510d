"""RBAC Console CLI tool (rbacctl)."""

import asyncio
from pathlib import Path
from typing import Iterable, List, Optional

import typer

app = typer.Typer(name="rbacctl", help="RBAC Console CLI")
db_app = typer.Typer(help="Database management commands")
hides_app = typer.Typer(help="Locally hidden menu entries")
app.add_typer(db_app, name="db")
app.add_typer(hides_app, name="hides")


def _echo_menu(nodes: Iterable, depth: int = 0) -> None:
    for node in nodes:
        suffix = f"  {node.path}" if node.path else ""
        typer.echo(f"{'  ' * depth}- {node.label} [{node.id}]{suffix}")
        _echo_menu(node.children, depth + 1)


def _hide_store(path: Optional[Path]):
    from rbac_console.authz.hides import LocalHideStore
    from rbac_console.core.config import settings
    return LocalHideStore(path or settings.LOCAL_HIDES_PATH)


@db_app.command("init")
def db_init():
    """Create all tables."""
    from rbac_console.db.base import Base
    from rbac_console.db.session import engine
    import rbac_console.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Tables created (or already exist)")


@db_app.command("seed")
def db_seed():
    """Seed permissions, roles, the admin user, and sample users."""
    from rbac_console.db.session import SessionLocal
    from rbac_console.db.seeds.seed_permissions import seed_permissions
    from rbac_console.db.seeds.seed_roles import seed_roles
    from rbac_console.db.seeds.seed_admin import seed_admin
    from rbac_console.db.seeds.seed_sample_data import seed_sample_data

    db = SessionLocal()
    try:
        seed_permissions(db)
        seed_roles(db)
        seed_admin(db)
        seed_sample_data(db)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


@db_app.command("reset")
def db_reset():
    """Drop and recreate every table (DANGER)."""
    confirm = typer.confirm("⚠️  This will DROP all console tables. Continue?")
    if not confirm:
        raise typer.Abort()
    from rbac_console.db.base import Base
    from rbac_console.db.session import engine
    import rbac_console.models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Database reset")


@app.command("menu")
def show_menu(
    name: str = typer.Argument(..., help="User name"),
    hide: bool = typer.Option(False, "--hide", help="Apply this machine's hidden entries"),
    hides_file: Optional[Path] = typer.Option(None, help="Hidden entries file"),
):
    """Print the menu a user would see, computed from the database."""
    from rbac_console.core.exceptions import AuthenticationError
    from rbac_console.db.session import SessionLocal
    from rbac_console.services.auth_service import auth_service
    from rbac_console.services.menu_service import menu_service
    from rbac_console.services.user_service import user_service
    from rbac_console.authz.menu import menu_from_dict

    hidden = _hide_store(hides_file).hidden if hide else frozenset()
    db = SessionLocal()
    try:
        user = user_service.get_by_name(db, name)
        if not user:
            typer.echo(f"User '{name}' not found", err=True)
            raise typer.Exit(code=1)
        try:
            principal = auth_service.load_principal(db, user.id)
        except AuthenticationError as e:
            typer.echo(e.message, err=True)
            raise typer.Exit(code=1)
        menu = [menu_from_dict(item) for item in menu_service.resolve(principal, hidden)]
    finally:
        db.close()

    primary = principal.primary_role
    typer.echo(f"{principal.name} ({primary.name if primary else 'no role'})")
    typer.echo(f"Permissions: {', '.join(sorted(principal.effective_permissions)) or '-'}")
    _echo_menu(menu)


@hides_app.command("toggle")
def hides_toggle(
    node_ids: List[str] = typer.Argument(..., help="Menu node id(s)"),
    hides_file: Optional[Path] = typer.Option(None, help="Hidden entries file"),
):
    """Flip the hidden flag of one or more menu entries."""
    from rbac_console.authz.menu import menu_node_ids
    from rbac_console.authz.navigation import SYSTEM_MENU

    store = _hide_store(hides_file)
    known = set(menu_node_ids(SYSTEM_MENU))
    for node_id in node_ids:
        if node_id not in known:
            typer.echo(f"⚠️  '{node_id}' is not a menu entry", err=True)
        store.toggle(node_id)
        state = "hidden" if store.is_hidden(node_id) else "shown"
        typer.echo(f"{node_id}: {state}")


@hides_app.command("reset")
def hides_reset(hides_file: Optional[Path] = typer.Option(None, help="Hidden entries file")):
    """Show every menu entry again."""
    _hide_store(hides_file).reset()
    typer.echo("✅ All menu entries are visible")


@hides_app.command("show")
def hides_show(hides_file: Optional[Path] = typer.Option(None, help="Hidden entries file")):
    """List locally hidden menu entries."""
    store = _hide_store(hides_file)
    if not store.hidden:
        typer.echo("No hidden entries")
        return
    for node_id in sorted(store.hidden):
        typer.echo(node_id)


async def _open_session(
    name: str,
    password: str,
    act_as: Optional[int],
    base_url: Optional[str],
    hides_file: Optional[Path],
) -> int:
    from rbac_console.authz.session import MenuView, SessionContext
    from rbac_console.services.console_client import ConsoleClient

    async with ConsoleClient(base_url=base_url) as client:
        session = SessionContext(client)
        outcome = await session.login(name, password)
        if not outcome.ok:
            typer.echo(f"Login {outcome.status.value}: {outcome.message}", err=True)
            return 1
        if act_as is not None:
            outcome = await session.impersonate(act_as)
            if not outcome.ok:
                typer.echo(f"Login-as {outcome.status.value}: {outcome.message}", err=True)
                return 1

        view = MenuView(session, _hide_store(hides_file))
        try:
            identity = session.identity
            primary = session.primary_role
            typer.echo(f"Signed in as {identity.name} ({primary.name if primary else 'no role'})")
            typer.echo(f"Permissions: {', '.join(sorted(session.effective_permissions)) or '-'}")
            _echo_menu(view.current())
        finally:
            view.close()
            session.logout()
    return 0


@app.command("login")
def login(
    name: str = typer.Argument(..., help="User name"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    act_as: Optional[int] = typer.Option(None, "--as", help="Act as this user id after signing in"),
    base_url: Optional[str] = typer.Option(None, help="API base URL"),
    hides_file: Optional[Path] = typer.Option(None, help="Hidden entries file"),
):
    """Sign in against a running API and print the visible menu."""
    code = asyncio.run(_open_session(name, password, act_as, base_url, hides_file))
    if code:
        raise typer.Exit(code=code)


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("rbac_console.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
