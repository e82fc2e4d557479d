from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import col, or_, select

rich_console = Console()

app = typer.Typer(name="Maxit CLI")


@app.command(name="init-db")
def init_db():
    """Create all tables. Use alembic migrations outside of development."""
    from maxit_backend.database import engine
    from maxit_backend.models import metadata

    metadata.create_all(engine)
    rich_console.print(f"Created [bold green]{len(metadata.tables)}[/bold green] tables")


@app.command(name="create-admin")
def create_admin(
    email: str,
    username: str,
    password: Annotated[str, typer.Argument(help="At least 8 characters")],
    name: Annotated[str, typer.Option(help="First name")] = "Admin",
    surname: Annotated[str, typer.Option(help="Last name")] = "Admin",
):
    """Create an admin account, or promote an existing account with the same email"""
    from maxit_backend.database import SessionLocal
    from maxit_backend.dependencies.auth import AUTH_PWD_CONTEXT
    from maxit_backend.models.user import UserORM, UserRole

    if len(password) < 8:
        rich_console.print("[bold red]Password must be at least 8 characters long[/bold red]")
        raise typer.Exit(code=1)

    with SessionLocal() as db_session:
        user = db_session.exec(
            select(UserORM).where(
                or_(col(UserORM.email) == email, col(UserORM.username) == username)
            )
        ).first()
        if user is not None:
            if user.email != email:
                rich_console.print(f"[bold red]Username '{username}' is already taken[/bold red]")
                raise typer.Exit(code=1)
            typer.confirm(f"User '{user.username}' already exists. Make them an admin?", abort=True)
            user.role = UserRole.ADMIN
        else:
            user = UserORM(
                name=name,
                surname=surname,
                email=email,
                username=username,
                password_hash=AUTH_PWD_CONTEXT.hash(password),
                role=UserRole.ADMIN,
            )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)

        table = Table(show_header=True, show_lines=True)
        table.add_column("Field", style="cyan bold", no_wrap=True)
        table.add_column("Value", style="white")
        table.add_row("ID", str(user.id))
        table.add_row("Username", user.username)
        table.add_row("Email", user.email)
        table.add_row("Role", str(user.role))
        rich_console.print(table)


@app.command(name="seed-languages")
def seed_languages():
    """Add the default C and C++ versions"""
    from maxit_backend.database import SessionLocal
    from maxit_backend.services.language import LanguageService

    with SessionLocal() as db_session:
        language_service = LanguageService(db_session)
        created = language_service.seed_defaults()

        table = Table(title="Languages")
        table.add_column("ID", style="magenta")
        table.add_column("Type", style="cyan")
        table.add_column("Version", style="green")
        table.add_column("Extension")
        for language in language_service.get_all_enabled():
            table.add_row(str(language.id), language.type, language.version, language.file_extension)

    rich_console.print(table)
    rich_console.print(f"Added [bold green]{created}[/bold green] new language versions")


@app.command(name="serve")
def serve(
    host: Annotated[str, typer.Option()] = "127.0.0.1",
    port: Annotated[int, typer.Option()] = 8000,
    reload: Annotated[bool, typer.Option()] = False,
):
    """Run the API with uvicorn"""
    import uvicorn

    uvicorn.run("maxit_backend.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
