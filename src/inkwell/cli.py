"""CLI entry point for Inkwell."""

import asyncio
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from inkwell import __version__
from inkwell.assistant.conversation import WARNING_PREFIX, ConversationManager, Reply
from inkwell.assistant.prompts import MODE_INSTRUCTIONS
from inkwell.config.loader import DEFAULT_CONFIG_PATH, update_config_file
from inkwell.config.loader import load_config as _load_config
from inkwell.models.config import Config, StoreConfig
from inkwell.models.message import StructuredReply
from inkwell.models.project import Project, Section
from inkwell.models.user import AuthSession, validate_username
from inkwell.services.exceptions import AuthError, StoreError
from inkwell.services.proxy_client import AssistantProxyClient
from inkwell.utils.logging import configure_logging, get_logger


logger = get_logger(__name__)
console = Console()

MODE_CHOICE = click.Choice(sorted(MODE_INSTRUCTIONS), case_sensitive=False)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from the config file and INKWELL_* variables.

    Raises:
        click.ClickException: If config is missing, has invalid permissions, or validation fails
    """
    path = config_path or DEFAULT_CONFIG_PATH
    try:
        return _load_config(path)
    except FileNotFoundError as e:
        logger.error("config_not_found", path=str(path))
        raise click.ClickException(str(e))
    except PermissionError as e:
        logger.error("config_permission_error", path=str(path))
        raise click.ClickException(str(e))
    except Exception as e:
        logger.error("config_validation_error", error=str(e))
        raise click.ClickException(f"Configuration validation failed:\n{e}")


def read_section_file(section_file: Optional[Path]) -> Optional[str]:
    if section_file is None:
        return None
    return section_file.read_text(encoding="utf-8")


def format_reply(reply: Reply) -> str:
    """Printable form of a reply; suggestions are labelled as such."""
    if isinstance(reply, StructuredReply):
        return f"Suggested text:\n\n{reply.new_content}"
    return reply


def build_manager(config: Config) -> ConversationManager:
    client = AssistantProxyClient(config.assistant.proxy_url)
    return ConversationManager(client, max_history=config.assistant.max_history)


@click.group()
@click.version_option(version=__version__, prog_name="inkwell")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file (default: ~/.config/inkwell/config.yaml)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]):
    """Inkwell: an AI assistant for writing projects."""
    configure_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.option("--host", default=None, help="Interface to bind (default from config)")
@click.option("--port", type=int, default=None, help="Port to listen on (default from config)")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]):
    """Run the assistant proxy (POST /api/ai)."""
    import uvicorn
    from inkwell.server.app import create_app

    config = load_config(ctx.obj["config_path"])
    host = host or config.server.host
    port = port or config.server.port

    logger.info(
        "serve_command_started",
        host=host,
        port=port,
        model=config.llm.model,
        key_set=bool(config.llm.api_key),
    )
    click.echo(f"AI backend listening on http://{host}:{port}")

    app = create_app(config.llm)
    uvicorn.run(app, host=host, port=port, log_level="warning")


@cli.command()
@click.argument("text")
@click.option("--mode", type=MODE_CHOICE, default="rewrite", show_default=True, help="Prompt template")
@click.option(
    "--section-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File whose content is sent as context",
)
@click.option("--display", "display_message", default=None, help="Text to store as the visible question")
@click.pass_context
def ask(ctx: click.Context, text: str, mode: str, section_file: Optional[Path], display_message: Optional[str]):
    """
    Ask the assistant once and print the reply.

    Examples:
        inkwell ask --mode fix "Their going to the park"
        inkwell ask --mode summarize --section-file chapter1.md "Chapter one"
    """
    config = load_config(ctx.obj["config_path"])
    manager = build_manager(config)

    logger.info("ask_command_started", mode=mode)
    with console.status("[bold green]Thinking..."):
        reply = asyncio.run(manager.ask(
            text,
            mode=mode,
            display_message=display_message,
            section_content=read_section_file(section_file),
        ))

    click.echo(format_reply(reply))
    if manager.error:
        ctx.exit(1)


@cli.command()
@click.option("--mode", type=MODE_CHOICE, default="rewrite", show_default=True, help="Prompt template")
@click.option(
    "--section-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File whose content is sent as context with every turn",
)
@click.pass_context
def chat(ctx: click.Context, mode: str, section_file: Optional[Path]):
    """
    Interactive chat with the assistant.

    Commands: /regen regenerates the last reply, /clear forgets the
    conversation, /quit exits.
    """
    config = load_config(ctx.obj["config_path"])
    manager = build_manager(config)
    section_content = read_section_file(section_file)

    logger.info("chat_command_started", mode=mode, has_section_content=bool(section_content))
    click.echo("Type a message, or /regen, /clear, /quit.")

    async def run_loop():
        while True:
            try:
                # Read input off the event loop
                line = (await asyncio.to_thread(click.prompt, "you", prompt_suffix="> ")).strip()
            except click.Abort:
                break

            if not line:
                continue
            if line == "/quit":
                break
            if line == "/clear":
                manager.clear_history()
                click.echo("History cleared.")
                continue

            with console.status("[bold green]Thinking..."):
                if line == "/regen":
                    reply = await manager.regenerate()
                else:
                    reply = await manager.ask(line, mode=mode, section_content=section_content)

            if reply is None:
                click.echo("Nothing to regenerate yet.")
                continue

            text = format_reply(reply)
            if isinstance(reply, str) and reply.startswith(WARNING_PREFIX):
                click.secho(text, fg="yellow", err=True)
            else:
                click.echo(f"\n{text}\n")

    asyncio.run(run_loop())
    logger.info("chat_command_completed", turns=len(manager.history))


def _open_store(store_config: StoreConfig):
    from inkwell.services.project_store import RestProjectStore

    try:
        return RestProjectStore(store_config)
    except ValueError as e:
        raise click.ClickException(str(e))


def _open_auth(store_config: StoreConfig):
    from inkwell.services.auth import StoreAuthClient

    try:
        return StoreAuthClient(store_config)
    except ValueError as e:
        raise click.ClickException(str(e))


def _config_file(ctx: click.Context) -> Path:
    return ctx.obj["config_path"] or DEFAULT_CONFIG_PATH


def _require_user(config: Config) -> str:
    if not config.store.user_id:
        raise click.ClickException("Not signed in. Run `inkwell login` (or set store.user_id).")
    return config.store.user_id


def _require_token(config: Config) -> str:
    if not config.store.access_token:
        raise click.ClickException("Not signed in. Run `inkwell login` first.")
    return config.store.access_token


def _save_session(ctx: click.Context, session: AuthSession) -> None:
    update_config_file(_config_file(ctx), "store", {
        "access_token": session.access_token,
        "user_id": session.user_id,
    })


def _load_project(store, project_id: str) -> Project:
    try:
        return store.get_project(project_id)
    except StoreError as e:
        raise click.ClickException(str(e))


def _get_section(project: Project, section_id: int) -> Section:
    try:
        return project.get_section(section_id)
    except KeyError as e:
        raise click.ClickException(str(e.args[0]))


def _save_sections(store, project: Project) -> None:
    try:
        store.save_sections(project)
    except StoreError as e:
        raise click.ClickException(f"Error saving sections: {e}")


# Account commands


@cli.command()
@click.option("--email", prompt=True, help="Account email")
@click.password_option("--password", confirmation_prompt=False, help="Account password")
@click.pass_context
def login(ctx: click.Context, email: str, password: str):
    """Sign in and remember the session in the config file."""
    config = load_config(ctx.obj["config_path"])
    with _open_auth(config.store) as auth:
        try:
            session = auth.sign_in(email, password)
        except AuthError as e:
            raise click.ClickException(str(e))

    _save_session(ctx, session)
    click.echo(f"Signed in as {session.email or email}.")


@cli.command()
@click.option("--email", prompt=True, help="Account email")
@click.password_option("--password", help="Account password")
@click.option("--username", prompt=True, help="Public display name (min. 3 characters)")
@click.pass_context
def signup(ctx: click.Context, email: str, password: str, username: str):
    """Create an account with a public username."""
    config = load_config(ctx.obj["config_path"])
    try:
        validate_username(username)
    except ValueError as e:
        raise click.ClickException(str(e))

    with _open_store(config.store) as store:
        try:
            taken = store.username_taken(username)
        except StoreError as e:
            raise click.ClickException(str(e))
    if taken:
        raise click.ClickException("This username is already taken")

    with _open_auth(config.store) as auth:
        try:
            session = auth.sign_up(email, password)
        except AuthError as e:
            raise click.ClickException(str(e))

    # Write the profile as the new user when a session was issued
    token = session.access_token or config.store.access_token
    store_config = config.store.model_copy(update={"access_token": token})
    with _open_store(store_config) as store:
        try:
            store.save_profile(session.user_id, username)
        except StoreError as e:
            raise click.ClickException(f"Error creating profile: {e}")

    if session.is_active:
        _save_session(ctx, session)
        click.echo(f"Account created. Signed in as {email}.")
    else:
        click.echo("Account created. Confirm your email address, then run `inkwell login`.")


@cli.command()
@click.pass_context
def logout(ctx: click.Context):
    """Forget the stored session."""
    update_config_file(_config_file(ctx), "store", {"access_token": None, "user_id": None})
    click.echo("Signed out.")


@cli.command()
@click.pass_context
def whoami(ctx: click.Context):
    """Show the signed-in account."""
    config = load_config(ctx.obj["config_path"])
    token = _require_token(config)
    with _open_auth(config.store) as auth:
        try:
            user = auth.get_user(token)
        except AuthError as e:
            raise click.ClickException(f"{e} (run `inkwell login` again)")
    click.echo(f"{user.get('email')}  {user.get('id')}")


@cli.command()
@click.pass_context
def password(ctx: click.Context):
    """Change the account password."""
    config = load_config(ctx.obj["config_path"])
    token = _require_token(config)

    current = click.prompt("Current password", hide_input=True)
    new = click.prompt("New password", hide_input=True)
    confirm = click.prompt("Confirm new password", hide_input=True)
    if new != confirm:
        raise click.ClickException("New passwords do not match")

    with _open_auth(config.store) as auth:
        try:
            email = auth.get_user(token).get("email")
        except AuthError as e:
            raise click.ClickException(str(e))
        if not email:
            raise click.ClickException("User not found")

        try:
            session = auth.sign_in(email, current)
        except AuthError:
            raise click.ClickException("Current password is incorrect")

        try:
            auth.update_password(session.access_token, new)
        except AuthError as e:
            raise click.ClickException(str(e))

    _save_session(ctx, session)
    click.echo("Password updated successfully")


@cli.command()
@click.argument("new_username")
@click.pass_context
def username(ctx: click.Context, new_username: str):
    """Change your public username."""
    config = load_config(ctx.obj["config_path"])
    user_id = _require_user(config)
    try:
        validate_username(new_username)
    except ValueError as e:
        raise click.ClickException(str(e))

    with _open_store(config.store) as store:
        try:
            if store.username_taken(new_username):
                raise click.ClickException("This username is already taken")
            store.save_profile(user_id, new_username)
        except StoreError as e:
            raise click.ClickException(str(e))
    click.echo("Username updated successfully")


# Project commands


@cli.command()
@click.pass_context
def projects(ctx: click.Context):
    """List your projects and their sections."""
    config = load_config(ctx.obj["config_path"])
    user_id = _require_user(config)

    with _open_store(config.store) as store:
        try:
            items = store.list_projects(user_id)
        except StoreError as e:
            raise click.ClickException(f"Error loading projects: {e}")

    if not items:
        click.echo("No projects yet.")
        return

    for item in items:
        click.echo(f"{item.id}  {item.name}")
        for entry in item.sections:
            click.echo(f"    {entry.id}  {entry.name}")


@cli.group()
def project():
    """Create, rename and delete projects."""


@project.command("new")
@click.argument("name")
@click.pass_context
def project_new(ctx: click.Context, name: str):
    """Create an empty project."""
    config = load_config(ctx.obj["config_path"])
    user_id = _require_user(config)
    with _open_store(config.store) as store:
        try:
            created = store.create_project(user_id, name)
        except (ValueError, StoreError) as e:
            raise click.ClickException(str(e))
    click.echo(f"Created project {created.id}  {created.name}")


@project.command("rename")
@click.argument("project_id")
@click.argument("name")
@click.pass_context
def project_rename(ctx: click.Context, project_id: str, name: str):
    """Rename a project (a blank name changes nothing)."""
    if not name.strip():
        click.echo("Blank name; project not renamed.")
        return
    config = load_config(ctx.obj["config_path"])
    with _open_store(config.store) as store:
        try:
            store.rename_project(project_id, name)
        except StoreError as e:
            raise click.ClickException(f"Error renaming project: {e}")
    click.echo(f"Renamed project {project_id} to {name}")


@project.command("delete")
@click.argument("project_id")
@click.confirmation_option(prompt="Delete this project?")
@click.pass_context
def project_delete(ctx: click.Context, project_id: str):
    """Delete a project and all its sections."""
    config = load_config(ctx.obj["config_path"])
    with _open_store(config.store) as store:
        try:
            store.delete_project(project_id)
        except StoreError as e:
            raise click.ClickException(f"Error deleting project: {e}")
    click.echo(f"Deleted project {project_id}")


@cli.group()
def section():
    """Add, rename, remove and edit sections of a project."""


@section.command("add")
@click.argument("project_id")
@click.argument("name")
@click.pass_context
def section_add(ctx: click.Context, project_id: str, name: str):
    """Append an empty section."""
    config = load_config(ctx.obj["config_path"])
    with _open_store(config.store) as store:
        target = _load_project(store, project_id)
        try:
            added = target.add_section(name)
        except ValueError as e:
            raise click.ClickException(str(e))
        _save_sections(store, target)
    click.echo(f"Added section {added.id}  {added.name}")


@section.command("rename")
@click.argument("project_id")
@click.argument("section_id", type=int)
@click.argument("name")
@click.pass_context
def section_rename(ctx: click.Context, project_id: str, section_id: int, name: str):
    """Rename a section (a blank name changes nothing)."""
    config = load_config(ctx.obj["config_path"])
    with _open_store(config.store) as store:
        target = _load_project(store, project_id)
        _get_section(target, section_id)
        if not name.strip():
            click.echo("Blank name; section not renamed.")
            return
        target.rename_section(section_id, name)
        _save_sections(store, target)
    click.echo(f"Renamed section {section_id} to {name}")


@section.command("remove")
@click.argument("project_id")
@click.argument("section_id", type=int)
@click.confirmation_option(prompt="Delete this section?")
@click.pass_context
def section_remove(ctx: click.Context, project_id: str, section_id: int):
    """Remove a section from a project."""
    config = load_config(ctx.obj["config_path"])
    with _open_store(config.store) as store:
        target = _load_project(store, project_id)
        _get_section(target, section_id)
        target.remove_section(section_id)
        _save_sections(store, target)
    click.echo(f"Removed section {section_id}")


@section.command("edit")
@click.argument("project_id")
@click.argument("section_id", type=int)
@click.option(
    "--file",
    "content_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File whose text replaces the section content",
)
@click.pass_context
def section_edit(ctx: click.Context, project_id: str, section_id: int, content_file: Path):
    """Replace a section's content and save the project."""
    config = load_config(ctx.obj["config_path"])
    content = content_file.read_text(encoding="utf-8")
    with _open_store(config.store) as store:
        target = _load_project(store, project_id)
        _get_section(target, section_id)
        target.update_section_content(section_id, content)
        _save_sections(store, target)
    click.echo(f"Saved section {section_id} ({len(content)} characters)")


@cli.command("ask-project")
@click.argument("project_id")
@click.argument("question")
@click.pass_context
def ask_project(ctx: click.Context, project_id: str, question: str):
    """Ask a question about a whole project (all sections are sent as context)."""
    from inkwell.assistant.prompts import compose_project_question

    config = load_config(ctx.obj["config_path"])
    with _open_store(config.store) as store:
        target = _load_project(store, project_id)

    manager = build_manager(config)
    logger.info("ask_project_command_started", project_id=project_id, sections=len(target.sections))
    with console.status("[bold green]Thinking..."):
        # Answers are prose, never a replacement for the text
        reply = asyncio.run(manager.ask(
            compose_project_question(target, question),
            display_message=question,
            expect_structured_edit=False,
        ))

    click.echo(format_reply(reply))
    if manager.error:
        ctx.exit(1)


@cli.command()
@click.argument("project_id")
@click.argument("section_id", type=int)
@click.option("--format", "fmt", type=click.Choice(["md", "txt"]), default="md", show_default=True)
@click.option(
    "--out",
    "out_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    help="Directory to write to (default: current directory)",
)
@click.pass_context
def export(ctx: click.Context, project_id: str, section_id: int, fmt: str, out_dir: Path):
    """Export one section of a project to a .md or .txt file."""
    from inkwell.services.export import export_section

    config = load_config(ctx.obj["config_path"])
    with _open_store(config.store) as store:
        target = _load_project(store, project_id)

    chosen = _get_section(target, section_id)
    path = export_section(chosen.name, chosen.content, fmt, out_dir)
    click.echo(f"Exported to {path}")


def main():
    """Main entry point for setuptools console script."""
    cli()


if __name__ == "__main__":
    main()
