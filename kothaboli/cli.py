from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import typer

from . import compose, speech, storyboard
from .export import EXPORT_FORMATS, export_filename, export_story
from .models import ALLOWED_AUTO_SAVE_INTERVALS_MS, Category, Persona, Story, UiTheme
from .paths import ensure_dirs, exports_dir, narration_path, root_path
from .workspace import Workspace

app = typer.Typer(help="Kotha-Boli: a Bengali fiction workbench")

CLI_ERRORS = (FileNotFoundError, ValueError, RuntimeError, KeyError)


@app.callback()
def configure_logging() -> None:
    level_name = os.environ.get("KOTHABOLI_LOG_LEVEL", "WARNING").strip().upper() or "WARNING"
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def fail(message: str) -> typer.Exit:
    typer.secho(message, fg=typer.colors.RED)
    return typer.Exit(code=1)


@contextmanager
def open_workspace(root: str) -> Iterator[Workspace]:
    workspace = Workspace(root_path(root))
    try:
        workspace.open()
        yield workspace
    except typer.Exit:
        raise
    except CLI_ERRORS as exc:
        raise fail(str(exc)) from exc
    finally:
        workspace.close()
        if workspace.store is not None and workspace.store.last_error is not None:
            typer.secho(f"Warning: {workspace.store.last_error}", fg=typer.colors.YELLOW)


def require_active(workspace: Workspace) -> Story:
    story = workspace.store.active_story
    if story is None:
        raise fail("No active story; run `kothaboli new` or `kothaboli open ID` first.")
    return story


def describe(story: Story, active: bool) -> str:
    marker = "*" if active else " "
    return (
        f"{marker} {story.id}  {story.title or 'শিরোনামহীন'}  "
        f"[{story.category.value}, {story.word_count()} words]"
    )


@app.command("init")
def init(root: str = typer.Option(".", "--root", help="Workspace directory")) -> None:
    """Initialize a workspace."""
    root_dir = root_path(root)
    try:
        ensure_dirs(root_dir)
    except ValueError as exc:
        raise fail(str(exc)) from exc
    typer.secho(f"Initialized Kotha-Boli workspace at {root_dir}", fg=typer.colors.GREEN)


@app.command("new")
def new(root: str = typer.Option(".", "--root", help="Workspace directory")) -> None:
    """Create a story and make it active."""
    with open_workspace(root) as workspace:
        story = workspace.store.create()
        typer.echo(story.id)


@app.command("list")
def list_stories(root: str = typer.Option(".", "--root", help="Workspace directory")) -> None:
    """List stories, newest first."""
    with open_workspace(root) as workspace:
        for story in workspace.store.stories:
            typer.echo(describe(story, story.id == workspace.store.active_id))


@app.command("show")
def show(root: str = typer.Option(".", "--root", help="Workspace directory")) -> None:
    """Print the active story."""
    with open_workspace(root) as workspace:
        story = require_active(workspace)
        typer.echo(story.title)
        if story.author:
            typer.echo(story.author)
        if story.synopsis:
            typer.echo(story.synopsis)
        typer.echo("")
        typer.echo(story.content)
        for index, scene in enumerate(story.storyboard, start=1):
            image = " [image]" if scene.image_url else ""
            typer.echo(f"{index}. ({scene.id}) {scene.text}{image}")


@app.command("open")
def open_story(
    story_id: str = typer.Argument(..., help="Story id"),
    root: str = typer.Option(".", "--root", help="Workspace directory"),
) -> None:
    """Make a story active."""
    with open_workspace(root) as workspace:
        workspace.store.set_active(story_id)
        typer.secho(f"Opened {story_id}", fg=typer.colors.GREEN)


@app.command("edit")
def edit(
    root: str = typer.Option(".", "--root", help="Workspace directory"),
    title: str | None = typer.Option(None, "--title", help="Story title"),
    author: str | None = typer.Option(None, "--author", help="Author name"),
    synopsis: str | None = typer.Option(None, "--synopsis", help="Short synopsis"),
    category: Category | None = typer.Option(None, "--category", help="Story category"),
    content_file: Path | None = typer.Option(
        None, "--content-file", help="Replace content with this file's text"
    ),
) -> None:
    """Change fields of the active story."""
    changes: dict[str, object] = {}
    if title is not None:
        changes["title"] = title
    if author is not None:
        changes["author"] = author
    if synopsis is not None:
        changes["synopsis"] = synopsis
    if category is not None:
        changes["category"] = category
    with open_workspace(root) as workspace:
        story = require_active(workspace)
        if content_file is not None:
            changes["content"] = content_file.read_text(encoding="utf-8-sig")
        if not changes:
            raise fail("Nothing to change.")
        workspace.store.update(story.id, **changes)
        typer.secho("Story updated.", fg=typer.colors.GREEN)


@app.command("delete")
def delete(
    story_id: str = typer.Argument(..., help="Story id"),
    root: str = typer.Option(".", "--root", help="Workspace directory"),
) -> None:
    """Delete a story."""
    with open_workspace(root) as workspace:
        if not workspace.store.delete(story_id):
            raise fail(f"No story with id {story_id}")
        typer.secho(f"Deleted {story_id}", fg=typer.colors.GREEN)


@app.command("format-dialogue")
def format_dialogue_command(
    root: str = typer.Option(".", "--root", help="Workspace directory"),
) -> None:
    """Prefix dialogue lines of the active story with an em-dash."""
    with open_workspace(root) as workspace:
        require_active(workspace)
        workspace.format_active_dialogue()
        typer.secho("Dialogue formatted.", fg=typer.colors.GREEN)


@app.command("write")
def write(
    instruction: str = typer.Argument(..., help="What the AI should write next"),
    root: str = typer.Option(".", "--root", help="Workspace directory"),
    persona: Persona = typer.Option(Persona.CLASSIC, "--persona", help="Writing persona"),
    model: str | None = typer.Option(None, "--model", help="Model name"),
) -> None:
    """Continue the active story with AI-generated prose."""
    with open_workspace(root) as workspace:
        require_active(workspace)
        text = compose.continue_story(
            workspace.store, workspace.settings, instruction, persona, model
        )
        typer.echo(text)


@app.command("storyboard")
def storyboard_command(
    root: str = typer.Option(".", "--root", help="Workspace directory"),
    model: str | None = typer.Option(None, "--model", help="Model name"),
) -> None:
    """Split the active story into illustrated-scene stubs."""
    with open_workspace(root) as workspace:
        require_active(workspace)
        story = storyboard.build_storyboard(workspace.store, model)
        if story is None:
            raise fail("The active story has no content to segment.")
        for index, scene in enumerate(story.storyboard, start=1):
            typer.echo(f"{index}. ({scene.id}) {scene.text}")


@app.command("illustrate")
def illustrate(
    scene_id: str = typer.Argument(..., help="Scene id"),
    root: str = typer.Option(".", "--root", help="Workspace directory"),
) -> None:
    """Generate an illustration for one storyboard scene."""
    with open_workspace(root) as workspace:
        require_active(workspace)
        storyboard.illustrate_scene(workspace.store, scene_id)
        typer.secho("Scene illustrated.", fg=typer.colors.GREEN)


@app.command("cover")
def cover(root: str = typer.Option(".", "--root", help="Workspace directory")) -> None:
    """Generate a cover image for the active story."""
    with open_workspace(root) as workspace:
        require_active(workspace)
        storyboard.generate_cover(workspace.store, workspace.settings)
        typer.secho("Cover generated.", fg=typer.colors.GREEN)


@app.command("speak")
def speak(
    root: str = typer.Option(".", "--root", help="Workspace directory"),
    out: Path | None = typer.Option(None, "--out", help="WAV file to write"),
    voice: str | None = typer.Option(None, "--voice", help="Voice name"),
) -> None:
    """Narrate the opening of the active story into a WAV file."""
    with open_workspace(root) as workspace:
        story = require_active(workspace)
        pcm = speech.narrate(story.content, voice)
        target = out or narration_path(workspace.root, story.id)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(speech.pcm_to_wav(pcm))
        typer.secho(f"Wrote {target}", fg=typer.colors.GREEN)


@app.command("export")
def export(
    fmt: str = typer.Argument(..., help=f"One of: {', '.join(EXPORT_FORMATS)}"),
    root: str = typer.Option(".", "--root", help="Workspace directory"),
    out: Path | None = typer.Option(None, "--out", help="Output directory"),
) -> None:
    """Export the active story."""
    with open_workspace(root) as workspace:
        story = require_active(workspace)
        data = export_story(story, fmt)
        out_dir = out or exports_dir(workspace.root)
        out_dir.mkdir(parents=True, exist_ok=True)
        target = out_dir / export_filename(story, fmt)
        target.write_bytes(data)
        typer.secho(f"Wrote {target}", fg=typer.colors.GREEN)


@app.command("settings")
def settings_command(
    root: str = typer.Option(".", "--root", help="Workspace directory"),
    relaxed: bool | None = typer.Option(
        None, "--relaxed/--strict", help="Relax the content filter"
    ),
    autosave_ms: int | None = typer.Option(
        None,
        "--autosave-ms",
        help=f"Auto-save interval, one of {ALLOWED_AUTO_SAVE_INTERVALS_MS}",
    ),
    theme: UiTheme | None = typer.Option(None, "--theme", help="Editor theme"),
) -> None:
    """Show or change settings."""
    changes: dict[str, object] = {}
    if relaxed is not None:
        changes["content_filter_relaxed"] = relaxed
    if autosave_ms is not None:
        changes["auto_save_interval_ms"] = autosave_ms
    if theme is not None:
        changes["ui_theme"] = theme
    with open_workspace(root) as workspace:
        settings = workspace.update_settings(**changes) if changes else workspace.settings
        personas = ", ".join(p.value for p in compose.available_personas(settings))
        typer.echo(f"content_filter_relaxed: {settings.content_filter_relaxed}")
        typer.echo(f"auto_save_interval_ms: {settings.auto_save_interval_ms}")
        typer.echo(f"ui_theme: {settings.ui_theme.value}")
        typer.echo(f"personas: {personas}")


def main():
    app()

if __name__ == "__main__":
    main()
