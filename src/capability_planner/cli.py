"""CLI tool for running and inspecting the capability planner."""

import json
import os
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from capability_planner.chat.collaborator import LanguageCollaborator
from capability_planner.chat.gemini_adapter import GeminiCollaborator
from capability_planner.chat.openai_adapter import OpenAICollaborator
from capability_planner.config.catalogue import (
    CapabilityCatalogue,
    default_catalogue,
    load_catalogue,
)
from capability_planner.config.settings import EngineConfig
from capability_planner.errors import CatalogueError
from capability_planner.execution.backends import BackendRegistry, EchoBackend
from capability_planner.models.caller import TIER_ORDER, CallerProfile
from capability_planner.models.enums import Capability
from capability_planner.observability.logging import setup_logging
from capability_planner.orchestrator import RequestOrchestrator


app = typer.Typer(help="Capability Planner CLI")
catalogue_app = typer.Typer(help="Inspect capability catalogues")

app.add_typer(catalogue_app, name="catalogue")


@app.callback()
def main(
    log_level: Annotated[
        Optional[str], typer.Option(help="Log level (defaults to LOG_LEVEL)")
    ] = None,
):
    setup_logging(log_level)


def get_catalogue(path: Optional[Path] = None) -> CapabilityCatalogue:
    path = path or (
        Path(os.environ["PLANNER_CATALOGUE"])
        if os.environ.get("PLANNER_CATALOGUE")
        else None
    )
    if path is None:
        return default_catalogue()
    return load_catalogue(path)


def get_collaborator(
    provider: str, catalogue: CapabilityCatalogue
) -> LanguageCollaborator:
    if provider == "openai":
        return OpenAICollaborator(catalogue=catalogue)
    if provider == "gemini":
        return GeminiCollaborator(catalogue=catalogue)
    raise ValueError(f"Unknown provider: {provider}")


@app.command("run")
def run(
    message: Annotated[str, typer.Argument(help="The request to handle")],
    session: Annotated[str, typer.Option(help="Conversation session id")] = "cli",
    connect: Annotated[
        Optional[list[str]],
        typer.Option(help="Connected capability (repeatable)"),
    ] = None,
    tier: Annotated[str, typer.Option(help="Subscription tier")] = "standard",
    provider: Annotated[
        Optional[str], typer.Option(help="Collaborator: openai or gemini")
    ] = None,
    catalogue: Annotated[
        Optional[Path], typer.Option(help="Path to a catalogue YAML file")
    ] = None,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print plan and results as JSON")
    ] = False,
):
    """Handles one message against echo backends."""
    try:
        cat = get_catalogue(catalogue)
    except CatalogueError as e:
        typer.echo(f"Error: {e.detail}", err=True)
        raise typer.Exit(code=1)

    if tier not in TIER_ORDER:
        typer.echo(f"Error: Unknown tier: {tier}", err=True)
        raise typer.Exit(code=1)

    try:
        connected = frozenset(Capability(c) for c in (connect or []))
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    provider = provider or os.environ.get("PLANNER_PROVIDER", "openai")
    try:
        collaborator = get_collaborator(provider, cat)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    orchestrator = RequestOrchestrator(
        collaborator=collaborator,
        registry=BackendRegistry.with_backend(EchoBackend(), cat.known),
        catalogue=cat,
        config=EngineConfig.from_env(),
    )
    reply = orchestrator.handle(
        message,
        session_id=session,
        caller=CallerProfile(connected=connected, tier=tier),
    )

    if not as_json:
        typer.echo(reply.text)
        return

    typer.echo(
        json.dumps(
            {
                "text": reply.text,
                "state": reply.state.value,
                "language": reply.language.value,
                "plan": reply.plan.to_wire() if reply.plan else None,
                "results": [r.model_dump(mode="json") for r in reply.results],
            },
            ensure_ascii=False,
            indent=2,
        )
    )


@catalogue_app.command("show")
def catalogue_show(
    catalogue: Annotated[
        Optional[Path], typer.Option(help="Path to a catalogue YAML file")
    ] = None,
):
    """Prints the catalogue as embedded in the planner prompt."""
    try:
        cat = get_catalogue(catalogue)
    except CatalogueError as e:
        typer.echo(f"Error: {e.detail}", err=True)
        raise typer.Exit(code=1)
    typer.echo(cat.render_prompt_section())


@catalogue_app.command("validate")
def catalogue_validate(
    file_path: Annotated[
        Path, typer.Argument(help="Path to catalogue YAML file")
    ],
):
    """Validates a catalogue YAML file."""
    if not file_path.exists():
        typer.echo(f"Error: File not found: {file_path}", err=True)
        raise typer.Exit(code=1)

    try:
        cat = load_catalogue(file_path)
    except CatalogueError as e:
        typer.echo(f"Validation Error: {e.detail}", err=True)
        raise typer.Exit(code=1)

    names = ", ".join(c.name.value for c in cat.capabilities)
    typer.echo(f"Catalogue {file_path} is valid ({names}).")


if __name__ == "__main__":
    app()
