"""CLI entrypoint for brain-cli."""

import logging
from pathlib import Path

import rich_click as click

from brain_cli import __version__
from brain_cli.agents import Agent
from brain_cli.controllers import AgentCliController, AgentRunCommand
from brain_cli.process.errors import ProcessBuildError
from brain_cli.process.runner import ProcessRunError, ProcessTerminated

click.rich_click.USE_MARKDOWN = True
AGENT_CONTROLLER = AgentCliController()


@click.group()
@click.version_option(version=__version__, prog_name="brain-cli")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def brain_cli(verbose: bool) -> None:
    """Launch AI coding agents with composed flags, environment and hooks."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@brain_cli.command("agents")
def agents() -> None:
    """List supported agents."""

    _emit_lines(AGENT_CONTROLLER.agents())


@brain_cli.command("run")
@click.argument("agent", type=click.Choice([agent.value for agent in Agent]))
@click.option(
    "--project-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Project directory; defaults to BRAIN_CLI_PROJECT_DIR or the current directory.",
)
@click.option("--install", "-i", is_flag=True, default=False, help="Install the agent binary.")
@click.option("--update", "-u", is_flag=True, default=False, help="Update the agent binary.")
@click.option("--resume", "-r", default=None, help="Resume a previous session by ID.")
@click.option(
    "--continue",
    "-c",
    "continue_session",
    is_flag=True,
    default=False,
    help="Continue the last session.",
)
@click.option("--prompt", "-p", default=None, help="Start an interactive session with a prompt.")
@click.option("--ask", "-a", default=None, help="Ask one question non-interactively.")
@click.option(
    "--json",
    "-j",
    "json_output",
    is_flag=True,
    default=False,
    help="Stream parsed JSON records (requires --ask).",
)
@click.option(
    "--schema",
    "-J",
    default=None,
    help="JSON schema the answer must follow (requires --ask).",
)
@click.option("--no-mcp", "-M", is_flag=True, default=False, help="Disable MCP servers.")
@click.option("--model", "-m", default=None, help="Model to use.")
@click.option("--system", "-s", default=None, help="Replace the system prompt (@file allowed).")
@click.option(
    "--system-append",
    "-S",
    default=None,
    help="Append to the system prompt (@file allowed).",
)
@click.option("--yolo", "-y", is_flag=True, default=False, help="Skip all permission prompts.")
@click.option(
    "--allow-tool",
    "allow_tools",
    multiple=True,
    help="Tool the agent may use. Can be repeated.",
)
@click.option(
    "--dump",
    "-d",
    is_flag=True,
    default=False,
    help="Print the composed command as JSON instead of running it.",
)
def run(  # noqa: PLR0913
    agent: str,
    project_dir: Path | None,
    install: bool,
    update: bool,
    resume: str | None,
    continue_session: bool,
    prompt: str | None,
    ask: str | None,
    json_output: bool,
    schema: str | None,
    no_mcp: bool,
    model: str | None,
    system: str | None,
    system_append: str | None,
    yolo: bool,
    allow_tools: tuple[str, ...],
    dump: bool,
) -> None:
    """Compose and launch one agent process."""

    try:
        result = AGENT_CONTROLLER.run(
            AgentRunCommand(
                agent=agent,
                project_dir=project_dir,
                install=install,
                update=update,
                resume=resume,
                continue_session=continue_session,
                prompt=prompt,
                ask=ask,
                json_output=json_output,
                schema=schema,
                no_mcp=no_mcp,
                model=model,
                system=system,
                system_append=system_append,
                yolo=yolo,
                allow_tools=allow_tools,
                dump=dump,
            ),
            emit=click.echo,
        )
    except ProcessTerminated as error:
        click.echo(str(error), err=True)
        raise SystemExit(error.exit_code) from error
    except (ProcessBuildError, ProcessRunError, ValueError, OSError) as error:
        raise click.ClickException(str(error)) from error

    _emit_lines(result.lines)
    if result.exit_code != 0:
        raise SystemExit(result.exit_code)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    brain_cli()
