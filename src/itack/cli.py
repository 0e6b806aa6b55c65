"""Command-line entry point for itack.

Global options:
    --log-level   Set the log level (trace, debug, info, success, warning, error).
    --no-color    Disable colour output.
    --version     Print the version and exit.

Exit codes: 0 success, 1 error, 2 conflict or already claimed, 3 data
committed but the merge branch could not be updated.
"""

from types import SimpleNamespace
from typing import Annotated, Callable, List, Optional

import typer

from . import __version__, commands, log
from .errors import ItackError
from .io import die, say
from .models import Status

app = typer.Typer(
    name="itack",
    help="Git-backed issue tracking for agents that share one repository.",
    no_args_is_help=True,
    add_completion=False,
)

IssueIdArg = Annotated[int, typer.Argument(min=1, help="Issue id.")]
JsonOption = Annotated[bool, typer.Option("--json", help="Print JSON instead of a table.")]
RevisionOption = Annotated[
    Optional[str],
    typer.Option(
        "--revision",
        help="Fail with a conflict unless the issue is still at this revision.",
    ),
]


def _run(handler: Callable[[object], Optional[int]], **values: object) -> None:
    args = SimpleNamespace(**values)
    try:
        code = handler(args)
    except ItackError as exc:
        die(exc.message, exc.exit_code, hint=exc.recovery_hint)
    if code:
        raise typer.Exit(code=code)


def _version_callback(value: bool) -> None:
    if value:
        say(f"itack {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: Annotated[
        Optional[str],
        typer.Option(
            "--log-level",
            help="Log level: " + ", ".join(log.LEVEL_NAMES),
            envvar="ITACK_LOG_LEVEL",
        ),
    ] = None,
    no_color: Annotated[
        bool, typer.Option("--no-color", help="Disable colour output.")
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit.",
        ),
    ] = False,
) -> None:
    """Git-backed issue tracking for agents that share one repository."""
    if log_level is not None:
        normalized = log_level.strip().lower()
        if normalized and normalized not in log.LEVEL_NAMES and normalized != "warn":
            raise typer.BadParameter(
                f"expected one of {', '.join(log.LEVEL_NAMES)}", param_hint="--log-level"
            )
    log.set_level(log_level)
    log.set_no_color(no_color)


@app.command("init")
def init_command() -> None:
    """Create the data branch for this repository."""
    _run(commands.init_project)


@app.command("create")
def create_command(
    title: Annotated[str, typer.Argument(help="Issue title.")],
    body: Annotated[Optional[str], typer.Option("--body", "-b", help="Issue body.")] = None,
    epic: Annotated[Optional[str], typer.Option("--epic", "-e", help="Epic label.")] = None,
    depends_on: Annotated[
        Optional[List[str]],
        typer.Option("--depends-on", "-d", help="Issue this one waits on (repeatable)."),
    ] = None,
    message: Annotated[
        Optional[str], typer.Option("--message", "-m", help="Commit message subject.")
    ] = None,
    json: JsonOption = False,
) -> None:
    """Create a new open issue."""
    _run(
        commands.create_issue,
        title=title,
        body=body,
        epic=epic,
        depends_on=depends_on,
        message=message,
        json=json,
    )


@app.command("show")
def show_command(issue_id: IssueIdArg, json: JsonOption = False) -> None:
    """Show one issue."""
    _run(commands.show_issue, id=issue_id, json=json)


@app.command("list")
def list_command(
    status: Annotated[
        Optional[Status], typer.Option("--status", "-s", help="Only issues with this status.")
    ] = None,
    epic: Annotated[Optional[str], typer.Option("--epic", "-e", help="Only this epic.")] = None,
    assignee: Annotated[
        Optional[str], typer.Option("--assignee", "-a", help="Only this assignee.")
    ] = None,
    json: JsonOption = False,
) -> None:
    """List issues by status priority, then id."""
    _run(
        commands.list_issues,
        status=status.value if status is not None else None,
        epic=epic,
        assignee=assignee,
        json=json,
    )


@app.command("search")
def search_command(
    query: Annotated[str, typer.Argument(help="Text to look for in titles and bodies.")],
    all_branches: Annotated[
        bool, typer.Option("--all-branches", help="Also search .itack/ on every local branch.")
    ] = False,
    json: JsonOption = False,
) -> None:
    """Search issues by title and body."""
    _run(commands.search_issues, query=query, all_branches=all_branches, json=json)


@app.command("claim")
def claim_command(
    issue_id: IssueIdArg,
    assignee: Annotated[
        Optional[str], typer.Argument(help="Who takes the issue (defaults to the config).")
    ] = None,
    session: Annotated[
        Optional[str], typer.Option("--session", help="Work-session id to record.")
    ] = None,
    revision: RevisionOption = None,
    json: JsonOption = False,
) -> None:
    """Claim an open issue."""
    _run(
        commands.claim_issue,
        id=issue_id,
        assignee=assignee,
        session=session,
        revision=revision,
        json=json,
    )


@app.command("release")
def release_command(
    issue_id: IssueIdArg, revision: RevisionOption = None, json: JsonOption = False
) -> None:
    """Release a claimed issue back to open."""
    _run(commands.release_issue, id=issue_id, revision=revision, json=json)


@app.command("done")
def done_command(
    issue_id: IssueIdArg, revision: RevisionOption = None, json: JsonOption = False
) -> None:
    """Mark a claimed issue as done."""
    _run(commands.complete_issue, id=issue_id, revision=revision, json=json)


@app.command("wont-fix")
def wont_fix_command(
    issue_id: IssueIdArg, revision: RevisionOption = None, json: JsonOption = False
) -> None:
    """Close an open or claimed issue without doing it."""
    _run(commands.close_issue, id=issue_id, revision=revision, json=json)


@app.command("edit")
def edit_command(
    issue_id: IssueIdArg,
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="New title.")] = None,
    body: Annotated[Optional[str], typer.Option("--body", "-b", help="New body.")] = None,
    epic: Annotated[Optional[str], typer.Option("--epic", "-e", help="New epic label.")] = None,
    message: Annotated[
        Optional[str], typer.Option("--message", "-m", help="Commit message subject.")
    ] = None,
    revision: RevisionOption = None,
    json: JsonOption = False,
) -> None:
    """Edit an issue; opens the editor when no field is given."""
    _run(
        commands.edit_issue,
        id=issue_id,
        title=title,
        body=body,
        epic=epic,
        message=message,
        revision=revision,
        json=json,
    )


@app.command("session")
def session_command(
    issue_id: IssueIdArg,
    session: Annotated[Optional[str], typer.Argument(help="Session id.")] = None,
    clear: Annotated[bool, typer.Option("--clear", help="Remove the session id.")] = False,
    json: JsonOption = False,
) -> None:
    """Set the session id on a claimed issue."""
    if session is None and not clear:
        die("pass a session id or --clear")
    _run(commands.set_session, id=issue_id, session=session, clear=clear, json=json)


@app.command("depend")
def depend_command(
    issue_id: IssueIdArg,
    deps: Annotated[List[str], typer.Argument(help="Issue ids this issue waits on.")],
    json: JsonOption = False,
) -> None:
    """Add dependencies to an issue."""
    _run(commands.add_dependencies, id=issue_id, deps=deps, json=json)


@app.command("undepend")
def undepend_command(
    issue_id: IssueIdArg,
    deps: Annotated[List[str], typer.Argument(help="Issue ids to drop.")],
    json: JsonOption = False,
) -> None:
    """Remove dependencies from an issue."""
    _run(commands.remove_dependencies, id=issue_id, deps=deps, json=json)


@app.command("log")
def log_command(issue_id: IssueIdArg, json: JsonOption = False) -> None:
    """Show the data branch history of an issue."""
    _run(commands.show_history, id=issue_id, json=json)


@app.command("board")
def board_command(json: JsonOption = False) -> None:
    """Summarize issues by status and assignee."""
    _run(commands.show_board, json=json)


@app.command("doctor")
def doctor_command(json: JsonOption = False) -> None:
    """Check the data branch against the working branch; exits 1 on findings."""
    _run(commands.run_doctor, json=json)


@app.command("sync")
def sync_command() -> None:
    """Merge the data branch into the merge branch."""
    _run(commands.run_sync)


def main() -> None:
    """Run the itack CLI."""
    app()


if __name__ == "__main__":
    main()
