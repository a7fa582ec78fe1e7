"""
CLI interface for the tamo task/memo tracker.

Usage:
    tamo init
    tamo add task "Write report" -d "Quarterly numbers" -m 1a2b3c4d
    tamo add task -f plan.md
    tamo list all
    tamo mv 5e6f7a8b after 1a2b3c4d

Every command loads the whole store, runs one operation against it, and
saves it back; nothing is written when the operation fails.
"""

import logging
import math
import sys
import warnings
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Iterator, Optional, Union

import click
import typer

from .config import TamoConfig, load_config
from .display import (
    flatten_task,
    format_memo_detail,
    format_memo_line,
    format_task_detail,
    format_task_line,
    memo_title,
    short_id,
)
from .editing import apply_memo_document, apply_task_document, render_memo, render_task
from .errors import (
    NotFoundError,
    PrecisionExhaustedWarning,
    ReferentialConflictError,
    TamoError,
)
from .ingest import STDIN_DEFAULT_TITLE, ingest, parse_file, parse_stream
from .integrity import (
    referencing_tasks,
    remove_memo,
    remove_task,
    resolve_memo,
    resolve_memo_refs,
    resolve_task,
    set_task_refs,
    split_refs,
)
from .model import Memo, Store, Task
from .ordering import (
    append_order,
    first_task,
    last_task,
    move_after,
    move_before,
    next_undone,
    place_absolute,
    prepend_order,
    sorted_tasks,
)
from .storage import Storage

logger = logging.getLogger(__name__)

# Loaded by the app callback on every invocation
_config: Optional[TamoConfig] = None


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
        force=True,
    )


def get_config() -> TamoConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _storage() -> Storage:
    config = get_config()
    return Storage(config.data_dir, config.data_path)


def _id_length() -> int:
    return get_config().display.short_id_length


@contextmanager
def _errors() -> Iterator[None]:
    """Turn core failures into a clean message and exit code 1."""
    try:
        yield
    except ReferentialConflictError as e:
        typer.echo(
            f"Memo is referenced by {len(e.tasks)} task(s). Use -f or --force to remove anyway.",
            err=True,
        )
        for task in e.tasks:
            typer.echo(f"  {short_id(task.id, _id_length())}  {task.title}", err=True)
        typer.echo("Error: memo removal aborted", err=True)
        raise typer.Exit(1)
    except TamoError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _resolve_any(store: Store, ref: str) -> Union[Task, Memo]:
    """Tasks are looked up before memos."""
    try:
        return resolve_task(store, ref)
    except NotFoundError:
        pass
    try:
        return resolve_memo(store, ref)
    except NotFoundError:
        raise NotFoundError("task or memo", ref) from None


def _read_stdin() -> str:
    return sys.stdin.read()


def _edit(text: str) -> Optional[str]:
    """Open text in the configured editor. None means the user did not save."""
    return click.edit(text, editor=get_config().editor, extension=".md")


def _exclusive(**flags: bool) -> None:
    chosen = [name for name, value in flags.items() if value]
    if len(chosen) > 1:
        raise typer.BadParameter(" and ".join(chosen) + " cannot be used together")


app = typer.Typer(
    name="tamo",
    help="Ordered tasks interlinked with memos, kept in a local JSON file.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
add_app = typer.Typer(help="Add a new task or memo.", no_args_is_help=True)
push_app = typer.Typer(help="Add a new task at the end of the list.", no_args_is_help=True)
unshift_app = typer.Typer(help="Add a new task at the beginning of the list.", no_args_is_help=True)
app.add_typer(add_app, name="add")
app.add_typer(push_app, name="push")
app.add_typer(unshift_app, name="unshift")


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    config_path: Annotated[
        Optional[Path], typer.Option("--config", help="Path to a tamo.toml file")
    ] = None,
) -> None:
    global _config
    _config = load_config(config_path)
    _setup_logging("DEBUG" if verbose else _config.log_level)


# ── init ──────────────────────────────────────────────────────


@app.command()
def init() -> None:
    """Initialize tamo in the current directory."""
    storage = _storage()
    with _errors():
        try:
            created = storage.initialize()
        except OSError as e:
            typer.echo(f"Error: failed to initialize tamo: {e}", err=True)
            raise typer.Exit(1)
    if created:
        typer.echo(f"Initialized empty tamo store in {storage.dir_path}")
    else:
        typer.echo(f"tamo already initialized in {storage.dir_path}")


# ── add / push / unshift ──────────────────────────────────────

TitleArg = Annotated[
    Optional[str], typer.Argument(help="Task title (fallback title with -f or --from-stdin)")
]
DescriptionOpt = Annotated[str, typer.Option("--description", "-d", help="Task description")]
MemosOpt = Annotated[
    Optional[str], typer.Option("--memos", "-m", help="Comma-separated memo IDs or prefixes")
]
FileOpt = Annotated[
    Optional[Path], typer.Option("--file", "-f", help="Create the task from a Markdown file")
]
StdinOpt = Annotated[
    bool, typer.Option("--from-stdin", help="Create the task from Markdown on stdin")
]


def _add_task(
    title: Optional[str],
    description: str,
    memos: Optional[str],
    file: Optional[Path],
    from_stdin: bool,
    prepend: bool = False,
) -> None:
    _exclusive(**{"--file": file is not None, "--from-stdin": from_stdin})
    storage = _storage()
    with _errors():
        store = storage.load()

        if file is not None or from_stdin:
            try:
                if file is not None:
                    result = parse_file(file, store, default_title=title)
                else:
                    result = parse_stream(
                        sys.stdin, store, default_title=title or STDIN_DEFAULT_TITLE
                    )
            except OSError as e:
                typer.echo(f"Error: failed to read {file}: {e}", err=True)
                raise typer.Exit(1)
            task = ingest(store, result)
            storage.save(store)
            typer.echo(f"Task added with ID: {task.id}")
            if result.memos:
                typer.echo(f"Extracted {len(result.memos)} memo(s)")
            return

        if not title or not title.strip():
            raise typer.BadParameter("missing task title")
        memo_ids = resolve_memo_refs(store, split_refs(memos or ""))
        order = prepend_order(store) if prepend else append_order(store)
        task = Task.create(title, description=description, memo_refs=memo_ids, order=order)
        store.add_task(task)
        storage.save(store)
    logger.info("Added task %s at order %r", task.id[:8], task.order)
    typer.echo(f"Task added with ID: {task.id}")


@add_app.command("task")
def add_task(
    title: TitleArg = None,
    description: DescriptionOpt = "",
    memos: MemosOpt = None,
    file: FileOpt = None,
    from_stdin: StdinOpt = False,
) -> None:
    """Add a task at the end of the list."""
    _add_task(title, description, memos, file, from_stdin)


@push_app.command("task")
def push_task(
    title: TitleArg = None,
    description: DescriptionOpt = "",
    memos: MemosOpt = None,
    file: FileOpt = None,
    from_stdin: StdinOpt = False,
) -> None:
    """Add a task at the end of the list."""
    _add_task(title, description, memos, file, from_stdin)


@unshift_app.command("task")
def unshift_task(
    title: TitleArg = None,
    description: DescriptionOpt = "",
    memos: MemosOpt = None,
    file: FileOpt = None,
    from_stdin: StdinOpt = False,
) -> None:
    """Add a task at the beginning of the list (Markdown input is still appended)."""
    _add_task(title, description, memos, file, from_stdin, prepend=True)


@add_app.command("memo")
def add_memo(
    title: Annotated[Optional[str], typer.Argument(help="Memo title (optional)")] = None,
    content: Annotated[Optional[str], typer.Option("--content", "-c", help="Memo content")] = None,
    from_stdin: Annotated[
        bool, typer.Option("--from-stdin", help="Read content from stdin")
    ] = False,
    editor: Annotated[bool, typer.Option("--editor", help="Write content in $EDITOR")] = False,
) -> None:
    """Add a memo."""
    _exclusive(**{"-c": content is not None, "--from-stdin": from_stdin, "--editor": editor})
    if content is None:
        if editor:
            content = _edit("")
            if content is None:
                typer.echo("No content saved; memo not added", err=True)
                raise typer.Exit(1)
            content = content.strip()
        else:
            if not from_stdin:
                typer.echo("Enter memo content (press Ctrl+D when finished):", err=True)
            content = _read_stdin()

    storage = _storage()
    with _errors():
        store = storage.load()
        memo = Memo.create(content=content, title=title)
        store.add_memo(memo)
        storage.save(store)
    logger.info("Added memo %s", memo.id[:8])
    typer.echo(f"Memo added with ID: {memo.id}")


# ── list / show / next / flattask ─────────────────────────────


@app.command("list")
def list_items(
    kind: Annotated[str, typer.Argument(help="tasks, memos or all")] = "tasks",
    done: Annotated[bool, typer.Option("--done", help="Only completed tasks")] = False,
    undone: Annotated[bool, typer.Option("--undone", help="Only uncompleted tasks")] = False,
    refs: Annotated[
        Optional[str], typer.Option("--refs", help="Only tasks referencing this memo")
    ] = None,
) -> None:
    """List tasks and/or memos."""
    if kind not in ("tasks", "memos", "all"):
        raise typer.BadParameter(f"unknown list kind: {kind}")
    _exclusive(**{"--done": done, "--undone": undone})
    id_length = _id_length()

    with _errors():
        store = _storage().load()
        memo_filter = resolve_memo(store, refs) if refs else None

    if kind in ("tasks", "all"):
        tasks = [
            t
            for t in sorted_tasks(store.tasks)
            if not (done and not t.done)
            and not (undone and t.done)
            and (memo_filter is None or memo_filter.id in t.memo_refs)
        ]
        if tasks:
            typer.echo("Tasks:")
            for task in tasks:
                typer.echo(f"  {format_task_line(task, id_length)}")
        else:
            typer.echo("No tasks found")

    if kind in ("memos", "all"):
        memos = store.memos if memo_filter is None else [memo_filter]
        if kind == "all":
            typer.echo()
        if memos:
            typer.echo("Memos:")
            for memo in memos:
                typer.echo(f"  {format_memo_line(memo, id_length)}")
        else:
            typer.echo("No memos found")


@app.command()
def show(ref: Annotated[str, typer.Argument(help="Task or memo ID (prefix allowed)")]) -> None:
    """Show details of a task or memo."""
    with _errors():
        store = _storage().load()
        record = _resolve_any(store, ref)
    if isinstance(record, Task):
        typer.echo(format_task_detail(store, record, _id_length()))
    else:
        typer.echo(format_memo_detail(store, record, _id_length()))


@app.command("next")
def next_task() -> None:
    """Show the first task that is not done."""
    with _errors():
        store = _storage().load()
    task = next_undone(store.tasks)
    if task is None:
        typer.echo("Error: no undone tasks found", err=True)
        raise typer.Exit(1)
    typer.echo(format_task_detail(store, task, _id_length()))


@app.command()
def flattask(ref: Annotated[str, typer.Argument(help="Task ID (prefix allowed)")]) -> None:
    """Print a task as Markdown with all referenced memos expanded."""
    with _errors():
        store = _storage().load()
        task = resolve_task(store, ref)
    typer.echo(flatten_task(store, task, _id_length()))


# ── rm / done / undone / mv ───────────────────────────────────


@app.command("rm")
def remove(
    ref: Annotated[str, typer.Argument(help="Task or memo ID (prefix allowed)")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Remove a memo even if tasks reference it")
    ] = False,
) -> None:
    """Remove a task or memo."""
    storage = _storage()
    with _errors():
        store = storage.load()
        record = _resolve_any(store, ref)
        if isinstance(record, Task):
            remove_task(store, record.id)
            storage.save(store)
            typer.echo(f"Task '{record.title}' removed")
            return

        referrers = referencing_tasks(store, record.id)
        remove_memo(store, record.id, force=force)
        storage.save(store)
    if referrers:
        typer.echo(f"Forced removal of memo referenced by {len(referrers)} task(s)")
    typer.echo(f"Memo '{memo_title(record)}' removed")


def _set_done(ref: str, value: bool) -> None:
    storage = _storage()
    with _errors():
        store = storage.load()
        task = resolve_task(store, ref)
        if value:
            task.mark_done()
        else:
            task.mark_undone()
        storage.save(store)
    typer.echo(f"Task '{task.title}' marked as {'done' if value else 'undone'}")


@app.command()
def done(ref: Annotated[str, typer.Argument(help="Task ID (prefix allowed)")]) -> None:
    """Mark a task as done."""
    _set_done(ref, True)


@app.command()
def undone(ref: Annotated[str, typer.Argument(help="Task ID (prefix allowed)")]) -> None:
    """Mark a task as not done."""
    _set_done(ref, False)


@app.command("mv", context_settings={"ignore_unknown_options": True})
def move(
    ref: Annotated[str, typer.Argument(help="Task ID (prefix allowed)")],
    target: Annotated[str, typer.Argument(help="Order value, or 'before' / 'after'")],
    other: Annotated[Optional[str], typer.Argument(help="Task to move relative to")] = None,
) -> None:
    """Move a task to an order value, or before/after another task."""
    storage = _storage()
    with _errors():
        store = storage.load()
        task = resolve_task(store, ref)

        if target in ("before", "after"):
            if other is None:
                raise typer.BadParameter("missing target task ID")
            anchor = resolve_task(store, other)
            if anchor.id == task.id:
                raise typer.BadParameter("cannot move a task relative to itself")
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always", PrecisionExhaustedWarning)
                if target == "before":
                    move_before(store.tasks, task, anchor)
                else:
                    move_after(store.tasks, task, anchor)
            storage.save(store)
            if any(issubclass(w.category, PrecisionExhaustedWarning) for w in caught):
                typer.echo(
                    "Warning: order precision exhausted; "
                    "give nearby tasks explicit orders with 'tamo mv <id> <order>'",
                    err=True,
                )
            typer.echo(f"Task '{task.title}' moved {target} task '{anchor.title}'")
            return

        try:
            order = float(target)
        except ValueError:
            raise typer.BadParameter(f"invalid target order: {target}") from None
        if not math.isfinite(order):
            raise typer.BadParameter(f"order must be a finite number: {target}")
        place_absolute(task, order)
        storage.save(store)
    typer.echo(f"Task '{task.title}' moved to order {order:.1f}")


# ── pop / shift ───────────────────────────────────────────────


def _queue_end(kind: str, done: bool, rm: bool, force: bool, last: bool) -> None:
    if kind != "task":
        raise typer.BadParameter("expected 'task'")
    _exclusive(**{"--done": done, "--rm": rm})
    storage = _storage()
    with _errors():
        store = storage.load()
        task = last_task(store.tasks) if last else first_task(store.tasks)
        if task is None:
            typer.echo("Error: no tasks found", err=True)
            raise typer.Exit(1)

        if done:
            task.mark_done()
            storage.save(store)
            typer.echo(f"Task '{task.title}' marked as done")
        elif rm:
            if not force and not typer.confirm(
                f"Are you sure you want to remove task '{task.title}'?", default=False
            ):
                typer.echo("Task removal aborted")
                return
            remove_task(store, task.id)
            storage.save(store)
            typer.echo(f"Task '{task.title}' removed")
        else:
            typer.echo(format_task_detail(store, task, _id_length()))


QueueKind = Annotated[str, typer.Argument(help="Must be 'task'")]
QueueDone = Annotated[bool, typer.Option("--done", help="Mark the task as done")]
QueueRm = Annotated[bool, typer.Option("--rm", help="Remove the task")]
QueueForce = Annotated[bool, typer.Option("--force", "-f", help="Remove without confirmation")]


@app.command()
def pop(
    kind: QueueKind, done: QueueDone = False, rm: QueueRm = False, force: QueueForce = False
) -> None:
    """Show, complete, or remove the last task."""
    _queue_end(kind, done, rm, force, last=True)


@app.command()
def shift(
    kind: QueueKind, done: QueueDone = False, rm: QueueRm = False, force: QueueForce = False
) -> None:
    """Show, complete, or remove the first task."""
    _queue_end(kind, done, rm, force, last=False)


# ── edit ──────────────────────────────────────────────────────


def _prompt_task_edits(store: Store, task: Task) -> None:
    typer.echo(f"Editing task: {task.id}")
    title = typer.prompt("Title", default=task.title)
    description = task.description
    if typer.prompt(
        "Description [Enter to keep, 'edit' to open editor]", default="", show_default=False
    ).strip() == "edit":
        edited = _edit(task.description)
        if edited is not None:
            description = edited.strip()
    refs = typer.prompt(
        f"Memo References [{','.join(task.memo_refs)}] (comma-separated)",
        default="",
        show_default=False,
    )
    # resolve before touching the task so a bad ref leaves it unchanged
    memo_ids = resolve_memo_refs(store, split_refs(refs)) if refs.strip() else None

    if title.strip() and title != task.title:
        task.rename(title)
    if description != task.description:
        task.describe(description)
    if memo_ids is not None:
        set_task_refs(store, task, memo_ids)


def _prompt_memo_edits(memo: Memo) -> None:
    typer.echo(f"Editing memo: {memo.id}")
    title = typer.prompt(
        "Title (Enter to keep, '-' to clear)", default=memo.title or "", show_default=True
    ).strip()
    if title == "-":
        memo.retitle(None)
    elif title and title != memo.title:
        memo.retitle(title)
    if typer.prompt(
        "Content [Enter to keep, 'edit' to open editor]", default="", show_default=False
    ).strip() == "edit":
        edited = _edit(memo.content)
        if edited is not None:
            memo.rewrite(edited.strip())


@app.command()
def edit(
    ref: Annotated[str, typer.Argument(help="Task or memo ID (prefix allowed)")],
    editor: Annotated[
        bool, typer.Option("--editor", help="Edit the whole record in $EDITOR")
    ] = False,
) -> None:
    """Edit a task or memo."""
    storage = _storage()
    with _errors():
        store = storage.load()
        record = _resolve_any(store, ref)

        if editor:
            rendered = render_task(record) if isinstance(record, Task) else render_memo(record)
            edited = _edit(rendered)
            if edited is None or edited == rendered:
                typer.echo("No changes made")
                return
            if isinstance(record, Task):
                apply_task_document(store, record, edited)
            else:
                apply_memo_document(record, edited)
        elif isinstance(record, Task):
            _prompt_task_edits(store, record)
        else:
            _prompt_memo_edits(record)
        storage.save(store)

    if isinstance(record, Task):
        typer.echo(f"Task '{record.title}' updated")
    else:
        typer.echo(f"Memo '{memo_title(record)}' updated")
