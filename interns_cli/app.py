from __future__ import annotations

import argparse
import sys
from typing import Any

import click
import typer
from dotenv import load_dotenv
from rich.console import Console

from . import __version__
from .cli_shared import (
    INTERNS_API_ENDPOINT,
    GlobalOpts,
    OpError,
    UsageError,
    _env_or_none,
    _load_json_array,
    _path_segment,
    _print_json,
    _require_str,
    api_request,
)

TASK_STATUSES = ("open", "completed", "todo", "working", "deferred", "pending")

_ERROR_CONSOLE = Console(stderr=True)


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {msg}")


def _namespace(**kwargs: Any) -> argparse.Namespace:
    return argparse.Namespace(**kwargs)


def _endpoint(g: GlobalOpts) -> str:
    return _require_str(g.endpoint, "interns API endpoint", hint=f"pass --endpoint or set {INTERNS_API_ENDPOINT}")


def _cell(value: Any) -> str:
    if isinstance(value, list):
        value = ", ".join(str(v) for v in value)
    text = str(value or "").strip()
    return text or "-"


def _print_table(*, headers: list[str], rows: list[list[str]], empty_message: str) -> None:
    if not rows:
        sys.stdout.write(f"{empty_message}\n")
        return
    widths: list[int] = [len(h) for h in headers]
    for row in rows:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], len(val))
    sys.stdout.write("  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)) + "\n")
    sys.stdout.write("  ".join("-" * widths[i] for i in range(len(headers))) + "\n")
    for row in rows:
        sys.stdout.write("  ".join(row[i].ljust(widths[i]) for i in range(len(headers))) + "\n")


def _task_rows(intern: dict[str, Any]) -> list[list[str]]:
    rows: list[list[str]] = []
    for task in intern.get("tasksAssigned") or []:
        if not isinstance(task, dict):
            rows.append(["-", "-", _cell(task), "-"])
            continue
        rows.append(
            [
                _cell(task.get("id")),
                _cell(task.get("status")),
                _cell(task.get("title")),
                _cell(task.get("updatedAt")),
            ]
        )
    return rows


def _print_intern(intern: dict[str, Any]) -> None:
    sys.stdout.write(f"intern {_cell(intern.get('internId'))} name=\"{_cell(intern.get('internName'))}\" batch={_cell(intern.get('batch'))}\n")
    sys.stdout.write(f"roles: {_cell(intern.get('roles'))}\n")
    sys.stdout.write(f"projects: {_cell(intern.get('currentProjects'))}\n")
    _print_table(
        headers=["TASK", "STATUS", "TITLE", "UPDATED"],
        rows=_task_rows(intern),
        empty_message="no tasks assigned",
    )


def _emit(out: dict[str, Any], g: GlobalOpts, human: Any) -> int:
    if g.json_output:
        _print_json(out, pretty=g.pretty)
        return 0
    human(out)
    return 0


def _intern_fields(args: argparse.Namespace) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if args.name:
        fields["internName"] = args.name
    if args.batch:
        fields["batch"] = args.batch
    if args.roles:
        fields["roles"] = list(args.roles)
    if args.projects:
        fields["currentProjects"] = list(args.projects)
    if args.tasks:
        fields["tasksAssigned"] = _load_json_array(raw=args.tasks, label="--tasks")
    return fields


def _check_status(status: str) -> str:
    s = (status or "").strip()
    if s not in TASK_STATUSES:
        raise UsageError(f"invalid status: {', '.join(TASK_STATUSES)}")
    return s


def cmd_list(args: argparse.Namespace, g: GlobalOpts) -> int:
    out = api_request(
        method="GET",
        endpoint=_endpoint(g),
        path="/interns",
        query={
            "batch": args.batch,
            "search": args.search,
            "limit": args.limit,
            "offset": args.offset,
            "sort": args.sort,
            "order": args.order,
        },
    )

    def human(o: dict[str, Any]) -> None:
        rows: list[list[str]] = []
        for intern in o.get("data") or []:
            if not isinstance(intern, dict):
                continue
            tasks = intern.get("tasksAssigned") or []
            rows.append(
                [
                    _cell(intern.get("internId")),
                    _cell(intern.get("internName")),
                    _cell(intern.get("batch")),
                    str(len(tasks)),
                ]
            )
        _print_table(headers=["ID", "NAME", "BATCH", "TASKS"], rows=rows, empty_message="no interns found")
        sys.stdout.write(f"total: {o.get('total', len(rows))}\n")

    return _emit(out, g, human)


def cmd_get(args: argparse.Namespace, g: GlobalOpts) -> int:
    out = api_request(
        method="GET",
        endpoint=_endpoint(g),
        path=f"/interns/{_path_segment(args.intern_id)}",
    )
    return _emit(out, g, lambda o: _print_intern(o.get("data") or {}))


def cmd_create(args: argparse.Namespace, g: GlobalOpts) -> int:
    body = _intern_fields(args)
    if not body.get("internName") or not body.get("batch"):
        raise UsageError("provide --name and --batch")
    if args.intern_id:
        body["documentId"] = args.intern_id
    out = api_request(method="POST", endpoint=_endpoint(g), path="/interns", body_obj=body)

    def human(o: dict[str, Any]) -> None:
        data = o.get("data") or {}
        sys.stdout.write(f"created intern {_cell(data.get('internId'))} name=\"{_cell(data.get('internName'))}\"\n")

    return _emit(out, g, human)


def cmd_update(args: argparse.Namespace, g: GlobalOpts) -> int:
    body = _intern_fields(args)
    if not body:
        raise UsageError("nothing to update (pass --name, --batch, --role, --project or --tasks)")
    out = api_request(
        method="PATCH",
        endpoint=_endpoint(g),
        path=f"/interns/{_path_segment(args.intern_id)}",
        body_obj=body,
    )
    return _emit(out, g, lambda o: sys.stdout.write(f"updated intern {args.intern_id}\n"))


def cmd_delete(args: argparse.Namespace, g: GlobalOpts) -> int:
    out = api_request(
        method="DELETE",
        endpoint=_endpoint(g),
        path=f"/interns/{_path_segment(args.intern_id)}",
    )
    return _emit(out, g, lambda o: sys.stdout.write(f"deleted intern {args.intern_id}\n"))


def cmd_count(args: argparse.Namespace, g: GlobalOpts) -> int:
    del args
    out = api_request(method="GET", endpoint=_endpoint(g), path="/interns/count")
    return _emit(out, g, lambda o: sys.stdout.write(f"{o.get('count', 0)}\n"))


def cmd_summary(args: argparse.Namespace, g: GlobalOpts) -> int:
    del args
    out = api_request(method="GET", endpoint=_endpoint(g), path="/interns/tasks/summary")

    def human(o: dict[str, Any]) -> None:
        summary = o.get("summary") or {}
        rows = [[status, str(summary.get(status, 0))] for status in TASK_STATUSES]
        rows.append(["total", str(summary.get("total", 0))])
        _print_table(headers=["STATUS", "COUNT"], rows=rows, empty_message="")

    return _emit(out, g, human)


def cmd_add_task(args: argparse.Namespace, g: GlobalOpts) -> int:
    body: dict[str, Any] = {
        "title": _require_str(args.title, "task title", hint="pass a TITLE argument"),
        "status": _check_status(args.status),
    }
    if args.description:
        body["description"] = args.description
    if args.task_id:
        body["id"] = args.task_id
    out = api_request(
        method="POST",
        endpoint=_endpoint(g),
        path=f"/interns/{_path_segment(args.intern_id)}/tasks",
        body_obj=body,
    )

    def human(o: dict[str, Any]) -> None:
        tasks = (o.get("data") or {}).get("tasksAssigned") or []
        added = tasks[-1] if tasks and isinstance(tasks[-1], dict) else {}
        sys.stdout.write(f"added task {_cell(added.get('id'))} to intern {args.intern_id}\n")

    return _emit(out, g, human)


def cmd_set_status(args: argparse.Namespace, g: GlobalOpts) -> int:
    status = _check_status(args.status)
    out = api_request(
        method="PATCH",
        endpoint=_endpoint(g),
        path=f"/interns/{_path_segment(args.intern_id)}/tasks/{_path_segment(args.task_id)}/status",
        body_obj={"status": status},
    )
    return _emit(out, g, lambda o: sys.stdout.write(f"task {args.task_id} status={status}\n"))


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"interns {__version__}")
        raise typer.Exit(code=0)


app = typer.Typer(
    name="interns",
    help="Manage interns and their assigned tasks through the interns API.",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def app_callback(
    ctx: typer.Context,
    endpoint: str | None = typer.Option(
        None,
        "--endpoint",
        help=f"API base URL, without /interns (env: {INTERNS_API_ENDPOINT})",
    ),
    json_output: bool = typer.Option(False, "--json", help="Print raw API responses"),
    pretty: bool = typer.Option(False, "--pretty", help="Indent JSON output"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    del version
    g = GlobalOpts(
        endpoint=(endpoint or _env_or_none(INTERNS_API_ENDPOINT) or "").strip(),
        pretty=pretty,
        json_output=json_output,
    )
    ctx.obj = {"g": g}


def _ctx_global(ctx: typer.Context) -> GlobalOpts:
    obj = ctx.find_root().obj
    if isinstance(obj, dict) and isinstance(obj.get("g"), GlobalOpts):
        return obj["g"]
    return GlobalOpts(endpoint=_env_or_none(INTERNS_API_ENDPOINT) or "", pretty=False, json_output=False)


def _invoke(ctx: typer.Context, func: Any, **kwargs: Any) -> None:
    g = _ctx_global(ctx)
    args = _namespace(**kwargs)
    try:
        code = int(func(args, g))
    except UsageError as e:
        _rich_error(str(e))
        raise typer.Exit(code=2)
    except OpError as e:
        _rich_error(str(e))
        raise typer.Exit(code=1)
    if code:
        raise typer.Exit(code=code)


@app.command("list", help="List interns (filters pass through to the API).")
def interns_list(
    ctx: typer.Context,
    batch: str | None = typer.Option(None, "--batch", help="Exact batch match"),
    search: str | None = typer.Option(None, "--search", help="Substring of the intern name"),
    limit: int | None = typer.Option(None, "--limit", help="Page size (default 25, max 100)"),
    offset: int | None = typer.Option(None, "--offset", help="Records to skip"),
    sort: str | None = typer.Option(None, "--sort", help="Attribute to sort by"),
    order: str | None = typer.Option(None, "--order", help="asc|desc"),
) -> None:
    _invoke(ctx, cmd_list, batch=batch, search=search, limit=limit, offset=offset, sort=sort, order=order)


@app.command("get", help="Show one intern and its tasks.")
def interns_get(
    ctx: typer.Context,
    intern_id: str = typer.Argument(..., help="Intern ID"),
) -> None:
    _invoke(ctx, cmd_get, intern_id=intern_id)


@app.command("create", help="Create an intern.")
def interns_create(
    ctx: typer.Context,
    name: str | None = typer.Option(None, "--name", help="Intern name"),
    batch: str | None = typer.Option(None, "--batch", help="Batch identifier, e.g. 2025-Summer"),
    roles: list[str] | None = typer.Option(None, "--role", help="Role (repeatable)"),
    projects: list[str] | None = typer.Option(None, "--project", help="Current project (repeatable)"),
    tasks: str | None = typer.Option(None, "--tasks", help="JSON array of task objects"),
    intern_id: str | None = typer.Option(None, "--id", help="Custom intern ID"),
) -> None:
    _invoke(
        ctx,
        cmd_create,
        name=name,
        batch=batch,
        roles=roles or [],
        projects=projects or [],
        tasks=tasks,
        intern_id=intern_id,
    )


@app.command("update", help="Update an intern. --tasks replaces the whole task list.")
def interns_update(
    ctx: typer.Context,
    intern_id: str = typer.Argument(..., help="Intern ID"),
    name: str | None = typer.Option(None, "--name", help="Intern name"),
    batch: str | None = typer.Option(None, "--batch", help="Batch identifier"),
    roles: list[str] | None = typer.Option(None, "--role", help="Role (repeatable, replaces roles)"),
    projects: list[str] | None = typer.Option(None, "--project", help="Current project (repeatable, replaces projects)"),
    tasks: str | None = typer.Option(None, "--tasks", help="JSON array of task objects"),
) -> None:
    _invoke(
        ctx,
        cmd_update,
        intern_id=intern_id,
        name=name,
        batch=batch,
        roles=roles or [],
        projects=projects or [],
        tasks=tasks,
    )


@app.command("delete", help="Delete an intern and its tasks.")
def interns_delete(
    ctx: typer.Context,
    intern_id: str = typer.Argument(..., help="Intern ID"),
) -> None:
    _invoke(ctx, cmd_delete, intern_id=intern_id)


@app.command("count", help="Print the number of interns.")
def interns_count(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_count)


@app.command("summary", help="Show task counts per status across all interns.")
def interns_summary(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_summary)


@app.command("add-task", help="Append a task to an intern's task list.")
def interns_add_task(
    ctx: typer.Context,
    intern_id: str = typer.Argument(..., help="Intern ID"),
    title: str = typer.Argument(..., help="Task title"),
    status: str = typer.Option("open", "--status", help="|".join(TASK_STATUSES)),
    description: str | None = typer.Option(None, "--description", help="Task description"),
    task_id: str | None = typer.Option(None, "--task-id", help="Custom task ID"),
) -> None:
    _invoke(
        ctx,
        cmd_add_task,
        intern_id=intern_id,
        title=title,
        status=status,
        description=description,
        task_id=task_id,
    )


@app.command("set-status", help="Change the status of one task.")
def interns_set_status(
    ctx: typer.Context,
    intern_id: str = typer.Argument(..., help="Intern ID"),
    task_id: str = typer.Argument(..., help="Task ID"),
    status: str = typer.Argument(..., help="|".join(TASK_STATUSES)),
) -> None:
    _invoke(ctx, cmd_set_status, intern_id=intern_id, task_id=task_id, status=status)


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    # Discover and load .env without overriding exported values.
    load_dotenv()
    try:
        result = app(args=argv, prog_name="interns", standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.ClickException as e:
        _rich_error(e.format_message())
        return int(e.exit_code)
    except (UsageError, OpError) as e:
        _rich_error(str(e))
        return 2 if isinstance(e, UsageError) else 1


if __name__ == "__main__":
    raise SystemExit(main())
