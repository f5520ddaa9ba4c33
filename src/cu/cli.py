#!/usr/bin/env python3
"""
cu - ClickUp CLI for developers and AI agents.

Lists, filters, creates, updates and comments on ClickUp tasks, and finds the
active sprint from list names. Output is a table in a terminal, GitHub
markdown when piped, and JSON with --json (or CU_OUTPUT=json).
"""

import argparse
import logging
import sys
import webbrowser
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from cu import __version__
from cu import commands
from cu.api import ClickUpClient
from cu.config import Config, config_path, get_config_value, load_config, load_env
from cu.errors import CuError
from cu.output import (
    LIST_COLUMNS,
    SPACE_COLUMNS,
    SPRINT_COLUMNS,
    TASK_COLUMNS,
    format_assign_confirmation,
    format_comment_confirmation,
    format_comments,
    format_comments_markdown,
    format_create_confirmation,
    format_grouped_tasks_markdown,
    format_lists_markdown,
    format_spaces_markdown,
    format_table,
    format_task_detail,
    format_task_detail_markdown,
    format_tasks_markdown,
    format_update_confirmation,
    is_tty,
    should_output_json,
    to_json,
)

log = logging.getLogger("cu")

INBOX_LABELS = {
    "today": "Today",
    "yesterday": "Yesterday",
    "last_7_days": "Last 7 days",
    "earlier_this_month": "Earlier this month",
    "last_month": "Last month",
    "older": "Older",
}

SUMMARY_LABELS = [
    ("completed", "Completed Recently"),
    ("inProgress", "In Progress"),
    ("overdue", "Overdue"),
]


def emit(force_json: bool, data: Any, markdown: Callable[[], str], table: Callable[[], str]) -> None:
    """Print JSON, markdown (piped) or a table (terminal)."""
    if should_output_json(force_json):
        print(to_json(data))
    elif not is_tty():
        print(markdown())
    else:
        print(table())


def print_tasks(tasks: List[Dict[str, Any]], force_json: bool) -> None:
    emit(
        force_json,
        tasks,
        lambda: format_tasks_markdown(tasks),
        lambda: format_table(tasks, TASK_COLUMNS) if tasks else "No tasks found.",
    )


def format_sections(sections: List[tuple]) -> str:
    """Terminal rendering of (label, tasks) sections, counts in the heading."""
    out = []
    for label, tasks in sections:
        out.append(f"\n{label} ({len(tasks)})")
        out.append(format_table(tasks, TASK_COLUMNS) if tasks else "  None")
    return "\n".join(out)


# Task commands

def cmd_tasks(client: ClickUpClient, config: Config, args) -> int:
    type_filter = "initiative" if args.cmd == "initiatives" else None
    tasks = commands.fetch_my_tasks(
        client,
        config.team_id,
        type_filter=type_filter,
        statuses=[args.status] if args.status else None,
        list_ids=[args.list] if args.list else None,
        name=args.name,
    )
    print_tasks(tasks, args.json)
    return 0


def cmd_task(client: ClickUpClient, config: Config, args) -> int:
    task = client.get_task(args.task_id)
    emit(args.json, task, lambda: format_task_detail_markdown(task), lambda: format_task_detail(task))
    return 0


def cmd_update(client: ClickUpClient, config: Config, args) -> int:
    fields = {
        "name": args.name,
        "description": args.description,
        "status": args.status,
        "priority": args.priority,
        "due_date": args.due_date,
        "assignee": args.assignee,
    }
    only_description = args.description is not None and all(
        v is None for k, v in fields.items() if k != "description"
    )
    if only_description:
        result = commands.update_description(client, args.task_id, args.description)
    else:
        result = commands.update_task(client, args.task_id, **fields)

    if should_output_json(args.json):
        print(to_json(result))
    else:
        print(format_update_confirmation(result["id"], result["name"]))
    return 0


def cmd_create(client: ClickUpClient, config: Config, args) -> int:
    result = commands.create_task(
        client,
        name=args.name,
        list_id=args.list,
        description=args.description,
        parent=args.parent,
        status=args.status,
        priority=args.priority,
        due_date=args.due_date,
        assignee=args.assignee,
        tags=args.tags,
    )
    if should_output_json(args.json):
        print(to_json(result))
    else:
        print(format_create_confirmation(result["id"], result["name"], result["url"]))
    return 0


def cmd_subtasks(client: ClickUpClient, config: Config, args) -> int:
    print_tasks(commands.fetch_subtasks(client, args.task_id), args.json)
    return 0


def cmd_search(client: ClickUpClient, config: Config, args) -> int:
    tasks = commands.search_tasks(client, config.team_id, " ".join(args.query), status=args.status)
    print_tasks(tasks, args.json)
    return 0


def cmd_overdue(client: ClickUpClient, config: Config, args) -> int:
    print_tasks(commands.fetch_overdue_tasks(client, config.team_id), args.json)
    return 0


def cmd_assign(client: ClickUpClient, config: Config, args) -> int:
    task = commands.assign_task(client, args.task_id, to=args.to, remove=args.remove)
    if should_output_json(args.json):
        print(to_json(task))
    else:
        print(format_assign_confirmation(args.task_id, to=args.to, remove=args.remove))
    return 0


def cmd_open(client: ClickUpClient, config: Config, args) -> int:
    query = " ".join(args.query)
    task, matches = commands.find_task_to_open(client, config.team_id, query)

    if len(matches) > 1:
        log.info("Found %d matches:", len(matches))
        for m in matches:
            log.info("  %s  %s", m["id"], m["name"])
        log.info("Opening first match...")

    if should_output_json(args.json):
        full = client.get_task(task["id"]) if matches else task
        print(to_json(full))
        return 0

    if is_tty():
        print(task.get("name", ""))
        print(task.get("url", ""))
    webbrowser.open(task["url"])
    return 0


# Sprints

def cmd_sprint(client: ClickUpClient, config: Config, args) -> int:
    tasks = commands.fetch_sprint_tasks(client, config.team_id, status=args.status)
    print_tasks(tasks, args.json)
    return 0


def _short_date(iso: Optional[str]) -> str:
    if not iso:
        return ""
    d = datetime.fromisoformat(iso)
    return f"{d.month}/{d.day}"


def cmd_sprints(client: ClickUpClient, config: Config, args) -> int:
    sprints = commands.list_sprints(client, config.team_id, space=args.space)
    if should_output_json(args.json) or not is_tty():
        print(to_json(sprints))
        return 0
    if not sprints:
        print("No sprints found.")
        return 0
    rows = [
        {
            "id": s["id"],
            "sprint": f"* {s['name']}" if s["active"] else s["name"],
            "dates": f"{_short_date(s['start'])} - {_short_date(s['end'])}" if s["start"] else "",
        }
        for s in sprints
    ]
    print(format_table(rows, SPRINT_COLUMNS))
    return 0


# Comments / activity

def cmd_comment(client: ClickUpClient, config: Config, args) -> int:
    comment = commands.post_comment(client, args.task_id, args.message)
    if should_output_json(args.json):
        print(to_json(comment))
    else:
        print(format_comment_confirmation(comment.get("id")))
    return 0


def cmd_comments(client: ClickUpClient, config: Config, args) -> int:
    comments = commands.fetch_comments(client, args.task_id)
    emit(args.json, comments, lambda: format_comments_markdown(comments), lambda: format_comments(comments))
    return 0


def cmd_activity(client: ClickUpClient, config: Config, args) -> int:
    result = commands.fetch_activity(client, args.task_id)
    if should_output_json(args.json) or not is_tty():
        print(to_json(result))
        return 0
    print(format_task_detail(result["task"]))
    print("")
    print("Comments")
    print("-" * 60)
    print(format_comments(result["comments"]) if result["comments"] else "No comments.")
    return 0


# Workspace navigation

def cmd_lists(client: ClickUpClient, config: Config, args) -> int:
    lists = commands.fetch_lists(client, args.space_id, name=args.name)
    emit(
        args.json,
        lists,
        lambda: format_lists_markdown(lists),
        lambda: format_table(lists, LIST_COLUMNS) if lists else "No lists found.",
    )
    return 0


def cmd_spaces(client: ClickUpClient, config: Config, args) -> int:
    spaces = commands.list_spaces(client, config.team_id, name=args.name, my=args.my)
    rows = [{"id": s.get("id"), "name": s.get("name")} for s in spaces]
    emit(
        args.json,
        spaces,
        lambda: format_spaces_markdown(rows),
        lambda: format_table(rows, SPACE_COLUMNS) if rows else "No spaces found.",
    )
    return 0


# Overviews

def cmd_inbox(client: ClickUpClient, config: Config, args) -> int:
    tasks = commands.fetch_inbox(client, config.team_id, days=args.days)
    groups = commands.group_tasks(tasks)
    sections = [(INBOX_LABELS[k], v) for k, v in groups.items()]
    emit(
        args.json,
        groups,
        lambda: format_grouped_tasks_markdown(sections),
        lambda: format_sections([s for s in sections if s[1]]) if tasks else "No tasks found.",
    )
    return 0


def cmd_assigned(client: ClickUpClient, config: Config, args) -> int:
    groups = commands.fetch_assigned(client, config.team_id, include_closed=args.include_closed)
    if should_output_json(args.json) or not is_tty():
        result = {
            status.lower(): [commands.assigned_task_json(t) for t in tasks]
            for status, tasks in groups
        }
        print(to_json(result))
        return 0
    if not groups:
        print("No tasks found.")
        return 0
    print(format_sections([(status.upper(), [commands.summarize(t) for t in tasks]) for status, tasks in groups]))
    return 0


def cmd_summary(client: ClickUpClient, config: Config, args) -> int:
    result = commands.categorize_tasks(client.get_my_tasks(config.team_id), args.hours)
    sections = [(label, result[key]) for key, label in SUMMARY_LABELS]
    emit(
        args.json,
        result,
        lambda: format_grouped_tasks_markdown(sections),
        lambda: format_sections(sections),
    )
    return 0


# Auth / config

def cmd_auth(client: ClickUpClient, config: Config, args) -> int:
    result = commands.check_auth(client)
    if should_output_json(args.json) or not is_tty():
        print(to_json(result))
    elif result["authenticated"]:
        user = result["user"]
        print(f"Authenticated as {user['username']} (id: {user['id']})")
    else:
        print(f"Not authenticated: {result['error']}")
    return 0 if result["authenticated"] else 1


def cmd_config_get(client, config, args) -> int:
    value = get_config_value(args.key)
    if value is None:
        log.warning("%s is not set", args.key)
        return 1
    print(value)
    return 0


def cmd_config_path(client, config, args) -> int:
    print(config_path())
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="cu", description="ClickUp CLI for developers and AI agents")
    p.add_argument("--env", help="Path to a .env file (default: nearest .env from the current directory)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging (HTTP requests)")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--json", action="store_true", help="Force JSON output")

    sp = p.add_subparsers(dest="cmd", required=True)

    for name, help_text in (("tasks", "List my tasks"), ("initiatives", "List my initiatives")):
        pt = sp.add_parser(name, parents=[common], help=help_text)
        pt.add_argument("--status", help="Filter by status (sent to the API as-is)")
        pt.add_argument("--list", help="Filter by list ID")
        pt.add_argument("--name", help="Filter by name (substring, case-insensitive)")
        pt.set_defaults(func=cmd_tasks)

    pg = sp.add_parser("task", parents=[common], help="Show a task")
    pg.add_argument("task_id")
    pg.set_defaults(func=cmd_task)

    pu = sp.add_parser("update", parents=[common], help="Update a task")
    pu.add_argument("task_id")
    pu.add_argument("-n", "--name", help="New name")
    pu.add_argument("-d", "--description", help="New description (markdown)")
    pu.add_argument("-s", "--status", help="New status (fuzzy-matched against the space's statuses)")
    pu.add_argument("--priority", help="urgent|high|normal|low or 1-4")
    pu.add_argument("--due-date", help="Due date (YYYY-MM-DD)")
    pu.add_argument("--assignee", help="Add assignee by numeric user ID")
    pu.set_defaults(func=cmd_update)

    pc = sp.add_parser("create", parents=[common], help="Create a task")
    pc.add_argument("-l", "--list", help="List ID (defaults to the parent's list)")
    pc.add_argument("-n", "--name", required=True, help="Task name")
    pc.add_argument("-d", "--description", help="Description (markdown)")
    pc.add_argument("-p", "--parent", help="Parent task ID (creates a subtask)")
    pc.add_argument("-s", "--status", help="Initial status")
    pc.add_argument("--priority", help="urgent|high|normal|low or 1-4")
    pc.add_argument("--due-date", help="Due date (YYYY-MM-DD)")
    pc.add_argument("--assignee", help="Assignee numeric user ID")
    pc.add_argument("--tags", help="Comma-separated tag names")
    pc.set_defaults(func=cmd_create)

    psp = sp.add_parser("sprint", parents=[common], help="My tasks in the active sprint")
    psp.add_argument("--status", help="Filter by status (fuzzy)")
    psp.set_defaults(func=cmd_sprint)

    pss = sp.add_parser("sprints", parents=[common], help="List sprint lists")
    pss.add_argument("--space", help="Limit to spaces matching this name or ID")
    pss.set_defaults(func=cmd_sprints)

    pst = sp.add_parser("subtasks", parents=[common], help="List subtasks of a task")
    pst.add_argument("task_id")
    pst.set_defaults(func=cmd_subtasks)

    pcm = sp.add_parser("comment", parents=[common], help="Post a comment on a task")
    pcm.add_argument("task_id")
    pcm.add_argument("-m", "--message", required=True, help="Comment text")
    pcm.set_defaults(func=cmd_comment)

    pcs = sp.add_parser("comments", parents=[common], help="List comments on a task")
    pcs.add_argument("task_id")
    pcs.set_defaults(func=cmd_comments)

    pa = sp.add_parser("activity", parents=[common], help="Task details plus comments")
    pa.add_argument("task_id")
    pa.set_defaults(func=cmd_activity)

    pl = sp.add_parser("lists", parents=[common], help="List lists in a space")
    pl.add_argument("space_id")
    pl.add_argument("--name", help="Filter by name (substring)")
    pl.set_defaults(func=cmd_lists)

    psc = sp.add_parser("spaces", parents=[common], help="List spaces in the workspace")
    psc.add_argument("--name", help="Filter by name (substring)")
    psc.add_argument("--my", action="store_true", help="Only spaces holding my tasks")
    psc.set_defaults(func=cmd_spaces)

    pi = sp.add_parser("inbox", parents=[common], help="Recently updated tasks, grouped by period")
    pi.add_argument("--days", type=int, default=30, help="Look back this many days (default 30)")
    pi.set_defaults(func=cmd_inbox)

    pas = sp.add_parser("assigned", parents=[common], help="My tasks grouped by status")
    pas.add_argument("--include-closed", action="store_true", help="Include done/closed tasks")
    pas.set_defaults(func=cmd_assigned)

    po = sp.add_parser("open", parents=[common], help="Open a task in the browser by ID or name")
    po.add_argument("query", nargs="+")
    po.set_defaults(func=cmd_open)

    pse = sp.add_parser("search", parents=[common], help="Search my tasks by name")
    pse.add_argument("query", nargs="+")
    pse.add_argument("--status", help="Filter by status (fuzzy)")
    pse.set_defaults(func=cmd_search)

    psu = sp.add_parser("summary", parents=[common], help="Standup summary")
    psu.add_argument("--hours", type=float, default=24, help="Completed-task window in hours (default 24)")
    psu.set_defaults(func=cmd_summary)

    pov = sp.add_parser("overdue", parents=[common], help="My overdue tasks")
    pov.set_defaults(func=cmd_overdue)

    pag = sp.add_parser("assign", parents=[common], help="Add or remove assignees")
    pag.add_argument("task_id")
    pag.add_argument("--to", help="User ID to add, or 'me'")
    pag.add_argument("--remove", help="User ID to remove, or 'me'")
    pag.set_defaults(func=cmd_assign)

    pau = sp.add_parser("auth", parents=[common], help="Check the API token")
    pau.set_defaults(func=cmd_auth)

    pcfg = sp.add_parser("config", help="Read config values")
    csp = pcfg.add_subparsers(dest="config_cmd", required=True)
    pcg = csp.add_parser("get", help="Print a config value")
    pcg.add_argument("key", help="apiToken or teamId")
    pcg.set_defaults(func=cmd_config_get, needs_client=False)
    pcp = csp.add_parser("path", help="Print the config file path")
    pcp.set_defaults(func=cmd_config_path, needs_client=False)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    try:
        load_env(args.env)
        if not getattr(args, "needs_client", True):
            return args.func(None, None, args)
        config = load_config()
        client = ClickUpClient(config.api_token)
        return args.func(client, config, args)
    except KeyboardInterrupt:
        return 130
    except CuError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logging.error("Error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
