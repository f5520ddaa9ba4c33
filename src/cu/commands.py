"""
Command logic for cu.

Each function here talks to a ClickUpClient and returns plain data (task
summaries, dicts, lists); printing is left to cu.cli.
"""

import logging
import re
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from cu.api import ClickUpClient, ClickUpError, fan_out, flatten, run_parallel
from cu.errors import CuError
from cu.sprint import find_active_sprint_list, find_related_spaces, parse_sprint_dates
from cu.status import match_status

log = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
HOUR_MS = 60 * 60 * 1000

DONE_STATUSES = {"done", "complete", "completed", "closed"}
IN_PROGRESS_PATTERNS = ["in progress", "in review", "code review", "doing"]
STATUS_ORDER = [
    "code review",
    "in review",
    "review",
    "in progress",
    "to do",
    "open",
    "needs definition",
    "backlog",
    "blocked",
]

PRIORITY_MAP = {"urgent": 1, "high": 2, "normal": 3, "low": 4}
DUE_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TASK_ID_RE = re.compile(r"^[a-z0-9]+$", re.IGNORECASE)
MAX_TASK_ID_LENGTH = 12

TIME_PERIODS = ["today", "yesterday", "last_7_days", "earlier_this_month", "last_month", "older"]


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _ms(value: Any) -> Optional[int]:
    """ClickUp sends timestamps as numeric strings; None when absent or garbage."""
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# Task summaries

def is_initiative(task: Dict[str, Any]) -> bool:
    return (task.get("custom_item_id") or 0) != 0


def task_status(task: Dict[str, Any]) -> str:
    return (task.get("status") or {}).get("status", "")


def is_done_status(status: str) -> bool:
    return status.lower() in DONE_STATUSES


def summarize(task: Dict[str, Any]) -> Dict[str, Any]:
    """Project a raw task onto {id, name, status, task_type, list, url[, parent]}."""
    summary = {
        "id": task["id"],
        "name": task.get("name", ""),
        "status": task_status(task),
        "task_type": "initiative" if is_initiative(task) else "task",
        "list": (task.get("list") or {}).get("name", ""),
        "url": task.get("url", ""),
    }
    if task.get("parent"):
        summary["parent"] = task["parent"]
    return summary


def fetch_my_tasks(
    client: ClickUpClient,
    team_id: str,
    type_filter: Optional[str] = None,
    statuses: Optional[List[str]] = None,
    list_ids: Optional[List[str]] = None,
    name: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """My tasks across the workspace, optionally narrowed to tasks or initiatives.

    `statuses` go to the API as-is; `name` is a local substring filter.
    """
    tasks = client.get_my_tasks(team_id, statuses=statuses, list_ids=list_ids)
    if type_filter == "initiative":
        tasks = [t for t in tasks if is_initiative(t)]
    elif type_filter == "task":
        tasks = [t for t in tasks if not is_initiative(t)]
    if name:
        needle = name.lower()
        tasks = [t for t in tasks if needle in t.get("name", "").lower()]
    return [summarize(t) for t in tasks]


def filter_by_status(tasks: List[Dict[str, Any]], status: str) -> List[Dict[str, Any]]:
    """Filter summaries by a fuzzy-matched status, falling back to literal equality."""
    observed = list(OrderedDict.fromkeys(t["status"] for t in tasks))
    resolved = match_status(status, observed)
    if resolved is None:
        wanted = status.lower()
        return [t for t in tasks if t["status"].lower() == wanted]
    if resolved != status:
        log.info("Status matched: '%s' -> '%s'", status, resolved)
    return [t for t in tasks if t["status"] == resolved]


def search_tasks(
    client: ClickUpClient,
    team_id: str,
    query: str,
    status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """My tasks whose name contains every word of the query."""
    trimmed = (query or "").strip()
    if not trimmed:
        raise CuError("Search query cannot be empty")
    words = trimmed.lower().split()
    tasks = client.get_my_tasks(team_id)
    matched = [summarize(t) for t in tasks if all(w in t.get("name", "").lower() for w in words)]
    if status:
        matched = filter_by_status(matched, status)
    return matched


# Field parsing

def parse_priority(value: str) -> int:
    v = str(value).strip().lower()
    if v in PRIORITY_MAP:
        return PRIORITY_MAP[v]
    if v in {"1", "2", "3", "4"}:
        return int(v)
    raise CuError(f'Priority must be urgent, high, normal, low, or 1-4 (got "{value}")')


def parse_due_date(value: str) -> int:
    """YYYY-MM-DD to epoch milliseconds at UTC midnight."""
    v = str(value).strip()
    if not DUE_DATE_RE.match(v):
        raise CuError(f'Due date must be in YYYY-MM-DD format (got "{value}")')
    try:
        dt = datetime.strptime(v, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        raise CuError(f'Due date must be a valid YYYY-MM-DD date (got "{value}")')
    return int(dt.timestamp() * 1000)


def parse_assignee_id(value: str) -> int:
    v = str(value).strip()
    if not v.isdigit():
        raise CuError(f'Assignee must be a numeric user ID (got "{value}")')
    return int(v)


# Update / create

def resolve_task_status(client: ClickUpClient, task_id: str, status: str) -> str:
    """Match a status against the statuses of the task's space.

    A task without a space gets the value unchanged.
    """
    task = client.get_task(task_id)
    space_id = (task.get("space") or {}).get("id")
    if not space_id:
        return status
    space = client.get_space(space_id)
    available = [s.get("status", "") for s in space.get("statuses") or []]
    resolved = match_status(status, available)
    if resolved is None:
        raise CuError(f'Status "{status}" not found. Available statuses: {", ".join(available)}')
    if resolved != status:
        log.info("Status matched: '%s' -> '%s'", status, resolved)
    return resolved


def build_update_payload(
    client: ClickUpClient,
    task_id: str,
    name: Optional[str] = None,
    description: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    due_date: Optional[str] = None,
    assignee: Optional[str] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if name is not None:
        payload["name"] = name
    if description is not None:
        payload["description"] = description
    if status is not None:
        payload["status"] = resolve_task_status(client, task_id, status)
    if priority is not None:
        payload["priority"] = parse_priority(priority)
    if due_date is not None:
        payload["due_date"] = parse_due_date(due_date)
        payload["due_date_time"] = False
    if assignee is not None:
        payload["assignees"] = {"add": [parse_assignee_id(assignee)]}
    return payload


def update_task(client: ClickUpClient, task_id: str, **fields: Optional[str]) -> Dict[str, Any]:
    """Apply a partial update; returns {id, name} of the updated task."""
    if all(v is None for v in fields.values()):
        raise CuError(
            "Provide at least one of: --name, --description, --status, --priority, --due-date, --assignee"
        )
    payload = build_update_payload(client, task_id, **fields)
    task = client.update_task(task_id, payload)
    return {"id": task.get("id", task_id), "name": task.get("name", "")}


def update_description(client: ClickUpClient, task_id: str, description: str) -> Dict[str, Any]:
    if not (description or "").strip():
        raise CuError("Description cannot be empty")
    task = client.update_task_description(task_id, description)
    return {"id": task.get("id", task_id), "name": task.get("name", "")}


def create_task(
    client: ClickUpClient,
    name: str,
    list_id: Optional[str] = None,
    description: Optional[str] = None,
    parent: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    due_date: Optional[str] = None,
    assignee: Optional[str] = None,
    tags: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a task; without a list it goes into the parent's list."""
    if not (name or "").strip():
        raise CuError("Task name cannot be empty")
    if not list_id:
        if not parent:
            raise CuError("Provide --list or --parent")
        list_id = client.get_task(parent)["list"]["id"]

    payload: Dict[str, Any] = {"name": name}
    if description is not None:
        payload["description"] = description
    if parent:
        payload["parent"] = parent
    if status:
        payload["status"] = status
    if priority is not None:
        payload["priority"] = parse_priority(priority)
    if due_date is not None:
        payload["due_date"] = parse_due_date(due_date)
        payload["due_date_time"] = False
    if assignee is not None:
        payload["assignees"] = [parse_assignee_id(assignee)]
    if tags:
        payload["tags"] = [t.strip() for t in tags.split(",") if t.strip()]

    task = client.create_task(list_id, payload)
    return {"id": task["id"], "name": task.get("name", name), "url": task.get("url", "")}


def resolve_user_id(client: ClickUpClient, value: str) -> int:
    if value == "me":
        return client.get_me()["id"]
    return parse_assignee_id(value)


def assign_task(
    client: ClickUpClient,
    task_id: str,
    to: Optional[str] = None,
    remove: Optional[str] = None,
) -> Dict[str, Any]:
    if not to and not remove:
        raise CuError("Provide at least one of: --to, --remove")
    assignees: Dict[str, List[int]] = {}
    if to:
        assignees["add"] = [resolve_user_id(client, to)]
    if remove:
        assignees["rem"] = [resolve_user_id(client, remove)]
    return client.update_task(task_id, {"assignees": assignees})


# Subtasks, comments, activity

def fetch_subtasks(client: ClickUpClient, task_id: str) -> List[Dict[str, Any]]:
    parent = client.get_task(task_id)
    tasks = client.get_tasks_from_list(parent["list"]["id"], {"parent": task_id, "subtasks": "false"})
    return [summarize(t) for t in tasks]


def post_comment(client: ClickUpClient, task_id: str, text: str) -> Dict[str, Any]:
    if not (text or "").strip():
        raise CuError("Comment text cannot be empty")
    return client.post_comment(task_id, text)


def summarize_comment(comment: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": comment.get("id"),
        "user": (comment.get("user") or {}).get("username", ""),
        "date": comment.get("date"),
        "text": comment.get("comment_text", ""),
    }


def fetch_comments(client: ClickUpClient, task_id: str) -> List[Dict[str, Any]]:
    return [summarize_comment(c) for c in client.get_task_comments(task_id)]


def fetch_activity(client: ClickUpClient, task_id: str) -> Dict[str, Any]:
    """The task and its comments, fetched concurrently."""
    task, comments = run_parallel(
        lambda: client.get_task(task_id),
        lambda: client.get_task_comments(task_id),
    )
    return {"task": task, "comments": [summarize_comment(c) for c in comments]}


# Inbox

def fetch_inbox(
    client: ClickUpClient,
    team_id: str,
    days: int = 30,
    now: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """My tasks updated in the last `days` days, newest first."""
    now = now if now is not None else now_ms()
    cutoff = now - days * DAY_MS
    tasks = client.get_my_tasks(team_id, subtasks=True)
    recent = [t for t in tasks if (_ms(t.get("date_updated")) or 0) > cutoff]
    recent.sort(key=lambda t: _ms(t.get("date_updated")) or 0, reverse=True)
    out = []
    for t in recent:
        summary = summarize(t)
        summary["date_updated"] = t.get("date_updated")
        out.append(summary)
    return out


def classify_time_period(timestamp_ms: int, now: Optional[datetime] = None) -> str:
    """Bucket a timestamp relative to local midnight of `now`."""
    now = now or datetime.now()
    ts = datetime.fromtimestamp(timestamp_ms / 1000)
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = today_start.replace(day=1)
    last_month_start = (month_start - timedelta(days=1)).replace(day=1)

    if ts >= today_start:
        return "today"
    if ts >= today_start - timedelta(days=1):
        return "yesterday"
    if ts >= today_start - timedelta(days=7):
        return "last_7_days"
    if ts >= month_start:
        return "earlier_this_month"
    if ts >= last_month_start:
        return "last_month"
    return "older"


def group_tasks(tasks: List[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, List[Dict[str, Any]]]:
    groups: Dict[str, List[Dict[str, Any]]] = OrderedDict((p, []) for p in TIME_PERIODS)
    for t in tasks:
        groups[classify_time_period(_ms(t.get("date_updated")) or 0, now)].append(t)
    return groups


# Summary / overdue

def is_in_progress(status: str) -> bool:
    s = status.lower()
    return any(p in s for p in IN_PROGRESS_PATTERNS)


def is_overdue(task: Dict[str, Any], now: int) -> bool:
    due = _ms(task.get("due_date"))
    return due is not None and due < now


def categorize_tasks(
    tasks: List[Dict[str, Any]],
    hours_back: float,
    now: Optional[int] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """Split tasks into recently completed, in progress and overdue."""
    now = now if now is not None else now_ms()
    cutoff = now - hours_back * HOUR_MS
    result: Dict[str, List[Dict[str, Any]]] = {"completed": [], "inProgress": [], "overdue": []}

    for task in tasks:
        status = task_status(task)
        done = is_done_status(status)
        if done:
            updated = _ms(task.get("date_updated"))
            if updated is not None and updated >= cutoff:
                result["completed"].append(summarize(task))
            continue
        if is_in_progress(status):
            result["inProgress"].append(summarize(task))
        if is_overdue(task, now):
            result["overdue"].append(summarize(task))
    return result


def fetch_overdue_tasks(client: ClickUpClient, team_id: str, now: Optional[int] = None) -> List[Dict[str, Any]]:
    """Open tasks past their due date, most overdue first."""
    now = now if now is not None else now_ms()
    tasks = [
        t for t in client.get_my_tasks(team_id)
        if is_overdue(t, now) and not is_done_status(task_status(t))
    ]
    tasks.sort(key=lambda t: _ms(t.get("due_date")))
    return [summarize(t) for t in tasks]


# Assigned

def _status_sort_key(status: str) -> Tuple[int, int]:
    key = status.lower()
    closed = 1 if key in DONE_STATUSES else 0
    rank = STATUS_ORDER.index(key) if key in STATUS_ORDER else len(STATUS_ORDER)
    return closed, rank


def group_by_status(
    tasks: List[Dict[str, Any]],
    include_closed: bool = False,
) -> List[Tuple[str, List[Dict[str, Any]]]]:
    """Group raw tasks by status in pipeline order; closed statuses last."""
    groups: Dict[str, List[Dict[str, Any]]] = OrderedDict()
    for task in tasks:
        status = task_status(task)
        if not include_closed and is_done_status(status):
            continue
        groups.setdefault(status, []).append(task)
    # sorted() is stable so unknown statuses keep first-seen order
    return sorted(groups.items(), key=lambda item: _status_sort_key(item[0]))


def assigned_task_json(task: Dict[str, Any]) -> Dict[str, Any]:
    summary = summarize(task)
    summary.pop("parent", None)
    summary["priority"] = (task.get("priority") or {}).get("priority")
    summary["due_date"] = task.get("due_date")
    return summary


def fetch_assigned(
    client: ClickUpClient,
    team_id: str,
    include_closed: bool = False,
) -> List[Tuple[str, List[Dict[str, Any]]]]:
    return group_by_status(client.get_my_tasks(team_id), include_closed)


# Lists / spaces

def fetch_lists(client: ClickUpClient, space_id: str, name: Optional[str] = None) -> List[Dict[str, Any]]:
    """Folderless lists then folder lists of a space, as {id, name, folder}."""
    folderless, folders = run_parallel(
        lambda: client.get_lists(space_id),
        lambda: client.get_folders(space_id),
    )
    results = [{"id": lst["id"], "name": lst["name"], "folder": "(none)"} for lst in folderless]
    per_folder = fan_out(lambda f: client.get_folder_lists(f["id"]), folders)
    for folder, lists in zip(folders, per_folder):
        results.extend({"id": lst["id"], "name": lst["name"], "folder": folder["name"]} for lst in lists)

    if name:
        query = name.lower()
        results = [r for r in results if query in r["name"].lower()]
    return results


def my_space_ids(tasks: List[Dict[str, Any]]) -> List[str]:
    ids = [(t.get("space") or {}).get("id") for t in tasks]
    return list(OrderedDict.fromkeys(i for i in ids if i))


def list_spaces(
    client: ClickUpClient,
    team_id: str,
    name: Optional[str] = None,
    my: bool = False,
) -> List[Dict[str, Any]]:
    spaces = client.get_spaces(team_id)
    if name:
        lower = name.lower()
        spaces = [s for s in spaces if lower in s.get("name", "").lower()]
    if my:
        mine = set(my_space_ids(client.get_my_tasks(team_id)))
        spaces = [s for s in spaces if s.get("id") in mine]
    return spaces


# Sprints

def _sprint_folders(client: ClickUpClient, spaces: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    folders = flatten(fan_out(lambda s: client.get_folders(s["id"]), spaces))
    return [f for f in folders if "sprint" in f.get("name", "").lower()]


def _related_spaces(client: ClickUpClient, team_id: str) -> List[Dict[str, Any]]:
    my_tasks, all_spaces = run_parallel(
        lambda: client.get_my_tasks(team_id),
        lambda: client.get_spaces(team_id),
    )
    return find_related_spaces(my_space_ids(my_tasks), all_spaces)


def list_sprints(
    client: ClickUpClient,
    team_id: str,
    space: Optional[str] = None,
    today: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Every list inside a sprint folder, as {id, name, folder, start, end, active}."""
    if space:
        lower = space.lower()
        spaces = [
            s for s in client.get_spaces(team_id)
            if lower in s.get("name", "").lower() or s.get("id") == space
        ]
        if not spaces:
            raise CuError(f'No space matching "{space}" found. Use `cu spaces` to list available spaces.')
    else:
        spaces = _related_spaces(client, team_id)

    today = today or datetime.now()
    folders = _sprint_folders(client, spaces)
    per_folder = fan_out(lambda f: client.get_folder_lists(f["id"]), folders)

    sprints = []
    for folder, lists in zip(folders, per_folder):
        for lst in lists:
            rng = parse_sprint_dates(lst.get("name", ""), today)
            sprints.append({
                "id": lst["id"],
                "name": lst.get("name", ""),
                "folder": folder.get("name", ""),
                "start": rng.start.isoformat() if rng else None,
                "end": rng.end.isoformat() if rng else None,
                "active": bool(rng and rng.start <= today <= rng.end),
            })
    return sprints


def detect_active_sprint(
    client: ClickUpClient,
    team_id: str,
    today: Optional[datetime] = None,
) -> Dict[str, Any]:
    log.info("Detecting active sprint...")
    spaces = _related_spaces(client, team_id)
    folders = _sprint_folders(client, spaces)
    lists = flatten(fan_out(lambda f: client.get_folder_lists(f["id"]), folders))
    active = find_active_sprint_list(lists, today)
    if active is None:
        raise CuError('No sprint list found. Ensure sprint folders contain "sprint" in their name.')
    log.info("Active sprint: %s", active.get("name", ""))
    return active


def fetch_sprint_tasks(
    client: ClickUpClient,
    team_id: str,
    status: Optional[str] = None,
    today: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """My tasks in the active sprint list."""
    active = detect_active_sprint(client, team_id, today)
    tasks = fetch_my_tasks(client, team_id, list_ids=[active["id"]])
    if status:
        tasks = filter_by_status(tasks, status)
    return tasks


# Open / auth

def looks_like_task_id(query: str) -> bool:
    return bool(TASK_ID_RE.match(query)) and len(query) <= MAX_TASK_ID_LENGTH


def find_task_to_open(
    client: ClickUpClient,
    team_id: str,
    query: str,
) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """Resolve a query to a task to open.

    Returns (task, matches). `task` is the full task when the query was a
    fetchable ID, otherwise the first name match; `matches` holds all name
    matches (empty for an ID hit).
    """
    if looks_like_task_id(query):
        try:
            return client.get_task(query), []
        except ClickUpError as e:
            log.debug("Task %s not fetched (%s); searching by name", query, e)

    matches = fetch_my_tasks(client, team_id, name=query)
    if not matches:
        raise CuError(f'No tasks found matching "{query}"')
    return matches[0], matches


def check_auth(client: ClickUpClient) -> Dict[str, Any]:
    try:
        user = client.get_me()
    except CuError as e:
        return {"authenticated": False, "error": str(e)}
    return {"authenticated": True, "user": {"id": user.get("id"), "username": user.get("username")}}
