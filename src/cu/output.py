"""
Rendering for cu: plain tables for a terminal, GitHub markdown when piped,
JSON on request.
"""

import json
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from tabulate import tabulate

# (key, label, max_width)
Column = Tuple[str, str, Optional[int]]

TASK_COLUMNS: List[Column] = [
    ("id", "ID", 12),
    ("name", "NAME", 55),
    ("status", "STATUS", 14),
    ("list", "LIST", 30),
]

LIST_COLUMNS: List[Column] = [
    ("id", "ID", None),
    ("name", "NAME", 50),
    ("folder", "FOLDER", 30),
]

SPACE_COLUMNS: List[Column] = [
    ("id", "ID", None),
    ("name", "NAME", 50),
]

SPRINT_COLUMNS: List[Column] = [
    ("id", "ID", None),
    ("sprint", "SPRINT", 60),
    ("dates", "DATES", None),
]

TASK_MD_COLUMNS: List[Tuple[str, str]] = [("id", "ID"), ("name", "Name"), ("status", "Status"), ("list", "List")]
LIST_MD_COLUMNS: List[Tuple[str, str]] = [("id", "ID"), ("name", "Name"), ("folder", "Folder")]
SPACE_MD_COLUMNS: List[Tuple[str, str]] = [("id", "ID"), ("name", "Name")]


def is_tty() -> bool:
    return sys.stdout.isatty()


def should_output_json(force: bool = False) -> bool:
    return bool(force) or os.getenv("CU_OUTPUT") == "json"


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _truncate(value: str, width: Optional[int]) -> str:
    if width and len(value) > width:
        return value[: width - 1] + "…"
    return value


def _cell(row: Dict[str, Any], key: str) -> str:
    value = row.get(key)
    return "" if value is None else str(value)


def format_table(rows: Iterable[Dict[str, Any]], columns: Sequence[Column]) -> str:
    """Fixed-column table; cells longer than a column's max width end in '…'."""
    headers = [label for _, label, _ in columns]
    body = [[_truncate(_cell(r, key), width) for key, _, width in columns] for r in rows]
    return tabulate(body, headers=headers, tablefmt="simple", disable_numparse=True)


# Markdown

def _escape_md(value: str) -> str:
    return value.replace("|", "\\|").replace("\n", " ")


def format_markdown_table(rows: Iterable[Dict[str, Any]], columns: Sequence[Tuple[str, str]]) -> str:
    headers = [label for _, label in columns]
    body = [[_escape_md(_cell(r, key)) for key, _ in columns] for r in rows]
    return tabulate(body, headers=headers, tablefmt="github", disable_numparse=True)


def format_tasks_markdown(tasks: List[Dict[str, Any]]) -> str:
    if not tasks:
        return "No tasks found."
    return format_markdown_table(tasks, TASK_MD_COLUMNS)


def format_lists_markdown(lists: List[Dict[str, Any]]) -> str:
    if not lists:
        return "No lists found."
    return format_markdown_table(lists, LIST_MD_COLUMNS)


def format_spaces_markdown(spaces: List[Dict[str, Any]]) -> str:
    if not spaces:
        return "No spaces found."
    return format_markdown_table(spaces, SPACE_MD_COLUMNS)


def format_comments_markdown(comments: List[Dict[str, Any]]) -> str:
    if not comments:
        return "No comments found."
    return "\n\n---\n\n".join(
        f"**{c['user']}** ({format_ms_datetime(c['date'])})\n\n{c['text']}" for c in comments
    )


def format_comments(comments: List[Dict[str, Any]]) -> str:
    """Terminal view: one block per comment, separated by a rule."""
    if not comments:
        return "No comments found."
    blocks = [f"{c['user']}  {format_ms_datetime(c['date'])}\n{c['text']}" for c in comments]
    return f"\n{'-' * 60}\n".join(blocks)


def format_grouped_tasks_markdown(groups: List[Tuple[str, List[Dict[str, Any]]]]) -> str:
    """Render (label, tasks) groups as '## label' sections, skipping empty ones."""
    sections = [
        f"## {label}\n\n{format_markdown_table(tasks, TASK_MD_COLUMNS)}"
        for label, tasks in groups
        if tasks
    ]
    if not sections:
        return "No tasks found."
    return "\n\n".join(sections)


# Task detail

def format_ms_date(ms: Any) -> str:
    """Epoch milliseconds (int or numeric string) to YYYY-MM-DD in UTC."""
    try:
        dt = datetime.fromtimestamp(int(ms) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return ""
    return dt.strftime("%Y-%m-%d")


def format_ms_datetime(ms: Any) -> str:
    """Epoch milliseconds to a short local timestamp; raw value if unparseable."""
    try:
        dt = datetime.fromtimestamp(int(ms) / 1000)
    except (TypeError, ValueError, OverflowError):
        return "" if ms is None else str(ms)
    return dt.strftime("%b %d, %Y %H:%M")


def format_duration(ms: Any) -> str:
    total_minutes = int(ms) // 60000
    return f"{total_minutes // 60}h {total_minutes % 60}m"


def task_detail_fields(task: Dict[str, Any]) -> List[Tuple[str, str]]:
    """Label/value pairs shown for a task; empty values are left out."""
    status = (task.get("status") or {}).get("status")
    is_initiative = (task.get("custom_item_id") or 0) != 0
    assignees = [a.get("username") or str(a.get("id")) for a in task.get("assignees") or []]
    tags = [t.get("name", "") for t in task.get("tags") or []]
    priority = (task.get("priority") or {}).get("priority")

    fields = [
        ("ID", task.get("id")),
        ("Status", status),
        ("Type", "initiative" if is_initiative else "task"),
        ("List", (task.get("list") or {}).get("name")),
        ("URL", task.get("url")),
        ("Assignees", ", ".join(assignees) if assignees else None),
        ("Priority", priority),
        ("Parent", task.get("parent")),
        ("Start Date", format_ms_date(task["start_date"]) if task.get("start_date") else None),
        ("Due Date", format_ms_date(task["due_date"]) if task.get("due_date") else None),
        ("Time Estimate", format_duration(task["time_estimate"]) if (task.get("time_estimate") or 0) > 0 else None),
        ("Time Spent", format_duration(task["time_spent"]) if (task.get("time_spent") or 0) > 0 else None),
        ("Tags", ", ".join(tags) if tags else None),
        ("Created", format_ms_date(task["date_created"]) if task.get("date_created") else None),
        ("Updated", format_ms_date(task["date_updated"]) if task.get("date_updated") else None),
    ]
    return [(label, str(value)) for label, value in fields if value not in (None, "")]


def format_task_detail_markdown(task: Dict[str, Any]) -> str:
    lines = [f"# {task.get('name', '')}", ""]
    for label, value in task_detail_fields(task):
        lines.append(f"**{label}:** {value}")
    if task.get("description"):
        lines += ["", "## Description", "", task["description"]]
    return "\n".join(lines)


def format_task_detail(task: Dict[str, Any], preview_lines: int = 3) -> str:
    """Aligned label/value view for a terminal, with a short description preview."""
    fields = task_detail_fields(task)
    width = max(len(label) for label, _ in fields) if fields else 0
    lines = [task.get("name", ""), ""]
    lines += [f"{label.ljust(width)}  {value}" for label, value in fields]
    description = (task.get("description") or "").strip()
    if description:
        desc_lines = description.splitlines()
        lines += ["", *desc_lines[:preview_lines]]
        if len(desc_lines) > preview_lines:
            lines.append("…")
    return "\n".join(lines)


# Confirmations

def format_update_confirmation(task_id: str, name: str) -> str:
    return f'Updated task {task_id}: "{name}"'


def format_create_confirmation(task_id: str, name: str, url: str) -> str:
    return f'Created task {task_id}: "{name}" - {url}'


def format_comment_confirmation(comment_id: Any) -> str:
    return f"Comment posted (id: {comment_id})"


def format_assign_confirmation(task_id: str, to: Optional[str] = None, remove: Optional[str] = None) -> str:
    parts = []
    if to:
        parts.append(f"Assigned {to} to {task_id}")
    if remove:
        parts.append(f"Removed {remove} from {task_id}")
    return "; ".join(parts)
