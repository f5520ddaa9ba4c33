"""
Tests for output formatting.

Run with: python -m pytest tests/test_output.py -v
"""

from cu.output import (
    TASK_COLUMNS,
    format_assign_confirmation,
    format_comments_markdown,
    format_create_confirmation,
    format_grouped_tasks_markdown,
    format_lists_markdown,
    format_spaces_markdown,
    format_table,
    format_task_detail,
    format_task_detail_markdown,
    format_tasks_markdown,
    should_output_json,
)

TASK = {"id": "abc123", "name": "Fix login", "status": "in progress", "list": "Sprint 4", "url": "u"}

FULL_TASK = {
    "id": "abc123",
    "name": "Fix login",
    "status": {"status": "in progress"},
    "custom_item_id": 1,
    "list": {"id": "L1", "name": "Sprint 4"},
    "url": "https://app.clickup.com/t/abc123",
    "assignees": [{"id": 1, "username": "alice"}, {"id": 2, "username": "bob"}],
    "priority": {"priority": "high"},
    "due_date": "1740614400000",
    "time_estimate": 5400000,
    "tags": [{"name": "backend"}],
    "description": "line one\nline two\nline three\nline four",
}


class TestShouldOutputJson:
    """Tests for JSON mode selection."""

    def test_forced(self, monkeypatch):
        """Test --json forces JSON."""
        monkeypatch.delenv("CU_OUTPUT", raising=False)
        assert should_output_json(True) is True
        assert should_output_json(False) is False

    def test_env(self, monkeypatch):
        """Test CU_OUTPUT=json forces JSON."""
        monkeypatch.setenv("CU_OUTPUT", "json")
        assert should_output_json(False) is True


class TestFormatTable:
    """Tests for terminal tables."""

    def test_headers_and_rows(self):
        """Test headers and values appear."""
        output = format_table([TASK], TASK_COLUMNS)
        assert "ID" in output
        assert "STATUS" in output
        assert "Fix login" in output
        assert "Sprint 4" in output

    def test_truncation(self):
        """Test long cells are cut with an ellipsis."""
        row = dict(TASK, name="x" * 80)
        output = format_table([row], TASK_COLUMNS)
        assert "x" * 54 + "…" in output
        assert "x" * 56 not in output

    def test_missing_keys_render_empty(self):
        """Test missing keys do not break the table."""
        output = format_table([{"id": "1"}], TASK_COLUMNS)
        assert "1" in output

    def test_numeric_ids_kept_as_text(self):
        """Test numeric-looking IDs are not reformatted."""
        output = format_table([{"id": "0012", "name": "n"}], TASK_COLUMNS)
        assert "0012" in output


class TestMarkdown:
    """Tests for markdown formatters."""

    def test_tasks_table(self):
        """Test a GitHub markdown table."""
        output = format_tasks_markdown([TASK])
        lines = output.splitlines()
        assert lines[0].startswith("| ID")
        assert "Fix login" in output

    def test_pipe_escaped(self):
        """Test pipes inside cells are escaped."""
        output = format_tasks_markdown([dict(TASK, name="a | b")])
        assert "a \\| b" in output

    def test_empty_messages(self):
        """Test empty collections print a message."""
        assert format_tasks_markdown([]) == "No tasks found."
        assert format_lists_markdown([]) == "No lists found."
        assert format_spaces_markdown([]) == "No spaces found."

    def test_grouped(self):
        """Test grouped sections skip empty groups."""
        output = format_grouped_tasks_markdown([("Today", [TASK]), ("Older", [])])
        assert "## Today" in output
        assert "## Older" not in output
        assert format_grouped_tasks_markdown([("Today", [])]) == "No tasks found."

    def test_comments(self):
        """Test comments render with author and separators."""
        comments = [
            {"id": "1", "user": "alice", "date": "1700000000000", "text": "first"},
            {"id": "2", "user": "bob", "date": "1700000100000", "text": "second"},
        ]
        output = format_comments_markdown(comments)
        assert "**alice**" in output
        assert "---" in output
        assert "second" in output

    def test_task_detail(self):
        """Test the markdown task detail."""
        output = format_task_detail_markdown(FULL_TASK)
        assert output.startswith("# Fix login")
        assert "**Type:** initiative" in output
        assert "**Assignees:** alice, bob" in output
        assert "**Due Date:** 2025-02-27" in output
        assert "**Time Estimate:** 1h 30m" in output
        assert "## Description" in output


class TestTaskDetail:
    """Tests for the terminal task detail."""

    def test_fields_and_preview(self):
        """Test labels and a three-line description preview."""
        output = format_task_detail(FULL_TASK)
        assert "Status" in output
        assert "Priority" in output
        assert "line three" in output
        assert "line four" not in output

    def test_minimal_task(self):
        """Test a task with few fields."""
        output = format_task_detail({"id": "1", "name": "Bare", "status": {"status": "open"}})
        assert "Bare" in output
        assert "Due Date" not in output


class TestConfirmations:
    """Tests for confirmation messages."""

    def test_create(self):
        """Test the create confirmation."""
        assert format_create_confirmation("1", "New", "u") == 'Created task 1: "New" - u'

    def test_assign(self):
        """Test the assign confirmation combines actions."""
        assert format_assign_confirmation("t1", to="me", remove="5") == "Assigned me to t1; Removed 5 from t1"
