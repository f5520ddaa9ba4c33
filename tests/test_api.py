"""
Tests for the ClickUp API client.

Run with: python -m pytest tests/test_api.py -v
"""

import threading
import time
from unittest.mock import MagicMock, patch

import pytest
import requests

from cu.api import ClickUpClient, ClickUpError, fan_out, run_parallel


def make_response(body=None, status=200, reason="OK", bad_json=False):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.reason = reason
    if bad_json:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    with patch("cu.api.requests.Session") as mock_session_class:
        mock_session = MagicMock()
        mock_session_class.return_value = mock_session
        yield mock_session


class TestRequest:
    """Tests for request handling and error mapping."""

    def test_authorization_header(self, session):
        """Test the token is sent as the Authorization header."""
        ClickUpClient("pk_test")
        session.headers.update.assert_called_once()
        headers = session.headers.update.call_args.args[0]
        assert headers["Authorization"] == "pk_test"

    def test_get_task(self, session):
        """Test a basic GET hits the right URL with a timeout."""
        session.request.return_value = make_response({"id": "abc", "name": "Task"})
        client = ClickUpClient("pk_test")

        task = client.get_task("abc")

        assert task["name"] == "Task"
        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "GET"
        assert kwargs["url"] == "https://api.clickup.com/api/v2/task/abc"
        assert kwargs["timeout"] == 30

    def test_api_error_uses_err_field(self, session):
        """Test the error message comes from the body's err field."""
        session.request.return_value = make_response(
            {"err": "Token invalid", "ECODE": "OAUTH_025"}, status=401, reason="Unauthorized"
        )
        client = ClickUpClient("pk_bad")

        with pytest.raises(ClickUpError) as exc_info:
            client.get_me()

        assert str(exc_info.value) == "ClickUp API error 401: Token invalid"
        assert exc_info.value.status_code == 401

    def test_api_error_falls_back_to_ecode(self, session):
        """Test ECODE is used when err and error are absent."""
        session.request.return_value = make_response({"ECODE": "ITEM_015"}, status=404, reason="Not Found")
        client = ClickUpClient("pk_test")

        with pytest.raises(ClickUpError, match="ClickUp API error 404: ITEM_015"):
            client.get_task("missing")

    def test_api_error_falls_back_to_reason(self, session):
        """Test the HTTP reason phrase is used when the body has no message."""
        session.request.return_value = make_response({}, status=500, reason="Internal Server Error")
        client = ClickUpClient("pk_test")

        with pytest.raises(ClickUpError, match="ClickUp API error 500: Internal Server Error"):
            client.get_task("x")

    def test_invalid_json(self, session):
        """Test a non-JSON body raises a readable error."""
        session.request.return_value = make_response(status=502, reason="Bad Gateway", bad_json=True)
        client = ClickUpClient("pk_test")

        with pytest.raises(ClickUpError) as exc_info:
            client.get_task("x")

        assert str(exc_info.value) == "ClickUp API error 502: response was not valid JSON"

    def test_network_error(self, session):
        """Test transport failures become ClickUpError."""
        session.request.side_effect = requests.exceptions.ConnectionError("connection refused")
        client = ClickUpClient("pk_test")

        with pytest.raises(ClickUpError, match="Network error: connection refused"):
            client.get_task("x")

    def test_post_sends_json_body(self, session):
        """Test a comment is posted as a JSON body."""
        session.request.return_value = make_response({"id": 99})
        client = ClickUpClient("pk_test")

        client.post_comment("abc", "hello")

        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"].endswith("/task/abc/comment")
        assert kwargs["json"] == {"comment_text": "hello"}


class TestPagination:
    """Tests for paginated task listing."""

    def test_follows_pages_until_last_page(self, session):
        """Test pages are fetched until last_page is true."""
        session.request.side_effect = [
            make_response({"tasks": [{"id": "1"}], "last_page": False}),
            make_response({"tasks": [{"id": "2"}], "last_page": False}),
            make_response({"tasks": [{"id": "3"}], "last_page": True}),
        ]
        client = ClickUpClient("pk_test")

        tasks = client.get_tasks_from_list("L1")

        assert [t["id"] for t in tasks] == ["1", "2", "3"]
        pages = [c.kwargs["params"]["page"] for c in session.request.call_args_list]
        assert pages == [0, 1, 2]

    def test_missing_last_page_stops(self, session):
        """Test a response without last_page ends pagination."""
        session.request.return_value = make_response({"tasks": [{"id": "1"}]})
        client = ClickUpClient("pk_test")

        tasks = client.get_tasks_from_list("L1")

        assert len(tasks) == 1
        assert session.request.call_count == 1

    def test_get_my_tasks_params(self, session):
        """Test the team task query carries assignee, status and list filters."""
        session.request.side_effect = [
            make_response({"user": {"id": 42, "username": "me"}}),
            make_response({"tasks": [], "last_page": True}),
        ]
        client = ClickUpClient("pk_test")

        client.get_my_tasks("T1", statuses=["in progress"], list_ids=["L1"])

        kwargs = session.request.call_args.kwargs
        assert kwargs["url"].endswith("/team/T1/task")
        params = kwargs["params"]
        assert params["assignees[]"] == ["42"]
        assert params["statuses[]"] == ["in progress"]
        assert params["list_ids[]"] == ["L1"]
        assert params["subtasks"] == "true"
        assert params["page"] == 0
        assert set(params) == {"assignees[]", "statuses[]", "list_ids[]", "subtasks", "page"}


class TestGetMe:
    """Tests for the memoized current user."""

    def test_fetched_once(self, session):
        """Test the user is requested only once per client."""
        session.request.return_value = make_response({"user": {"id": 7, "username": "dev"}})
        client = ClickUpClient("pk_test")

        assert client.get_me()["id"] == 7
        assert client.get_me()["id"] == 7
        assert session.request.call_count == 1


class TestFanOut:
    """Tests for concurrent fan-out helpers."""

    def test_preserves_input_order(self):
        """Test results line up with inputs even when calls finish out of order."""
        def slow(n):
            time.sleep(0.01 * (5 - n))
            return n * 10

        assert fan_out(slow, [1, 2, 3, 4]) == [10, 20, 30, 40]

    def test_runs_concurrently(self):
        """Test calls overlap rather than running one after another."""
        barrier = threading.Barrier(3, timeout=5)

        def wait(n):
            barrier.wait()
            return n

        assert fan_out(wait, [1, 2, 3]) == [1, 2, 3]

    def test_empty(self):
        """Test no inputs gives no results."""
        assert fan_out(lambda x: x, []) == []

    def test_error_propagates(self):
        """Test an exception from any call reaches the caller."""
        def boom(n):
            if n == 2:
                raise ClickUpError("ClickUp API error 500: boom", 500)
            return n

        with pytest.raises(ClickUpError):
            fan_out(boom, [1, 2, 3])

    def test_run_parallel(self):
        """Test independent calls return in call order."""
        assert run_parallel(lambda: "a", lambda: "b") == ["a", "b"]


class TestThreadSessions:
    """Tests for per-thread sessions under fan-out."""

    def test_workers_do_not_share_the_main_session(self):
        """Test concurrent calls each use a session owned by their own thread."""
        barrier = threading.Barrier(3, timeout=5)

        def request(**kwargs):
            barrier.wait()
            return make_response({"id": kwargs["url"].rsplit("/", 1)[-1]})

        sessions = []

        def new_session():
            s = MagicMock()
            s.request.side_effect = request
            sessions.append(s)
            return s

        with patch("cu.api.requests.Session", side_effect=new_session):
            client = ClickUpClient("pk_test")
            tasks = fan_out(client.get_task, ["a", "b", "c"])

        assert [t["id"] for t in tasks] == ["a", "b", "c"]
        main, workers = sessions[0], sessions[1:]
        main.request.assert_not_called()
        assert len(workers) == 3
        assert all(w.request.call_count == 1 for w in workers)
        for w in workers:
            assert w.headers.update.call_args.args[0]["Authorization"] == "pk_test"

    def test_main_thread_reuses_its_session(self, session):
        """Test sequential calls on the creating thread share one session."""
        session.request.return_value = make_response({"id": "x"})
        client = ClickUpClient("pk_test")

        client.get_task("x")
        client.get_task("x")

        assert session.request.call_count == 2
