"""
Thin client for the ClickUp REST API (v2).

Responses are returned as the plain dicts the API sends back; nothing here
validates payload shapes beyond the presence checks the callers need.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

import requests

from cu.errors import CuError

API_BASE_URL = "https://api.clickup.com/api/v2"
REQUEST_TIMEOUT = 30
MAX_WORKERS = 8

log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ClickUpError(CuError):
    """Raised when the ClickUp API answers with an error or an unreadable body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def fan_out(func: Callable[[T], R], items: Iterable[T]) -> List[R]:
    """Run func over items concurrently; results come back in input order.

    The first exception raised by any call propagates to the caller.
    """
    items = list(items)
    if not items:
        return []
    if len(items) == 1:
        return [func(items[0])]
    log.debug("Fanning out %d requests", len(items))
    with ThreadPoolExecutor(max_workers=min(MAX_WORKERS, len(items))) as pool:
        return list(pool.map(func, items))


def run_parallel(*calls: Callable[[], Any]) -> List[Any]:
    """Run independent zero-argument calls concurrently, results in call order."""
    return fan_out(lambda call: call(), calls)


def flatten(groups: Iterable[List[T]]) -> List[T]:
    out: List[T] = []
    for g in groups:
        out.extend(g)
    return out


class ClickUpClient:
    """Client for the ClickUp API, authenticated with a personal token."""

    def __init__(self, api_token: str, base_url: str = API_BASE_URL):
        self.base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": api_token,
            "Accept": "application/json",
        }
        self.session = requests.Session()
        self.session.headers.update(self._headers)
        self._owner = threading.get_ident()
        self._local = threading.local()
        self._me: Optional[Dict[str, Any]] = None

    def _session(self) -> requests.Session:
        """The session for the calling thread; fan_out workers each get their own."""
        if threading.get_ident() == self._owner:
            return self.session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self._headers)
            self._local.session = session
        return session

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        data: Optional[dict] = None,
    ) -> Any:
        """Make an API request and return the decoded JSON body."""
        url = f"{self.base_url}{path}"
        log.debug("%s %s %s", method, path, params or "")
        try:
            response = self._session().request(
                method=method,
                url=url,
                params=params,
                json=data,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            raise ClickUpError(f"Network error: {e}")

        try:
            body = response.json()
        except ValueError:
            raise ClickUpError(
                f"ClickUp API error {response.status_code}: response was not valid JSON",
                response.status_code,
            )

        if not response.ok:
            msg = None
            if isinstance(body, dict):
                msg = body.get("err") or body.get("error") or body.get("ECODE")
            raise ClickUpError(
                f"ClickUp API error {response.status_code}: {msg or response.reason}",
                response.status_code,
            )
        return body

    def get(self, path: str, params: Optional[dict] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, data: Optional[dict] = None) -> Any:
        return self._request("POST", path, data=data)

    def put(self, path: str, data: Optional[dict] = None) -> Any:
        return self._request("PUT", path, data=data)

    def _paginate(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Collect `tasks` from every page until the API reports last_page."""
        all_tasks: List[Dict[str, Any]] = []
        page = 0
        while True:
            data = self.get(path, {**params, "page": page})
            all_tasks.extend(data.get("tasks") or [])
            # a missing flag means there is nothing more to fetch
            if data.get("last_page", True):
                break
            page += 1
        return all_tasks

    # Users
    def get_me(self) -> Dict[str, Any]:
        """Return the authenticated user, cached for the life of the client."""
        if self._me is None:
            self._me = self.get("/user")["user"]
        return self._me

    # Tasks
    def get_tasks_from_list(self, list_id: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """All tasks in a list (subtasks included unless overridden)."""
        return self._paginate(f"/list/{list_id}/task", {"subtasks": "true", **(params or {})})

    def get_my_tasks(
        self,
        team_id: str,
        statuses: Optional[List[str]] = None,
        list_ids: Optional[List[str]] = None,
        subtasks: bool = True,
    ) -> List[Dict[str, Any]]:
        """Tasks assigned to the current user across a workspace."""
        me = self.get_me()
        params: Dict[str, Any] = {
            "subtasks": str(subtasks).lower(),
            "assignees[]": [str(me["id"])],
        }
        if statuses:
            params["statuses[]"] = list(statuses)
        if list_ids:
            params["list_ids[]"] = list(list_ids)
        return self._paginate(f"/team/{team_id}/task", params)

    def get_task(self, task_id: str) -> Dict[str, Any]:
        return self.get(f"/task/{task_id}")

    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self.put(f"/task/{task_id}", fields)

    def update_task_description(self, task_id: str, description: str) -> Dict[str, Any]:
        return self.update_task(task_id, {"description": description})

    def create_task(self, list_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self.post(f"/list/{list_id}/task", fields)

    # Comments
    def get_task_comments(self, task_id: str) -> List[Dict[str, Any]]:
        data = self.get(f"/task/{task_id}/comment")
        return data.get("comments") or []

    def post_comment(self, task_id: str, text: str) -> Dict[str, Any]:
        return self.post(f"/task/{task_id}/comment", {"comment_text": text})

    # Hierarchy
    def get_spaces(self, team_id: str) -> List[Dict[str, Any]]:
        return self.get(f"/team/{team_id}/space", {"archived": "false"}).get("spaces") or []

    def get_space(self, space_id: str) -> Dict[str, Any]:
        """A single space, including its `statuses`."""
        return self.get(f"/space/{space_id}")

    def get_lists(self, space_id: str) -> List[Dict[str, Any]]:
        """Folderless lists directly under a space."""
        return self.get(f"/space/{space_id}/list", {"archived": "false"}).get("lists") or []

    def get_folders(self, space_id: str) -> List[Dict[str, Any]]:
        return self.get(f"/space/{space_id}/folder", {"archived": "false"}).get("folders") or []

    def get_folder_lists(self, folder_id: str) -> List[Dict[str, Any]]:
        return self.get(f"/folder/{folder_id}/list", {"archived": "false"}).get("lists") or []
