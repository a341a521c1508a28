"""Forum read API client."""

from typing import Any, Dict, List

import requests

from .config import Credentials, DEFAULT_API_BASE
from .errors import ApiError, MalformedPayload, ThreadNotAccessible
from .logger import get_logger

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
NOT_ACCESSIBLE = (403, 404)


def _has_thread_id(item: Any) -> bool:
    """Listing items need an integer thread_id (numeric strings allowed)."""
    if not isinstance(item, dict):
        return False
    value = item.get("thread_id")
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and value.strip().isdigit()


class ForumClient:
    """
    Thin wrapper over the forum's JSON endpoints.

    The credentials are the only auth the client ever sends; nothing is read
    from the environment here.
    """

    def __init__(self, credentials: Credentials, base_url: str = DEFAULT_API_BASE, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"accept": "application/json", "user-agent": USER_AGENT})
        self.session.headers.update(credentials.headers())

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _get(self, path: str, params: Dict[str, Any]) -> requests.Response:
        url = f"{self.base_url}/{path}"
        get_logger().record_api_call()
        try:
            return self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise ApiError(f"Request timed out: {url}", url=url)
        except requests.exceptions.RequestException as e:
            raise ApiError(f"Request error: {e}", url=url)

    def _json(self, resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            raise MalformedPayload(f"Response is not JSON: {resp.url}")

    def _listing(self, idlist: str, page: int) -> List[Dict[str, Any]]:
        resp = self._get("forum/toplist", {"idlist": idlist, "page": page})
        if not resp.ok:
            raise ApiError(f"Toplist {idlist} page {page} failed ({resp.status_code})", status=resp.status_code, url=resp.url)
        body = self._json(resp)
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise MalformedPayload(f"Toplist {idlist} page {page} has no 'data' object")
        items = data.get(idlist) or []
        return [item for item in items if _has_thread_id(item)]

    def newest_threads(self, page: int) -> List[Dict[str, Any]]:
        """Newest-first thread stubs: [{thread_id, ...}]."""
        return self._listing("newthread", page)

    def newest_replies(self, page: int) -> List[Dict[str, Any]]:
        """Recently replied threads: [{thread_id, replies, ...}]."""
        return self._listing("newreply", page)

    def thread_page(self, thread_id: int, page: int = 1, forum_details: bool = False) -> Any:
        """
        Fetch one page of a thread's posts with the thread header.

        Raises:
            ThreadNotAccessible: On 404/403
            ApiError: On any other non-2xx status or transport failure
            MalformedPayload: If the body is not JSON
        """
        params = {"thread_id": thread_id, "page": page, "thread_details": 1}
        if forum_details:
            params["forum_details"] = 1
        resp = self._get("post/list", params)
        if resp.status_code in NOT_ACCESSIBLE:
            raise ThreadNotAccessible(
                f"Thread {thread_id} not accessible ({resp.status_code})", status=resp.status_code, url=resp.url
            )
        if not resp.ok:
            raise ApiError(f"Thread {thread_id} page {page} failed ({resp.status_code})", status=resp.status_code, url=resp.url)
        return self._json(resp)
