"""Browser header set rotation."""

from __future__ import annotations

from threading import Lock
from typing import Iterable, List

from ..config.models import DEFAULT_USER_AGENTS

BASE_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8",
    "Accept-Encoding": "gzip, deflate, br",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "max-age=0",
}


class HeaderPool:
    """Hand out realistic browser header sets in round-robin order."""

    def __init__(
        self,
        user_agents: Iterable[str] | None = None,
        rotate: bool = True,
        accept_language: str = "en-US,en;q=0.9",
    ) -> None:
        self._lock = Lock()
        self._uas: List[str] = []
        self._index = 0
        self.rotate = rotate
        self.accept_language = accept_language
        self.refresh(user_agents or DEFAULT_USER_AGENTS)

    def next_user_agent(self) -> str:
        with self._lock:
            if not self.rotate:
                return self._uas[0]
            ua = self._uas[self._index % len(self._uas)]
            self._index += 1
            return ua

    def next_headers(self) -> dict[str, str]:
        headers = dict(BASE_HEADERS)
        headers["User-Agent"] = self.next_user_agent()
        headers["Accept-Language"] = self.accept_language
        return headers

    def refresh(self, user_agents: Iterable[str]) -> None:
        cleaned = [ua.strip() for ua in user_agents if ua and ua.strip()]
        if not cleaned:
            raise ValueError("HeaderPool needs at least one user agent")
        with self._lock:
            self._uas = cleaned
            self._index = 0

    @property
    def size(self) -> int:
        return len(self._uas)


__all__ = ["BASE_HEADERS", "HeaderPool"]
