"""Request-scoped cookie transport."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from starlette.responses import Response


class CookieJar(Protocol):
    """Minimal cookie transport the session store is written against."""

    def get(self, name: str) -> str | None: ...

    def set(self, name: str, value: str, *, max_age: int, path: str = "/") -> None: ...

    def delete(self, name: str, *, path: str = "/") -> None: ...


@dataclass(frozen=True)
class PendingCookie:
    name: str
    value: str | None  # None means delete
    max_age: int
    path: str


class RequestCookieJar:
    """Cookie jar bound to one inbound request.

    Reads come from the request's ``Cookie`` header; writes are buffered and
    become visible to later reads in the same request, then flushed onto the
    outgoing response by :meth:`apply`.
    """

    def __init__(self, cookies: Mapping[str, str], *, secure: bool = False) -> None:
        self._view: dict[str, str | None] = dict(cookies)
        self._secure = secure
        self._pending: dict[tuple[str, str], PendingCookie] = {}

    @property
    def pending(self) -> tuple[PendingCookie, ...]:
        return tuple(self._pending.values())

    def get(self, name: str) -> str | None:
        value = self._view.get(name)
        return value or None

    def set(self, name: str, value: str, *, max_age: int, path: str = "/") -> None:
        self._record(PendingCookie(name=name, value=value, max_age=max(0, int(max_age)), path=path))
        self._view[name] = value

    def delete(self, name: str, *, path: str = "/") -> None:
        self._record(PendingCookie(name=name, value=None, max_age=0, path=path))
        self._view[name] = None

    def _record(self, cookie: PendingCookie) -> None:
        key = (cookie.name, cookie.path)
        self._pending.pop(key, None)
        self._pending[key] = cookie

    def apply(self, response: Response) -> Response:
        """Emit buffered cookie changes as ``Set-Cookie`` headers."""
        for cookie in self._pending.values():
            if cookie.value is None:
                response.delete_cookie(
                    cookie.name,
                    path=cookie.path,
                    secure=self._secure,
                    httponly=True,
                    samesite="strict",
                )
            else:
                response.set_cookie(
                    cookie.name,
                    cookie.value,
                    max_age=cookie.max_age,
                    path=cookie.path,
                    secure=self._secure,
                    httponly=True,
                    samesite="strict",
                )
        return response
