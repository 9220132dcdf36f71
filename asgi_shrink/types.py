from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    List,
    Mapping,
    MutableMapping,
    Optional,
)

from multidict import CIMultiDict

Scope = MutableMapping[str, Any]
Message = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]

Listener = Callable[..., Any]


class Headers(CIMultiDict[str]):
    def __init__(
        self,
        headers: Optional[Mapping[str, str]] = None,
        raw: Optional[list[tuple[bytes, bytes]]] = None,
        scope: Optional[Scope] = None,
    ) -> None:
        headers_list: List[tuple[str, str]] = []
        if headers is not None:
            assert raw is None, 'Cannot set both "headers" and "raw".'
            assert scope is None, 'Cannot set both "headers" and "scope".'
            headers_list = list(headers.items())
        elif raw is not None:
            assert scope is None, 'Cannot set both "raw" and "scope".'
            headers_list = [
                (key.decode("latin-1"), value.decode("latin-1"))
                for key, value in raw
            ]
        elif scope is not None:
            # scope["headers"] isn't necessarily a list
            # it might be a tuple or other iterable
            scope_headers = scope["headers"] = list(scope.get("headers", []))
            headers_list = [
                (key.decode("latin-1"), value.decode("latin-1"))
                for key, value in scope_headers
            ]

        super().__init__(headers_list)

    def add_vary_header(self, vary: str) -> None:
        # Vary may be spread over several header lines, they are merged
        # into a single one.
        existing = self.get_joined("vary")
        if existing is not None:
            values = [x.strip().lower() for x in existing.split(",")]
            if "*" in values or vary.lower() in values:
                return
            kept = ", ".join(x.strip() for x in existing.split(",") if x.strip())
            vary = f"{kept}, {vary}" if kept else vary

        self["vary"] = vary

    def get_joined(self, key: str) -> Optional[str]:
        """Combine repeated header lines into a single comma separated value."""
        values = self.getall(key, [])
        if not values:
            return None
        return ", ".join(values)

    def encode(self) -> list[tuple[bytes, bytes]]:
        return [
            (key.lower().encode("latin-1"), value.encode("latin-1"))
            for key, value in self.items()
        ]


@dataclass(frozen=True)
class RequestInfo:
    """What the compression decision needs to know about a request."""

    method: str
    url: str
    headers: Headers = field(default_factory=Headers)

    @classmethod
    def from_scope(cls, scope: Scope) -> "RequestInfo":
        path = scope.get("raw_path") or scope.get("path", "").encode("utf-8")
        if isinstance(path, bytes):
            path = path.decode("latin-1")
        query_string = scope.get("query_string", b"")
        url = f"{path}?{query_string.decode('latin-1')}" if query_string else path
        return cls(
            method=scope.get("method", "GET").upper(),
            url=url,
            headers=Headers(scope=scope),
        )

    @property
    def accept_encoding(self) -> Optional[str]:
        return self.headers.get_joined("accept-encoding")


@dataclass
class ResponseInfo:
    """Status and (still mutable) headers of the response being produced."""

    status_code: int = 200
    headers: Headers = field(default_factory=Headers)
