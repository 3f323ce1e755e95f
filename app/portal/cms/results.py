from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

OK = "ok"
EMPTY = "empty"
ERROR = "error"


@dataclass(frozen=True)
class CmsResult:
    """
    Outcome of one CMS call.

    kind is one of "ok", "empty" (degraded: no data) or "error" (a readable
    failure surfaced for user-initiated mutations).
    """

    kind: str
    data: Any = None
    meta: dict[str, Any] = field(default_factory=dict)
    message: str | None = None
    status_code: int | None = None
    warning: str | None = None

    @classmethod
    def success(
        cls, body: Any, *, status_code: int | None = None, warning: str | None = None
    ) -> "CmsResult":
        if isinstance(body, dict) and "data" in body:
            meta = body.get("meta")
            return cls(
                kind=OK,
                data=body.get("data"),
                meta=meta if isinstance(meta, dict) else {},
                status_code=status_code,
                warning=warning,
            )
        return cls(kind=OK, data=body, status_code=status_code, warning=warning)

    @classmethod
    def degraded(cls, *, status_code: int | None = None) -> "CmsResult":
        return cls(kind=EMPTY, status_code=status_code)

    @classmethod
    def failure(cls, message: str, *, status_code: int | None = None) -> "CmsResult":
        return cls(kind=ERROR, message=message, status_code=status_code)

    @property
    def ok(self) -> bool:
        return self.kind == OK

    @property
    def is_empty(self) -> bool:
        return self.kind == EMPTY

    @property
    def is_error(self) -> bool:
        return self.kind == ERROR

    def envelope(self) -> dict[str, Any]:
        """The {data, meta} shape collection endpoints return."""
        if not self.ok:
            return {"data": None, "meta": {}}
        return {"data": self.data, "meta": dict(self.meta)}

    def items(self) -> list[Any]:
        if not self.ok or self.data is None:
            return []
        if isinstance(self.data, list):
            return self.data
        return [self.data]

    def first(self) -> Any:
        items = self.items()
        return items[0] if items else None
