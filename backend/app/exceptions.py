from fastapi import HTTPException
from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class NotFoundError(DomainException):
    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(
            status_code=404,
            title=f"{kind.capitalize()} not found",
            detail=f"{kind} '{identifier}' not found",
            code=f"{kind.replace(' ', '_')}_not_found",
        )
        self.kind = kind
        self.identifier = identifier


class InvalidMatchResult(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=400,
            title="Invalid match result",
            detail=detail,
            code="invalid_match_result",
        )


class ConcurrencyConflict(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=409,
            title="Concurrency conflict",
            detail=detail,
            code="concurrency_conflict",
        )


class PartitionRunFailure(DomainException):
    """A single (sport, category) ranking recompute failed."""

    def __init__(self, sport_type: str, category: str, reason: str) -> None:
        super().__init__(
            status_code=500,
            title="Ranking run failed",
            detail=f"ranking run for {sport_type}/{category} failed: {reason}",
            code="ranking_run_failed",
        )
        self.sport_type = sport_type
        self.category = category
        self.reason = reason


class TransientStoreError(DomainException):
    def __init__(self, detail: str = "store temporarily unavailable") -> None:
        super().__init__(
            status_code=503,
            title="Store unavailable",
            detail=detail,
            code="store_unavailable",
        )


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
