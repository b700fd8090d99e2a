from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Outcome of a routing/connection step; failures carry a short error code."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown") -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)

    @staticmethod
    def from_exception(exc: BaseException, code: str) -> "Result[T]":
        return Result.failure(f"{type(exc).__name__}: {exc}", code)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default

    def as_context(self) -> dict[str, Any]:
        if self.ok:
            return {"ok": True, "value": getattr(self.value, "value", self.value)}
        return {"ok": False, "error": self.error, "error_code": self.error_code}
