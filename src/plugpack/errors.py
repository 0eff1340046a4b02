"""Typed pipeline error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across pipeline stages."""

    VALIDATION = "E_VALIDATION"
    LOCK_MISMATCH = "E_LOCK_MISMATCH"
    DEPENDENCY_BUILD = "E_DEPENDENCY_BUILD"
    PACKAGE_BUILD = "E_PACKAGE_BUILD"
    MISSING_ARTIFACT = "E_MISSING_ARTIFACT"
    ENVIRONMENT_MISSING = "E_ENVIRONMENT_MISSING"
    REPRODUCIBILITY = "E_REPRODUCIBILITY"


class PlugpackError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: dict[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    @property
    def stage(self) -> str | None:
        return self.context.get("stage")

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(PlugpackError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class LockMismatchError(PlugpackError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.LOCK_MISMATCH, hint=hint, context=context)


class DependencyBuildError(PlugpackError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.DEPENDENCY_BUILD, hint=hint, context=context)


class PackageBuildError(PlugpackError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PACKAGE_BUILD, hint=hint, context=context)


class MissingArtifactError(PlugpackError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MISSING_ARTIFACT, hint=hint, context=context)


class EnvironmentMissingError(PlugpackError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.ENVIRONMENT_MISSING, hint=hint, context=context)


class ReproducibilityError(PlugpackError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.REPRODUCIBILITY, hint=hint, context=context)


__all__ = [
    "DependencyBuildError",
    "EnvironmentMissingError",
    "ErrorCode",
    "LockMismatchError",
    "MissingArtifactError",
    "PackageBuildError",
    "PlugpackError",
    "ReproducibilityError",
    "ValidationError",
]
