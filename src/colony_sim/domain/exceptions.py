"""Domain exceptions for the colony simulation.

All domain-specific exceptions inherit from ``ColonySimError`` so callers can
catch the full family with a single ``except`` clause when needed.

Simulation faults and job abandonment are *not* exceptions: they are
first-class outcomes reported through domain events.
"""

from __future__ import annotations

from typing import Any


class ColonySimError(Exception):
    """Base exception for all colony simulation errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class ConfigurationError(ColonySimError):
    """Raised when a persisted config or pipeline definition is malformed.

    The loaders never silently fall back to defaults, except when the config
    file does not exist yet and a default one is generated.
    """

    def __init__(
        self,
        message: str = "Invalid configuration",
        path: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path


class UnknownVocabularyError(ColonySimError):
    """Raised when a content string does not name a known vocabulary item."""

    kind = "token"

    def __init__(
        self,
        token: str,
        message: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or f"Unknown {self.kind}: {token!r}", details)
        self.token = token


class UnknownOpError(UnknownVocabularyError):
    """Raised when a pipeline definition names an op that does not exist."""

    kind = "operation"


class UnknownQoSError(UnknownVocabularyError):
    """Raised when a pipeline definition names an unknown QoS class."""

    kind = "QoS"


class DuplicateJobError(ColonySimError):
    """Raised when a job id is admitted while it is still in the queue."""

    def __init__(
        self,
        job_id: int,
        message: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or f"Job {job_id} is already queued", details)
        self.job_id = job_id


class UnknownPipelineError(ColonySimError, KeyError):
    """Raised when a pipeline id is not present in the catalog."""

    def __init__(
        self,
        pipeline_id: str,
        available: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.pipeline_id = pipeline_id
        self.available: list[str] = available or []
        super().__init__(
            f"Pipeline {pipeline_id!r} not registered. Available: {self.available}",
            details,
        )

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
