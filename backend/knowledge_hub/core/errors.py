"""Error taxonomy shared by the ingest, retrieval, and research layers."""

from __future__ import annotations


class KnowledgeHubError(Exception):
    """Base class for all errors raised by Knowledge Hub."""


class IngestError(KnowledgeHubError):
    """A file could not be turned into a document."""


class UnsupportedFormat(IngestError):
    def __init__(self, extension: str, supported: tuple[str, ...] | list[str]) -> None:
        self.extension = extension
        self.supported = tuple(supported)
        label = extension or "<none>"
        super().__init__(f"Unsupported file type: {label}. Supported: {', '.join(self.supported)}")


class CorruptFile(IngestError):
    def __init__(self, filename: str, reason: str) -> None:
        self.filename = filename
        self.reason = reason
        super().__init__(f"Failed to parse {filename}: {reason}")


class FileTooLarge(IngestError):
    def __init__(self, filename: str, size: int, limit: int) -> None:
        self.filename = filename
        self.size = size
        self.limit = limit
        super().__init__(f"File too large: {filename} is {size} bytes, maximum is {limit}")


class ProviderError(KnowledgeHubError):
    """An upstream model provider call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ProviderUnavailable(ProviderError):
    pass


class RateLimited(ProviderError):
    def __init__(self, message: str, status_code: int | None = 429, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message, status_code=status_code)


class InvalidInput(ProviderError):
    pass


class ProviderNotConfigured(KnowledgeHubError):
    """Raised when a provider is used without an API key."""


class ResearchError(KnowledgeHubError):
    pass


class InvalidTransition(ResearchError):
    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move research query from {current} to {target}")


class ResearchCancelled(ResearchError):
    pass


__all__ = [
    "KnowledgeHubError",
    "IngestError",
    "UnsupportedFormat",
    "CorruptFile",
    "FileTooLarge",
    "ProviderError",
    "ProviderUnavailable",
    "RateLimited",
    "InvalidInput",
    "ProviderNotConfigured",
    "ResearchError",
    "InvalidTransition",
    "ResearchCancelled",
]
