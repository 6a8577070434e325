"""
Exception types for the extraction service.

Only UnsupportedFileTypeError and DocumentReadError are pipeline-fatal.
Provider errors are recovered inside the strategy chain and the categorizer.
"""


class ExtractionError(Exception):
    """Base class for errors surfaced to callers of the pipeline."""


class UnsupportedFileTypeError(ExtractionError, ValueError):
    def __init__(self, media_type: str, allowed):
        self.media_type = media_type
        self.allowed = sorted(allowed)
        super().__init__(
            f"Unsupported file type: {media_type}. Allowed types: {', '.join(self.allowed)}"
        )


class DocumentReadError(ExtractionError):
    """Document could not be tokenized at all."""


class ProviderError(Exception):
    """A single provider call failed (network, status, empty or unparsable payload)."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider}: {reason}")


class ProviderChainExhausted(ProviderError):
    def __init__(self, failures):
        self.failures = list(failures)
        reason = "; ".join(str(f) for f in self.failures) or "no providers configured"
        super().__init__("chain", reason)
