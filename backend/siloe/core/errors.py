"""Error taxonomy shared by every pipeline.

Each error knows the HTTP status it maps to and a short ``kind`` tag, so the
API layer can render it without knowing where it came from.
"""
from typing import Optional


class SiloeError(Exception):
    status_code: int = 500
    kind: str = "internal"

    def __init__(self, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None and str(self.cause):
            return f"{self.message}: {self.cause}"
        return self.message


class InputError(SiloeError):
    """A request is missing something it needs or carries something unusable."""

    status_code = 400
    kind = "input_error"


class ProviderError(SiloeError):
    """Transport or service failure in a remote collaborator."""

    status_code = 502
    kind = "provider_error"


class StorageError(ProviderError):
    kind = "storage_error"


class SearchError(ProviderError):
    kind = "search_error"


class EntitlementCheckError(ProviderError):
    """The purchase provider could not report subscription state."""

    kind = "entitlement_check_error"


class ProviderTimeout(ProviderError):
    status_code = 504
    kind = "timeout"


class GenerationFailure(SiloeError):
    status_code = 502
    kind = "generation_failure"


class MalformedOutput(GenerationFailure):
    """The model answered, but not in the shape we asked for."""

    kind = "malformed_output"


class ModelProviderError(GenerationFailure, ProviderError):
    """The model could not be reached or refused the request."""

    status_code = 502
    kind = "model_provider_error"


class ModelTimeout(ModelProviderError, ProviderTimeout):
    status_code = 504
    kind = "timeout"
