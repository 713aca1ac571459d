"""Exceptions for model service operations."""


class ModelServiceError(Exception):
    """Base exception for all model service operations."""


class ModelConfigError(ModelServiceError):
    """Raised when no usable provider, model or API key is configured."""


class ModelResponseError(ModelServiceError):
    """Raised when the model service returns a response that cannot be used."""


class ArgumentRepairError(ModelServiceError):
    """Raised when tool arguments cannot be recovered from the model output."""
