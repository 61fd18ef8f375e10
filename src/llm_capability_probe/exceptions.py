"""Custom exceptions for the LLM capability probe."""


class CapabilityProbeException(Exception):
    """Base exception for the LLM capability probe.

    All custom exceptions in this package should inherit from this base class.
    Expected probe failures (timeouts, HTTP errors, unsupported features) are
    never raised; they are reported as data on probe results.
    """

    pass


class ProviderException(CapabilityProbeException):
    """Raised when a provider cannot be addressed at all.

    This exception is raised when:
    - The provider name is unknown and no custom endpoint was supplied
    - A self-hosted provider is probed without an endpoint

    Attributes:
        provider: The provider that caused the error
        model: The model that was being probed
        original_error: The original exception, if any
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        model: str | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.original_error = original_error


class ConfigurationException(CapabilityProbeException):
    """Raised when configuration errors occur.

    This exception is raised when:
    - An environment variable holds a value that cannot be parsed
    - Invalid configuration values are provided

    Attributes:
        config_key: The configuration key that caused the error
        config_value: The invalid configuration value
    """

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        config_value: str | None = None,
    ):
        super().__init__(message)
        self.config_key = config_key
        self.config_value = config_value


class ProbeCancelledException(CapabilityProbeException):
    """Raised when a probe run is cancelled before all sub-probes resolved.

    A cancelled run is discarded; nothing is committed to the cache.

    Attributes:
        provider: Provider of the cancelled run
        model: Model of the cancelled run
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        model: str | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model


class CacheFormatException(CapabilityProbeException):
    """Raised when a cache document cannot be loaded.

    Attributes:
        path: File the document came from, if any
        found_version: Version string found in the document
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        found_version: str | None = None,
    ):
        super().__init__(message)
        self.path = path
        self.found_version = found_version
