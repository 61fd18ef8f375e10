"""Provider endpoints, headers and message builders used while probing."""

from .adapters import (
    API_KEY_ENV_VARS,
    KNOWN_PROVIDERS,
    SELF_HOSTED_PROVIDERS,
    MediaContent,
    build_messages,
    build_request_body,
    get_api_key_from_env,
    get_provider_endpoint,
    get_provider_headers,
    infer_completion_shape,
    infer_message_shape,
    is_valid_provider,
    load_api_keys_from_file,
    provider_requires_api_key,
    provider_requires_endpoint,
)

__all__ = [
    "API_KEY_ENV_VARS",
    "KNOWN_PROVIDERS",
    "SELF_HOSTED_PROVIDERS",
    "MediaContent",
    "build_messages",
    "build_request_body",
    "get_api_key_from_env",
    "get_provider_endpoint",
    "get_provider_headers",
    "infer_completion_shape",
    "infer_message_shape",
    "is_valid_provider",
    "load_api_keys_from_file",
    "provider_requires_api_key",
    "provider_requires_endpoint",
]
