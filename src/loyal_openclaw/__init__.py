"""loyal-openclaw public surface."""

from loyal_openclaw.client import FetchResult, LoyalClient, format_error
from loyal_openclaw.errors import (
    ConfigError,
    ConfigParseError,
    EnvironmentCapabilityError,
    ExternalToolError,
    IdentityError,
    LoyalSetupError,
    RemoteRequestError,
    SetupAborted,
)
from loyal_openclaw.schemas import (
    DepositInfo,
    ModelDescriptor,
    RegistrationResult,
    build_provider_models,
    format_balance,
    normalize_model_list,
)
from loyal_openclaw.signing import (
    SignedRequest,
    build_bearer_header,
    build_endpoint,
    build_message_to_sign,
    build_signed_request,
    join_url,
    parse_signature_header,
    sign_request,
    verify_request_signature,
)

__all__ = [
    "LoyalSetupError",
    "EnvironmentCapabilityError",
    "IdentityError",
    "ConfigError",
    "RemoteRequestError",
    "ExternalToolError",
    "ConfigParseError",
    "SetupAborted",
    "FetchResult",
    "LoyalClient",
    "format_error",
    "DepositInfo",
    "ModelDescriptor",
    "RegistrationResult",
    "build_provider_models",
    "format_balance",
    "normalize_model_list",
    "SignedRequest",
    "build_bearer_header",
    "build_endpoint",
    "build_message_to_sign",
    "build_signed_request",
    "join_url",
    "parse_signature_header",
    "sign_request",
    "verify_request_signature",
]
