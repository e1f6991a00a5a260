"""Identity lookup - hashed 3PID lookups against Matrix identity servers."""

from .client import IdentityServerClient
from .config import IdentityServerConfig, load_config
from .errors import (
    CapabilityError,
    IdentityLookupError,
    IdentityServerConnectionError,
    IdentityServerHTTPError,
    ProtocolConsistencyError,
    ProtocolError,
    TransportError,
    UnsupportedAlgorithmError,
)
from .hashing import BlindedLookup, LookupAlgorithm, blind, blind_address, select_algorithm
from .models import HashDetails, LookupResult, ThreePidMapping
from .transport import PREFIX_IDENTITY_V2, IdentityServerTransport

__all__ = [
    # Client classes
    "IdentityServerClient",
    "IdentityServerTransport",
    "IdentityServerConfig",
    "load_config",
    "PREFIX_IDENTITY_V2",
    # Exceptions
    "IdentityLookupError",
    "ProtocolError",
    "CapabilityError",
    "UnsupportedAlgorithmError",
    "ProtocolConsistencyError",
    "TransportError",
    "IdentityServerConnectionError",
    "IdentityServerHTTPError",
    # Hashing
    "LookupAlgorithm",
    "BlindedLookup",
    "blind",
    "blind_address",
    "select_algorithm",
    # Models
    "HashDetails",
    "LookupResult",
    "ThreePidMapping",
]
__version__ = "0.1.0"
