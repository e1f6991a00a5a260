"""Address blinding for hashed identity server lookups.

Lookups never send plaintext addresses when the server supports hashing.
Each (address, medium) pair is normalized and transformed into the value
that crosses the wire:

    sha256: urlsafe_b64(sha256("<address> <medium> <pepper>")), unpadded
    none:   "<address> <medium>"

Address and medium are lowercased first so that differently-cased queries
for the same identifier produce the same value. The original (case-sensitive)
address is kept in a reverse index so results can be reported back in the
caller's casing.

Everything here is pure: no I/O, no shared state.
"""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from .errors import UnsupportedAlgorithmError
from .models import HashDetails

# (address, medium), e.g. ("alice@example.org", "email")
AddressQuery = tuple[str, str]


class LookupAlgorithm(str, Enum):
    """Lookup algorithms understood by the client, in order of preference."""

    SHA256 = "sha256"
    NONE = "none"


def select_algorithm(algorithms: Iterable[str]) -> LookupAlgorithm:
    """Pick the strongest advertised algorithm.

    Raises:
        UnsupportedAlgorithmError: If neither sha256 nor none is advertised
    """
    advertised = set(algorithms)
    for algorithm in LookupAlgorithm:
        if algorithm.value in advertised:
            return algorithm
    raise UnsupportedAlgorithmError("unsupported identity server: unknown hash algorithm")


def _sha256_b64url(value: str) -> str:
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def blind_address(address: str, medium: str, pepper: str, algorithm: LookupAlgorithm) -> str:
    """Return the value sent to the identity server for one address."""
    plain = f"{address.lower()} {medium.lower()}"
    if algorithm is LookupAlgorithm.SHA256:
        return _sha256_b64url(f"{plain} {pepper}")
    return plain


@dataclass(frozen=True)
class BlindedLookup:
    """Values to send for one lookup, plus the way back to the plaintext."""

    addresses: list[str]
    algorithm: LookupAlgorithm
    pepper: str
    # sent value -> original address
    reverse_index: dict[str, str] = field(default_factory=dict)

    def original_address(self, value: str) -> str | None:
        return self.reverse_index.get(value)


def blind(queries: Sequence[AddressQuery], hash_details: HashDetails) -> BlindedLookup:
    """Blind every query with the algorithm the server prefers.

    The algorithm is chosen once for the whole batch. When two queries
    normalize to the same value, the later one owns the reverse index entry.
    """
    algorithm = select_algorithm(hash_details.algorithms)

    addresses: list[str] = []
    reverse_index: dict[str, str] = {}
    for address, medium in queries:
        value = blind_address(address, medium, hash_details.pepper, algorithm)
        reverse_index[value] = address
        addresses.append(value)

    return BlindedLookup(
        addresses=addresses,
        algorithm=algorithm,
        pepper=hash_details.pepper,
        reverse_index=reverse_index,
    )
