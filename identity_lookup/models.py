"""Wire and result models for the identity server lookup API."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field


class HashDetailsResponse(BaseModel):
    """Response of GET /hash_details."""

    lookup_pepper: str = Field(..., min_length=1, description="Pepper mixed into lookup hashes")
    algorithms: list[str] = Field(..., min_length=1, description="Supported lookup algorithms")


@dataclass(frozen=True)
class HashDetails:
    """Validated hashing capability of an identity server at one point in time."""

    pepper: str
    algorithms: frozenset[str]

    @classmethod
    def from_response(cls, response: HashDetailsResponse) -> HashDetails:
        return cls(pepper=response.lookup_pepper, algorithms=frozenset(response.algorithms))


class LookupRequest(BaseModel):
    """Request body of POST /lookup."""

    addresses: list[str] = Field(..., description="Hashed (or plain) address values")
    algorithm: str = Field(..., description='"sha256" or "none"')
    pepper: str = Field(..., description="Pepper from /hash_details")


class LookupResponse(BaseModel):
    """Response body of POST /lookup."""

    mappings: dict[str, str] | None = Field(
        default=None, description="Sent address value -> mxid, for found users only"
    )


class LookupResult(BaseModel):
    """A resolved address, in the caller's original casing."""

    address: str
    mxid: str


class ThreePidMapping(BaseModel):
    """Single lookup result in the older three-field shape."""

    address: str
    medium: str
    mxid: str
