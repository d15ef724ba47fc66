"""Randomness request lifecycle types.

A request starts PENDING and moves to FULFILLED exactly once. There is no
transition back; a request that never gets fulfilled within the poll budget
is abandoned, which callers observe as a None result.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum


class RequestStatus(str, Enum):
    """Status of a randomness request."""

    PENDING = "pending"
    FULFILLED = "fulfilled"


@dataclass(frozen=True)
class RandomnessRequest:
    """A submitted Entropy request.

    :ivar request_id: Sequence number assigned by the contract (decimal string).
    :ivar user_commitment: keccak256 of the user random value (``0x`` hex).
    :ivar submission_block: Block the request was mined in.
    :ivar status: Current status.
    :ivar user_random: The user random value, needed for the reveal.
    """

    request_id: str
    user_commitment: str
    submission_block: int
    status: RequestStatus = RequestStatus.PENDING
    user_random: str | None = None

    @property
    def is_fulfilled(self) -> bool:
        return self.status is RequestStatus.FULFILLED

    def mark_fulfilled(self) -> RandomnessRequest:
        """Return a copy of this request with FULFILLED status."""
        if self.is_fulfilled:
            return self
        return dataclasses.replace(self, status=RequestStatus.FULFILLED)


@dataclass(frozen=True)
class RandomnessResult:
    """The random value resolved for a fulfilled request.

    :ivar value: 32-byte random value (``0x`` hex).
    :ivar request_id: Sequence number of the matching request.
    :ivar revealed: True if the value came from the on-chain reveal, False
        for the local non-cryptographic placeholder.
    """

    value: str
    request_id: str
    revealed: bool = False
