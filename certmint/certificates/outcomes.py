"""Tagged results of the certificate coordinators.

Repeating a verification or a mint that already happened is an expected
outcome, not an error: the coordinators return ALREADY_IN_STATE together
with the stored values instead of raising.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Outcome(str, Enum):
    TRANSITIONED = "transitioned"
    ALREADY_IN_STATE = "already_in_state"


@dataclass(frozen=True)
class VerificationResult:
    certificate_id: str
    outcome: Outcome
    status: str
    details: Any = None

    @property
    def transitioned(self) -> bool:
        return self.outcome is Outcome.TRANSITIONED


@dataclass(frozen=True)
class MintResult:
    certificate_id: str
    outcome: Outcome
    mint_id: str
    ledger_address: str | None

    @property
    def transitioned(self) -> bool:
        return self.outcome is Outcome.TRANSITIONED
