"""
Tagged result threaded between reconciliation steps.

Every step returns an Outcome. CONTINUE lets the pipeline move on; any
other kind ends the pass and is handed to the trigger layer as-is.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OutcomeKind(str, Enum):
    CONTINUE = "Continue"
    REQUEUE_AFTER = "RequeueAfter"
    REQUEUE_NOW = "RequeueNow"
    DONE = "Done"
    FATAL = "Fatal"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    delay: float = 0.0
    error: Optional[Exception] = None
    reason: str = ""

    @classmethod
    def proceed(cls) -> "Outcome":
        return cls(OutcomeKind.CONTINUE)

    @classmethod
    def requeue_after(cls, delay: float, reason: str = "") -> "Outcome":
        return cls(OutcomeKind.REQUEUE_AFTER, delay=delay, reason=reason)

    @classmethod
    def requeue_now(cls, reason: str = "") -> "Outcome":
        return cls(OutcomeKind.REQUEUE_NOW, reason=reason)

    @classmethod
    def done(cls, reason: str = "") -> "Outcome":
        return cls(OutcomeKind.DONE, reason=reason)

    @classmethod
    def fatal(cls, error: Exception) -> "Outcome":
        return cls(OutcomeKind.FATAL, error=error, reason=str(error))

    @property
    def proceeds(self) -> bool:
        return self.kind is OutcomeKind.CONTINUE

    @property
    def requeues(self) -> bool:
        return self.kind in (OutcomeKind.REQUEUE_AFTER, OutcomeKind.REQUEUE_NOW)
