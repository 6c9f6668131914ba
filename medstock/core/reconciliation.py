"""
Reconciliation of an arithmetic expected count against an observed count.

The observed count comes from a `CountSource`. Obtaining it is the one
suspension point in the system: the source may wait on a camera capture,
an estimator round-trip or an operator typing a number. A source answers
with exactly one of three outcomes:

    Observed(count)  -> classified as verified or mismatched
    Cancelled        -> CountCancelled, nothing committed
    Failed(reason)   -> EstimatorFailure, nothing committed

Estimator confidence is advisory and never changes the verified flag.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import CountCancelled, EstimatorFailure
from ..data.models import CountSourceKind, PillCountResult
from ..logging import get_logger

logger = get_logger(__name__)


# ---- Count outcomes ----

@dataclass(frozen=True)
class CountRequest:
    medication_id: str
    medication_name: str
    expected: int


@dataclass(frozen=True)
class Observed:
    count: int
    source: CountSourceKind = "manual"
    estimate: Optional[PillCountResult] = None

    @property
    def confidence(self) -> Optional[float]:
        return self.estimate.confidence if self.estimate else None


@dataclass(frozen=True)
class Cancelled:
    reason: str = "count cancelled by operator"


@dataclass(frozen=True)
class Failed:
    reason: str
    error: Optional[BaseException] = None


CountOutcome = Union[Observed, Cancelled, Failed]


# ---- Collaborator protocols ----

class CountSource(Protocol):
    def observe(self, request: CountRequest) -> CountOutcome:
        ...


class CaptureDevice(Protocol):
    def capture(self) -> Optional[bytes]:
        """Produce zero or one still image."""
        ...


class PillCountEstimator(Protocol):
    def estimate(self, image: bytes, expected_label: str) -> PillCountResult:
        ...


def parse_estimate(payload: Union[str, bytes, dict]) -> PillCountResult:
    """Validate an estimator's JSON answer into a PillCountResult."""
    try:
        if isinstance(payload, (str, bytes)):
            payload = json.loads(payload)
        return PillCountResult.model_validate(payload)
    except (ValueError, TypeError, PydanticValidationError) as e:
        # json.JSONDecodeError is a ValueError
        raise EstimatorFailure("estimator returned an unreadable answer", cause=e) from e


# ---- Count sources ----

class FixedCount:
    """A count already known to the caller (e.g. typed into a form)."""

    def __init__(self, count: int) -> None:
        self.count = count

    def observe(self, request: CountRequest) -> CountOutcome:
        if self.count < 0:
            return Failed("count must not be negative")
        return Observed(count=self.count, source="manual")


class ManualCountSource:
    """Asks the operator for a count; answering None cancels."""

    def __init__(self, prompt: Callable[[CountRequest], Optional[int]]) -> None:
        self._prompt = prompt

    def observe(self, request: CountRequest) -> CountOutcome:
        answer = self._prompt(request)
        if answer is None:
            return Cancelled()
        if answer < 0:
            return Failed("count must not be negative")
        return Observed(count=int(answer), source="manual")


class OpticalCountSource:
    """Capture an image and have the estimator count it.

    On estimator error the manual fallback is consulted; without one the
    outcome is Failed. A capture that yields no image is a cancellation.
    """

    def __init__(
        self,
        capture: CaptureDevice,
        estimator: PillCountEstimator,
        fallback: Optional[CountSource] = None,
    ) -> None:
        self.capture = capture
        self.estimator = estimator
        self.fallback = fallback

    def observe(self, request: CountRequest) -> CountOutcome:
        image = self.capture.capture()
        if image is None:
            return Cancelled("capture cancelled")

        try:
            estimate = self.estimator.estimate(image, request.medication_name)
        except Exception as e:
            logger.warning(f"Estimator failed for {request.medication_id}: {e}")
            if self.fallback is None:
                return Failed(str(e) or type(e).__name__, error=e)
            logger.info(f"Falling back to manual count for {request.medication_id}")
            return self.fallback.observe(request)

        if estimate.warning:
            logger.warning(f"Estimator warning for {request.medication_id}: {estimate.warning}")
        return Observed(count=estimate.count, source="optical", estimate=estimate)


# ---- Engine ----

class ReconciliationResult(BaseModel):
    """Outcome of comparing an expected count with an observed one."""
    model_config = ConfigDict(frozen=True)

    expected: int = Field(description="Arithmetic count")
    observed: int = Field(description="Independently observed count")
    verified: bool = Field(description="observed == expected")
    source: CountSourceKind = Field(description="Where the observed count came from")
    confidence: Optional[float] = Field(default=None, description="Advisory estimator confidence")
    identified_medication: Optional[str] = Field(default=None, description="Estimator's identification")
    warning: Optional[str] = Field(default=None, description="Estimator's mismatch warning")

    @property
    def discrepancy(self) -> int:
        return self.observed - self.expected

    @property
    def mismatched(self) -> bool:
        return not self.verified


class ReconciliationEngine:
    """Obtains an observed count and classifies it against the expected count."""

    def observe(self, request: CountRequest, source: CountSource) -> Observed:
        outcome = source.observe(request)
        if isinstance(outcome, Cancelled):
            logger.info(f"Count for {request.medication_id} cancelled: {outcome.reason}")
            raise CountCancelled(outcome.reason)
        if isinstance(outcome, Failed):
            raise EstimatorFailure(outcome.reason, cause=outcome.error)
        return outcome

    @staticmethod
    def reconcile(expected: int, observation: Observed) -> ReconciliationResult:
        estimate = observation.estimate
        return ReconciliationResult(
            expected=expected,
            observed=observation.count,
            verified=abs(observation.count - expected) == 0,
            source=observation.source,
            confidence=observation.confidence,
            identified_medication=estimate.identified_medication if estimate else None,
            warning=estimate.warning if estimate else None,
        )

    def run(self, request: CountRequest, source: CountSource) -> ReconciliationResult:
        result = self.reconcile(request.expected, self.observe(request, source))
        if result.mismatched:
            logger.warning(
                f"Count mismatch for {request.medication_id}: expected {result.expected}, "
                f"observed {result.observed} ({result.discrepancy:+d})"
            )
        return result


def as_count_source(value: Any) -> CountSource:
    """Accept a plain int as shorthand for FixedCount."""
    if isinstance(value, bool):
        raise TypeError("count source must be an int or a CountSource")
    if isinstance(value, int):
        return FixedCount(value)
    return value
