"""Candidate assembly: context, external ranking, validation.

Usage example:
    >>> from dispatch_ranker.application.assembler import CandidateAssembler
    >>> assembler = CandidateAssembler(
    ...     config=RankingConfig.from_env(),
    ...     reasoning_service=reasoning,
    ...     distance_provider=mapbox,
    ... )
    >>> result = assembler.suggest_from_store(request, store)
    >>> result.raise_for_failure()
    >>> for suggestion in result.suggestions:
    ...     print(suggestion.date, suggestion.time_slot.start)

Each request moves through Building -> AwaitingExternalRanking -> Validated, or ends in
Failed with a typed reason. Failures carry no partial suggestions.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date

from ..config import RankingConfig
from ..domain.schedule_context import lookahead_window
from ..domain.skills import SkillConstraintModel
from ..domain.suggestion_rules import (
    RejectedSuggestion,
    TechnicianResolver,
    validate_suggestions,
)
from ..exceptions import (
    AuthenticationError,
    CircuitBreakerOpen,
    DependencyMissingError,
    QuotaExhaustedError,
    RankingFailedError,
    RateLimitError,
    UpstreamServiceError,
)
from ..observability import get_logger
from ..protocols import DrivingDistanceProvider, ReasoningService, ScheduleStore
from ..types import (
    CandidateSuggestion,
    DurationSource,
    ExistingJob,
    FailureReason,
    NewJobRequest,
    Parsed,
    RankingState,
    ServiceZone,
    SkillRecord,
    Technician,
)
from .context import SchedulingContext, TechnicianCandidate, build_scheduling_context
from .technician_ranking import TechnicianDistanceRanker

logger = get_logger("dispatch_ranker.assembler")

UNPARSEABLE_WARNING = "Could not parse structured suggestions"
NO_VALID_SUGGESTIONS_WARNING = "No suggestions passed scheduling validation"

_RETRYABLE: dict[FailureReason, bool] = {
    "rate_limited": True,
    "quota_exhausted": False,
    "unparseable_response": True,
    "upstream_error": True,
}


@dataclass(frozen=True)
class RankingResult:
    """Outcome of one ranking request."""

    state: RankingState
    state_history: tuple[RankingState, ...]
    suggestions: tuple[CandidateSuggestion, ...] = ()
    analysis: str = ""
    warnings: tuple[str, ...] = ()
    technicians: tuple[TechnicianCandidate, ...] = ()
    estimated_duration_minutes: int | None = None
    duration_source: DurationSource | None = None
    failure_reason: FailureReason | None = None
    rejected: tuple[RejectedSuggestion, ...] = field(default_factory=tuple)
    # Serialized scheduling context the reasoning service was given.
    context: dict[str, object] | None = None

    @property
    def ok(self) -> bool:
        return self.state == "validated"

    def raise_for_failure(self) -> None:
        """Raise `RankingFailedError` for failures the caller must surface.

        An unparseable response is reported as an empty result with a warning, not
        raised.
        """
        if self.state != "failed" or self.failure_reason is None:
            return
        if self.failure_reason == "unparseable_response":
            return
        raise RankingFailedError(
            self.failure_reason, retryable=_RETRYABLE[self.failure_reason]
        )


class CandidateAssembler:
    def __init__(
        self,
        *,
        config: RankingConfig,
        reasoning_service: ReasoningService | None,
        distance_provider: DrivingDistanceProvider | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.config = config
        self.reasoning_service = reasoning_service
        self.ranker = TechnicianDistanceRanker(
            distance_provider,
            lookup_bound=config.lookup_bound,
            lookup_timeout_seconds=config.distance_lookup_timeout_seconds,
        )
        self.today = today

    def suggest_from_store(self, request: NewJobRequest, store: ScheduleStore) -> RankingResult:
        """Read a fresh snapshot of the store for this request and rank candidates."""
        start, end = lookahead_window(self.today(), self.config.lookahead_days)
        return self.suggest(
            request,
            zones=store.service_zones(),
            technicians=store.technicians(),
            skill_records=store.skill_records(),
            existing_jobs=store.existing_jobs(start, end),
            completed_jobs=store.completed_jobs(),
        )

    def suggest(
        self,
        request: NewJobRequest,
        *,
        zones: Sequence[ServiceZone],
        technicians: Sequence[Technician],
        skill_records: Sequence[SkillRecord],
        existing_jobs: Sequence[ExistingJob],
        completed_jobs: Sequence[ExistingJob] = (),
    ) -> RankingResult:
        if self.reasoning_service is None:
            raise DependencyMissingError(
                "ReasoningService", reason="Configure REASONING_API_KEY to rank candidates."
            )

        history: list[RankingState] = ["building"]
        skills = SkillConstraintModel(skill_records)
        context = build_scheduling_context(
            request,
            today=self.today(),
            zones=zones,
            technicians=technicians,
            skills=skills,
            existing_jobs=existing_jobs,
            completed_jobs=completed_jobs,
            ranker=self.ranker,
            config=self.config,
        )

        history.append("awaiting_external_ranking")
        try:
            outcome = self.reasoning_service.rank(context)
        except RateLimitError as exc:
            return self._failed(history, context, "rate_limited", str(exc))
        except QuotaExhaustedError as exc:
            return self._failed(history, context, "quota_exhausted", str(exc))
        except (UpstreamServiceError, AuthenticationError, CircuitBreakerOpen) as exc:
            return self._failed(history, context, "upstream_error", str(exc))

        if not isinstance(outcome, Parsed):
            logger.warning(
                "Reasoning response could not be parsed (%s chars)", len(outcome.raw_text)
            )
            return self._failed(
                history,
                context,
                "unparseable_response",
                "unparseable response",
                analysis=outcome.raw_text,
                warnings=(UNPARSEABLE_WARNING,),
            )

        report = validate_suggestions(
            outcome.suggestions,
            standard_start_times=context.standard_start_times,
            exact_duration_minutes=context.duration.minutes,
            max_suggestions=self.config.max_suggestions,
            requested_service_types=request.requested_service_names,
            skills=skills,
            resolver=TechnicianResolver(technicians),
            existing_jobs=existing_jobs,
            nearby_count_on=context.schedule.nearby_count_on,
        )
        if report.rejected:
            logger.info(
                "Dropped %s of %s suggestions: %s",
                len(report.rejected),
                len(outcome.suggestions),
                ", ".join(sorted({r.reason for r in report.rejected})),
            )
        if report.corrected_durations:
            logger.info("Rewrote %s slot end times to exact duration", report.corrected_durations)

        warnings = list(outcome.warnings)
        if not report.accepted:
            warnings.append(NO_VALID_SUGGESTIONS_WARNING)

        history.append("validated")
        return RankingResult(
            state="validated",
            state_history=tuple(history),
            suggestions=report.accepted,
            analysis=outcome.analysis,
            warnings=tuple(warnings),
            technicians=context.technicians,
            context=context.to_payload(),
            estimated_duration_minutes=context.duration.minutes,
            duration_source=context.duration.source,
            rejected=report.rejected,
        )

    def _failed(
        self,
        history: list[RankingState],
        context: SchedulingContext,
        reason: FailureReason,
        details: str,
        *,
        analysis: str = "",
        warnings: tuple[str, ...] = (),
    ) -> RankingResult:
        logger.warning("Ranking failed (%s): %s", reason, details)
        history.append("failed")
        return RankingResult(
            state="failed",
            state_history=tuple(history),
            analysis=analysis,
            warnings=warnings,
            technicians=context.technicians,
            context=context.to_payload(),
            estimated_duration_minutes=context.duration.minutes,
            duration_source=context.duration.source,
            failure_reason=reason,
        )
