"""Auto-tuner: feedback ingestion and the DRAFT -> SHADOW -> ACTIVE/RETIRED state machine.

All decisions are derived from the append-only logs (feedback, query traces,
shadow records) plus the config store, so replaying the logs reproduces the
tuner's view. The tuner is the only writer of config transitions; concurrent
tuners are serialised by the store's compare-and-set, not by a lock.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import TypeVar

from accuracy_engine.config.settings import Settings
from accuracy_engine.exceptions import (
    ConfigConflict,
    ConfigNotFound,
    InvalidFeedback,
    InvalidTransition,
    UpstreamUnavailable,
)
from accuracy_engine.models.domain import (
    AccuracyConfig,
    ConfigStatus,
    FeedbackAck,
    FeedbackEvent,
    ScoringWeights,
    Thresholds,
    utcnow,
)
from accuracy_engine.observability.logger import get_logger
from accuracy_engine.observability.metrics import log_tuning_decision
from accuracy_engine.protocols.comparator import RatingComparator
from accuracy_engine.protocols.config_store import ConfigStore
from accuracy_engine.protocols.feedback_sink import FeedbackSink
from accuracy_engine.protocols.shadow_log import ShadowLog
from accuracy_engine.protocols.trace_store import TraceStore
from accuracy_engine.resilience.retry import retry_async
from accuracy_engine.scoring.reason_codes import ReasonCode
from accuracy_engine.tuning import local_search
from accuracy_engine.tuning.aggregates import (
    FeedbackAggregate,
    ShadowSummary,
    aggregate_feedback,
    dedupe_events,
    projected_candidate_ratings,
    ratings_for_version,
    summarize_shadow,
)
from accuracy_engine.tuning.comparator import MeanRatingComparator
from accuracy_engine.tuning.snapshot import ConfigSnapshotHolder

logger = get_logger("auto_tuner")

T = TypeVar("T")

VALID_RATINGS = (-1, 0, 1)


class TuningAction(StrEnum):
    PROPOSED = "proposed"
    ENROLLED = "enrolled"
    PROMOTED = "promoted"
    RETIRED = "retired"
    WAITING = "waiting"
    IDLE = "idle"
    DEFERRED = "deferred"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class TuningDecision:
    action: TuningAction
    version: int | None
    reason: str


class AutoTuner:
    def __init__(
        self,
        config_store: ConfigStore,
        feedback_sink: FeedbackSink,
        shadow_log: ShadowLog,
        trace_store: TraceStore,
        snapshot: ConfigSnapshotHolder,
        settings: Settings,
        comparator: RatingComparator | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = config_store
        self._feedback = feedback_sink
        self._shadow_log = shadow_log
        self._traces = trace_store
        self._snapshot = snapshot
        self._settings = settings
        self._comparator = comparator or MeanRatingComparator(
            tolerance=settings.comparator_tolerance,
            min_samples=settings.comparator_min_samples,
        )
        self._clock = clock
        self._feedback_listeners: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def add_feedback_listener(self, listener: Callable[[], None]) -> None:
        self._feedback_listeners.append(listener)

    async def record_feedback(
        self, message_id: str, rating: int, reason: str | None = None
    ) -> FeedbackAck:
        """Append a feedback event. Re-delivery of a message id is acknowledged but ignored."""
        if not message_id or not message_id.strip():
            raise InvalidFeedback("message_id is required")
        if isinstance(rating, bool) or rating not in VALID_RATINGS:
            raise InvalidFeedback(f"rating must be one of {VALID_RATINGS}, got {rating!r}")

        event = FeedbackEvent(
            message_id=message_id,
            rating=int(rating),
            reason=reason,
            timestamp=self._clock(),
        )
        recorded = await self._io(lambda: self._feedback.append(event), "feedback_append")
        logger.info("feedback_recorded", message_id=message_id, rating=rating, duplicate=not recorded)
        if recorded:
            for listener in self._feedback_listeners:
                listener()
        return FeedbackAck(message_id=message_id, recorded=recorded, duplicate=not recorded)

    async def feedback_aggregate(self, window_hours: float | None = None) -> FeedbackAggregate:
        since = None
        if window_hours is not None:
            since = self._clock() - timedelta(hours=window_hours)
        events = await self._io(lambda: self._feedback.events(since), "feedback_events")
        return aggregate_feedback(events)

    async def shadow_summary(self) -> list[ShadowSummary]:
        records = await self._io(lambda: self._shadow_log.records(), "shadow_records")
        return summarize_shadow(records)

    # ------------------------------------------------------------------
    # Operational hooks
    # ------------------------------------------------------------------

    def get_active_config(self) -> AccuracyConfig:
        return self._snapshot.active

    async def list_configs(self, status: ConfigStatus | None = None) -> list[AccuracyConfig]:
        return await self._io(lambda: self._store.list_configs(status), "config_list")

    async def propose_config(
        self,
        weights: ScoringWeights,
        thresholds: Thresholds,
        rationale: str = "manual",
    ) -> AccuracyConfig:
        active = self._snapshot.active
        draft = await self._store.create(
            weights, thresholds, parent_version=active.version, rationale=rationale
        )
        log_tuning_decision(TuningAction.PROPOSED, draft.version, ReasonCode.ADMIN_OVERRIDE)
        return draft

    async def enroll(self, version: int) -> AccuracyConfig:
        config = await self._require(version)
        active = await self._store.get_active()
        if config.status != ConfigStatus.DRAFT:
            raise InvalidTransition(f"v{version} is {config.status}, only DRAFT can be enrolled")
        if config.version < active.version:
            raise InvalidTransition(f"v{version} is older than ACTIVE v{active.version}")
        if await self._store.list_configs(ConfigStatus.SHADOW):
            raise InvalidTransition("another candidate is already in SHADOW")
        enrolled = await self._store.transition(
            version, ConfigStatus.DRAFT, ConfigStatus.SHADOW, self._clock()
        )
        await self._snapshot.refresh(self._store)
        return enrolled

    async def retire(self, version: int) -> AccuracyConfig:
        config = await self._require(version)
        if config.status not in (ConfigStatus.DRAFT, ConfigStatus.SHADOW):
            raise InvalidTransition(
                f"v{version} is {config.status}; ACTIVE is retired only by promoting another config"
            )
        retired = await self._store.transition(
            version, config.status, ConfigStatus.RETIRED, self._clock()
        )
        await self._snapshot.refresh(self._store)
        return retired

    async def promote(self, version: int) -> AccuracyConfig:
        """Promote a SHADOW config without the statistical gate (operator override)."""
        for attempt in range(self._settings.promotion_max_attempts):
            active = await self._store.get_active()
            try:
                promoted = await self._store.promote(version, active.version, self._clock())
            except ConfigConflict:
                logger.info("promotion_conflict", version=version, attempt=attempt + 1)
                await asyncio.sleep(self._settings.io_retry_base_delay_s * (attempt + 1))
                continue
            await self._snapshot.refresh(self._store)
            log_tuning_decision(
                TuningAction.PROMOTED, version, ReasonCode.ADMIN_OVERRIDE, retired=active.version
            )
            return promoted
        raise ConfigConflict(f"could not promote v{version} after {self._settings.promotion_max_attempts} attempts")

    # ------------------------------------------------------------------
    # Background cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> TuningDecision:
        try:
            decision = await self._cycle()
        except UpstreamUnavailable as e:
            logger.warning("tuning_cycle_skipped", error=str(e))
            decision = TuningDecision(TuningAction.SKIPPED, None, ReasonCode.UPSTREAM_UNAVAILABLE)
        log_tuning_decision(decision.action, decision.version, decision.reason)
        return decision

    async def _cycle(self) -> TuningDecision:
        now = self._clock()
        active = await self._io(self._store.get_active, "config_get_active")

        drafts = sorted(
            await self._io(lambda: self._store.list_configs(ConfigStatus.DRAFT), "config_list"),
            key=lambda c: c.version,
        )
        for stale in [d for d in drafts if d.version < active.version]:
            await self._io(
                lambda: self._store.transition(
                    stale.version, ConfigStatus.DRAFT, ConfigStatus.RETIRED, now
                ),
                "config_transition",
            )
            log_tuning_decision(TuningAction.RETIRED, stale.version, ReasonCode.STALE_DRAFT)
        drafts = [d for d in drafts if d.version > active.version]

        shadows = await self._io(lambda: self._store.list_configs(ConfigStatus.SHADOW), "config_list")
        if shadows:
            return await self._evaluate(max(shadows, key=lambda c: c.version), now)

        if drafts:
            enrolled = await self._enroll_draft(drafts[0], now)
            return TuningDecision(TuningAction.ENROLLED, enrolled.version, "pending DRAFT")

        proposal, reason = await self._build_proposal(active, now)
        if proposal is None:
            return TuningDecision(TuningAction.IDLE, None, reason)

        draft = await self._io(
            lambda: self._store.create(
                proposal.weights,
                proposal.thresholds,
                parent_version=proposal.parent_version,
                rationale=proposal.rationale,
            ),
            "config_create",
        )
        await self._enroll_draft(draft, now)
        return TuningDecision(TuningAction.PROPOSED, draft.version, proposal.reason)

    async def _enroll_draft(self, draft: AccuracyConfig, now: datetime) -> AccuracyConfig:
        enrolled = await self._io(
            lambda: self._store.transition(draft.version, ConfigStatus.DRAFT, ConfigStatus.SHADOW, now),
            "config_transition",
        )
        await self._io(lambda: self._snapshot.refresh(self._store), "snapshot_refresh")
        return enrolled

    async def _evaluate(self, candidate: AccuracyConfig, now: datetime) -> TuningDecision:
        reason: str = ReasonCode.INSUFFICIENT_SHADOW_SAMPLES
        for attempt in range(self._settings.promotion_max_attempts):
            active = await self._io(self._store.get_active, "config_get_active")
            if candidate.version <= active.version:
                return await self._retire_candidate(candidate, now, ReasonCode.STALE_DRAFT)

            records = [
                r
                for r in await self._io(
                    lambda: self._shadow_log.records(candidate_version=candidate.version),
                    "shadow_records",
                )
                if r.control_config_version == active.version
            ]
            if len(records) < self._settings.min_shadow_samples:
                reason = ReasonCode.INSUFFICIENT_SHADOW_SAMPLES
                break

            control, projected = await self._rating_samples(active, records, now)
            if not self._comparator.no_worse(control, projected):
                reason = ReasonCode.CANDIDATE_WORSE if control and projected else ReasonCode.INSUFFICIENT_FEEDBACK
                break

            try:
                await self._io(
                    lambda: self._store.promote(candidate.version, active.version, now),
                    "config_promote",
                )
            except ConfigConflict:
                logger.info(
                    "promotion_conflict",
                    version=candidate.version,
                    expected_active=active.version,
                    attempt=attempt + 1,
                )
                continue

            await self._io(lambda: self._snapshot.refresh(self._store), "snapshot_refresh")
            return TuningDecision(
                TuningAction.PROMOTED,
                candidate.version,
                f"{len(records)} shadow records, {len(projected)} rated",
            )
        else:
            return TuningDecision(TuningAction.DEFERRED, candidate.version, ReasonCode.PROMOTION_CONFLICT)

        window = timedelta(hours=self._settings.max_observation_hours)
        if now - candidate.status_changed_at >= window:
            return await self._retire_candidate(
                candidate, now, f"{ReasonCode.OBSERVATION_WINDOW_EXPIRED}:{reason}"
            )
        return TuningDecision(TuningAction.WAITING, candidate.version, reason)

    async def _retire_candidate(self, candidate: AccuracyConfig, now: datetime, reason: str) -> TuningDecision:
        await self._io(
            lambda: self._store.transition(candidate.version, ConfigStatus.SHADOW, ConfigStatus.RETIRED, now),
            "config_transition",
        )
        await self._io(lambda: self._snapshot.refresh(self._store), "snapshot_refresh")
        return TuningDecision(TuningAction.RETIRED, candidate.version, reason)

    async def _rating_samples(self, active: AccuracyConfig, records, now: datetime):
        events = await self._windowed_events(now)
        traces = await self._io(
            lambda: self._traces.traces_by_ids([e.message_id for e in events]), "trace_lookup"
        )
        control = ratings_for_version(events, traces, active.version)
        projected = projected_candidate_ratings(records, {e.message_id: e for e in events})
        return control, projected

    async def _build_proposal(self, active: AccuracyConfig, now: datetime):
        events = await self._windowed_events(now)
        traces = await self._io(
            lambda: self._traces.traces_by_ids([e.message_id for e in events]), "trace_lookup"
        )
        history = await self._io(self._store.list_configs, "config_list")
        return local_search.propose(active, events, traces, history, self._settings)

    async def _windowed_events(self, now: datetime) -> list[FeedbackEvent]:
        since = now - timedelta(hours=self._settings.feedback_window_hours)
        events = await self._io(lambda: self._feedback.events(since), "feedback_events")
        return dedupe_events(events)

    async def _require(self, version: int) -> AccuracyConfig:
        config = await self._store.get(version)
        if config is None:
            raise ConfigNotFound(f"no config with version {version}")
        return config

    async def _io(self, operation: Callable[[], Awaitable[T]], name: str) -> T:
        return await retry_async(
            operation,
            name=name,
            attempts=self._settings.io_retry_attempts,
            base_delay_s=self._settings.io_retry_base_delay_s,
            backoff_base=self._settings.io_retry_backoff_base,
        )
