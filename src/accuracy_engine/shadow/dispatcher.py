"""Fire-and-forget shadow runs for subjects enrolled in the tuning experiment."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from accuracy_engine.config.settings import Settings
from accuracy_engine.experiments.variant_selector import select_variant
from accuracy_engine.models.domain import (
    AccuracyConfig,
    ChunkCandidate,
    ProcessedQuery,
    RuleResult,
    ShadowTestRecord,
)
from accuracy_engine.observability.logger import get_logger
from accuracy_engine.observability.metrics import log_shadow_metrics
from accuracy_engine.protocols.shadow_log import ShadowLog
from accuracy_engine.resilience.retry import retry_async
from accuracy_engine.scoring.reason_codes import ReasonCode
from accuracy_engine.shadow.runner import ShadowTestRunner

logger = get_logger("shadow_dispatcher")

SHADOW_ARM = "shadow"


def experiment_id_for(prefix: str, candidate: AccuracyConfig) -> str:
    """Each candidate version is its own experiment, so arms are re-drawn per candidate."""
    return f"{prefix}-{candidate.version}"


class ShadowDispatcher:
    def __init__(self, runner: ShadowTestRunner, shadow_log: ShadowLog, settings: Settings) -> None:
        self._runner = runner
        self._log = shadow_log
        self._settings = settings
        self._arms = settings.shadow_arm_list
        self._tasks: set[asyncio.Task] = set()

    def is_enrolled(self, subject_id: str | None, candidate: AccuracyConfig | None) -> bool:
        if not self._settings.shadow_enabled or subject_id is None or candidate is None:
            return False
        experiment = experiment_id_for(self._settings.shadow_experiment_prefix, candidate)
        return select_variant(subject_id, experiment, self._arms) == SHADOW_ARM

    def maybe_dispatch(
        self,
        subject_id: str | None,
        query_id: str,
        query: ProcessedQuery,
        candidates: Sequence[ChunkCandidate],
        control_config: AccuracyConfig,
        candidate_config: AccuracyConfig | None,
        control_result: RuleResult,
    ) -> bool:
        """Schedule a shadow run if the subject is in the shadow arm.

        Returns immediately; the caller never awaits the shadow task.
        """
        if not self.is_enrolled(subject_id, candidate_config):
            return False
        task = asyncio.create_task(
            self._run(query_id, query, list(candidates), control_config, candidate_config, control_result)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _run(
        self,
        query_id: str,
        query: ProcessedQuery,
        candidates: list[ChunkCandidate],
        control_config: AccuracyConfig,
        candidate_config: AccuracyConfig,
        control_result: RuleResult,
    ) -> ShadowTestRecord | None:
        timeout = self._settings.shadow_timeout_ms / 1000
        try:
            return await asyncio.wait_for(
                self._execute(query_id, query, candidates, control_config, candidate_config, control_result),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "shadow_abandoned",
                query_id=query_id,
                candidate_version=candidate_config.version,
                reason=ReasonCode.SHADOW_TIMEOUT,
            )
        except Exception as e:
            logger.error(
                "shadow_failed",
                query_id=query_id,
                candidate_version=candidate_config.version,
                reason=ReasonCode.SHADOW_FAILED,
                error=str(e),
            )
        return None

    async def _execute(
        self,
        query_id: str,
        query: ProcessedQuery,
        candidates: list[ChunkCandidate],
        control_config: AccuracyConfig,
        candidate_config: AccuracyConfig,
        control_result: RuleResult,
    ) -> ShadowTestRecord:
        record = await asyncio.to_thread(
            self._runner.run_shadow,
            query,
            candidates,
            control_config,
            candidate_config,
            query_id,
            control_result,
        )
        await retry_async(
            lambda: self._log.append(record),
            name="shadow_log_append",
            attempts=self._settings.io_retry_attempts,
            base_delay_s=self._settings.io_retry_base_delay_s,
            backoff_base=self._settings.io_retry_backoff_base,
        )
        log_shadow_metrics(
            query_id,
            record.control_config_version,
            record.candidate_config_version,
            record.divergence_score,
            len(record.control_result.accepted),
            len(record.candidate_result.accepted),
        )
        return record

    async def drain(self) -> None:
        """Wait for in-flight shadow tasks; used at shutdown and in tests."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
