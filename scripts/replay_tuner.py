"""Replay the feedback and shadow logs and print the tuner's derived state.

Optionally run one tuning cycle against the configured stores (--cycle).
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from accuracy_engine.api.app import build_stores
from accuracy_engine.config.settings import Settings
from accuracy_engine.models.domain import ScoringWeights, Thresholds
from accuracy_engine.observability.logger import setup_logging
from accuracy_engine.tuning.auto_tuner import AutoTuner
from accuracy_engine.tuning.snapshot import ConfigSnapshotHolder


async def main(window_hours: float | None, run_cycle: bool) -> None:
    settings = Settings()
    setup_logging(json_output=False)

    config_store, feedback_sink, shadow_log, trace_store = await build_stores(settings)
    await config_store.bootstrap(
        ScoringWeights(
            semantic=settings.default_w_semantic,
            keyword=settings.default_w_keyword,
            recency=settings.default_w_recency,
            diversity_penalty=settings.default_diversity_penalty,
        ),
        Thresholds(
            min_similarity=settings.default_min_similarity,
            max_results=settings.default_max_results,
            max_per_source=settings.default_max_per_source,
        ),
    )
    snapshot = await ConfigSnapshotHolder.load(config_store)
    tuner = AutoTuner(config_store, feedback_sink, shadow_log, trace_store, snapshot, settings)

    print("Config history:")
    for c in await config_store.list_configs():
        w = c.weights
        print(
            f"  v{c.version:<4} {c.status:<8} semantic={w.semantic} keyword={w.keyword} "
            f"recency={w.recency} min_similarity={c.thresholds.min_similarity} "
            f"parent={c.parent_version} {c.rationale}"
        )

    agg = await tuner.feedback_aggregate(window_hours)
    print(f"\nFeedback ({'all time' if window_hours is None else f'last {window_hours}h'}):")
    print(f"  total={agg.total} +1={agg.positive} 0={agg.neutral} -1={agg.negative}")
    print(f"  mean_rating={agg.mean_rating} helpful_rate={agg.helpful_rate}")
    for reason, count in agg.reasons.items():
        print(f"  {reason}: {count}")

    print("\nShadow summary:")
    summaries = await tuner.shadow_summary()
    if not summaries:
        print("  no shadow records")
    for s in summaries:
        print(
            f"  v{s.candidate_version}: records={s.records} mean_divergence={s.mean_divergence:.3f} "
            f"max_divergence={s.max_divergence:.3f} identical_rate={s.identical_rate:.1%}"
        )

    if run_cycle:
        decision = await tuner.run_cycle()
        print(f"\nTuning cycle: {decision.action} v{decision.version} ({decision.reason})")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--window-hours", type=float, default=None)
    parser.add_argument("--cycle", action="store_true", help="run one tuning cycle after the report")
    args = parser.parse_args()
    asyncio.run(main(args.window_hours, args.cycle))
