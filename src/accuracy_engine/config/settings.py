"""Central configuration via Pydantic Settings. All values driven by env vars."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Bootstrap ACTIVE config (used only when the config store is empty)
    default_w_semantic: float = 0.6
    default_w_keyword: float = 0.3
    default_w_recency: float = 0.1
    default_diversity_penalty: float = 0.15
    default_min_similarity: float = 0.3
    default_max_results: int = 5
    default_max_per_source: int = 2

    # Query processing
    max_query_length: int = 500

    # Production path
    request_timeout_ms: int = 3000

    # Shadow testing
    shadow_enabled: bool = True
    shadow_timeout_ms: int = 2000
    shadow_experiment_prefix: str = "accuracy-tuning"
    shadow_arms: str = "control,shadow"  # comma-separated, order is part of the contract
    shadow_top_k: int | None = None

    # Auto-tuning
    tuning_enabled: bool = True
    tuning_interval_seconds: float = 60.0
    min_shadow_samples: int = 50
    max_observation_hours: float = 72.0
    min_feedback_for_proposal: int = 10
    feedback_window_hours: float = 168.0
    tuning_step: float = 0.05
    min_weight: float = 0.05
    threshold_step: float = 0.05
    recall_failure_rate: float = 0.2
    precision_failure_rate: float = 0.15
    diversity_failure_rate: float = 0.1
    diversity_step: float = 0.05
    comparator_tolerance: float = 0.05
    comparator_min_samples: int = 5
    rollback_threshold: float = 0.2
    promotion_max_attempts: int = 3
    feedback_trigger_count: int = 25

    # Retries around external I/O (shadow and tuning paths only)
    io_retry_attempts: int = 3
    io_retry_base_delay_s: float = 0.1
    io_retry_backoff_base: float = 2.0

    # Storage
    storage_backend: str = "sqlite"  # "sqlite" or "memory"
    sqlite_config_db_path: str = "data/configs.db"
    sqlite_log_db_path: str = "data/logs.db"
    chunk_fixture_path: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = {"env_file": ".env", "env_prefix": "ACCURACY_"}

    @property
    def shadow_arm_list(self) -> list[str]:
        return [a.strip() for a in self.shadow_arms.split(",") if a.strip()]
