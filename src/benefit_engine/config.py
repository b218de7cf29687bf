"""Engine configuration."""

from dataclasses import dataclass


@dataclass
class EngineConfig:
    """Runtime settings for the determination engine."""

    # Hard cap on households per batch request
    max_batch_size: int = 50
    # Worker threads used to evaluate a batch
    max_workers: int = 8
    # Seconds allowed for loading rule records from the store
    store_timeout: float = 5.0
    # Actor recorded on determinations when the caller supplies none
    default_actor: str = "system"

    def __post_init__(self):
        if self.max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.store_timeout <= 0:
            raise ValueError("store_timeout must be positive")
