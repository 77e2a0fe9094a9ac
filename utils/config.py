"""
Configuration management.
"""

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Persistence
    data_dir: str = field(default_factory=lambda: os.getenv("DATA_DIR", "./data"))
    ingestion_runs_path: str = field(
        default_factory=lambda: os.getenv("INGESTION_RUNS_PATH", "")
    )

    # Comparable search
    default_top_k: int = field(default_factory=lambda: int(os.getenv("DEFAULT_TOP_K", "25")))
    max_pool_size: int = field(default_factory=lambda: int(os.getenv("MAX_POOL_SIZE", "5000")))
    missing_coordinates_as_origin: bool = field(
        default_factory=lambda: _env_bool("MISSING_COORDINATES_AS_ORIGIN")
    )

    # Valuation
    hedonic_weighted_share: float = field(
        default_factory=lambda: float(os.getenv("HEDONIC_WEIGHTED_SHARE", "0.55"))
    )
    iqr_multiplier: float = field(
        default_factory=lambda: float(os.getenv("IQR_MULTIPLIER", "1.5"))
    )

    # Read limits
    audit_query_limit: int = field(
        default_factory=lambda: int(os.getenv("AUDIT_QUERY_LIMIT", "500"))
    )
    ingestion_list_limit: int = field(
        default_factory=lambda: int(os.getenv("INGESTION_LIST_LIMIT", "100"))
    )

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    def __post_init__(self) -> None:
        if not self.ingestion_runs_path:
            self.ingestion_runs_path = os.path.join(self.data_dir, "ingestion-runs.json")

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "data_dir": self.data_dir,
            "ingestion_runs_path": self.ingestion_runs_path,
            "default_top_k": self.default_top_k,
            "max_pool_size": self.max_pool_size,
            "missing_coordinates_as_origin": self.missing_coordinates_as_origin,
            "hedonic_weighted_share": self.hedonic_weighted_share,
            "iqr_multiplier": self.iqr_multiplier,
            "audit_query_limit": self.audit_query_limit,
            "ingestion_list_limit": self.ingestion_list_limit,
            "log_level": self.log_level,
        }
