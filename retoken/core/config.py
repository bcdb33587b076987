"""
Configuration Management for Re-Token

Centralized configuration with environment variable support.
"""

import os
from typing import Optional
from pydantic import BaseModel, model_validator


class SimulationConfig(BaseModel):
    """Risk simulation engine configuration."""
    tick_interval_ms: int = 2000
    history_capacity: int = 20
    seed_score: float = 92.0  # Fresh positions start healthy
    warning_band: float = 5.0
    min_risk_threshold: float = 50.0
    max_risk_threshold: float = 95.0
    exit_reference_length: int = 40  # Hex chars after "0x"

    @model_validator(mode="after")
    def _check_threshold_range(self) -> "SimulationConfig":
        if self.min_risk_threshold > self.max_risk_threshold:
            raise ValueError(
                f"min_risk_threshold ({self.min_risk_threshold}) exceeds "
                f"max_risk_threshold ({self.max_risk_threshold})"
            )
        if self.history_capacity < 1:
            raise ValueError("history_capacity must be at least 1")
        return self


class StorageConfig(BaseModel):
    """Durable snapshot storage configuration."""
    db_path: str = "retoken_state.db"
    storage_key: str = "retoken_positions"


class AnalysisConfig(BaseModel):
    """Analysis delegate configuration."""
    provider: str = "static"  # "static" | "openai" | "anthropic"
    model: Optional[str] = None
    timeout: int = 30  # seconds
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None


class APIConfig(BaseModel):
    """API server configuration."""
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    cors_origins: list = ["*"]
    autostart_engine: bool = True


class RetokenConfig(BaseModel):
    """Master configuration for Re-Token."""
    simulation: SimulationConfig = SimulationConfig()
    storage: StorageConfig = StorageConfig()
    analysis: AnalysisConfig = AnalysisConfig()
    api: APIConfig = APIConfig()

    @classmethod
    def from_env(cls) -> "RetokenConfig":
        """Load configuration from environment variables."""
        return cls(
            simulation=SimulationConfig(
                tick_interval_ms=int(os.getenv("TICK_INTERVAL_MS", 2000)),
                history_capacity=int(os.getenv("HISTORY_CAPACITY", 20)),
                seed_score=float(os.getenv("SEED_SCORE", 92.0)),
                min_risk_threshold=float(os.getenv("MIN_RISK_THRESHOLD", 50)),
                max_risk_threshold=float(os.getenv("MAX_RISK_THRESHOLD", 95)),
            ),
            storage=StorageConfig(
                db_path=os.getenv("DB_PATH", "retoken_state.db"),
                storage_key=os.getenv("STORAGE_KEY", "retoken_positions"),
            ),
            analysis=AnalysisConfig(
                provider=os.getenv("ANALYSIS_PROVIDER", "static").lower(),
                model=os.getenv("ANALYSIS_MODEL"),
                openai_api_key=os.getenv("OPENAI_API_KEY"),
                anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            ),
            api=APIConfig(
                host=os.getenv("API_HOST", "0.0.0.0"),
                port=int(os.getenv("API_PORT", 8000)),
                debug=os.getenv("DEBUG", "false").lower() == "true",
                autostart_engine=os.getenv("AUTOSTART_ENGINE", "true").lower() == "true",
            )
        )
