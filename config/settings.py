"""
Catalog Matcher - Configuration

Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (catalog store)
    DATABASE_URL: str = Field(
        default=f"sqlite:///{PROJECT_ROOT}/data/catalog.db"
    )

    @property
    def project_root(self) -> Path:
        """Return project root directory."""
        return PROJECT_ROOT

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    LOG_TO_FILE: bool = Field(default=True)
    LOG_DIR: Optional[str] = Field(default=None)

    # Scoring weights (must sum to 1.0)
    WEIGHT_NAME: float = Field(default=0.55)
    WEIGHT_TOKEN: float = Field(default=0.25)
    WEIGHT_SIZE: float = Field(default=0.15)
    WEIGHT_CATEGORY: float = Field(default=0.05)

    # Confidence thresholds (trigram < min < review < auto)
    TRIGRAM_THRESHOLD: float = Field(default=0.30)
    MIN_SIMILARITY: float = Field(default=0.70)
    REVIEW_THRESHOLD: float = Field(default=0.85)
    AUTO_MATCH_THRESHOLD: float = Field(default=0.95)

    # Candidate funnel
    CANDIDATE_LIMIT: int = Field(default=30)
    INDEX_TIMEOUT_SECONDS: Optional[float] = Field(default=2.0)
    CATEGORY_HARD_FILTER: bool = Field(default=False)
    SCORING_WORKERS: int = Field(default=1)

    # "levenshtein" or "trigram"
    NAME_SIMILARITY_METHOD: str = Field(default="levenshtein")

    # Optional YAML file extending the normalizer vocabulary
    VOCABULARY_FILE: Optional[str] = Field(default=None)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
