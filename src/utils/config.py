"""Configuration management for the Sous Chef agent core.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Agent processing budget in milliseconds. The whole pipeline is cancelled past this.
        self.AGENT_MAX_PROCESSING_TIME_MS: int = int(os.getenv("AGENT_MAX_PROCESSING_TIME_MS", "10000"))
        # Personalization profile cache lifetime (minutes from last computation)
        self.PROFILE_CACHE_TTL_MINUTES: int = int(os.getenv("PROFILE_CACHE_TTL_MINUTES", "30"))
        # Minimum number of interactions before any learned profile is produced
        self.LEARNING_THRESHOLD: int = int(os.getenv("LEARNING_THRESHOLD", "5"))
        # Maximum number of past interactions read per profile computation
        self.HISTORY_LIMIT: int = int(os.getenv("HISTORY_LIMIT", "100"))
        # Maximum number of ranked candidates returned in a response. Default: 10
        self.MAX_RECOMMENDATIONS: int = int(os.getenv("MAX_RECOMMENDATIONS", "10"))
        # Sub-score (0-100) a candidate must exceed to earn an explanation clause
        self.EXPLANATION_THRESHOLD: float = float(os.getenv("EXPLANATION_THRESHOLD", "70"))
        # Ingredients expiring within this many days are flagged as "expiring soon"
        self.EXPIRING_WITHIN_DAYS: int = int(os.getenv("EXPIRING_WITHIN_DAYS", "3"))
        # Default meal plan length in days
        self.MEAL_PLAN_DAYS: int = int(os.getenv("MEAL_PLAN_DAYS", "7"))

        # Learning Configuration
        # ENABLE_LEARNING: emit a learning event after every successful response
        self.ENABLE_LEARNING: bool = os.getenv("ENABLE_LEARNING", "true").lower() in ("true", "1", "yes")
        # LEARNING_QUEUE_SIZE: bound of the in-process learning event queue (events dropped when full)
        self.LEARNING_QUEUE_SIZE: int = int(os.getenv("LEARNING_QUEUE_SIZE", "1000"))

        # Interaction sink retry configuration - handles transient storage failures
        # MAX_RETRIES: attempts per learning event before it is dropped
        self.MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
        # DELAY_BETWEEN_RETRIES: initial delay in seconds (doubled each retry)
        self.DELAY_BETWEEN_RETRIES: float = float(os.getenv("DELAY_BETWEEN_RETRIES", "1"))

        # Output Format for query.py: "json" or "markdown". Default: "markdown"
        self.OUTPUT_FORMAT: str = os.getenv("OUTPUT_FORMAT", "markdown")

    @property
    def retry_delays(self) -> list[float]:
        """Exponential backoff delays derived from DELAY_BETWEEN_RETRIES."""
        return [self.DELAY_BETWEEN_RETRIES * (2 ** attempt) for attempt in range(max(self.MAX_RETRIES - 1, 0))]

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If any value is outside its accepted range.
        """
        if self.AGENT_MAX_PROCESSING_TIME_MS < 1:
            raise ValueError(
                f"AGENT_MAX_PROCESSING_TIME_MS must be at least 1, got: {self.AGENT_MAX_PROCESSING_TIME_MS}"
            )
        if self.PROFILE_CACHE_TTL_MINUTES < 1:
            raise ValueError(
                f"PROFILE_CACHE_TTL_MINUTES must be at least 1, got: {self.PROFILE_CACHE_TTL_MINUTES}"
            )
        if self.LEARNING_THRESHOLD < 1:
            raise ValueError(
                f"LEARNING_THRESHOLD must be at least 1, got: {self.LEARNING_THRESHOLD}"
            )
        if self.HISTORY_LIMIT < self.LEARNING_THRESHOLD:
            raise ValueError(
                f"HISTORY_LIMIT must be at least LEARNING_THRESHOLD ({self.LEARNING_THRESHOLD}), got: {self.HISTORY_LIMIT}"
            )
        if self.MAX_RECOMMENDATIONS < 1:
            raise ValueError(
                f"MAX_RECOMMENDATIONS must be at least 1, got: {self.MAX_RECOMMENDATIONS}"
            )
        if not (0.0 <= self.EXPLANATION_THRESHOLD <= 100.0):
            raise ValueError(
                f"EXPLANATION_THRESHOLD must be between 0 and 100, got: {self.EXPLANATION_THRESHOLD}"
            )
        if self.EXPIRING_WITHIN_DAYS < 0:
            raise ValueError(
                f"EXPIRING_WITHIN_DAYS must be non-negative, got: {self.EXPIRING_WITHIN_DAYS}"
            )
        if not (1 <= self.MEAL_PLAN_DAYS <= 31):
            raise ValueError(
                f"MEAL_PLAN_DAYS must be between 1 and 31, got: {self.MEAL_PLAN_DAYS}"
            )
        if self.LEARNING_QUEUE_SIZE < 1:
            raise ValueError(
                f"LEARNING_QUEUE_SIZE must be at least 1, got: {self.LEARNING_QUEUE_SIZE}"
            )
        if self.MAX_RETRIES < 1:
            raise ValueError(
                f"MAX_RETRIES must be at least 1, got: {self.MAX_RETRIES}"
            )
        if self.DELAY_BETWEEN_RETRIES < 0:
            raise ValueError(
                f"DELAY_BETWEEN_RETRIES must be non-negative, got: {self.DELAY_BETWEEN_RETRIES}"
            )
        if self.OUTPUT_FORMAT not in ("json", "markdown"):
            raise ValueError(
                f"OUTPUT_FORMAT must be 'json' or 'markdown', got: {self.OUTPUT_FORMAT}"
            )


# Create module-level config instance and validate immediately
config = Config()
config.validate()
