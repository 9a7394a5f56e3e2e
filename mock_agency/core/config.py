"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from pydantic import field_validator

# מדיניות הרצות סימולציה חופפות על אותו משלוח
VALID_OVERLAP_POLICIES = {"allow", "reject", "replace"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    APP_NAME: str = "Mock Delivery Agency"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # CORS
    # Comma-separated list of allowed origins. "*" mirrors the permissive
    # behaviour expected from a local test double; empty disables CORS.
    ALLOWED_ORIGINS: str = "*"

    # Parcels
    TRACKING_PREFIX: str = "YDN"
    TRACKING_COUNTER_START: int = 1000
    DEFAULT_WILAYA: str = "Tlemcen"
    DEFAULT_COMMUNE: str = "Tlemcen"
    ESTIMATED_DELIVERY: str = "2-3 business days"

    # Enforce the explicit transition table instead of accepting any status
    STRICT_TRANSITIONS: bool = False

    # Webhooks
    WEBHOOK_TIMEOUT_SECONDS: float = 5.0
    WEBHOOK_MAX_CONCURRENCY: int = 20
    WEBHOOK_NOTIFY_ON_CREATE: bool = True

    # Simulation speed table (seconds between steps)
    SIMULATION_FAST_SECONDS: float = 2.0
    SIMULATION_NORMAL_SECONDS: float = 5.0
    SIMULATION_SLOW_SECONDS: float = 10.0
    # allow = unguarded concurrent runs, reject = 409, replace = stop older runs
    SIMULATION_OVERLAP_POLICY: str = "allow"

    @field_validator(
        "WEBHOOK_TIMEOUT_SECONDS",
        "SIMULATION_FAST_SECONDS",
        "SIMULATION_NORMAL_SECONDS",
        "SIMULATION_SLOW_SECONDS",
        mode="after",
    )
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        """זמנים חייבים להיות חיוביים, אחרת טיימר/timeout לא מוגדר"""
        if v <= 0:
            raise ValueError("Durations must be greater than zero")
        return v

    @field_validator("WEBHOOK_MAX_CONCURRENCY", mode="after")
    @classmethod
    def validate_max_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("WEBHOOK_MAX_CONCURRENCY must be at least 1")
        return v

    @field_validator("SIMULATION_OVERLAP_POLICY", mode="before")
    @classmethod
    def validate_overlap_policy(cls, v: str) -> str:
        """נרמול ובדיקת ערכים מותרים, נכשל מהר בהפעלה ולא בזמן ריצה"""
        v = v.strip().lower()
        if v not in VALID_OVERLAP_POLICIES:
            raise ValueError(
                f"SIMULATION_OVERLAP_POLICY='{v}' is not supported. "
                f"Allowed values: {', '.join(sorted(VALID_OVERLAP_POLICIES))}"
            )
        return v

    @field_validator("TRACKING_PREFIX", mode="after")
    @classmethod
    def validate_tracking_prefix(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("TRACKING_PREFIX must not be empty")
        return v

    @property
    def simulation_delays(self) -> dict[str, float]:
        """Speed name -> seconds between simulated steps"""
        return {
            "fast": self.SIMULATION_FAST_SECONDS,
            "normal": self.SIMULATION_NORMAL_SECONDS,
            "slow": self.SIMULATION_SLOW_SECONDS,
        }

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
