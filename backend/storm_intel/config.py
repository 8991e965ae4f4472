from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Database
    database_url: str = Field(default="sqlite:///./storm_intel.db")

    # Session tokens (issued by the auth layer, decoded here)
    jwt_secret_key: str = Field(default="change-me")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expire_minutes: int = Field(default=60 * 24)

    # Web Push (VAPID)
    vapid_private_key: str = Field(default="")
    vapid_subject: str = Field(default="mailto:contact@guardian-intel.com")
    push_ttl_seconds: int = Field(default=3600)
    # Per-attempt delivery timeout; a hung endpoint counts as a non-terminal failure
    push_timeout_seconds: float = Field(default=10.0)
    push_icon_path: str = Field(default="/icons/icon-192x192.svg")
    # Size of the dedicated push thread pool; attempts beyond it wait for a free worker
    push_max_workers: int = Field(default=10)

    # Heatmap
    heatmap_default_months: int = Field(default=6)
    heatmap_max_months: int = Field(default=36)
    heatmap_top_regions: int = Field(default=10)

    # Opportunities
    opportunity_lookback_days: int = Field(default=7)
    avg_job_value: float = Field(default=15000.0)

    # Predictive sources
    nws_base_url: str = Field(default="https://api.weather.gov")
    spc_base_url: str = Field(default="https://www.spc.noaa.gov")
    nws_user_agent: str = Field(default="(storm-intel, contact@guardian-intel.com)")
    prediction_default_hours: int = Field(default=72)
    prediction_radius_miles: float = Field(default=25.0)
    spc_cache_ttl_minutes: int = Field(default=60)
    prediction_refresh_interval: int = Field(default=30)  # minutes
    affected_customers_default_limit: int = Field(default=50)

    # CORS
    cors_origins: str = Field(default="http://localhost:5173,http://localhost:3000")

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
