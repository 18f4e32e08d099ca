from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Smoother
    smoothing_interval: float = 1.0  # seconds
    smoothing_period: float = 15.0  # seconds
    teleport_threshold_km: float = 0.5
    heading_snap_degrees: float = 45.0
    coordinate_precision: int = 6  # ~1m
    heading_precision: int = 6

    # Projector
    projection_seconds: float = 15.0
    projection_min_knots: float = 1.0
    projection_max_knots: float = 40.0

    # Ping cache
    history_minutes: int = 20
    ping_update_interval: float = 60.0
    stale_after: float = 150.0
    watchdog_interval: float = 5.0
    reconnect_debounce: float = 0.3
    ping_fetch_limit: int = 1000
    ping_fetch_timeout: float = 30.0

    # Trail
    trail_recent_cutoff_minutes: int = 1
    trail_min_points: int = 2
    trail_samples_per_segment: int = 10

    # WSF vessel feed
    wsf_api_url: str = "https://www.wsdot.wa.gov/ferries/api/vessels/rest/vessellocations"
    wsf_api_key: str = ""
    feed_poll_interval: float = 5.0
    feed_timeout: float = 15.0

    # Ping source: "http" or "postgres"
    ping_source: str = "http"
    ping_api_url: str = "http://localhost:8080/api"

    # Ping recorder and retention (postgres source only)
    record_pings: bool = False
    ping_record_interval: float = 60.0
    ping_retention_hours: float = 24.0
    ping_cleanup_interval: float = 6 * 3600.0
    ping_cleanup_batch: int = 1000

    # Database
    postgres_user: str = "ferrytrack"
    postgres_password: str = "ferrytrack_secret"
    postgres_db: str = "ferrytrack"
    postgres_host: str = "postgres"
    postgres_port: int = 5432

    @property
    def database_url(self) -> str:
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
