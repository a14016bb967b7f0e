from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONVERTER_COMMAND = (
    "java -Xmx512M -jar ./converter/lib/grib2json-0.8.0-SNAPSHOT.jar "
    "--data --output {output} --names --compact {input}"
)


class Settings(BaseSettings):
    # Load the repository-root .env and accept env keys in any case
    _env_file = Path(__file__).resolve().parent.parent / ".env"
    model_config = SettingsConfigDict(env_file=str(_env_file), extra="ignore", case_sensitive=False)

    app_name: str = "Wind Data Hub"
    app_version: str = "0.1.0"
    debug: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    port: int = 7000
    api_key: str | None = Field(
        default=None,
        description="Shared secret expected in the X-API-KEY header. Leave blank to disable the check.",
    )

    # GFS upstream
    gfs_base_url: str = Field(
        default="https://nomads.ncep.noaa.gov/cgi-bin/filter_gfs_1p00.pl",
        description="NOMADS filter endpoint for 1.0 degree GFS GRIB2 subsets.",
    )
    gfs_request_timeout: float = Field(default=30.0, ge=1.0, description="Timeout in seconds for GFS HTTP calls")
    gfs_user_agent: str = Field(
        default="WindDataHub/0.1.0 (support@example.com)",
        description="User-Agent sent to the upstream GFS filter.",
    )

    # Local layout
    staging_dir: str = Field(default="grib-data", description="Directory for raw GRIB2 downloads awaiting conversion.")
    archive_dir: str = Field(default="json-data", description="Directory holding converted, immutable JSON snapshots.")
    staging_suffix: str = ".f000"
    archive_suffix: str = ".json"

    # Harvest cadence
    stamp_interval_hours: int = Field(default=6, ge=1, le=24, description="Upstream publication cadence in hours.")
    harvest_enabled: bool = Field(default=True, description="Run a harvest at startup and on every tick.")
    harvest_interval_minutes: float = Field(default=15.0, gt=0.0, description="Spacing between harvest ticks.")
    harvest_max_age_days: int = Field(
        default=30,
        ge=1,
        description="Backward searches stop once the target is more than this many days old.",
    )
    backfill_max_depth: int = Field(
        default=5,
        ge=0,
        description="Maximum number of preceding intervals harvested behind a new snapshot per tick.",
    )
    harvest_history_limit: int = Field(default=50, ge=1, description="Number of recent harvest reports kept in memory.")

    # External converter
    converter_command: str = Field(
        default=DEFAULT_CONVERTER_COMMAND,
        description="Converter command template; {input} and {output} are replaced with file paths.",
    )
    converter_timeout: float = Field(default=300.0, gt=0.0, description="Seconds before a conversion run is killed.")

    # Lookup
    lookup_max_lookback_days: int = Field(
        default=60,
        ge=1,
        description="Upper bound on backward walks for latest and unbounded nearest lookups.",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def normalize_cors(cls, v):
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                import json
                return json.loads(s)
            if s in ("", "*"):
                return ["*"]
            return [p.strip() for p in s.split(",")]
        return v

    @field_validator("stamp_interval_hours")
    @classmethod
    def interval_divides_day(cls, v: int) -> int:
        if 24 % v != 0:
            raise ValueError("stamp_interval_hours must divide 24")
        return v

    @field_validator("api_key", mode="before")
    @classmethod
    def blank_api_key(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

settings = Settings()
