"""Pipeline orchestration configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineConfig(BaseSettings):
    """Settings for a pipeline invocation.

    All settings can be overridden via ``PIPELINE_*`` environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        case_sensitive=False,
        extra="ignore",
    )

    max_concurrent_sources: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Non-critical sources fetched in parallel",
    )
    respect_cooldown: bool = Field(
        default=True,
        description="Skip sources whose poll interval has not elapsed",
    )
    scratch_table: str = Field(
        default="alerts_test_runs",
        pattern=r"^[a-z_][a-z0-9_]*$",
        description="Table receiving alerts in test_mode",
    )
    summary_max_length: int = Field(
        default=300,
        ge=50,
        description="Characters kept by the truncating summarizer",
    )
    max_items_per_source: int = Field(
        default=200,
        ge=1,
        description="Items processed per source per run, in feed order",
    )
