from enum import Enum

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core_config.constants import (
    DEFAULT_BUCKETS_CSV,
    DEFAULT_FIXED_OVERHEAD_TOKENS,
    DEFAULT_HEADROOM,
    DEFAULT_MAX_CTX,
    DEFAULT_MIN_CTX,
    DEFAULT_OUTPUT_BUDGET,
    DEFAULT_PER_MESSAGE_OVERHEAD,
    DEFAULT_TOKENS_PER_BYTE,
    DEFAULT_TOKENS_PER_IMAGE,
    MAX_OUTPUT_BUDGET,
    STRUCTURED_OVERHEAD,
)


class OverridePolicy(str, Enum):
    """When a user-supplied ``options.num_ctx`` gets overwritten."""

    always = "always"
    if_missing = "if_missing"
    if_too_small = "if_too_small"


def parse_int_list(raw: str) -> list[int]:
    """Parse ``"1024, 2048,4096"`` into ints; blanks are skipped."""
    return [int(part.strip()) for part in (raw or "").split(",") if part.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True,
    )

    service_log_level: str = Field(default="INFO", alias="SERVICE_LOG_LEVEL")

    # Context window selection
    min_ctx: int = Field(default=DEFAULT_MIN_CTX, alias="MIN_CTX")
    max_ctx: int = Field(default=DEFAULT_MAX_CTX, alias="MAX_CTX")
    # Comma string via env; see `buckets`.
    buckets_raw: str = Field(default=DEFAULT_BUCKETS_CSV, alias="BUCKETS")
    headroom: float = Field(default=DEFAULT_HEADROOM, alias="HEADROOM", allow_inf_nan=False)

    # Output token budgeting
    default_output_budget: int = Field(default=DEFAULT_OUTPUT_BUDGET, alias="DEFAULT_OUTPUT_BUDGET")
    max_output_budget: int = Field(default=MAX_OUTPUT_BUDGET, alias="MAX_OUTPUT_BUDGET")
    structured_overhead: int = Field(default=STRUCTURED_OVERHEAD, alias="STRUCTURED_OVERHEAD")
    dynamic_default_output_budget: bool = Field(default=False, alias="DYNAMIC_DEFAULT_OUTPUT_BUDGET")

    # Estimator coefficients used until a model has calibration data
    default_fixed_overhead_tokens: float = Field(
        default=DEFAULT_FIXED_OVERHEAD_TOKENS, alias="DEFAULT_FIXED_OVERHEAD_TOKENS", allow_inf_nan=False
    )
    default_per_message_overhead: float = Field(
        default=DEFAULT_PER_MESSAGE_OVERHEAD, alias="DEFAULT_PER_MESSAGE_OVERHEAD_TOKENS", allow_inf_nan=False
    )
    default_tokens_per_byte: float = Field(
        default=DEFAULT_TOKENS_PER_BYTE, alias="DEFAULT_TOKENS_PER_BYTE", allow_inf_nan=False
    )
    default_tokens_per_image: int = Field(default=DEFAULT_TOKENS_PER_IMAGE, alias="DEFAULT_TOKENS_PER_IMAGE")

    override_num_ctx: OverridePolicy = Field(default=OverridePolicy.if_too_small, alias="OVERRIDE_NUM_CTX")

    # System prompt manipulation
    strip_system_prompt_text: str = Field(default="", alias="STRIP_SYSTEM_PROMPT_TEXT")

    @property
    def buckets(self) -> list[int]:
        """Allowed context sizes, ascending."""
        return parse_int_list(self.buckets_raw)

    @field_validator("buckets_raw")
    @classmethod
    def _check_buckets(cls, v: str) -> str:
        try:
            values = parse_int_list(v)
        except ValueError as exc:
            raise ValueError(f"invalid buckets: {exc}") from exc
        if any(b <= 0 for b in values):
            raise ValueError("buckets must be > 0")
        if values != sorted(values):
            raise ValueError("buckets must be ascending")
        return v

    @model_validator(mode="after")
    def _check_ranges(self) -> "Settings":
        if self.min_ctx <= 0:
            raise ValueError("MIN_CTX must be > 0")
        if self.max_ctx <= 0:
            raise ValueError("MAX_CTX must be > 0")
        if self.min_ctx > self.max_ctx:
            raise ValueError("MIN_CTX must be <= MAX_CTX")
        if self.headroom < 1.0:
            raise ValueError("HEADROOM must be >= 1.0")
        if self.default_output_budget < 0 or self.max_output_budget < 0:
            raise ValueError("output budgets must be >= 0")
        if self.default_output_budget > self.max_output_budget:
            raise ValueError("DEFAULT_OUTPUT_BUDGET must be <= MAX_OUTPUT_BUDGET")
        return self


def get_settings() -> "Settings":
    """Fresh settings from the environment; invalid values are logged, then raised."""
    try:
        return Settings()  # type: ignore
    except ValidationError as exc:
        from core_logging import get_logger, record_error
        from core_logging.error_codes import ErrorCode

        record_error(
            ErrorCode.invalid_config,
            where="core_config.get_settings",
            message=f"{exc.error_count()} invalid setting(s)",
            logger=get_logger("core_config"),
            stage="config",
            fields=[".".join(str(p) for p in err["loc"]) for err in exc.errors()],
        )
        raise
