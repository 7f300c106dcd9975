from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.domain.constants import (
    DEFAULT_ADAPTIVE_WINDOW,
    DEFAULT_PROMOTION_THRESHOLD,
    DEFAULT_SESSION_SIZE,
    MASTERY_INTERVAL,
    MAX_INTERVAL,
)
from cadence.domain.errors import ConfigurationError


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/cadence/config.toml",
        Path.home() / ".cadence.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for cadence.
    Supports loading from:
    1. Environment variables (CADENCE_*)
    2. Config file (~/.config/cadence/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        extra="ignore",
    )

    # Paths
    deck_path: Path | None = None
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".config/cadence/progress")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/cadence/logs")

    # Study
    user_id: str = "default"
    session_size: int = DEFAULT_SESSION_SIZE

    # Scheduling
    mastery_interval_days: int = MASTERY_INTERVAL
    max_interval_days: int = MAX_INTERVAL

    # Adaptive difficulty
    adaptive_window: int = DEFAULT_ADAPTIVE_WINDOW
    promotion_threshold: float = DEFAULT_PROMOTION_THRESHOLD

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Find the first existing file
        toml_file = None
        for f in config_files():
            if f.exists():
                toml_file = f
                break

        # Later sources have lower priority: init (CLI) > env > TOML
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("deck_path", mode="before")
    @classmethod
    def resolve_deck_path(cls, v: Any) -> Path | None:
        if v is None or v == "":
            return None
        return Path(v).expanduser().resolve()

    @field_validator("data_dir", "log_dir", mode="before")
    @classmethod
    def resolve_dirs(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("session_size", "adaptive_window", "mastery_interval_days")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("promotion_threshold")
    @classmethod
    def must_be_ratio(cls, v: float) -> float:
        if not 0 < v <= 1:
            raise ValueError("must be in (0, 1]")
        return v

    @model_validator(mode="after")
    def check_interval_bounds(self) -> "AppConfig":
        if self.max_interval_days < self.mastery_interval_days:
            raise ValueError("max_interval_days must not be below mastery_interval_days")
        return self


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. cli_overrides (passed from Typer)

    Raises:
        ConfigurationError: If any layer holds an invalid value.
    """
    # Typer passes None for options the user did not set
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    try:
        return AppConfig(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
