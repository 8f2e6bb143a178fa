from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_serializer,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import TomlConfigSettingsSource

from .config import HOME_CONFIG_PATH, ConfigError, read_config


class DiscordSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bot_token: SecretStr | None = None

    @field_validator("bot_token", mode="before")
    @classmethod
    def _validate_bot_token(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("bot_token must be a string")
        return value

    @field_serializer("bot_token")
    def _dump_token(self, value: SecretStr | None) -> str | None:
        return value.get_secret_value() if value else None


class HandlerSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="forbid",
        env_prefix="CHATCMD__",
        env_nested_delimiter="__",
    )

    prefix: str = "~"
    enable_command_list: bool = True
    enable_inspect_command: bool = True
    clean_outdated_cooldowns: bool = True
    workers: int | None = Field(default=None, ge=1)
    state_path: Path | None = None

    discord: DiscordSettings = Field(default_factory=DiscordSettings)

    @field_validator("prefix", mode="before")
    @classmethod
    def _validate_prefix(cls, value: Any) -> Any:
        if not isinstance(value, str):
            raise ValueError("prefix must be a string")
        if not value or value != value.strip():
            raise ValueError("prefix must be non-empty without surrounding spaces")
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def load_settings(path: str | Path | None = None) -> tuple[HandlerSettings, Path]:
    cfg_path = _resolve_config_path(path)
    read_config(cfg_path)
    return _load_settings_from_path(cfg_path), cfg_path


def load_settings_if_exists(
    path: str | Path | None = None,
) -> tuple[HandlerSettings, Path] | None:
    cfg_path = _resolve_config_path(path)
    if cfg_path.exists():
        read_config(cfg_path)
        return _load_settings_from_path(cfg_path), cfg_path
    return None


def require_discord(settings: HandlerSettings, config_path: Path | None) -> str:
    token = settings.discord.bot_token
    if token is None or not token.get_secret_value().strip():
        where = config_path if config_path is not None else "the environment"
        raise ConfigError(f"Missing discord bot token in {where}.")
    return token.get_secret_value().strip()


def _resolve_config_path(path: str | Path | None) -> Path:
    return Path(path).expanduser() if path else HOME_CONFIG_PATH


def _load_settings_from_path(cfg_path: Path) -> HandlerSettings:
    cfg = dict(HandlerSettings.model_config)
    cfg["toml_file"] = cfg_path
    Bound = type(
        "HandlerSettingsBound",
        (HandlerSettings,),
        {"model_config": SettingsConfigDict(**cfg)},
    )
    try:
        return Bound()
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {cfg_path}: {exc}") from exc
    except Exception as exc:  # pragma: no cover - safety net
        raise ConfigError(f"Failed to load config {cfg_path}: {exc}") from exc
