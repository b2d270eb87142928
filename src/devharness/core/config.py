"""Harness settings and per-component configuration models."""

from __future__ import annotations

import tempfile
from enum import Enum
from pathlib import Path

import platformdirs
from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from devharness.core.base import BaseConfig
from devharness.core.log import Logger
from devharness.core.yaml_settings import YamlWithIncludesSettingsSource


class UserDataFlashOption(str, Enum):
    """How the user data partition is handled while flashing."""

    WIPE = "wipe"
    TESTS_ZIP = "tests_zip"
    RETAIN = "retain"
    FORCE_WIPE = "force_wipe"

    @classmethod
    def from_string(cls, value: str) -> "UserDataFlashOption":
        """Parse an option name case-insensitively.

        Raises:
            ValueError: If value names no option
        """
        try:
            return cls(value.lower())
        except ValueError:
            valid = ", ".join(o.value for o in cls)
            raise ValueError(
                f"Invalid user data flash option '{value}'. "
                f"Valid options: {valid}"
            ) from None


# ============================================================
# CONFIG MODELS (loaded from YAML/env or built in code)
# ============================================================

class FlasherConfig(BaseConfig):
    """Device flashing configuration."""

    user_data_option: UserDataFlashOption = Field(
        default=UserDataFlashOption.RETAIN,
        description=(
            "User data handling: 'wipe', 'tests_zip', 'retain' or "
            "'force_wipe'"
        ),
    )
    metadata_file_name: str = Field(
        default="android-info.txt",
        description=(
            "Name of the firmware requirements file inside the device "
            "image archive"
        ),
    )
    command_timeout: float = Field(
        default=60.0,
        description="Timeout in seconds for short bootloader commands",
    )
    flash_timeout: float = Field(
        default=600.0,
        description="Timeout in seconds for flashing a single image",
    )
    erase_cache: bool = Field(
        default=True,
        description="Erase the cache partition after the system image",
    )


class PreparerConfig(BaseConfig):
    """Target preparation configuration."""

    boot_timeout: float = Field(
        default=300.0,
        description=(
            "Seconds to wait for the device to come online after flashing"
        ),
    )
    skip_flash: bool = Field(
        default=False,
        description="Skip flashing and only wait for the device",
    )


def _default_log_root() -> Path:
    return Path(platformdirs.user_state_dir("devharness", appauthor=False))


# ============================================================
# SETTINGS (YAML + .env + environment)
# ============================================================

class HarnessSettings(BaseSettings):
    """Complete harness configuration.

    Loaded from, highest priority first:
    1. Constructor arguments
    2. YAML files (package defaults, user config, ./devharness.yaml,
       and explicit files, with include: support)
    3. .env file
    4. Environment variables (DEVHARNESS_FLASHER__USER_DATA_OPTION=wipe)
    """

    log: Logger = Field(
        default_factory=Logger,
        description="Template for each invocation's logger",
    )
    log_root: Path = Field(
        default_factory=_default_log_root,
        description="Root directory for invocation log files",
    )
    flasher: FlasherConfig = Field(
        default_factory=FlasherConfig,
        description="Device flashing settings",
    )
    preparer: PreparerConfig = Field(
        default_factory=PreparerConfig,
        description="Target preparation settings",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DEVHARNESS_",
        env_nested_delimiter="__",
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings source priority.

        Priority order (highest to lowest):
        1. init_settings (direct instantiation arguments)
        2. YAML files with include support
        3. .env file
        4. Environment variables
        5. File secrets
        """
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )


def temporary_log_root() -> Path:
    """Directory for invocations run without explicit settings."""
    return Path(tempfile.gettempdir()) / "devharness"


__all__ = [
    "UserDataFlashOption",
    "FlasherConfig",
    "PreparerConfig",
    "HarnessSettings",
    "temporary_log_root",
]
