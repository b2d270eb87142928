"""YAML configuration loading with include directive support."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

from devharness.core.log import logger


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """YAML settings source with include: directive support.

    Always loads package defaults from defaults/default.yaml, then
    the user and project config files when they exist, then any
    files named by the settings class (or passed explicitly).
    include: directives are processed recursively within each file.
    Sources are deep merged:
        defaults < user config < project config < explicit files.
    """

    def __init__(
        self, settings_cls: type[BaseSettings], yaml_file=None
    ):
        """Initialize the source.

        Args:
            settings_cls: The Settings class being initialized
            yaml_file: Optional override for the explicit file(s)
        """
        base = yaml_file or settings_cls.model_config.get("yaml_file")
        super().__init__(settings_cls, base)

    def _read_files(self, files):
        """Load defaults, user config, project config and explicit files.

        Args:
            files: Explicit file path(s), highest priority

        Returns:
            Deep-merged dictionary of all loaded data
        """
        result = {}

        files_to_load = [
            Path(__file__).parent.parent / "defaults" / "default.yaml",
            Path(user_config_dir("devharness", appauthor=False))
            / "devharness.yaml",
            Path("devharness.yaml"),
        ]

        if files:
            if isinstance(files, (str, os.PathLike)):
                files = [files]
            files_to_load.extend(Path(f).expanduser() for f in files)

        loaded = set()
        for file_path in files_to_load:
            resolved = file_path.resolve()
            if resolved in loaded:
                continue
            if file_path.is_file():
                loaded.add(resolved)
                logger.debug(
                    "Loading configuration", file=str(file_path)
                )
                data = self._load_file_recursive(file_path, set())
                result = self._deep_merge(result, data)
            else:
                logger.debug(
                    "Configuration file not found (skipping)",
                    file=str(file_path),
                )

        return result

    def _load_file_recursive(
        self, filepath: Path, visited: set[Path]
    ) -> dict:
        """Load file and process include: directives recursively.

        Args:
            filepath: Path to YAML file to load
            visited: Files already on the current include chain

        Returns:
            Dictionary with all includes resolved and merged

        Raises:
            ValueError: If a circular include is detected
        """
        filepath = filepath.resolve()
        if filepath in visited:
            raise ValueError(f"Circular include: {filepath}")
        visited.add(filepath)

        with open(filepath) as f:
            data = yaml.safe_load(f) or {}

        if "include" in data:
            includes = data.pop("include")
            if isinstance(includes, str):
                includes = [includes]

            for inc in includes:
                inc_path = self._resolve_path(inc, filepath)
                inc_data = self._load_file_recursive(
                    inc_path, visited.copy()
                )
                # The including file wins over what it includes
                data = self._deep_merge(inc_data, data)

        return data

    def _resolve_path(
        self, include_path: str, relative_to: Path
    ) -> Path:
        """Resolve include path relative to the including file."""
        path = Path(include_path).expanduser()
        if path.is_absolute():
            return path
        return (relative_to.parent / path).resolve()

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Deep merge override into base (override wins)."""
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
