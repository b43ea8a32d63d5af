"""Custom YAML config source with conf.d directory support.

Extends pydantic-settings YamlConfigSettingsSource to support:
- Main YAML file (e.g., conf/notifier.yaml)
- conf.d directory merging (e.g., conf/notifier.d/*.yaml)
- Alphabetical file ordering in conf.d

The notifier's watch list and service sections are usually edited by hand,
so they live in YAML; secrets such as credentials come from the environment.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic_settings.sources.providers.yaml import YamlConfigSettingsSource

if TYPE_CHECKING:
    from pydantic_settings import BaseSettings


class ConfDYamlConfigSettingsSource(YamlConfigSettingsSource):
    """YAML settings source with conf.d directory support.

    Supports the standard Linux conf.d pattern:
    - conf/notifier.yaml        (base configuration)
    - conf/notifier.d/*.yaml    (override files, merged alphabetically)

    The base directory can be moved with an environment variable, e.g.
    ``NOTIFIER_CONFIG_DIR=/etc/push-notifier``.
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: str,
        confd_dir: str | None,
        config_dir_env: str = "CONFIG_DIR",
        base_dir: str = "conf",
        yaml_file_encoding: str | None = "utf-8",
    ) -> None:
        """Initialize the conf.d YAML source.

        Args:
            settings_cls: The settings class being configured.
            yaml_file: Main YAML file name (e.g., "notifier.yaml").
            confd_dir: conf.d subdirectory name, or None to disable.
            config_dir_env: Environment variable overriding the base directory.
            base_dir: Default base directory for config files.
            yaml_file_encoding: File encoding for YAML files.
        """
        config_base = Path(os.getenv(config_dir_env, base_dir))

        yaml_files: list[Path] = []

        main_file = config_base / yaml_file
        if main_file.exists():
            yaml_files.append(main_file)

        if confd_dir:
            confd_path = config_base / confd_dir
            if confd_path.is_dir():
                yaml_files.extend(sorted(confd_path.glob("*.yaml")))
                yaml_files.extend(sorted(confd_path.glob("*.yml")))
                # JSON files are valid YAML too
                yaml_files.extend(sorted(confd_path.glob("*.json")))

        self._yaml_files = yaml_files

        super().__init__(
            settings_cls=settings_cls,
            yaml_file=yaml_files if yaml_files else None,
            yaml_file_encoding=yaml_file_encoding,
        )

    def __repr__(self) -> str:
        """Return human-readable summary of configured YAML files."""
        files_str = ", ".join(str(f) for f in self._yaml_files)
        return f"{self.__class__.__name__}(yaml_files=[{files_str}])"


def create_app_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for AppSettings (conf/app.yaml, conf/app.d/)."""
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="app.yaml",
        confd_dir="app.d",
        config_dir_env="APP_CONFIG_DIR",
    )


def create_signalk_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for SignalKSettings (conf/signalk.yaml, conf/signalk.d/)."""
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="signalk.yaml",
        confd_dir="signalk.d",
        config_dir_env="SIGNALK_CONFIG_DIR",
    )


def create_notifier_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for NotifierSettings (conf/notifier.yaml, conf/notifier.d/)."""
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="notifier.yaml",
        confd_dir="notifier.d",
        config_dir_env="NOTIFIER_CONFIG_DIR",
    )


def create_logging_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for LoggingSettings (conf/logging.yaml, conf/logging.d/)."""
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="logging.yaml",
        confd_dir="logging.d",
        config_dir_env="LOG_CONFIG_DIR",
    )
