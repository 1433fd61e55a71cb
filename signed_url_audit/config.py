"""Harness configuration from defaults, a YAML file and the environment."""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = "harness-config.yaml"

ENV_VARS: Mapping[str, str] = {
    "gcloud_path": "GCLOUD_PATH",
    "bucket_name": "TEST_BUCKET_NAME",
    "object_prefix": "TEST_OBJECT_PREFIX",
    "key_file_path": "KEY_FILE_PATH",
    "signed_url_duration": "SIGNED_URL_DURATION",
}

CLI_ENVIRONMENT: Mapping[str, str] = {
    "CLOUDSDK_PYTHON": "python3",
    "CLOUDSDK_PYTHON_SITEPACKAGES": "1",
}


class HarnessConfig(BaseModel):
    """Settings consumed by the storage commands and the audits."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    gcloud_path: str = Field(default="gcloud", description="Storage CLI executable")
    bucket_name: str = Field(default="example_bucket1sy", description="Test bucket")
    object_prefix: str = Field(
        default="test-object-", description="Prefix for objects created by tests"
    )
    key_file_path: str = Field(
        default="tests/resources/key.json",
        description="Private key used to sign URLs",
    )
    signed_url_duration: str = Field(
        default="1h", description="Validity of generated signed URLs"
    )

    @property
    def cli_environment(self) -> Mapping[str, str]:
        """Environment passed to every storage CLI invocation."""
        return dict(CLI_ENVIRONMENT)


def find_config_file(config_file: Path | None = None) -> Path | None:
    """Locate the config file: explicit path, working directory, then home."""
    candidates = (
        [config_file]
        if config_file is not None
        else [Path(CONFIG_FILE_NAME), Path.home() / CONFIG_FILE_NAME]
    )
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Read settings from a YAML file.

    Raises:
        ValueError: If the file is not valid YAML or not a mapping

    """
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping in {path}, got {type(data).__name__}")
    return data


def load_config(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> HarnessConfig:
    """Build the configuration.

    Environment variables override the file, which overrides the defaults.
    Empty environment values are ignored.
    """
    environ = os.environ if environ is None else environ

    file_values: Mapping[str, Any] = {}
    if (path := find_config_file(config_file)) is not None:
        file_values = load_config_file(path)
        log.info("Loaded configuration from %s", path.absolute())
    else:
        log.warning("Could not find %s. Using default values.", CONFIG_FILE_NAME)

    values: dict[str, Any] = dict(file_values)
    sources: dict[str, str] = {key: "config file" for key in file_values}
    for key, env_var in ENV_VARS.items():
        if env_value := environ.get(env_var):
            values[key] = env_value
            sources[key] = f"environment variable {env_var}"

    config = HarnessConfig.model_validate(values)
    log_configuration(config, sources)
    return config


def log_configuration(config: HarnessConfig, sources: Mapping[str, str]) -> None:
    """Log each setting with where its value came from."""
    log.info("=== Harness Configuration ===")
    for key, value in config.model_dump().items():
        log.info("%s = %s (%s)", key, value, sources.get(key, "default value"))
    log.info("=============================")
