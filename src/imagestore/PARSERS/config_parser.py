# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Loading of the store configuration from YAML, .env files and the environment.
"""
import os
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from ..MODELS.store_config import StoreConfig

ENV_PREFIX = "IMAGESTORE_"


class ConfigError(ValueError):
    """Raised for unreadable or invalid configuration."""


class ConfigParser:
    """
    Builds a StoreConfig from several sources. Later sources win:
    defaults, YAML file, .env file, process environment, explicit overrides.
    """
    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        :param environ: Environment to read IMAGESTORE_* variables from. Defaults to os.environ.
        """
        self.environ = os.environ if environ is None else environ

    def load(self,
             config_file: Optional[str] = None,
             env_file: Optional[str] = ".env",
             overrides: Optional[Dict[str, Any]] = None) -> StoreConfig:
        """
        Loads the configuration.

        :param config_file: Optional YAML file. It must exist when given.
        :param env_file: Optional .env file, skipped when missing.
        :param overrides: Values taking precedence over every file, None values are ignored.
        :return: The validated configuration.
        :raises ConfigError: If a source cannot be parsed or a value is invalid.
        """
        values: Dict[str, Any] = {}
        if config_file:
            values.update(self.parse_yaml(config_file))
        if env_file and os.path.exists(env_file):
            values.update(self.from_environment(dotenv_values(env_file)))
        values.update(self.from_environment(self.environ))
        if overrides:
            values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return StoreConfig(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def parse_yaml(self, config_file: str) -> Dict[str, Any]:
        """
        Parses a YAML configuration file.

        :param config_file: Path to the file.
        :return: The mapping found in the file.
        """
        try:
            with open(config_file, 'r') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read configuration {config_file}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration {config_file} must be a mapping")
        return data

    @staticmethod
    def from_environment(environ: Mapping[str, Optional[str]]) -> Dict[str, Any]:
        """
        Picks the IMAGESTORE_* variables naming a StoreConfig field.

        IMAGESTORE_IMAGE_ROOT=/srv/images -> {'image_root': '/srv/images'}
        """
        values = {}
        for key, value in environ.items():
            if not key.startswith(ENV_PREFIX) or value is None:
                continue
            field = key[len(ENV_PREFIX):].lower()
            if field in StoreConfig.model_fields:
                values[field] = value
        return values
