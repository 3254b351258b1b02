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
Reading image JSON documents and merging runtime defaults into metadata.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..MODELS.image_documents import ImageConfig
from ..MODELS.image_metadata import ImageMetadata, ImagePort
from .errors import LoadFailure, ResolutionError
from .naming import to_id

logger = logging.getLogger(__name__)

DocumentT = TypeVar("DocumentT", bound=BaseModel)


def load_json(path: Union[str, Path], reference: Optional[str] = None) -> Dict[str, Any]:
    """
    Loads a JSON object from a file.

    Raises:
        ResolutionError: tagged NOT_FOUND, CORRUPT or OTHER_IO.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ResolutionError(f"{path} does not exist", kind=LoadFailure.NOT_FOUND,
                              reference=reference, operation="read") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ResolutionError(f"{path} is not valid JSON: {e}", kind=LoadFailure.CORRUPT,
                              reference=reference, operation="read") from e
    except OSError as e:
        raise ResolutionError(f"cannot read {path}: {e}", kind=LoadFailure.OTHER_IO,
                              reference=reference, operation="read") from e

    if not isinstance(data, dict):
        raise ResolutionError(f"{path} does not hold a JSON object", kind=LoadFailure.CORRUPT,
                              reference=reference, operation="read")
    return data


def load_document(path: Union[str, Path], model: Type[DocumentT],
                  reference: Optional[str] = None) -> DocumentT:
    """
    Loads a JSON file and validates it against model.

    Raises:
        ResolutionError: As load_json; a document whose fields have the
            wrong types is CORRUPT.
    """
    data = load_json(path, reference)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ResolutionError(f"{path} is not a valid {model.__name__}: {e}",
                              kind=LoadFailure.CORRUPT, reference=reference,
                              operation="read") from e


def merge_runtime_config(config_blob: ImageConfig, dest: ImageMetadata) -> None:
    """
    Merges the runtime defaults of an image config blob into dest.

    Entrypoint and then Cmd are appended onto dest.exec. The working
    directory is only taken if dest has none yet, and environment variables,
    ports and volumes never replace entries dest already has.
    """
    config = config_blob.config
    if config is None:
        return

    if config.entrypoint:
        dest.exec.extend(config.entrypoint)
    if config.cmd:
        dest.exec.extend(config.cmd)

    if config.working_dir and not dest.working_directory:
        dest.working_directory = config.working_dir

    for entry in config.env or []:
        key, sep, value = entry.partition("=")
        if sep and key not in dest.environment:
            dest.environment[key] = value

    for spec in config.exposed_ports or {}:
        port, _, protocol = spec.partition("/")
        if not port.isdecimal() or int(port) > 65535:
            logger.warning(f"Ignoring invalid exposed port {spec!r} of {dest.name}")
            continue
        dest.ports.setdefault(to_id(spec), ImagePort(protocol=protocol or "tcp", port=int(port)))

    for path in config.volumes or {}:
        dest.mount_points.setdefault(path, to_id(path))

    # User has no metadata field yet
    if config.user:
        logger.debug(f"Image {dest.name} runs as user {config.user!r}")
