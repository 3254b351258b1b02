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
Reads runtime configuration from Docker-formatted image directories,
as written by the 'dir:' transport.
"""
import logging
from pathlib import Path
from typing import Union

from ..MODELS.image_documents import Descriptor, ImageConfig, ImageManifest
from ..MODELS.image_metadata import ImageMetadata
from .errors import FormatError
from .manifest_resolver import split_digest
from .runtime_config import load_document, merge_runtime_config

logger = logging.getLogger(__name__)

DOCKER_CONFIG_MEDIA_TYPE = "application/vnd.docker.container.image.v1+json"


class DockerConfigNormalizer:
    """
    Extracts runtime configuration from a Docker image manifest and its
    config blob. The merge rules are the same as for OCI layouts.
    """

    def normalize(self, docker_dir: Union[str, Path], dest: ImageMetadata) -> None:
        """
        Merges the image config found in docker_dir into dest.

        Args:
            docker_dir: Directory holding manifest.json and the blobs
            dest: Metadata to merge into

        Raises:
            FormatError: Unsupported config media type or digest.
            ResolutionError: Missing or unreadable manifest or config.
        """
        docker_dir = Path(docker_dir)
        manifest = load_document(docker_dir / "manifest.json", ImageManifest, dest.name)

        config_ref = manifest.config or Descriptor()
        if config_ref.media_type != DOCKER_CONFIG_MEDIA_TYPE:
            raise FormatError(f"Unsupported docker image manifest config media type "
                              f"{config_ref.media_type!r}",
                              reference=dest.name, operation="normalize")

        _, encoded = split_digest(config_ref.digest, dest.name)
        config_file = docker_dir / f"{encoded}.tar"
        if not config_file.exists() and (docker_dir / encoded).exists():
            # Newer dir: transports drop the .tar suffix
            config_file = docker_dir / encoded

        merge_runtime_config(load_document(config_file, ImageConfig, dest.name), dest)
        logger.debug(f"Normalized docker config of {dest.name}: exec={dest.exec}")
