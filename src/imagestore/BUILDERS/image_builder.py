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
Builders producing local images from Dockerfiles on demand.
"""
import logging
import os
from abc import ABC, abstractmethod
from typing import List, Optional

from ..MODELS.image_metadata import ImageMetadata, PullPolicy
from ..REGISTRY.errors import BuildFailure, PolicyViolation
from ..REGISTRY.image_reference import ImageReference
from ..REGISTRY.image_store import ImageStore
from ..RUNNERS.command_runner import CommandError, CommandRunner

logger = logging.getLogger(__name__)


class BuildTool(ABC):
    """
    External tool building an image from a Dockerfile.
    """
    @abstractmethod
    def build(self, tag: str, dockerfile_dir: str, context_dir: str) -> None:
        """
        Builds an image and tags it.

        :param tag: Tag of the built image.
        :param dockerfile_dir: Directory containing the Dockerfile.
        :param context_dir: Directory the tool runs in.
        :raises CommandError: If the tool fails.
        """
        pass


class DockerBuildTool(BuildTool):
    """
    Builds images with 'docker build' so that they show up in the daemon.
    """
    def __init__(self, executable: str = "docker", runner: Optional[CommandRunner] = None):
        self.executable = executable
        self.runner = runner or CommandRunner()

    def command(self, tag: str, dockerfile_dir: str) -> List[str]:
        return [self.executable, "build", "-t", tag, "--rm", dockerfile_dir]

    def build(self, tag: str, dockerfile_dir: str, context_dir: str) -> None:
        result = self.runner.check(self.command(tag, dockerfile_dir), cwd=context_dir)
        if result.stdout:
            logger.debug(result.stdout.strip())


class ImageBuilder:
    """
    Builds images missing from the store and resolves them afterwards.
    """
    def __init__(self, store: ImageStore, build_tool: Optional[BuildTool] = None, base_dir: str = "."):
        """
        Initializes the ImageBuilder.

        :param store: The store the built images are resolved into.
        :param build_tool: Tool running the build. Defaults to docker.
        :param base_dir: The base directory for resolving relative paths.
        """
        self.store = store
        self.build_tool = build_tool or DockerBuildTool()
        self.base_dir = base_dir

    def build_image(self, reference: str, dockerfile: str,
                    context_path: Optional[str] = None) -> ImageMetadata:
        """
        Returns the stored image for reference, building it first if the
        store does not have it yet.

        :param reference: Image reference, usually 'docker-daemon:<tag>'.
        :param dockerfile: Path to the Dockerfile.
        :param context_path: Directory to build in. Defaults to the Dockerfile's directory.
        :return: The resolved image metadata.
        :raises BuildFailure: If the build tool fails.
        """
        try:
            return self.store.resolve(reference, PullPolicy.NEVER)
        except PolicyViolation:
            logger.debug(f"Image {reference!r} not stored yet, building it")

        tag = ImageReference.parse(reference).build_tag
        dockerfile_path = os.path.abspath(os.path.join(self.base_dir, dockerfile))
        dockerfile_dir = os.path.dirname(dockerfile_path)
        if not context_path:
            context_path = dockerfile_dir
        else:
            context_path = os.path.abspath(os.path.join(self.base_dir, context_path))

        logger.info(f"Building docker image {tag!r} from {dockerfile_path!r}...")
        try:
            self.build_tool.build(tag, dockerfile_dir, context_path)
        except CommandError as e:
            raise BuildFailure(str(e), output=e.result.output,
                               reference=reference, operation="build") from e

        return self.store.resolve(reference, PullPolicy.UPDATE)
