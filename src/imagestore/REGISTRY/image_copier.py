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
Transfer of images between transports.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from ..RUNNERS.command_runner import CommandRunner

logger = logging.getLogger(__name__)


class ImageCopier(ABC):
    """Copies and verifies images between two transport references."""

    @abstractmethod
    def copy(self, source: str, destination: str) -> None:
        """
        Copy an image.

        Args:
            source: Source reference, e.g. 'docker://alpine:3'
            destination: Destination reference, e.g. 'oci:/srv/images/x'

        Raises:
            Exception: Any failure; the store wraps it into a FetchFailure.
        """
        pass


class SkopeoCopier(ImageCopier):
    """
    Copies images with 'skopeo copy'.

    The trust policy is fixed at construction: an explicit policy.json, the
    'accept anything' policy, or skopeo's system default.
    """

    def __init__(self,
                 trust_policy: Optional[str] = None,
                 insecure_policy: bool = False,
                 executable: str = "skopeo",
                 runner: Optional[CommandRunner] = None):
        self.trust_policy = trust_policy
        self.insecure_policy = insecure_policy
        self.executable = executable
        self.runner = runner or CommandRunner()

    def command(self, source: str, destination: str) -> List[str]:
        """Builds the skopeo command line for a copy."""
        cmd = [self.executable]
        if self.insecure_policy:
            cmd.append("--insecure-policy")
        elif self.trust_policy:
            cmd.extend(["--policy", self.trust_policy])
        cmd.extend(["copy", source, destination])
        return cmd

    def copy(self, source: str, destination: str) -> None:
        logger.info(f"Copying image {source} -> {destination}")
        result = self.runner.check(self.command(source, destination))
        if result.stdout:
            logger.debug(result.stdout.strip())
