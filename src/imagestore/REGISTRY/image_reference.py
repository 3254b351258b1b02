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
Image reference handling.
Splits transport-prefixed references like 'docker://nginx:latest',
'docker-daemon:myapp:1.0' or 'oci:/srv/images/alpine'.
"""

from dataclasses import dataclass

DOCKER_TRANSPORTS = ("docker", "docker-daemon")
DAEMON_PREFIX = "docker-daemon:"


@dataclass(frozen=True)
class ImageReference:
    """
    Transport-prefixed image reference.

    Examples:
        - docker://alpine:3 -> transport 'docker', target '//alpine:3'
        - docker-daemon:myapp:1.0 -> transport 'docker-daemon', target 'myapp:1.0'
        - oci:/srv/images/alpine -> transport 'oci', target '/srv/images/alpine'
    """

    raw: str
    transport: str
    target: str = ""

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string.

        Only the transport is split off; the rest of the string is kept
        exactly as given.

        Args:
            reference: Image reference string

        Returns:
            Parsed ImageReference object.
        """
        if not reference:
            raise ValueError("Empty image reference")

        transport, _, target = reference.partition(":")
        return cls(raw=reference, transport=transport, target=target)

    @property
    def is_docker_family(self) -> bool:
        """Whether the source delivers Docker-formatted manifests."""
        return self.transport in DOCKER_TRANSPORTS

    @property
    def build_tag(self) -> str:
        """Tag to give a locally built image so docker-daemon can find it."""
        if self.raw.startswith(DAEMON_PREFIX) and len(self.raw) > len(DAEMON_PREFIX):
            return self.raw[len(DAEMON_PREFIX):]
        return self.raw

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"ImageReference({self.raw})"
