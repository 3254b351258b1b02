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
Errors raised while resolving, fetching, and building images.

Every error carries the operation and the image reference it concerns;
the underlying cause is chained with ``raise ... from``.
"""
from enum import Enum
from typing import Optional


class LoadFailure(str, Enum):
    """Why a local file could not be used."""

    NOT_FOUND = "not-found"
    CORRUPT = "corrupt"
    OTHER_IO = "io"


class ImageError(Exception):
    """Base class for all image store errors."""

    def __init__(self, message: str, reference: Optional[str] = None,
                 operation: Optional[str] = None):
        self.message = message
        self.reference = reference
        self.operation = operation
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = []
        if self.operation:
            parts.append(self.operation)
        if self.reference:
            parts.append(repr(self.reference))
        prefix = " ".join(parts)
        return f"{prefix}: {self.message}" if prefix else self.message


class CacheMiss(ImageError):
    """No usable local copy of an image exists."""

    def __init__(self, message: str, kind: LoadFailure = LoadFailure.NOT_FOUND, **kwargs):
        self.kind = kind
        super().__init__(message, **kwargs)


class PolicyViolation(ImageError):
    """The pull policy forbids fetching an image that is not stored locally."""


class FetchFailure(ImageError):
    """The image copier failed to transfer an image."""

    def __init__(self, message: str, source: str = "", destination: str = "", **kwargs):
        self.source = source
        self.destination = destination
        super().__init__(message, **kwargs)


class FormatError(ImageError, ValueError):
    """Unsupported media type or malformed digest."""


class ResolutionError(ImageError):
    """An image layout exists but could not be read."""

    def __init__(self, message: str, kind: LoadFailure = LoadFailure.OTHER_IO, **kwargs):
        self.kind = kind
        super().__init__(message, **kwargs)


class PersistenceFailure(ImageError):
    """A directory or sidecar file could not be created, read or written."""


class BuildFailure(ImageError):
    """The external build tool exited with an error."""

    def __init__(self, message: str, output: str = "", **kwargs):
        self.output = output
        super().__init__(message, **kwargs)
