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
Models representing resolved images and the policies used to fetch them.
"""
from typing import Dict, List
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class PullPolicy(str, Enum):
    """
    Rules deciding whether a locally stored image may be reused.
    """
    NEVER = "never"
    NEW = "new"
    UPDATE = "update"


class ImagePort(BaseModel):
    """
    A port declared by an image config, e.g. '8080/tcp'.
    """
    protocol: str = "tcp"
    port: int = Field(..., ge=0, le=65535)


class ImageMetadata(BaseModel):
    """
    The resolved, persisted record of one image.

    Serialized with camelCase keys into the '<directory>.json' sidecar file
    that sits next to the image's OCI layout.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str
    directory: str = ""
    exec: List[str] = []
    working_directory: str = Field("", alias="workingDirectory")
    mount_points: Dict[str, str] = Field(default_factory=dict, alias="mountPoints")
    ports: Dict[str, ImagePort] = {}
    environment: Dict[str, str] = {}

    def to_json(self) -> str:
        """Serializes the metadata the way it is stored on disk."""
        return self.model_dump_json(by_alias=True, indent=2)
