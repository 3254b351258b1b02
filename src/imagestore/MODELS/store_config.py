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
Models for the image store configuration.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from .image_metadata import PullPolicy


class StoreConfig(BaseModel):
    """
    Settings of an image store and the external tools it drives.
    """
    model_config = ConfigDict(extra="forbid")

    image_root: str = Field(default="~/.imagestore/images", description="Directory holding the image layouts")
    pull_policy: PullPolicy = PullPolicy.NEW

    # Trust policy handed to the image copier
    trust_policy: Optional[str] = Field(default=None, description="Path to a containers policy.json")
    insecure_policy: bool = False

    skopeo: str = "skopeo"
    docker: str = "docker"
