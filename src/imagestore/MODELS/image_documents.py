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
Models for the JSON documents of OCI and Docker image layouts.
Only the fields the store reads are declared; everything else is ignored.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Descriptor(BaseModel):
    """
    Reference to a blob, as found in index.json and in manifests.
    """
    model_config = ConfigDict(populate_by_name=True)

    media_type: Optional[str] = Field(None, alias="mediaType")
    digest: str = ""


class ImageIndex(BaseModel):
    """index.json of an OCI layout."""
    manifests: Optional[List[Descriptor]] = None


class ImageManifest(BaseModel):
    """An image manifest; OCI and Docker v2 share the fields read here."""
    config: Optional[Descriptor] = None


class RuntimeConfig(BaseModel):
    """
    Runtime defaults of an image ('config' section of a config blob).
    """
    model_config = ConfigDict(populate_by_name=True)

    entrypoint: Optional[List[str]] = Field(None, alias="Entrypoint")
    cmd: Optional[List[str]] = Field(None, alias="Cmd")
    working_dir: Optional[str] = Field(None, alias="WorkingDir")
    user: Optional[str] = Field(None, alias="User")
    env: Optional[List[str]] = Field(None, alias="Env")
    exposed_ports: Optional[Dict[str, Any]] = Field(None, alias="ExposedPorts")
    volumes: Optional[Dict[str, Any]] = Field(None, alias="Volumes")


class ImageConfig(BaseModel):
    """An image config blob."""
    config: Optional[RuntimeConfig] = None
