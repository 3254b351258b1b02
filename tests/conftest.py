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
Shared fixtures: on-disk image layouts and a fake image copier.
"""
import hashlib
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from imagestore.REGISTRY.docker_normalizer import DOCKER_CONFIG_MEDIA_TYPE
from imagestore.REGISTRY.image_copier import ImageCopier


def write_blob(layout_dir: Path, document: Dict[str, Any]) -> str:
    """Stores a JSON document under blobs/sha256/ and returns its digest."""
    data = json.dumps(document).encode()
    encoded = hashlib.sha256(data).hexdigest()
    blob_dir = layout_dir / "blobs" / "sha256"
    blob_dir.mkdir(parents=True, exist_ok=True)
    (blob_dir / encoded).write_bytes(data)
    return f"sha256:{encoded}"


def write_oci_layout(layout_dir, configs: List[Dict[str, Any]]) -> Path:
    """Writes an OCI layout with one manifest per config section."""
    layout_dir = Path(layout_dir)
    layout_dir.mkdir(parents=True, exist_ok=True)
    manifests = []
    for config in configs:
        config_digest = write_blob(layout_dir, {"architecture": "amd64", "os": "linux", "config": config})
        manifest_digest = write_blob(layout_dir, {
            "schemaVersion": 2,
            "mediaType": "application/vnd.oci.image.manifest.v1+json",
            "config": {"mediaType": "application/vnd.oci.image.config.v1+json", "digest": config_digest},
            "layers": [],
        })
        manifests.append({"mediaType": "application/vnd.oci.image.manifest.v1+json", "digest": manifest_digest})
    (layout_dir / "oci-layout").write_text(json.dumps({"imageLayoutVersion": "1.0.0"}))
    (layout_dir / "index.json").write_text(json.dumps({"schemaVersion": 2, "manifests": manifests}))
    return layout_dir


def write_docker_dir(directory, config: Dict[str, Any],
                     media_type: str = DOCKER_CONFIG_MEDIA_TYPE, suffix: str = ".tar") -> Path:
    """Writes a Docker image the way the 'dir:' transport does."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    data = json.dumps({"architecture": "amd64", "config": config}).encode()
    encoded = hashlib.sha256(data).hexdigest()
    (directory / f"{encoded}{suffix}").write_bytes(data)
    (directory / "manifest.json").write_text(json.dumps({
        "schemaVersion": 2,
        "mediaType": "application/vnd.docker.distribution.manifest.v2+json",
        "config": {"mediaType": media_type, "digest": f"sha256:{encoded}"},
        "layers": [],
    }))
    return directory


class FakeCopier(ImageCopier):
    """
    Records copies and writes image layouts instead of fetching anything.
    """
    def __init__(self, configs: Optional[List[Dict[str, Any]]] = None,
                 media_type: str = DOCKER_CONFIG_MEDIA_TYPE,
                 fail_on: Optional[str] = None):
        self.configs = configs if configs is not None else [{"Entrypoint": ["/bin/sh"]}]
        self.media_type = media_type
        self.fail_on = fail_on
        self.calls = []
        self.temp_dirs = []

    def copy(self, source: str, destination: str) -> None:
        self.calls.append((source, destination))
        transport, _, path = destination.partition(":")
        if transport == "dir":
            self.temp_dirs.append(path)
        if self.fail_on and destination.startswith(self.fail_on):
            raise RuntimeError("connection reset")
        if transport == "dir":
            write_docker_dir(path, self.configs[0], media_type=self.media_type)
        elif transport == "oci":
            write_oci_layout(path, self.configs)


@pytest.fixture
def image_root(tmp_path):
    """Store directory that does not exist yet."""
    return tmp_path / "images"


@pytest.fixture
def oci_layout():
    return write_oci_layout


@pytest.fixture
def docker_dir():
    return write_docker_dir


@pytest.fixture
def make_copier():
    return FakeCopier


@pytest.fixture
def clean_environ(monkeypatch):
    for key in list(os.environ):
        if key.startswith("IMAGESTORE_"):
            monkeypatch.delenv(key)
