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
Walks an OCI image layout from index.json to its config blobs.
"""
import logging
import re
from pathlib import Path
from typing import Optional, Tuple, Type, Union

from ..MODELS.image_documents import Descriptor, ImageConfig, ImageIndex, ImageManifest
from ..MODELS.image_metadata import ImageMetadata
from .errors import FormatError
from .runtime_config import DocumentT, load_document, merge_runtime_config

logger = logging.getLogger(__name__)

# Digest grammar of the OCI image spec; neither part can hold a path separator
_ALGORITHM = re.compile(r"[a-z0-9]+(?:[+._-][a-z0-9]+)*")
_ENCODED = re.compile(r"[a-zA-Z0-9=_-]+")


def split_digest(digest: str, reference: Optional[str] = None) -> Tuple[str, str]:
    """
    Splits 'sha256:abcd' into ('sha256', 'abcd').

    Raises:
        FormatError: If the digest has no algorithm separator or either
            part is not a valid digest component.
    """
    algorithm, sep, encoded = (digest or "").partition(":")
    if not sep or not _ALGORITHM.fullmatch(algorithm) or not _ENCODED.fullmatch(encoded):
        raise FormatError(f"Unsupported digest {digest!r}", reference=reference,
                          operation="split digest")
    return algorithm, encoded


def blob_path(layout_dir: Union[str, Path], digest: str,
              reference: Optional[str] = None) -> Path:
    """Returns the path of a blob inside an OCI layout."""
    algorithm, encoded = split_digest(digest, reference)
    return Path(layout_dir) / "blobs" / algorithm / encoded


class ManifestChainResolver:
    """
    Extracts runtime configuration from a local OCI layout.

    Every manifest listed in index.json contributes, in index order. There
    is no platform filtering, so multi-platform indexes concatenate the
    exec of each platform.
    """

    def resolve(self, oci_dir: Union[str, Path], dest: ImageMetadata) -> None:
        """
        Merges the config of every manifest in the layout into dest.

        Args:
            oci_dir: Directory holding index.json and blobs/
            dest: Metadata to merge into

        Raises:
            ResolutionError: A file of the chain is missing, not valid JSON
                or has fields of the wrong type.
            FormatError: A digest has no algorithm separator.
        """
        oci_dir = Path(oci_dir)
        index = load_document(oci_dir / "index.json", ImageIndex, dest.name)

        for descriptor in index.manifests or []:
            manifest = self._load_blob(oci_dir, descriptor, ImageManifest, dest.name)
            config = self._load_blob(oci_dir, manifest.config, ImageConfig, dest.name)
            merge_runtime_config(config, dest)

        logger.debug(f"Resolved {dest.name} from {oci_dir}: exec={dest.exec}")

    def _load_blob(self, oci_dir: Path, descriptor: Optional[Descriptor],
                   model: Type[DocumentT], reference: str) -> DocumentT:
        """Loads the JSON blob a descriptor points to."""
        digest = descriptor.digest if descriptor is not None else ""
        return load_document(blob_path(oci_dir, digest, reference), model, reference)
