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
Local image store.
Resolves image references into cached OCI layouts plus run metadata.
"""

import logging
import os
import shutil
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from pydantic import ValidationError

from ..MODELS.image_metadata import ImageMetadata, PullPolicy
from .docker_normalizer import DockerConfigNormalizer
from .errors import (
    CacheMiss,
    FetchFailure,
    FormatError,
    LoadFailure,
    PersistenceFailure,
    PolicyViolation,
    ResolutionError,
)
from .image_copier import ImageCopier
from .image_reference import ImageReference
from .manifest_resolver import ManifestChainResolver
from .naming import name_for
from .runtime_config import load_json

logger = logging.getLogger(__name__)


class ImageStore:
    """
    Manages a local store of OCI image layouts.

    Each image lives in '<image_root>/<name>/' with its metadata in the
    sidecar file '<image_root>/<name>.json', where <name> is derived from
    the reference by name_for(). Resolved images are kept in memory for the
    lifetime of the store; at most one fetch runs per reference at a time.
    """

    def __init__(self,
                 image_root: Union[str, Path],
                 copier: ImageCopier,
                 pull_policy: PullPolicy = PullPolicy.NEW,
                 resolver: Optional[ManifestChainResolver] = None,
                 normalizer: Optional[DockerConfigNormalizer] = None):
        """
        Initialize the image store.

        Nothing is written until the first fetch.

        Args:
            image_root: Directory holding the image layouts
            copier: Collaborator transferring images between transports
            pull_policy: Policy used by image()
        """
        self.image_root = Path(image_root).expanduser().absolute()
        self.copier = copier
        self.pull_policy = PullPolicy(pull_policy)
        self.resolver = resolver or ManifestChainResolver()
        self.normalizer = normalizer or DockerConfigNormalizer()

        self._images: Dict[str, ImageMetadata] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._locks_guard = threading.Lock()

    def directory_for(self, reference: str) -> Path:
        """Get the layout directory of an image."""
        return self.image_root / name_for(reference)

    def sidecar_for(self, reference: str) -> Path:
        """Get the metadata file of an image."""
        directory = self.directory_for(reference)
        return directory.with_name(directory.name + ".json")

    def image(self, reference: str) -> ImageMetadata:
        """Resolve an image using the store's pull policy."""
        return self.resolve(reference, self.pull_policy)

    def resolve(self, reference: str, policy: Optional[PullPolicy] = None) -> ImageMetadata:
        """
        Resolve an image reference.

        Args:
            reference: Image reference, e.g. 'docker://alpine:3'
            policy: NEVER only uses the local store, NEW fetches when there
                is no usable local copy, UPDATE always fetches. Defaults to
                the store's pull policy.

        Returns:
            The image metadata.

        Raises:
            PolicyViolation: NEVER and no local copy exists.
            FetchFailure, FormatError, ResolutionError, PersistenceFailure
        """
        policy = self.pull_policy if policy is None else PullPolicy(policy)

        cached = self._images.get(reference)
        if cached is not None:
            logger.debug(f"Using resolved image {reference!r}")
            return cached

        with self._locked(reference):
            # Another thread may have resolved it meanwhile
            cached = self._images.get(reference)
            if cached is not None:
                return cached

            if policy != PullPolicy.UPDATE:
                try:
                    image = self.load(reference)
                except CacheMiss as e:
                    if policy == PullPolicy.NEVER:
                        raise PolicyViolation(f"Cannot read local image: {e.message}",
                                              reference=reference, operation="resolve") from e
                    if e.kind == LoadFailure.CORRUPT:
                        logger.warning(f"Discarding unusable local image {reference!r}: {e.message}")
                else:
                    self._images[reference] = image
                    return image

            image = self.fetch(reference)
            self._images[reference] = image
            return image

    def load(self, reference: str) -> ImageMetadata:
        """
        Load an image from the local store without fetching anything.

        A layout without sidecar file is resolved and its sidecar written.

        Raises:
            CacheMiss: No usable local copy, tagged NOT_FOUND or CORRUPT.
            PersistenceFailure: The sidecar exists but cannot be read.
        """
        directory = self.directory_for(reference)
        sidecar = self.sidecar_for(reference)

        try:
            data = load_json(sidecar, reference)
        except ResolutionError as e:
            if e.kind == LoadFailure.OTHER_IO:
                raise PersistenceFailure(e.message, reference=reference, operation="load") from e
            if e.kind == LoadFailure.NOT_FOUND and (directory / "index.json").is_file():
                return self._adopt_layout(reference, directory)
            raise CacheMiss(e.message, kind=e.kind, reference=reference, operation="load") from e

        try:
            image = ImageMetadata.model_validate(data)
        except ValidationError as e:
            raise CacheMiss(f"Invalid image metadata in {sidecar}: {e}", kind=LoadFailure.CORRUPT,
                            reference=reference, operation="load") from e

        if image.name != reference:
            raise CacheMiss(f"{sidecar} describes {image.name!r}", kind=LoadFailure.CORRUPT,
                            reference=reference, operation="load")
        if not (Path(image.directory) / "index.json").is_file():
            raise CacheMiss(f"{image.directory} holds no OCI layout", kind=LoadFailure.CORRUPT,
                            reference=reference, operation="load")

        logger.debug(f"Loaded image {reference!r} from {sidecar}")
        return image

    def fetch(self, reference: str) -> ImageMetadata:
        """
        Fetch an image into the store, replacing any previous layout.

        The image is copied and resolved in '<name>.new' next to its layout
        directory and only moved into place once that succeeded, so a failed
        fetch leaves a stored image untouched. Docker formatted sources are
        first copied into a temporary directory to read their config and
        then converted into the store.

        Returns:
            The metadata of the fetched image, already persisted.
        """
        ref = ImageReference.parse(reference)
        directory = self.directory_for(reference)
        staging = directory.with_name(directory.name + ".new")

        logger.info(f"Fetching image {reference!r}...")
        try:
            if staging.exists():
                shutil.rmtree(staging)
            staging.mkdir(mode=0o770, parents=True)
        except OSError as e:
            raise PersistenceFailure(f"Cannot create image directory: {e}",
                                     reference=reference, operation="fetch") from e

        image = ImageMetadata(name=reference, directory=str(directory))
        destination = f"oci:{staging}"

        try:
            if ref.is_docker_family:
                with self._temp_dir(reference) as tmp_dir:
                    self._copy(reference, f"dir:{tmp_dir}", reference)
                    self.normalizer.normalize(tmp_dir, image)
                    self._copy(f"dir:{tmp_dir}", destination, reference)
            else:
                self._copy(reference, destination, reference)
                self.resolver.resolve(staging, image)
            self._replace_layout(reference, staging, directory)
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

        self._write_sidecar(image)
        logger.info(f"Stored image {reference!r} in {directory}")
        return image

    def images(self) -> Dict[str, ImageMetadata]:
        """All images resolved by this store so far."""
        return dict(self._images)

    def forget(self, reference: str) -> bool:
        """
        Drop an image from the in-memory cache. The files stay on disk.

        Returns:
            True if the image was cached, False otherwise
        """
        return self._images.pop(reference, None) is not None

    def _adopt_layout(self, reference: str, directory: Path) -> ImageMetadata:
        """Builds metadata for a layout that has no sidecar file yet."""
        image = ImageMetadata(name=reference, directory=str(directory))
        try:
            self.resolver.resolve(directory, image)
        except (ResolutionError, FormatError) as e:
            raise CacheMiss(e.message, kind=LoadFailure.CORRUPT,
                            reference=reference, operation="load") from e
        self._write_sidecar(image)
        return image

    def _replace_layout(self, reference: str, staging: Path, directory: Path) -> None:
        """Moves a fetched layout into place, retiring the previous one."""
        retired = directory.with_name(directory.name + ".old")
        try:
            if retired.exists():
                shutil.rmtree(retired)
            if directory.exists():
                os.replace(directory, retired)
            try:
                os.replace(staging, directory)
            except OSError:
                if retired.exists() and not directory.exists():
                    os.replace(retired, directory)
                raise
        except OSError as e:
            raise PersistenceFailure(f"Cannot replace image directory: {e}",
                                     reference=reference, operation="fetch") from e
        shutil.rmtree(retired, ignore_errors=True)

    def _copy(self, source: str, destination: str, reference: str) -> None:
        try:
            self.copier.copy(source, destination)
        except Exception as e:
            raise FetchFailure(f"Cannot copy {source} to {destination}: {e}",
                               source=source, destination=destination,
                               reference=reference, operation="fetch") from e

    def _temp_dir(self, reference: str) -> tempfile.TemporaryDirectory:
        try:
            return tempfile.TemporaryDirectory(prefix="image-")
        except OSError as e:
            raise PersistenceFailure(f"Cannot create image temp directory: {e}",
                                     reference=reference, operation="fetch") from e

    def _write_sidecar(self, image: ImageMetadata) -> None:
        """Writes the sidecar file atomically."""
        sidecar = self.sidecar_for(image.name)
        tmp_file = sidecar.with_name(sidecar.name + ".tmp")
        try:
            with open(tmp_file, "w", encoding="utf-8") as f:
                f.write(image.to_json())
            os.chmod(tmp_file, 0o660)
            os.replace(tmp_file, sidecar)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            raise PersistenceFailure(f"Cannot write image config: {e}",
                                     reference=image.name, operation="persist") from e

    @contextmanager
    def _locked(self, reference: str) -> Iterator[None]:
        """Holds the lock of one reference; unused locks are dropped."""
        with self._locks_guard:
            lock = self._locks.setdefault(reference, threading.Lock())
            self._lock_users[reference] = self._lock_users.get(reference, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                self._lock_users[reference] -= 1
                if not self._lock_users[reference]:
                    del self._lock_users[reference]
                    del self._locks[reference]
