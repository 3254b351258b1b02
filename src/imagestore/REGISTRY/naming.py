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
Content-addressed naming of local image directories.
"""
import base64
import re

_NON_ID_CHARS = re.compile(r"[^a-z0-9]+")


def name_for(reference: str) -> str:
    """
    Maps an image reference to a directory name.

    The reference bytes are encoded with the URL-safe base64 alphabet and
    the padding is stripped, so the result is a single path segment made of
    [A-Za-z0-9_-] only. The input is not normalized.

    Args:
        reference: Image reference, e.g. 'docker://alpine:3'

    Returns:
        Directory name for the reference.
    """
    if not reference:
        raise ValueError("Empty image reference")
    encoded = base64.urlsafe_b64encode(reference.encode("utf-8"))
    return encoded.decode("ascii").rstrip("=")


def reference_for(name: str) -> str:
    """Inverse of name_for()."""
    padding = "=" * (-len(name) % 4)
    return base64.urlsafe_b64decode(name + padding).decode("utf-8")


def to_id(value: str) -> str:
    """
    Turns an arbitrary string into a lower-case, dash separated identifier.

    '/var/lib/data' -> 'var-lib-data', '8080/tcp' -> '8080-tcp'
    """
    return _NON_ID_CHARS.sub("-", value.lower()).strip("-")
