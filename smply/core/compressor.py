# Copyright 2026 Pramod Kumar Voola
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

# -----------------------------------------------------------------------------
# THE COMPRESSOR
# -----------------------------------------------------------------------------
# Responsibility: gzip the final artifact before upload.
# The header mtime is pinned to 0 so identical input gives identical bytes.
# -----------------------------------------------------------------------------

import gzip
import zlib

from smply.core.bundler import BuildError

COMPRESSION_LEVEL = 9


def compress(code: bytes) -> bytes:
    """
    Gzip artifact bytes deterministically.

    Raises:
        BuildError: If compression fails.
    """
    try:
        return gzip.compress(code, compresslevel=COMPRESSION_LEVEL, mtime=0)
    except (zlib.error, OSError, TypeError) as e:
        raise BuildError("<artifact>", f"compression failed: {e}") from e


def decompress(data: bytes) -> bytes:
    """Inverse of compress()."""
    try:
        return gzip.decompress(data)
    except (zlib.error, OSError, EOFError) as e:
        raise BuildError("<artifact>", f"decompression failed: {e}") from e
