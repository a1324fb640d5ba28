"""binforge: chunked upload, signing and bundle archives for a binary registry.

- Resumable multipart uploads with bounded concurrency
- Ed25519 multi-signing of content hashes (PyNaCl)
- Idempotent get-or-create for artifacts, versions and binaries
- Portable bundle archives (``bundle.json`` + payloads, cpio/zstd)
"""

__version__ = "0.1.0"
__description__ = "Upload, sign and bundle binaries for an artifact registry"

from binforge.core.processor import BinaryProcessor
from binforge.registry.client import RegistryClient

__all__ = ["BinaryProcessor", "RegistryClient", "__version__"]
