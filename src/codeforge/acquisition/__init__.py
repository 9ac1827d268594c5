"""Repository acquisition: cloning, scanning and releasing source trees."""

from codeforge.acquisition.base import (
    AcquiredRepository,
    RepositoryAcquirer,
    ScanResult,
    SourceFile,
)
from codeforge.acquisition.git import (
    GitAcquirer,
    build_authenticated_url,
    decode_credential,
    encode_credential,
)
from codeforge.acquisition.languages import LANGUAGE_BY_EXTENSION, detect_language, should_skip

__all__ = [
    "AcquiredRepository",
    "GitAcquirer",
    "LANGUAGE_BY_EXTENSION",
    "RepositoryAcquirer",
    "ScanResult",
    "SourceFile",
    "build_authenticated_url",
    "decode_credential",
    "detect_language",
    "encode_credential",
    "should_skip",
]
