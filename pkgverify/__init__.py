"""Composition and static analysis reports for npm package tarballs."""

from .config import VerifyConfig, load_config
from .errors import (
    AcquisitionError,
    ManifestError,
    ManifestNotFoundError,
    SourceParseError,
    VerifyError,
    WalkError,
)
from .logging import configure_logging, get_logger
from .models import VerifyPayload
from .verify import Verifier, verify

__version__ = "0.1.0"

__all__ = [
    "AcquisitionError",
    "ManifestError",
    "ManifestNotFoundError",
    "SourceParseError",
    "Verifier",
    "VerifyConfig",
    "VerifyError",
    "VerifyPayload",
    "WalkError",
    "configure_logging",
    "get_logger",
    "load_config",
    "verify",
]
