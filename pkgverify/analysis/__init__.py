"""Default collaborators: source analysis, minification and license detection."""

from .base import Extractor, LicenseDetector, ManifestReader, MinifiedDetector, SourceAnalyzer
from .javascript import analyze_source
from .licenses import detect_licenses
from .minified import looks_minified

__all__ = [
    "Extractor",
    "LicenseDetector",
    "ManifestReader",
    "MinifiedDetector",
    "SourceAnalyzer",
    "analyze_source",
    "detect_licenses",
    "looks_minified",
]
