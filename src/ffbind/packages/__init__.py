"""Host platform detection for ffbind."""

from .platform_utils import PlatformDetector, PlatformError

__all__ = [
    "PlatformDetector",
    "PlatformError",
]
