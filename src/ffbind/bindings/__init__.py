"""
Binding generation for ffbind.

This module turns the installed FFmpeg headers into an importable cffi
declaration module:
- Header whitelist and macro filter
- C preprocessing of the whitelisted headers
- Macro constant evaluation
- Declaration extraction and artifact rendering
"""

from .generator import (
    ARTIFACT_NAME,
    BindingGenerationError,
    BindingGenerator,
    BindingOptions,
    use_prebuilt_binding,
)
from .headers import BLOCKLISTED_TYPES, HEADERS, MACRO_FILTER, HeaderWhitelist
from .macros import MacroEvaluator
from .preprocessor import CPreprocessor, PreprocessorError

__all__ = [
    "ARTIFACT_NAME",
    "BindingGenerationError",
    "BindingGenerator",
    "BindingOptions",
    "use_prebuilt_binding",
    "BLOCKLISTED_TYPES",
    "HEADERS",
    "MACRO_FILTER",
    "HeaderWhitelist",
    "MacroEvaluator",
    "CPreprocessor",
    "PreprocessorError",
]
