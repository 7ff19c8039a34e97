"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Atomic I/O and YAML (fs)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (geometry, gcode, export).

Convenience imports:
    from sierpinski_pyramid.utils import fs
    from sierpinski_pyramid.utils.logging_config import setup_logging, push_context
"""

from . import fs
from . import logging_config

from .logging_config import push_context, setup_logging

__all__ = [
    'fs',
    'logging_config',
    'setup_logging',
    'push_context',
]
