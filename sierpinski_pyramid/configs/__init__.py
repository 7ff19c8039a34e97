"""Print profile loading and validation."""

from sierpinski_pyramid.configs.loader import (
    DEFAULT_PROFILE_PATH,
    BedSection,
    ConfigError,
    ExtrusionSection,
    FilamentChangeSection,
    PrintProfile,
    PyramidSection,
    TimingSection,
    load_config,
)

__all__ = [
    "DEFAULT_PROFILE_PATH",
    "BedSection",
    "ConfigError",
    "ExtrusionSection",
    "FilamentChangeSection",
    "PrintProfile",
    "PyramidSection",
    "TimingSection",
    "load_config",
]
