"""
Flightcheck configuration module.

Provides the dot-path Config store and the loader that merges program,
file and environment configuration into one frozen snapshot.
"""

from .config import Config
from .loader import (
    get_config,
    get_environment_config,
    get_file_config,
    get_program_config,
    string_to_dot,
)

__all__ = [
    "Config",
    "get_config",
    "get_environment_config",
    "get_file_config",
    "get_program_config",
    "string_to_dot",
]
