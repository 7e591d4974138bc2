"""
Centralized configuration for the call_chain package.

All tunable constants and limits are defined here as a single dataclass to
avoid scattering magic numbers across modules.
"""

import os
from dataclasses import dataclass, field
from typing import List


@dataclass
class CallChainConfig:
    """
    Configuration object for call-chain analysis.
    Instantiate with defaults or override specific values.

    Example:
        config = CallChainConfig(max_depth=5)
        config = CallChainConfig.from_env()
    """

    # --- Traversal ---
    max_depth: int = 10
    default_direction: str = "up"

    # --- Lexical scanning ---
    detect_regex_literals: bool = True

    # --- Project discovery ---
    extensions: List[str] = field(default_factory=lambda: [".java"])
    exclude_dirs: List[str] = field(default_factory=list)
    exclude_globs: List[str] = field(default_factory=list)
    file_encoding: str = "utf-8"
    max_files: int = 20000

    # --- Logging ---
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "CallChainConfig":
        """
        Create a configuration from environment variables.
        Environment variables are prefixed with CALLCHAIN_.
        """
        kwargs = {}

        env_map = {
            "CALLCHAIN_MAX_DEPTH": ("max_depth", int),
            "CALLCHAIN_DIRECTION": "default_direction",
            "CALLCHAIN_DETECT_REGEX": ("detect_regex_literals", _parse_bool),
            "CALLCHAIN_EXTENSIONS": ("extensions", _parse_list),
            "CALLCHAIN_EXCLUDE_DIRS": ("exclude_dirs", _parse_list),
            "CALLCHAIN_MAX_FILES": ("max_files", int),
            "CALLCHAIN_ENCODING": "file_encoding",
            "CALLCHAIN_LOG_LEVEL": "log_level",
        }

        for env_key, field_info in env_map.items():
            val = os.environ.get(env_key)
            if val is None:
                continue

            if isinstance(field_info, str):
                kwargs[field_info] = val
            else:
                field_name, converter = field_info
                try:
                    kwargs[field_name] = converter(val)
                except (ValueError, TypeError):
                    pass

        return cls(**kwargs)

    def validate(self) -> List[str]:
        """
        Validate configuration values and return list of warnings.
        Returns empty list if all values are valid.
        """
        warnings = []

        if self.max_depth < 1:
            warnings.append(f"max_depth must be >= 1, got {self.max_depth}")
        if self.max_depth > 50:
            warnings.append(f"max_depth={self.max_depth} is very high, traversal may be slow")

        if self.default_direction.strip().lower() not in ("up", "down"):
            warnings.append(f"default_direction must be 'up' or 'down', got '{self.default_direction}'")

        if not self.extensions:
            warnings.append("extensions is empty, no project files will be scanned")

        if self.max_files < 1:
            warnings.append(f"max_files must be >= 1, got {self.max_files}")

        return warnings


def _parse_bool(value: str) -> bool:
    cleaned = value.strip().lower()
    if cleaned in ("1", "true", "yes", "on"):
        return True
    if cleaned in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# Module-level default configuration instance
DEFAULT_CONFIG = CallChainConfig()
