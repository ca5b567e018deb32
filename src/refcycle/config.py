"""
Configuration for the reference session.

Options can be given directly or loaded from a YAML file:

```yaml
previous_key: C-r
next_key: C-s
goto_key: C-o
show_context: true
only_identifier_if_in_argument: true
reference_macro: \\eqref
```
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .constants import (
    DEFAULT_GOTO_KEY,
    DEFAULT_NEXT_KEY,
    DEFAULT_PREVIOUS_KEY,
    DEFAULT_REFERENCE_MACRO,
)
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefCycleConfig:
    """Options recognized by the reference session.

    Attributes:
        previous_key: Key that steps to the previous label
        next_key: Key that steps to the next label
        goto_key: Key that jumps to the current label instead of inserting
        show_context: Show the lines around each candidate in the status text
        only_identifier_if_in_argument: Insert a bare identifier when the
            cursor is already inside the argument of a reference command
        reference_macro: Command used for the inserted reference construct
    """

    previous_key: str = DEFAULT_PREVIOUS_KEY
    next_key: str = DEFAULT_NEXT_KEY
    goto_key: str = DEFAULT_GOTO_KEY
    show_context: bool = True
    only_identifier_if_in_argument: bool = True
    reference_macro: str = DEFAULT_REFERENCE_MACRO

    def __post_init__(self) -> None:
        errors = self.validate()
        if errors:
            raise ConfigurationError("Invalid refcycle configuration:", errors)

    def validate(self) -> list[str]:
        """Return a list of problems with this configuration."""
        errors = []
        for f in fields(self):
            value = getattr(self, f.name)
            expected = bool if f.type in ("bool", bool) else str
            if not isinstance(value, expected):
                errors.append(f"{f.name} must be a {expected.__name__}, got {value!r}")
            elif expected is str and not value:
                errors.append(f"{f.name} must not be empty")

        keys = [self.previous_key, self.next_key, self.goto_key]
        if not errors and len(set(keys)) != len(keys):
            errors.append(f"previous_key, next_key and goto_key must differ, got {keys}")
        return errors

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RefCycleConfig:
        """Build a configuration from a mapping, rejecting unknown options."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration must be a mapping, got {type(data).__name__}"
            )
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                "Unknown configuration options:", [f"'{name}'" for name in unknown]
            )
        return cls(**data)


def load_config(path: str | Path) -> RefCycleConfig:
    """Load a configuration from a YAML file.

    Raises:
        ConfigurationError: If the file cannot be parsed or has invalid options
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    logger.debug("Loaded configuration from %s", path)
    return RefCycleConfig.from_dict(data)
