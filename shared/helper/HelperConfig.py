"""Central configuration helper for the bookmark semantic index."""

import logging
import os
from pathlib import Path
from typing import Any

_MISSING = object()


class HelperConfig:
    """Reads all settings from environment variables.

    Keys are case-insensitive. An unset or empty variable falls back to the
    given default; without a default it is an error.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _get_raw(self, key: str, default: Any) -> Any:
        """Return the stripped value, or _MISSING when the default applies.

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        raw = (os.getenv(key.upper()) or "").strip()
        if raw:
            return raw
        if default is None:
            raise ValueError(f"Environment variable '{key.upper()}' is not set.")
        return _MISSING

    def get_string_val(self, key: str, default: str | None = None) -> str:
        raw = self._get_raw(key, default)
        return default if raw is _MISSING else raw

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a number; integers stay int, anything with a dot becomes float.

        Raises:
            ValueError: If the variable is missing without default or not a number.
        """
        raw = self._get_raw(key, default)
        if raw is _MISSING:
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a flag; "true", "1" and "yes" are true, anything else false."""
        raw = self._get_raw(key, default)
        if raw is _MISSING:
            return default
        return raw.lower() in ("true", "1", "yes")

    def get_list_val(self, key: str, default: list[str] | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list written as "[elem1,elem2,...]".

        Args:
            key (str): Environment variable name (case-insensitive).
            default (list[str] | None): Fallback value if the variable is not set.
            separator (str): Delimiter between the elements.
            element_type (type): Type each element is cast to.

        Raises:
            ValueError: If the variable is missing without default, or malformed.
        """
        raw = self._get_raw(key, default)
        if raw is _MISSING:
            return default
        if not raw.startswith("[") or not raw.endswith("]"):
            raise ValueError(f"Environment variable '{key.upper()}' must be in the format '[elem1{separator}elem2{separator}...]'. Got: '{raw}'")
        try:
            return [element_type(v.strip()) for v in raw[1:-1].split(separator) if v.strip()]
        except ValueError as e:
            raise ValueError(f"Environment variable '{key.upper()}' contains invalid elements: {e}. Got: '{raw}'")

    def get_path_val(self, key: str, default: str | None = None, create: bool = False) -> Path:
        """Read a filesystem path.

        Relative paths are resolved against ROOT_DIR (or the working directory
        when ROOT_DIR is not set).

        Args:
            key (str): Environment variable name (case-insensitive).
            default (str | None): Fallback path if the variable is not set.
            create (bool): Create the directory if it does not exist.

        Returns:
            Path: The resolved absolute path.
        """
        path = Path(self.get_string_val(key, default=default)).expanduser()
        if not path.is_absolute():
            path = Path(os.getenv("ROOT_DIR") or os.getcwd()) / path
        if create:
            path.mkdir(parents=True, exist_ok=True)
        return path

    def get_logger(self) -> logging.Logger:
        return self._logger
