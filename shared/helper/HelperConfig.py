"""Environment-backed configuration helper."""

import logging
import os
from typing import Any, Callable

_TRUTHY = ("true", "1", "yes")


class HelperConfig:
    """Reads every setting of the service from environment variables.

    Keys are case-insensitive. Empty values count as unset, so an empty
    ``FOO=`` in a compose file falls back to the default instead of
    overriding it with an empty string. A default of None makes a setting
    mandatory: every getter then raises ValueError when it is unset.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _resolve(self, key: str, default: Any, parse: Callable[[str], Any]) -> Any:
        name = key.upper()
        raw = (os.getenv(name) or "").strip()
        if not raw:
            if default is None:
                raise ValueError(f"Environment variable '{name}' is not set.")
            return default
        return parse(raw)

    def get_string_val(self, key: str, default: str | None = None) -> str:
        return self._resolve(key, default, str)

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a number; "0.7" becomes a float and "5" an int.

        Raises:
            ValueError: If unset without default or not numeric.
        """
        def parse(raw: str) -> float | int:
            try:
                return float(raw) if "." in raw else int(raw)
            except ValueError:
                raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

        return self._resolve(key, default, parse)

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        return self._resolve(key, default, lambda raw: raw.lower() in _TRUTHY)

    def get_choice_val(self, key: str, choices: list[str], default: str | None = None) -> str:
        """Read a lowercased string that must be one of ``choices``.

        Raises:
            ValueError: If unset without default or not an allowed value.
        """
        val = self.get_string_val(key, default=default).lower()
        if val not in choices:
            raise ValueError(f"Environment variable '{key.upper()}' must be one of {choices}. Got: '{val}'.")
        return val

    def get_list_val(self, key: str, default: list[str] | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a bracketed list such as ``[condo-1,condo-2]``.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (list[str] | None): Value when unset.
            separator (str): Element delimiter inside the brackets.
            element_type (type): Cast applied to every element.

        Raises:
            ValueError: If unset without default, not bracketed, or an
                element cannot be cast.
        """
        def parse(raw: str) -> list:
            if not (raw.startswith("[") and raw.endswith("]")):
                raise ValueError(f"Environment variable '{key.upper()}' must look like '[a{separator}b]'. Got: '{raw}'.")
            items = [item.strip() for item in raw[1:-1].split(separator)]
            try:
                return [element_type(item) for item in items if item]
            except ValueError as e:
                raise ValueError(f"Environment variable '{key.upper()}' holds a value that is not {element_type.__name__}: {e}")

        return self._resolve(key, default, parse)

    def get_logger(self) -> logging.Logger:
        return self._logger
