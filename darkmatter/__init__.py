"""Dark Matter Studio package namespace."""

from __future__ import annotations

__version__ = "0.4.0"

__all__: list[str] = ["__version__"]
