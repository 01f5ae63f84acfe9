"""Token registry source package.

This package contains:
- config: Configuration loading and management
- registry: Token store, derived indices, supply governance, pagination
"""

from __future__ import annotations

__all__: list[str] = []
