"""Repository layer: async DB access over the casbin table (SQLite).

Keep methods thin and focused, so services avoid SQL strings.
"""
from __future__ import annotations

from .policy_repo import CasbinRepository

__all__ = ["CasbinRepository"]
