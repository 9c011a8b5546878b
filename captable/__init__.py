"""Cap table ledger engine: share classes, holdings and ownership-changing transactions."""

from .main import create_application

__all__ = ["create_application"]
