"""
accrual_api -- FastAPI surface over the accrual ledger.

Run with ``uvicorn accrual_api.app:create_app --factory``.
"""

from accrual_api.app import create_app

__all__ = ["create_app"]
