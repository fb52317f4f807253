"""
Coach API - API Routes

Route modules for the coaching, quota and billing endpoints.
"""

from .chat import router as chat_router
from .quota import router as quota_router
from .stripe_webhook import router as stripe_router

__all__ = [
    "chat_router",
    "quota_router",
    "stripe_router",
]
