"""
API route modules.
"""

from .articles import router as articles_router, public_router as previews_router
from .misc import router as misc_router

__all__ = [
    "articles_router",
    "previews_router",
    "misc_router",
]
