"""API route modules for the DMN coverage service.

Routers:
- decisions: decision evaluation, rule catalog and rule coverage
"""

from .decisions import router as decisions_router

__all__ = ["decisions_router"]
