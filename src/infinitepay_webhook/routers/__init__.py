# Routers package
from . import infinitepay_router

__all__ = [
    "infinitepay_router",
]
