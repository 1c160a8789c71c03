"""
Top-level package for the Services Marketplace API.

All functionality lives in submodules under ``app``; import the ASGI
application as ``marketplace_api.app.main:app``.
"""

__all__ = []
