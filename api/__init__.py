"""
HTTP API for the storefront promotion service.

See api/main.py for the FastAPI application.
"""
