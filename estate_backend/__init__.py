"""
Backend package for the real-estate listing API.

This package provides a FastAPI application with database, blob storage,
mail and token abstractions so the service can run against Firebase and
Vercel Blob in production and against in-memory doubles locally.
"""
