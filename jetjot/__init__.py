"""
Backend package for JetJot.

Holds the sprint aggregate stores, the login gate with its rate limiter,
the client-side sync engine and a FastAPI application exposing them.
"""
