"""
Backend package for the BiciRegistro API.

Provides the database, identity and storage abstractions shared by the
Cloud Functions entry points and a FastAPI application for running the
same actions as a long-lived service.
"""
