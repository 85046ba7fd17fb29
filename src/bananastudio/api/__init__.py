"""Banana Studio — FastAPI REST API layer.

This package contains the FastAPI application, Pydantic request models, and
the upload handling rules.

Modules
-------
main
    FastAPI application factory, route handlers and the ``main()`` CLI entry
    point.
models
    Pydantic models for request validation.
uploads
    Upload validation and storage helpers.
"""
