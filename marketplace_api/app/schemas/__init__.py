"""Pydantic request models and response envelope helpers."""
