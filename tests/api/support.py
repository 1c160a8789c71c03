# Shared helpers for API endpoint tests.
# Users and services are inserted straight into the in-memory database so
# each test can start from exactly the state it needs.
# The scoped TestClient runs the app's startup hook, which creates the indexes.

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi.testclient import TestClient

from marketplace_api.app.core.db import REVIEWS, SERVICES, USERS, get_database, new_document
from marketplace_api.app.core.security import create_access_token, hash_password
from marketplace_api.app.main import app

PASSWORD = "Secret#123"


def run(coro: Any) -> Any:
    """Run a coroutine from synchronous test code."""

    return asyncio.run(coro)


@contextmanager
def api_test_client(*, raise_server_exceptions: bool = True) -> Iterator[TestClient]:
    """Yield a TestClient whose lifespan covers the test body."""

    with TestClient(app, raise_server_exceptions=raise_server_exceptions) as client:
        yield client


def make_user(
    *,
    name: str = "Nino",
    email: str = "nino@example.com",
    phone: str = "+995555123456",
    role: str = "customer",
    verified: bool = True,
    password: str = PASSWORD,
) -> dict[str, Any]:
    """Insert a user document and return it with its ``_id``."""

    user = new_document(
        {
            "name": name,
            "email": email,
            "phone": phone,
            "password": hash_password(password),
            "role": role,
            "isEmailVerified": verified,
            "isPhoneVerified": verified,
            "passwordChangedAt": None,
        }
    )
    result = run(get_database()[USERS].insert_one(user))
    user["_id"] = result.inserted_id
    return user


def make_provider(**overrides: Any) -> dict[str, Any]:
    fields = {
        "name": "Giorgi",
        "email": "giorgi@example.com",
        "phone": "+995599000111",
        "role": "service_provider",
    }
    fields.update(overrides)
    return make_user(**fields)


def make_service(provider: dict[str, Any], **overrides: Any) -> dict[str, Any]:
    """Insert a service listing owned by ``provider``."""

    service = new_document(
        {
            "title": "Kitchen plumbing",
            "description": "Fixing leaks, pipes and sinks in the kitchen.",
            "price": 40,
            "tags": ["plumbing", "repair"],
            "images": [],
            "providerId": provider["_id"],
            "averageRating": 0,
            "totalReviews": 0,
            "reviews": [],
        }
    )
    service.update(overrides)
    result = run(get_database()[SERVICES].insert_one(service))
    service["_id"] = result.inserted_id
    return service


def auth_headers(user: dict[str, Any]) -> dict[str, str]:
    token = create_access_token({"sub": str(user["_id"])})
    return {"Authorization": f"Bearer {token}"}


def find_user(email: str) -> dict[str, Any] | None:
    return run(get_database()[USERS].find_one({"email": email}))


def find_service(service_id: Any) -> dict[str, Any] | None:
    return run(get_database()[SERVICES].find_one({"_id": service_id}))


def count_reviews(query: dict[str, Any]) -> int:
    return run(get_database()[REVIEWS].count_documents(query))
