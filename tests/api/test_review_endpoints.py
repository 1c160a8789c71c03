# This file tests the review endpoints and the service statistics they maintain.
# Every create and delete must leave averageRating and totalReviews in sync with the reviews.
# Authorization rules: one review per user and service, no self-reviews, author-only deletes.

from __future__ import annotations

import pytest
from bson import ObjectId

from marketplace_api.app.services.stats_service import ReviewStatsService
from tests.api.support import (
    api_test_client,
    auth_headers,
    count_reviews,
    find_service,
    make_provider,
    make_service,
    make_user,
)


def _review(service: dict, rating: float = 4, comment: str = "Quick, tidy and friendly.") -> dict:
    return {"serviceId": str(service["_id"]), "rating": rating, "comment": comment}


def test_create_review_updates_service_stats() -> None:
    service = make_service(make_provider())
    first = make_user()
    second = make_user(email="luka@example.com", phone="+995577111222")

    with api_test_client() as client:
        response = client.post("/api/v1/reviews", json=_review(service, 4), headers=auth_headers(first))
        assert response.status_code == 201
        review = response.json()["data"]["review"]
        assert review["userId"] == str(first["_id"])
        assert review["serviceId"] == str(service["_id"])

        stored = find_service(service["_id"])
        assert stored["totalReviews"] == 1
        assert stored["averageRating"] == pytest.approx(4.0)
        assert stored["reviews"] == [ObjectId(review["_id"])]

        client.post("/api/v1/reviews", json=_review(service, 2), headers=auth_headers(second))

    stored = find_service(service["_id"])
    assert stored["totalReviews"] == 2
    assert stored["averageRating"] == pytest.approx(3.0)


def test_second_review_by_same_user_is_rejected() -> None:
    service = make_service(make_provider())
    user = make_user()

    with api_test_client() as client:
        assert client.post("/api/v1/reviews", json=_review(service), headers=auth_headers(user)).status_code == 201
        duplicate = client.post("/api/v1/reviews", json=_review(service, 1), headers=auth_headers(user))

    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "You have already reviewed this service."
    assert count_reviews({"serviceId": service["_id"]}) == 1
    assert find_service(service["_id"])["averageRating"] == pytest.approx(4.0)


def test_create_review_rejections() -> None:
    provider = make_provider()
    service = make_service(provider)
    user = make_user()

    with api_test_client() as client:
        anonymous = client.post("/api/v1/reviews", json=_review(service))
        own_service = client.post("/api/v1/reviews", json=_review(service), headers=auth_headers(provider))
        missing = client.post(
            "/api/v1/reviews",
            json={**_review(service), "serviceId": str(ObjectId())},
            headers=auth_headers(user),
        )
        malformed = client.post(
            "/api/v1/reviews",
            json={**_review(service), "serviceId": "123"},
            headers=auth_headers(user),
        )
        out_of_range = client.post("/api/v1/reviews", json=_review(service, 6), headers=auth_headers(user))
        short_comment = client.post(
            "/api/v1/reviews", json=_review(service, comment="ok"), headers=auth_headers(user)
        )

    assert anonymous.status_code == 401
    assert own_service.status_code == 403
    assert missing.status_code == 404
    assert malformed.status_code == 400
    assert out_of_range.status_code == 400
    assert short_comment.status_code == 400
    assert count_reviews({}) == 0


def test_list_and_get_reviews() -> None:
    service = make_service(make_provider())
    first = make_user()
    second = make_user(email="luka@example.com", phone="+995577111222")

    with api_test_client() as client:
        created = client.post("/api/v1/reviews", json=_review(service, 5), headers=auth_headers(first))
        client.post("/api/v1/reviews", json=_review(service, 3), headers=auth_headers(second))
        review_id = created.json()["data"]["review"]["_id"]

        listing = client.get(f"/api/v1/reviews/service/{service['_id']}")
        unknown_service = client.get(f"/api/v1/reviews/service/{ObjectId()}")
        anonymous = client.get(f"/api/v1/reviews/{review_id}")
        single = client.get(f"/api/v1/reviews/{review_id}", headers=auth_headers(second))
        missing = client.get(f"/api/v1/reviews/{ObjectId()}", headers=auth_headers(second))

    assert listing.status_code == 200
    assert listing.json()["results"] == 2
    assert {review["rating"] for review in listing.json()["data"]["reviews"]} == {5, 3}
    assert unknown_service.status_code == 404
    assert anonymous.status_code == 401
    assert single.status_code == 200
    assert single.json()["data"]["review"]["rating"] == 5
    assert missing.status_code == 404


def test_delete_review_by_author_resets_stats() -> None:
    service = make_service(make_provider())
    author = make_user()
    stranger = make_user(email="luka@example.com", phone="+995577111222")

    with api_test_client() as client:
        created = client.post("/api/v1/reviews", json=_review(service, 5), headers=auth_headers(author))
        review_id = created.json()["data"]["review"]["_id"]

        forbidden = client.delete(f"/api/v1/reviews/{review_id}", headers=auth_headers(stranger))
        assert forbidden.status_code == 403
        assert find_service(service["_id"])["totalReviews"] == 1

        deleted = client.delete(f"/api/v1/reviews/{review_id}", headers=auth_headers(author))
        assert deleted.status_code == 204

        again = client.delete(f"/api/v1/reviews/{review_id}", headers=auth_headers(author))
        assert again.status_code == 404

    stored = find_service(service["_id"])
    assert stored["totalReviews"] == 0
    assert stored["averageRating"] == 0
    assert stored["reviews"] == []


def test_delete_one_of_several_reviews_recomputes_average() -> None:
    service = make_service(make_provider())
    first = make_user()
    second = make_user(email="luka@example.com", phone="+995577111222")

    with api_test_client() as client:
        created = client.post("/api/v1/reviews", json=_review(service, 1), headers=auth_headers(first))
        client.post("/api/v1/reviews", json=_review(service, 5), headers=auth_headers(second))
        client.delete(f"/api/v1/reviews/{created.json()['data']['review']['_id']}", headers=auth_headers(first))

    stored = find_service(service["_id"])
    assert stored["totalReviews"] == 1
    assert stored["averageRating"] == pytest.approx(5.0)


def test_create_triggers_exactly_one_recomputation(monkeypatch: pytest.MonkeyPatch) -> None:
    service = make_service(make_provider())
    user = make_user()
    calls: list = []
    original = ReviewStatsService.recompute

    async def counting_recompute(service_id):
        calls.append(service_id)
        return await original(service_id)

    monkeypatch.setattr(ReviewStatsService, "recompute", counting_recompute)

    with api_test_client() as client:
        client.post("/api/v1/reviews", json=_review(service, 4), headers=auth_headers(user))
        client.post("/api/v1/reviews", json=_review(service, 1), headers=auth_headers(user))

    assert calls == [service["_id"]]
    assert find_service(service["_id"])["totalReviews"] == 1
