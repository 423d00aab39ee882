# tests/api_contract/test_reviews_chat_api.py
"""HTTP contract for task reviews and the chat inbox."""

from __future__ import annotations

import uuid

from taskmarket.core.errors import MESSAGES, ErrorKind

from tests.factories import make_task


def _hdr(user_id) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


def _assert_error(r, kind: ErrorKind):
    assert r.status_code == kind.http_status, r.text
    err = r.json()["error"]
    assert err["code"] == kind.value
    assert err["message"] == MESSAGES[kind]


def _completed(db):
    poster, accepter = uuid.uuid4(), uuid.uuid4()
    task = make_task(db, created_by=poster, status="completed", accepted_by=accepter)
    db.commit()
    return task.id, poster, accepter


def test_review_completed_task(client, db):
    task_id, poster, accepter = _completed(db)

    r = client.post(f"/tasks/{task_id}/reviews", json={"rating": 4, "comment": "On time"}, headers=_hdr(poster))
    assert r.status_code == 201, r.text
    j = r.json()
    assert j["reviewer_id"] == str(poster)
    assert j["reviewee_id"] == str(accepter)
    assert j["rating"] == 4

    r = client.get(f"/users/{accepter}/rating")
    assert r.status_code == 200
    assert r.json()["ratings_count"] == 1
    assert r.json()["average_rating"] == 4.0

    r = client.get(f"/tasks/{task_id}/reviews")
    assert [x["comment"] for x in r.json()] == ["On time"]


def test_review_errors(client, db):
    task_id, poster, _ = _completed(db)

    r = client.post(f"/tasks/{task_id}/reviews", json={"rating": 6}, headers=_hdr(poster))
    assert r.status_code == 422

    _assert_error(
        client.post(f"/tasks/{task_id}/reviews", json={"rating": 3}, headers=_hdr(uuid.uuid4())),
        ErrorKind.NOT_AUTHORIZED,
    )

    assert client.post(f"/tasks/{task_id}/reviews", json={"rating": 3}, headers=_hdr(poster)).status_code == 201
    _assert_error(
        client.post(f"/tasks/{task_id}/reviews", json={"rating": 3}, headers=_hdr(poster)),
        ErrorKind.REVIEW_ALREADY_SUBMITTED,
    )

    open_task = make_task(db, created_by=poster)
    db.commit()
    _assert_error(
        client.post(f"/tasks/{open_task.id}/reviews", json={"rating": 3}, headers=_hdr(poster)),
        ErrorKind.INVALID_STATE,
    )


def test_chat_inbox_and_mark_read(client, db):
    poster, accepter = uuid.uuid4(), uuid.uuid4()
    task = make_task(db, created_by=poster)
    db.commit()

    r = client.post(f"/tasks/{task.id}/accept", headers=_hdr(accepter))
    assert r.status_code == 200, r.text

    (item,) = client.get("/chats", headers=_hdr(poster)).json()
    assert item["unread_count"] == 1
    room_id = item["room_id"]

    assert client.post(f"/chats/{room_id}/read", headers=_hdr(poster)).status_code == 204
    assert client.get("/chats", headers=_hdr(poster)).json()[0]["unread_count"] == 0

    r = client.post(f"/chats/{room_id}/messages", json={"text": "  on my way "}, headers=_hdr(accepter))
    assert r.status_code == 201
    assert r.json()["text"] == "on my way"
    assert client.get("/chats", headers=_hdr(poster)).json()[0]["unread_count"] == 1

    assert client.post(f"/chats/{room_id}/read", headers=_hdr(uuid.uuid4())).status_code == 404
    assert client.get(f"/chats/{room_id}/messages", headers=_hdr(uuid.uuid4())).status_code == 404
    assert client.post(f"/chats/{room_id}/messages", json={"text": "   "}, headers=_hdr(poster)).status_code == 422
