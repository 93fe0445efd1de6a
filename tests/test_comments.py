import pytest
from bson import ObjectId

import comments
from errors import ForbiddenError, NotFoundError, ValidationError


def _comments(store, plant_id):
    return store.products("plants").find_one({"_id": ObjectId(plant_id)})["comments"]


def test_add_comment_goes_first(store, plant_id, author, other_author):
    first = comments.add_comment(store, "plants", plant_id, author, "Lovely leaves")
    second = comments.add_comment(store, "plants", plant_id, other_author, "Mine is drooping")

    stored = _comments(store, plant_id)
    assert [c["_id"] for c in stored] == [second["_id"], first["_id"]]
    assert stored[0]["replies"] == []


def test_add_comment_snapshots_author(store, plant_id, author):
    comment = comments.add_comment(store, "plants", plant_id, dict(author, email="fern@example.com"), "Hello")

    assert comment["user"] == author
    assert _comments(store, plant_id)[0]["user"] == author


def test_snapshot_does_not_follow_profile_changes(store, user, plant_id, author):
    comments.add_comment(store, "plants", plant_id, author, "Hello")
    store.users.update_one({"uid": "u1"}, {"$set": {"displayName": "Fern Gully"}})

    assert _comments(store, plant_id)[0]["user"]["displayName"] == "Fern"


@pytest.mark.parametrize("author_arg,text", [(None, "hi"), ({}, "hi"), ({"uid": "u1"}, ""), ({"uid": "u1"}, None)])
def test_add_comment_requires_author_and_text(store, plant_id, author_arg, text):
    with pytest.raises(ValidationError):
        comments.add_comment(store, "plants", plant_id, author_arg, text)


def test_add_comment_unknown_type(store, plant_id, author):
    with pytest.raises(NotFoundError):
        comments.add_comment(store, "orders", plant_id, author, "Hello")


def test_add_comment_unknown_product(store, author):
    with pytest.raises(NotFoundError):
        comments.add_comment(store, "plants", str(ObjectId()), author, "Hello")


def test_add_reply_appends_and_leaves_other_comments_alone(store, plant_id, author, other_author):
    older = comments.add_comment(store, "plants", plant_id, author, "First")
    newer = comments.add_comment(store, "plants", plant_id, author, "Second")
    comments.add_reply(store, "plants", plant_id, str(older["_id"]), other_author, "reply to first")

    r1 = comments.add_reply(store, "plants", plant_id, str(newer["_id"]), other_author, "one")
    r2 = comments.add_reply(store, "plants", plant_id, str(newer["_id"]), author, "two")

    stored = {c["_id"]: c for c in _comments(store, plant_id)}
    assert [r["_id"] for r in stored[newer["_id"]]["replies"]] == [r1["_id"], r2["_id"]]
    assert [r["text"] for r in stored[older["_id"]]["replies"]] == ["reply to first"]
    assert "replies" not in r1


def test_add_reply_unknown_comment(store, plant_id, author):
    comments.add_comment(store, "plants", plant_id, author, "First")

    with pytest.raises(NotFoundError):
        comments.add_reply(store, "plants", plant_id, str(ObjectId()), author, "lost")


def test_delete_comment_by_author_removes_replies(store, plant_id, author, other_author):
    keep = comments.add_comment(store, "plants", plant_id, other_author, "Keep me")
    target = comments.add_comment(store, "plants", plant_id, author, "Remove me")
    comments.add_reply(store, "plants", plant_id, str(target["_id"]), other_author, "reply")

    comments.delete_comment(store, "plants", plant_id, str(target["_id"]), "u1")

    assert [c["_id"] for c in _comments(store, plant_id)] == [keep["_id"]]


def test_delete_comment_by_other_user_is_forbidden(store, plant_id, author):
    target = comments.add_comment(store, "plants", plant_id, author, "Mine")

    with pytest.raises(ForbiddenError):
        comments.delete_comment(store, "plants", plant_id, str(target["_id"]), "u2")
    assert len(_comments(store, plant_id)) == 1


def test_delete_comment_requires_requester(store, plant_id, author):
    target = comments.add_comment(store, "plants", plant_id, author, "Mine")

    with pytest.raises(ValidationError):
        comments.delete_comment(store, "plants", plant_id, str(target["_id"]), "")


def test_delete_missing_comment(store, plant_id):
    with pytest.raises(NotFoundError):
        comments.delete_comment(store, "plants", plant_id, str(ObjectId()), "u1")


def test_list_comments(store, plant_id, author):
    comments.add_comment(store, "plants", plant_id, author, "a")
    comments.add_comment(store, "plants", plant_id, author, "b")

    assert [c["text"] for c in comments.list_comments(store, "plants", plant_id)] == ["b", "a"]
