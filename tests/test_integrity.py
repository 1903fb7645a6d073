import pytest
from sqlalchemy import func, select

from board.models.forum_model import Post, Subforum, Thread
from board.models.user_model import User
from board.services import forum_service

from conftest import fetch, new_thread, reply


class Boom(Exception):
    pass


async def _user(session_factory, username):
    async with session_factory() as s:
        return (await s.execute(select(User).where(User.username == username))).scalar_one()


async def _row_counts(session_factory):
    async with session_factory() as s:
        threads = (await s.execute(select(func.count(Thread.id)))).scalar_one()
        posts = (await s.execute(select(func.count(Post.id)))).scalar_one()
    return threads, posts


async def test_failed_thread_delete_changes_nothing(
    client, session_factory, member, moderator, subforum_id, monkeypatch
):
    tid = await new_thread(client, member, subforum_id)
    await reply(client, member, tid)

    async def failing_log(*args, **kwargs):
        raise Boom("audit store unavailable")

    monkeypatch.setattr(forum_service, "log_action", failing_log)
    mod = await _user(session_factory, "the_mod")

    async with session_factory() as s:
        with pytest.raises(Boom):
            await forum_service.delete_thread(s, mod, tid)

    sub = await fetch(session_factory, Subforum, subforum_id)
    assert (sub.thread_count, sub.post_count) == (1, 2)
    assert sub.last_thread_id == tid
    assert await fetch(session_factory, Thread, tid) is not None
    assert await _row_counts(session_factory) == (1, 2)


async def test_failed_thread_create_changes_nothing(client, session_factory, member, subforum_id, monkeypatch):
    real_bump = forum_service._bump

    async def bump_failing_on_users(db, model, row_id, **values):
        if model is User:
            raise Boom("counter update failed")
        await real_bump(db, model, row_id, **values)

    monkeypatch.setattr(forum_service, "_bump", bump_failing_on_users)
    author = await _user(session_factory, "member_one")

    async with session_factory() as s:
        with pytest.raises(Boom):
            await forum_service.create_thread(s, author, subforum_id, "Never lands", "body")

    sub = await fetch(session_factory, Subforum, subforum_id)
    assert (sub.thread_count, sub.post_count) == (0, 0)
    assert sub.last_thread_id is None
    assert await _row_counts(session_factory) == (0, 0)
    assert (await fetch(session_factory, User, author.id)).post_count == 0


async def test_content_length_limits(client, session_factory, member, moderator, subforum_id):
    longest = "x" * 50_000

    r = await client.post(
        "/threads",
        json={"subforumId": subforum_id, "title": "Empty body", "content": ""},
        headers=member,
    )
    assert r.status_code == 400
    r = await client.post(
        "/threads",
        json={"subforumId": subforum_id, "title": "Too long", "content": longest + "x"},
        headers=member,
    )
    assert r.status_code == 400

    tid = await new_thread(client, member, subforum_id, title="Longest allowed", content=longest)

    r = await client.post("/posts", json={"threadId": tid, "content": ""}, headers=member)
    assert r.status_code == 400
    r = await client.post("/posts", json={"threadId": tid, "content": longest + "x"}, headers=member)
    assert r.status_code == 400
    pid = await reply(client, member, tid, longest)

    r = await client.patch(f"/admin/posts/{pid}", json={"content": ""}, headers=moderator)
    assert r.status_code == 400
    r = await client.patch(f"/admin/posts/{pid}", json={"content": longest + "x"}, headers=moderator)
    assert r.status_code == 400

    # only the two accepted posts exist
    sub = await fetch(session_factory, Subforum, subforum_id)
    assert (sub.thread_count, sub.post_count) == (1, 2)
