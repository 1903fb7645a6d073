from sqlalchemy import select, update

from board.models.forum_model import Post, Subforum, Thread
from board.models.user_model import User

from conftest import fetch, new_thread, register, reply


async def _counts(session_factory, subforum_id):
    s = await fetch(session_factory, Subforum, subforum_id)
    return s.thread_count, s.post_count


async def _post_ids(client, thread_id):
    r = await client.get(f"/threads/{thread_id}")
    assert r.status_code == 200, r.text
    return [p["id"] for p in r.json()["posts"]["items"]]


async def test_creation_counters(client, session_factory, member, subforum_id):
    replies_per_thread = [0, 2, 3]
    thread_ids = []
    for i, n in enumerate(replies_per_thread):
        tid = await new_thread(client, member, subforum_id, title=f"Thread {i}")
        thread_ids.append(tid)
        for _ in range(n):
            await reply(client, member, tid)

    assert await _counts(session_factory, subforum_id) == (3, 3 + sum(replies_per_thread))
    for tid, n in zip(thread_ids, replies_per_thread):
        assert (await fetch(session_factory, Thread, tid)).reply_count == n

    sub = await fetch(session_factory, Subforum, subforum_id)
    assert sub.last_thread_id == thread_ids[-1]
    assert sub.last_post_username == "member_one"


async def test_thread_create_then_delete_restores_counters(client, session_factory, member, moderator, subforum_id):
    await new_thread(client, member, subforum_id, title="Keeper")
    before = await _counts(session_factory, subforum_id)

    tid = await new_thread(client, member, subforum_id, title="Temporary")
    await reply(client, member, tid)
    await reply(client, member, tid)
    assert await _counts(session_factory, subforum_id) == (before[0] + 1, before[1] + 3)

    r = await client.delete(f"/admin/threads/{tid}", headers=moderator)
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "postsDeleted": 3}
    assert await _counts(session_factory, subforum_id) == before


async def test_concrete_scenario(client, session_factory, member, moderator, subforum_id):
    assert await _counts(session_factory, subforum_id) == (0, 0)

    # titles need at least 3 characters
    t1 = await new_thread(client, member, subforum_id, title="T1 thread", content="hello")
    assert await _counts(session_factory, subforum_id) == (1, 1)
    assert (await fetch(session_factory, Thread, t1)).reply_count == 0

    await reply(client, member, t1, "first reply")
    second = await reply(client, member, t1, "second reply")
    assert await _counts(session_factory, subforum_id) == (1, 3)
    assert (await fetch(session_factory, Thread, t1)).reply_count == 2

    r = await client.delete(f"/admin/posts/{second}", headers=moderator)
    assert r.status_code == 200
    assert r.json() == {"success": True, "threadDeleted": False}
    assert await _counts(session_factory, subforum_id) == (1, 2)
    assert (await fetch(session_factory, Thread, t1)).reply_count == 1

    op_id = (await _post_ids(client, t1))[0]
    r = await client.delete(f"/admin/posts/{op_id}", headers=moderator)
    assert r.status_code == 200
    assert r.json() == {"success": True, "threadDeleted": True}

    r = await client.get(f"/threads/{t1}")
    assert r.status_code == 404
    assert r.json() == {"error": "Thread not found."}
    assert await _counts(session_factory, subforum_id) == (0, 0)

    async with session_factory() as s:
        leftover = (await s.execute(select(Post.id).where(Post.thread_id == t1))).all()
    assert leftover == []

    sub = await fetch(session_factory, Subforum, subforum_id)
    assert sub.last_thread_id is None


async def test_author_post_count_survives_moderator_delete(client, session_factory, admin, subforum_id):
    alice = await register(client, "Alice")
    alice_id = (await client.get("/auth/me", headers=alice)).json()["user"]["id"]

    tid = await new_thread(client, alice, subforum_id, title="Hi!")
    assert (await fetch(session_factory, User, alice_id)).post_count == 1

    r = await client.delete(f"/admin/threads/{tid}", headers=admin)
    assert r.status_code == 200
    # deletes never give post_count back
    assert (await fetch(session_factory, User, alice_id)).post_count == 1


async def test_non_op_delete_keeps_thread(client, session_factory, member, moderator, subforum_id):
    other = await register(client, "other_user")
    tid = await new_thread(client, member, subforum_id)
    r1 = await reply(client, other, tid)
    r2 = await reply(client, other, tid)

    r = await client.delete(f"/admin/posts/{r1}", headers=moderator)
    assert r.json()["threadDeleted"] is False

    thread = await fetch(session_factory, Thread, tid)
    assert thread is not None
    assert thread.reply_count == 1
    assert await _counts(session_factory, subforum_id) == (1, 2)

    # removing the newest post rewinds the thread's last-post pointer
    await client.delete(f"/admin/posts/{r2}", headers=moderator)
    thread = await fetch(session_factory, Thread, tid)
    assert thread.reply_count == 0
    assert thread.last_post_username == "member_one"


async def test_counters_never_go_negative(client, session_factory, member, moderator, subforum_id):
    tid = await new_thread(client, member, subforum_id)
    rid = await reply(client, member, tid)

    async with session_factory() as s:
        await s.execute(update(Subforum).where(Subforum.id == subforum_id).values(thread_count=0, post_count=0))
        await s.execute(update(Thread).where(Thread.id == tid).values(reply_count=0))
        await s.commit()

    await client.delete(f"/admin/posts/{rid}", headers=moderator)
    assert (await fetch(session_factory, Thread, tid)).reply_count == 0
    assert await _counts(session_factory, subforum_id) == (0, 0)

    await client.delete(f"/admin/threads/{tid}", headers=moderator)
    assert await _counts(session_factory, subforum_id) == (0, 0)


async def test_opening_post_wins_timestamp_tie(client, session_factory, member, moderator, subforum_id):
    tid = await new_thread(client, member, subforum_id)
    rid = await reply(client, member, tid)

    async with session_factory() as s:
        op = (
            await s.execute(select(Post).where(Post.thread_id == tid, Post.is_opening_post.is_(True)))
        ).scalar_one()
        await s.execute(update(Post).where(Post.id == rid).values(created_at=op.created_at))
        await s.commit()
        op_id = op.id

    assert await _post_ids(client, tid) == [op_id, rid]

    r = await client.delete(f"/admin/posts/{rid}", headers=moderator)
    assert r.json()["threadDeleted"] is False
    assert await fetch(session_factory, Thread, tid) is not None


async def test_move_rebalances_both_subforums(client, session_factory, admin, member, moderator, subforum_id):
    category_id = (await fetch(session_factory, Subforum, subforum_id)).category_id
    r = await client.post("/admin/subforums", json={"categoryId": category_id, "name": "Other"}, headers=admin)
    target_id = r.json()["subforumId"]

    moving = await new_thread(client, member, subforum_id, title="Moving")
    await reply(client, member, moving)
    await reply(client, member, moving)
    staying = await new_thread(client, member, target_id, title="Staying")

    r = await client.patch(f"/admin/threads/{moving}", json={"subforumId": target_id}, headers=moderator)
    assert r.status_code == 200, r.text
    assert await _counts(session_factory, subforum_id) == (0, 0)
    assert await _counts(session_factory, target_id) == (2, 4)
    assert (await fetch(session_factory, Subforum, subforum_id)).last_thread_id is None
    assert (await fetch(session_factory, Thread, moving)).subforum_id == target_id

    r = await client.patch(f"/admin/threads/{moving}", json={"subforumId": subforum_id}, headers=moderator)
    assert r.status_code == 200
    assert await _counts(session_factory, subforum_id) == (1, 3)
    assert await _counts(session_factory, target_id) == (1, 1)
    assert (await fetch(session_factory, Subforum, subforum_id)).last_thread_id == moving
    assert (await fetch(session_factory, Subforum, target_id)).last_thread_id == staying


async def test_move_to_missing_subforum_is_rejected(client, member, moderator, subforum_id):
    tid = await new_thread(client, member, subforum_id)
    r = await client.patch(f"/admin/threads/{tid}", json={"subforumId": 9999}, headers=moderator)
    assert r.status_code == 400
    assert r.json() == {"error": "Target subforum not found."}


async def test_empty_thread_update_is_rejected(client, member, moderator, subforum_id):
    tid = await new_thread(client, member, subforum_id)
    r = await client.patch(f"/admin/threads/{tid}", json={}, headers=moderator)
    assert r.status_code == 400
    assert r.json() == {"error": "No updates provided."}


async def test_locked_thread_refuses_replies(client, session_factory, member, moderator, subforum_id):
    tid = await new_thread(client, member, subforum_id)
    r = await client.patch(f"/admin/threads/{tid}", json={"isLocked": True, "isSticky": True}, headers=moderator)
    assert r.status_code == 200
    assert r.json()["thread"]["is_locked"] is True

    r = await client.post("/posts", json={"threadId": tid, "content": "too late"}, headers=member)
    assert r.status_code == 403
    assert r.json() == {"error": "This thread is locked."}
    assert await _counts(session_factory, subforum_id) == (1, 1)

    log = (await client.get("/admin/moderation-log", headers=moderator)).json()["items"]
    assert log[0]["action"] == "stickied, locked"
    assert log[0]["target_id"] == str(tid)


async def test_thread_view_counts_and_sticky_order(client, member, moderator, subforum_id):
    first = await new_thread(client, member, subforum_id, title="Pinned later")
    second = await new_thread(client, member, subforum_id, title="Newest")

    await client.get(f"/threads/{first}")
    r = await client.get(f"/threads/{first}")
    body = r.json()
    assert body["thread"]["view_count"] == 2
    assert body["breadcrumb"]["subforum_id"] == subforum_id
    assert body["posts"]["items"][0]["is_opening_post"] is True

    r = await client.get(f"/subforums/{subforum_id}")
    assert [t["id"] for t in r.json()["threads"]["items"]] == [second, first]

    await client.patch(f"/admin/threads/{first}", json={"isSticky": True}, headers=moderator)
    r = await client.get(f"/subforums/{subforum_id}")
    assert [t["id"] for t in r.json()["threads"]["items"]] == [first, second]


async def test_reply_to_missing_thread(client, member):
    r = await client.post("/posts", json={"threadId": 4242, "content": "anyone?"}, headers=member)
    assert r.status_code == 404
    assert r.json() == {"error": "Thread not found."}


async def test_reaction_toggle(client, member, subforum_id):
    tid = await new_thread(client, member, subforum_id)
    pid = (await _post_ids(client, tid))[0]

    r = await client.post(f"/posts/{pid}/reactions", json={"reaction_type": "like"}, headers=member)
    assert r.json() == {"reacted": True, "count": 1}
    r = await client.post(f"/posts/{pid}/reactions", json={"reaction_type": "like"}, headers=member)
    assert r.json() == {"reacted": False, "count": 0}


async def test_move_to_current_subforum_is_not_logged(client, session_factory, member, moderator, subforum_id):
    tid = await new_thread(client, member, subforum_id)

    r = await client.patch(f"/admin/threads/{tid}", json={"subforumId": subforum_id}, headers=moderator)
    assert r.status_code == 200
    assert await _counts(session_factory, subforum_id) == (1, 1)

    r = await client.patch(
        f"/admin/threads/{tid}", json={"subforumId": subforum_id, "isLocked": True}, headers=moderator
    )
    assert r.status_code == 200

    actions = [e["action"] for e in (await client.get("/admin/moderation-log", headers=moderator)).json()["items"]]
    assert actions[0] == "locked"
    assert "moved" not in actions


async def test_count_labels_in_listings(client, session_factory, member, subforum_id):
    tid = await new_thread(client, member, subforum_id)
    await reply(client, member, tid)

    async with session_factory() as s:
        await s.execute(update(Thread).where(Thread.id == tid).values(view_count=1299))
        await s.commit()

    page = (await client.get(f"/subforums/{subforum_id}")).json()
    assert page["subforum"]["post_count_label"] == "2"
    assert page["subforum"]["thread_count_label"] == "1"
    assert page["threads"]["items"][0]["reply_count_label"] == "1"

    # the read itself is the 1300th view
    thread = (await client.get(f"/threads/{tid}")).json()["thread"]
    assert thread["view_count_label"] == "1.3K"
