import asyncio

from models import messages_path
from services.chat_view import ChatView
from services.pagination import PaginationCursor
from stores import DOCUMENT_ID, Query

from conftest import seed_messages


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


async def open_view(make_session, conversation_id, **kwargs) -> ChatView:
    session = await make_session("alice")
    view = ChatView(session, **kwargs)
    assert await view.open(conversation_id)
    return view


async def test_first_page_is_newest_fifty_in_ascending_order(store, make_session, pair):
    await seed_messages(store, pair, 120)
    view = await open_view(make_session, pair)

    assert len(view.messages) == 50
    assert [m.id for m in view.messages] == [f"m{i:03d}" for i in range(70, 120)]
    assert view.has_more is True
    assert view.cursor == view.messages[0].key
    await view.close()


async def test_exactly_one_full_page_may_have_more(store, make_session, pair):
    await seed_messages(store, pair, 50)
    view = await open_view(make_session, pair)
    assert len(view.messages) == 50
    assert view.has_more is True

    assert await view.load_older() is False
    assert view.pagination.fetch_count == 1
    assert view.has_more is False
    assert len(view.messages) == 50
    await view.close()


async def test_short_history_has_no_more(store, make_session, pair):
    await seed_messages(store, pair, 10)
    view = await open_view(make_session, pair)
    assert len(view.messages) == 10
    assert view.has_more is False
    assert await view.load_older() is False
    await view.close()


async def test_loading_older_pages_has_no_gaps_or_overlap(store, make_session, pair):
    await seed_messages(store, pair, 120)
    view = await open_view(make_session, pair)

    assert await view.load_older() is True
    assert len(view.messages) == 100
    assert await view.load_older() is True
    assert view.has_more is False
    assert await view.load_older() is False

    ids = [m.id for m in view.messages]
    assert ids == [f"m{i:03d}" for i in range(120)]
    assert view.cursor == view.messages[0].key
    await view.close()


async def test_load_older_is_noop_while_loading(store, make_session, pair):
    await seed_messages(store, pair, 120)
    view = await open_view(make_session, pair)
    before = list(view.messages)

    view.pagination.is_loading = True
    assert await view.load_older() is False
    assert view.pagination.fetch_count == 0
    assert view.messages == before
    await view.close()


async def test_cursor_breaks_timestamp_ties_by_id(store):
    for doc_id in ["a", "b", "c", "d"]:
        await store.add_document(messages_path("c1"), {"sId": "u", "text": doc_id, "createdAt": 5}, doc_id=doc_id)
    pagination = PaginationCursor(store, "c1", page_size=2)
    pagination.has_more = True
    pagination.move_to((5, "c"))

    older = await pagination.fetch_older()
    assert [m.id for m in older] == ["a", "b"]
    assert pagination.cursor == (5, "a")


async def test_prepend_keeps_viewport_anchored(store, make_session, pair):
    await seed_messages(store, pair, 120)
    view = await open_view(make_session, pair)
    viewport = view.viewport
    viewport.scroll_top = 30.0
    height_before = viewport.scroll_height

    await view.load_older()
    assert viewport.scroll_top == 30.0 + (viewport.scroll_height - height_before)
    await view.close()


async def test_scroll_burst_triggers_a_single_load(store, make_session, pair):
    await seed_messages(store, pair, 120)
    clock = FakeClock()
    view = await open_view(make_session, pair, clock=clock)
    view.viewport.scroll_top = 0.0

    tasks = [view.on_scroll() for _ in range(10)]
    started = [t for t in tasks if t is not None]
    assert len(started) == 1
    await asyncio.gather(*started)
    assert view.pagination.fetch_count == 1
    assert len(view.messages) == 100

    clock.now += 0.25
    view.viewport.scroll_top = 0.0
    task = view.on_scroll()
    assert task is not None
    await task
    assert view.pagination.fetch_count == 2
    await view.close()


async def test_scroll_outside_top_zone_does_not_load(store, make_session, pair):
    await seed_messages(store, pair, 120)
    view = await open_view(make_session, pair)
    assert view.viewport.scroll_fraction == 1.0
    assert view.on_scroll() is None
    await view.close()


async def test_live_emission_keeps_loaded_history(store, make_session, pair):
    await seed_messages(store, pair, 120)
    view = await open_view(make_session, pair)
    await view.load_older()
    assert len(view.messages) == 100

    await view.reconciler.send_message(pair, "bob", "alice", "fresh")
    assert len(view.messages) == 101
    assert view.messages[-1].text == "fresh"
    assert view.messages[0].id == "m020"
    keys = [m.key for m in view.messages]
    assert keys == sorted(keys)

    newest = await store.query(Query(messages_path(pair)).order("createdAt", "desc").order(DOCUMENT_ID, "desc"))
    assert newest[0].get("text") == "fresh"
    await view.close()
