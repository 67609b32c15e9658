import asyncio

from studysync.sync import PollingFallback, SyncEventType, SyncSession

from conftest import WEEK


def drain(queue: asyncio.Queue):
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


def make_poller(fake_api, session=None, **kwargs):
    session = session or SyncSession(week_id=WEEK, generation=1)
    events = asyncio.Queue()
    poller = PollingFallback(fake_api.client(), session, events, **kwargs)
    return poller, session, events


def test_same_updated_at_fires_once(fake_api):
    async def scenario():
        fake_api.current = {"questionId": "q2", "updatedAt": "T1"}
        poller, session, events = make_poller(fake_api, interval=3600)
        await poller.poll_once()
        await poller.poll_once()
        fired = drain(events)
        assert [(e.type, e.question_id, e.updated_at) for e in fired] == [
            (SyncEventType.HIGHLIGHT, "q2", "T1")
        ]
        assert session.last_seen_updated_at == "T1"

    asyncio.run(scenario())


def test_new_updated_at_fires_even_when_question_unchanged(fake_api):
    async def scenario():
        fake_api.current = {"questionId": "q2", "updatedAt": "T1"}
        poller, _, events = make_poller(fake_api)
        await poller.poll_once()
        fake_api.current = {"questionId": "q2", "updatedAt": "T2"}
        await poller.poll_once()
        assert [e.updated_at for e in drain(events)] == ["T1", "T2"]

    asyncio.run(scenario())


def test_nothing_stored_fires_nothing(fake_api):
    async def scenario():
        poller, session, events = make_poller(fake_api)
        snapshot = await poller.poll_once()
        assert snapshot.question_id is None and snapshot.updated_at is None
        assert drain(events) == []
        assert session.last_seen_updated_at is None

    asyncio.run(scenario())


def test_failures_back_off_and_reset(fake_api):
    async def scenario():
        poller, _, events = make_poller(fake_api, interval=5, max_interval=60)
        fake_api.fail_get = True
        assert await poller.poll_once() is None
        assert poller.next_delay() == 10
        await poller.poll_once()
        await poller.poll_once()
        assert poller.next_delay() == 40
        await poller.poll_once()
        assert poller.next_delay() == 60
        fake_api.fail_get = False
        await poller.poll_once()
        assert poller.failures == 0
        assert poller.next_delay() == 5
        assert drain(events) == []

    asyncio.run(scenario())


def test_start_polls_immediately_and_stop_cancels_task(fake_api):
    async def scenario():
        fake_api.current = {"questionId": "q1", "updatedAt": "T1"}
        poller, _, events = make_poller(fake_api, interval=3600)
        await poller.start()
        assert poller.running
        assert len(drain(events)) == 1
        await poller.stop()
        assert not poller.running
        await poller.stop()

    asyncio.run(scenario())


def test_periodic_polling_picks_up_changes(fake_api):
    async def scenario():
        poller, _, events = make_poller(fake_api, interval=0.01)
        await poller.start()
        fake_api.current = {"questionId": "q5", "updatedAt": "T5"}
        event = await asyncio.wait_for(events.get(), timeout=2)
        assert event.question_id == "q5"
        await poller.stop()

    asyncio.run(scenario())


def test_response_after_stop_is_discarded(fake_api):
    async def scenario():
        poller, _, events = make_poller(fake_api, interval=3600)
        fake_api.get_gate = asyncio.Event()
        fake_api.current = {"questionId": "q1", "updatedAt": "T1"}
        pending = asyncio.create_task(poller.poll_once())
        await asyncio.sleep(0.01)
        await poller.stop()
        fake_api.get_gate.set()
        assert await pending is None
        assert drain(events) == []

    asyncio.run(scenario())
