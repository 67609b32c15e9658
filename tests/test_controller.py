import asyncio

from studysync.store import HighlightStore
from studysync.sync import HighlightSyncController, SyncMode, TransportSelector

from conftest import OTHER_WEEK, WEEK, FakeSocketFactory


def make_controller(api, tmp_path, factory=None):
    selector = TransportSelector(
        api=api.client(),
        poll_interval=3600,
        client_factory=factory or FakeSocketFactory(),
        reconnect_delay=0,
    )
    store = HighlightStore(cache_path=tmp_path / "highlights.json")
    return HighlightSyncController(store, selector)


def test_toggle_applies_locally_and_persists(fake_api, tmp_path):
    async def scenario():
        controller = make_controller(fake_api, tmp_path)
        await controller.mount(WEEK)
        assert controller.status.mode == SyncMode.POLLING

        assert controller.toggle("q1") == "q1"
        assert controller.store.get_active_question_id(WEEK) == "q1"
        assert controller.toggle("q1") is None
        assert controller.active_question_id is None
        await controller.unmount()

        assert fake_api.posts == [
            {"weekId": WEEK, "questionId": "q1"},
            {"weekId": WEEK, "questionId": None},
        ]

    asyncio.run(scenario())


def test_remote_change_is_applied_without_toggling(fake_api, tmp_path):
    async def scenario():
        fake_api.current = {"questionId": "q2", "updatedAt": "T1"}
        controller = make_controller(fake_api, tmp_path)
        controller.store.set_active_question(WEEK, "q2")
        await controller.mount(WEEK)
        await controller.selector.wait_idle()
        # 같은 값이 다시 와도 해제되지 않는다
        assert controller.active_question_id == "q2"

        fake_api.current = {"questionId": "q3", "updatedAt": "T2"}
        await controller.selector.poller.poll_once()
        await controller.selector.wait_idle()
        assert controller.active_question_id == "q3"
        assert fake_api.posts == []
        await controller.unmount()

    asyncio.run(scenario())


def test_live_remote_change_reaches_store(live_api, tmp_path):
    async def scenario():
        factory = FakeSocketFactory()
        controller = make_controller(live_api, tmp_path, factory)
        await controller.mount(WEEK)
        assert controller.status.label == "Live"
        await factory.clients[0].receive("highlightChange", {"weekId": WEEK, "questionId": "q5"})
        await controller.selector.wait_idle()
        assert controller.active_question_id == "q5"

        controller.toggle("q5")
        await controller.selector.flush()
        assert controller.active_question_id is None
        assert factory.clients[0].emitted[-1] == ("BroadcastHighlight", (WEEK, None))
        await controller.unmount()

    asyncio.run(scenario())


def test_change_week_keeps_weeks_separate(fake_api, tmp_path):
    async def scenario():
        controller = make_controller(fake_api, tmp_path)
        await controller.mount(WEEK)
        controller.toggle("q1")
        await controller.change_week(OTHER_WEEK)
        assert controller.week_id == OTHER_WEEK
        assert controller.active_question_id is None
        controller.toggle("q8")
        await controller.unmount()

        assert controller.store.get_active_question_id(WEEK) == "q1"
        assert controller.store.get_active_question_id(OTHER_WEEK) == "q8"
        assert controller.week_id is None

    asyncio.run(scenario())
