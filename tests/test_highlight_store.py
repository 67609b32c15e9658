import json

from studysync.store import HighlightStore

from conftest import OTHER_WEEK, WEEK


def make_store(tmp_path):
    return HighlightStore(cache_path=tmp_path / "highlights.json")


def test_empty_store_has_no_active_question(tmp_path):
    store = make_store(tmp_path)
    assert store.get_active_question_id(WEEK) is None
    assert not store.is_active(WEEK, "q1")


def test_toggle_twice_returns_to_none(tmp_path):
    store = make_store(tmp_path)
    assert store.set_active_question(WEEK, "q1") == "q1"
    assert store.is_active(WEEK, "q1")
    assert store.set_active_question(WEEK, "q1") is None
    assert store.get_active_question_id(WEEK) is None


def test_only_one_question_active_per_week(tmp_path):
    store = make_store(tmp_path)
    for question_id in ["q1", "q2", "q3", "q2"]:
        store.set_active_question(WEEK, question_id)
    assert store.get_active_question_id(WEEK) == "q2"
    assert [q for q in ["q1", "q2", "q3"] if store.is_active(WEEK, q)] == ["q2"]


def test_direct_set_does_not_toggle(tmp_path):
    store = make_store(tmp_path)
    store.set_active_question_direct(WEEK, "q1")
    store.set_active_question_direct(WEEK, "q1")
    assert store.get_active_question_id(WEEK) == "q1"
    store.set_active_question_direct(WEEK, None)
    assert store.get_active_question_id(WEEK) is None


def test_weeks_are_independent(tmp_path):
    store = make_store(tmp_path)
    store.set_active_question(OTHER_WEEK, "q9")
    store.set_active_question(WEEK, "q1")
    assert store.get_active_question_id(OTHER_WEEK) == "q9"
    store.set_active_question(WEEK, "q1")
    assert store.get_active_question_id(OTHER_WEEK) == "q9"


def test_clear_active_question(tmp_path):
    store = make_store(tmp_path)
    store.set_active_question(WEEK, "q1")
    store.clear_active_question(WEEK)
    assert store.get_active_question_id(WEEK) is None


def test_state_survives_reload(tmp_path):
    store = make_store(tmp_path)
    store.set_active_question(WEEK, "q1")
    store.set_active_question(OTHER_WEEK, "q2")

    reloaded = make_store(tmp_path)
    assert reloaded.get_active_question_id(WEEK) == "q1"
    assert reloaded.get_active_question_id(OTHER_WEEK) == "q2"


def test_corrupt_cache_is_ignored(tmp_path):
    path = tmp_path / "highlights.json"
    path.write_text("{not json", encoding="utf-8")
    store = HighlightStore(cache_path=path)
    assert store.get_active_question_id(WEEK) is None
    store.set_active_question(WEEK, "q1")
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "activeQuestionByWeek": {WEEK: "q1"}
    }


def test_persist_disabled_writes_nothing(tmp_path):
    path = tmp_path / "highlights.json"
    store = HighlightStore(cache_path=path, persist=False)
    store.set_active_question(WEEK, "q1")
    assert not path.exists()


def test_listeners_receive_changes_until_unsubscribed(tmp_path):
    store = make_store(tmp_path)
    seen = []
    unsubscribe = store.subscribe(lambda week_id, question_id: seen.append((week_id, question_id)))
    store.set_active_question(WEEK, "q1")
    store.set_active_question_direct(WEEK, "q1")  # 변화 없음
    store.set_active_question(WEEK, "q1")
    unsubscribe()
    store.set_active_question(WEEK, "q2")
    assert seen == [(WEEK, "q1"), (WEEK, None)]
