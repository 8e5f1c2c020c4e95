from backend.features.badges.completion import is_session_complete, session_tasks


def test_nested_session_all_done():
    data = {"morning": {"1": {"checked": True}, "2": {"count": 2}}}
    assert is_session_complete(data, "morning") is True


def test_nested_session_one_task_missing():
    data = {"morning": {"1": {"checked": True}, "2": {"checked": False}}}
    assert is_session_complete(data, "morning") is False


def test_flat_session_entries():
    data = {"1": {"checked": True}, "2": {"value": "ok"}}
    assert is_session_complete(data, "evening") is True
    assert set(session_tasks(data, "evening")) == {"1", "2"}


def test_session_named_keys_are_not_tasks():
    data = {"1": {"checked": True}, "daily": "not a mapping"}
    assert session_tasks(data, "workout") == {"1": {"checked": True}}
    assert is_session_complete(data, "workout") is True


def test_empty_session_is_vacuously_complete():
    assert session_tasks({}, "morning") == {}
    assert is_session_complete({}, "morning") is True
    assert is_session_complete({"morning": {}}, "morning") is True


def test_non_mapping_session_is_incomplete():
    assert is_session_complete(None, "morning") is False
    assert is_session_complete(["1"], "morning") is False
    assert session_tasks("x", "morning") == {}
