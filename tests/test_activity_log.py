from app.services import activity_log


def test_entries_after_offset():
    activity_log.clear("p1")
    for i in range(3):
        activity_log.add_log("p1", "search", f"message {i}", emoji="🔍")

    assert [e["message"] for e in activity_log.get_logs("p1", after=1)] == ["message 1", "message 2"]
    assert activity_log.get_logs("unknown") == []


def test_old_entries_are_dropped():
    activity_log.clear("p2")
    for i in range(activity_log.MAX_ENTRIES + 5):
        activity_log.add_log("p2", "search", f"message {i}")

    logs = activity_log.get_logs("p2")
    assert len(logs) == activity_log.MAX_ENTRIES
    assert logs[0]["message"] == "message 5"


def test_progress_is_clamped():
    activity_log.set_progress("p3", "search", 140)
    assert activity_log.get_progress("p3") == {"step": "search", "pct": 100}

    activity_log.clear("p3")
    assert activity_log.get_progress("p3") == {"step": "", "pct": 0}
