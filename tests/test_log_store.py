from ingest_service.log_store import LogStore


def _log(title, **fields):
    return {"app": "MyApp", "title": title, **fields}


def test_add_returns_unique_ids():
    store = LogStore()
    first = store.add(_log("a"))
    second = store.add(_log("b"))
    assert first != second


def test_add_does_not_mutate_input():
    store = LogStore()
    entry = _log("a")
    store.add(entry)
    assert "id" not in entry


def test_bounded_size_drops_oldest():
    store = LogStore(max_size=3)
    for i in range(5):
        store.add(_log(f"log-{i}", timestamp=f"2024-01-15T10:00:0{i}+00:00"))

    assert store.current_size == 3
    assert store.total_count == 5
    assert [log["title"] for log in store.query(sort="asc")] == ["log-2", "log-3", "log-4"]


def test_filters_are_case_insensitive():
    store = LogStore()
    store.add(_log("a", logLevel="error", category="network"))
    store.add(_log("b", logLevel="info", category="network"))

    assert [log["title"] for log in store.query(level="ERROR")] == ["a"]
    assert len(store.query(category="Network")) == 2


def test_session_and_user_filters():
    store = LogStore()
    store.add(_log("a", userId="u1", sessionId="s1"))
    store.add(_log("b", userId="u1", sessionId="s2"))
    store.add(_log("c", userId="u2", sessionId="s3"))

    assert len(store.query(userId="u1")) == 2
    assert [log["title"] for log in store.query(userId="u1", sessionId="s2")] == ["b"]


def test_non_positive_limit_is_ignored():
    store = LogStore()
    for title in "abc":
        store.add(_log(title))
    assert len(store.query(limit=0)) == 3


def test_clear_returns_count():
    store = LogStore()
    store.add(_log("a"))
    assert store.clear() == 1
    assert store.current_size == 0
