from mentorslot.client import InMemoryTimeoutStorage, JsonFileTimeoutStorage


def test_in_memory_storage_copies_values() -> None:
    storage = InMemoryTimeoutStorage()
    value = {"b1_s1": {"status": "active"}}
    storage.set("booking_timeouts", value)
    value["b1_s1"]["status"] = "mutated"

    assert storage.get("booking_timeouts") == {"b1_s1": {"status": "active"}}
    storage.remove("booking_timeouts")
    assert storage.get("booking_timeouts") is None


def test_json_file_storage_persists_across_instances(tmp_path) -> None:
    path = tmp_path / "state" / "timeouts.json"
    JsonFileTimeoutStorage(path).set("handled_expiry_sessions", ["b1_s1"])

    reopened = JsonFileTimeoutStorage(path)
    assert reopened.get("handled_expiry_sessions") == ["b1_s1"]
    reopened.remove("handled_expiry_sessions")
    assert JsonFileTimeoutStorage(path).get("handled_expiry_sessions") is None


def test_unreadable_file_reads_as_empty(tmp_path) -> None:
    path = tmp_path / "timeouts.json"
    path.write_text("{not json", encoding="utf-8")

    storage = JsonFileTimeoutStorage(path)
    assert storage.get("booking_timeouts") is None
    storage.set("booking_timeouts", {})
    assert storage.get("booking_timeouts") == {}
