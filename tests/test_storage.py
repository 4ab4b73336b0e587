import json

from mariposa_app.utils import storage


def test_items_round_trip_through_the_store(isolated_storage):
    assert storage.get_item(storage.TOKEN_KEY) is None
    assert storage.get_item(storage.THEME_KEY, "dark") == "dark"

    assert storage.set_item(storage.TOKEN_KEY, "jwt-abc")
    assert storage.set_item(storage.USER_EMAIL_KEY, "trader@example.com")

    assert storage.get_item(storage.TOKEN_KEY) == "jwt-abc"
    assert json.loads(isolated_storage.read_text(encoding="utf-8")) == {
        "token": "jwt-abc",
        "userEmail": "trader@example.com",
    }


def test_clear_auth_keeps_preferences(isolated_storage):
    storage.set_item(storage.TOKEN_KEY, "jwt-abc")
    storage.set_item(storage.USER_ID_KEY, "u-1")
    storage.set_item(storage.THEME_KEY, "light")

    storage.clear_auth()

    assert storage.get_item(storage.TOKEN_KEY) is None
    assert storage.get_item(storage.USER_ID_KEY) is None
    assert storage.get_item(storage.THEME_KEY) == "light"


def test_remove_missing_key_is_a_no_op(isolated_storage):
    assert storage.remove_item("nothing-here")
    assert not isolated_storage.exists()


def test_json_values(isolated_storage, captured_logs):
    assert storage.set_json("watchlist", ["BTCUSDT", "ETHUSDT"])
    assert storage.get_json("watchlist") == ["BTCUSDT", "ETHUSDT"]

    storage.set_item("broken", "{oops")
    assert storage.get_json("broken", fallback=[]) == []
    assert storage.set_json("bad", {1, 2}) is False
    events = [event for event, _ in captured_logs]
    assert "storage.json.decode_error" in events
    assert "storage.json.encode_error" in events


def test_corrupt_store_reads_as_empty(isolated_storage, captured_logs):
    isolated_storage.write_text("{not json", encoding="utf-8")

    assert storage.get_item(storage.TOKEN_KEY, "missing") == "missing"
    assert captured_logs[0][0] == "storage.read.error"

    assert storage.set_item(storage.TOKEN_KEY, "fresh")
    assert storage.get_item(storage.TOKEN_KEY) == "fresh"


def test_clear_and_availability(isolated_storage):
    storage.set_item(storage.TOKEN_KEY, "jwt")

    assert storage.is_available()
    assert storage.get_item(storage.TOKEN_KEY) == "jwt"
    assert "__storage_probe__" not in json.loads(isolated_storage.read_text(encoding="utf-8"))

    assert storage.clear()
    assert storage.get_item(storage.TOKEN_KEY) is None
