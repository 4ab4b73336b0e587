import pytest

from mariposa_app.utils import api_keys


@pytest.mark.parametrize(
    ("tier", "endpoint", "allowed"),
    [
        ("free", "/api/v1/opportunities", True),
        ("free", "/api/v1/market/BTCUSDT/price", True),
        ("free", "/api/v1/market/BTC/USDT/price", True),
        ("free", "/api/v1/whale-activities", False),
        ("FREE", "/api/v1/market/trending", True),
        ("starter", "/api/v1/whale-activities", True),
        ("enterprise", "/api/v1/anything/at/all", True),
    ],
)
def test_is_endpoint_allowed(tier, endpoint, allowed):
    assert api_keys.is_endpoint_allowed(tier, endpoint) is allowed


def test_unknown_tier_is_rejected():
    with pytest.raises(ValueError, match="unknown API tier"):
        api_keys.get_tier("platinum")


def test_describe_limits_and_tones():
    assert api_keys.describe_limits("pro") == "10,000/day · 200/min"
    assert api_keys.describe_limits("enterprise") == "Unlimited · 500/min"
    assert api_keys.tier_tone("Starter") == "success"
    assert api_keys.tier_tone(None) == "neutral"


def test_build_generate_payload():
    payload = api_keys.build_generate_payload(" Trading bot ", "PRO", "30", " 10.0.0.1, ,192.168.1.2 ")

    assert payload == {
        "name": "Trading bot",
        "tier": "pro",
        "expiresInDays": 30,
        "allowedIPs": ["10.0.0.1", "192.168.1.2"],
    }
    assert api_keys.build_generate_payload("Reports", "free", 0, "") == {"name": "Reports", "tier": "free"}


@pytest.mark.parametrize(
    ("name", "tier", "expires", "message"),
    [
        ("", "free", None, "enter a name"),
        ("Bot", "gold", None, "unknown API tier"),
        ("Bot", "free", "soon", "whole number"),
        ("Bot", "free", -3, "positive number"),
    ],
)
def test_build_generate_payload_validation(name, tier, expires, message):
    with pytest.raises(ValueError, match=message):
        api_keys.build_generate_payload(name, tier, expires)


def test_mask_key():
    assert api_keys.mask_key("mp_live_1234567890") == "mp_live_" + "•" * 10
    assert api_keys.mask_key("short") == "short"
    assert api_keys.mask_key(None) == ""
    assert api_keys.mask_key("x" * 100).count("•") == 24
