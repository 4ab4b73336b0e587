import pytest

from mariposa_app.utils import api_tester


def test_catalogue_groups_keep_order():
    groups = api_tester.group_endpoints()

    assert list(groups) == ["Opportunities", "Whale Activities", "Market Reports"]
    assert [endpoint.name for endpoint in groups["Market Reports"]] == [
        "Download Market Report",
        "Send Report to Telegram",
    ]


def test_find_endpoint():
    endpoint = api_tester.find_endpoint("Top Opportunities")

    assert endpoint.path == "/opportunities/top"
    assert [param.name for param in endpoint.params] == ["limit", "sortBy"]
    with pytest.raises(KeyError):
        api_tester.find_endpoint("Nope")


def test_filter_params_drops_blanks_and_all():
    assert api_tester.filter_params({"limit": "10", "category": "ALL", "minScore": "", "riskLevel": None}) == {
        "limit": "10"
    }


def test_curl_example_encodes_query():
    endpoint = api_tester.find_endpoint("List Opportunities")

    snippet = api_tester.code_example(
        "curl", endpoint, "mp_key", {"limit": "5", "category": "ALL", "minScore": ""}, base_url="https://api.test/v1/"
    )

    assert snippet.splitlines()[0] == 'curl -X GET "https://api.test/v1/opportunities?limit=5&category=ALL" \\'
    assert 'Authorization: Bearer mp_key' in snippet


def test_javascript_and_python_examples():
    endpoint = api_tester.find_endpoint("Send Report to Telegram")

    javascript = api_tester.code_example("javascript", endpoint, "k", {"date": "2024-05-01"})
    python = api_tester.code_example("python", endpoint, "k", {"date": "2024-05-01"})

    assert "fetch('http://localhost:3001/api/v1/market-reports/send-telegram?date=2024-05-01'" in javascript
    assert "method: 'POST'" in javascript
    assert "requests.post(" in python
    assert "params={'date': '2024-05-01'}" in python
    with pytest.raises(ValueError, match="unsupported language"):
        api_tester.code_example("ruby", endpoint, "k")


def test_status_tone_and_rate_limit_headers():
    assert [api_tester.status_tone(code) for code in (200, 404, 500, 0, None)] == [
        "success",
        "warning",
        "danger",
        "danger",
        "danger",
    ]
    headers = {"X-RateLimit-Limit": "100", "X-RateLimit-Remaining": 7, "Content-Type": "application/json"}
    assert api_tester.rate_limit_headers(headers) == {"x-ratelimit-limit": "100", "x-ratelimit-remaining": "7"}
    assert api_tester.rate_limit_headers(None) == {}
