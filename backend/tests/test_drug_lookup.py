import pytest
import requests

from rexai.services.llm import drug_lookup
from rexai.services.llm.drug_lookup import DrugLookupError, RxNormClient


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        return self.payload


@pytest.fixture()
def fake_get(monkeypatch):
    calls = []
    responses = {}

    def _get(url, params=None, timeout=None):
        calls.append((url.rsplit("/", 1)[-1], dict(params or {})))
        response = responses.get(url.rsplit("/", 1)[-1])
        if isinstance(response, Exception):
            raise response
        return response or FakeResponse({})

    monkeypatch.setattr(drug_lookup.requests, "get", _get)
    return calls, responses


def test_approximate_match_returns_concept(fake_get):
    calls, responses = fake_get
    responses["approximateTerm.json"] = FakeResponse(
        {"approximateGroup": {"candidate": [{"rxcui": "5640", "score": "100"}]}}
    )

    info = RxNormClient(base_url="https://rx.example/REST").search("Ibuprofen")

    assert info.rxcui == "5640"
    assert info.name == "Ibuprofen"
    assert calls == [("approximateTerm.json", {"term": "Ibuprofen", "maxEntries": 1})]


def test_exact_drugs_lookup_is_the_fallback(fake_get):
    calls, responses = fake_get
    responses["approximateTerm.json"] = FakeResponse({"approximateGroup": {}})
    responses["drugs.json"] = FakeResponse(
        {
            "drugGroup": {
                "conceptGroup": [
                    {"tty": "BN"},
                    {"tty": "SCD", "conceptProperties": [{"rxcui": "308182"}]},
                ]
            }
        }
    )

    info = RxNormClient().search("amoxicillin")

    assert info.rxcui == "308182"
    assert [c[0] for c in calls] == ["approximateTerm.json", "drugs.json"]


def test_unknown_names_are_cached(fake_get):
    calls, _ = fake_get
    client = RxNormClient()

    assert client.search("Fakeamol") is None
    assert client.search("fakeamol ") is None
    assert len(calls) == 2


def test_cache_evicts_least_recently_used_name(fake_get):
    calls, _ = fake_get
    client = RxNormClient(cache_size=2)

    client.search("alpha")
    client.search("beta")
    client.search("alpha")
    client.search("gamma")
    assert len(calls) == 6

    client.search("alpha")
    assert len(calls) == 6
    client.search("beta")
    assert len(calls) == 8


def test_network_errors_raise_and_are_not_cached(fake_get):
    calls, responses = fake_get
    responses["approximateTerm.json"] = requests.ConnectionError("no route")
    client = RxNormClient()

    with pytest.raises(DrugLookupError):
        client.search("Ibuprofen")
    with pytest.raises(DrugLookupError):
        client.search("Ibuprofen")
    assert len(calls) == 2


def test_http_errors_raise(fake_get):
    _, responses = fake_get
    responses["approximateTerm.json"] = FakeResponse({}, status_code=503)

    with pytest.raises(DrugLookupError, match="HTTP 503"):
        RxNormClient().search("Ibuprofen")
