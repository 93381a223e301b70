import json

import pytest
import requests

from educonnect import ai_assistant
from educonnect.ai_assistant import (
    AllProvidersFailed, AssistantError, GeminiModel, GroqModel, ask_with_fallback, extract_answer,
)


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(body)

    def json(self):
        return json.loads(self.text)


def gemini_answer(text):
    return FakeResponse(200, {"candidates": [{"content": {"parts": [{"text": text}]}}]})


@pytest.fixture
def gemini(app, monkeypatch):
    """Script the Gemini endpoints: one queued response per generateContent call."""
    app.config["GEMINI_API_KEY"] = "test-key"
    calls = []
    queue = []
    listing = {"response": FakeResponse(404, {"error": {"message": "nope"}})}

    def fake_post(url, params=None, data=None, headers=None, timeout=None):
        calls.append(url)
        assert params == {"key": "test-key"}
        assert "Student question:" in json.loads(data)["contents"][0]["parts"][0]["text"]
        result = queue.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def fake_get(url, params=None, timeout=None):
        return listing["response"]

    monkeypatch.setattr(ai_assistant.requests, "post", fake_post)
    monkeypatch.setattr(ai_assistant.requests, "get", fake_get)
    return {"calls": calls, "queue": queue, "listing": listing}


def test_second_model_answers_after_malformed_first(client, gemini):
    gemini["queue"].extend([FakeResponse(200, text="<html>oops"), gemini_answer("Photosynthesis makes sugar.")])

    resp = client.post("/api/ai/ask-doubt", json={"question": "What is photosynthesis?"})

    assert resp.status_code == 200
    assert resp.get_json() == {"answer": "Photosynthesis makes sugar."}
    assert [url.rsplit("/", 1)[-1] for url in gemini["calls"]] == [
        "gemini-2.5-flash:generateContent",
        "gemini-2.5-pro-preview-06-05:generateContent",
    ]


def test_all_models_failing_is_500(client, gemini):
    gemini["queue"].extend([
        FakeResponse(503, {"error": {"message": "overloaded"}}),
        requests.ConnectionError("connection reset"),
        FakeResponse(200, {"candidates": []}),
        FakeResponse(429, {"error": {"message": "quota exceeded"}}),
    ])
    gemini["listing"]["response"] = FakeResponse(200, {"models": [{"name": f"models/m{i}"} for i in range(7)]})

    resp = client.post("/api/ai/ask-doubt", json={"question": "Explain recursion"})

    assert resp.status_code == 500
    body = resp.get_json()
    assert body["error"].startswith("Failed to get AI answer.")
    assert "models/m0, models/m1, models/m2, models/m3, models/m4" in body["error"]
    assert "models/m5" not in body["error"]
    assert body["details"] == "quota exceeded"
    assert len(gemini["calls"]) == 4


def test_listing_failure_keeps_generic_message(client, gemini):
    gemini["queue"].extend([FakeResponse(500, {"error": {"message": "boom"}})] * 4)

    resp = client.post("/api/ai/ask-doubt", json={"question": "Explain recursion"})

    assert resp.status_code == 500
    assert resp.get_json()["error"] == "Failed to get AI answer. Please try again."


def test_malformed_model_listing_keeps_generic_message(client, gemini):
    for listing in (FakeResponse(200, [{"name": "models/m0"}]),
                    FakeResponse(200, {"models": ["models/m0", None, {"name": 3}]})):
        gemini["queue"].extend([FakeResponse(500, {"error": {"message": "boom"}})] * 4)
        gemini["listing"]["response"] = listing

        resp = client.post("/api/ai/ask-doubt", json={"question": "Explain recursion"})

        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Failed to get AI answer. Please try again.", "details": "boom"}


def test_empty_question_is_400(client, gemini):
    for body in ({}, {"question": ""}, {"question": "   "}):
        assert client.post("/api/ai/ask-doubt", json=body).status_code == 400
    assert gemini["calls"] == []


def test_missing_key_is_500(client):
    resp = client.post("/api/ai/ask-doubt", json={"question": "Why is the sky blue?"})
    assert resp.status_code == 500
    assert "GEMINI_API_KEY" in resp.get_json()["error"]


def test_groq_is_last_resort(app, client, gemini, monkeypatch):
    app.config["GROQ_API_KEY"] = "groq-key"
    app.config["AI_REQUEST_TIMEOUT"] = 7.5
    gemini["queue"].extend([FakeResponse(500, {"error": {"message": "down"}})] * 4)

    class FakeCompletions:
        def create(self, messages, model):
            assert model == "llama-3.3-70b-versatile"
            message = type("Message", (), {"content": "Rayleigh scattering."})
            choice = type("Choice", (), {"message": message})
            return type("Completion", (), {"choices": [choice]})

    class FakeGroq:
        def __init__(self, api_key, timeout=None, max_retries=None):
            assert api_key == "groq-key"
            assert timeout == 7.5
            assert max_retries == 0
            self.chat = type("Chat", (), {"completions": FakeCompletions()})

    monkeypatch.setattr(ai_assistant, "Groq", FakeGroq)

    resp = client.post("/api/ai/ask-doubt", json={"question": "Why is the sky blue?"})
    assert resp.get_json() == {"answer": "Rayleigh scattering."}
    assert len(gemini["calls"]) == 4


class StubProvider:
    def __init__(self, name, answer=None):
        self.name = name
        self.answer = answer
        self.asked = 0

    def ask(self, prompt):
        self.asked += 1
        if self.answer is None:
            raise AssistantError(self.name, f"{self.name} unavailable")
        return self.answer


def test_fallback_stops_at_first_success():
    providers = [StubProvider("a"), StubProvider("b", "from b"), StubProvider("c", "from c")]
    assert ask_with_fallback("prompt", providers) == "from b"
    assert [p.asked for p in providers] == [1, 1, 0]


def test_fallback_collects_every_error():
    with pytest.raises(AllProvidersFailed) as exc:
        ask_with_fallback("prompt", [StubProvider("a"), StubProvider("b")])
    assert [e.provider for e in exc.value.errors] == ["a", "b"]
    assert exc.value.last_message == "b unavailable"


def test_extract_answer_joins_parts():
    data = {"candidates": [{"content": {"parts": [{"text": "Hello, "}, {"inlineData": {}}, {"text": "world"}]}}]}
    assert extract_answer(data) == "Hello, world"
    assert extract_answer({"candidates": [{"content": {}}]}) == ""
    assert extract_answer([]) == ""


def test_gemini_model_reports_http_errors(monkeypatch):
    monkeypatch.setattr(ai_assistant.requests, "post",
                        lambda *a, **kw: FakeResponse(403, {"error": {"message": "API key not valid"}}))
    model = GeminiModel("gemini-2.5-flash", "bad-key", base_url="https://ai.test")
    with pytest.raises(AssistantError) as exc:
        model.ask("hi")
    assert exc.value.status_code == 403
    assert exc.value.message == "API key not valid"


def test_groq_model_wraps_sdk_errors(monkeypatch):
    class BrokenGroq:
        def __init__(self, api_key, **kwargs):
            raise RuntimeError("invalid api key")

    monkeypatch.setattr(ai_assistant, "Groq", BrokenGroq)
    with pytest.raises(AssistantError):
        GroqModel("groq-key").ask("hi")
