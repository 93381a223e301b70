import json
import logging

import requests
from groq import Groq

from educonnect.errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

# Tried in this order; the first structurally valid answer wins
GEMINI_MODELS = (
    ("gemini-2.5-flash", "v1beta"),
    ("gemini-2.5-pro-preview-06-05", "v1beta"),
    ("gemini-2.5-pro-preview-05-06", "v1beta"),
    ("gemini-2.5-pro-preview-03-25", "v1beta"),
)
GROQ_MODEL = "llama-3.3-70b-versatile"

FAILURE_MESSAGE = "Failed to get AI answer. Please try again."


class AssistantError(Exception):
    """One provider could not produce a usable answer."""

    def __init__(self, provider, message, status_code=None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.status_code = status_code


class AllProvidersFailed(Exception):
    def __init__(self, errors):
        super().__init__(errors[-1].message if errors else "No AI providers configured")
        self.errors = errors

    @property
    def last_message(self):
        return self.errors[-1].message if self.errors else "Unknown error"


def build_prompt(question):
    return "\n".join([
        "You are an educational assistant for college students.",
        "Explain concepts clearly and concisely, using simple language.",
        "If the question is unclear or missing information, say what is missing and suggest what the student should provide.",
        "Avoid hallucinating facts; if you don't know, say that you don't know.",
        "",
        f"Student question: {question}",
    ])


class GeminiModel:
    """A single Gemini model behind the generateContent endpoint."""

    def __init__(self, name, api_key, version="v1beta",
                 base_url="https://generativelanguage.googleapis.com", timeout=60.0):
        self.name = name
        self.version = version
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def __repr__(self):
        return f"GeminiModel({self.name!r}, {self.version!r})"

    @property
    def url(self):
        return f"{self.base_url}/{self.version}/models/{self.name}:generateContent"

    def ask(self, prompt):
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            resp = requests.post(
                self.url,
                params={"key": self.api_key},
                data=json.dumps(body),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AssistantError(self.name, f"Request failed: {e}") from e

        try:
            data = json.loads(resp.text)
        except ValueError as e:
            raise AssistantError(self.name, "Invalid JSON response", resp.status_code) from e

        if resp.status_code // 100 != 2:
            error = data.get("error") if isinstance(data, dict) else None
            message = error.get("message") if isinstance(error, dict) else None
            raise AssistantError(self.name, message or f"HTTP {resp.status_code}", resp.status_code)

        answer = extract_answer(data)
        if not answer:
            raise AssistantError(self.name, "AI did not return an answer", resp.status_code)
        return answer


def extract_answer(data):
    """Joined text of candidates[0].content.parts, or "" when the path is missing."""
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    if not isinstance(parts, list):
        return ""
    return "".join(part.get("text") or "" for part in parts if isinstance(part, dict))


def get_groq_client(api_key, timeout=60.0):
    if not api_key:
        return None
    # One attempt per provider; the chain itself is the fallback
    return Groq(api_key=api_key, timeout=timeout, max_retries=0)


class GroqModel:
    """Last-resort provider through the Groq chat completions API."""

    def __init__(self, api_key, name=GROQ_MODEL, timeout=60.0):
        self.name = name
        self.api_key = api_key
        self.timeout = timeout

    def __repr__(self):
        return f"GroqModel({self.name!r})"

    def ask(self, prompt):
        try:
            client = get_groq_client(self.api_key, self.timeout)
            completion = client.chat.completions.create(
                messages=[{"role": "user", "content": prompt}],
                model=self.name,
            )
            answer = completion.choices[0].message.content
        except Exception as e:
            raise AssistantError(self.name, str(e)) from e
        if not answer or not answer.strip():
            raise AssistantError(self.name, "AI did not return an answer")
        return answer


def ask_with_fallback(prompt, providers):
    """Ask each provider in order and return the first answer.

    Raises AllProvidersFailed with every collected error when none succeeds.
    """
    errors = []
    for provider in providers:
        logger.info("Trying model: %s", provider.name)
        try:
            answer = provider.ask(prompt)
        except AssistantError as e:
            logger.warning("Model %s failed: %s", provider.name, e.message)
            errors.append(e)
            continue
        logger.info("Success with model: %s", provider.name)
        return answer
    raise AllProvidersFailed(errors)


def list_available_models(api_key, base_url="https://generativelanguage.googleapis.com", timeout=60.0):
    """Model names the key can see; only used to enrich error messages."""
    try:
        resp = requests.get(f"{base_url.rstrip('/')}/v1beta/models", params={"key": api_key}, timeout=timeout)
        if resp.status_code // 100 != 2:
            return []
        data = resp.json()
        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            return []
        return [m["name"] for m in models if isinstance(m, dict) and isinstance(m.get("name"), str)]
    except (requests.RequestException, ValueError) as e:
        logger.warning("Could not fetch available models: %s", e)
        return []


def build_providers(config):
    providers = []
    gemini_key = config.get("GEMINI_API_KEY")
    if gemini_key:
        providers.extend(
            GeminiModel(name, gemini_key, version=version, base_url=config["GEMINI_API_BASE"],
                        timeout=config["AI_REQUEST_TIMEOUT"])
            for name, version in GEMINI_MODELS
        )
    if config.get("GROQ_API_KEY"):
        providers.append(GroqModel(config["GROQ_API_KEY"], timeout=config["AI_REQUEST_TIMEOUT"]))
    return providers


def answer_doubt(question, config):
    question = question.strip() if isinstance(question, str) else ""
    if not question:
        raise ValidationError("Question is required")

    providers = build_providers(config)
    if not providers:
        raise UpstreamError("AI is not configured. Missing GEMINI_API_KEY.")

    try:
        return ask_with_fallback(build_prompt(question), providers)
    except AllProvidersFailed as e:
        logger.error("All AI models failed. Last error: %s", e.last_message)
        message = FAILURE_MESSAGE
        if config.get("GEMINI_API_KEY"):
            available = list_available_models(config["GEMINI_API_KEY"], config["GEMINI_API_BASE"],
                                              config["AI_REQUEST_TIMEOUT"])
            if available:
                message += f" Available models: {', '.join(available[:5])}"
        raise UpstreamError(message, details=e.last_message) from e
