"""
Shared chat-model factory.
Maps a participant's model name to its provider and builds the langchain client.
Server-side env keys win; the operator's per-run keys are the fallback.
"""
import os
import re

from langchain_core.messages import AIMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from libs.errors import MissingCredentialError, UnknownProviderError


# Provider → (env var for the key, env var for the base url, default base url)
_PROVIDERS = {
    "gemini": ("GEMINI_API_KEY", None, None),
    "deepseek": ("DEEPSEEK_API_KEY", "DEEPSEEK_BASE_URL", "https://api.deepseek.com/v1"),
    "qwen": ("QWEN_API_KEY", "QWEN_BASE_URL", "https://dashscope.aliyuncs.com/compatible-mode/v1"),
}


class FakeLLM:
    """A minimal mock chat model for integration testing."""

    def __init__(self, model: str = "mock"):
        self.model = model

    def invoke(self, messages, **kwargs):
        system = str(messages[0].content) if messages else ""
        user_msg = str(messages[-1].content) if messages else ""
        match = re.search(r"\b((?:sh|sz)?\d{6})\b", user_msg, re.IGNORECASE)
        symbol = match.group(1).upper() if match else "UNKNOWN"

        text = f"[{self.model}] Mock analysis for {symbol}: fundamentals stable, momentum neutral."
        # The general manager prompt lists the decision markers
        if "🟡 观望" in system:
            text += "\n\n最终决策：🟡 观望"
        return AIMessage(content=text)

    async def ainvoke(self, messages, **kwargs):
        return self.invoke(messages, **kwargs)


def provider_for_model(model_name: str) -> str:
    name = model_name.lower().strip()
    for provider in _PROVIDERS:
        if name.startswith(provider):
            return provider
    raise UnknownProviderError(f"No provider known for model '{model_name}'")


def resolve_api_key(provider: str, api_keys: dict | None = None) -> str:
    env_var = _PROVIDERS[provider][0]
    key = os.getenv(env_var) or (api_keys or {}).get(provider, "")
    if not key:
        raise MissingCredentialError(
            f"No API key for {provider}. Set {env_var} on the server or enter a {provider} key."
        )
    return key


def get_llm(model_name: str, temperature: float = 0.7, api_keys: dict | None = None):
    """
    Return a chat model for the given model name.
    Override everything with MOCK_LLM=true for tests.
    """
    if os.getenv("MOCK_LLM") == "true":
        return FakeLLM(model_name)

    provider = provider_for_model(model_name)
    api_key = resolve_api_key(provider, api_keys)

    if provider == "gemini":
        return ChatGoogleGenerativeAI(
            model=model_name,
            temperature=temperature,
            google_api_key=api_key,
            max_retries=2,
        )

    _, base_url_var, default_base_url = _PROVIDERS[provider]
    return ChatOpenAI(
        model=model_name,
        temperature=temperature,
        api_key=api_key,
        base_url=os.getenv(base_url_var, default_base_url),
        max_retries=2,
    )
