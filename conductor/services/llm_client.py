"""
LLM Client - Chat completions for plan generation and edit proposals.
Talks to any OpenAI-compatible provider (OpenAI, Mistral, OpenRouter,
Ollama) or to the offline mock.
"""
from openai import AsyncOpenAI, BadRequestError
from typing import Optional
import json
import logging
import re

from ..config import get_llm_config, settings

logger = logging.getLogger(__name__)

CODE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def parse_json_object(text: Optional[str]) -> dict:
    """
    Pull the first JSON object out of a model reply.

    Models wrap JSON in markdown fences or surround it with prose; both are
    tolerated. Returns an empty dict when no object can be decoded.
    """
    text = (text or "").strip()
    candidates = [text]
    candidates += [block.strip() for block in CODE_BLOCK.findall(text)]

    decoder = json.JSONDecoder()
    for candidate in candidates:
        start = candidate.find("{")
        while start != -1:
            try:
                value, _ = decoder.raw_decode(candidate, start)
            except json.JSONDecodeError:
                start = candidate.find("{", start + 1)
                continue
            if isinstance(value, dict):
                return value
            start = candidate.find("{", start + 1)
    return {}


def _build_backend(provider: str, config: dict):
    if provider == "mock":
        from .mock_llm import MockLLMClient
        return MockLLMClient()
    return AsyncOpenAI(
        api_key=config["api_key"],
        base_url=config["base_url"],
        timeout=config["timeout"],
    )


class LLMClient:
    """Async chat client shared by the generator and the edit proposer."""

    def __init__(self):
        config = get_llm_config()
        self.provider = settings.llm_provider
        self.backend = _build_backend(self.provider, config)
        self.model = self.backend.model if self.is_mock else config["model"]
        self.temperature = config["temperature"]
        self.max_tokens = config["max_tokens"]
        logger.info(f"LLM client ready: provider={self.provider}, model={self.model}")

    @property
    def is_mock(self) -> bool:
        return self.provider == "mock"

    async def chat(
        self,
        messages: list[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False
    ) -> str:
        """
        Send a chat completion request and return the reply text.

        Providers that reject ``response_format`` are retried once without it.
        """
        if self.is_mock:
            return await self.backend.chat(messages, temperature, max_tokens, json_mode)

        request = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self.backend.chat.completions.create(**request)
        except BadRequestError as e:
            if "response_format" not in request:
                raise
            logger.warning(f"{self.provider} rejected JSON mode, retrying as plain text: {e}")
            del request["response_format"]
            response = await self.backend.chat.completions.create(**request)

        if response.usage is not None:
            logger.debug(
                f"{self.model} used {response.usage.prompt_tokens} prompt / "
                f"{response.usage.completion_tokens} completion tokens"
            )
        return response.choices[0].message.content or ""

    async def chat_json(
        self,
        messages: list[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> dict:
        """Send a chat request and decode the JSON object in the reply."""
        reply = await self.chat(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True
        )
        result = parse_json_object(reply)
        if not result:
            logger.warning(f"No JSON object in {len(reply)}-character reply from {self.model}")
        return result


# Global LLM client instance
llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get or create the global LLM client."""
    global llm_client
    if llm_client is None:
        llm_client = LLMClient()
    return llm_client
