"""Generative text client wrapping the Anthropic and OpenAI-compatible SDKs."""

import asyncio
import logging
from typing import Any, Dict, Optional

import anthropic
from openai import OpenAI

QUICK_MODE = "quick"
FULL_MODE = "full"


class GenerativeTransportError(Exception):
    """Raised when the generative service cannot produce a response."""


class GenerativeTextClient:
    """Sends one prompt to the configured provider and returns its text."""

    def __init__(self, llm_config: Dict[str, Any]):
        """
        Initialize client.

        Args:
            llm_config: Output of Config.get_llm_config()
        """
        self.llm_config = llm_config
        self.provider = llm_config.get("provider", "openai")
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def enabled(self) -> bool:
        """True when a provider and API key are configured."""
        return self.provider != "none" and bool(self.llm_config.get("api_key"))

    def model_for(self, mode: str) -> str:
        if mode == QUICK_MODE:
            return self.llm_config.get("quick_model") or self.llm_config.get("model", "gpt-4o-mini")
        return self.llm_config.get("model", "gpt-4o-mini")

    async def complete(
        self,
        prompt: str,
        temperature: float,
        max_tokens: int,
        mode: str = FULL_MODE,
        system: Optional[str] = None,
    ) -> str:
        """
        Request a completion.

        Args:
            prompt: User prompt
            temperature: Sampling temperature
            max_tokens: Response token budget
            mode: "quick" or "full"; selects the model
            system: Optional system instruction

        Returns:
            Response text (may be empty)

        Raises:
            GenerativeTransportError: On any SDK, network or HTTP status failure
        """
        if not self.enabled:
            raise GenerativeTransportError(f"LLM provider '{self.provider}' is not configured")

        model = self.model_for(mode)
        self.logger.info(f"Requesting {mode} completion from {self.provider}/{model}")
        try:
            if self.provider == "anthropic":
                return await self._complete_anthropic(prompt, model, temperature, max_tokens, system)
            return await self._complete_openai(prompt, model, temperature, max_tokens, system)
        except Exception as e:
            raise GenerativeTransportError(f"{self.provider} request failed: {e}") from e

    async def _complete_anthropic(
        self,
        prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
        system: Optional[str],
    ) -> str:
        client = anthropic.Anthropic(api_key=self.llm_config.get("api_key"))

        def _call_anthropic():
            kwargs = {
                "model": model,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "messages": [
                    {
                        "role": "user",
                        "content": prompt
                    }
                ],
            }
            if system:
                kwargs["system"] = system
            return client.messages.create(**kwargs)

        message = await asyncio.to_thread(_call_anthropic)
        return "".join(
            getattr(block, "text", "") for block in (message.content or [])
        )

    async def _complete_openai(
        self,
        prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
        system: Optional[str],
    ) -> str:
        client = OpenAI(
            api_key=self.llm_config.get("api_key"),
            base_url=self.llm_config.get("base_url")
        )

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        def _call_openai():
            return client.chat.completions.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=messages,
            )

        response = await asyncio.to_thread(_call_openai)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
