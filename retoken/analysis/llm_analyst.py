"""
LLM Analyst - Risk commentary from Large Language Models

Supports OpenAI (GPT-4o, etc.) and Anthropic (Claude) as commentary backends.
Blocking SDK calls run in a worker thread so the event loop keeps ticking.
"""

import asyncio
from typing import Optional
from retoken.core.exceptions import InvalidConfiguration
from retoken.analysis.base import BaseAnalysisDelegate, build_prompt


SYSTEM_PROMPT = "You are a senior DeFi risk analyst. Answer with bullet points only."

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-latest",
}


class LLMAnalyst(BaseAnalysisDelegate):
    """
    Generate commentary using LLM APIs.

    Provider is chosen explicitly ("openai" or "anthropic"); the model
    name defaults per provider.
    """

    name = "llm"

    def __init__(
        self,
        provider: str = "openai",
        model: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        timeout: int = 30
    ):
        """
        Initialize LLM analyst.

        Args:
            provider: "openai" or "anthropic"
            model: Model name (defaults per provider)
            openai_api_key: OpenAI API key
            anthropic_api_key: Anthropic API key
            timeout: Request timeout in seconds
        """
        if provider not in DEFAULT_MODELS:
            raise InvalidConfiguration(f"Unknown analysis provider: {provider}")

        self.provider = provider
        self.model = model or DEFAULT_MODELS[provider]
        self.openai_api_key = openai_api_key
        self.anthropic_api_key = anthropic_api_key
        self.timeout = timeout

        # Lazy import to avoid requiring these libraries if not used
        self.openai_client = None
        self.anthropic_client = None

    def _init_openai(self):
        """Initialize OpenAI client (lazy)."""
        if self.openai_client is None:
            if not self.openai_api_key:
                raise InvalidConfiguration("OpenAI API key required for OpenAI models")
            try:
                import openai
                self.openai_client = openai.OpenAI(api_key=self.openai_api_key)
            except ImportError:
                raise InvalidConfiguration("openai package not installed. Run: pip install openai")

    def _init_anthropic(self):
        """Initialize Anthropic client (lazy)."""
        if self.anthropic_client is None:
            if not self.anthropic_api_key:
                raise InvalidConfiguration("Anthropic API key required for Claude models")
            try:
                import anthropic
                self.anthropic_client = anthropic.Anthropic(api_key=self.anthropic_api_key)
            except ImportError:
                raise InvalidConfiguration("anthropic package not installed. Run: pip install anthropic")

    async def generate(self, protocol: str, asset: str, score: float) -> str:
        prompt = build_prompt(protocol, asset, score)

        if self.provider == "openai":
            return await asyncio.to_thread(self._complete_openai, prompt)
        return await asyncio.to_thread(self._complete_anthropic, prompt)

    def _complete_openai(self, prompt: str) -> str:
        """Complete using OpenAI API."""
        self._init_openai()

        response = self.openai_client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt}
            ],
            timeout=self.timeout
        )

        return response.choices[0].message.content or ""

    def _complete_anthropic(self, prompt: str) -> str:
        """Complete using Anthropic API."""
        self._init_anthropic()

        response = self.anthropic_client.messages.create(
            model=self.model,
            max_tokens=512,
            system=SYSTEM_PROMPT,
            messages=[
                {"role": "user", "content": prompt}
            ],
            timeout=self.timeout
        )

        return response.content[0].text
