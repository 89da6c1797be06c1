from anthropic import AsyncAnthropic
from typing import Optional, Dict, List, Any
import httpx

from bizforge.core.config import settings
from bizforge.core.logging_config import logger


REQUEST_TIMEOUT = float(settings.CLAUDE_REQUEST_TIMEOUT)
CONNECT_TIMEOUT = float(settings.CLAUDE_CONNECT_TIMEOUT)


class ClaudeClient:
    """
    Thin async wrapper around the Anthropic messages API.

    No retries here: generator calls go through the executor's
    fixed-delay retry policy.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        client_kwargs: Dict[str, Any] = {"api_key": api_key or settings.ANTHROPIC_API_KEY}

        # Only set base_url if it's a non-empty string with actual content
        if settings.ANTHROPIC_BASE_URL and settings.ANTHROPIC_BASE_URL.strip():
            client_kwargs["base_url"] = settings.ANTHROPIC_BASE_URL.strip()
            logger.info(f"Using custom Claude API base URL: {settings.ANTHROPIC_BASE_URL}")

        client_kwargs["timeout"] = httpx.Timeout(
            connect=CONNECT_TIMEOUT,
            read=REQUEST_TIMEOUT,
            write=REQUEST_TIMEOUT,
            pool=REQUEST_TIMEOUT
        )

        self.async_client = AsyncAnthropic(**client_kwargs)
        self.model = model or settings.CLAUDE_MODEL

        logger.info(f"Claude client initialized: timeout={REQUEST_TIMEOUT}s, model={self.model}")

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        messages: Optional[List[Dict[str, str]]] = None
    ) -> Dict[str, Any]:
        """
        Generate a (non-streaming) response

        Returns:
            Dict with content, token usage and stop reason
        """
        messages = list(messages or [])
        messages.append({"role": "user", "content": prompt})

        if max_tokens is None:
            max_tokens = settings.CLAUDE_MAX_TOKENS
        if temperature is None:
            temperature = settings.CLAUDE_TEMPERATURE

        logger.info(f"Claude API: model={self.model}, max_tokens={max_tokens}, prompt_len={len(prompt)}")

        response = await self.async_client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt or "",
            messages=messages
        )

        content = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

        logger.info(
            f"Claude API response: id={response.id}, "
            f"tokens={response.usage.input_tokens + response.usage.output_tokens}, stop={response.stop_reason}"
        )
        return {
            "content": content,
            "model": self.model,
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
            "stop_reason": response.stop_reason,
            "id": response.id,
        }
