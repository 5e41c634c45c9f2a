# ABOUTME: Thin async wrapper over OpenAI chat completions used by the reasoning service.
# ABOUTME: One request per call; any SDK or transport error comes back as LLMCallFailed.

from typing import Any

from loguru import logger
from openai import AsyncOpenAI

from trpg_events.agents.exceptions import LLMCallFailed


class LLMClient:
    """
    Sends a system/user prompt pair to one chat model and returns the reply text.

    Retrying is the caller's decision; a failed request is reported once.
    """

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o", timeout: float = 30.0):
        """
        Args:
            client: Configured AsyncOpenAI instance
            model: Chat model name sent with every request
            timeout: Seconds to wait for a reply unless a call overrides it
        """
        self.client = client
        self.model = model
        self.timeout = timeout

    @staticmethod
    def _messages(system_prompt: str, user_prompt: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    def _request(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        response_format: dict[str, str] | None,
        timeout: float | None,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": self._messages(system_prompt, user_prompt),
            "temperature": temperature,
            "timeout": self.timeout if timeout is None else timeout,
        }
        if response_format:
            request["response_format"] = response_format
        return request

    async def call(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        response_format: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> str:
        """
        Ask the model for a single completion.

        Pass response_format={"type": "json_object"} to request JSON output.
        A reply with no content comes back as an empty string.

        Raises:
            LLMCallFailed: The request errored or timed out
        """
        request = self._request(system_prompt, user_prompt, temperature, response_format, timeout)
        try:
            completion = await self.client.chat.completions.create(**request)
            return completion.choices[0].message.content or ""
        except Exception as e:
            logger.bind(model=self.model).warning(f"Chat completion request failed: {e}")
            raise LLMCallFailed(f"OpenAI API call failed: {e}") from e
