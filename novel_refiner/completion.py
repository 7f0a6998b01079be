"""Streaming text completion against an OpenAI-compatible chat endpoint."""

import time
from typing import AsyncIterator, Optional

from loguru import logger

from .config import CompletionConfig


class OpenAICompletion:
    """Completion collaborator for the refinement runner.

    Calling an instance with a prompt returns an async iterator of text
    chunks. Errors from the API propagate to the caller unchanged.
    """

    def __init__(self, config: Optional[CompletionConfig] = None):
        self.config = config or CompletionConfig()
        self._client = None

    @property
    def client(self):
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
            )
        return self._client

    async def __call__(self, prompt: str) -> AsyncIterator[str]:
        start = time.time()
        received = 0
        stream = await self.client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": self.config.system_prompt},
                {"role": "user", "content": prompt},
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                received += len(delta)
                yield delta
        logger.debug(f"Completion streamed {received} chars in {time.time() - start:.2f}s")
