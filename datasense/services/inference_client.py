"""
Inference Client
One request/response call to an external text-generation service.

Two backends share the same contract:
- OllamaInferenceClient: POST {base}/api/generate with stream disabled
- OpenAIInferenceClient: any OpenAI-compatible chat completions endpoint

No retries happen here. A repair prompt is not a blind retry, so retry
policy belongs to the caller. Prompt and reply bodies are never logged.
"""
import logging
import time
from typing import Optional

import httpx
from openai import AsyncOpenAI, APIConnectionError, APIStatusError, APITimeoutError

from datasense.config import Settings
from datasense.services.exceptions import (
    InferenceTimeoutError,
    InferenceUnavailableError,
    MalformedResponseError,
)

logger = logging.getLogger(__name__)


class InferenceClient:
    """Contract shared by all backends"""

    async def infer(self, prompt: str) -> str:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class OllamaInferenceClient(InferenceClient):
    """Ollama /api/generate backend over a shared httpx.AsyncClient"""

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

        logger.info(f"Ollama inference client initialized: {self.base_url} (model={self.model})")

    async def infer(self, prompt: str) -> str:
        url = f"{self.base_url}/api/generate"
        payload = {"model": self.model, "prompt": prompt, "stream": False}
        started = time.perf_counter()

        try:
            response = await self._client.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error(f"Inference timed out after {self.timeout}s")
            raise InferenceTimeoutError(f"Inference timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Inference returned HTTP {e.response.status_code}")
            raise InferenceUnavailableError(f"Inference returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Inference request failed: {type(e).__name__}")
            raise InferenceUnavailableError(f"Inference request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError("Inference reply is not valid JSON") from e

        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise MalformedResponseError("Inference reply has no 'response' field")

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"Inference completed in {elapsed_ms:.0f}ms ({len(prompt)} chars in, {len(text)} chars out)")
        return text

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class OpenAIInferenceClient(InferenceClient):
    """OpenAI-compatible chat completions backend"""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.model = model
        self.timeout = timeout
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

        logger.info(f"OpenAI inference client initialized (model={self.model})")

    async def infer(self, prompt: str) -> str:
        started = time.perf_counter()
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except APITimeoutError as e:
            logger.error(f"Inference timed out after {self.timeout}s")
            raise InferenceTimeoutError(f"Inference timed out after {self.timeout}s") from e
        except APIStatusError as e:
            logger.error(f"Inference returned HTTP {e.status_code}")
            raise InferenceUnavailableError(f"Inference returned HTTP {e.status_code}") from e
        except APIConnectionError as e:
            logger.error("Inference connection failed")
            raise InferenceUnavailableError(f"Inference connection failed: {e}") from e

        if not completion.choices:
            raise MalformedResponseError("Inference reply has no choices")
        text = completion.choices[0].message.content
        if text is None:
            raise MalformedResponseError("Inference reply has no content")

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"Inference completed in {elapsed_ms:.0f}ms ({len(prompt)} chars in, {len(text)} chars out)")
        return text

    async def aclose(self) -> None:
        await self.client.close()


def create_inference_client(config: Settings, http_client: Optional[httpx.AsyncClient] = None) -> InferenceClient:
    """Build the configured backend"""
    if config.is_openai:
        if not config.OPENAI_API_KEY:
            raise RuntimeError("OPENAI_API_KEY is required when INFERENCE_PROVIDER=openai")
        return OpenAIInferenceClient(
            api_key=config.OPENAI_API_KEY,
            model=config.OPENAI_MODEL,
            base_url=config.OPENAI_BASE_URL,
            timeout=config.INFERENCE_TIMEOUT,
            http_client=http_client,
        )
    return OllamaInferenceClient(
        base_url=config.OLLAMA_BASE_URL,
        model=config.OLLAMA_MODEL,
        timeout=config.INFERENCE_TIMEOUT,
        http_client=http_client,
    )
