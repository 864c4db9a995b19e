# medley/services/gpt_service.py
"""
GPT Service for the consultation engine.

Async-only wrapper around the OpenAI chat completions API with:
- Consistent error handling
- Lazy initialization
- Single-shot and streaming completions
- No embedded prompts
"""
from typing import AsyncIterator, Optional, Dict, Any, List
from dataclasses import dataclass
import logging
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion

from medley.core.config import Settings, settings as default_settings
from medley.core.service_base import BaseService
from medley.core.exceptions import (
    GPTServiceError,
    ConfigurationError,
    ValidationError
)
from medley.services.backend import ConversationBackend

logger = logging.getLogger(__name__)


@dataclass
class GPTConfig:
    """Configuration for GPT Service"""
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    max_tokens: Optional[int] = None
    temperature: float = 0.7
    timeout: int = 30
    max_retries: int = 2

    @classmethod
    def from_settings(cls, app_settings: Optional[Settings] = None) -> "GPTConfig":
        app_settings = app_settings or default_settings
        return cls(
            api_key=app_settings.OPENAI_API_KEY,
            model=app_settings.GPT_MODEL,
            temperature=app_settings.GPT_TEMPERATURE,
            timeout=app_settings.GPT_TIMEOUT,
            max_retries=app_settings.GPT_MAX_RETRIES
        )


class GPTService(BaseService[GPTConfig], ConversationBackend):
    """
    Generative backend on top of OpenAI's GPT models.

    Implements the ConversationBackend contract: `generate`,
    `generate_stream` (full-text snapshots), `categorize` and `prewarm`.
    """

    def __init__(self, config: Optional[GPTConfig] = None):
        """
        Initialize GPT Service.

        Args:
            config: GPT configuration. If not provided, uses application settings.
        """
        super().__init__(config or GPTConfig.from_settings(), logger)

    def _validate_config(self) -> None:
        super()._validate_config()

        if not self.config.api_key:
            raise ConfigurationError(
                message="OpenAI API key is required. Set OPENAI_API_KEY environment variable.",
                component=self.service_name,
                config_key="api_key"
            )

        if self.config.temperature < 0 or self.config.temperature > 2:
            raise ConfigurationError(
                message="Temperature must be between 0 and 2",
                component=self.service_name,
                config_key="temperature"
            )

    async def _initialize_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=self.config.api_key,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries
        )

    def _build_params(
        self,
        prompt: str,
        system_prompt: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
        **kwargs
    ) -> Dict[str, Any]:
        if not prompt or not prompt.strip():
            raise ValidationError(
                field="prompt",
                message="Prompt cannot be empty"
            )

        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        params: Dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature if temperature is None else temperature,
        }

        if max_tokens or self.config.max_tokens:
            params["max_tokens"] = max_tokens or self.config.max_tokens

        params.update(kwargs)
        return params

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> str:
        """
        Generate a completion for the given prompt.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt to set context
            temperature: Override default temperature
            max_tokens: Override default max tokens
            **kwargs: Additional OpenAI API parameters

        Returns:
            Generated text completion

        Raises:
            GPTServiceError: If generation fails
            ValidationError: If inputs are invalid
        """
        await self.ensure_initialized()
        params = self._build_params(prompt, system_prompt, temperature, max_tokens, **kwargs)

        try:
            self.logger.debug(f"Generating completion with model {params['model']}")

            response: ChatCompletion = await self.client.chat.completions.create(**params)

            if not response.choices:
                raise GPTServiceError(
                    message="No completion choices returned from API",
                    model=params["model"],
                    operation="complete"
                )

            content = response.choices[0].message.content

            if not content:
                raise GPTServiceError(
                    message="Empty completion returned from API",
                    model=params["model"],
                    operation="complete"
                )

            self.logger.debug(f"Generated completion: {len(content)} characters")
            return content.strip()

        except (GPTServiceError, ValidationError):
            raise
        except Exception as e:
            error_msg = f"Failed to generate completion: {str(e)}"
            self.logger.error(error_msg, exc_info=True)
            raise GPTServiceError(
                message=error_msg,
                model=params["model"],
                operation="complete",
                original_error=e
            )

    async def complete_stream(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncIterator[str]:
        """
        Stream a completion as growing snapshots of the full text.

        Yields:
            The accumulated text after every non-empty delta

        Raises:
            GPTServiceError: If the request or the stream fails
        """
        await self.ensure_initialized()
        params = self._build_params(prompt, system_prompt, temperature, max_tokens, **kwargs)
        params["stream"] = True

        try:
            self.logger.debug(f"Streaming completion with model {params['model']}")
            stream = await self.client.chat.completions.create(**params)

            text = ""
            try:
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta.content
                    if not delta:
                        continue
                    text += delta
                    yield text
            finally:
                # Releases the HTTP response when the consumer stops early
                await stream.close()

            self.logger.debug(f"Streamed completion: {len(text)} characters")

        except Exception as e:
            error_msg = f"Failed to stream completion: {str(e)}"
            self.logger.error(error_msg, exc_info=True)
            raise GPTServiceError(
                message=error_msg,
                model=params["model"],
                operation="complete_stream",
                original_error=e
            )

    # ConversationBackend contract

    async def generate(self, prompt: str, *, system_prompt: Optional[str] = None) -> str:
        return await self.complete(prompt, system_prompt=system_prompt)

    def generate_stream(self, prompt: str, *, system_prompt: Optional[str] = None) -> AsyncIterator[str]:
        return self.complete_stream(prompt, system_prompt=system_prompt)

    async def categorize(self, prompt: str) -> str:
        return await self.complete(prompt, temperature=0, max_tokens=50)

    async def prewarm(self) -> None:
        """Initialize the client ahead of the first turn; failures are only logged"""
        try:
            await self.ensure_initialized()
        except Exception as e:
            self.logger.warning(f"Prewarm skipped: {e}")

    def status(self) -> Dict[str, Any]:
        status = super().status()
        status.update({
            "model": self.config.model,
            "api_key_set": bool(self.config.api_key),
        })
        return status

    async def _cleanup(self) -> None:
        await self._client.close()
