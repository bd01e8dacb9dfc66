from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from .config import DEFAULT_AZURE_API_VERSION
from .errors import CompletionBackendError
from .models import AIConfig

logger = logging.getLogger(__name__)

OPENAI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL_NAME = "gpt-4-turbo"
TEMPERATURE = 0.1
REQUEST_TIMEOUT = 120

# substring of a caller model identifier -> OpenAI model name
MODEL_NAMES = {
    "gpt-4o": "gpt-4o",
    "gpt-4-turbo": "gpt-4-turbo",
    "gpt-4": "gpt-4",
    "gpt-3.5": "gpt-3.5-turbo",
}


def resolve_model_name(model: Optional[str]) -> str:
    """Map an identifier such as ``openai_gpt-4o`` to an OpenAI model name.

    The longest matching substring wins, so ``gpt-4-turbo`` is not taken for
    plain ``gpt-4``.
    """
    if not model:
        return DEFAULT_MODEL_NAME
    for key in sorted(MODEL_NAMES, key=len, reverse=True):
        if key in model:
            return MODEL_NAMES[key]
    return DEFAULT_MODEL_NAME


class CompletionProvider(ABC):
    """Chat-completions call shared by providers; subclasses supply routing."""

    name = "base"

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    @abstractmethod
    def resolve_model(self, model: Optional[str]) -> str: ...

    @abstractmethod
    def endpoint(self, model_name: str) -> str: ...

    @abstractmethod
    def headers(self) -> Dict[str, str]: ...

    def complete(self, system_prompt: str, prompt: str, model: Optional[str] = None) -> str:
        """Send one system/user exchange and return the JSON-mode completion text."""
        model_name = self.resolve_model(model)
        payload: Dict[str, Any] = {
            "model": model_name,
            "temperature": TEMPERATURE,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
        }
        logger.info("Making %s API call with model/deployment: %s", self.name, model_name)

        try:
            response = requests.post(
                self.endpoint(model_name), headers=self.headers(), json=payload, timeout=REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()["choices"][0]["message"]["content"]
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            logger.error(
                "%s HTTP error: %s - Response: %s",
                self.name,
                exc,
                exc.response.text if exc.response is not None else "No response",
            )
            raise CompletionBackendError(f"{self.name} request failed with HTTP {status}", status_code=status) from exc
        except requests.exceptions.RequestException as exc:
            logger.error("%s request failed: %s", self.name, exc)
            raise CompletionBackendError(f"{self.name} request failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise CompletionBackendError(f"{self.name} response did not contain a completion") from exc


class OpenAIProvider(CompletionProvider):
    name = "openai"

    def resolve_model(self, model: Optional[str]) -> str:
        return resolve_model_name(model)

    def endpoint(self, model_name: str) -> str:
        return OPENAI_ENDPOINT

    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }


class AzureOpenAIProvider(CompletionProvider):
    """Azure routes by deployment name, so the caller's model id is ignored."""

    name = "azure"

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        deployment: str,
        api_version: Optional[str] = None,
    ) -> None:
        super().__init__(api_key)
        if not endpoint or not deployment:
            raise CompletionBackendError("Azure OpenAI requires an endpoint and a deployment name")
        self.azure_endpoint = endpoint.rstrip("/")
        self.deployment = deployment
        self.api_version = api_version or DEFAULT_AZURE_API_VERSION

    def resolve_model(self, model: Optional[str]) -> str:
        return self.deployment

    def endpoint(self, model_name: str) -> str:
        return (
            f"{self.azure_endpoint}/openai/deployments/{model_name}/chat/completions"
            f"?api-version={self.api_version}"
        )

    def headers(self) -> Dict[str, str]:
        return {"api-key": self.api_key, "Content-Type": "application/json"}


def get_provider(ai_config: AIConfig, api_key: str) -> CompletionProvider:
    if ai_config.provider == "azure":
        return AzureOpenAIProvider(
            api_key,
            endpoint=ai_config.azure_endpoint or "",
            deployment=ai_config.azure_deployment or "",
            api_version=ai_config.azure_api_version,
        )
    return OpenAIProvider(api_key)
