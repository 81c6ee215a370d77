"""Registry holding one adapter per backend type and routing completions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional

from .provider import AIProvider, ProviderError, build_default_providers
from .types import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ConnectionStatus,
    ProviderConfig,
    ProviderModel,
    ProviderType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FallbackPolicy:
    """Retry a failed non-default backend once against ``provider``.

    ``model`` overrides the request model on the retry; when unset the fallback
    backend's configured default model is used.
    """

    enabled: bool = True
    provider: ProviderType = ProviderType.OPENAI
    model: Optional[str] = None


NO_FALLBACK = FallbackPolicy(enabled=False)


class ProviderRegistry:
    """Holds the adapters, tracks the active one and dispatches completions.

    Built once by the process entry point and passed to every agent.
    """

    def __init__(
        self,
        providers: Optional[Mapping[ProviderType, AIProvider]] = None,
        active: ProviderType = ProviderType.OPENAI,
    ) -> None:
        self._providers: Dict[ProviderType, AIProvider] = dict(providers or build_default_providers())
        self._configs: Dict[ProviderType, ProviderConfig] = {}
        self._active = ProviderType(active)

    def register(self, provider: AIProvider, config: ProviderConfig | None = None) -> None:
        """Install ``provider`` for its type, replacing any existing adapter."""
        provider_type = ProviderType(provider.type)
        self._providers[provider_type] = provider
        if config is not None:
            self._configs[provider_type] = config

    def available_providers(self) -> List[ProviderType]:
        return list(self._providers)

    def get(self, provider_type: ProviderType) -> AIProvider:
        try:
            return self._providers[ProviderType(provider_type)]
        except (KeyError, ValueError) as exc:
            raise ProviderError(f"Unknown provider type: {provider_type}") from exc

    @property
    def active_type(self) -> ProviderType:
        return self._active

    @property
    def active(self) -> AIProvider:
        return self.get(self._active)

    def set_active(self, provider_type: ProviderType) -> None:
        provider_type = ProviderType(provider_type)
        if provider_type not in self._providers:
            raise ProviderError(f"Unknown provider type: {provider_type.value}")
        self._active = provider_type

    def config_for(self, provider_type: ProviderType) -> Optional[ProviderConfig]:
        return self._configs.get(ProviderType(provider_type))

    def default_model(self, provider_type: ProviderType | None = None) -> str:
        config = self.config_for(provider_type or self._active)
        return config.default_model if config and config.default_model else ""

    def initialize_provider(self, provider_type: ProviderType, config: ProviderConfig) -> None:
        provider = self.get(provider_type)
        self._configs[provider.type] = config
        provider.initialize(config)

    def initialize_all(self, configs: Mapping[ProviderType, ProviderConfig]) -> None:
        """Initialize every enabled config; one broken backend never blocks the rest."""
        for provider_type, config in configs.items():
            provider = self._providers.get(ProviderType(provider_type))
            if provider is None:
                logger.warning("No adapter registered for provider %s", provider_type)
                continue
            self._configs[provider.type] = config
            if not config.enabled:
                continue
            try:
                provider.initialize(config)
            except Exception as exc:
                logger.warning("Failed to initialize %s provider: %s", provider.type.value, exc)
                logger.debug("Initialization traceback", exc_info=True)

    def _ensure_ready(self, provider_type: ProviderType) -> AIProvider:
        provider = self.get(provider_type)
        if not provider.is_ready():
            config = self._configs.get(provider.type)
            if config is not None:
                provider.initialize(config)
        return provider

    def create_chat_completion(
        self,
        request: ChatCompletionRequest,
        *,
        fallback: FallbackPolicy = NO_FALLBACK,
    ) -> ChatCompletionResponse:
        """Route ``request`` to the active adapter.

        With an enabled ``fallback`` and an active backend other than the
        fallback one, a ``ProviderError`` triggers one retry against the
        fallback backend. Errors from the fallback backend propagate.
        """
        active_type = self._active
        if not fallback.enabled or active_type == fallback.provider:
            return self._ensure_ready(active_type).create_chat_completion(request)
        try:
            return self._ensure_ready(active_type).create_chat_completion(request)
        except ProviderError as exc:
            logger.warning(
                "Provider %s failed (%s); falling back to %s", active_type.value, exc, fallback.provider.value
            )
        model = fallback.model or self.default_model(fallback.provider) or request.model
        retry = replace(request, model=model)
        return self._ensure_ready(fallback.provider).create_chat_completion(retry)

    def test_provider(self, provider_type: ProviderType) -> ConnectionStatus:
        try:
            provider = self.get(provider_type)
        except ProviderError as exc:
            return ConnectionStatus(False, str(exc))
        if not provider.is_ready():
            config = self._configs.get(provider.type)
            if config is None:
                return ConnectionStatus(False, "Provider not initialized")
            try:
                provider.initialize(config)
            except Exception as exc:
                return ConnectionStatus(False, str(exc))
        return provider.test_connection()

    def list_models(self, provider_type: ProviderType) -> List[ProviderModel]:
        try:
            provider = self._ensure_ready(provider_type)
        except ProviderError:
            return []
        return provider.list_models()
