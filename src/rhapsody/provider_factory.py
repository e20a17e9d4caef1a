"""Provider factory — deterministic provider selection from environment."""

from __future__ import annotations

import os

from .config import RhapsodyConfig
from .deepseek_provider import DeepSeekProvider
from .provider import LLMProvider, StubLLMProvider

# Valid provider names for RHAPSODY_LLM_PROVIDER
_VALID_PROVIDERS = frozenset({"deepseek", "stub"})


class ProviderFactory:
    """Creates the appropriate LLM provider based on configuration.

    Resolution logic (deterministic, no magic):
        1. Read ``RHAPSODY_LLM_PROVIDER`` env var (deepseek | stub).
        2. If set: return that exact provider.
        3. If unset: ``deepseek`` when an API key is configured, else stub.
    """

    @staticmethod
    def create(config: RhapsodyConfig | None = None) -> LLMProvider:
        """Create a provider for *config* (read from the environment when omitted).

        Raises:
            ValueError: If ``RHAPSODY_LLM_PROVIDER`` is set to an unknown value.
        """
        config = config or RhapsodyConfig.from_env()
        env_provider = os.environ.get("RHAPSODY_LLM_PROVIDER", "").strip().lower()

        if env_provider:
            return ProviderFactory._create_explicit(env_provider, config)
        if config.api_key:
            return ProviderFactory._deepseek(config)
        return StubLLMProvider()

    @staticmethod
    def _create_explicit(provider_name: str, config: RhapsodyConfig) -> LLMProvider:
        """Create a specific provider by name."""
        if provider_name not in _VALID_PROVIDERS:
            msg = (
                f"Unknown provider '{provider_name}'. "
                f"Valid values for RHAPSODY_LLM_PROVIDER: {', '.join(sorted(_VALID_PROVIDERS))}"
            )
            raise ValueError(msg)

        if provider_name == "deepseek":
            return ProviderFactory._deepseek(config)
        return StubLLMProvider()

    @staticmethod
    def _deepseek(config: RhapsodyConfig) -> DeepSeekProvider:
        return DeepSeekProvider(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout,
        )

    @staticmethod
    def describe(provider: LLMProvider) -> str:
        """Return a human-readable description of a provider for REPL output."""
        if isinstance(provider, DeepSeekProvider):
            return f"DeepSeekProvider (model={provider.model})"
        if provider.name() == "stub":
            return "StubLLMProvider (deterministic responses)"
        return f"{type(provider).__name__}"
