"""Provider lookup."""

from typing import Dict, Type

from cli_task_chain.models.provider import ProviderType
from cli_task_chain.providers.base import BaseProvider
from cli_task_chain.providers.claude_code import ClaudeCodeProvider
from cli_task_chain.providers.codex import CodexProvider

_PROVIDERS: Dict[ProviderType, Type[BaseProvider]] = {
    ProviderType.CLAUDE_CODE: ClaudeCodeProvider,
    ProviderType.CODEX: CodexProvider,
}


def get_provider(provider: str) -> BaseProvider:
    """Create the provider for ``provider`` (a ``ProviderType`` value)."""
    try:
        provider_type = ProviderType(provider)
    except ValueError:
        available = ", ".join(p.value for p in ProviderType)
        raise ValueError(f"Invalid provider '{provider}'. Available providers: {available}")
    return _PROVIDERS[provider_type]()
