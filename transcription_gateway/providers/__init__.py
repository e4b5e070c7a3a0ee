"""Provider registry: one selector, one adapter class.

WHY: Requests name a provider by selector string. A central mapping makes
dispatch a lookup instead of a branch per provider, and unknown selectors
fail loudly instead of falling through to some default.

HOW: PROVIDERS maps ProviderSelector values to adapter *classes* (not
instances). Callers instantiate one adapter per request:
``provider = PROVIDERS[selector]()``.

RULES:
- Keys are ProviderSelector members
- Values are BaseProvider subclasses
- resolve_selector() raises UnknownProviderError for unregistered names
"""

from __future__ import annotations

from typing import Dict, Type, Union

from transcription_gateway.errors import UnknownProviderError
from transcription_gateway.providers.assemblyai import AssemblyAIProvider
from transcription_gateway.providers.base import BaseProvider, PollingProvider, SynchronousProvider
from transcription_gateway.providers.models import ProviderSelector
from transcription_gateway.providers.whisper import WhisperProvider

PROVIDERS: Dict[ProviderSelector, Type[BaseProvider]] = {
    ProviderSelector.POLLING: AssemblyAIProvider,
    ProviderSelector.SYNC: WhisperProvider,
}


def resolve_selector(value: Union[str, ProviderSelector]) -> ProviderSelector:
    """Validate a selector string against the registry."""
    available = [s.value for s in PROVIDERS]
    if isinstance(value, ProviderSelector):
        value = value.value
    try:
        selector = ProviderSelector(str(value).strip().lower())
    except ValueError:
        raise UnknownProviderError(str(value), available) from None
    if selector not in PROVIDERS:
        raise UnknownProviderError(selector.value, available)
    return selector


__all__ = [
    "PROVIDERS",
    "AssemblyAIProvider",
    "BaseProvider",
    "PollingProvider",
    "ProviderSelector",
    "SynchronousProvider",
    "WhisperProvider",
    "resolve_selector",
]
