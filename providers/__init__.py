"""
Provider package - plugin-based AI integrations.

Exposes factory functions for getting singletons:
    from providers import get_ai_gateway, get_quota_manager, get_response_cache
    from providers.llm import get_llm_providers
"""
from providers.quota import get_quota_manager, APIQuotaManager
from providers.cache import get_response_cache, ResponseCache
from providers.gateway import get_ai_gateway, AIGateway, GatewayResult

__all__ = [
    "get_quota_manager",
    "get_response_cache",
    "get_ai_gateway",
    "APIQuotaManager",
    "ResponseCache",
    "AIGateway",
    "GatewayResult",
]
