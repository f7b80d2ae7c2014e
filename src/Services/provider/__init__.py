"""GPS51 OpenAPI access: shared rate limiter, token lifecycle and gateway."""

from src.Services.provider.gateway import ProviderGateway, ProviderResult
from src.Services.provider.rate_limiter import RateLimiter
from src.Services.provider.token_manager import LoginResult, ProviderSession, TokenManager

__all__ = [
    "ProviderGateway",
    "ProviderResult",
    "RateLimiter",
    "TokenManager",
    "LoginResult",
    "ProviderSession",
]
