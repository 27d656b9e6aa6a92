"""Provider status API route."""

from fastapi import APIRouter

from pulse_core.api.deps import ProviderRouterDep
from pulse_core.api.schemas.monitoring import ProvidersResponse, ProviderStatusResponse

router = APIRouter(tags=["providers"])


def _recommendation(configured_count: int) -> str:
    if configured_count == 0:
        return "No provider configured. Add at least GEMINI_API_KEY to the environment."
    if configured_count == 1:
        return "Only one provider configured. Add Groq or Cerebras to raise the free limits."
    return f"{configured_count} providers configured with automatic fallback."


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers(provider_router: ProviderRouterDep) -> ProvidersResponse:
    """Configuration state of every known provider (no upstream calls)."""
    status = provider_router.get_provider_status()
    configured_count = sum(1 for s in status.values() if s.configured)

    return ProvidersResponse(
        providers={name: ProviderStatusResponse(**s.to_dict()) for name, s in status.items()},
        configured_count=configured_count,
        total_count=len(status),
        recommendation=_recommendation(configured_count),
    )
