"""API v1 router aggregator.

All v1 endpoint routers are included here.
"""

from fastapi import APIRouter

from profilelink.api.v1 import servers, verifications

router = APIRouter()

# =============================================================================
# Servers
# =============================================================================

_SERVERS_PREFIX = "/servers"

router.include_router(
    verifications.router, prefix=_SERVERS_PREFIX, tags=["verifications"]
)
router.include_router(servers.router, prefix=_SERVERS_PREFIX, tags=["servers"])
