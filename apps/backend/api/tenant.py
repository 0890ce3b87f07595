import hmac
from typing import Optional

from fastapi import Header

import settings
from services.errors import TenantMissing


def _gateway_ok(token: Optional[str]) -> bool:
    expected = settings.TENANT_GATEWAY_TOKEN
    if not expected:
        return True
    return hmac.compare_digest((token or "").encode(), expected.encode())


async def get_escola_id(x_escola_id: Optional[str] = Header(None, alias="X-Escola-Id"),
                        x_gateway_token: Optional[str] = Header(None, alias="X-Gateway-Token")) -> int:
    """
    School id attached by the authenticating gateway.

    Clients never choose the school in the body or query string; every
    store call receives this value instead. With TENANT_GATEWAY_TOKEN
    configured, the header is only accepted alongside the gateway's token.

    Raises:
        TenantMissing: token missing or wrong, header absent, non-numeric or not positive.
    """
    if not _gateway_ok(x_gateway_token):
        raise TenantMissing("Acesso negado: requisição não autenticada pelo gateway.")
    try:
        escola_id = int(str(x_escola_id).strip())
    except (TypeError, ValueError):
        raise TenantMissing("Acesso negado: escola não definida.")
    if escola_id <= 0:
        raise TenantMissing("Acesso negado: escola não definida.")
    return escola_id


async def get_actor(x_usuario: Optional[str] = Header(None, alias="X-Usuario")) -> Optional[str]:
    # recorded on lock/unlock for audit
    actor = (x_usuario or "").strip()
    return actor or None
