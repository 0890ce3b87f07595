import os
from dotenv import load_dotenv

load_dotenv() # Load env vars from .env

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./grade_horaria.db")

# Bulk modulation upserts are written in chunks of this size (single transaction)
MODULACAO_CHUNK_SIZE = int(os.environ.get("MODULACAO_CHUNK_SIZE", 500))

# Max per-period overrides kept for one availability day
MAX_PERIOD_OVERRIDES = int(os.environ.get("MAX_PERIOD_OVERRIDES", 20))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

PORT = int(os.environ.get("PORT", 8765))

# X-Escola-Id is trusted as set by the authenticating gateway. When this is
# set, requests must also carry the gateway's X-Gateway-Token; deployments
# without a gateway in front must set it.
TENANT_GATEWAY_TOKEN = os.environ.get("TENANT_GATEWAY_TOKEN") or None
