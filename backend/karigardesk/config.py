import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./karigardesk.db")
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() in ("1", "true", "yes")

# When set, orders and mappings live on a remote karigardesk instance instead of the local DB
STORAGE_URL = os.getenv("STORAGE_URL", "")
STORAGE_TIMEOUT = float(os.getenv("STORAGE_TIMEOUT", "15"))
STORAGE_MAX_RETRIES = int(os.getenv("STORAGE_MAX_RETRIES", "2"))

# "reject" drops rows with an unknown order type, "default_rb" keeps them as RB
UNKNOWN_ORDER_TYPE_POLICY = os.getenv("UNKNOWN_ORDER_TYPE_POLICY", "reject")
INGEST_CHUNK_SIZE = int(os.getenv("INGEST_CHUNK_SIZE", "100"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:80").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

TAG_PORTAL_URL = os.getenv("TAG_PORTAL_URL", "")

# Largest design image accepted on upload
DESIGN_IMAGE_MAX_BYTES = int(os.getenv("DESIGN_IMAGE_MAX_BYTES", str(5 * 1024 * 1024)))
