from typing import Optional

from fastapi import Header, HTTPException

from readiness_hub import config


def require_api_key(x_api_key: Optional[str] = Header(None)):
    if config.API_KEY and x_api_key != config.API_KEY:
        raise HTTPException(status_code=401, detail="unauthorized")
