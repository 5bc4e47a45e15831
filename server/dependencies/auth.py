import secrets

from fastapi import Header, HTTPException, Request


async def verify_api_key(request: Request, x_api_key: str = Header(..., alias="X-API-Key")) -> None:
    """Compare the X-API-Key header with APP_API_KEY.

    Args:
        request (Request): The FastAPI request object (provides app.state).
        x_api_key (str): The value of the X-API-Key header.

    Raises:
        HTTPException: 401 if the key does not match.
    """
    expected_key = request.app.state.helper_config.get_string_val("APP_API_KEY")
    if not secrets.compare_digest(x_api_key.encode(), expected_key.encode()):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
