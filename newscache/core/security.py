from fastapi import Header, HTTPException, Request, status

def require_admin(request: Request, x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")) -> None:
    expected = request.app.state.settings.admin_token
    # No token configured means admin routes stay closed
    if not expected or not x_admin_token or x_admin_token != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")
