from fastapi import HTTPException, Request


def require_company(request: Request) -> int:
    """Scope the request to the organization named in X-Company-Id."""
    header_company_id = request.headers.get("X-Company-Id")
    if header_company_id is None:
        raise HTTPException(status_code=403, detail="Missing X-Company-Id header")

    try:
        company_id = int(header_company_id)
    except ValueError as exc:
        raise HTTPException(status_code=403, detail="Invalid X-Company-Id header") from exc

    request.state.company_id = company_id
    return company_id
