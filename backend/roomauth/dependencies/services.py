from fastapi import Request

from ..services.container import AuthServices


def get_services(request: Request) -> AuthServices:
    return request.app.state.services


def get_client_ip(request: Request):
    """Client IP, honouring the first X-Forwarded-For hop from the load balancer"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None
