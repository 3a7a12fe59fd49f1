from fastapi import Request
import logging

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown"


def get_client_ip(request: Request) -> str:
    """
    Caller address as seen by the socket peer. Never raises.

    Forwarding headers are only honoured through ProxyHeadersMiddleware,
    which rewrites the peer when the request comes from a trusted proxy.
    """
    try:
        if request.client and request.client.host:
            return request.client.host
    except Exception as e:
        logger.error(f"Error resolving client IP: {e}")
    return UNKNOWN_IP
