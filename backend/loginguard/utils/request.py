"""Request utility functions."""

from fastapi import Request


def get_client_ip(request: Request, trust_proxy_headers: bool = True) -> str:
    """
    Extract real client IP, respecting proxy headers.

    Checks headers in order:
    1. CF-Connecting-IP (Cloudflare)
    2. X-Forwarded-For (may contain chain: "client, proxy1, proxy2")
    3. X-Real-IP (single IP from nginx)
    4. Direct connection IP

    Proxy headers are skipped when *trust_proxy_headers* is False.
    """
    if trust_proxy_headers:
        cf_ip = request.headers.get("CF-Connecting-IP")
        if cf_ip and cf_ip.strip():
            return cf_ip.strip()

        # X-Forwarded-For may contain chain of IPs
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded and forwarded.split(",")[0].strip():
            # First IP in chain is the original client
            return forwarded.split(",")[0].strip()

        # X-Real-IP is typically set by nginx
        real_ip = request.headers.get("X-Real-IP")
        if real_ip and real_ip.strip():
            return real_ip.strip()

    # Fallback to direct connection
    if request.client:
        return request.client.host

    return "unknown"
