"""Best-effort resolution of the client address behind a request.

Proxy-supplied headers are preferred over the socket address, in this order:

    Client-IP header → first X-Forwarded-For entry → transport remote address

Nothing here validates IP syntax or walks the proxy chain.  Any client can
forge these headers, so the result is fit for logging only and must never
drive access-control or rate-limiting decisions.
"""

from cloudlog.models.schemas import RequestSnapshot


def resolve_client_ip(request: RequestSnapshot) -> str:
    """Return the client IP for *request*, or an empty string if unknown."""
    if request.client_ip_header:
        return request.client_ip_header

    if request.forwarded_for:
        # "2.2.2.2, 3.3.3.3" → ["2.2.2.2", "3.3.3.3"]
        hops = "".join(request.forwarded_for.split()).split(",")
        first = hops[0].strip()
        if first:
            return first

    return request.remote_addr or ""
