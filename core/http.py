import hashlib
from typing import Optional


def client_ip(request) -> Optional[str]:
    # Prefer first IP from X-Forwarded-For when behind a proxy
    fwd = request.META.get("HTTP_X_FORWARDED_FOR")
    if fwd:
        return fwd.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def user_agent(request) -> str:
    return (request.META.get("HTTP_USER_AGENT") or "")[:1024]


def device_fingerprint(request) -> str:
    # Client may send a stable device id; else derive from UA+IP (bounded length)
    explicit = request.headers.get("X-Device-Id")
    if explicit:
        return explicit[:128]
    ua = user_agent(request)
    ip = client_ip(request) or ""
    return hashlib.sha256(f"{ua}|{ip}".encode("utf-8")).hexdigest()[:32]
