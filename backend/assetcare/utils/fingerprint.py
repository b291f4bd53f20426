"""Device fingerprint derivation for anonymous (QR) report submissions."""
from __future__ import annotations
import hashlib
import re
from typing import Optional
from flask import Request

FINGERPRINT_HEADER = 'X-Device-Fingerprint'
_VALID = re.compile(r'^[A-Za-z0-9_\-:.]{8,64}$')


def client_ip(req: Request) -> str:
    forwarded = req.headers.get('X-Forwarded-For', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return req.remote_addr or ''


def device_fingerprint(req: Request) -> str:
    """Client-supplied fingerprint if well formed, else a SHA-256 over request traits."""
    supplied: Optional[str] = req.headers.get(FINGERPRINT_HEADER)
    if supplied and _VALID.match(supplied.strip()):
        return supplied.strip()
    seed = '|'.join([
        req.headers.get('User-Agent', ''),
        client_ip(req),
        req.headers.get('Accept-Language', ''),
        req.headers.get('Accept-Encoding', ''),
    ])
    return hashlib.sha256(seed.encode()).hexdigest()
