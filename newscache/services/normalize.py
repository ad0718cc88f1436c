from __future__ import annotations

import hashlib
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

TRACKING_KEYS_PREFIXES = ("utm_",)
TRACKING_KEYS_EXACT = {"fbclid", "gclid", "mc_cid", "mc_eid", "igshid", "cmpid", "ocid"}

def _is_tracking(key: str) -> bool:
    k = key.lower()
    return k in TRACKING_KEYS_EXACT or k.startswith(TRACKING_KEYS_PREFIXES)

def normalize_url(url: str) -> str:
    """Canonical form used for article identity.

    Scheme and host are lowercased, the fragment is dropped and tracking
    parameters are removed; path and remaining query order are kept.
    """
    parts = urlsplit(url.strip())
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if not _is_tracking(k)]
    return urlunsplit((
        parts.scheme.lower(),
        parts.netloc.lower(),
        parts.path,
        urlencode(query, doseq=True),
        "",
    ))

def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()

def article_id_for(url: str) -> str:
    # Same canonical url -> same article
    return sha256_text(normalize_url(url))
