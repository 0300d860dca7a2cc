# paper_retrieval/infrastructure/identifiers.py

import hashlib
from pathlib import Path
from urllib.parse import unquote, urlsplit, urlunsplit


DEFAULT_PORTS = {"http": 80, "https": 443}

# RFC 3986 unreserved characters are safe to percent-decode.
UNRESERVED = set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~")


def normalize_url(url: str) -> str:
    """
    Canonical form of a document URL, so the same paper reached through
    cosmetically different links gets one id:
    fragment dropped, scheme and host lowercased, default port and trailing
    slash removed, unreserved characters decoded.
    """
    if not url:
        return url

    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        return url.split("#", 1)[0]

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = host
    if parts.port and DEFAULT_PORTS.get(scheme) != parts.port:
        netloc = f"{host}:{parts.port}"
    if parts.username:
        credentials = parts.username + (f":{parts.password}" if parts.password else "")
        netloc = f"{credentials}@{netloc}"

    path = parts.path
    if path.endswith("/"):
        path = path[:-1]

    return urlunsplit((scheme, netloc, _decode_unreserved(path), _decode_unreserved(parts.query), ""))


def generate_document_id(url: str) -> str:
    """Stable document id derived from the normalized source URL."""
    digest = hashlib.sha256(normalize_url(url).encode("utf-8")).hexdigest()
    return f"paper_{digest[:16]}"


def document_id_for_path(file_path: Path) -> str:
    return generate_document_id(Path(file_path).resolve().as_uri())


def _decode_unreserved(component: str) -> str:
    """Decode %XX escapes only where they encode an unreserved character."""
    out = []
    i = 0
    while i < len(component):
        escape = component[i : i + 3]
        if len(escape) == 3 and escape[0] == "%":
            decoded = unquote(escape)
            if decoded in UNRESERVED:
                out.append(decoded)
                i += 3
                continue
        out.append(component[i])
        i += 1
    return "".join(out)
