from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


_DISABLED_SSL_VALUES = {"0", "false", "no", "off", "disable"}
_STRICT_SSL_VALUES = {"require", "verify-ca", "verify-full"}


def normalize_database_url(url: str) -> str:
    """Rewrite provider-style URLs to the psycopg async driver with libpq ssl options."""
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme in {"postgres", "postgresql", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    ssl_key = next((key for key in query if key.lower() == "ssl"), None)
    if ssl_key is not None:
        ssl_value = query.pop(ssl_key).lower().strip()
        if "sslmode" not in query:
            if ssl_value in _DISABLED_SSL_VALUES:
                query["sslmode"] = "disable"
            elif ssl_value in _STRICT_SSL_VALUES:
                query["sslmode"] = ssl_value
            else:
                query["sslmode"] = "require"

    new_query = urlencode(query, doseq=True)
    return urlunsplit((scheme, parts.netloc, parts.path, new_query, parts.fragment))
