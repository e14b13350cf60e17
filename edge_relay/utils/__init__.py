from typing import Iterable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

SECRET_QUERY_PARAMS = ("key", "access_token")


def mask_secret(value: str) -> str:
    return f"{value[:4]}****" if value else value


def mask_url_secrets(url: str, params: Iterable[str] = SECRET_QUERY_PARAMS) -> str:
    """Mask API keys carried in the query string so URLs can be logged."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    secret_names = {p.lower() for p in params}
    query = [
        (name, mask_secret(value) if name.lower() in secret_names else value)
        for name, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="*")))
