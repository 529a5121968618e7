"""URL value object and normalization rules used for document identity."""

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict

from intelliindex.errors import InvalidEntityError

TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "fbclid",
        "gclid",
    }
)

_DEFAULT_PORTS = {"http": 80, "https": 443}


class URL(BaseModel):
    raw: str
    normalized: str
    host: str

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def parse(cls, raw_url: str) -> "URL":
        """Validate and normalize a raw URL.

        Adds an http scheme when none is present, lowercases the host, drops the
        scheme's default port, strips trailing slashes from non-root paths,
        removes tracking query parameters and drops the fragment.

        Raises:
            InvalidEntityError: If the URL is empty, unparseable or has no host.
        """
        if not raw_url or not raw_url.strip():
            raise InvalidEntityError("URL cannot be empty")

        candidate = raw_url.strip()
        if "://" not in candidate:
            candidate = "http://" + candidate

        try:
            parts = urlsplit(candidate)
            port = parts.port
        except ValueError as e:
            raise InvalidEntityError(f"invalid URL: {e}") from e

        host = parts.hostname
        if not host:
            raise InvalidEntityError("URL must have a host")

        scheme = parts.scheme.lower()
        netloc = f"[{host}]" if ":" in host else host
        if port is not None and _DEFAULT_PORTS.get(scheme) != port:
            netloc = f"{netloc}:{port}"
        if "@" in parts.netloc:
            userinfo = parts.netloc.rpartition("@")[0]
            netloc = f"{userinfo}@{netloc}"

        path = parts.path
        if path != "/" and path.endswith("/"):
            path = path.rstrip("/")

        params = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in TRACKING_PARAMS
        ]
        params.sort(key=lambda item: item[0])
        query = urlencode(params)

        normalized = urlunsplit((scheme, netloc, path, query, ""))
        return cls(raw=raw_url, normalized=normalized, host=host)

    def __str__(self) -> str:
        return self.normalized


def normalize_url(raw_url: str) -> str:
    return URL.parse(raw_url).normalized
