from typing import Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field


class ResourceRequest(BaseModel):
    """A fully-specified outbound request against the repository."""

    model_config = ConfigDict(frozen=True)

    method: str = Field()
    uri: str = Field()
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[bytes] = Field(default=None)

    def get_header(self, key: str) -> Optional[str]:
        """Get a header value, ignoring case."""
        lowered = key.lower()
        for name, value in self.headers.items():
            if name.lower() == lowered:
                return value
        return None

    def with_header(self, key: str, value: str) -> "ResourceRequest":
        """Return a copy with `key` set to `value`, replacing any header of the same name in another case."""
        lowered = key.lower()
        headers = {name: existing for name, existing in self.headers.items() if name.lower() != lowered}
        headers[key] = value
        return self.model_copy(update={"headers": headers})

    def with_uri(self, uri: str) -> "ResourceRequest":
        """Return a copy targeting `uri`."""
        return self.model_copy(update={"uri": uri, "headers": dict(self.headers)})

    def to_httpx(self, client: httpx.Client) -> httpx.Request:
        """Build the httpx request to send through `client`."""
        return client.build_request(
            method=self.method,
            url=self.uri,
            headers=self.headers,
            content=self.body,
        )
