"""HTTP request and response values exchanged with the transport.

Keeps the flow independent of any particular HTTP client library.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class HttpRequest:
    """Outgoing HTTP request description.

    At most one of `data` (form-urlencoded) and `json` should be set.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    data: dict[str, str] | None = None
    json: dict[str, Any] | None = None


@dataclass(frozen=True)
class HttpResponse:
    """Received HTTP response."""

    status_code: int
    body: str = ""
    headers: dict[str, str] = field(default_factory=dict)

    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            ValueError: If the body is empty or not valid JSON
        """
        if not self.body:
            raise ValueError("Empty response body")
        return json.loads(self.body)
