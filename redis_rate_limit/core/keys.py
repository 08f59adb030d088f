"""Counter key derivation.

A key identifies one counter in the shared store. Resource ids embedded in
the request path are collapsed into a placeholder so that ``/items/<id1>``
and ``/items/<id2>`` from the same client count against one quota.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from redis_rate_limit.core.options import LimiterOptions


@dataclass(frozen=True)
class RequestDescriptor:
    """The request attributes a key is derived from.

    Attributes:
        ip: Client address ("unknown" when the server cannot tell).
        method: HTTP method, upper-case.
        url: Path plus query string, e.g. ``/items?page=2``.
    """

    ip: str
    method: str
    url: str

    @classmethod
    def from_request(cls, request: Request) -> "RequestDescriptor":
        url = request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return cls(
            ip=request.client.host if request.client else "unknown",
            method=request.method.upper(),
            url=url,
        )


class KeyDeriver:
    """Builds normalized counter keys from request descriptors."""

    def __init__(self, options: LimiterOptions) -> None:
        self._options = options

    def derive(self, descriptor: RequestDescriptor) -> str:
        """Return the counter key for ``descriptor``.

        Only the first region matching ``id_matcher`` is replaced.
        """
        key = self._options.create_key(descriptor)
        return self.replace_id(key)

    def replace_id(self, key: str) -> str:
        if self._options.id_matcher is None:
            return key
        return self._options.id_matcher.sub(self._escaped_id_value, key, count=1)

    @property
    def _escaped_id_value(self) -> str:
        # re.sub treats backslashes in the replacement as group references.
        return self._options.id_value.replace("\\", "\\\\")
