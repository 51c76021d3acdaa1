"""Per-request delegates carrying site-specific authorization policy."""

from __future__ import annotations

from typing import Any, Callable, Union

from thumbnailer.auth.info import AuthInfo
from thumbnailer.models.context import RequestContext

DelegateResult = Union[bool, dict[str, Any], AuthInfo, None]


class Delegate:
    """Base class for request delegates.

    A new delegate is created for every request and receives that request's
    context. Override the hooks to implement a policy. Each hook may return:

    - ``None``: no opinion, the request proceeds
    - ``True`` / ``False``: authorized / 403 Forbidden
    - a mapping with ``status_code`` and optionally ``location`` or ``challenge``
    - an :class:`AuthInfo`
    """

    def __init__(self, context: RequestContext) -> None:
        self.context = context

    def authorize_before_access(self) -> DelegateResult:
        """Called before the source image is accessed."""
        return None

    def authorize(self) -> DelegateResult:
        """Called once image info is known, before processing."""
        return None


DelegateFactory = Callable[[RequestContext], Union[Delegate, None]]
