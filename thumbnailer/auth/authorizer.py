"""Authorizers turning delegate policy into AuthInfo decisions."""

from __future__ import annotations

from abc import ABC, abstractmethod

from thumbnailer.auth.delegate import Delegate, DelegateResult
from thumbnailer.auth.info import AuthInfo


class Authorizer(ABC):
    """Evaluates the two authorization checkpoints of a request."""

    @abstractmethod
    def authorize_before_access(self) -> AuthInfo | None:
        """Decide before any source access. None means no decision."""
        ...

    @abstractmethod
    def authorize(self) -> AuthInfo | None:
        """Decide after image info is known. None means no decision."""
        ...


class PermissiveAuthorizer(Authorizer):
    """Authorizer used when there is no delegate: never decides anything."""

    def authorize_before_access(self) -> AuthInfo | None:
        return None

    def authorize(self) -> AuthInfo | None:
        return None


class DelegateAuthorizer(Authorizer):
    """Authorizer that asks a delegate's hooks."""

    def __init__(self, delegate: Delegate) -> None:
        self.delegate = delegate

    def authorize_before_access(self) -> AuthInfo | None:
        return self._to_auth_info(self.delegate.authorize_before_access())

    def authorize(self) -> AuthInfo | None:
        return self._to_auth_info(self.delegate.authorize())

    @staticmethod
    def _to_auth_info(result: DelegateResult) -> AuthInfo | None:
        if result is None:
            return None
        if isinstance(result, AuthInfo):
            return result
        if isinstance(result, bool):
            return AuthInfo.authorized() if result else AuthInfo.forbidden()
        if isinstance(result, dict):
            return AuthInfo.from_mapping(result)
        raise TypeError(
            f"Delegate returned unsupported authorization result: {type(result).__name__}"
        )


class AuthorizerFactory:
    """Creates the authorizer appropriate for a request's delegate."""

    def new_authorizer(self, delegate: Delegate | None) -> Authorizer:
        if delegate is None:
            return PermissiveAuthorizer()
        return DelegateAuthorizer(delegate)
