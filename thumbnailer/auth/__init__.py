"""Authorization: delegates, authorizers and their decisions."""

from thumbnailer.auth.authorizer import (
    Authorizer,
    AuthorizerFactory,
    DelegateAuthorizer,
    PermissiveAuthorizer,
)
from thumbnailer.auth.delegate import Delegate, DelegateFactory, DelegateResult
from thumbnailer.auth.info import AuthInfo

__all__ = [
    "AuthInfo",
    "Authorizer",
    "AuthorizerFactory",
    "Delegate",
    "DelegateAuthorizer",
    "DelegateFactory",
    "DelegateResult",
    "PermissiveAuthorizer",
]
