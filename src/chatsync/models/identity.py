"""
Identity state: the authentication phase and, when signed in, the user id.

A closed set of variants. Code that consumes a state goes through
current_user_id() or is_signed_in(), which reject anything outside the set.
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel


class Unknown(BaseModel):
    kind: Literal["unknown"] = "unknown"
    model_config = {"frozen": True}


class SignedOut(BaseModel):
    kind: Literal["signed_out"] = "signed_out"
    model_config = {"frozen": True}


class SigningIn(BaseModel):
    kind: Literal["signing_in"] = "signing_in"
    model_config = {"frozen": True}


class SigningOut(BaseModel):
    kind: Literal["signing_out"] = "signing_out"
    model_config = {"frozen": True}


class SignedIn(BaseModel):
    kind: Literal["signed_in"] = "signed_in"
    user_id: str
    model_config = {"frozen": True}


IdentityState = Union[Unknown, SignedOut, SigningIn, SigningOut, SignedIn]


def current_user_id(state: IdentityState) -> Optional[str]:
    if isinstance(state, SignedIn):
        return state.user_id
    if isinstance(state, (Unknown, SignedOut, SigningIn, SigningOut)):
        return None
    raise TypeError(f"Unknown identity state: {state!r}")


def is_signed_in(state: IdentityState) -> bool:
    return current_user_id(state) is not None
