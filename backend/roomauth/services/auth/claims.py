"""
Extraction of a provider-neutral identity from an external claim bag.

Claim names differ by provider (Google, Azure AD B2C, Firebase), so each field
is resolved through an ordered list of fallbacks.
"""
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

from ...core.errors import ValidationError

MS_OBJECT_ID_CLAIM = "http://schemas.microsoft.com/identity/claims/objectidentifier"

EXTERNAL_ID_CLAIMS = ("oid", "sub", MS_OBJECT_ID_CLAIM, "user_id")
AVATAR_CLAIMS = ("picture", "avatar_url", "photo_url")


@dataclass(frozen=True)
class ExternalClaims:
    external_id: str
    provider: str
    email: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _first(claims: Mapping[str, Any], names) -> Optional[str]:
    for name in names:
        value = _text(claims.get(name))
        if value:
            return value
    return None


def _email(claims: Mapping[str, Any]) -> Optional[str]:
    email = _text(claims.get("email")) or _text(claims.get("emails"))
    if not email:
        username = _text(claims.get("preferred_username"))
        if username and "@" in username:
            email = username
    if not email:
        email = _text(claims.get("upn"))
    return email.lower() if email else None


def _name(claims: Mapping[str, Any]) -> Optional[str]:
    name = _text(claims.get("name"))
    if name:
        return name
    full = " ".join(part for part in (_text(claims.get("given_name")), _text(claims.get("family_name"))) if part)
    return full or _text(claims.get("nickname"))


def _provider(claims: Mapping[str, Any], provider: Optional[str]) -> str:
    if provider and provider.strip():
        return provider.strip().lower()
    idp = _text(claims.get("idp"))
    if idp:
        return idp.lower()
    issuer = _text(claims.get("iss"))
    if issuer:
        host = urlparse(issuer).hostname if "://" in issuer else issuer
        if host:
            return host.lower()
    return "external"


def extract_external_claims(claims: Mapping[str, Any], provider: Optional[str] = None) -> ExternalClaims:
    """
    Resolve identity fields from a claim bag.

    external_id: oid, sub, MS objectidentifier, user_id
    email: email, emails[0], preferred_username (if it looks like an email), upn
    name: name, given_name + family_name, nickname
    avatar_url: picture, avatar_url, photo_url
    provider: argument, idp, issuer host, "external"

    Raises:
        ValidationError: when no external id claim is present
    """
    external_id = _first(claims, EXTERNAL_ID_CLAIMS)
    if not external_id:
        raise ValidationError("External identity has no subject claim.", field="external_id")

    return ExternalClaims(
        external_id=external_id,
        provider=_provider(claims, provider),
        email=_email(claims),
        name=_name(claims),
        avatar_url=_first(claims, AVATAR_CLAIMS),
    )
