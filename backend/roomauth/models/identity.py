import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, UniqueConstraint, true

from ..core.clock import utcnow
from ..db import Base


AUTH_PROVIDER_PASSWORD = "password"
AUTH_PROVIDER_PHONE = "phone"
AUTH_PROVIDER_EXTERNAL = "external"


def generate_identity_id() -> str:
    return str(uuid.uuid4())


class Identity(Base):
    """The canonical, reconciled account record."""

    __tablename__ = "identities"

    id = Column(String(36), primary_key=True, default=generate_identity_id)
    display_name = Column(String(200), nullable=False, default="")  # Empty until profile completion
    email = Column(String(256), nullable=True)  # Lower-cased
    email_confirmed = Column(Boolean, nullable=False, default=False)
    phone = Column(String(32), nullable=True, index=True)  # E.164
    phone_confirmed = Column(Boolean, nullable=False, default=False)
    external_provider = Column(String(50), nullable=True)
    external_id = Column(String(255), nullable=True)
    auth_provider = Column(String(20), nullable=False, default=AUTH_PROVIDER_PASSWORD, index=True)

    password_hash = Column(String(255), nullable=True)  # Null for phone/external accounts
    failed_login_count = Column(Integer, nullable=False, default=0)
    lockout_until = Column(DateTime, nullable=True)

    profile_complete = Column(Boolean, nullable=False, default=False)
    profile_image_url = Column(String(500), nullable=True)
    occupation = Column(String(100), nullable=True)
    bio = Column(String(1000), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("email", name="uq_identities_email"),
        UniqueConstraint("external_provider", "external_id", name="uq_identities_external"),
        # At most one identity per confirmed phone; unconfirmed duplicates are legacy data
        Index(
            "uq_identities_confirmed_phone",
            "phone",
            unique=True,
            sqlite_where=phone_confirmed == true(),
            postgresql_where=phone_confirmed == true(),
        ),
    )

    def __repr__(self) -> str:
        return f"<Identity {self.id} provider={self.auth_provider}>"
