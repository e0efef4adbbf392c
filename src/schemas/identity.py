"""Authenticated identity representation."""
from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """
    Authenticated principal as reported by the identity provider.

    Owned by the provider; the session manager only reads it. Kept separate from
    Profile, which is the application-owned document keyed by `uid`.
    """

    uid: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None
    is_anonymous: bool = False

    @property
    def email_local_part(self) -> str:
        """Get the part of the email before '@', or an empty string."""
        if not self.email:
            return ""
        return self.email.split("@")[0]
