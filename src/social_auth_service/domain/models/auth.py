"""Local Account Data Models

Purpose: Define the local user account that social identities are linked to

Key Components:
- LocalUser: Represents a local user account
- parse_utc_timestamp / to_json_compatible: JSON helpers shared by the
  storage layer
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


def parse_utc_timestamp(timestamp_str: str) -> datetime:
    """Parse UTC timestamp string to datetime object"""
    if isinstance(timestamp_str, datetime):
        return timestamp_str
    return datetime.fromisoformat(timestamp_str.replace('Z', '+00:00'))


def to_json_compatible(value):
    """Convert datetime to JSON-compatible ISO format string"""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass
class LocalUser:
    """Local user account

    Social connections are attached to a LocalUser; once a provider
    identity resolves to one, the LocalUser becomes the authenticated
    principal of the request.

    Attributes:
        user_id: Unique identifier (UUID format)
        username: Unique username
        email: User email address (may be empty for providers without email)
        display_name: Human-readable display name
        created_at: Account creation timestamp
        is_active: Account active status
        roles: List of user roles for access control (e.g., ['user'])
    """
    user_id: str
    username: str
    email: str
    display_name: str
    created_at: datetime
    is_active: bool = True
    roles: Optional[list[str]] = None

    def __post_init__(self):
        """Set default roles if not provided"""
        if self.roles is None:
            self.roles = ['user']

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "user_id": self.user_id,
            "username": self.username,
            "email": self.email,
            "display_name": self.display_name,
            "created_at": to_json_compatible(self.created_at),
            "is_active": self.is_active,
            "roles": list(self.roles),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'LocalUser':
        """Create from dictionary (JSON deserialization)"""
        return cls(
            user_id=data["user_id"],
            username=data["username"],
            email=data.get("email", ""),
            display_name=data["display_name"],
            created_at=parse_utc_timestamp(data["created_at"]),
            is_active=data.get("is_active", True),
            roles=data.get("roles", ['user']),
        )
