"""Staff users store with password login."""
import hashlib
import hmac
import logging
import secrets
from typing import Optional

from models.user import Role, User, UserPermissions
from stores.base import EntityStore, LoginResult, StoreResult

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100000


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Hash password with salt. Returns ``salt$hash``."""
    if salt is None:
        salt = secrets.token_hex(16)
    hashed = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"{salt}${hashed.hex()}"


def verify_password(password: str, stored: str) -> bool:
    if not stored or "$" not in stored:
        return False
    salt, _ = stored.split("$", 1)
    return hmac.compare_digest(hash_password(password, salt), stored)


class UserStore(EntityStore[User]):
    entity_class = User

    def check_duplicate(self, entity: User, exclude_id: Optional[str] = None) -> Optional[str]:
        username = entity.username.strip().lower()
        for user in self.items:
            if user.id != exclude_id and user.username.strip().lower() == username:
                return f"Username '{entity.username}' is already taken"
        return None

    def find_by_username(self, username: str) -> Optional[User]:
        username = username.strip().lower()
        for user in self.items:
            if user.username.strip().lower() == username:
                return user
        return None

    def find_by_auth_id(self, auth_user_id: str) -> Optional[User]:
        for user in self.items:
            if user.auth_user_id and user.auth_user_id == auth_user_id:
                return user
        return None

    def create_user(self, user: User, password: str, actor: str = "") -> StoreResult:
        """Add a user with a freshly hashed password."""
        if not user.password_hash:
            user.password_hash = hash_password(password)
        return self.add(user, actor=actor)

    def set_password(self, user_id: str, password: str, actor: str = "") -> StoreResult:
        return self.update(user_id, {"password_hash": hash_password(password)}, actor=actor)

    def authenticate(self, username: str, password: str) -> LoginResult:
        """Check credentials against a fresh copy of the users table."""
        self.load()
        user = self.find_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login for {username}")
            return LoginResult(success=False, error="Invalid username or password")
        if not user.active:
            logger.warning(f"Login attempt by inactive user {username}")
            return LoginResult(success=False, error="Account is disabled")
        return LoginResult(success=True, entity=user)

    def seed_default_admin(self, password: str) -> Optional[StoreResult]:
        """Create an ``admin`` account when the table has no admin at all."""
        self.load()
        if any(user.role == Role.ADMIN for user in self.items):
            return None
        admin = User(
            username="admin",
            name="Administrator",
            role=Role.ADMIN,
            permissions=UserPermissions.for_role(Role.ADMIN),
        )
        result = self.create_user(admin, password, actor="system")
        if result.ok:
            logger.warning("Created default admin user. Change the password immediately.")
        return result
