"""User repository for database operations."""

from tenantguard.core.database import ScopedRepository
from tenantguard.modules.users.models import User


class UserRepository(ScopedRepository[User]):
    """Repository for User database operations.

    All queries are scoped to the active tenant.
    """

    model = User

    async def get_by_email(self, email: str) -> User | None:
        """Get a user of the active tenant by email address.

        Args:
            email: The user's email

        Returns:
            User if found, None otherwise
        """
        return await self.find_one_by(email=email.lower())
