from typing import Optional

from app.schemas.video_record import User, UserRole

MOCK_USERS = [
    User(
        id='u1',
        name='Admin User',
        email='admin@visiguard.ai',
        org_id='org1',
        role=UserRole.ADMIN,
        avatar='https://picsum.photos/seed/admin/100/100',
    ),
    User(
        id='u2',
        name='Content Editor',
        email='editor@visiguard.ai',
        org_id='org1',
        role=UserRole.EDITOR,
        avatar='https://picsum.photos/seed/editor/100/100',
    ),
    User(
        id='u3',
        name='Regular Viewer',
        email='viewer@visiguard.ai',
        org_id='org1',
        role=UserRole.VIEWER,
        avatar='https://picsum.photos/seed/viewer/100/100',
    ),
]


class UserDirectory:
    """Read-only lookup of the demo accounts. There are no passwords."""

    def __init__(self, users: list[User] = None):
        self.users = {user.id: user for user in (users if users is not None else MOCK_USERS)}

    def get(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def login(self, email: str) -> Optional[User]:
        email = (email or '').strip().lower()
        return next((user for user in self.users.values() if user.email == email), None)

    def __iter__(self):
        return iter(self.users.values())
