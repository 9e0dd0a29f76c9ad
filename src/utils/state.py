from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from db import crud
from db.database import Database
from db.models import UserAccount, UserStatus
from shop import auth
from shop.cart import Cart
from shop.preferences import Preferences
from shop.storage import LocalStorage
from utils.config import Settings


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - settings: runtime configuration
      - db: the shop database every screen talks to
      - cart: the local cart, independent of who is signed in
      - preferences: age gate and language flags
      - user: signed-in account, None when browsing anonymously
    """

    settings: Settings = field(default_factory=Settings.from_env)
    db: Database = field(init=False)
    storage: LocalStorage = field(init=False)
    cart: Cart = field(init=False)
    preferences: Preferences = field(init=False)
    user: Optional[UserAccount] = None

    def __post_init__(self) -> None:
        self.db = Database(self.settings.db_path)
        self.storage = LocalStorage(self.settings.storage_path)
        self.cart = Cart(self.storage)
        self.preferences = Preferences(self.storage)

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.is_admin)

    @property
    def can_order(self) -> bool:
        return bool(self.user and self.user.status == UserStatus.APPROVED)

    async def bootstrap(self) -> None:
        """Create the configured admin account, if any."""
        if self.settings.admin_email and self.settings.admin_password:
            await auth.ensure_admin(
                self.db, self.settings.admin_email, self.settings.admin_password
            )

    async def sign_in(self, email: str, password: str) -> Optional[UserAccount]:
        self.user = await auth.sign_in(self.db, email, password)
        return self.user

    async def refresh_user(self) -> None:
        """Reload the signed-in account, e.g. after an admin changed its status."""
        if self.user is not None:
            self.user = await crud.get_user(self.db, self.user.id)

    def sign_out(self) -> None:
        # the cart is per profile, not per account, so it survives sign-out
        self.user = None
