from marketplace.core.config import settings
from marketplace.core.database import get_db, Base
from marketplace.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    decode_token,
)
