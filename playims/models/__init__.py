from playims.models.account import Account
from playims.models.invite_key import InviteKey
from playims.models.session import AuthSession
from playims.models.rate_limit import AuthRateLimit

__all__ = ["Account", "InviteKey", "AuthSession", "AuthRateLimit"]
