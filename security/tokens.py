import hashlib
import secrets
import string
import uuid

TOKEN_ALPHABET = string.ascii_letters + string.digits


class TokenManager:
    def __init__(self, default_length: int = 64):
        if default_length <= 0:
            raise ValueError("Token length must be positive")
        self.default_length = default_length

    def generate(self, length: int | None = None) -> str:
        """
        Returns a random alphanumeric bearer token from the OS CSPRNG.
        This is the value placed in the cookie; only its hash is stored.
        """
        length = self.default_length if length is None else length
        if length <= 0:
            raise ValueError("Token length must be positive")
        return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))

    @staticmethod
    def hash(token: str) -> str:
        # SHA-256 is fine for hashing random session tokens
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def new_browser_id() -> str:
        return str(uuid.uuid4())
