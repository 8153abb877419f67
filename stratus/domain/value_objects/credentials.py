from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Credentials:
    """
    Value Object holding a login account and its secret.

    The key is either a password or PEM-encoded private key material. Once
    an account is known the key must be known too.
    """
    account: Optional[str] = None
    key: Optional[str] = None

    def __post_init__(self) -> None:
        if self.account is not None and not self.account:
            raise ValueError("Credentials account cannot be empty")
        if self.account is not None and self.key is None:
            raise ValueError(f"Credentials for {self.account!r} are missing a key")

    @property
    def is_private_key(self) -> bool:
        return bool(self.key) and self.key.lstrip().startswith("-----BEGIN")

    def __repr__(self) -> str:
        # never leak secrets into logs
        return f"Credentials(account={self.account!r}, key={'***' if self.key else None})"
