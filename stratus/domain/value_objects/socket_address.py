from dataclasses import dataclass


@dataclass(frozen=True)
class SocketAddress:
    """
    Value Object representing a host/port pair to probe or connect to.
    """
    host: str
    port: int = 22

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("SocketAddress host cannot be empty")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Port must be 1-65535, got {self.port}")

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"
