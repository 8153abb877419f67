from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional

from stratus.domain.value_objects.credentials import Credentials


@dataclass(frozen=True)
class RunScriptOptions:
    """
    Per-call options for remote script execution.

    An override applies to this call only; the node's stored credentials are
    never touched.
    """
    override_credentials: Optional[Credentials] = None
    port: int = 22
    run_as_root: bool = True
    name: str = "stratus-script"

    @classmethod
    def override_credentials_with(cls, credentials: Credentials) -> "RunScriptOptions":
        return cls(override_credentials=credentials)

    def with_override(self, credentials: Credentials) -> "RunScriptOptions":
        return replace(self, override_credentials=credentials)

    def on_port(self, port: int) -> "RunScriptOptions":
        return replace(self, port=port)
