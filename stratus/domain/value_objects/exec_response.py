from dataclasses import dataclass


@dataclass(frozen=True)
class ExecResponse:
    """Output of a remote command: stdout and stderr verbatim plus the exit status."""
    output: str
    error: str = ""
    exit_status: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_status == 0
