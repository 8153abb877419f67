"""
Verify Node Use Case

Post-boot check that probes a node for an expected marker (for example the
output of `echo hello`, or a runtime's version banner). Retries a fixed
number of times with a fixed sleep between attempts; unlike RetryablePredicate
it has no overall time limit.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from stratus.application.dtos.compute_dtos import ExecutionStage
from stratus.application.use_cases.run_script_on_nodes import ScriptRunner
from stratus.domain.entities.node_metadata import NodeMetadata
from stratus.domain.errors import NodeProvisioningError
from stratus.domain.value_objects.exec_response import ExecResponse
from stratus.domain.value_objects.run_script_options import RunScriptOptions

logger = logging.getLogger(__name__)


class VerifyNode:
    def __init__(
        self,
        runner: ScriptRunner,
        attempts: int = 5,
        backoff: float = 10,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.runner = runner
        self.attempts = attempts
        self.backoff = backoff
        self._sleep = sleep

    async def execute(
        self,
        node: NodeMetadata,
        command: str = "echo hello",
        marker: str = "hello",
        options: RunScriptOptions = RunScriptOptions(),
    ) -> ExecResponse:
        """Return the first response containing marker in stdout or stderr."""
        last_problem: Optional[str] = None
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.attempts + 1):
            outcome = await self.runner.run(node, command=command, options=options)
            if outcome.stage is ExecutionStage.DONE:
                response = outcome.response
                if marker in response.output or marker in response.error:
                    logger.info("Node %s verified on attempt %d", node.id, attempt)
                    return response
                last_problem = f"marker {marker!r} not found in output of {command!r}"
                last_error = None
            else:
                last_problem = f"{outcome.stage.name}: {outcome.error}"
                last_error = outcome.error
            logger.debug(
                "Verification attempt %d/%d on node %s failed: %s",
                attempt, self.attempts, node.id, last_problem,
            )
            if attempt < self.attempts:
                await self._sleep(self.backoff)

        raise NodeProvisioningError(
            node.id, f"verification failed after {self.attempts} attempts ({last_problem})"
        ) from last_error
