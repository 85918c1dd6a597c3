# RUN: python examples/04_callbacks_and_retry.py
"""Callbacks and retry: observe a workflow and retry a flaky step.

Demonstrates: a custom WorkflowCallbackHandler combined with
LoggingCallbackHandler, pause/resume, and RetryPolicy.execute_step.
"""

import asyncio
from typing import Any

from microflow import (
    CompositeCallbackHandler,
    LoggingCallbackHandler,
    RetryPolicy,
    State,
    Step,
    Workflow,
    WorkflowCallbackHandler,
    attach_handler,
    configure_logging,
)


class PrintingHandler(WorkflowCallbackHandler):
    def on_step_completed(self, step: Step, result: Any) -> None:
        print(f"  [{step.name}] -> {result!r}")

    def on_workflow_paused(self, workflow: Workflow) -> None:
        print(f"  paused at step {workflow.current_step_index}")


async def main() -> None:
    configure_logging("WARNING", json=False)

    wf = Workflow(name="observed")
    wf.push_steps(
        [
            Step(name="one", callable=lambda ctx: 1),
            Step(name="checkpoint", callable=lambda ctx: wf.pause()),
            Step(name="two", callable=lambda ctx: 2),
        ]
    )
    attach_handler(wf, CompositeCallbackHandler([PrintingHandler(), LoggingCallbackHandler()]))

    await wf.execute()
    await wf.resume()
    print(f"Final status: {wf.status}")

    attempts = 0

    def flaky(ctx: State) -> str:
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise ConnectionError(f"attempt {attempts} failed")
        return "connected"

    policy = RetryPolicy(max_retries=4, backoff_base=0.01, jitter=False)
    output = await policy.execute_step(Step(name="connect", callable=flaky))
    print(f"Retry result: {output.result!r} after {attempts} attempts")


if __name__ == "__main__":
    asyncio.run(main())
