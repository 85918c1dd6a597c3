# RUN: python examples/03_loops_and_delays.py
"""Loops and delays: FOR_EACH with a break, a bounded WHILE, a cancelled delay.

Demonstrates: LoopStep over a sub-workflow, FlowControlStep BREAK, the
max_iterations guard and its break_reason, and Workflow.cancel() aborting a
pending DelayStep.
"""

import asyncio

from microflow import DelayStep, FlowControlStep, LoopStep, LoopType, Step, Workflow


async def main() -> None:
    # FOR_EACH: stop as soon as an order over 100 shows up
    seen: list[int] = []
    body = Workflow(
        [
            Step(name="collect", callable=lambda ctx: seen.append(ctx.get("current_item"))),
            FlowControlStep(name="too_big", subject=lambda: seen[-1], operator=">", value=100),
        ]
    )
    orders = LoopStep(
        name="orders",
        sub_workflow=body,
        loop_type=LoopType.FOR_EACH,
        iterable=[20, 35, 140, 60],
    )
    await Workflow([orders]).execute()
    print(f"Orders seen: {seen}  (stopped: {orders.break_reason})")

    # WHILE: a condition that never turns false is bounded by max_iterations
    polls = LoopStep(
        name="poll",
        sub_workflow=Workflow([Step(name="ping")]),
        subject=lambda: True,
        operator="==",
        value=True,
        max_iterations=5,
    )
    await Workflow([polls]).execute()
    print(f"Polled {polls.iterations} times (stopped: {polls.break_reason})")

    # Cancel a long delay from outside
    wf = Workflow([DelayStep(name="nap", delay_duration=60_000), Step(name="after")])
    task = asyncio.create_task(wf.execute())
    await asyncio.sleep(0.05)
    wf.cancel()
    await task
    print(f"Delayed workflow: {wf.status}, first output failed={wf.output_data[0].failed}")


if __name__ == "__main__":
    asyncio.run(main())
