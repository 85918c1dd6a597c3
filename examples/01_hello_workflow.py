# RUN: python examples/01_hello_workflow.py
"""Hello Workflow: three steps sharing one state.

Demonstrates: sync and async step callables, the borrowed workflow state,
and reading per-step results from output_data.
"""

import asyncio

from microflow import State, Step, Workflow


async def fetch_rows(ctx: State) -> int:
    await asyncio.sleep(0.01)
    ctx.set("rows", [3, 1, 2])
    return len(ctx.get("rows"))


def sort_rows(ctx: State) -> list[int]:
    ctx.set("rows", sorted(ctx.get("rows")))
    return ctx.get("rows")


async def main() -> None:
    wf = Workflow(
        [
            Step(name="fetch", callable=fetch_rows),
            Step(name="sort", callable=sort_rows),
            Step(name="report", callable=lambda ctx: f"{ctx.get('user')} has {ctx.get('rows')}"),
        ],
        name="hello",
    )

    await wf.execute({"user": "ada"})

    print(f"Status: {wf.status}  ({wf.execution_time_ms} ms)")
    for output in wf.output_data:
        print(f"  {output.step_name:<8} -> {output.result!r}")


if __name__ == "__main__":
    asyncio.run(main())
