# RUN: python examples/02_control_flow.py
"""Control flow: conditional branches, a switch and a skip.

Demonstrates: ConditionalStep with symbolic operators, SwitchStep with
first-match-wins cases and a default, and SkipStep skipping exactly one step.
"""

import asyncio

from microflow import Case, ConditionalStep, SkipStep, Step, SwitchStep, Workflow


async def main() -> None:
    wf = Workflow(name="grading")

    def score() -> int:
        return wf.state.get("score")

    wf.push_steps(
        [
            ConditionalStep(
                name="pass_fail",
                subject=score,
                operator=">=",
                value=50,
                step_left=lambda ctx: "pass",
                step_right=lambda ctx: "fail",
            ),
            SwitchStep(
                name="grade",
                subject=score,
                cases=[
                    Case(operator=">=", value=90, callable=lambda ctx: "A"),
                    Case(operator=">=", value=70, callable=lambda ctx: "B"),
                    Case(operator=">=", value=50, callable=lambda ctx: "C"),
                ],
                default_case=lambda ctx: "F",
            ),
            SkipStep(name="skip_bonus", subject=score, operator="<", value=95),
            Step(name="bonus", callable=lambda ctx: "bonus round!"),
            Step(name="done", callable=lambda ctx: "done"),
        ]
    )

    for value in (97, 72, 12):
        await wf.execute({"score": value})
        results = {o.step_name: o.result for o in wf.output_data}
        print(f"score={value:<3} {results}")


if __name__ == "__main__":
    asyncio.run(main())
