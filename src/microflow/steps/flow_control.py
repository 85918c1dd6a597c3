from __future__ import annotations

from typing import Any

from microflow.core.constants import Comparator, FlowControlType
from microflow.core.exceptions import ConfigurationError
from microflow.core.state import State
from microflow.steps.logic import LogicStep


class FlowControlStep(LogicStep):
    """Raises ``should_break`` or ``should_continue`` when its condition holds."""

    def __init__(
        self,
        name: str | None = None,
        flow_control_type: FlowControlType | str = FlowControlType.BREAK,
        subject: Any = None,
        operator: Comparator | str | None = None,
        value: Any = None,
        log_suppress: bool = False,
    ) -> None:
        try:
            control = FlowControlType(flow_control_type)
        except ValueError:
            raise ConfigurationError(
                f"Invalid flow control type: {flow_control_type!r}",
                details={"flow_control_type": str(flow_control_type)},
            ) from None
        super().__init__(
            name=name,
            subject=subject,
            operator=operator,
            value=value,
            log_suppress=log_suppress,
        )
        self.flow_control_type = control
        self.set_callable(self.should_flow_control)

    async def should_flow_control(self, context: State) -> bool:
        triggered = self.check_condition()
        if self.flow_control_type == FlowControlType.BREAK:
            self.signal.should_break = triggered
        else:
            self.signal.should_continue = triggered
        if triggered:
            self._log("debug", "flow control triggered", flow_control_type=str(self.flow_control_type))
        return triggered
