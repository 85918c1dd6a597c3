from microflow.workflows.engine import Workflow

__all__ = ["Workflow"]
