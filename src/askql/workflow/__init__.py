"""
Workflow package: the staged AskQL pipeline and its orchestrator.
"""

from .stage_table import FINISH, Next, StageTable, goto, routed
from .routing import route_after_execute, route_after_translate, route_after_validate
from .stages import PipelineStages
from .progress import CompositeProgressSink, LoggingProgressSink, ProgressNotifier, ProgressSink
from .orchestrator import AskQLWorkflow, build_stage_table
from .factory import create_workflow

__all__ = [
    "FINISH",
    "Next",
    "StageTable",
    "goto",
    "routed",
    "route_after_execute",
    "route_after_translate",
    "route_after_validate",
    "PipelineStages",
    "CompositeProgressSink",
    "LoggingProgressSink",
    "ProgressNotifier",
    "ProgressSink",
    "AskQLWorkflow",
    "build_stage_table",
    "create_workflow",
]
