"""
AskQL workflow orchestrator.

Drives one PipelineState through the stage table, one step at a time:

    schema_loading -> nl_to_sql -{route}-> sql_validation | error_handling
    sql_validation -{route}-> sql_execution | experimentation | error_handling
    experimentation -> sql_execution
    sql_execution -{route}-> result_interpretation | error_handling
    result_interpretation -> finish
    error_handling -> finish

Stages run strictly one after another. A stage that raises is treated as
a failure of that stage: the error is recorded and the run jumps to the
error stage. run() itself never raises.
"""

import time
from typing import Callable, Iterable, Optional

from ..domain.base_enums import Route, StageName
from ..domain.events import ProgressEvent
from ..domain.pipeline import PipelineState
from ..utils.logging import get_module_logger
from ..utils.tracing import trace_context
from .messages import stage_error_event, stage_finished_event, stage_started_events, workflow_finished_event
from .progress import ProgressNotifier, ProgressSink
from .routing import route_after_execute, route_after_translate, route_after_validate
from .stage_table import FINISH, StageTable, goto, routed
from .stages import PipelineStages, describe_error

logger = get_module_logger()


def build_stage_table(stages: PipelineStages) -> StageTable:
    """The fixed AskQL stage order and routing."""
    steps = [
        (StageName.SCHEMA_LOADING, stages.load_schema),
        (StageName.NL_TO_SQL, stages.translate),
        (StageName.SQL_VALIDATION, stages.validate),
        (StageName.EXPERIMENTATION, stages.experiment),
        (StageName.SQL_EXECUTION, stages.execute),
        (StageName.RESULT_INTERPRETATION, stages.interpret),
        (StageName.ERROR_HANDLING, stages.handle_error),
    ]

    routing = {
        StageName.SCHEMA_LOADING: goto(StageName.NL_TO_SQL),
        StageName.NL_TO_SQL: routed(route_after_translate, {
            Route.VALIDATE: StageName.SQL_VALIDATION,
            Route.ERROR: StageName.ERROR_HANDLING,
        }),
        StageName.SQL_VALIDATION: routed(route_after_validate, {
            Route.EXECUTE: StageName.SQL_EXECUTION,
            Route.EXPERIMENT: StageName.EXPERIMENTATION,
            Route.ERROR: StageName.ERROR_HANDLING,
        }),
        StageName.EXPERIMENTATION: goto(StageName.SQL_EXECUTION),
        StageName.SQL_EXECUTION: routed(route_after_execute, {
            Route.INTERPRET: StageName.RESULT_INTERPRETATION,
            Route.ERROR: StageName.ERROR_HANDLING,
        }),
        StageName.RESULT_INTERPRETATION: FINISH,
        StageName.ERROR_HANDLING: FINISH,
    }

    return StageTable(steps, routing, error_stage=StageName.ERROR_HANDLING)


class AskQLWorkflow:
    """
    Orchestrator for the AskQL pipeline.

    Usage:
        workflow = AskQLWorkflow(stages, progress_sink=LoggingProgressSink())
        state = await workflow.run("How many orders were placed today?", session_id="abc")
        if state.error:
            ...
    """

    def __init__(
        self,
        stages: PipelineStages,
        progress_sink: Optional[ProgressSink] = None,
        table: Optional[StageTable] = None,
    ):
        self.table = table or build_stage_table(stages)
        self.notifier = ProgressNotifier(progress_sink)

        logger.info(
            "AskQLWorkflow initialized",
            stages=[stage.value for stage in self.table.stages],
            progress_sink=progress_sink.__class__.__name__ if progress_sink else None,
        )

    async def run(self, question: str, session_id: Optional[str] = None) -> PipelineState:
        """
        Process one question to a terminal state.

        Args:
            question: Natural language question, passed through unchecked
            session_id: Progress correlation token; no progress events without it

        Returns:
            Terminal PipelineState: final_response on success, error otherwise
        """
        state = PipelineState(question=question, session_id=session_id)
        start = time.perf_counter()

        with trace_context(session_id=session_id) as trace_id:
            logger.info("Starting AskQL workflow", question_length=len(question), trace_id=trace_id)

            try:
                await self._drive(state)
            except Exception as e:
                # Stage crashes are handled per stage; this catches routing failures
                logger.error(
                    "AskQL workflow aborted",
                    error=describe_error(e),
                    trace_id=trace_id,
                    exc_info=True,
                )
                state.error = f"Workflow execution failed: {describe_error(e)}"

            execution_time_ms = (time.perf_counter() - start) * 1000
            self._report(session_id, lambda: [workflow_finished_event(state, execution_time_ms)])

            logger.info(
                "AskQL workflow finished",
                success=not state.has_error and state.final_response is not None,
                error=state.error,
                retry_count=state.retry_count,
                execution_time_ms=round(execution_time_ms, 2),
                trace_id=trace_id,
            )

        return state

    async def drain(self, session_id: Optional[str] = None, timeout: Optional[float] = None) -> None:
        """Wait for outstanding progress notifications, for one session or all of them."""
        await self.notifier.drain(session_id, timeout)

    async def _drive(self, state: PipelineState) -> None:
        stage: Optional[StageName] = self.table.entry

        while stage is not None:
            crashed = await self._run_stage(stage, state)

            if crashed and stage is not self.table.error_stage:
                stage = self.table.error_stage
                continue
            if crashed:
                return

            stage = self.table.next_stage(stage, state)

    async def _run_stage(self, stage: StageName, state: PipelineState) -> bool:
        """
        Run one stage and merge its update.

        Returns:
            True when the stage raised instead of returning an update
        """
        self._report(state.session_id, lambda: stage_started_events(stage, state))
        logger.debug("Stage started", stage=stage.value)

        try:
            update = await self.table.handler(stage)(state)
            state.merge(update, stage)
        except Exception as e:
            error = f"Unexpected error in {stage.value}: {describe_error(e)}"
            logger.error("Stage raised", stage=stage.value, error=error, exc_info=True)
            state.error = error
            self._report(state.session_id, lambda: [stage_error_event(stage, error)])
            return True

        if update.get("error"):
            logger.warning("Stage reported an error", stage=stage.value, error=update["error"])
        else:
            logger.debug("Stage completed", stage=stage.value, fields=sorted(update))

        self._report(state.session_id, lambda: [stage_finished_event(stage, state, update)])
        return False

    def _report(self, session_id: Optional[str], build: Callable[[], Iterable[ProgressEvent]]) -> None:
        """Build and schedule progress events; failures here never affect the run."""
        if not session_id:
            return
        try:
            events = list(build())
        except Exception as e:
            logger.debug("Could not build progress event", error=str(e))
            return
        for event in events:
            self.notifier.notify(session_id, event)
