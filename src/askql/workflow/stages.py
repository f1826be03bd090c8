"""
Stage functions of the AskQL workflow.

Each stage reads the state, calls one collaborator and returns a partial
update for the orchestrator to merge. Reported failures (missing inputs,
collaborator errors) come back as {"error": ...}; stages never raise for
them. Experiment is best-effort and returns {} when it cannot help.
"""

from ..config_constants import MAX_RETRY_COUNT
from ..domain.errors import AskQLException
from ..domain.pipeline import PipelineState
from ..domain.types import StateUpdate
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from .collaborators import Executor, Interpreter, SchemaProvider, Translator, Validator

logger = get_module_logger()


def describe_error(error: Exception) -> str:
    """Message of a collaborator failure, without the exception class name."""
    if isinstance(error, AskQLException):
        return error.message
    return str(error) or error.__class__.__name__


class PipelineStages:
    """
    The seven stage handlers, bound to their collaborators.

    Usage:
        stages = PipelineStages(schema_service, translator, validator, executor, interpreter)
        update = await stages.load_schema(state)
    """

    def __init__(
        self,
        schema_provider: SchemaProvider,
        translator: Translator,
        validator: Validator,
        executor: Executor,
        interpreter: Interpreter,
    ):
        self.schema_provider = schema_provider
        self.translator = translator
        self.validator = validator
        self.executor = executor
        self.interpreter = interpreter

    async def load_schema(self, state: PipelineState) -> StateUpdate:
        try:
            schema = await self.schema_provider.get_schema_info()
        except Exception as e:
            return {"error": f"Failed to load database schema: {describe_error(e)}"}
        return {"schema": schema}

    async def translate(self, state: PipelineState) -> StateUpdate:
        if state.schema is None:
            # Keep the schema loader's own failure message when there is one
            return {"error": state.error or "Database schema not available"}

        try:
            result = await self.translator.translate(state.question, state.schema)
        except Exception as e:
            return {"error": f"NL to SQL conversion failed: {describe_error(e)}"}

        return {
            "sql_query": result.sql_query,
            "query_explanation": result.explanation,
            "confidence": result.confidence,
        }

    async def validate(self, state: PipelineState) -> StateUpdate:
        if not state.sql_query or state.schema is None:
            return {"error": "SQL query or schema missing for validation"}

        try:
            validation = await self.validator.validate(
                state.sql_query,
                state.question,
                state.schema,
                state.query_explanation,
            )
        except Exception as e:
            return {"error": f"SQL validation failed: {describe_error(e)}"}

        return {"validation": validation}

    async def experiment(self, state: PipelineState) -> StateUpdate:
        """
        Look for a better query than the translator's.

        The best alternative replaces the current query only when its
        confidence is strictly higher (a missing confidence counts as 0).
        """
        if not state.sql_query or state.schema is None:
            return {}

        try:
            result = await self.validator.generate_alternatives(
                state.sql_query,
                state.question,
                state.schema,
                state.query_explanation,
            )
        except Exception as e:
            logger.warning(
                "Experimentation failed, keeping original query",
                error=describe_error(e),
                trace_id=current_trace_id(),
            )
            return {}

        update: StateUpdate = {"alternatives": result.alternatives}

        best = result.best()
        if best is not None and best.confidence > (state.confidence or 0):
            logger.info(
                "Alternative query adopted",
                previous_confidence=state.confidence,
                confidence=best.confidence,
                trace_id=current_trace_id(),
            )
            update.update(
                sql_query=best.query,
                query_explanation=best.explanation,
                confidence=best.confidence,
            )

        return update

    async def execute(self, state: PipelineState) -> StateUpdate:
        if not state.sql_query or state.validation is None:
            return {"error": "SQL query or validation result missing"}

        try:
            result = await self.executor.execute(
                state.sql_query,
                state.validation.is_valid,
                state.validation.risk_level,
            )
        except Exception as e:
            return {"error": f"SQL execution failed: {describe_error(e)}"}

        return {"execution_result": result}

    async def interpret(self, state: PipelineState) -> StateUpdate:
        result = state.execution_result
        if result is None or not state.sql_query:
            return {"error": "Execution result or SQL query missing for interpretation"}
        if not result.success:
            return {"error": f"Cannot interpret a failed execution: {result.error or 'unknown error'}"}

        try:
            final_response = await self.interpreter.interpret(
                state.question,
                state.sql_query,
                result.rows,
            )
        except Exception as e:
            return {"error": f"Result interpretation failed: {describe_error(e)}"}

        return {"final_response": final_response}

    async def handle_error(self, state: PipelineState) -> StateUpdate:
        """
        Count the failure and give up past MAX_RETRY_COUNT.

        Nothing routes back into an earlier stage, so within one run the
        counter only ever reaches 1.
        """
        retry_count = state.retry_count + 1
        error = state.error or self._unreported_error(state)

        if retry_count > MAX_RETRY_COUNT:
            return {
                "error": f"Maximum retry attempts exceeded. Original error: {error}",
                "retry_count": retry_count,
            }

        return {"error": error, "retry_count": retry_count}

    @staticmethod
    def _unreported_error(state: PipelineState) -> str:
        # A refused or failed execution routes here without setting state.error
        result = state.execution_result
        if result is not None and not result.success:
            return f"SQL execution failed: {result.error or 'unknown error'}"
        return "Workflow ended without a result"
