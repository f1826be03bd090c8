"""
In-memory collaborators for workflow unit tests.

The default fakes answer "count rows in orders" successfully:
schema with one `orders` table, a confident SELECT COUNT(*), a LOW-risk
validation, one result row and a one-sentence summary.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, List, Optional

from askql.domain.base_enums import RiskLevel
from askql.domain.events import ProgressEvent
from askql.domain.results import (
    AlternativesResult,
    ExecutionResult,
    InterpretationResult,
    QueryAlternative,
    TableView,
    TranslationResult,
    ValidationResult,
)
from askql.domain.schema_nodes import ColumnSchema, TableSchema
from askql.workflow.orchestrator import AskQLWorkflow
from askql.workflow.stages import PipelineStages


def orders_schema():
    return {
        "orders": TableSchema(
            table_name="orders",
            schema_name="public",
            columns={
                "id": ColumnSchema(column_name="id", data_type="integer", is_primary_key=True, is_nullable=False),
                "total": ColumnSchema(column_name="total", data_type="numeric"),
            },
        )
    }


def valid_verdict(**overrides: Any) -> ValidationResult:
    values = dict(is_valid=True, risk_level=RiskLevel.LOW, should_execute=True, issues=[], suggestions=[])
    values.update(overrides)
    return ValidationResult(**values)


def alternative(query: str, confidence: float) -> QueryAlternative:
    return QueryAlternative(query=query, explanation=f"alt {confidence}", confidence=confidence)


class FakeSchemaProvider:
    def __init__(self, schema=None, error: Optional[Exception] = None):
        self.schema = orders_schema() if schema is None else schema
        self.error = error
        self.calls = 0

    async def get_schema_info(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.schema


class FakeTranslator:
    def __init__(self, result: Optional[TranslationResult] = None, error: Optional[Exception] = None):
        self.result = result or TranslationResult(
            sql_query="SELECT COUNT(*) FROM orders",
            explanation="Counts all orders",
            confidence=92,
        )
        self.error = error
        self.calls: List[str] = []

    async def translate(self, question, schema):
        self.calls.append(question)
        if self.error:
            raise self.error
        return self.result


class FakeValidator:
    def __init__(
        self,
        verdict: Optional[ValidationResult] = None,
        alternatives: Optional[List[QueryAlternative]] = None,
        validate_error: Optional[Exception] = None,
        alternatives_error: Optional[Exception] = None,
    ):
        self.verdict = verdict or valid_verdict()
        self.alternatives = alternatives or []
        self.validate_error = validate_error
        self.alternatives_error = alternatives_error
        self.validated: List[str] = []
        self.experimented: List[str] = []

    async def validate(self, sql_query, question, schema, explanation=None):
        self.validated.append(sql_query)
        if self.validate_error:
            raise self.validate_error
        return self.verdict

    async def generate_alternatives(self, sql_query, question, schema, explanation=None):
        self.experimented.append(sql_query)
        if self.alternatives_error:
            raise self.alternatives_error
        return AlternativesResult(alternatives=self.alternatives)


class FakeExecutor:
    def __init__(self, result: Optional[ExecutionResult] = None, error: Optional[Exception] = None):
        self.result = result or ExecutionResult(success=True, rows=[{"count": 5}], row_count=1, execution_time_ms=3.2)
        self.error = error
        self.calls: List[tuple] = []

    async def execute(self, sql_query, is_validated, risk_level):
        self.calls.append((sql_query, is_validated, risk_level))
        if self.error:
            raise self.error
        return self.result


class FakeInterpreter:
    def __init__(self, result: Optional[InterpretationResult] = None, error: Optional[Exception] = None):
        self.result = result or InterpretationResult(summary="There are 5 orders.", table=TableView())
        self.error = error
        self.calls: List[tuple] = []

    async def interpret(self, question, sql_query, rows):
        self.calls.append((question, sql_query, rows))
        if self.error:
            raise self.error
        return self.result


class RecordingSink:
    """Progress sink that keeps every event; optionally fails on each call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: List[tuple] = []

    async def notify(self, session_id: str, event: ProgressEvent) -> None:
        if self.fail:
            raise RuntimeError("sink is down")
        self.events.append((session_id, event))

    def phases(self, stage: str) -> List[str]:
        return [event.phase.value for _, event in self.events if event.stage == stage]


class SessionGatedSink(RecordingSink):
    """Blocks every delivery for one session until release() is called."""

    def __init__(self, blocked_session: str):
        super().__init__()
        self.blocked_session = blocked_session
        self.gate = asyncio.Event()

    async def notify(self, session_id: str, event: ProgressEvent) -> None:
        if session_id == self.blocked_session:
            await self.gate.wait()
        await super().notify(session_id, event)

    def release(self) -> None:
        self.gate.set()


@dataclass
class Collaborators:
    schema_provider: FakeSchemaProvider = field(default_factory=FakeSchemaProvider)
    translator: FakeTranslator = field(default_factory=FakeTranslator)
    validator: FakeValidator = field(default_factory=FakeValidator)
    executor: FakeExecutor = field(default_factory=FakeExecutor)
    interpreter: FakeInterpreter = field(default_factory=FakeInterpreter)

    def stages(self) -> PipelineStages:
        return PipelineStages(
            schema_provider=self.schema_provider,
            translator=self.translator,
            validator=self.validator,
            executor=self.executor,
            interpreter=self.interpreter,
        )

    def workflow(self, sink=None) -> AskQLWorkflow:
        return AskQLWorkflow(self.stages(), progress_sink=sink)


