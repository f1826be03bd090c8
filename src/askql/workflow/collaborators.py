"""
Interfaces the workflow stages depend on.

The repositories and SchemaService satisfy these structurally; tests pass
in-memory fakes.
"""

from typing import List, Optional, Protocol

from ..domain.base_enums import RiskLevel
from ..domain.results import (
    AlternativesResult,
    ExecutionResult,
    InterpretationResult,
    TranslationResult,
    ValidationResult,
)
from ..domain.types import DatabaseSchema, ResultRow


class SchemaProvider(Protocol):
    async def get_schema_info(self) -> DatabaseSchema: ...


class Translator(Protocol):
    async def translate(self, question: str, schema: DatabaseSchema) -> TranslationResult: ...


class Validator(Protocol):
    async def validate(
        self,
        sql_query: str,
        question: str,
        schema: DatabaseSchema,
        explanation: Optional[str] = None,
    ) -> ValidationResult: ...

    async def generate_alternatives(
        self,
        sql_query: str,
        question: str,
        schema: DatabaseSchema,
        explanation: Optional[str] = None,
    ) -> AlternativesResult: ...


class Executor(Protocol):
    async def execute(
        self,
        sql_query: str,
        is_validated: bool,
        risk_level: RiskLevel,
    ) -> ExecutionResult: ...


class Interpreter(Protocol):
    async def interpret(
        self,
        question: str,
        sql_query: str,
        rows: List[ResultRow],
    ) -> InterpretationResult: ...
