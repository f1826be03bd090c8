"""
End-to-end run of the AskQL workflow against a real database and LLM.

Asks a question about the information_schema so no application tables
are required.

Usage:
    pytest tests/integration/test_workflow_end_to_end.py -v -s
"""

import pytest

from askql.services.askql_service import AskQLService
from askql.workflow import create_workflow


class RecordingSink:
    def __init__(self):
        self.events = []

    async def notify(self, session_id, event):
        self.events.append(event)


@pytest.mark.integration
class TestWorkflowEndToEnd:

    async def test_question_is_answered(self, settings, db_client, llm_client):
        sink = RecordingSink()
        workflow = create_workflow(settings, db_client, llm_client, progress_sink=sink)

        response = await AskQLService(workflow).ask(
            "How many tables are there in the database?",
            session_id="integration",
            include_debug_info=True,
        )
        await workflow.drain()

        assert response.answer
        assert response.debug_info.steps[0] == "Loaded database schema"
        assert sink.events[-1].stage == "workflow"
        if response.success:
            assert response.metadata.sql_query
        else:
            assert response.error
