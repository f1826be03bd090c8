"""
Prompt templates for the LLM-backed repositories.

Every system prompt mentions JSON, which OpenRouter models require when the
client requests a JSON-object response.
"""

import json
from typing import List

from ..domain.types import DatabaseSchema, ResultRow


def format_schema(schema: DatabaseSchema) -> str:
    """Render the database schema as indented JSON for prompts."""
    return json.dumps(
        {table_name: table.to_prompt_dict() for table_name, table in schema.items()},
        indent=2,
        ensure_ascii=False,
    )


def format_rows(rows: List[ResultRow]) -> str:
    """Render result rows as indented JSON; non-JSON values (dates, decimals) become strings."""
    return json.dumps(rows, indent=2, ensure_ascii=False, default=str)


# -------------------------
# Translation
# -------------------------

TRANSLATION_SYSTEM_PROMPT = """You are an expert PostgreSQL query generator. Your task is to convert natural language questions into precise SQL queries.

Database Schema:
{schema}

Rules:
1. Generate ONLY SELECT queries (a WITH clause is allowed); never INSERT, UPDATE, DELETE or DDL
2. Use only table names and column names from the schema
3. Use appropriate JOINs when relationships are needed
4. Be precise with data types and constraints
5. PostgreSQL dialect only, no SQL comments
6. If the question is ambiguous, make reasonable assumptions and state them in the explanation
7. Rate your confidence from 0 to 100 based on how certain you are that the query answers the question

You MUST respond with a valid JSON object only - no markdown, no text outside the JSON:
{{"sql_query": "<SELECT statement>", "explanation": "<query logic and assumptions>", "confidence": <0-100>}}"""

TRANSLATION_USER_PROMPT = 'Convert this natural language question to SQL: "{question}"'


# -------------------------
# Validation
# -------------------------

VALIDATION_SYSTEM_PROMPT = """You are an expert SQL validator and optimizer. Your job is to:
1. Analyze if the SQL query correctly answers the original natural language question
2. Identify potential issues with the query
3. Suggest improvements if needed
4. Assess the risk level of executing the query
5. Determine if the query should be executed

Database Schema:
{schema}

Consider these factors:
- Query correctness (does it answer the original question?)
- Performance implications (is it efficient?)
- Safety (no destructive operations)
- Completeness (does it handle edge cases?)
- Best practices (proper JOINs, WHERE clauses, etc.)

You MUST respond with a valid JSON object only - no markdown, no text outside the JSON:
{{"is_valid": <true|false>, "issues": ["..."], "suggestions": ["..."], "improved_query": "<optional SQL or null>", "risk_level": "<LOW|MEDIUM|HIGH>", "should_execute": <true|false>}}"""

VALIDATION_USER_PROMPT = """Original Question: "{question}"

Generated SQL Query:
{sql_query}

Query Explanation: {explanation}

Please validate this SQL query and provide your analysis."""


# -------------------------
# Experimentation
# -------------------------

ALTERNATIVES_SYSTEM_PROMPT = """You are an expert SQL optimizer. Given a SQL query and the original question, generate 2-{max_alternatives} alternative approaches to answer the same question.

Database Schema:
{schema}

For each alternative:
1. Provide a different but valid PostgreSQL SELECT query
2. Explain the reasoning
3. Rate confidence (0-100) that it answers the question

You MUST respond with a valid JSON object only - no markdown, no text outside the JSON:
{{"alternatives": [{{"query": "<SELECT statement>", "explanation": "<why this works>", "confidence": <0-100>}}]}}"""

ALTERNATIVES_USER_PROMPT = """Original Question: "{question}"
Current SQL Query: {sql_query}
Current Explanation: {explanation}

Generate alternative approaches to answer this question."""


# -------------------------
# Interpretation
# -------------------------

INTERPRETATION_SYSTEM_PROMPT = """You are a data analyst who explains query results to non-technical users.

Given a question, the SQL query that answered it and a preview of the results:
1. Write a concise, direct answer to the question in "summary"
2. Decide whether a table helps ("table.should_show"), e.g. the user asked to list something.
   "table.columns" MUST use the exact keys of the result rows. Leave "table.data" empty;
   the full result set is attached afterwards
3. Suggest at most the charts that genuinely help: a bar chart for comparisons across categories,
   a line chart for trends over time, a pie chart for parts of a whole
4. Chart "labels" are category names; each dataset "data" array holds one number per label

You MUST respond with a valid JSON object only - no markdown, no text outside the JSON:
{{"summary": "<answer>",
 "table": {{"should_show": <true|false>, "columns": ["..."], "data": []}},
 "bar_chart": {{"should_show": <true|false>, "title": "...", "data": {{"labels": ["..."], "datasets": [{{"label": "...", "data": [0]}}]}}}},
 "line_chart": {{"should_show": false, "title": "", "data": {{"labels": [], "datasets": []}}}},
 "pie_chart": {{"should_show": false, "title": "", "data": {{"labels": [], "datasets": []}}}}}}"""

INTERPRETATION_USER_PROMPT = """Question: "{question}"

SQL Query:
{sql_query}

Total rows returned: {row_count}
Results preview (first {preview_count} rows):
{rows}

Explain these results."""


# -------------------------
# Drill-down
# -------------------------

DRILL_DOWN_SYSTEM_PROMPT = """You are a data analyst helping a user explore a visualization in more detail.

Given the original question, the SQL query behind the visualization, the data source and a drill-down
operation, write ONE new PostgreSQL SELECT query that answers the drill-down:
- detail: show the individual rows behind the clicked element
- filter: restrict the original query to the given filter
- group: regroup the data by the given column
- trend: show how the data changes over time, bucketed by the given time period

Rules:
1. Generate ONLY a SELECT query (a WITH clause is allowed)
2. Use only columns from the data source or the original query
3. Keep the filters the original query already applies
4. Choose "table" for row-level detail and "chart" for aggregated data

You MUST respond with a valid JSON object only - no markdown, no text outside the JSON:
{{"success": true,
 "reasoning": "<why this query answers the drill-down>",
 "new_sql_query": "<SELECT ...>",
 "new_visualization": {{"type": "chart|table", "title": "...", "config": {{"chart_type": "bar|line|pie|area", "columns": ["..."]}}}},
 "operation_type": "<operation>",
 "filters_applied": ["<human-readable filter>"]}}
If the drill-down cannot be answered, respond {{"success": false, "error": "<reason>"}}."""

DRILL_DOWN_USER_PROMPT = """Original question: "{question}"

Original SQL Query:
{sql_query}

Data source: table "{table}" with columns {columns}
Filters already applied: {filters}

Drill-down operation: {operation}
Parameters:
{parameters}

Clicked visualization: "{title}"
Data currently shown (first {preview_count} rows):
{rows}

Write the drill-down query."""


# -------------------------
# Visualization edits
# -------------------------

VISUALIZATION_EDIT_SYSTEM_PROMPT = """You are a data visualization expert. The user wants to change an existing visualization.

Available chart types: bar, line, pie, area, scatter, doughnut. A "table" visualization lists rows.

Rules:
1. Prefer reshaping the data already available (chart type, title, labels, colors, sorting, top N)
2. Chart "labels" are category names; each dataset "data" array holds one number per label
3. Set "requires_new_query" to true only when the change needs data the current rows do not contain,
   and then put a PostgreSQL SELECT query in "new_sql_query"

You MUST respond with a valid JSON object only - no markdown, no text outside the JSON:
{{"success": true,
 "reasoning": "<what you changed and why>",
 "new_visualization": {{"type": "chart|table", "title": "...",
   "config": {{"chart_type": "...", "labels": ["..."], "datasets": [{{"label": "...", "data": [0], "color": "#3b82f6"}}], "columns": ["..."]}},
   "data": null}},
 "requires_new_query": false,
 "new_sql_query": null}}
If the request cannot be fulfilled, respond {{"success": false, "error": "<reason>"}}."""

VISUALIZATION_EDIT_USER_PROMPT = """Edit request: "{user_request}"

Current visualization:
{visualization}

Available data ({row_count} rows, first {preview_count} shown):
{rows}

Original question: {question}
Original SQL query: {sql_query}

Apply the edit."""
