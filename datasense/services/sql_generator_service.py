"""
SQL Generator Service
Turns a natural-language question plus a schema snapshot into a SELECT
statement that passes the safety gate.

Flow:
1. Render the schema to prompt text (input order, columns then relationships)
2. Ask the model for a query, strip code fences
3. Sanitize + classify
4. If rejected, ask the model ONCE to rewrite it, strip fences, gate again
5. Accepted -> return. Rejected twice -> UnsafeStatementError

There is never a third round.
"""
import logging
from typing import List

from datasense.models.schema import (
    DatabaseSchema,
    GeneratedStatement,
    PromptRequest,
    StatementVerdict,
)
from datasense.services.exceptions import UnsafeStatementError
from datasense.services.inference_client import InferenceClient
from datasense.utils.sql_safety import classify, sanitize
from datasense.utils.text_processing import strip_code_fences

logger = logging.getLogger(__name__)

MAX_CORRECTION_ATTEMPTS = 1


def render_schema(schema: DatabaseSchema) -> str:
    """
    Render a schema snapshot as prompt text.

    Output is deterministic: tables in input order, each with its columns
    followed by its relationships, separated by a blank line.
    """
    lines: List[str] = []
    for table in schema.tables:
        lines.append(f"Table: {table.schema_qualifier}.{table.name}")
        lines.append("  Columns:")
        for column in table.columns:
            max_length = f"({column.max_length})" if column.max_length > 0 else ""
            pk = " (PK)" if column.is_primary_key else ""
            nullable = " NULL" if column.is_nullable else " NOT NULL"
            lines.append(f"    - {column.name}: {column.data_type}{max_length}{pk}{nullable}")
        if table.relationships:
            lines.append("  Relationships:")
            for rel in table.relationships:
                lines.append(f"    - {rel.fk_table}.{rel.fk_column} -> {rel.pk_table}.{rel.pk_column}")
        lines.append("")
    return "\n".join(lines) + ("\n" if lines else "")


def build_generation_prompt(request: PromptRequest, schema_text: str) -> str:
    dialect = request.dialect_tag
    return f"""You are a SQL query generator for {dialect.upper()}.
Given a database schema and a natural language question, generate a valid, safe SQL SELECT query.

Database: {request.schema_snapshot.database_name}
Schema:
{schema_text}
Question: "{request.natural_language_text}"

IMPORTANT RULES:
1. Generate ONLY SELECT queries (no INSERT, UPDATE, DELETE, DROP, TRUNCATE)
2. Use proper {dialect} syntax
3. Include all necessary JOINs based on foreign keys shown in the relationships
4. Use parameterized values or single quotes for string literals
5. Use aggregation functions (COUNT, SUM, AVG, etc.) when appropriate
6. Return ONLY the SQL query, no explanations or markdown formatting
7. Use table and column names exactly as shown in the schema
8. Be aware of NULL handling and use appropriate functions

Return the SQL query:"""


def build_verification_prompt(request: PromptRequest, rejected_sql: str, schema_text: str, reason: str) -> str:
    dialect = request.dialect_tag
    return f"""You are a SQL query verifier for {dialect.upper()}.

The query below was rejected by a safety check ({reason}). Rewrite it so that it is a single, read-only SELECT query.

Original Question: "{request.natural_language_text}"

Rejected SQL Query:
{rejected_sql}

Database Schema:
{schema_text}
Instructions:
1. The query MUST ONLY contain SELECT operations (no INSERT, UPDATE, DELETE, DROP, TRUNCATE, ALTER, CREATE, EXEC)
2. Answer the original question using ONLY the tables and columns shown in the schema above
3. Use table and column names exactly as shown in the schema (case-sensitive)
4. Use proper {dialect} syntax and only JOIN tables that exist in the schema
5. Do not include comments

Return ONLY the corrected SQL query, no explanations or markdown formatting."""


class SQLGeneratorService:
    """Question + schema -> gate-passing SQL, with one bounded repair round trip"""

    def __init__(self, inference_client: InferenceClient):
        self.inference_client = inference_client

    async def _ask(self, prompt: str, statement: GeneratedStatement) -> GeneratedStatement:
        reply = await self.inference_client.infer(prompt)
        raw = strip_code_fences(reply)
        statement.raw_text = raw
        statement.sanitized_text = sanitize(raw) or ""
        return statement

    async def generate(self, question: str, schema: DatabaseSchema, dialect: str = "sqlserver") -> GeneratedStatement:
        """
        Generate a safe SELECT statement.

        Returns:
            GeneratedStatement with verdict ACCEPTED and correction_attempts 0 or 1

        Raises:
            UnsafeStatementError: rejected by the gate on both attempts
            InferenceUnavailableError: the model could not be reached on either call
        """
        request = PromptRequest(
            natural_language_text=question,
            schema_snapshot=schema,
            dialect_tag=dialect or "sqlserver",
        )
        schema_text = render_schema(schema)
        statement = GeneratedStatement()

        await self._ask(build_generation_prompt(request, schema_text), statement)
        verdict = classify(statement.sanitized_text)
        if verdict.is_safe:
            statement.verdict = StatementVerdict.ACCEPTED
            logger.info(f"Generated SQL for {request.dialect_tag} accepted on first attempt")
            return statement

        logger.warning(f"Generated SQL rejected ({verdict.reason}), requesting one rewrite")
        rejected = statement.sanitized_text or statement.raw_text
        statement.correction_attempts = MAX_CORRECTION_ATTEMPTS
        await self._ask(build_verification_prompt(request, rejected, schema_text, verdict.reason), statement)

        verdict = classify(statement.sanitized_text)
        if verdict.is_safe:
            statement.verdict = StatementVerdict.ACCEPTED
            logger.info("Rewritten SQL accepted after one correction")
            return statement

        statement.verdict = StatementVerdict.REJECTED_FINAL
        statement.rejection_reason = verdict.reason
        logger.warning(f"Rewritten SQL rejected again ({verdict.reason}), giving up")
        raise UnsafeStatementError(
            "Generated SQL query contains dangerous operations and could not be fixed",
            reason=verdict.reason,
            last_statement=statement.sanitized_text,
        )

    async def generate_sql(self, natural_query: str, schema: DatabaseSchema, db_type: str = "sqlserver") -> str:
        """Caller-facing shortcut: the accepted, sanitized SQL text only"""
        statement = await self.generate(natural_query, schema, db_type)
        return statement.sanitized_text
