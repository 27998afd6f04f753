import json
import logging
import re

from sqlalchemy.orm import Session

from services.ai_client import AIClient
from services.chat_history_service import append_exchange, get_last_messages
from services.errors import AnalysisError, SqlAiError, SqlGenerationError
from services.schema_service import get_latest_dataset
from services.vector_service import find_relevant_columns

logger = logging.getLogger(__name__)

SQL_CONTEXT_COLUMNS = 10
CHAT_CONTEXT_COLUMNS = 15
CHAT_HISTORY_MESSAGES = 10

NO_QUERY_MARKERS = (
    "no query can be generated",
    "nenhuma consulta pode ser gerada",
)

_FENCE_RE = re.compile(r"```(?:sql)?\s*|\s*```", re.IGNORECASE)
_PREFIX_RE = re.compile(r"^(?:sql|query)\s*:\s*", re.IGNORECASE)
_TOKEN_RE = re.compile(
    r"'(?:[^']|'')*'|\"[^\"]*\"|\(|\)|\bSELECT\b|\bUNION(?:\s+ALL)?\b|\bINTERSECT\b|\bEXCEPT\b",
    re.IGNORECASE,
)
_SET_OPERATORS = ("UNION", "INTERSECT", "EXCEPT")


def format_schema_info(columns: list[dict]) -> str:
    return "\n".join(
        f"Table: {c['tableName']}, Column: {c['columnName']}, "
        f"Type: {c['dataType']}, Description: {c['description']}"
        for c in columns
    )


def build_sql_prompt(question: str, columns: list[dict]) -> str:
    return (
        "You are a PostgreSQL expert. Using the user's question and the database schema "
        "below, write one valid PostgreSQL query that answers the question.\n\n"
        f"Question: {question}\n\n"
        "Database schema:\n"
        f"{format_schema_info(columns)}\n\n"
        "Rules:\n"
        '- Always wrap every table and column name in double quotes, e.g. SELECT "country" FROM "sales"\n'
        "- Use exactly the names shown in the schema\n"
        "- The first word of the answer must be SELECT (or WITH for CTEs)\n"
        '- No prefixes such as "SQL:", no markdown code blocks, no explanations\n'
        "- Return exactly one statement; combine views with JOINs, CTEs or UNION ALL\n"
        "- Select only the columns needed and filter with WHERE where the question asks for it\n"
        "- For currency text such as \"$1,234\" use "
        "CAST(REPLACE(REPLACE(\"amount\", '$', ''), ',', '') AS NUMERIC)\n"
        '- Do not end the query with ";"\n'
        '- If no query can be written with these tables, answer "No query can be generated with the available tables"'
    )


def build_chat_prompt(
    question: str,
    columns: list[dict],
    column_stats: dict | None,
    history: list,
) -> str:
    stats_block = json.dumps(column_stats, ensure_ascii=False) if column_stats else "none"
    history_block = "\n".join(f"{m.role.upper()}: {m.content}" for m in history) or "none"
    return (
        "You are a friendly, insightful data analysis assistant. Help the user get value "
        "out of their dataset the way a senior teammate would, in a natural conversational tone.\n\n"
        "DATASET CONTEXT:\n"
        f"{format_schema_info(columns)}\n\n"
        "TOP VALUES AND TOTALS (precomputed, top 5 per column):\n"
        f"{stats_block}\n\n"
        "PREVIOUS CONVERSATION:\n"
        f"{history_block}\n\n"
        "Guidelines:\n"
        "- Never show SQL; talk about the business logic and the data\n"
        "- Connect observations with practical insights instead of dry lists\n"
        "- Use the precomputed totals when the user asks who or what leads\n"
        "- Finish with an open question or a suggestion for a next analysis\n\n"
        f"USER QUESTION: {question}\n\n"
        "Answer with your analysis:"
    )


def _first_statement(sql: str) -> str:
    """Cut at a second top-level SELECT that is not joined by a set operator."""
    depth = 0
    top_level_selects = 0
    previous = ""
    for match in _TOKEN_RE.finditer(sql):
        token = match.group(0).upper()
        if token == "(":
            depth += 1
        elif token == ")":
            depth = max(0, depth - 1)
        elif token == "SELECT" and depth == 0:
            top_level_selects += 1
            if top_level_selects > 1 and not previous.startswith(_SET_OPERATORS):
                return sql[: match.start()].strip()
        previous = token
    return sql


def clean_sql_response(raw: str) -> str:
    sql = (raw or "").strip()
    if any(marker in sql.lower() for marker in NO_QUERY_MARKERS):
        raise SqlGenerationError(sql)

    sql = _FENCE_RE.sub(" ", sql).strip()
    sql = _PREFIX_RE.sub("", sql).strip()
    sql = re.sub(r"^S(SELECT)", r"\1", sql, flags=re.IGNORECASE)
    sql = re.sub(r"^W(WITH)", r"\1", sql, flags=re.IGNORECASE)
    sql = re.sub(r"\s+", " ", sql).strip()
    sql = sql.split(";")[0].strip()
    sql = _first_statement(sql)

    if not re.match(r"^(SELECT|WITH)\b", sql, re.IGNORECASE):
        raise SqlGenerationError("Generated query does not start with SELECT or WITH")
    return sql


def generate_sql(db: Session, ai_client: AIClient, question: str) -> str:
    embedding = ai_client.embed_or_zeros(question)
    columns = find_relevant_columns(db, embedding, SQL_CONTEXT_COLUMNS)

    try:
        raw = ai_client.complete(build_sql_prompt(question, columns))
    except SqlAiError:
        raise
    except Exception as exc:
        raise SqlGenerationError(f"Failed to generate SQL query: {exc}") from exc

    logger.info("Raw SQL response: %s", raw)
    sql = clean_sql_response(raw)
    logger.info("Cleaned SQL: %s", sql)
    return sql


def analyze_dataset(
    db: Session,
    ai_client: AIClient,
    question: str,
    identifier: str | None = None,
    model: str | None = None,
) -> str:
    embedding = ai_client.embed_or_zeros(question)
    columns = find_relevant_columns(db, embedding, CHAT_CONTEXT_COLUMNS)
    dataset = get_latest_dataset(db)
    history = get_last_messages(db, identifier, CHAT_HISTORY_MESSAGES) if identifier else []

    prompt = build_chat_prompt(question, columns, dataset.column_stats if dataset else None, history)
    try:
        answer = ai_client.complete(prompt, model=model)
    except SqlAiError:
        raise
    except Exception as exc:
        raise AnalysisError(f"Failed to analyze the dataset: {exc}") from exc

    if identifier:
        try:
            append_exchange(db, identifier, question, answer, model=model)
        except Exception as exc:
            db.rollback()
            logger.exception("Failed to store chat history for %s", identifier)
            raise AnalysisError(f"Failed to store chat history: {exc}") from exc
    return answer
