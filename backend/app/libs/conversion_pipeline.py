"""
Design conversion pipeline

Moves a conversion through pending -> analyzing -> generating -> completed,
persisting each step. Any failure after the conversion is claimed marks it
failed with the error message.
"""

from typing import Any, Dict, List, Optional

import asyncpg

from app.libs.codegen import analyze_design, generate_code
from app.libs.database import get_db_connection
from app.libs.log import log
from app.libs.models import ConversionStatus, ConversionType
from app.libs.workflow import InvalidTransition, can_process_conversion, conversion_transition


class ConversionNotFound(Exception):
    def __init__(self, conversion_id: str):
        self.message = "Conversion not found"
        super().__init__(self.message)
        self.conversion_id = conversion_id


class ConversionFailed(Exception):
    """Raised after a pipeline failure has been recorded on the conversion"""
    def __init__(self, conversion_id: str, message: str):
        self.conversion_id = conversion_id
        self.message = message
        super().__init__(self.message)


BASELINE_TABLES = {
    ConversionType.DIVI.value: "divi_modules",
    ConversionType.ELEMENTOR.value: "elementor_widgets",
}


async def load_baseline(conn: asyncpg.Connection, conversion_type: str) -> Optional[List[str]]:
    """Baseline module/widget slugs for a page builder, or None to use the built-in list."""
    table = BASELINE_TABLES.get(conversion_type)
    if not table:
        return None
    rows = await conn.fetch(f"SELECT slug FROM {table} WHERE is_baseline = true")
    return [row["slug"] for row in rows] or None


async def _advance(
    conn: asyncpg.Connection,
    conversion_id: str,
    current: str,
    target: ConversionStatus,
    **fields: Any,
) -> None:
    """Compare-and-set the status so two workers cannot claim the same conversion."""
    conversion_transition(current, target)

    assignments = ["status = $3", "updated_at = NOW()"]
    values: List[Any] = [conversion_id, current, target.value]
    for column, value in fields.items():
        values.append(value)
        assignments.append(f"{column} = ${len(values)}")

    updated = await conn.fetchval(
        f"""
        UPDATE design_conversions
        SET {', '.join(assignments)}
        WHERE id = $1 AND status = $2
        RETURNING id
        """,
        *values,
    )
    if not updated:
        raise InvalidTransition(current, target.value)


async def _mark_failed(conn: asyncpg.Connection, conversion_id: str, message: str) -> None:
    await conn.execute(
        """
        UPDATE design_conversions
        SET status = $2, error_message = $3, updated_at = NOW()
        WHERE id = $1
        """,
        conversion_id,
        ConversionStatus.FAILED.value,
        message,
    )


async def run_conversion(conn: asyncpg.Connection, conversion_id: str) -> Dict[str, Any]:
    """
    Run the pipeline for one conversion.

    Returns:
        The completed conversion row as a dict

    Raises:
        ConversionNotFound: No such conversion
        InvalidTransition: Conversion is not pending or failed
        ConversionFailed: Analysis or generation raised; the conversion is marked failed
    """
    conversion = await conn.fetchrow("SELECT * FROM design_conversions WHERE id = $1", conversion_id)
    if not conversion:
        raise ConversionNotFound(conversion_id)

    status = conversion["status"]
    if not can_process_conversion(status):
        raise InvalidTransition(status, ConversionStatus.ANALYZING.value)

    await _advance(conn, conversion_id, status, ConversionStatus.ANALYZING, error_message=None)
    log("CONVERSION", f"Analyzing {conversion['conversion_type']} conversion", ref=conversion_id)

    try:
        analysis = analyze_design(conversion["image_url"], conversion["conversion_type"], conversion["prompt"])
        await _advance(
            conn, conversion_id, ConversionStatus.ANALYZING.value, ConversionStatus.GENERATING,
            analysis=analysis,
        )
        log("CONVERSION", "Generating code", ref=conversion_id)

        baseline = await load_baseline(conn, conversion["conversion_type"])
        generated = generate_code(analysis, conversion["conversion_type"], conversion["prompt"], baseline)
        log("CODEGEN", f"Missing components: {generated.missing_components}", ref=conversion_id)

        await conn.execute(
            """
            UPDATE design_conversions
            SET status = $2,
                result = $3,
                companion_plugin = $4,
                needs_companion_plugin = $5,
                completed_at = NOW(),
                updated_at = NOW()
            WHERE id = $1
            """,
            conversion_id,
            conversion_transition(ConversionStatus.GENERATING, ConversionStatus.COMPLETED).value,
            generated.code,
            generated.companion_plugin,
            generated.needs_companion_plugin,
        )
    except Exception as e:
        message = getattr(e, "message", None) or str(e)
        log("CONVERSION", f"❌ Failed: {message}", ref=conversion_id)
        await _mark_failed(conn, conversion_id, message)
        raise ConversionFailed(conversion_id, message) from e

    log("CONVERSION", "✅ Completed", ref=conversion_id)
    row = await conn.fetchrow("SELECT * FROM design_conversions WHERE id = $1", conversion_id)
    return dict(row)


async def process_conversion_background(conversion_id: str) -> None:
    """BackgroundTasks entry point; failures are already recorded on the conversion."""
    conn = await get_db_connection()
    try:
        await run_conversion(conn, conversion_id)
    except (ConversionNotFound, InvalidTransition, ConversionFailed) as e:
        log("CONVERSION", f"Background run stopped: {e}", ref=conversion_id)
    finally:
        await conn.close()
