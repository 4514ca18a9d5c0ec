"""Statements that derive 15-minute refined rows from raw observations.

The refined table is partitioned like the raw table (year/month/day/hour)
and holds one row per 15-minute window:

* mean of wind direction, average wind, pressure, air temperature, relative
  humidity, UV and solar radiation;
* max of wind gust;
* sum of rain accumulation;
* the number of raw samples in the window.

All statements are idempotent or guarded: the DDL is ``IF NOT EXISTS`` and
inserts are only issued after a zero row count for the date.
"""

from __future__ import annotations

from observation_backfill.models.work_item import DateItem
from observation_backfill.sql.dialect import DATE_FORMAT_TOKENS, Dialect
from observation_backfill.sql.guard import validate_identifier, validate_location

REFINEMENT_WINDOW_MINUTES = 15


def create_refined_table_query(refined_table: str, refined_location: str) -> str:
    """DDL creating the refined table if it does not exist yet."""
    validate_identifier(refined_table)
    validate_location(refined_location)
    return f"""
    CREATE EXTERNAL TABLE IF NOT EXISTS {refined_table} (
      period_start timestamp,
      winddirection_avg double,
      windavg_avg double,
      windgust_max double,
      pressure_avg double,
      airtemperature_avg double,
      relativehumidity_avg double,
      rainaccumulation_sum double,
      uv_avg double,
      solarradiation_avg double,
      sample_count bigint
    )
    PARTITIONED BY (
      year string,
      month string,
      day string,
      hour string
    )
    STORED AS PARQUET
    LOCATION '{refined_location}'
    TBLPROPERTIES (
      'parquet.compress'='SNAPPY'
    )"""


def existing_rows_for_date_query(refined_table: str, item: DateItem) -> str:
    """Count refined rows already present for one date."""
    validate_identifier(refined_table)
    return f"""
    SELECT CAST(COUNT(1) AS BIGINT) AS refined_rows
    FROM {refined_table}
    WHERE year='{item.year}'
    AND month='{item.month}'
    AND day='{item.day}'"""


def insert_refined_rows_for_date_query(
    raw_table: str,
    refined_table: str,
    item: DateItem,
    dialect: Dialect = Dialect.ATHENA,
) -> str:
    """Aggregate one date of raw readings into 15-minute rows and insert them."""
    validate_identifier(raw_table)
    validate_identifier(refined_table)
    fmt = DATE_FORMAT_TOKENS[dialect]
    window = REFINEMENT_WINDOW_MINUTES
    return f"""
    INSERT INTO {refined_table}
    SELECT
      period_start,
      AVG(winddirection) AS winddirection_avg,
      AVG(windavg) AS windavg_avg,
      MAX(windgust) AS windgust_max,
      AVG(pressure) AS pressure_avg,
      AVG(airtemperature) AS airtemperature_avg,
      AVG(relativehumidity) AS relativehumidity_avg,
      SUM(rainaccumulation) AS rainaccumulation_sum,
      AVG(uv) AS uv_avg,
      AVG(solarradiation) AS solarradiation_avg,
      CAST(COUNT(1) AS BIGINT) AS sample_count,
      DATE_FORMAT(period_start, '{fmt["year"]}') AS year,
      DATE_FORMAT(period_start, '{fmt["month"]}') AS month,
      DATE_FORMAT(period_start, '{fmt["day"]}') AS day,
      DATE_FORMAT(period_start, '{fmt["hour"]}') AS hour
    FROM (
      SELECT
        DATE_TRUNC('hour', FROM_UNIXTIME(datetime))
          + INTERVAL '{window}' MINUTE * CAST(FLOOR(MINUTE(FROM_UNIXTIME(datetime)) / {window}) AS INTEGER) AS period_start,
        winddirection,
        windavg,
        windgust,
        pressure,
        airtemperature,
        relativehumidity,
        rainaccumulation,
        uv,
        solarradiation
      FROM {raw_table}
      WHERE year='{item.year}'
      AND month='{item.month}'
      AND day='{item.day}'
    ) source
    GROUP BY period_start"""
