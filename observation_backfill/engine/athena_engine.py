"""Amazon Athena query engine adapter.

Submits statements with server-side encrypted, bucket-owner-controlled
result files and result reuse disabled (every statement must observe the
current table contents, since idempotency checks depend on fresh counts).
"""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.exceptions import ClientError

from observation_backfill.errors import ExecutionNotFoundError
from observation_backfill.models.query import QueryContext, QueryState, ResultPage
from observation_backfill.sql.dialect import Dialect

logger = logging.getLogger(__name__)

_STATE_MAP: dict[str, QueryState] = {
    "QUEUED": QueryState.QUEUED,
    "RUNNING": QueryState.RUNNING,
    "SUCCEEDED": QueryState.SUCCEEDED,
    "FAILED": QueryState.FAILED,
    "CANCELLED": QueryState.CANCELLED,
}

_NOT_FOUND_CODES = frozenset({"InvalidRequestException", "ResourceNotFoundException"})


class AthenaQueryEngine:
    """Run statements on Athena through boto3.

    Parameters
    ----------
    region:
        AWS region of the Athena workgroup.
    catalog:
        Data catalog name used in the query execution context.
    client:
        Pre-built ``boto3`` Athena client.  Built from *region* when omitted.
    """

    dialect = Dialect.ATHENA

    def __init__(
        self,
        region: str = "eu-west-2",
        catalog: str = "AwsDataCatalog",
        client: Any | None = None,
    ) -> None:
        self._client = client or boto3.client("athena", region_name=region)
        self._catalog = catalog

    def start_query(self, sql: str, context: QueryContext) -> str | None:
        response = self._client.start_query_execution(
            QueryString=sql,
            QueryExecutionContext={
                "Database": context.database,
                "Catalog": self._catalog,
            },
            ResultConfiguration={
                "OutputLocation": context.output_location,
                "EncryptionConfiguration": {"EncryptionOption": "SSE_S3"},
                "AclConfiguration": {"S3AclOption": "BUCKET_OWNER_FULL_CONTROL"},
            },
            WorkGroup=context.workgroup,
            ResultReuseConfiguration={
                "ResultReuseByAgeConfiguration": {"Enabled": False},
            },
        )
        return response.get("QueryExecutionId")

    def get_execution_state(self, execution_id: str) -> QueryState:
        response = self._client.get_query_execution(QueryExecutionId=execution_id)
        execution = response.get("QueryExecution")
        if not execution:
            raise ExecutionNotFoundError(f"Query execution not found: {execution_id}")
        status = execution.get("Status")
        if not status or not status.get("State"):
            raise ExecutionNotFoundError(f"Query execution status not found: {execution_id}")
        return _STATE_MAP.get(status["State"], QueryState.RUNNING)

    def cancel_query(self, execution_id: str) -> None:
        self._client.stop_query_execution(QueryExecutionId=execution_id)

    def get_result_rows(self, execution_id: str, page_token: str | None = None) -> ResultPage | None:
        kwargs: dict[str, Any] = {"QueryExecutionId": execution_id}
        if page_token:
            kwargs["NextToken"] = page_token
        try:
            response = self._client.get_query_results(**kwargs)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                logger.warning("No results for query %s: %s", execution_id, exc)
                return None
            raise

        raw_rows = response.get("ResultSet", {}).get("Rows", [])
        rows = [[cell.get("VarCharValue") for cell in row.get("Data", [])] for row in raw_rows]
        # Athena repeats the column header as the first row of the first page.
        if page_token is None and rows:
            rows = rows[1:]
        return ResultPage(rows=rows, next_page_token=response.get("NextToken"))
