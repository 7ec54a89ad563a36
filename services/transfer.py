"""Copy sensor records between MongoDB collections for a date range."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from pymongo import UpdateOne
from pymongo.collection import Collection
from pymongo.errors import BulkWriteError, PyMongoError

from errors import QueryError, TransferError
from models.records import DateRange
from models.schemas import TransferResult, TransferStrategy

logger = logging.getLogger(__name__)


def build_upsert_requests(records: List[Mapping[str, Any]]) -> List[UpdateOne]:
    """One upsert per record, matched on the record's own ``_id``."""
    return [
        UpdateOne({"_id": record["_id"]}, {"$set": dict(record)}, upsert=True)
        for record in records
    ]


class RangeTransfer:
    """Selects records in a date range from one collection and writes them to another."""

    def __init__(self, source: Collection, destination: Collection) -> None:
        self.source = source
        self.destination = destination

    def fetch(self, date_range: DateRange) -> List[Mapping[str, Any]]:
        try:
            return list(self.source.find(date_range.as_filter()))
        except PyMongoError as exc:
            raise QueryError(f"Failed to read records from source: {exc}") from exc

    def run(
        self,
        date_range: DateRange,
        strategy: TransferStrategy = TransferStrategy.upsert,
    ) -> TransferResult:
        records = self.fetch(date_range)
        if not records:
            logger.info(
                "No records found in range",
                extra={"start": date_range.start, "end": date_range.end},
            )
            return TransferResult(strategy=strategy, matched=0, written=0)

        if strategy is TransferStrategy.insert:
            written = self._insert(records)
        else:
            written = self._upsert(records)

        logger.info(
            "Successfully transferred %d records",
            len(records),
            extra={
                "strategy": strategy,
                "record_count": len(records),
                "start": date_range.start,
                "end": date_range.end,
            },
        )
        return TransferResult(strategy=strategy, matched=len(records), written=written)

    def _insert(self, records: List[Mapping[str, Any]]) -> int:
        try:
            result = self.destination.insert_many(records)
        except BulkWriteError as exc:
            raise self._bulk_failure(exc) from exc
        except PyMongoError as exc:
            raise TransferError(f"Failed to insert records: {exc}") from exc
        return len(result.inserted_ids)

    def _upsert(self, records: List[Mapping[str, Any]]) -> int:
        requests = build_upsert_requests(records)
        try:
            result = self.destination.bulk_write(requests, ordered=False)
        except BulkWriteError as exc:
            raise self._bulk_failure(exc) from exc
        except PyMongoError as exc:
            raise TransferError(f"Failed to upsert records: {exc}") from exc
        return result.upserted_count + result.matched_count

    @staticmethod
    def _bulk_failure(exc: BulkWriteError) -> TransferError:
        write_errors = exc.details.get("writeErrors", [])
        failed = len(write_errors)
        first = write_errors[0].get("errmsg", "unknown error") if write_errors else str(exc)
        logger.error("Bulk write reported failures", extra={"failed_count": failed})
        return TransferError(
            f"{failed} record(s) failed to transfer; first error: {first}",
            failed_count=failed,
        )
