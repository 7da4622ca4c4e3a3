"""Send one batch of queue entries to the remote authority."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import requests
from pydantic import ValidationError

from task_sync.core.client import RemoteClient
from task_sync.sync.errors import TransportError
from task_sync.sync.models import (
    BatchSyncRequest,
    BatchSyncResponse,
    Outcome,
    OutcomeStatus,
    QueueEntry,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_TIMEOUT = 8.0
MISSING_OUTCOME_ERROR = "no outcome returned"


class RemoteDispatcher:
    """Submit batches to ``POST /sync/batch`` and map the per-item results.

    Args:
        client: Remote API client.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self, client: RemoteClient, timeout: float = DEFAULT_BATCH_TIMEOUT
    ) -> None:
        self.client = client
        self.timeout = timeout

    def dispatch(self, batch: Sequence[QueueEntry]) -> dict[str, Outcome]:
        """Dispatch *batch* and return one outcome per submitted entry id.

        Outcomes for ids that were not submitted are dropped.  Submitted
        entries the remote did not answer for get an ``error`` outcome.

        Raises:
            TransportError: On network failure, timeout, non-2xx status or
                a response body that does not match the batch contract.
        """
        request = BatchSyncRequest(items=list(batch), client_timestamp=utc_now())
        try:
            body = self.client.post_batch(
                request.model_dump(mode="json"), timeout=self.timeout
            )
            response = BatchSyncResponse.model_validate(body)
        except requests.RequestException as exc:
            raise TransportError(f"Batch request failed: {exc}") from exc
        except ValidationError as exc:
            raise TransportError(
                f"Malformed batch response: {exc.error_count()} validation error(s)"
            ) from exc
        except ValueError as exc:
            raise TransportError(f"Unparseable batch response: {exc}") from exc

        submitted = {entry.id for entry in batch}
        outcomes: dict[str, Outcome] = {}
        for item in response.processed_items:
            if item.client_id not in submitted:
                logger.warning(
                    "Ignoring outcome for unknown entry %s", item.client_id
                )
                continue
            outcomes[item.client_id] = item.to_outcome()

        for entry in batch:
            if entry.id not in outcomes:
                outcomes[entry.id] = Outcome(
                    status=OutcomeStatus.ERROR, error=MISSING_OUTCOME_ERROR
                )

        logger.debug(
            "Dispatched %d entries, %d outcomes from remote",
            len(batch),
            len(response.processed_items),
        )
        return outcomes
