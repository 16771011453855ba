"""
Pipeline polling
Triggers a blueprint once and follows the pipeline until it finishes or the deadline passes
"""

import logging
import time
from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel
from rich.console import Console

from .. import settings
from ..client import DevLakeClient
from ..exceptions import DevLakeAPIError, PipelineFailedError

logger = logging.getLogger(__name__)
console = Console()

STATUS_COMPLETED = "TASK_COMPLETED"
STATUS_FAILED = "TASK_FAILED"


class PollOutcome(str, Enum):
    STARTED = "started"  # Triggered without waiting
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"


class PollResult(BaseModel):
    pipeline_id: int
    outcome: PollOutcome
    status: str = ""


class PipelinePoller:
    """Triggers a sync and polls GET /pipelines/{id} on a fixed interval.

    ``sleep`` and ``clock`` are injectable so the deadline can be exercised
    without waiting.
    """

    def __init__(
        self,
        client: DevLakeClient,
        interval: float = settings.PIPELINE_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.interval = interval
        self.sleep = sleep
        self.clock = clock

    def trigger_and_poll(
        self,
        blueprint_id: int,
        wait: bool = True,
        timeout: float = settings.PIPELINE_TIMEOUT,
    ) -> PollResult:
        """Trigger the blueprint and, if ``wait``, follow the pipeline.

        A timeout is not an error: the pipeline may still be running remotely.

        Raises:
            DevLakeAPIError: If the trigger call fails.
            PipelineFailedError: If the pipeline reaches TASK_FAILED.
        """
        pipeline = self.client.trigger_blueprint(blueprint_id)
        console.print(f"   Pipeline started (ID: {pipeline.id})")
        if not wait:
            return PollResult(pipeline_id=pipeline.id, outcome=PollOutcome.STARTED)
        return self.poll(pipeline.id, timeout)

    def poll(self, pipeline_id: int, timeout: float = settings.PIPELINE_TIMEOUT) -> PollResult:
        """Poll until a terminal status or until ``timeout`` seconds have passed."""
        console.print("   Monitoring progress...")
        start = self.clock()
        deadline = start + (timeout or settings.PIPELINE_TIMEOUT)
        status = ""

        while True:
            self.sleep(self.interval)
            elapsed = int(self.clock() - start)
            try:
                pipeline = self.client.get_pipeline(pipeline_id)
            except DevLakeAPIError as e:
                logger.warning(f"Could not check pipeline {pipeline_id} status: {e}")
                console.print(f"   [{elapsed}s] Could not check status...")
            else:
                status = pipeline.status
                console.print(
                    f"   [{elapsed}s] Status: {status} | "
                    f"Tasks: {pipeline.finished_tasks}/{pipeline.total_tasks}"
                )
                if status == STATUS_COMPLETED:
                    console.print("\n   [green]✅[/green] Data sync completed!")
                    return PollResult(
                        pipeline_id=pipeline_id, outcome=PollOutcome.COMPLETED, status=status
                    )
                if status == STATUS_FAILED:
                    raise PipelineFailedError(
                        f"Pipeline {pipeline_id} failed; check the DevLake logs",
                        pipeline_id=pipeline_id,
                    )

            if self.clock() >= deadline:
                console.print("\n   ⌛ Monitoring timed out. Pipeline is still running.")
                console.print(f"   Check status: GET /pipelines/{pipeline_id}")
                return PollResult(
                    pipeline_id=pipeline_id, outcome=PollOutcome.TIMED_OUT, status=status
                )
