"""
Simulation Scheduler - auto-progresses a parcel through a delivery scenario

A run is an asyncio task that sleeps for the speed's delay, applies the next
status of its scenario, and repeats until the scenario is exhausted. Runs
keep no state outside the process; a restart silently drops them.
"""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from mock_agency.core.exceptions import AppException, SimulationConflictError
from mock_agency.core.logging import get_logger
from mock_agency.domain.services.parcel_service import ParcelService
from mock_agency.state_machine.states import ParcelStatus

logger = get_logger(__name__)

DEFAULT_SPEED = "normal"
DEFAULT_SCENARIO = "default"
FAILED_SCENARIO = "failed"

SCENARIOS: dict[str, tuple[ParcelStatus, ...]] = {
    DEFAULT_SCENARIO: (
        ParcelStatus.COLLECTED,
        ParcelStatus.IN_TRANSIT,
        ParcelStatus.OUT_FOR_DELIVERY,
        ParcelStatus.DELIVERED,
        ParcelStatus.COMPLETED,
    ),
    FAILED_SCENARIO: (
        ParcelStatus.COLLECTED,
        ParcelStatus.IN_TRANSIT,
        ParcelStatus.OUT_FOR_DELIVERY,
        ParcelStatus.FAILED_DELIVERY,
        ParcelStatus.RETURNED,
    ),
}

DEFAULT_DELAYS = {"fast": 2.0, "normal": 5.0, "slow": 10.0}


@dataclass
class SimulationRun:
    """A single scheduled progression; ``run_id`` is its cancellation token"""
    run_id: str
    tracking_number: str
    speed: str
    scenario: str
    delay_seconds: float
    statuses: tuple[ParcelStatus, ...]
    started_at: datetime
    applied: int = 0
    stopped: bool = False
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def estimated_seconds(self) -> float:
        return len(self.statuses) * self.delay_seconds

    @property
    def done(self) -> bool:
        return self.stopped or self.task is None or self.task.done()

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "tracking_number": self.tracking_number,
            "speed": self.speed,
            "scenario": self.scenario,
            "delay_seconds": self.delay_seconds,
            "steps_applied": self.applied,
            "steps_total": len(self.statuses),
        }


class SimulationScheduler:
    """
    Starts and stops simulation runs.

    Overlap policy for a parcel that already has a live run:
    - ``allow``: start another run; both apply their statuses as they fire
    - ``reject``: raise SimulationConflictError
    - ``replace``: stop the existing runs first
    """

    def __init__(
        self,
        service: ParcelService,
        delays: Optional[dict[str, float]] = None,
        overlap_policy: str = "allow",
    ):
        self.service = service
        self.delays = dict(delays or DEFAULT_DELAYS)
        self.overlap_policy = overlap_policy
        self._runs: dict[str, SimulationRun] = {}

    def resolve_speed(self, speed: Optional[str]) -> tuple[str, float]:
        """Unknown or missing speeds fall back to normal"""
        if speed in self.delays:
            return speed, self.delays[speed]
        return DEFAULT_SPEED, self.delays[DEFAULT_SPEED]

    @staticmethod
    def resolve_scenario(scenario: Optional[str]) -> str:
        return FAILED_SCENARIO if scenario == FAILED_SCENARIO else DEFAULT_SCENARIO

    def start(
        self,
        tracking_number: str,
        speed: Optional[str] = None,
        scenario: Optional[str] = None,
    ) -> SimulationRun:
        """
        Schedule a run and return at once.

        Raises:
            ParcelNotFoundError: unknown tracking number
            SimulationConflictError: overlap policy is ``reject`` and a run is live
        """
        self.service.get_parcel(tracking_number)

        active = self.active_runs(tracking_number)
        if active:
            if self.overlap_policy == "reject":
                raise SimulationConflictError(tracking_number, [run.run_id for run in active])
            if self.overlap_policy == "replace":
                self.stop_parcel(tracking_number)

        speed_name, delay = self.resolve_speed(speed)
        scenario_name = self.resolve_scenario(scenario)
        run = SimulationRun(
            run_id=uuid.uuid4().hex[:12],
            tracking_number=tracking_number,
            speed=speed_name,
            scenario=scenario_name,
            delay_seconds=delay,
            statuses=SCENARIOS[scenario_name],
            started_at=datetime.now(timezone.utc),
        )
        run.task = asyncio.get_running_loop().create_task(self._run(run))
        self._runs[run.run_id] = run
        run.task.add_done_callback(lambda _: self._runs.pop(run.run_id, None))

        logger.info(
            f"Simulation started for {tracking_number}",
            extra_data={**run.to_dict(), "overlapping_runs": len(active)},
        )
        return run

    async def _run(self, run: SimulationRun) -> None:
        try:
            for status in run.statuses:
                await asyncio.sleep(run.delay_seconds)
                self.service.update_status(
                    run.tracking_number, status, note=f"Auto-simulated: {status.value}"
                )
                run.applied += 1
        except asyncio.CancelledError:
            logger.info(
                f"Simulation stopped for {run.tracking_number}",
                extra_data=run.to_dict(),
            )
            raise
        except AppException as e:
            # למשל מעבר לא חוקי במצב STRICT_TRANSITIONS, הריצה נעצרת בשקט
            logger.warning(
                f"Simulation aborted for {run.tracking_number}: {e.message}",
                extra_data={**run.to_dict(), "error_code": e.error_code.value},
            )
            return
        except Exception as e:
            # the task is never awaited, so the error must be logged here
            logger.error(
                f"Simulation aborted for {run.tracking_number}: unexpected error",
                extra_data={**run.to_dict(), "error": str(e)},
                exc_info=True,
            )
            return

        logger.info(
            f"Simulation finished for {run.tracking_number}",
            extra_data=run.to_dict(),
        )

    def active_runs(self, tracking_number: Optional[str] = None) -> list[SimulationRun]:
        return [
            run for run in self._runs.values()
            if not run.done and (tracking_number is None or run.tracking_number == tracking_number)
        ]

    def get_run(self, run_id: str) -> Optional[SimulationRun]:
        return self._runs.get(run_id)

    def stop(self, run_id: str) -> bool:
        """Cancel one run; False when it is unknown or already finished"""
        run = self._runs.get(run_id)
        if run is None or run.done:
            return False
        run.stopped = True
        run.task.cancel()
        return True

    def stop_parcel(self, tracking_number: str) -> int:
        """Cancel every live run for a parcel and return how many were stopped"""
        return sum(self.stop(run.run_id) for run in self.active_runs(tracking_number))

    async def shutdown(self) -> None:
        """Cancel all runs and wait for them to unwind"""
        tasks = [run.task for run in self._runs.values() if run.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._runs.clear()
