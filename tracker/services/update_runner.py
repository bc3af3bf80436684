"""
Update Runner - one batch of player tracking updates

Lists every tracked player, then for each one (under a global concurrency
limit) decides whether a fresh sample is due, fetches it, decides whether to
store it and appends the snapshot. Every unit settles into a PlayerOutcome;
no single player's failure can abort the batch. Once all units have settled
the outcomes are reduced into RunMetrics and checked against the
success-rate gate.

States: IDLE -> LISTING -> PROCESSING -> REPORTING -> SUCCEEDED | FAILED
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Optional

from tracker.config import Config
from tracker.constants import RunConstants
from tracker.data_models.run_metrics import NewPlayer, PlayerOutcome, RunMetrics, UpdateStatus
from tracker.data_models.snapshot import PlayerNotFound
from tracker.operations.update_decision import UpdateDecisionPolicy
from tracker.services.hiscores_client import HiscoresClient
from tracker.utils.exceptions import StoreError, TrackerException
from tracker.utils.logger import setup_logger

logger = setup_logger(__name__)


class RunState(Enum):
    IDLE = "idle"
    LISTING = "listing"
    PROCESSING = "processing"
    REPORTING = "reporting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class RunReport:
    state: RunState
    metrics: RunMetrics
    error: Optional[str] = None
    
    @property
    def exit_code(self) -> int:
        if self.state is RunState.SUCCEEDED:
            return RunConstants.EXIT_SUCCESS
        return RunConstants.EXIT_FAILURE


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UpdateRunner:
    """Runs one batch of player updates."""
    
    def __init__(
        self,
        store,
        client: HiscoresClient,
        policy: Optional[UpdateDecisionPolicy] = None,
        concurrency: Optional[int] = None,
        success_rate_threshold: Optional[float] = None,
        dry_run: bool = False,
        stop_event: Optional[asyncio.Event] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            store: Snapshot store (latest_snapshots, insert_snapshot, list_distinct_usernames)
            client: Hiscores client, already entered
            policy: Update decision policy
            concurrency: Maximum number of players processed at once
            success_rate_threshold: Minimum success rate for the run to pass
            dry_run: Decide and fetch but never insert
            stop_event: Set to stop starting new units; running ones finish
            clock: Returns the current time
        """
        self.store = store
        self.client = client
        self.policy = policy or UpdateDecisionPolicy()
        self.concurrency = concurrency if concurrency is not None else Config.UPDATE_CONCURRENCY
        self.success_rate_threshold = (
            success_rate_threshold if success_rate_threshold is not None
            else Config.SUCCESS_RATE_THRESHOLD
        )
        self.dry_run = dry_run
        self.stop_event = stop_event or asyncio.Event()
        self.clock = clock
        self.state = RunState.IDLE
        
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
    
    async def run(self, only_usernames: Optional[Iterable[str]] = None) -> RunReport:
        """
        Run the batch.
        
        Args:
            only_usernames: Restrict the run to these tracked players (case-insensitive)
            
        Returns:
            RunReport with the terminal state and final metrics
        """
        started_at = self.clock()
        logger.info(f"Starting player update run at {started_at.isoformat()}")
        
        self.state = RunState.LISTING
        try:
            usernames = await self.store.list_distinct_usernames()
        except StoreError as e:
            logger.error(f"Could not list tracked players: {e}")
            self.state = RunState.FAILED
            metrics = RunMetrics(started_at=started_at, finished_at=self.clock())
            return RunReport(self.state, metrics, error=str(e))
        
        if only_usernames is not None:
            wanted = {name.lower() for name in only_usernames}
            usernames = [name for name in usernames if name.lower() in wanted]
        
        logger.info(f"Found {len(usernames)} players to update")
        
        self.state = RunState.PROCESSING
        outcomes = await self._process_all(usernames)
        
        self.state = RunState.REPORTING
        metrics = RunMetrics.from_outcomes(len(usernames), outcomes)
        metrics.started_at = started_at
        metrics.finished_at = self.clock()
        self._log_metrics(metrics)
        
        if metrics.passes_gate(self.success_rate_threshold):
            self.state = RunState.SUCCEEDED
            return RunReport(self.state, metrics)
        
        error = (
            f"Success rate too low: {metrics.success_rate * 100:.1f}% "
            f"(threshold {self.success_rate_threshold * 100:.1f}%)"
        )
        logger.error(error)
        self.state = RunState.FAILED
        return RunReport(self.state, metrics, error=error)
    
    async def _process_all(self, usernames: List[str]) -> List[PlayerOutcome]:
        """Process every player and wait for all of them to settle."""
        semaphore = asyncio.Semaphore(self.concurrency)
        outcomes: List[PlayerOutcome] = []  # Completion order
        
        async def limited(username: str) -> None:
            async with semaphore:
                outcome = await self._process_player_safely(username)
            outcomes.append(outcome)
        
        await asyncio.gather(*(limited(username) for username in usernames))
        return outcomes
    
    async def _process_player_safely(self, username: str) -> PlayerOutcome:
        if self.stop_event.is_set():
            logger.info(f"Run stopping, not processing {username}")
            return PlayerOutcome(username, UpdateStatus.CANCELLED)
        
        try:
            return await self.process_player(username)
        except TrackerException as e:
            logger.error(f"Failed to update {username}: {type(e).__name__}: {e}")
            return PlayerOutcome(username, UpdateStatus.FAILED, reason=str(e))
        except Exception as e:
            logger.error(f"Unexpected error processing {username}: {e}", exc_info=True)
            return PlayerOutcome(username, UpdateStatus.FAILED, reason=f"{type(e).__name__}: {e}")
    
    async def process_player(self, username: str) -> PlayerOutcome:
        """
        Update a single player.
        
        The schedule checks run before any upstream request, so a player
        that was sampled recently or looks inactive is never fetched.
        """
        history = await self.store.latest_snapshots(username, RunConstants.HISTORY_DEPTH)
        previous = history[0] if history else None
        previous_previous = history[1] if len(history) > 1 else None
        
        skip = self.policy.check_schedule(previous, previous_previous, self.clock())
        if skip is not None:
            logger.info(f"Skipping {username}: {skip.action.value}")
            return PlayerOutcome(username, UpdateStatus.SKIPPED, reason=skip.action.value)
        
        logger.info(f"Processing player: {username}")
        result = await self.client.fetch_stats(username)
        if isinstance(result, PlayerNotFound):
            logger.warning(f"Player not found upstream: {username}")
            return PlayerOutcome(username, UpdateStatus.NOT_FOUND, reason="not found upstream")
        
        decision = self.policy.decide(previous, previous_previous, result, self.clock())
        if decision.xp_regression:
            logger.warning(f"{username} reports less Overall XP than the stored snapshot, not storing")
        if decision.is_skip:
            logger.info(f"Skipping {username}: {decision.action.value}")
            return PlayerOutcome(username, UpdateStatus.SKIPPED, reason=decision.action.value)
        
        if self.dry_run:
            observed_at = self.clock()
            logger.info(f"[dry run] Would store snapshot for {username} (+{decision.xp_gained:,} XP)")
        else:
            snapshot = await self.store.insert_snapshot(username, result)
            observed_at = snapshot.created_at
            logger.info(f"Successfully updated {username} (+{decision.xp_gained:,} XP)")
        
        new_player = None
        if decision.is_new_player:
            logger.info(f"Now tracking new player: {username}")
            new_player = NewPlayer(username=username, stats=result, observed_at=observed_at)
        
        return PlayerOutcome(
            username,
            UpdateStatus.UPDATED,
            xp_gained=decision.xp_gained,
            new_player=new_player,
        )
    
    @staticmethod
    def _log_metrics(metrics: RunMetrics) -> None:
        logger.info("Update complete!")
        logger.info("Metrics:")
        logger.info(f"- Duration: {metrics.duration_seconds:.1f}s")
        logger.info(f"- Total players: {metrics.total_players}")
        logger.info(f"- Successful updates: {metrics.successful_updates}")
        logger.info(f"- Failed updates: {metrics.failed_updates} ({metrics.not_found_players} not found)")
        logger.info(f"- Skipped players: {metrics.skipped_players}")
        if metrics.cancelled_players:
            logger.info(f"- Cancelled players: {metrics.cancelled_players}")
        logger.info(f"- Total XP gained: {metrics.total_xp_gained:,}")
        logger.info(f"- Success rate: {metrics.success_rate * 100:.1f}%")
        if metrics.most_recent_new_player:
            logger.info(f"- Most recent new player: {metrics.most_recent_new_player.username}")
