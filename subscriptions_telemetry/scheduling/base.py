"""Abstract interface for recurring background jobs."""

from abc import ABC, abstractmethod
from typing import Sequence


class Scheduler(ABC):
    """
    Registers recurring jobs with a background runner.

    A unique registration is register-or-no-op: while a job for the same
    hook exists, registering it again changes nothing.
    """

    @abstractmethod
    def register(
        self,
        initial_delay: int,
        interval: int,
        hook: str,
        args: Sequence = (),
        group: str = "",
        unique: bool = True,
    ) -> bool:
        """
        Register a recurring job.

        Args:
            initial_delay: Seconds before the first run
            interval: Seconds between runs
            hook: Name of the job handler
            args: Positional arguments passed to the handler
            group: Label grouping related jobs
            unique: Skip registration if a job for `hook` already exists

        Returns:
            True if a new job was registered, False if it already existed

        Raises:
            SchedulerError: If the job cannot be registered
        """
        pass
