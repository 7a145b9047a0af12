"""A LIFO stack of cleanup jobs."""

from __future__ import annotations

from typing import Callable

CleanJob = Callable[[], None]


class MultiError(Exception):
    """Several errors gathered together."""

    def __init__(self, errors: list[BaseException]) -> None:
        self.errors = list(errors)
        super().__init__(self._describe())

    def _describe(self) -> str:
        points = "\n\t".join(f"* {err}" for err in self.errors)
        noun = "error" if len(self.errors) == 1 else "errors"
        return f"{len(self.errors)} {noun} occurred:\n\t{points}\n\n"


class CleanStack:
    """Cleanup jobs run in last-in, first-out order."""

    def __init__(self) -> None:
        self._jobs: list[CleanJob] = []

    def __len__(self) -> int:
        return len(self._jobs)

    def push(self, job: CleanJob) -> None:
        self._jobs.append(job)

    def pop(self) -> CleanJob | None:
        """Remove and return the latest job, or None if the stack is empty."""
        return self._jobs.pop() if self._jobs else None

    def cleanup(self, error: BaseException | None = None) -> None:
        """Run every job; raise a MultiError holding the given error and all job failures."""
        errors: list[BaseException] = [error] if error is not None else []
        while self._jobs:
            job = self._jobs.pop()
            try:
                job()
            except Exception as exc:  # every job gets its chance to run
                errors.append(exc)
        if errors:
            raise MultiError(errors)