class NexusQueueError(Exception):
    """Base class for job-queue errors."""

class SubmissionError(NexusQueueError, ValueError):
    """Rejected task submission (unknown task, bad payload). No job is created."""

class UnknownTaskError(NexusQueueError, KeyError):
    def __init__(self, task):
        super().__init__(task)
        self.task = task

    def __str__(self) -> str:
        return f"Unknown task: {self.task}"

class InvalidTransition(NexusQueueError):
    def __init__(self, job_id: str, current: str, target: str):
        super().__init__(f"job {job_id}: cannot move from {current} to {target}")
        self.job_id = job_id
        self.current = current
        self.target = target

class StoreError(NexusQueueError):
    """Job store or queue backend is unavailable."""
