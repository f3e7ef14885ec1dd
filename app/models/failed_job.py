"""Dead-letter record for worker jobs that raised."""

from datetime import datetime

from beanie import Document
from pydantic import Field


class FailedJob(Document):
    job_name: str
    job_id: str
    error_type: str = ""
    reason: str = ""
    failed_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "failed_jobs"
        indexes = [[("failed_at", -1)]]
