from typing import Any

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator

from .models import TaskName

class JobSubmit(BaseModel):
    task: str = Field(min_length=1, max_length=64)
    payload: dict[str, Any]

class JobAccepted(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")

class JobStatusOut(BaseModel):
    status: str
    result: str | None = None
    error: str | None = None

class WorkerRunOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    processed: bool
    job_id: str | None = Field(default=None, alias="jobId")
    status: str | None = None
    recovered: list[str] = Field(default_factory=list)

# Per-task payload checks. Only the fields the handler cannot do without are
# required; everything else is passed through untouched.

class StrategicReportPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    region: str = Field(min_length=1)

class OutreachLetterPayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    report_content: str = Field(alias="reportContent", min_length=1)
    user_details: dict[str, Any] = Field(alias="userDetails")

class ReverseNexusSearchPayload(RootModel[dict[str, Any]]):
    @field_validator("root")
    @classmethod
    def not_empty(cls, v):
        if not v:
            raise ValueError("search query must not be empty")
        return v

PAYLOAD_MODELS: dict[TaskName, type[BaseModel]] = {
    TaskName.generate_strategic_report: StrategicReportPayload,
    TaskName.generate_outreach_letter: OutreachLetterPayload,
    TaskName.reverse_nexus_search: ReverseNexusSearchPayload,
}
