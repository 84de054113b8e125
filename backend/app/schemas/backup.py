# app/schemas/backup.py
from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional


class CollectionResult(BaseModel):
    collection: str
    label: str
    records: int = 0
    csv_text: str = ""
    error: Optional[str] = None


class BackupFile(BaseModel):
    name: str
    path: str
    collection: str  # nom de collection ou "summary"
    size: int = 0


class BackupRun(BaseModel):
    timestamp: str
    backup_dir: Optional[str] = None
    results: Dict[str, CollectionResult] = Field(default_factory=dict)
    files: List[BackupFile] = Field(default_factory=list)
    summary: Optional[str] = None
    success: bool = True
    error: Optional[str] = None

    def failed_collections(self) -> List[str]:
        return [name for name, result in self.results.items() if result.error]


class DeliveryResult(BaseModel):
    delivered: bool
    message: Optional[str] = None
    error: Optional[str] = None


class RetentionResult(BaseModel):
    deleted_count: int = 0
    errors: List[str] = Field(default_factory=list)


class PipelineResult(BaseModel):
    run: BackupRun
    deleted_count: Optional[int] = None  # None quand le nettoyage n'a pas tourné
    cleanup_errors: List[str] = Field(default_factory=list)
    delivery: Optional[DeliveryResult] = None


class BackupRunSummary(BaseModel):
    """Vue allégée d'une exécution, sans le contenu CSV."""
    timestamp: str
    success: bool
    error: Optional[str] = None
    backup_dir: Optional[str] = None
    files_created: int = 0
    files: List[BackupFile] = Field(default_factory=list)
    failed_collections: List[str] = Field(default_factory=list)
    records: Dict[str, int] = Field(default_factory=dict)
    deleted_count: Optional[int] = None
    cleanup_errors: List[str] = Field(default_factory=list)
    delivery: Optional[DeliveryResult] = None

    @classmethod
    def from_result(cls, result: PipelineResult) -> "BackupRunSummary":
        run = result.run
        return cls(
            timestamp=run.timestamp,
            success=run.success,
            error=run.error,
            backup_dir=run.backup_dir,
            files_created=len(run.files),
            files=run.files,
            failed_collections=run.failed_collections(),
            records={name: r.records for name, r in run.results.items()},
            deleted_count=result.deleted_count,
            cleanup_errors=result.cleanup_errors,
            delivery=result.delivery,
        )


class SchedulerStatus(BaseModel):
    is_running: bool
    next_run_at: Optional[str] = None
    schedule_description: str
    cron_expression: str
    timezone: str
    run_in_progress: bool = False
    last_run: Optional[BackupRunSummary] = None
    last_error: Optional[str] = None


class ConfigValidation(BaseModel):
    valid: bool
    message: Optional[str] = None
    error: Optional[str] = None


class SchedulerInfo(BaseModel):
    status: SchedulerStatus
    configuration: Dict[str, str]
    next_execution: str
    validation: ConfigValidation


class ControlRequest(BaseModel):
    action: Literal["start", "stop", "restart", "manual-backup"]


class RunRequest(BaseModel):
    send_email: bool = True
    clean_old: bool = True
