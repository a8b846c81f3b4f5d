"""Build contracts: todo items, generated files, progress, and iteration history."""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from enum import Enum
from datetime import datetime


class TodoStatus(str, Enum):
    """Lifecycle of a todo item. Moves forward only."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


class BuildPhase(str, Enum):
    """Coarse phase of the build shown alongside progress."""
    SETUP = "setup"
    COMPONENTS = "components"
    PAGES = "pages"
    FEATURES = "features"
    API = "api"
    TESTING = "testing"
    COMPLETE = "complete"


class BuildState(str, Enum):
    """Orchestrator state machine."""
    VERIFYING_PAYMENT = "verifying-payment"
    BUILDING = "building"
    TESTING = "testing"
    SYNCING = "syncing"
    COMPLETE = "complete"
    ERROR = "error"


class LogSeverity(str, Enum):
    """Severity tag of a build log entry."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class TestResult(BaseModel):
    """Outcome of one validation pass over the accumulated file set."""
    __test__ = False  # not a pytest test class

    passed: bool = Field(..., description="True iff errors is empty")
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    tested_at: datetime = Field(default_factory=datetime.now)
    syntax_errors: List[str] = Field(default_factory=list)
    missing_imports: List[str] = Field(default_factory=list)
    placeholders: List[str] = Field(default_factory=list)


class TestOptions(BaseModel):
    """Toggles for the individual validation checks."""
    __test__ = False

    check_syntax: bool = True
    check_imports: bool = True
    check_placeholders: bool = True
    check_required_files: bool = True


class TodoItem(BaseModel):
    """A planned unit of work mapped to a target iteration."""
    id: str = Field(..., description="Stable id, unique per task kind")
    task: str = Field(..., description="Human-readable description")
    status: TodoStatus = Field(default=TodoStatus.PENDING)
    target_iteration: int = Field(..., ge=1)
    test_result: Optional[TestResult] = None


class GeneratedFile(BaseModel):
    """A single generated source file. Identity is its path."""
    path: str = Field(..., description="Sanitized relative path")
    content: str = Field(..., description="Full file text")
    language: str = Field(default="text", description="Derived from extension")
    iteration: Optional[int] = Field(None, description="Iteration that produced this content")


class TodoUpdate(BaseModel):
    """Model-reported status change for a todo item."""
    id: str
    status: str


class ProgressUpdate(BaseModel):
    """Structured progress block emitted after the file blocks of an iteration."""
    iteration: int = 0
    files_created: List[str] = Field(default_factory=list, alias="filesCreated")
    summary: str = "Iteration completed"
    next_steps: List[str] = Field(default_factory=list, alias="nextSteps")
    todo_updates: List[TodoUpdate] = Field(default_factory=list, alias="todoUpdates")
    prd_addendum: Optional[str] = Field(None, alias="prdAddendum")
    errors: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class BuildProgress(BaseModel):
    """Progress snapshot carried in the build context."""
    current_iteration: int = 0
    total_iterations: int = Field(..., ge=1)
    phase: BuildPhase = BuildPhase.SETUP
    completed_tasks: List[str] = Field(default_factory=list)
    current_task: str = ""
    files_generated: int = 0
    lines_of_code: int = 0
    percent: float = 0.0
    last_test_result: Optional[TestResult] = None
    last_commit_sha: Optional[str] = None
    last_synced_at: Optional[datetime] = None


class IterationResult(BaseModel):
    """Immutable record of a completed iteration."""
    iteration: int = Field(..., ge=1)
    files_created: List[str] = Field(default_factory=list)
    files_updated: List[str] = Field(default_factory=list)
    test_result: Optional[TestResult] = None
    summary: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)

    model_config = {"frozen": True}


class BuildContext(BaseModel):
    """Everything the next iteration's prompt is built from."""
    requirements: str = Field(..., description="Requirements document; amended append-only")
    todo_list: List[TodoItem] = Field(default_factory=list)
    progress: BuildProgress
    iteration_history: List[IterationResult] = Field(default_factory=list)

    def todo_for_iteration(self, iteration: int) -> Optional[TodoItem]:
        """First pending todo planned for the given iteration."""
        for item in self.todo_list:
            if item.target_iteration == iteration and item.status == TodoStatus.PENDING:
                return item
        return None

    def get_todo(self, todo_id: str) -> Optional[TodoItem]:
        for item in self.todo_list:
            if item.id == todo_id:
                return item
        return None


class BuildLogEntry(BaseModel):
    """One user-visible build log line."""
    iteration: int = 0
    message: str
    severity: LogSeverity = LogSeverity.INFO
    timestamp: datetime = Field(default_factory=datetime.now)


class BuildSnapshot(BaseModel):
    """Immutable view emitted to observers after each stage transition."""
    build_id: str
    state: BuildState
    progress: BuildProgress
    todo_list: List[TodoItem] = Field(default_factory=list)
    current_file: str = ""
    file_count: int = 0
    last_log: Optional[BuildLogEntry] = None

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Result of pushing the file set to source control."""
    commit_sha: str
    commit_url: Optional[str] = None


class BuildResult(BaseModel):
    """Final report of a build run. Always produced, even on partial failure."""
    build_id: str
    state: BuildState
    files: List[GeneratedFile] = Field(default_factory=list)
    context: Optional[BuildContext] = None
    log: List[BuildLogEntry] = Field(default_factory=list)
    fatal_error: Optional[str] = None
    failed_iterations: List[int] = Field(default_factory=list)
    cost_manifest: Dict = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
