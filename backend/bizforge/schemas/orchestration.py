"""
Orchestration schemas - requirement input, generation plan, progress events and results
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum

from bizforge.core.config import settings
from bizforge.utils.naming import (
    MAX_APPLICATION_SLUG,
    MIN_APPLICATION_SLUG,
    application_slug_of,
    is_valid_application_slug,
)


class GenerationStage(str, Enum):
    """Pipeline stages of one orchestration run"""
    INITIALIZING = "initializing"
    ANALYZING = "analyzing"
    GENERATING_COMPONENTS = "generating_components"
    GENERATING_API = "generating_api"
    GENERATING_DATABASE = "generating_database"
    INTEGRATING = "integrating"
    TESTING = "testing"
    DEPLOYING = "deploying"
    DOCUMENTING = "documenting"
    COMPLETED = "completed"
    FAILED = "failed"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComponentType(str, Enum):
    FORM = "form"
    DASHBOARD = "dashboard"
    WORKFLOW = "workflow"
    LIST = "list"
    DETAIL = "detail"
    LAYOUT = "layout"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class DeploymentTarget(str, Enum):
    REPLIT = "replit"
    DOCKER = "docker"
    KUBERNETES = "kubernetes"


# ==================== Inputs ====================

class BusinessRequirement(BaseModel):
    """
    Parsed business description. Opaque to the pipeline except for the
    entity lists under extracted_entities (forms, processes, approvals, integrations).
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    original_description: str = ""
    application_name: Optional[str] = None
    extracted_entities: Dict[str, Any] = Field(default_factory=dict)
    parsed_requirements: Dict[str, Any] = Field(default_factory=dict)


class GeneratedApplicationRef(BaseModel):
    """The application record a run generates artifacts for"""
    model_config = ConfigDict(frozen=True, extra="allow")

    id: str = Field(..., min_length=1, max_length=100)
    name: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def deployable_id(cls, v):
        if not is_valid_application_slug(application_slug_of(v)):
            raise ValueError(
                f"must contain {MIN_APPLICATION_SLUG}-{MAX_APPLICATION_SLUG} letters, digits or dashes"
            )
        return v


class OrchestrationOptions(BaseModel):
    """Run options. Omitted fields fall back to the ORCHESTRATION_* settings."""
    model_config = ConfigDict(frozen=True)

    parallel: bool = Field(default_factory=lambda: settings.ORCHESTRATION_PARALLEL)
    max_concurrency: int = Field(default_factory=lambda: settings.ORCHESTRATION_MAX_CONCURRENCY, ge=1)
    retry_on_failure: bool = Field(default_factory=lambda: settings.ORCHESTRATION_RETRY_ON_FAILURE)
    max_retries: int = Field(default_factory=lambda: settings.ORCHESTRATION_MAX_RETRIES, ge=0)
    retry_delay: float = Field(
        default_factory=lambda: settings.ORCHESTRATION_RETRY_DELAY_SECONDS, ge=0,
        description="Fixed delay in seconds between collaborator retries"
    )
    collaborator_timeout: float = Field(
        default_factory=lambda: settings.COLLABORATOR_TIMEOUT_SECONDS, gt=0,
        description="Per-call collaborator timeout in seconds"
    )
    generate_tests: bool = False
    generate_documentation: bool = True
    validate_output: bool = True
    deployment_target: DeploymentTarget = DeploymentTarget.REPLIT
    notification_webhook: Optional[str] = None

    @property
    def max_attempts(self) -> int:
        """Total collaborator invocations allowed per plan item"""
        return 1 + self.max_retries if self.retry_on_failure else 1


# ==================== Generation Plan ====================

class PlanItem(BaseModel):
    """One unit of planned work"""
    model_config = ConfigDict(frozen=True)

    name: str
    complexity: Complexity = Complexity.MEDIUM
    dependencies: List[str] = Field(default_factory=list)
    estimated_time: int = Field(30, ge=0, description="Estimated seconds")


class ComponentPlan(PlanItem):
    type: ComponentType


class ApiEndpointPlan(PlanItem):
    path: str
    method: HttpMethod
    purpose: str = ""
    authentication: bool = True
    validation: bool = False


class SchemaField(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    constraints: List[str] = Field(default_factory=list)


class DatabaseSchemaPlan(PlanItem):
    table_name: str
    relationships: List[str] = Field(default_factory=list)
    fields: List[SchemaField] = Field(default_factory=list)
    indexes: List[str] = Field(default_factory=list)


class WorkflowPlan(PlanItem):
    steps: List[str] = Field(default_factory=list)
    approvals: bool = True
    notifications: bool = True
    integrations: List[str] = Field(default_factory=list)


class IntegrationPlan(PlanItem):
    type: str = "api"  # api | webhook | database | file | email | sms
    authentication: str = "apikey"  # oauth | apikey | basic | none
    data_flow: str = "bidirectional"  # inbound | outbound | bidirectional
    priority: str = "medium"


class ChatbotPlan(PlanItem):
    capabilities: List[str] = Field(default_factory=list)
    integration_points: List[str] = Field(default_factory=list)
    ai_model: str = "claude"
    context_aware: bool = True


class DocumentationPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_guide: bool = True
    api_documentation: bool = True
    developer_guide: bool = True
    deployment_guide: bool = True
    format: str = "markdown"


class DeploymentPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    environment: str = "development"
    url: str = ""
    auto_scaling: bool = False
    monitoring: bool = True
    backup: bool = True


class GenerationPlan(BaseModel):
    """Ordered work for one run. Built once at run start, read-only afterwards."""
    model_config = ConfigDict(frozen=True)

    components: List[ComponentPlan] = Field(default_factory=list)
    api_endpoints: List[ApiEndpointPlan] = Field(default_factory=list)
    database_schemas: List[DatabaseSchemaPlan] = Field(default_factory=list)
    workflows: List[WorkflowPlan] = Field(default_factory=list)
    integrations: List[IntegrationPlan] = Field(default_factory=list)
    chatbots: List[ChatbotPlan] = Field(default_factory=list)
    documentation: DocumentationPlan = Field(default_factory=DocumentationPlan)
    deployment: DeploymentPlan = Field(default_factory=DeploymentPlan)
    estimated_duration: int = 0
    priority_order: List[str] = Field(default_factory=list)

    def items_for(self, group: str) -> List[PlanItem]:
        """Plan items of one priority group ("database", "api", ...)"""
        return {
            "database": self.database_schemas,
            "api": self.api_endpoints,
            "components": self.components,
            "workflows": self.workflows,
            "integrations": self.integrations,
            "chatbots": self.chatbots,
        }.get(group, [])

    def ordered_items(self) -> List[PlanItem]:
        """All plan items flattened in priority order"""
        items: List[PlanItem] = []
        for group in self.priority_order:
            items.extend(self.items_for(group))
        return items

    @property
    def total_items(self) -> int:
        return len(self.ordered_items())


# ==================== Progress ====================

class ProgressDetails(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    total_steps: int
    current_step: int
    step_description: Optional[str] = None


class GenerationProgress(BaseModel):
    """A progress event. Never mutated after emission."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    stage: GenerationStage
    progress: int = Field(..., ge=0, le=100)
    message: str
    current_component: Optional[str] = None
    errors: Optional[List[str]] = None
    details: Optional[ProgressDetails] = None
    estimated_time_remaining: Optional[int] = None  # seconds
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    def to_message(self, job_id: str) -> Dict[str, Any]:
        """Push-channel envelope"""
        return {
            "type": "generation_progress",
            "job_id": job_id,
            "data": self.model_dump(mode="json", by_alias=True, exclude_none=True),
        }


# ==================== Results ====================

ARTIFACT_CATEGORIES = (
    "components",
    "api_endpoints",
    "database_schema",
    "integrations",
    "workflows",
    "chatbots",
    "visual_assets",
    "tests",
    "documentation",
)


class GeneratedCode(BaseModel):
    """Generated files keyed by category, each a {filename: content} map"""

    components: Dict[str, str] = Field(default_factory=dict)
    api_endpoints: Dict[str, str] = Field(default_factory=dict)
    database_schema: Dict[str, str] = Field(default_factory=dict)
    integrations: Dict[str, str] = Field(default_factory=dict)
    workflows: Dict[str, str] = Field(default_factory=dict)
    chatbots: Dict[str, str] = Field(default_factory=dict)
    visual_assets: Dict[str, str] = Field(default_factory=dict)
    tests: Dict[str, str] = Field(default_factory=dict)
    documentation: Dict[str, str] = Field(default_factory=dict)

    def category(self, name: str) -> Dict[str, str]:
        return getattr(self, name)

    def all_files(self) -> Dict[str, str]:
        """Every file keyed by "<category>/<filename>" """
        return {
            f"{category}/{filename}": content
            for category in ARTIFACT_CATEGORIES
            for filename, content in self.category(category).items()
        }


class ValidationReport(BaseModel):
    passed: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class DeploymentResult(BaseModel):
    deployment_url: str
    details: Dict[str, Any] = Field(default_factory=dict)


class OrchestrationMetrics(BaseModel):
    total_duration: int = 0  # milliseconds
    stage_durations: Dict[str, int] = Field(default_factory=dict)  # milliseconds
    component_count: int = 0
    api_endpoint_count: int = 0
    schema_table_count: int = 0
    code_line_count: int = 0
    artifact_counts: Dict[str, int] = Field(default_factory=dict)


class OrchestrationResult(BaseModel):
    """Terminal artifact of a run. Created once, immutable."""
    model_config = ConfigDict(frozen=True)

    success: bool
    application_id: str
    stage: GenerationStage
    deployment_url: Optional[str] = None
    generated_code: GeneratedCode = Field(default_factory=GeneratedCode)
    metrics: OrchestrationMetrics = Field(default_factory=OrchestrationMetrics)
    validation_report: Optional[ValidationReport] = None
    errors: List[str] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime


# ==================== API Schemas ====================

class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StartOrchestrationRequest(BaseModel):
    """Request to start generating an application"""
    requirement: BusinessRequirement
    application: GeneratedApplicationRef
    options: Optional[OrchestrationOptions] = None


class OrchestrationJobResponse(BaseModel):
    """Orchestration job status response"""
    job_id: str
    status: JobStatus
    progress_url: str
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    result: Optional[OrchestrationResult] = None
