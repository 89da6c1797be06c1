"""
Collaborator contracts consumed by the stage executor.

Every generator implements `generate(requirement, options) -> {filename: content}`
and signals failure by raising, never by returning something malformed.
"""

from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable
from dataclasses import dataclass, field
from types import MappingProxyType

from bizforge.schemas.orchestration import (
    BusinessRequirement,
    DeploymentResult,
    GeneratedApplicationRef,
    GeneratedCode,
    GenerationPlan,
    OrchestrationOptions,
    PlanItem,
    ValidationReport,
)


EMPTY_ARTIFACTS: Mapping[str, Mapping[str, str]] = MappingProxyType({})


@dataclass(frozen=True)
class GenerationContext:
    """
    The `options` argument handed to a collaborator for one invocation.

    `item` is None for once-per-run collaborators (documentation, visual assets).
    `artifacts` is a read-only view of files produced by earlier stages, keyed by category.
    """
    job_id: str
    plan: GenerationPlan
    options: OrchestrationOptions
    item: Optional[PlanItem] = None
    artifacts: Mapping[str, Mapping[str, str]] = field(default_factory=lambda: EMPTY_ARTIFACTS)
    application: Optional[GeneratedApplicationRef] = None
    attempt: int = 1


@runtime_checkable
class GeneratorCollaborator(Protocol):
    name: str

    async def generate(self, requirement: BusinessRequirement, options: GenerationContext) -> Dict[str, str]:
        ...


@runtime_checkable
class DeploymentCollaborator(Protocol):
    name: str

    async def deploy(
        self,
        requirement: BusinessRequirement,
        application: GeneratedApplicationRef,
        config: Dict[str, Any],
        generated_code: GeneratedCode,
    ) -> DeploymentResult:
        ...


@runtime_checkable
class ValidationCollaborator(Protocol):
    name: str

    async def validate(self, generated_code: GeneratedCode) -> ValidationReport:
        ...


@dataclass
class CollaboratorSuite:
    """The generators one run talks to. Optional collaborators may be None."""
    database: GeneratorCollaborator
    api: GeneratorCollaborator
    components: GeneratorCollaborator
    workflows: GeneratorCollaborator
    chatbots: GeneratorCollaborator
    integrations: GeneratorCollaborator
    documentation: GeneratorCollaborator
    deployer: DeploymentCollaborator
    validator: Optional[ValidationCollaborator] = None
    visual_assets: Optional[GeneratorCollaborator] = None
    tests: Optional[GeneratorCollaborator] = None


def collaborator_name(collaborator: Any) -> str:
    return getattr(collaborator, "name", None) or type(collaborator).__name__
