"""
Generator collaborators
"""

from typing import Optional

from bizforge.core.config import settings
from bizforge.core.logging_config import logger
from bizforge.modules.generators.base import (
    CollaboratorSuite,
    DeploymentCollaborator,
    GenerationContext,
    GeneratorCollaborator,
    ValidationCollaborator,
)
from bizforge.modules.generators.claude_generator import ClaudeGenerator
from bizforge.modules.generators.deployment import LocalDeployer
from bizforge.modules.generators.documentation import DocumentationGenerator
from bizforge.modules.generators.templates import (
    ApiRouteTemplateGenerator,
    ChatbotTemplateGenerator,
    ComponentTemplateGenerator,
    ComponentTestTemplateGenerator,
    IntegrationTemplateGenerator,
    SchemaTemplateGenerator,
    WorkflowTemplateGenerator,
)
from bizforge.modules.generators.validation import CodeValidator


def default_collaborators(use_ai: Optional[bool] = None, workspace_root: Optional[str] = None) -> CollaboratorSuite:
    """
    Build the collaborator suite from settings.

    Template generators unless AI generation is enabled and an API key is set.
    Visual assets have no default generator.
    """
    if use_ai is None:
        use_ai = settings.ai_generators_enabled

    if use_ai:
        logger.info("[Generators] Using Claude-backed generators")
        return CollaboratorSuite(
            database=ClaudeGenerator("database_schema"),
            api=ClaudeGenerator("api_endpoints"),
            components=ClaudeGenerator("components"),
            workflows=ClaudeGenerator("workflows"),
            chatbots=ClaudeGenerator("chatbots"),
            integrations=ClaudeGenerator("integrations"),
            documentation=DocumentationGenerator(),
            deployer=LocalDeployer(workspace_root=workspace_root),
            validator=CodeValidator(),
            tests=ClaudeGenerator("tests"),
        )

    return CollaboratorSuite(
        database=SchemaTemplateGenerator(),
        api=ApiRouteTemplateGenerator(),
        components=ComponentTemplateGenerator(),
        workflows=WorkflowTemplateGenerator(),
        chatbots=ChatbotTemplateGenerator(),
        integrations=IntegrationTemplateGenerator(),
        documentation=DocumentationGenerator(),
        deployer=LocalDeployer(workspace_root=workspace_root),
        validator=CodeValidator(),
        tests=ComponentTestTemplateGenerator(),
    )


__all__ = [
    "CollaboratorSuite",
    "DeploymentCollaborator",
    "GenerationContext",
    "GeneratorCollaborator",
    "ValidationCollaborator",
    "CodeValidator",
    "LocalDeployer",
    "default_collaborators",
]
