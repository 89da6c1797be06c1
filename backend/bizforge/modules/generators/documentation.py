"""
Documentation collaborator - markdown docs derived from the plan and the
artifacts generated so far.
"""

from typing import Dict, List

from bizforge.modules.generators.base import GenerationContext
from bizforge.schemas.orchestration import BusinessRequirement, ComponentType


class DocumentationGenerator:
    name = "documentation"

    async def generate(self, requirement: BusinessRequirement, options: GenerationContext) -> Dict[str, str]:
        plan = options.plan
        settings = plan.documentation
        app_name = requirement.application_name or (options.application.name if options.application else "") or "Application"

        docs: Dict[str, str] = {"README.md": self._readme(app_name, requirement, options)}
        if settings.api_documentation:
            docs["API.md"] = self._api_reference(app_name, options)
        if settings.user_guide:
            docs["USER_GUIDE.md"] = self._user_guide(app_name, options)
        if settings.developer_guide:
            docs["DEVELOPER_GUIDE.md"] = self._developer_guide(app_name, options)
        if settings.deployment_guide:
            docs["DEPLOYMENT.md"] = self._deployment_guide(app_name, options)
        return docs

    def _readme(self, app_name: str, requirement: BusinessRequirement, options: GenerationContext) -> str:
        lines = [f"# {app_name}", ""]
        if requirement.original_description:
            lines += [requirement.original_description.strip(), ""]
        lines += ["## Contents", ""]
        for category, files in options.artifacts.items():
            if files:
                lines.append(f"- {category}: {len(files)} file(s)")
        return "\n".join(lines) + "\n"

    def _api_reference(self, app_name: str, options: GenerationContext) -> str:
        lines = [f"# {app_name} API", "", "| Method | Path | Purpose | Auth |", "| --- | --- | --- | --- |"]
        for endpoint in options.plan.api_endpoints:
            lines.append(
                f"| {endpoint.method.value} | `{endpoint.path}` | {endpoint.purpose} | "
                f"{'yes' if endpoint.authentication else 'no'} |"
            )
        return "\n".join(lines) + "\n"

    def _user_guide(self, app_name: str, options: GenerationContext) -> str:
        forms = [c.name for c in options.plan.components if c.type == ComponentType.FORM]
        lines: List[str] = [f"# {app_name} User Guide", "", "## Forms", ""]
        lines += [f"- **{form}**: fill in the fields and press Save." for form in forms] or ["No forms."]
        lines += ["", "## Workflows", ""]
        lines += [
            f"- **{workflow.name}**: " + (" -> ".join(workflow.steps) if workflow.steps else "submit, review, complete")
            for workflow in options.plan.workflows
        ] or ["No workflows."]
        for chatbot in options.plan.chatbots:
            lines += ["", f"Ask the **{chatbot.name}** for help at any time."]
        return "\n".join(lines) + "\n"

    def _developer_guide(self, app_name: str, options: GenerationContext) -> str:
        lines = [f"# {app_name} Developer Guide", "", "## Database tables", ""]
        for schema in options.plan.database_schemas:
            columns = ", ".join(f"`{f.name}`" for f in schema.fields)
            lines.append(f"- `{schema.table_name}`: {columns}")
        if options.plan.integrations:
            lines += ["", "## Integrations", ""]
            lines += [f"- {i.name} ({i.type}, auth: {i.authentication})" for i in options.plan.integrations]
        return "\n".join(lines) + "\n"

    def _deployment_guide(self, app_name: str, options: GenerationContext) -> str:
        deployment = options.plan.deployment
        return (
            f"# Deploying {app_name}\n"
            "\n"
            f"- Target: {options.options.deployment_target.value}\n"
            f"- Environment: {deployment.environment}\n"
            f"- Monitoring: {'on' if deployment.monitoring else 'off'}\n"
            f"- Backups: {'on' if deployment.backup else 'off'}\n"
        )
