"""
Deterministic template collaborators, one per artifact category.

These are the default generators (no AI service needed). Each one renders
exactly the files for a single plan item:

    database_schema  <table>.sql
    api_endpoints    <resource>.<method>.ts
    components       <Name>.tsx
    workflows        <name>.workflow.json
    chatbots         <name>.config.json, <name>.prompt.md
    integrations     <name>.integration.ts
    tests            <Name>.test.tsx
"""

import json
from typing import Dict, List, Type

from bizforge.core.exceptions import CollaboratorError
from bizforge.modules.generators.base import GenerationContext
from bizforge.schemas.orchestration import (
    ApiEndpointPlan,
    BusinessRequirement,
    ChatbotPlan,
    ComponentPlan,
    ComponentType,
    DatabaseSchemaPlan,
    HttpMethod,
    IntegrationPlan,
    PlanItem,
    WorkflowPlan,
)
from bizforge.utils.naming import kebab_case, pascal_case, slugify


SQL_TYPES = {
    "uuid": "UUID",
    "timestamp": "TIMESTAMPTZ",
    "string": "VARCHAR(255)",
    "text": "TEXT",
    "integer": "INTEGER",
    "boolean": "BOOLEAN",
    "decimal": "NUMERIC(12, 2)",
}


class TemplateGenerator:
    """Base class: checks the plan item type, then renders"""

    name: str = "template"
    item_type: Type[PlanItem] = PlanItem

    async def generate(self, requirement: BusinessRequirement, options: GenerationContext) -> Dict[str, str]:
        item = options.item
        if not isinstance(item, self.item_type):
            raise CollaboratorError(
                self.name,
                f"expected a {self.item_type.__name__}, got {type(item).__name__}",
                item=getattr(item, "name", None),
            )
        return self.render(requirement, item, options)

    def render(self, requirement: BusinessRequirement, item, options: GenerationContext) -> Dict[str, str]:
        raise NotImplementedError


class SchemaTemplateGenerator(TemplateGenerator):
    name = "schema-templates"
    item_type = DatabaseSchemaPlan

    def render(self, requirement, item: DatabaseSchemaPlan, options) -> Dict[str, str]:
        columns: List[str] = []
        for schema_field in item.fields:
            sql_type = SQL_TYPES.get(schema_field.type, schema_field.type.upper())
            constraints = " ".join(c.upper() for c in schema_field.constraints)
            if schema_field.name == "id" and schema_field.type == "uuid":
                constraints = f"{constraints} DEFAULT gen_random_uuid()".strip()
            columns.append(f"  {schema_field.name} {sql_type} {constraints}".rstrip())

        lines = [
            f"-- Table: {item.table_name}",
            f"CREATE TABLE IF NOT EXISTS {item.table_name} (",
            ",\n".join(columns),
            ");",
            "",
        ]
        for index in item.indexes:
            if index == "id":
                continue
            lines.append(f"CREATE INDEX IF NOT EXISTS idx_{item.table_name}_{index} ON {item.table_name} ({index});")
        for relationship in item.relationships:
            lines.append(f"-- relationship: {relationship}")

        return {f"{item.table_name}.sql": "\n".join(lines).rstrip() + "\n"}


class ApiRouteTemplateGenerator(TemplateGenerator):
    name = "api-templates"
    item_type = ApiEndpointPlan

    def render(self, requirement, item: ApiEndpointPlan, options) -> Dict[str, str]:
        resource = item.path.rstrip("/").split("/")[-1] or "root"
        method = item.method.value.lower()
        table = slugify(resource)

        body = {
            HttpMethod.GET: f"  const rows = await db.select('{table}', req.query);\n  res.json(rows);",
            HttpMethod.POST: f"  const row = await db.insert('{table}', req.body);\n  res.status(201).json(row);",
            HttpMethod.PUT: f"  const row = await db.update('{table}', req.params.id, req.body);\n  res.json(row);",
            HttpMethod.DELETE: f"  await db.remove('{table}', req.params.id);\n  res.status(204).end();",
            HttpMethod.PATCH: f"  const row = await db.update('{table}', req.params.id, req.body);\n  res.json(row);",
        }[item.method]

        middleware = []
        if item.authentication:
            middleware.append("requireAuth")
        if item.validation:
            middleware.append(f"validate('{table}')")
        route_path = item.path if item.method in (HttpMethod.GET, HttpMethod.POST) else f"{item.path}/:id"

        content = (
            "import { Router } from 'express';\n"
            "import { db } from '../db';\n"
            "import { requireAuth, validate } from '../middleware';\n"
            "\n"
            "const router = Router();\n"
            "\n"
            f"// {item.purpose}\n"
            f"router.{method}('{route_path}'{''.join(', ' + m for m in middleware)}, async (req, res) => {{\n"
            f"{body}\n"
            "});\n"
            "\n"
            "export default router;\n"
        )
        return {f"{table}.{method}.ts": content}


def form_resource(item: ComponentPlan) -> str:
    """Table a form component talks to, taken from its endpoint dependencies"""
    for dependency in item.dependencies:
        _, _, path = dependency.partition(" ")
        if path.startswith("/api/"):
            return slugify(path.rstrip("/").split("/")[-1])
    return slugify(item.name)


class ComponentTemplateGenerator(TemplateGenerator):
    name = "component-templates"
    item_type = ComponentPlan

    def render(self, requirement, item: ComponentPlan, options) -> Dict[str, str]:
        component = pascal_case(item.name)

        if item.type == ComponentType.FORM:
            resource = form_resource(item)
            endpoints = options.artifacts.get("api_endpoints", {})
            submit = "POST" if f"{resource}.post.ts" in endpoints else "PUT"
            content = (
                "import { useState } from 'react';\n"
                "\n"
                f"export default function {component}() {{\n"
                "  const [values, setValues] = useState<Record<string, string>>({});\n"
                "\n"
                "  async function onSubmit(event: React.FormEvent) {\n"
                "    event.preventDefault();\n"
                f"    await fetch('/api/{resource}', {{ method: '{submit}', body: JSON.stringify(values) }});\n"
                "  }\n"
                "\n"
                "  return (\n"
                f"    <form onSubmit={{onSubmit}} aria-label=\"{item.name}\">\n"
                "      <button type=\"submit\">Save</button>\n"
                "    </form>\n"
                "  );\n"
                "}\n"
            )
        elif item.type == ComponentType.LAYOUT:
            content = (
                "import { ReactNode } from 'react';\n"
                "\n"
                f"export default function {component}({{ children }}: {{ children: ReactNode }}) {{\n"
                "  return <div className=\"app-layout\">{children}</div>;\n"
                "}\n"
            )
        else:
            title = requirement.application_name or item.name
            content = (
                f"export default function {component}() {{\n"
                "  return (\n"
                f"    <section className=\"{kebab_case(item.name)}\">\n"
                f"      <h1>{title}</h1>\n"
                "    </section>\n"
                "  );\n"
                "}\n"
            )
        return {f"{component}.tsx": content}


class WorkflowTemplateGenerator(TemplateGenerator):
    name = "workflow-templates"
    item_type = WorkflowPlan

    def render(self, requirement, item: WorkflowPlan, options) -> Dict[str, str]:
        steps = item.steps or ["submit", "review", "complete"]
        definition = {
            "name": item.name,
            "steps": [
                {"id": f"step_{index + 1}", "name": step, "requiresApproval": item.approvals and index == len(steps) - 2}
                for index, step in enumerate(steps)
            ],
            "notifications": item.notifications,
            "integrations": list(item.integrations),
        }
        return {f"{slugify(item.name)}.workflow.json": json.dumps(definition, indent=2) + "\n"}


class ChatbotTemplateGenerator(TemplateGenerator):
    name = "chatbot-templates"
    item_type = ChatbotPlan

    def render(self, requirement, item: ChatbotPlan, options) -> Dict[str, str]:
        slug = slugify(item.name)
        forms = [c.name for c in options.plan.components if c.type == ComponentType.FORM]
        workflows = [w.name for w in options.plan.workflows]

        config = {
            "name": item.name,
            "model": item.ai_model,
            "capabilities": list(item.capabilities),
            "integrationPoints": list(item.integration_points),
            "contextAware": item.context_aware,
            "knowledge": {"forms": forms, "workflows": workflows},
        }
        prompt = (
            f"# {item.name}\n"
            "\n"
            f"You help users of {requirement.application_name or 'this application'}.\n"
            "\n"
            + "".join(f"- Form: {form}\n" for form in forms)
            + "".join(f"- Workflow: {workflow}\n" for workflow in workflows)
        )
        return {
            f"{slug}.config.json": json.dumps(config, indent=2) + "\n",
            f"{slug}.prompt.md": prompt,
        }


class IntegrationTemplateGenerator(TemplateGenerator):
    name = "integration-templates"
    item_type = IntegrationPlan

    def render(self, requirement, item: IntegrationPlan, options) -> Dict[str, str]:
        client = pascal_case(item.name)
        env_key = f"{slugify(item.name).upper()}_API_KEY"
        content = (
            f"// {item.name} integration ({item.type}, {item.data_flow})\n"
            f"export class {client}Client {{\n"
            f"  private readonly apiKey = process.env.{env_key} ?? '';\n"
            "\n"
            "  async send(payload: unknown): Promise<Response> {\n"
            f"    return fetch(process.env.{slugify(item.name).upper()}_URL ?? '', {{\n"
            "      method: 'POST',\n"
            "      headers: { Authorization: `Bearer ${this.apiKey}` },\n"
            "      body: JSON.stringify(payload),\n"
            "    });\n"
            "  }\n"
            "}\n"
            "\n"
            f"export default new {client}Client();\n"
        )
        return {f"{slugify(item.name)}.integration.ts": content}


class ComponentTestTemplateGenerator(TemplateGenerator):
    name = "test-templates"
    item_type = ComponentPlan

    def render(self, requirement, item: ComponentPlan, options) -> Dict[str, str]:
        component = pascal_case(item.name)
        content = (
            "import { render } from '@testing-library/react';\n"
            f"import {component} from '../components/{component}';\n"
            "\n"
            f"describe('{component}', () => {{\n"
            "  it('renders', () => {\n"
            f"    const {{ container }} = render(<{component} />);\n"
            "    expect(container.firstChild).not.toBeNull();\n"
            "  });\n"
            "});\n"
        )
        return {f"{component}.test.tsx": content}
