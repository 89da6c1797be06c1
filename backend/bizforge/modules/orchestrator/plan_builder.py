"""
Plan Builder - turns a parsed business requirement into a GenerationPlan.

Pure function of its input: no I/O, and malformed input yields an
empty-but-valid plan (dashboard, layout and chatbot only) instead of raising.

Entity lists read from requirement.extracted_entities:
- forms:        ["Customer Intake", ...] or legacy {"forms_legacy": [...]}
- processes:    ["Order Approval", ...] or [{"name": "Order Approval", "steps": [...]}]
- integrations: ["Stripe", ...] or [{"name": "Stripe", "type": "api"}]
- approvals:    ["Manager sign-off", ...] (attached to every workflow)
"""

from typing import Any, Dict, List, Mapping

from bizforge.core.logging_config import logger
from bizforge.utils.naming import pascal_case, slugify
from bizforge.schemas.orchestration import (
    ApiEndpointPlan,
    BusinessRequirement,
    ChatbotPlan,
    ComponentPlan,
    ComponentType,
    Complexity,
    DatabaseSchemaPlan,
    DocumentationPlan,
    DeploymentPlan,
    GenerationPlan,
    HttpMethod,
    IntegrationPlan,
    PlanItem,
    SchemaField,
    WorkflowPlan,
)


PRIORITY_ORDER = [
    "database",
    "api",
    "components",
    "workflows",
    "integrations",
    "chatbots",
    "documentation",
    "deployment",
]

CRUD_METHODS = [HttpMethod.GET, HttpMethod.POST, HttpMethod.PUT, HttpMethod.DELETE]

# Once-per-run work not represented as plan items
DOCUMENTATION_ESTIMATE = 60
DEPLOYMENT_ESTIMATE = 60

FIXED_COMPONENT_NAMES = ("Dashboard", "Layout")

DEFAULT_CHATBOT_NAME = "Business Assistant"
DEFAULT_CHATBOT_CAPABILITIES = ["form_help", "workflow_guidance", "general_assistance"]

INTEGRATION_TYPES = {"api", "webhook", "database", "file", "email", "sms"}


def endpoint_name(method: HttpMethod, path: str) -> str:
    return f"{method.value} {path}"


def _entities_of(requirement: Any) -> Mapping[str, Any]:
    if isinstance(requirement, BusinessRequirement):
        entities = requirement.extracted_entities
    elif isinstance(requirement, Mapping):
        entities = requirement.get("extracted_entities") or requirement.get("extractedEntities")
    else:
        entities = None
    return entities if isinstance(entities, Mapping) else {}


def _entity_names(raw: Any) -> List[str]:
    """Names from a list of strings or {"name": ...} dicts; anything else is skipped"""
    if not isinstance(raw, list):
        return []
    names: List[str] = []
    for entry in raw:
        if isinstance(entry, str):
            name = entry.strip()
        elif isinstance(entry, Mapping) and isinstance(entry.get("name"), str):
            name = entry["name"].strip()
        else:
            continue
        if name and name not in names:
            names.append(name)
    return names


def _form_names(entities: Mapping[str, Any]) -> List[str]:
    forms = entities.get("forms")
    if isinstance(forms, Mapping):
        # Legacy shape: {"forms_legacy": [...]}
        return _entity_names(forms.get("forms_legacy"))
    return _entity_names(forms)


def _process_steps(raw: Any, name: str) -> List[str]:
    if not isinstance(raw, list):
        return []
    for entry in raw:
        if isinstance(entry, Mapping) and entry.get("name") == name:
            return [str(step) for step in entry.get("steps") or [] if isinstance(step, (str, int))]
    return []


def _integration_spec(raw: Any, name: str) -> Dict[str, Any]:
    if not isinstance(raw, list):
        return {}
    for entry in raw:
        if isinstance(entry, Mapping) and entry.get("name") == name:
            return dict(entry)
    return {}


def _component_name(form: str, taken_stems: set) -> str:
    """Form component name whose file stem no other component uses"""
    name = form
    counter = 1
    while pascal_case(name) in taken_stems:
        name = f"{form} Form" if counter == 1 else f"{form} Form {counter}"
        counter += 1
    taken_stems.add(pascal_case(name))
    return name


def _form_items(form: str, component_name: str):
    table = slugify(form)
    path = f"/api/{table}"

    schema = DatabaseSchemaPlan(
        name=table,
        table_name=table,
        fields=[
            SchemaField(name="id", type="uuid", constraints=["primary key"]),
            SchemaField(name="created_at", type="timestamp", constraints=["not null"]),
            SchemaField(name="updated_at", type="timestamp", constraints=["not null"]),
        ],
        indexes=["id"],
        complexity=Complexity.MEDIUM,
        estimated_time=20,
    )

    endpoints = [
        ApiEndpointPlan(
            name=endpoint_name(method, path),
            path=path,
            method=method,
            purpose=f"{method.value} operation for {form}",
            authentication=True,
            validation=method in (HttpMethod.POST, HttpMethod.PUT),
            dependencies=[table],
            complexity=Complexity.MEDIUM,
            estimated_time=15,
        )
        for method in CRUD_METHODS
    ]

    component = ComponentPlan(
        name=component_name,
        type=ComponentType.FORM,
        dependencies=[endpoint_name(HttpMethod.GET, path), endpoint_name(HttpMethod.POST, path)],
        complexity=Complexity.MEDIUM,
        estimated_time=30,
    )
    return schema, endpoints, component


def build_plan(requirement: Any) -> GenerationPlan:
    """
    Build the generation plan for a requirement.

    Per form: one form component, four CRUD endpoints and one schema table.
    Per process: one workflow. Per integration: one integration adapter.
    Always: one dashboard, one layout and one general-purpose chatbot.
    """
    entities = _entities_of(requirement)
    forms = _form_names(entities)
    processes = _entity_names(entities.get("processes"))
    integrations = _entity_names(entities.get("integrations"))
    approvals = _entity_names(entities.get("approvals"))

    schemas: List[DatabaseSchemaPlan] = []
    endpoints: List[ApiEndpointPlan] = []
    components: List[ComponentPlan] = []

    seen_tables = set()
    taken_stems = {pascal_case(name) for name in FIXED_COMPONENT_NAMES}
    for form in forms:
        if slugify(form) in seen_tables:
            continue
        seen_tables.add(slugify(form))
        schema, form_endpoints, component = _form_items(form, _component_name(form, taken_stems))
        schemas.append(schema)
        endpoints.extend(form_endpoints)
        components.append(component)

    components.append(ComponentPlan(
        name=FIXED_COMPONENT_NAMES[0],
        type=ComponentType.DASHBOARD,
        complexity=Complexity.HIGH,
        estimated_time=45,
    ))
    components.append(ComponentPlan(
        name=FIXED_COMPONENT_NAMES[1],
        type=ComponentType.LAYOUT,
        complexity=Complexity.LOW,
        estimated_time=20,
    ))

    workflows = [
        WorkflowPlan(
            name=process,
            steps=_process_steps(entities.get("processes"), process),
            approvals=True,
            notifications=True,
            integrations=integrations,
            complexity=Complexity.HIGH,
            estimated_time=60,
        )
        for process in processes
    ]

    integration_plans = []
    for integration in integrations:
        spec = _integration_spec(entities.get("integrations"), integration)
        kind = str(spec.get("type", "api")).lower()
        integration_plans.append(IntegrationPlan(
            name=integration,
            type=kind if kind in INTEGRATION_TYPES else "api",
            authentication=str(spec.get("authentication", "apikey")),
            data_flow=str(spec.get("data_flow", "bidirectional")),
            priority=str(spec.get("priority", "medium")),
            complexity=Complexity.MEDIUM,
            estimated_time=40,
        ))

    chatbots = [ChatbotPlan(
        name=DEFAULT_CHATBOT_NAME,
        capabilities=list(DEFAULT_CHATBOT_CAPABILITIES),
        integration_points=["dashboard", "forms"] + (["approvals"] if approvals else []),
        ai_model="claude",
        context_aware=True,
        dependencies=[FIXED_COMPONENT_NAMES[0]],
        complexity=Complexity.MEDIUM,
        estimated_time=45,
    )]

    items: List[PlanItem] = [*schemas, *endpoints, *components, *workflows, *integration_plans, *chatbots]
    estimated = sum(item.estimated_time for item in items) + DOCUMENTATION_ESTIMATE + DEPLOYMENT_ESTIMATE

    plan = GenerationPlan(
        components=components,
        api_endpoints=endpoints,
        database_schemas=schemas,
        workflows=workflows,
        integrations=integration_plans,
        chatbots=chatbots,
        documentation=DocumentationPlan(),
        deployment=DeploymentPlan(),
        estimated_duration=estimated,
        priority_order=list(PRIORITY_ORDER),
    )

    logger.debug(
        f"[PlanBuilder] {len(components)} components, {len(endpoints)} endpoints, "
        f"{len(schemas)} tables, {len(workflows)} workflows, {len(integration_plans)} integrations"
    )
    return plan


def find_forward_references(plan: GenerationPlan) -> List[str]:
    """
    Dependencies that do not name an item appearing earlier in priority order.

    Returns "<item> -> <dependency>" strings; empty for a well-formed plan.
    """
    seen: set = set()
    problems: List[str] = []
    for item in plan.ordered_items():
        for dependency in item.dependencies:
            if dependency not in seen:
                problems.append(f"{item.name} -> {dependency}")
        seen.add(item.name)
    return problems


def describe_plan(plan: GenerationPlan) -> str:
    """One-line summary used in the analyzing progress event"""
    return (
        f"Identified {len(plan.components)} components, "
        f"{len(plan.api_endpoints)} API endpoints, "
        f"{len(plan.database_schemas)} database tables"
    )
