"""
AI-backed generator collaborator.

Asks Claude for the files of one plan item and parses the
<file path="...">...</file> blocks out of the answer. An answer without
any file block is a collaborator failure, so the executor retries it.
"""

import json
from typing import Dict, Optional

from bizforge.core.exceptions import CollaboratorError
from bizforge.core.logging_config import logger
from bizforge.modules.generators.base import GenerationContext
from bizforge.schemas.orchestration import BusinessRequirement
from bizforge.utils.claude_client import ClaudeClient
from bizforge.utils.response_parser import PlainTextParser


SYSTEM_PROMPT = """You generate production-ready source files for a business application.
Answer ONLY with one block per file:
<file path="FILENAME">
...file content...
</file>
Use flat filenames (no directories). No explanations outside the blocks."""

CATEGORY_INSTRUCTIONS = {
    "database_schema": "Write a PostgreSQL DDL file named <table>.sql for this table.",
    "api_endpoints": "Write one Express + TypeScript route module named <resource>.<method>.ts for this endpoint.",
    "components": "Write one React + TypeScript component named <ComponentName>.tsx with a default export.",
    "workflows": "Write a JSON workflow definition named <name>.workflow.json.",
    "chatbots": "Write <name>.config.json (assistant configuration) and <name>.prompt.md (system prompt).",
    "integrations": "Write a TypeScript client module named <name>.integration.ts.",
    "tests": "Write a React Testing Library test named <ComponentName>.test.tsx.",
}


class ClaudeGenerator:
    """One instance per artifact category"""

    def __init__(self, category: str, client: Optional[ClaudeClient] = None):
        if category not in CATEGORY_INSTRUCTIONS:
            raise ValueError(f"No Claude instructions for category '{category}'")
        self.category = category
        self.name = f"claude-{category.replace('_', '-')}"
        self._client = client

    @property
    def client(self) -> ClaudeClient:
        if self._client is None:
            self._client = ClaudeClient()
        return self._client

    def build_prompt(self, requirement: BusinessRequirement, options: GenerationContext) -> str:
        item = options.item.model_dump(mode="json") if options.item is not None else None
        upstream = {category: sorted(files) for category, files in options.artifacts.items() if files}
        return "\n\n".join([
            CATEGORY_INSTRUCTIONS[self.category],
            f"Application: {requirement.application_name or options.job_id}",
            f"Business description:\n{requirement.original_description or '(none)'}",
            f"Plan item:\n{json.dumps(item, indent=2)}",
            f"Files already generated:\n{json.dumps(upstream, indent=2)}",
        ])

    async def generate(self, requirement: BusinessRequirement, options: GenerationContext) -> Dict[str, str]:
        item_name = options.item.name if options.item is not None else None
        response = await self.client.generate(
            prompt=self.build_prompt(requirement, options),
            system_prompt=SYSTEM_PROMPT,
        )

        files = PlainTextParser.parse_file_blocks(response["content"])
        if not files:
            raise CollaboratorError(self.name, "response contained no <file> blocks", item=item_name)

        logger.debug(f"[ClaudeGenerator] {self.name}: {len(files)} file(s) for {item_name}")
        return files
