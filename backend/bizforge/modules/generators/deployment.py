"""
Local deployer - writes generated artifacts to the workspace

Layout:
    WORKSPACE_ROOT/<app-slug>/<category>/<filename>
    WORKSPACE_ROOT/<app-slug>/deployment.json

and reports DEPLOYMENT_BASE_URL/<app-slug> as the deployment URL.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles

from bizforge.core.config import settings
from bizforge.core.exceptions import DeploymentError
from bizforge.core.logging_config import logger
from bizforge.schemas.orchestration import (
    BusinessRequirement,
    DeploymentResult,
    GeneratedApplicationRef,
    GeneratedCode,
)
from bizforge.utils.naming import (
    MAX_APPLICATION_SLUG,
    MIN_APPLICATION_SLUG,
    application_slug_of,
    is_valid_application_slug,
)


def application_slug(application_id: str) -> str:
    """
    Sanitise an application id for use as a directory and URL segment.

    Raises:
        DeploymentError: fewer than 3 or more than 50 usable characters
    """
    slug = application_slug_of(application_id)
    if not is_valid_application_slug(slug):
        raise DeploymentError(
            f"Application id must sanitise to {MIN_APPLICATION_SLUG}-{MAX_APPLICATION_SLUG} characters, got '{slug}'",
            application_id=application_id,
        )
    return slug


def safe_relative_path(filename: str) -> Path:
    """Reject absolute paths and parent-directory segments"""
    parts = Path(Path(filename).as_posix().lstrip("/")).parts
    if not parts or ".." in parts:
        raise DeploymentError(f"Unsafe artifact path '{filename}'")
    return Path(*parts)


class LocalDeployer:
    name = "local-deployer"

    def __init__(self, workspace_root: Optional[str] = None, base_url: Optional[str] = None):
        self.workspace_root = Path(workspace_root or settings.WORKSPACE_ROOT)
        self.base_url = (base_url or settings.DEPLOYMENT_BASE_URL).rstrip("/")

    async def deploy(
        self,
        requirement: BusinessRequirement,
        application: GeneratedApplicationRef,
        config: Dict[str, Any],
        generated_code: GeneratedCode,
    ) -> DeploymentResult:
        slug = application_slug(application.id)
        app_dir = self.workspace_root / slug

        written = 0
        for path, content in generated_code.all_files().items():
            target = app_dir / safe_relative_path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target, "w", encoding="utf-8") as f:
                await f.write(content)
            written += 1

        manifest = {
            "application_id": application.id,
            "application_name": application.name or requirement.application_name,
            "deployed_at": datetime.utcnow().isoformat(),
            "config": config,
            "files": written,
        }
        app_dir.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(app_dir / "deployment.json", "w", encoding="utf-8") as f:
            await f.write(json.dumps(manifest, indent=2, default=str))

        url = f"{self.base_url}/{slug}"
        logger.info(f"[Deployer] Wrote {written} files for {application.id} to {app_dir} ({url})")
        return DeploymentResult(
            deployment_url=url,
            details={"path": str(app_dir), "files": written, "target": config.get("target")},
        )
