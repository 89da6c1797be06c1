"""
Custom Exceptions for BizForge
==============================

Use these instead of generic Exception to:
1. Make errors more specific and debuggable
2. Enable proper error handling at API layer
3. Give the pipeline a single failure signal to retry on

Usage:
    from bizforge.core.exceptions import CollaboratorError, StageFailedError

    try:
        files = await collaborator.generate(requirement, context)
    except CollaboratorError as e:
        logger.warning(f"Collaborator failed: {e}")
        raise
"""

from typing import Optional, Any, Dict, List


class BizForgeError(Exception):
    """Base exception for all BizForge errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Resource Errors (404 / 409)
# ============================================

class ResourceNotFoundError(BizForgeError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class JobNotFoundError(ResourceNotFoundError):
    """Orchestration job not found"""

    def __init__(self, job_id: str):
        super().__init__("Job", job_id)


class JobAlreadyExistsError(BizForgeError):
    """An orchestration job with this id is still active"""

    status_code = 409

    def __init__(self, job_id: str):
        super().__init__(
            f"Job '{job_id}' is already running",
            code="JOB_ALREADY_EXISTS",
            details={"job_id": job_id}
        )


# ============================================
# Collaborator Errors
# ============================================

class CollaboratorError(BizForgeError):
    """A generator collaborator failed to produce artifacts"""

    def __init__(
        self,
        collaborator: str,
        message: str,
        item: Optional[str] = None,
        attempts: int = 1
    ):
        super().__init__(
            message,
            code="COLLABORATOR_FAILED",
            details={"collaborator": collaborator, "item": item, "attempts": attempts}
        )
        self.collaborator = collaborator
        self.item = item
        self.attempts = attempts


class CollaboratorTimeoutError(CollaboratorError):
    """A collaborator call exceeded its time budget"""

    def __init__(self, collaborator: str, timeout_seconds: float, item: Optional[str] = None):
        super().__init__(
            collaborator,
            f"{collaborator} timed out after {timeout_seconds:g}s",
            item=item
        )
        self.code = "COLLABORATOR_TIMEOUT"
        self.details["timeout_seconds"] = timeout_seconds


class MalformedArtifactError(CollaboratorError):
    """A collaborator returned something other than {filename: content}"""

    def __init__(self, collaborator: str, message: str, item: Optional[str] = None):
        super().__init__(collaborator, message, item=item)
        self.code = "MALFORMED_ARTIFACT"


class ArtifactConflictError(BizForgeError):
    """Two plan items of one stage produced the same file"""

    def __init__(self, category: str, filename: str):
        super().__init__(
            f"Duplicate artifact '{filename}' in {category}",
            code="ARTIFACT_CONFLICT",
            details={"category": category, "filename": filename}
        )


class DeploymentError(BizForgeError):
    """Deploying generated artifacts failed"""

    def __init__(self, message: str, application_id: Optional[str] = None):
        details = {"application_id": application_id} if application_id else {}
        super().__init__(message, code="DEPLOYMENT_FAILED", details=details)


# ============================================
# Pipeline Errors
# ============================================

class StageFailedError(BizForgeError):
    """A pipeline stage exhausted its retries"""

    def __init__(self, stage: str, errors: List[str]):
        super().__init__(
            f"Stage '{stage}' failed: {'; '.join(errors)}",
            code="STAGE_FAILED",
            details={"stage": stage, "errors": errors}
        )
        self.stage = stage
        self.errors = errors


class InvalidStageTransitionError(BizForgeError):
    """Stage transition violates the forward-only pipeline order"""

    def __init__(self, from_stage: str, to_stage: str):
        super().__init__(
            f"Invalid stage transition: {from_stage} -> {to_stage}",
            code="INVALID_STAGE_TRANSITION",
            details={"from": from_stage, "to": to_stage}
        )


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: BizForgeError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
