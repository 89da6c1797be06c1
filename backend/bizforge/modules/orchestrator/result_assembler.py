"""
Result Assembler - merges collaborator output, timings and the validation pass
into the one immutable OrchestrationResult of a run.
"""

from typing import Dict, List, Mapping, Optional
from datetime import datetime

from bizforge.modules.orchestrator.metrics import StageTiming, assemble_metrics
from bizforge.schemas.orchestration import (
    ARTIFACT_CATEGORIES,
    GeneratedCode,
    GenerationStage,
    OrchestrationResult,
    ValidationReport,
)


def merge_artifacts(generated: Mapping[str, Mapping[str, str]]) -> GeneratedCode:
    """Copy per-category file maps into a GeneratedCode; unknown categories are ignored"""
    return GeneratedCode(**{
        category: dict(generated.get(category, {}))
        for category in ARTIFACT_CATEGORIES
    })


def assemble_result(
    *,
    application_id: str,
    stage: GenerationStage,
    generated: Mapping[str, Mapping[str, str]],
    timings: Mapping[str, StageTiming],
    started_at: datetime,
    finished_at: datetime,
    errors: List[str],
    validation_report: Optional[ValidationReport] = None,
    deployment_url: Optional[str] = None,
) -> OrchestrationResult:
    generated_code = merge_artifacts(generated)
    metrics = assemble_metrics(generated_code, timings, started_at, finished_at)

    return OrchestrationResult(
        success=stage == GenerationStage.COMPLETED and not errors,
        application_id=application_id,
        stage=stage,
        deployment_url=deployment_url,
        generated_code=generated_code,
        metrics=metrics,
        validation_report=validation_report,
        errors=list(errors),
        started_at=started_at,
        finished_at=finished_at,
    )


def summarize_result(result: OrchestrationResult) -> Dict[str, object]:
    """Compact summary for logs and webhook notifications"""
    return {
        "application_id": result.application_id,
        "success": result.success,
        "stage": result.stage.value,
        "deployment_url": result.deployment_url,
        "errors": result.errors,
        "metrics": result.metrics.model_dump(),
    }
