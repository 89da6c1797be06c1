"""
Generation orchestration pipeline

    plan_builder          requirement -> GenerationPlan
    stage_machine         stage order, weights and step counters
    stage_executor        runs a plan stage by stage with retries
    progress_broadcaster  job id -> subscribed push-channel connections
    metrics               stage timings and derived metrics
    result_assembler      final OrchestrationResult
    generation_orchestrator  entry point tying them together
"""
