"""
Generated-code validator.

Checks every generated file and reports, it never raises for findings:
- errors:      empty files, components without a default export
- warnings:    leftover debug statements, oversized files
- suggestions: missing tests
"""

import re

from bizforge.core.logging_config import logger
from bizforge.schemas.orchestration import GeneratedCode, ValidationReport


MAX_FILE_LINES = 500
DEBUG_PATTERN = re.compile(r"\bconsole\.log\(|\bdebugger;|\bprint\(")
SCRIPT_SUFFIXES = (".ts", ".tsx", ".js", ".jsx")


class CodeValidator:
    name = "validator"

    def __init__(self, max_file_lines: int = MAX_FILE_LINES):
        self.max_file_lines = max_file_lines

    async def validate(self, generated_code: GeneratedCode) -> ValidationReport:
        errors, warnings, suggestions = [], [], []

        for path, content in generated_code.all_files().items():
            if not content.strip():
                errors.append(f"{path}: file is empty")
                continue

            if path.startswith("components/") and path.endswith(".tsx") and "export default" not in content:
                errors.append(f"{path}: component has no default export")

            if path.endswith(SCRIPT_SUFFIXES) and DEBUG_PATTERN.search(content):
                warnings.append(f"{path}: leftover debug statement")

            lines = content.count("\n")
            if lines > self.max_file_lines:
                warnings.append(f"{path}: {lines} lines (over {self.max_file_lines})")

        if generated_code.components and not generated_code.tests:
            suggestions.append("Enable generate_tests to add component tests")

        report = ValidationReport(passed=not errors, errors=errors, warnings=warnings, suggestions=suggestions)
        logger.info(
            f"[Validator] {'passed' if report.passed else 'failed'}: "
            f"{len(errors)} errors, {len(warnings)} warnings"
        )
        return report
