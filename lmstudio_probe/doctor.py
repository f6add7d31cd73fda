"""
LM Studio Probe Doctor - Server health diagnostics.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import Config
from .errors import ErrorCode, LMStudioError
from .lm_studio import fetch_lm_studio_models, test_lm_studio_connection


class CheckStatus(Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


@dataclass
class CheckResult:
    name: str
    status: CheckStatus
    message: str
    details: Optional[str] = None


REACHABLE_CHECK = "LM Studio reachable"
MODELS_CHECK = "Loaded models"
SELECTED_MODEL_CHECK = "Selected model"

TROUBLESHOOTING = "\n".join([
    "Make sure:",
    "  - LM Studio is running",
    "  - \"Local server\" is enabled in LM Studio",
    "  - The server is running on the configured port",
    "  - No firewall is blocking the connection",
])


async def check_lm_studio_reachable(base_url: str) -> CheckResult:
    """Check if the LM Studio server answers /v1/models."""
    try:
        reachable = await test_lm_studio_connection(base_url)
    except LMStudioError as e:
        return CheckResult(
            name=REACHABLE_CHECK,
            status=CheckStatus.FAIL,
            message=e.message,
            details=e.hint,
        )

    if reachable:
        return CheckResult(
            name=REACHABLE_CHECK,
            status=CheckStatus.PASS,
            message=base_url,
        )
    return CheckResult(
        name=REACHABLE_CHECK,
        status=CheckStatus.FAIL,
        message=f"Cannot connect to {base_url}",
        details=TROUBLESHOOTING,
    )


async def check_lm_studio_models(base_url: str) -> tuple[CheckResult, list[str]]:
    """Check that at least one model is loaded. Also returns the ids found."""
    try:
        models = await fetch_lm_studio_models(base_url)
    except LMStudioError as e:
        status = CheckStatus.WARN if e.code == ErrorCode.NO_MODELS_LOADED else CheckStatus.FAIL
        return CheckResult(
            name=MODELS_CHECK,
            status=status,
            message=e.message,
            details=e.hint,
        ), []

    return CheckResult(
        name=MODELS_CHECK,
        status=CheckStatus.PASS,
        message=f"{len(models)} loaded",
        details=", ".join(models),
    ), models


def check_selected_model(selected: str, models: list[str]) -> CheckResult:
    """Check that the configured model is one the server lists."""
    if not selected:
        return CheckResult(
            name=SELECTED_MODEL_CHECK,
            status=CheckStatus.WARN,
            message="No model selected",
            details="Run 'lmstudio-probe use <model>' or set LMSTUDIO_MODEL.",
        )

    if selected in models:
        return CheckResult(
            name=SELECTED_MODEL_CHECK,
            status=CheckStatus.PASS,
            message=selected,
        )
    return CheckResult(
        name=SELECTED_MODEL_CHECK,
        status=CheckStatus.FAIL,
        message=f"Model '{selected}' not found",
        details=f"Available models: {', '.join(models) or 'none'}",
    )


async def run_all_checks(config: Config, base_url: Optional[str] = None) -> list[CheckResult]:
    """Run all diagnostic checks against ``base_url`` or the configured server."""
    base_url = base_url or config.lm_studio.base_url

    reachable = await check_lm_studio_reachable(base_url)
    if reachable.status != CheckStatus.PASS:
        return [reachable]

    models_result, models = await check_lm_studio_models(base_url)
    return [
        reachable,
        models_result,
        check_selected_model(config.lm_studio.selected_model, models),
    ]


def format_results(results: list[CheckResult], use_json: bool = False) -> str:
    """Format check results for display."""
    if use_json:
        return json.dumps(
            [
                {
                    "name": r.name,
                    "status": r.status.value,
                    "message": r.message,
                    "details": r.details,
                }
                for r in results
            ],
            indent=2,
        )

    lines = ["LM Studio Doctor", "=" * 16, ""]

    status_icons = {
        CheckStatus.PASS: "[ok]",
        CheckStatus.FAIL: "[FAIL]",
        CheckStatus.WARN: "[warn]",
    }

    for result in results:
        icon = status_icons[result.status]
        lines.append(f"{icon} {result.name}: {result.message}")
        if result.details and result.status != CheckStatus.PASS:
            for detail in result.details.splitlines():
                lines.append(f"      {detail}")

    passed = sum(1 for r in results if r.status == CheckStatus.PASS)
    failed = sum(1 for r in results if r.status == CheckStatus.FAIL)
    warned = sum(1 for r in results if r.status == CheckStatus.WARN)

    lines.append("")
    lines.append(f"{passed}/{len(results)} checks passed")
    if failed:
        lines.append(f"{failed} failed")
    if warned:
        lines.append(f"{warned} warnings")

    return "\n".join(lines)


def has_critical_failures(results: list[CheckResult]) -> bool:
    """Check if any critical checks failed."""
    critical_checks = {REACHABLE_CHECK}
    for result in results:
        if result.name in critical_checks and result.status == CheckStatus.FAIL:
            return True
    return False
