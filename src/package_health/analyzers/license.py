"""License analyzer.

Classifies a package's declared license string into a policy category and
severity using the SPDX reference database and the project's license
policy. SPDX expressions are parsed with the license-expression library;
``OR`` expressions pick the most permissive operand, ``AND`` expressions
the least permissive one.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from license_expression import (
    ExpressionError,
    LicenseSymbol,
    LicenseWithExceptionSymbol,
    Licensing,
)

from package_health.config import LicenseConfig
from package_health.models import (
    SEVERITY_ORDER,
    BlueOakRating,
    LicenseAnalysis,
    LicenseCategory,
    PackageMetadata,
    Severity,
)
from package_health.spdx import (
    LicenseFamily,
    LicenseInfo,
    is_invalid_license,
    is_legally_sound,
    lookup_license,
    matches_license_pattern,
    normalize_license,
)

logger = logging.getLogger(__name__)

# Plain Licensing: symbols keep the keys they were written with
LICENSING = Licensing()

_OPERATOR_PATTERN = re.compile(r"\s(OR|AND|WITH)\s", re.IGNORECASE)

# Lower rank = more permissive
CATEGORY_RANK: dict[str, int] = {
    "commercial-friendly": 0,
    "commercial-warning": 1,
    "commercial-incompatible": 2,
    "unknown": 3,
    "unlicensed": 4,
}

FAMILY_CATEGORY: dict[LicenseFamily, LicenseCategory] = {
    "permissive": "commercial-friendly",
    "weak-copyleft": "commercial-warning",
    "strong-copyleft": "commercial-incompatible",
    "network-copyleft": "commercial-incompatible",
}

# Project types where copyleft obligations are acceptable
RELAXED_PROJECT_TYPES = frozenset({"open-source", "personal", "educational"})

# Severity per family, by project type
_DEFAULT_SEVERITY: dict[LicenseFamily, Severity] = {
    "permissive": "ok",
    "weak-copyleft": "warning",
    "strong-copyleft": "critical",
    "network-copyleft": "critical",
}
_RELAXED_SEVERITY: dict[LicenseFamily, Severity] = {
    "permissive": "ok",
    "weak-copyleft": "ok",
    "strong-copyleft": "ok",
    "network-copyleft": "warning",
}
_INTERNAL_SEVERITY: dict[LicenseFamily, Severity] = {
    "permissive": "ok",
    "weak-copyleft": "ok",
    "strong-copyleft": "warning",
    "network-copyleft": "warning",
}
# No distribution, so plain copyleft is reviewable; network copyleft is not
_SAAS_SEVERITY: dict[LicenseFamily, Severity] = {
    "permissive": "ok",
    "weak-copyleft": "warning",
    "strong-copyleft": "warning",
    "network-copyleft": "critical",
}


@dataclass(frozen=True)
class _Outcome:
    """Classification of a single license identifier."""

    spdx_id: str
    info: Optional[LicenseInfo]
    category: LicenseCategory
    severity: Severity
    reason: str

    @property
    def rank(self) -> tuple[int, int]:
        return CATEGORY_RANK[self.category], SEVERITY_ORDER[self.severity]


def family_severity(family: LicenseFamily, project_type: str) -> Severity:
    """Return the severity a license family carries for a project type."""
    if project_type in RELAXED_PROJECT_TYPES:
        return _RELAXED_SEVERITY[family]
    if project_type == "internal":
        return _INTERNAL_SEVERITY[family]
    if project_type == "saas":
        return _SAAS_SEVERITY[family]
    return _DEFAULT_SEVERITY[family]


def _matches_any(identifiers: tuple[str, ...], patterns: list[str]) -> bool:
    return any(matches_license_pattern(i, p) for i in identifiers for p in patterns)


def _apply_policy(
    identifiers: tuple[str, ...], severity: Severity, reason: str, config: LicenseConfig
) -> tuple[Severity, str]:
    if _matches_any(identifiers, config.deny):
        return "critical", "Explicitly denied in configuration"
    if _matches_any(identifiers, config.allow):
        return "ok", "Explicitly allowed in configuration"
    if _matches_any(identifiers, config.warn):
        if SEVERITY_ORDER[severity] < SEVERITY_ORDER["warning"]:
            severity = "warning"
        return severity, "Flagged for review in configuration"
    return severity, reason


def _classify_identifier(
    identifier: str, project_type: str, config: LicenseConfig
) -> _Outcome:
    declared = spdx_id = normalize_license(identifier)

    if is_invalid_license(spdx_id):
        return _Outcome(
            spdx_id=spdx_id,
            info=None,
            category="unlicensed",
            severity="critical",
            reason="Package is explicitly marked as unlicensed",
        )

    info = lookup_license(spdx_id)
    if info is None:
        severity: Severity = "warning" if config.warn_on_unknown else "ok"
        reason = (
            f'License "{spdx_id}" is not in the license database. '
            "Review manually or add it to the allow/deny lists."
        )
        category: LicenseCategory = "unknown"
    else:
        spdx_id = info.spdx_id
        category = FAMILY_CATEGORY[info.family]
        severity = family_severity(info.family, project_type)
        reason = f"{info.family.replace('-', ' ').capitalize()} license"

    # Policy entries may name either the deprecated or the current identifier
    severity, reason = _apply_policy((declared, spdx_id), severity, reason, config)
    return _Outcome(
        spdx_id=spdx_id, info=info, category=category, severity=severity, reason=reason
    )


def _classify_expression(
    node, project_type: str, config: LicenseConfig
) -> tuple[_Outcome, bool]:
    """Classify a parsed expression node.

    Returns:
        The effective outcome and whether an OR choice was encountered.
    """
    if isinstance(node, LicenseWithExceptionSymbol):
        return _classify_identifier(node.license_symbol.key, project_type, config), False
    if isinstance(node, LicenseSymbol):
        return _classify_identifier(node.key, project_type, config), False

    results = [_classify_expression(arg, project_type, config) for arg in node.args]
    outcomes = [outcome for outcome, _ in results]
    has_choice = any(dual for _, dual in results)

    if isinstance(node, LICENSING.OR):
        return min(outcomes, key=lambda o: o.rank), True
    # AND: every license applies at once
    return max(outcomes, key=lambda o: o.rank), has_choice


def _classify(
    license_text: str, project_type: str, config: LicenseConfig
) -> tuple[_Outcome, bool]:
    if not _OPERATOR_PATTERN.search(f" {license_text} "):
        return _classify_identifier(license_text.strip("() "), project_type, config), False

    try:
        parsed = LICENSING.parse(license_text)
    except ExpressionError as e:
        logger.debug("Could not parse license expression '%s': %s", license_text, e)
        return _classify_identifier(license_text.strip("() "), project_type, config), False

    if parsed is None:
        return _classify_identifier(license_text, project_type, config), False
    return _classify_expression(parsed, project_type, config)


def is_commercial_use_allowed(category: LicenseCategory, project_type: str) -> bool:
    if category == "commercial-friendly":
        return True
    if category == "commercial-warning":
        return project_type in RELAXED_PROJECT_TYPES
    return False


def analyze_license(
    metadata: PackageMetadata,
    project_type: str,
    config: LicenseConfig,
    version: Optional[str] = None,
) -> LicenseAnalysis:
    """Analyze a package's declared license against a project policy.

    Args:
        metadata: Registry metadata of the package.
        project_type: The project type the policy is evaluated for.
        config: License policy (allow/deny/warn lists and flags).
        version: Resolved version being analyzed, defaults to the latest.

    Returns:
        LicenseAnalysis describing category, severity and license traits.
    """
    version = version or metadata.version
    if is_invalid_license(metadata.license):
        declared = (metadata.license or "").strip()
        return LicenseAnalysis(
            package=metadata.name,
            version=version,
            license=declared or "UNLICENSED",
            category="unlicensed",
            blue_oak_rating="unrated",
            severity="critical",
            commercial_use=False,
            reason=(
                "Package is explicitly marked as unlicensed"
                if declared
                else "No license specified"
            ),
        )

    normalized = normalize_license(metadata.license)  # type: ignore[arg-type]
    outcome, is_dual = _classify(normalized, project_type, config)

    rating: BlueOakRating = outcome.info.rating if outcome.info else "unrated"
    has_patent = bool(
        config.check_patent_clauses and outcome.info and outcome.info.has_patent_clause
    )

    return LicenseAnalysis(
        package=metadata.name,
        version=version,
        license=normalized,
        spdx_id=outcome.spdx_id,
        category=outcome.category,
        blue_oak_rating=rating,
        severity=outcome.severity,
        commercial_use=is_commercial_use_allowed(outcome.category, project_type),
        is_dual_license=is_dual,
        has_patent_clause=has_patent,
        reason=outcome.reason,
    )


def calculate_license_score(
    category: LicenseCategory,
    blue_oak_rating: BlueOakRating,
    project_type: str,
    has_patent_clause: bool = False,
) -> float:
    """Calculate the license dimension score (0-1, higher is better).

    Args:
        category: Policy category of the license.
        blue_oak_rating: Blue Oak Council rating of the license.
        project_type: Project type the score is computed for.
        has_patent_clause: Whether the license grants patent rights.

    Returns:
        Score in [0, 1]; always 0.0 for unlicensed packages.
    """
    if category == "unlicensed":
        return 0.0

    relaxed = project_type in RELAXED_PROJECT_TYPES
    if category == "commercial-friendly":
        score = 1.0
    elif category == "commercial-warning":
        score = 0.8 if relaxed else 0.5
    elif category == "commercial-incompatible":
        score = 0.6 if relaxed else 0.0
    else:
        score = 0.3

    if is_legally_sound(blue_oak_rating):
        score *= 1.1
    elif blue_oak_rating == "lead":
        score *= 0.8
    if has_patent_clause:
        score += 0.05

    return max(0.0, min(1.0, score))
