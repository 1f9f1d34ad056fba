from typing import Any, Dict, List, Optional


def build_summary(
    stage_counts: List[Dict[str, Any]],
    joins: List[Dict[str, Any]],
    quality: List[Dict[str, Any]],
    warnings: List[str],
    validation: Optional[Dict[str, Any]],
    outputs: Optional[List[str]] = None,
) -> Dict[str, Any]:
    return {
        "stages": stage_counts,
        "joins": joins,
        "quality_checks": quality,
        "warnings": warnings,
        "validation": validation,
        "outputs": outputs or [],
    }
