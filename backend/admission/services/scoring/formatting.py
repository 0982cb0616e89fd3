from admission.services.scoring.types import AdmissionScoreResult


def format_score_summary(result: AdmissionScoreResult, horizon_months: int = 6) -> str:
    """Plain-text summary of a score result for CLI and chat replies."""
    median = result["estimated_months_median"]
    lines = [
        f"{result['facility_name']}: admission probability within {horizon_months} months "
        f"{round(result['probability'] * 100)}% (grade {result['grade']}, score {result['admission_score']}, "
        f"confidence {round(result['confidence'] * 100)}%)",
        "",
        "Evidence:",
    ]
    lines.extend(f"- {card['summary']}" for card in result["evidence"])
    lines.append("")
    lines.append(
        f"Expected wait: {max(1, median - 1)}-{median + 1} months (median {median}, "
        f"80th percentile {result['estimated_months_80th']})"
    )
    return "\n".join(lines)
