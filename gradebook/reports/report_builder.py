import csv
import io
import re
from datetime import datetime, timezone
from typing import Any, Dict, List

from gradebook.engine.scorer import round_half_up
from gradebook.schemas.submission import ClassResults

CSV_HEADERS = [
    "Student Id",
    "Score",
    "Max Score",
    "Percentage",
    "Completed",
    "Submission Date",
]


def performance_level(percentage: float) -> str:
    if percentage >= 75:
        return "Advanced"
    if percentage >= 50:
        return "Intermediate"
    return "Beginner"


def generate_results_report(results: ClassResults) -> Dict[str, Any]:
    """Structured class report used by the DOCX export."""
    stats = results.stats

    # -------------------------
    # SUMMARY
    # -------------------------
    summary = [
        f"{stats.submission_count} submissions, {stats.completed_count} completed "
        f"({stats.completion_rate:.1f}% completion).",
        f"Average score {stats.average_score:.1f} out of {results.max_score}.",
        f"Highest score {stats.highest_score}, lowest score {stats.lowest_score}.",
        f"The assessment has {results.question_count} questions worth "
        f"{results.total_points:g} points in total.",
    ]

    # -------------------------
    # PER STUDENT
    # -------------------------
    students: List[Dict[str, Any]] = []
    levels = {"Advanced": 0, "Intermediate": 0, "Beginner": 0}

    for row in results.submissions:
        if not row.completed:
            students.append({
                "student_id": str(row.student_id),
                "score": None,
                "percentage": None,
                "level": None,
                "status": "Not completed",
            })
            continue

        level = performance_level(row.percentage or 0.0)
        levels[level] += 1
        students.append({
            "student_id": str(row.student_id),
            "score": row.score,
            "percentage": row.percentage,
            "level": level,
            "status": "Pass" if (row.percentage or 0.0) >= 50 else "Fail",
        })

    return {
        "title": results.title,
        "subject": results.subject,
        "due_date": results.due_date.isoformat() if results.due_date else None,
        "max_score": results.max_score,
        "summary": summary,
        "levels": levels,
        "students": students,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }


def generate_results_csv(results: ClassResults) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    for row in results.submissions:
        writer.writerow([
            str(row.student_id),
            row.score if row.completed else "Not completed",
            results.max_score,
            f"{round_half_up(row.percentage or 0)}%" if row.completed else "N/A",
            "Yes" if row.completed else "No",
            row.submitted_at.strftime("%Y-%m-%d %H:%M:%S") if row.submitted_at else "N/A",
        ])

    return buffer.getvalue()


def export_filename(title: str, extension: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9_-]+", "", "_".join(title.split())) or "assessment"
    return f"{safe}_results.{extension}"
