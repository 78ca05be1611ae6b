import os
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse, Response
from sqlalchemy.orm import Session

from gradebook.api.errors import http_error
from gradebook.core.config import settings
from gradebook.core.errors import GradebookError
from gradebook.db.session import get_db
from gradebook.reports.report_builder import (
    export_filename,
    generate_results_csv,
    generate_results_report,
)
from gradebook.reports.report_docx import generate_results_docx
from gradebook.schemas.submission import ClassResults
from gradebook.services.results import ResultsService

router = APIRouter(prefix="/assessments", tags=["Assessment Results"])


@router.get("/{assessment_id}/results", response_model=ClassResults)
def get_class_results(
    assessment_id: UUID,
    teacher_id: UUID = Query(...),
    db: Session = Depends(get_db),
):
    try:
        return ResultsService.class_results(db, assessment_id, teacher_id)
    except GradebookError as exc:
        raise http_error(exc)


@router.get("/{assessment_id}/results/export")
def export_class_results(
    assessment_id: UUID,
    teacher_id: UUID = Query(...),
    format: Literal["csv", "docx"] = Query("csv"),
    db: Session = Depends(get_db),
):
    try:
        results = ResultsService.class_results(db, assessment_id, teacher_id)
    except GradebookError as exc:
        raise http_error(exc)

    # ---------------------------------
    # CSV
    # ---------------------------------
    if format == "csv":
        file_name = export_filename(results.title, "csv")
        return Response(
            content=generate_results_csv(results),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
        )

    # ---------------------------------
    # DOCX
    # ---------------------------------
    os.makedirs(settings.REPORTS_DIR, exist_ok=True)
    file_path = os.path.join(settings.REPORTS_DIR, f"results_{assessment_id}.docx")
    generate_results_docx(generate_results_report(results), file_path)

    return FileResponse(
        path=file_path,
        filename=export_filename(results.title, "docx"),
        media_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    )
