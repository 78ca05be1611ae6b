from docx import Document


def generate_results_docx(report: dict, file_path) -> None:
    """Render a class report (see generate_results_report) to a .docx file or stream."""
    doc = Document()

    # Title
    doc.add_heading(f"{report['title']} - Results", level=1)
    if report.get("subject"):
        doc.add_paragraph(f"Subject: {report['subject']}")
    doc.add_paragraph(f"Due: {report['due_date'] or 'No due date'}")

    # Summary
    doc.add_heading("Summary", level=2)
    for line in report["summary"]:
        doc.add_paragraph(line)

    # Levels
    doc.add_heading("Performance Levels", level=2)
    for level, count in report["levels"].items():
        doc.add_paragraph(f"{level}: {count}", style="List Bullet")

    # Students
    doc.add_heading("Students", level=2)
    table = doc.add_table(rows=1, cols=4)
    header = table.rows[0].cells
    header[0].text = "Student"
    header[1].text = "Score"
    header[2].text = "Level"
    header[3].text = "Status"

    for student in report["students"]:
        cells = table.add_row().cells
        cells[0].text = student["student_id"]
        cells[1].text = (
            f"{student['score']} / {report['max_score']} ({student['percentage']}%)"
            if student["score"] is not None else "-"
        )
        cells[2].text = student["level"] or "-"
        cells[3].text = student["status"]

    doc.save(file_path)
