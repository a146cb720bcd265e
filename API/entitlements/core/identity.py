from fastapi import HTTPException, Request


def resolve_student_id(request: Request, fallback: str | None = None) -> str:
    """Student id from the x-student-id header, else the request's own studentId field."""
    student_id = (request.headers.get("x-student-id") or fallback or "").strip()
    if not student_id:
        raise HTTPException(status_code=401, detail="Student identity required (x-student-id header or studentId)")
    return student_id
