from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.schemas.catalog import StudentRequest, StudentResponse
from entitlements.services import catalog
from entitlements.storage.database import get_db

router = APIRouter(prefix="/api/students", tags=["students"])


@router.post("", response_model=StudentResponse)
async def register_student(payload: StudentRequest, db: AsyncSession = Depends(get_db)):
    student = await catalog.register_student(db, payload.student_id, payload.name)
    return StudentResponse(student_id=student.student_id, name=student.name)
