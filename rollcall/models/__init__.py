"""Beanie document models and Pydantic schemas."""
from rollcall.models.user import User, UserRole, UserCreate, UserLogin, user_to_dict
from rollcall.models.school_class import ClassRoom, ClassCreate, AddStudentRequest, class_to_dict
from rollcall.models.attendance import AttendanceRecord, AttendanceStatus, StartAttendanceRequest

__all__ = [
    "User",
    "UserRole",
    "UserCreate",
    "UserLogin",
    "user_to_dict",
    "ClassRoom",
    "ClassCreate",
    "AddStudentRequest",
    "class_to_dict",
    "AttendanceRecord",
    "AttendanceStatus",
    "StartAttendanceRequest",
]
