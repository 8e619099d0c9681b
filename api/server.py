"""
FastAPI server for the attendance and fines portal.

Run with ``python main.py serve`` or ``uvicorn --factory api.server:create_app``.
"""
import time
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

import uvicorn
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from attendance.dashboard import build_dashboard, month_keys
from attendance.fines import format_amount, prorate_fine
from attendance.sessions import filter_summaries, group_attendance, status_text
from database import (
    AdminRepository,
    AttendanceRepository,
    CourseRepository,
    Database,
    DatabaseError,
    EventRepository,
    FineReceiptRepository,
    FineRepository,
    IntegrityError,
    SectionRepository,
    SessionRepository,
    StudentRepository,
    create_database,
)
from utils.config import config
from utils.logger import logger
from utils.timeutils import now_in_timezone
from .auth import current_admin, hash_password, require, session_token, verify_password
from .schemas import (
    AdminCreateRequest,
    AdminUpdateRequest,
    AttendanceRequest,
    CourseRequest,
    EventRequest,
    FaceEncodingRequest,
    FineReceiptRequest,
    FineRequest,
    FineStatusRequest,
    LoginRequest,
    RegisterRequest,
    SectionRequest,
    StudentRequest,
    attendance_records,
)

PUBLIC_ADMIN_FIELDS = ("id", "username", "full_name", "email", "role")


@contextmanager
def database_errors(message: str, conflict_status: int = 409, conflict_message: str = None):
    """Turn persistence failures into HTTP errors with a generic message."""
    try:
        yield
    except IntegrityError as e:
        raise HTTPException(status_code=conflict_status, detail=conflict_message or message) from e
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=message) from e


def public_admin(admin: Dict[str, Any]) -> Dict[str, Any]:
    return {field: admin.get(field) for field in PUBLIC_ADMIN_FIELDS}


class PortalServer:
    """Portal API: owns the database repositories and the FastAPI app."""

    def __init__(self, database: Database = None, settings=None,
                 clock: Callable[[], datetime] = None):
        self.settings = settings or config
        self.db = database or create_database(self.settings.database)
        self.clock = clock or (lambda: now_in_timezone(self.settings.detection.timezone))

        self.students = StudentRepository(self.db)
        self.courses = CourseRepository(self.db)
        self.sections = SectionRepository(self.db)
        self.events = EventRepository(self.db)
        self.attendance = AttendanceRepository(self.db)
        self.fines = FineRepository(self.db)
        self.receipts = FineReceiptRepository(self.db)
        self.admins = AdminRepository(self.db)
        self.sessions = SessionRepository(self.db)

        self.app = FastAPI(
            title="Attendance Portal API",
            description="REST API for school attendance, fines and face check-in",
            version="1.0.0"
        )
        self.app.state.server = self
        self._setup_api()

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> str:
        return self.now().date().isoformat()

    def _setup_api(self):
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.settings.api.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self._setup_exception_handlers()

        @self.app.get("/health")
        def health_check():
            return {"status": "healthy", "database": self.db.dialect, "timestamp": time.time()}

        self._setup_auth_routes()
        self._setup_admin_routes()
        self._setup_student_routes()
        self._setup_course_routes()
        self._setup_section_routes()
        self._setup_event_routes()
        self._setup_attendance_routes()
        self._setup_fine_routes()
        self._setup_dashboard_routes()

    def _setup_exception_handlers(self):
        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

        @self.app.exception_handler(RequestValidationError)
        async def validation_exception_handler(request: Request, exc: RequestValidationError):
            errors = []
            for error in exc.errors():
                location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
                errors.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
            return JSONResponse(
                status_code=400,
                content={"message": "Invalid request: " + "; ".join(errors), "errors": errors},
            )

        @self.app.exception_handler(DatabaseError)
        async def database_exception_handler(request: Request, exc: DatabaseError):
            logger.error(f"Unhandled database error on {request.url.path}: {exc}")
            return JSONResponse(status_code=500, content={"message": "Database error"})

        @self.app.exception_handler(Exception)
        async def global_exception_handler(request: Request, exc: Exception):
            logger.error(f"Global exception handler: {exc}")
            return JSONResponse(status_code=500, content={"message": "Internal server error"})

    # Auth

    def _setup_auth_routes(self):
        app = self.app
        cookie_name = self.settings.api.session_cookie

        @app.post("/auth/login")
        def login(request: LoginRequest, response: Response):
            with database_errors("Error during login"):
                admin = self.admins.find_for_login(request.username)
                if admin is None or not verify_password(request.password, admin["password_hash"]):
                    logger.warning(f"Failed login for {request.username}")
                    raise HTTPException(status_code=401, detail="Invalid username or password")

                now = self.now()
                token = self.sessions.create(admin["id"], now, self.settings.api.session_hours)
                self.sessions.log_activity(admin["id"], "login", now)

            response.set_cookie(
                cookie_name, token,
                max_age=self.settings.api.session_hours * 3600,
                httponly=True,
                samesite="lax",
            )
            logger.log_event("ADMIN_LOGIN", {'username': admin["username"], 'role': admin["role"]})
            return {"message": "Login successful", "admin": public_admin(admin)}

        @app.post("/auth/logout")
        def logout(http_request: Request, response: Response):
            token = session_token(http_request)
            if token:
                with database_errors("Error during logout"):
                    admin = self.sessions.get_admin(token, self.now())
                    self.sessions.delete(token)
                    if admin is not None:
                        self.sessions.log_activity(admin["id"], "logout", self.now())
                        logger.log_event("ADMIN_LOGOUT", {'username': admin["username"]})
            response.delete_cookie(cookie_name)
            return {"message": "Logged out"}

        @app.get("/auth/me")
        def me(admin: Dict[str, Any] = Depends(current_admin)):
            return public_admin(admin)

        @app.get("/auth/session")
        def session_status(http_request: Request):
            token = session_token(http_request)
            admin = None
            if token:
                with database_errors("Error checking session"):
                    admin = self.sessions.get_admin(token, self.now())
            if admin is None:
                return {"authenticated": False, "admin": None}
            return {
                "authenticated": True,
                "admin": public_admin(admin),
                "expires_at": str(admin.get("expires_at")),
            }

        @app.post("/auth/register", status_code=201)
        def register(request: RegisterRequest):
            with database_errors("Error registering admin",
                                 conflict_message="Username or email already exists"):
                if self.admins.exists(request.username, request.email):
                    raise HTTPException(status_code=409, detail="Username or email already exists")
                admin_id = self.admins.create(
                    request.username, request.full_name, hash_password(request.password),
                    request.email, self.settings.api.default_admin_role,
                )
            logger.log_event("ADMIN_REGISTERED", {'username': request.username})
            return {"message": "Admin registered", "id": admin_id}

    def _setup_admin_routes(self):
        app = self.app

        @app.get("/admin-users")
        def list_admins(admin=Depends(require("admins:read"))):
            with database_errors("Error fetching admin users"):
                return self.admins.list_active()

        @app.post("/admin-users", status_code=201)
        def create_admin(request: AdminCreateRequest, admin=Depends(require("admins:write"))):
            with database_errors("Error creating admin user",
                                 conflict_message="Username or email already exists"):
                if self.admins.exists(request.username, request.email):
                    raise HTTPException(status_code=409, detail="Username or email already exists")
                admin_id = self.admins.create(
                    request.username, request.full_name, hash_password(request.password),
                    request.email, request.role or self.settings.api.default_admin_role,
                )
            return {"message": "Admin user created", "id": admin_id}

        @app.put("/admin-users/{admin_id}")
        def update_admin(admin_id: int, request: AdminUpdateRequest,
                         admin=Depends(require("admins:write"))):
            with database_errors("Error updating admin user",
                                 conflict_message="Email already exists"):
                if not self.admins.update(admin_id, request.full_name, request.email, request.role):
                    raise HTTPException(status_code=404, detail="Admin user not found")
            return {"message": "Admin user updated"}

        @app.delete("/admin-users/{admin_id}")
        def delete_admin(admin_id: int, admin=Depends(require("admins:write"))):
            with database_errors("Error deleting admin user"):
                if not self.admins.deactivate(admin_id):
                    raise HTTPException(status_code=404, detail="Admin user not found")
            return {"message": "Admin user deleted"}

    # Students, courses and sections

    def _setup_student_routes(self):
        app = self.app
        conflict = "Student number already exists or course/section not found"

        @app.get("/students")
        def list_students(course_id: Optional[int] = None, admin=Depends(require("students:read"))):
            with database_errors("Error fetching students"):
                return self.students.list_active(course_id)

        @app.post("/students", status_code=201)
        def create_student(request: StudentRequest, admin=Depends(require("students:write"))):
            with database_errors("Error creating student", conflict_message=conflict):
                student_id = self.students.create(request.model_dump())
            return {"message": "Student created", "id": student_id}

        @app.put("/students/{student_id}")
        def update_student(student_id: int, request: StudentRequest,
                           admin=Depends(require("students:write"))):
            with database_errors("Error updating student", conflict_message=conflict):
                if not self.students.update(student_id, request.model_dump()):
                    raise HTTPException(status_code=404, detail="Student not found")
            return {"message": "Student updated"}

        @app.put("/students/{student_id}/face-encoding")
        def update_face_encoding(student_id: int, request: FaceEncodingRequest,
                                 admin=Depends(require("students:write"))):
            with database_errors("Error updating face encoding"):
                if not self.students.update_face_encoding(student_id, request.face_encoding):
                    raise HTTPException(status_code=404, detail="Student not found")
            logger.log_event("FACE_ENCODING_UPDATED", {'student_id': student_id})
            return {"message": "Face encoding updated"}

        @app.delete("/students/{student_id}")
        def delete_student(student_id: int, admin=Depends(require("students:write"))):
            with database_errors("Error deleting student"):
                if not self.students.deactivate(student_id):
                    raise HTTPException(status_code=404, detail="Student not found")
            return {"message": "Student deleted"}

    def _setup_course_routes(self):
        app = self.app

        @app.get("/courses")
        def list_courses(admin=Depends(require("courses:read"))):
            with database_errors("Error fetching courses"):
                return self.courses.list()

        @app.post("/courses", status_code=201)
        def create_course(request: CourseRequest, admin=Depends(require("courses:write"))):
            with database_errors("Error creating course"):
                course_id = self.courses.create(request.course_name, request.course_code)
            return {"message": "Course created", "id": course_id}

        @app.put("/courses/{course_id}")
        def update_course(course_id: int, request: CourseRequest,
                          admin=Depends(require("courses:write"))):
            with database_errors("Error updating course"):
                if not self.courses.update(course_id, request.course_name, request.course_code):
                    raise HTTPException(status_code=404, detail="Course not found")
            return {"message": "Course updated"}

        @app.delete("/courses/{course_id}")
        def delete_course(course_id: int, admin=Depends(require("courses:write"))):
            with database_errors("Error deleting course"):
                if not self.courses.delete(course_id):
                    raise HTTPException(status_code=404, detail="Course not found")
            return {"message": "Course deleted"}

    def _setup_section_routes(self):
        app = self.app
        conflict = "Course not found"

        @app.get("/sections")
        def list_sections(course_id: Optional[int] = None, admin=Depends(require("sections:read"))):
            with database_errors("Error fetching sections"):
                return self.sections.list_active(course_id)

        @app.post("/sections", status_code=201)
        def create_section(request: SectionRequest, admin=Depends(require("sections:write"))):
            with database_errors("Error creating section", 400, conflict):
                section_id = self.sections.create(request.model_dump())
            return {"message": "Section created", "id": section_id}

        @app.put("/sections/{section_id}")
        def update_section(section_id: int, request: SectionRequest,
                           admin=Depends(require("sections:write"))):
            with database_errors("Error updating section", 400, conflict):
                if not self.sections.update(section_id, request.model_dump()):
                    raise HTTPException(status_code=404, detail="Section not found")
            return {"message": "Section updated"}

        @app.delete("/sections/{section_id}")
        def delete_section(section_id: int, admin=Depends(require("sections:write"))):
            with database_errors("Error deleting section"):
                if not self.sections.deactivate(section_id):
                    raise HTTPException(status_code=404, detail="Section not found")
            return {"message": "Section deleted"}

    # Events and attendance

    def _setup_event_routes(self):
        app = self.app

        @app.get("/events")
        def list_events(admin=Depends(require("events:read"))):
            with database_errors("Error fetching events"):
                return self.events.list()

        @app.get("/events/{event_id}")
        def get_event(event_id: int, admin=Depends(require("events:read"))):
            with database_errors("Error fetching event"):
                event = self.events.get(event_id)
            if event is None:
                raise HTTPException(status_code=404, detail="Event not found")
            return event

        @app.post("/events", status_code=201)
        def create_event(request: EventRequest, admin=Depends(require("events:write"))):
            with database_errors("Error creating event", 400, "Course not found"):
                event_id = self.events.create(request.model_dump())
            logger.log_event("EVENT_CREATED", {'event_id': event_id, 'event_name': request.event_name})
            return {"message": "Event created", "id": event_id}

        @app.put("/events/{event_id}")
        def update_event(event_id: int, request: EventRequest,
                         admin=Depends(require("events:write"))):
            with database_errors("Error updating event", 400, "Course not found"):
                if not self.events.update(event_id, request.model_dump()):
                    raise HTTPException(status_code=404, detail="Event not found")
            return {"message": "Event updated"}

        @app.delete("/events/{event_id}")
        def delete_event(event_id: int, admin=Depends(require("events:write"))):
            with database_errors("Error deleting event"):
                if not self.events.delete(event_id):
                    raise HTTPException(status_code=404, detail="Event not found")
            return {"message": "Event deleted"}

    def _setup_attendance_routes(self):
        app = self.app

        @app.post("/attendance", status_code=201)
        def record_attendance(payload: Union[Dict[str, Any], List[Any]] = Body(...),
                              admin=Depends(require("attendance:write"))):
            raw_records = attendance_records(payload)
            if not raw_records:
                raise HTTPException(status_code=400, detail="No attendance records provided")

            # Validate the whole batch before writing anything
            records = []
            for index, item in enumerate(raw_records):
                try:
                    records.append(AttendanceRequest.model_validate(item))
                except ValidationError as e:
                    first = e.errors()[0]
                    field = ".".join(str(part) for part in first.get("loc", ()))
                    raise HTTPException(
                        status_code=400,
                        detail=f"Invalid attendance record {index}: {field} {first.get('msg')}".strip(),
                    )

            to_write = []
            for record in records:
                if record.event_id is None:
                    logger.warning(f"Skipping attendance for student {record.student_id}: missing event_id")
                    continue
                to_write.append(record.model_dump())

            with database_errors("Error recording attendance", 400, "Unknown student or event"):
                self.attendance.upsert(to_write, self.now())

            for record in to_write:
                logger.log_attendance_event(record["student_id"], "ATTENDANCE_RECORDED", {
                    'event_id': record["event_id"],
                    'session': record["session"],
                    'type': record["type"],
                    'recorded_by': admin.get("username"),
                })
            return {"message": "Attendance recorded", "recorded": len(to_write)}

        @app.get("/attendance")
        def list_attendance(event_id: Optional[int] = Query(None, alias="eventId"),
                            admin=Depends(require("attendance:read"))):
            with database_errors("Error fetching attendance"):
                if event_id is not None:
                    return self.attendance.list_for_event(event_id)
                return self.attendance.list_all()

        @app.get("/attendance/summary")
        def attendance_summary(event_id: Optional[int] = Query(None, alias="eventId"),
                               search: str = "",
                               status: str = Query("all", pattern="^(all|present|partial|absent)$"),
                               course_id: Optional[int] = Query(None, alias="courseId"),
                               admin=Depends(require("attendance:read"))):
            with database_errors("Error fetching attendance summary"):
                if event_id is not None:
                    rows = self.attendance.list_for_event(event_id)
                else:
                    rows = self.attendance.list_all()

            summaries = filter_summaries(group_attendance(rows), search, status,
                                         event_id=event_id, course_id=course_id)
            result = []
            for summary in summaries:
                data = summary.to_dict()
                fine = prorate_fine(summary.fine_amount, summary.sessions_attended)
                data["status_text"] = status_text(summary.sessions_attended)
                data["fine"] = fine
                data["fine_display"] = format_amount(fine)
                result.append(data)
            return result

    # Fines and receipts

    def _setup_fine_routes(self):
        app = self.app

        @app.get("/fines")
        def list_fines(status: Optional[str] = Query(None, pattern="^(paid|unpaid)$"),
                       admin=Depends(require("fines:read"))):
            with database_errors("Error fetching fines"):
                return self.fines.list(status)

        @app.post("/fines", status_code=201)
        def create_fine(request: FineRequest, admin=Depends(require("fines:write"))):
            with database_errors("Error creating fine", 400, "Student not found"):
                fine_id = self.fines.create(
                    request.student_id, request.amount, request.reason,
                    request.date or self.today(), self.now(),
                )
            return {"message": "Fine created", "id": fine_id}

        @app.put("/fines/{fine_id}")
        def update_fine_status(fine_id: int, request: FineStatusRequest,
                               admin=Depends(require("fines:write"))):
            paid_date = self.today() if request.status == "paid" else None
            with database_errors("Error updating fine"):
                if not self.fines.set_status(fine_id, request.status, paid_date):
                    raise HTTPException(status_code=404, detail="Fine not found")
            return {"message": "Fine updated"}

        @app.delete("/fines/{fine_id}")
        def delete_fine(fine_id: int, admin=Depends(require("fines:write"))):
            with database_errors("Error deleting fine"):
                if not self.fines.delete(fine_id):
                    raise HTTPException(status_code=404, detail="Fine not found")
            return {"message": "Fine deleted"}

        @app.get("/fine-receipts")
        def list_receipts(admin=Depends(require("fine_receipts:read"))):
            with database_errors("Error fetching fine receipts"):
                return self.receipts.list()

        @app.post("/fine-receipts", status_code=201)
        def create_receipt(request: FineReceiptRequest, admin=Depends(require("fine_receipts:write"))):
            with database_errors("Error creating fine receipt"):
                if self.fines.get(request.fine_id) is None:
                    raise HTTPException(status_code=404, detail="Fine not found")
                receipt = self.receipts.create(
                    request.fine_id, request.amount_paid, request.payment_method,
                    request.payment_date or self.today(),
                )
            logger.log_event("FINE_PAID", {'fine_id': request.fine_id, **receipt})
            return {"message": "Receipt created", **receipt}

    # Dashboard

    def _setup_dashboard_routes(self):
        @self.app.get("/dashboard")
        def dashboard(admin=Depends(require("dashboard:read"))):
            now = self.now()
            with database_errors("Error fetching dashboard data"):
                counts = {
                    "students": self.students.count_active(),
                    "courses": self.courses.count(),
                    "events": self.events.count(),
                    "sections": self.sections.count_active(),
                    "attendance": self.attendance.count(),
                }
                summaries = group_attendance(self.attendance.list_all())
                since = datetime.fromisoformat(f"{month_keys(now)[0]}-01")
                recent_rows = self.attendance.rows_since(since)
                attending = self.attendance.distinct_students()
                logins = self.sessions.logins_by_role(now - timedelta(days=30))
                courses = self.courses.list()

            return build_dashboard(counts, summaries, courses, recent_rows, attending, logins, now)


def create_app(database: Database = None, settings=None,
               clock: Callable[[], datetime] = None) -> FastAPI:
    """Build the portal app; the schema is created if missing."""
    server = PortalServer(database, settings, clock)
    server.db.initialize_schema()
    return server.app


def run_server(host: str = None, port: int = None):
    host = host or config.api.host
    port = port or config.api.port
    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run(create_app(), host=host, port=port, log_level="info")
