"""
Configuration settings for the attendance portal.
Covers the database, HTTP API, live face detection and camera, with
environment overrides and validation.
"""
import os
import logging
from dataclasses import dataclass, field
from typing import Tuple, List
from pathlib import Path

# Configure logging for config module
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

VALID_ROLES = ("superadmin", "fine_manager", "receipt_manager", "student_registrar")


@dataclass
class DatabaseConfig:
    """Database connection settings."""
    backend: str = "sqlite"  # sqlite or mysql
    sqlite_path: str = "portal_data/attendance.db"
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = "root"
    name: str = "attendance_portal"


@dataclass
class ApiConfig:
    """HTTP API settings."""
    host: str = "0.0.0.0"
    port: int = 8080
    session_cookie: str = "admin_session"
    session_hours: int = 24
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    default_admin_role: str = "student_registrar"


@dataclass
class DetectionConfig:
    """Live face check-in settings."""
    api_url: str = "http://localhost:8080"
    match_threshold: float = 0.4
    dwell_ms: int = 3000  # continuous detection required before a write
    debounce_ms: int = 2000  # minimum gap between checks per student
    max_missed_frames: int = 2  # consecutive frames a student may drop out of without restarting the dwell
    error_notice_ms: int = 4000
    confirm_notice_ms: int = 3000
    model: str = "hog"  # hog or cnn
    detection_scale: float = 0.5  # Scale down for faster detection
    max_faces: int = 5
    write_workers: int = 2
    timezone: str = "Asia/Manila"


@dataclass
class CameraConfig:
    """Camera configuration settings."""
    device_id: int = 0
    resolution: Tuple[int, int] = (1280, 720)
    fps: int = 30
    buffer_size: int = 1


@dataclass
class LoggingConfig:
    """Logging and storage configuration."""
    log_level: str = "INFO"
    output_dir: str = "portal_output"
    attendance_log_file: str = "attendance.log"
    max_attendance_events: int = 1000


class Config:
    """Main configuration class with proper error handling and validation."""

    def __init__(self):
        self.database = DatabaseConfig()
        self.api = ApiConfig()
        self.detection = DetectionConfig()
        self.camera = CameraConfig()
        self.logging = LoggingConfig()

        # Load environment variables
        self._load_environment_variables()

        # Validate configuration
        self._validate_configuration()

        # Create necessary directories
        self._create_directories()

    def _load_environment_variables(self):
        """Load configuration from environment variables with proper error handling."""
        try:
            # Database settings
            self.database.backend = os.getenv("DB_BACKEND", self.database.backend).lower()
            self.database.sqlite_path = os.getenv("SQLITE_PATH", self.database.sqlite_path)
            self.database.host = os.getenv("DB_HOST", self.database.host)
            self.database.user = os.getenv("DB_USER", self.database.user)
            self.database.password = os.getenv("DB_PASSWORD", self.database.password)
            self.database.name = os.getenv("DB_NAME", self.database.name)
            try:
                self.database.port = int(os.getenv("DB_PORT", self.database.port))
            except ValueError as e:
                logger.warning(f"Invalid database port, using default: {e}")

            # API settings
            self.api.host = os.getenv("API_HOST", self.api.host)
            try:
                self.api.port = int(os.getenv("API_PORT", self.api.port))
            except ValueError as e:
                logger.warning(f"Invalid API port, using default: {e}")

            self.api.default_admin_role = os.getenv("API_DEFAULT_ADMIN_ROLE", self.api.default_admin_role)
            try:
                self.api.session_hours = int(os.getenv("SESSION_HOURS", self.api.session_hours))
            except ValueError as e:
                logger.warning(f"Invalid session lifetime, using default: {e}")

            origins = os.getenv("CORS_ORIGINS")
            if origins:
                self.api.cors_origins = [o.strip() for o in origins.split(",") if o.strip()]

            # Detection settings
            self.detection.api_url = os.getenv("PORTAL_API_URL", self.detection.api_url)
            self.detection.timezone = os.getenv("PORTAL_TIMEZONE", self.detection.timezone)
            self.detection.model = os.getenv("FACE_MODEL", self.detection.model)

            try:
                self.detection.match_threshold = float(
                    os.getenv("MATCH_THRESHOLD", self.detection.match_threshold)
                )
                if not 0.0 < self.detection.match_threshold <= 1.0:
                    raise ValueError("Match threshold must be between 0.0 and 1.0")
            except ValueError as e:
                logger.warning(f"Invalid match threshold, using default: {e}")
                self.detection.match_threshold = DetectionConfig.match_threshold

            try:
                self.detection.dwell_ms = int(os.getenv("DWELL_MS", self.detection.dwell_ms))
                self.detection.debounce_ms = int(os.getenv("DEBOUNCE_MS", self.detection.debounce_ms))
                self.detection.max_missed_frames = int(
                    os.getenv("MAX_MISSED_FRAMES", self.detection.max_missed_frames)
                )
            except ValueError as e:
                logger.warning(f"Invalid detection timing, using defaults: {e}")

            # Camera settings
            self.camera.device_id = int(os.getenv("CAMERA_ID", self.camera.device_id))

            resolution_str = os.getenv("CAMERA_RESOLUTION")
            if resolution_str:
                try:
                    width, height = map(int, resolution_str.split('x'))
                    self.camera.resolution = (width, height)
                except ValueError:
                    logger.warning(f"Invalid resolution format: {resolution_str}, using default")

            # Logging
            self.logging.output_dir = os.getenv("OUTPUT_DIR", self.logging.output_dir)
            log_level = os.getenv("LOG_LEVEL", self.logging.log_level).upper()
            if log_level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
                self.logging.log_level = log_level
            else:
                logger.warning(f"Invalid log level: {log_level}, using default")

        except Exception as e:
            logger.error(f"Error loading environment variables: {e}")
            logger.info("Using default configuration values")

    def _validate_configuration(self):
        """Validate configuration values."""
        errors = []

        if self.database.backend not in ("sqlite", "mysql"):
            errors.append("Database backend must be 'sqlite' or 'mysql'")

        if not 0 < self.database.port < 65536:
            errors.append("Database port must be between 1 and 65535")

        if not 0 < self.api.port < 65536:
            errors.append("API port must be between 1 and 65535")

        if self.api.session_hours <= 0:
            errors.append("Session lifetime must be positive")

        if self.api.default_admin_role not in VALID_ROLES:
            errors.append(f"Default admin role must be one of {', '.join(VALID_ROLES)}")

        if not 0.0 < self.detection.match_threshold <= 1.0:
            errors.append("Match threshold must be between 0.0 and 1.0")

        if self.detection.dwell_ms < 0 or self.detection.debounce_ms < 0:
            errors.append("Dwell and debounce times must be non-negative")

        if self.detection.max_missed_frames < 0:
            errors.append("Max missed frames must be non-negative")

        if not 0.1 <= self.detection.detection_scale <= 1.0:
            errors.append("Face detection scale must be between 0.1 and 1.0")

        if self.camera.device_id < 0:
            errors.append("Camera device ID must be non-negative")

        if self.camera.fps <= 0:
            errors.append("Camera FPS must be positive")

        if any(dim <= 0 for dim in self.camera.resolution):
            errors.append("Camera resolution must have positive width and height")

        if errors:
            error_msg = "Configuration validation errors:\n" + "\n".join(f"- {error}" for error in errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

        logger.info("Configuration validation passed")

    def _create_directories(self):
        """Create required directories if they don't exist."""
        directories = [
            self.logging.output_dir,
            os.path.join(self.logging.output_dir, "logs"),
        ]
        if self.database.backend == "sqlite":
            sqlite_dir = os.path.dirname(self.database.sqlite_path)
            if sqlite_dir:
                directories.append(sqlite_dir)

        for directory in directories:
            try:
                Path(directory).mkdir(parents=True, exist_ok=True)
                logger.debug(f"Created/verified directory: {directory}")
            except Exception as e:
                logger.warning(f"Could not create directory {directory}: {e}")

    def get_effective_config(self) -> dict:
        """Get complete effective configuration as dictionary (secrets omitted)."""
        return {
            'database': {
                'backend': self.database.backend,
                'sqlite_path': self.database.sqlite_path,
                'host': self.database.host,
                'port': self.database.port,
                'name': self.database.name,
            },
            'api': {
                'host': self.api.host,
                'port': self.api.port,
                'session_hours': self.api.session_hours,
            },
            'detection': {
                'api_url': self.detection.api_url,
                'match_threshold': self.detection.match_threshold,
                'dwell_ms': self.detection.dwell_ms,
                'debounce_ms': self.detection.debounce_ms,
                'max_missed_frames': self.detection.max_missed_frames,
                'timezone': self.detection.timezone,
            },
            'camera': {
                'device_id': self.camera.device_id,
                'resolution': self.camera.resolution,
                'fps': self.camera.fps,
            },
            'logging': {
                'log_level': self.logging.log_level,
                'output_dir': self.logging.output_dir,
            },
        }


# Global configuration instance with error handling
try:
    config = Config()
    logger.info("Configuration initialized successfully")
except Exception as e:
    logger.error(f"Failed to initialize configuration: {e}")
    # Create minimal fallback configuration
    config = Config.__new__(Config)
    config.database = DatabaseConfig()
    config.api = ApiConfig()
    config.detection = DetectionConfig()
    config.camera = CameraConfig()
    config.logging = LoggingConfig()
    logger.warning("Using fallback configuration")

