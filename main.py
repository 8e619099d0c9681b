#!/usr/bin/env python3
"""
Attendance portal command line.
Runs the API server, prepares the database and drives the face check-in station.
"""
import argparse
import getpass
import os
import signal
import sys

from utils.config import config
from utils.logger import logger


def _login(client, args) -> bool:
    """Log the portal client in with CLI or environment credentials."""
    username = args.username or os.getenv("PORTAL_USERNAME")
    password = args.password or os.getenv("PORTAL_PASSWORD")
    if not username:
        username = input("Portal username: ")
    if not password:
        password = getpass.getpass("Portal password: ")

    result = client.login(username, password)
    if not result.ok:
        print(f"Error: login failed: {result.error}")
        return False
    return True


def cmd_serve(args) -> int:
    from api.server import run_server

    print("=" * 60)
    print("Attendance Portal API")
    print("=" * 60)
    print(f"Database: {config.database.backend}")
    print(f"Listening: {args.host or config.api.host}:{args.port or config.api.port}")
    print("=" * 60)

    logger.info(f"Effective configuration: {config.get_effective_config()}")
    run_server(args.host, args.port)
    return 0


def cmd_init_db(args) -> int:
    from database import create_database

    db = create_database(config.database)
    db.initialize_schema()
    print(f"Database schema ready ({db.dialect})")
    return 0


def cmd_create_admin(args) -> int:
    from api.auth import hash_password
    from database import AdminRepository, create_database

    password = args.password or getpass.getpass("Password: ")
    if len(password) < 6:
        print("Error: password must be at least 6 characters")
        return 1

    db = create_database(config.database)
    db.initialize_schema()
    admins = AdminRepository(db)
    if admins.exists(args.username, args.email):
        print(f"Error: admin {args.username} already exists")
        return 1

    admin_id = admins.create(args.username, args.full_name or args.username,
                             hash_password(password), args.email, args.role)
    logger.log_event("ADMIN_CREATED", {'id': admin_id, 'username': args.username, 'role': args.role})
    print(f"Created {args.role} {args.username} (id {admin_id})")
    return 0


def cmd_detect(args) -> int:
    from camera.stream_handler import CameraStream
    from detection.client import PortalClient
    from detection.session import DetectionSession

    client = PortalClient(args.api_url)
    if not _login(client, args):
        return 1

    session = DetectionSession(
        client,
        args.event_id,
        camera=CameraStream(args.camera),
        threshold=args.threshold,
        gui_mode=not args.headless,
    )

    def _signal_handler(signum, frame):
        logger.info(f"Received signal {signum}")
        session.stop()

    signal.signal(signal.SIGTERM, _signal_handler)

    print(f"Camera: {args.camera if args.camera is not None else config.camera.device_id}")
    print(f"Display: {'Headless' if args.headless else 'GUI'}")
    if not args.headless:
        print("Press Q to quit")
    else:
        print("Press Ctrl+C to quit")

    try:
        session.open()
        session.run()
    finally:
        session.close()
        client.close()
    return 0


def cmd_enroll(args) -> int:
    from detection.client import PortalClient
    from face_matching import encode_face_image, encoding_to_string

    if not os.path.exists(args.image):
        print(f"Error: image does not exist: {args.image}")
        return 1

    encoding = encode_face_image(args.image)

    client = PortalClient(args.api_url)
    try:
        if not _login(client, args):
            return 1
        result = client.update_face_encoding(args.student_id, encoding_to_string(encoding))
    finally:
        client.close()

    if not result.ok:
        print(f"Error: could not store face encoding: {result.error}")
        return 1
    print(f"Face encoding stored for student {args.student_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="School attendance and fines portal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init-db
  python main.py create-admin --username admin --role superadmin
  python main.py serve --port 8080
  python main.py detect --event-id 3 --camera 1 --headless
  python main.py enroll --student-id 12 --image ./photos/12.jpg
        """
    )
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, help="Bind address")
    serve.add_argument("--port", type=int, help="Port")
    serve.set_defaults(func=cmd_serve)

    init_db = subparsers.add_parser("init-db", help="Create the database tables")
    init_db.set_defaults(func=cmd_init_db)

    create_admin = subparsers.add_parser("create-admin", help="Create an admin account")
    create_admin.add_argument("--username", required=True)
    create_admin.add_argument("--password", help="Prompted for when omitted")
    create_admin.add_argument("--full-name")
    create_admin.add_argument("--email")
    create_admin.add_argument("--role", default="superadmin",
                              choices=["superadmin", "fine_manager", "receipt_manager", "student_registrar"])
    create_admin.set_defaults(func=cmd_create_admin)

    for name, help_text, func in (
        ("detect", "Run face check-in for an event", cmd_detect),
        ("enroll", "Store a student's face encoding from a photo", cmd_enroll),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--api-url", default=None, help="Portal API base URL")
        sub.add_argument("--username", help="Portal username (or PORTAL_USERNAME)")
        sub.add_argument("--password", help="Portal password (or PORTAL_PASSWORD)")
        sub.set_defaults(func=func)
        if name == "detect":
            sub.add_argument("--event-id", type=int, required=True)
            sub.add_argument("--camera", "-c", type=int, default=None,
                             help="Camera device ID (default: CAMERA_ID or 0)")
            sub.add_argument("--threshold", type=float, default=None,
                             help="Face match distance threshold (default: 0.4)")
            sub.add_argument("--headless", action="store_true", help="Run without GUI")
        else:
            sub.add_argument("--student-id", type=int, required=True)
            sub.add_argument("--image", required=True)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        config.logging.log_level = "DEBUG"
        logger.logger.setLevel("DEBUG")
        for handler in logger.logger.handlers:
            handler.setLevel("DEBUG")

    if getattr(args, "threshold", None) is not None and not 0.0 < args.threshold <= 1.0:
        print("Error: threshold must be between 0.0 and 1.0")
        return 1

    try:
        return args.func(args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        print(f"\nFatal error: {e}")
        logger.error(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    exit_code = main()
    logger.shutdown()
    sys.exit(exit_code)
