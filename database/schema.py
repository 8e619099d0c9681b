"""
Table definitions for both database backends.

Session windows are stored as HH:MM strings so both backends hand them back
in the same shape.
"""

SQLITE_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS admins (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        email TEXT UNIQUE,
        full_name TEXT NOT NULL,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'student_registrar'
            CHECK (role IN ('superadmin', 'fine_manager', 'receipt_manager', 'student_registrar')),
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS admin_sessions (
        token TEXT PRIMARY KEY,
        admin_id INTEGER NOT NULL REFERENCES admins(id) ON DELETE CASCADE,
        expires_at TEXT NOT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS login_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        admin_id INTEGER NOT NULL REFERENCES admins(id) ON DELETE CASCADE,
        activity_type TEXT NOT NULL DEFAULT 'login',
        timestamp TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS courses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        course_name TEXT NOT NULL,
        course_code TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sections (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        section_name TEXT NOT NULL,
        course_id INTEGER REFERENCES courses(id) ON DELETE CASCADE,
        capacity INTEGER,
        instructor_name TEXT,
        semester TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS students (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_number TEXT NOT NULL UNIQUE,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        year_level INTEGER,
        course_id INTEGER REFERENCES courses(id) ON DELETE SET NULL,
        section_id INTEGER REFERENCES sections(id) ON DELETE SET NULL,
        face_encoding TEXT,
        photo TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_name TEXT NOT NULL,
        event_date TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        fine_amount REAL NOT NULL DEFAULT 0,
        course_id INTEGER REFERENCES courses(id) ON DELETE SET NULL,
        am_in_start_time TEXT,
        am_in_end_time TEXT,
        am_out_start_time TEXT,
        am_out_end_time TEXT,
        pm_in_start_time TEXT,
        pm_in_end_time TEXT,
        pm_out_start_time TEXT,
        pm_out_end_time TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS attendance (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
        event_id INTEGER NOT NULL REFERENCES events(id) ON DELETE CASCADE,
        session TEXT NOT NULL DEFAULT 'AM' CHECK (session IN ('AM', 'PM')),
        type TEXT NOT NULL DEFAULT 'IN' CHECK (type IN ('IN', 'OUT')),
        time_recorded TEXT NOT NULL,
        recorded_at TEXT NOT NULL,
        UNIQUE (student_id, event_id, session, type)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_attendance_event ON attendance (event_id)",
    """
    CREATE TABLE IF NOT EXISTS fines (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
        amount REAL NOT NULL,
        reason TEXT NOT NULL,
        date TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'unpaid' CHECK (status IN ('paid', 'unpaid')),
        paid_date TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fine_receipts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        fine_id INTEGER NOT NULL REFERENCES fines(id) ON DELETE CASCADE,
        receipt_number TEXT NOT NULL UNIQUE,
        payment_date TEXT NOT NULL,
        amount_paid REAL NOT NULL,
        payment_method TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
)

MYSQL_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS admins (
        id INT AUTO_INCREMENT PRIMARY KEY,
        username VARCHAR(100) NOT NULL UNIQUE,
        email VARCHAR(255) UNIQUE,
        full_name VARCHAR(255) NOT NULL,
        password_hash VARCHAR(255) NOT NULL,
        role ENUM('superadmin', 'fine_manager', 'receipt_manager', 'student_registrar')
            NOT NULL DEFAULT 'student_registrar',
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS admin_sessions (
        token VARCHAR(64) PRIMARY KEY,
        admin_id INT NOT NULL,
        expires_at VARCHAR(32) NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (admin_id) REFERENCES admins(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS login_logs (
        id INT AUTO_INCREMENT PRIMARY KEY,
        admin_id INT NOT NULL,
        activity_type VARCHAR(16) NOT NULL DEFAULT 'login',
        timestamp VARCHAR(32) NOT NULL,
        FOREIGN KEY (admin_id) REFERENCES admins(id) ON DELETE CASCADE,
        INDEX idx_login_timestamp (timestamp)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS courses (
        id INT AUTO_INCREMENT PRIMARY KEY,
        course_name VARCHAR(255) NOT NULL,
        course_code VARCHAR(50),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sections (
        id INT AUTO_INCREMENT PRIMARY KEY,
        section_name VARCHAR(100) NOT NULL,
        course_id INT,
        capacity INT,
        instructor_name VARCHAR(255),
        semester VARCHAR(50),
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
        FOREIGN KEY (course_id) REFERENCES courses(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS students (
        id INT AUTO_INCREMENT PRIMARY KEY,
        student_number VARCHAR(50) NOT NULL UNIQUE,
        first_name VARCHAR(100) NOT NULL,
        last_name VARCHAR(100) NOT NULL,
        year_level INT,
        course_id INT,
        section_id INT,
        face_encoding LONGTEXT,
        photo LONGTEXT,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (course_id) REFERENCES courses(id) ON DELETE SET NULL,
        FOREIGN KEY (section_id) REFERENCES sections(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS events (
        id INT AUTO_INCREMENT PRIMARY KEY,
        event_name VARCHAR(255) NOT NULL,
        event_date VARCHAR(10) NOT NULL,
        start_time VARCHAR(5) NOT NULL,
        end_time VARCHAR(5) NOT NULL,
        fine_amount DOUBLE NOT NULL DEFAULT 0,
        course_id INT,
        am_in_start_time VARCHAR(5),
        am_in_end_time VARCHAR(5),
        am_out_start_time VARCHAR(5),
        am_out_end_time VARCHAR(5),
        pm_in_start_time VARCHAR(5),
        pm_in_end_time VARCHAR(5),
        pm_out_start_time VARCHAR(5),
        pm_out_end_time VARCHAR(5),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (course_id) REFERENCES courses(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS attendance (
        id INT AUTO_INCREMENT PRIMARY KEY,
        student_id INT NOT NULL,
        event_id INT NOT NULL,
        session ENUM('AM', 'PM') NOT NULL DEFAULT 'AM',
        type ENUM('IN', 'OUT') NOT NULL DEFAULT 'IN',
        time_recorded VARCHAR(32) NOT NULL,
        recorded_at VARCHAR(32) NOT NULL,
        UNIQUE KEY unique_student_event_slot (student_id, event_id, session, type),
        FOREIGN KEY (student_id) REFERENCES students(id) ON DELETE CASCADE,
        FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE CASCADE,
        INDEX idx_attendance_event (event_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fines (
        id INT AUTO_INCREMENT PRIMARY KEY,
        student_id INT NOT NULL,
        amount DOUBLE NOT NULL,
        reason TEXT NOT NULL,
        date VARCHAR(10) NOT NULL,
        status ENUM('paid', 'unpaid') NOT NULL DEFAULT 'unpaid',
        paid_date VARCHAR(10),
        created_at VARCHAR(32) NOT NULL,
        FOREIGN KEY (student_id) REFERENCES students(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fine_receipts (
        id INT AUTO_INCREMENT PRIMARY KEY,
        fine_id INT NOT NULL,
        receipt_number VARCHAR(50) NOT NULL UNIQUE,
        payment_date VARCHAR(10) NOT NULL,
        amount_paid DOUBLE NOT NULL,
        payment_method VARCHAR(50),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (fine_id) REFERENCES fines(id) ON DELETE CASCADE
    )
    """,
)
