from models import db
from classes.validators import validate_length, validate_role
from werkzeug.security import generate_password_hash, check_password_hash

ROLES = ("Student", "Teacher", "Admin")


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    username = db.Column(db.String(50), nullable=False, unique=True)
    email = db.Column(db.String(120), nullable=True, unique=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="Student")
    credit_points = db.Column(db.Integer, nullable=False, default=0)
    reset_otp_hash = db.Column(db.String(255), nullable=True)
    reset_otp_expires_at = db.Column(db.DateTime, nullable=True)
    date_created = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        validate_length("Username", self.username or "", 50)
        validate_role(self.role or "Student")

    def set_password(self, password):
        """Hashes the password before storing."""
        self.password_hash = generate_password_hash(password, method="pbkdf2:sha256")

    def check_password(self, password):
        """Checks if a given password matches the stored hash."""
        return check_password_hash(self.password_hash, password)

    @property
    def is_student(self):
        return self.role == "Student"

    @property
    def is_admin(self):
        return self.role == "Admin"

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "credit_points": self.credit_points,
            "date_created": self.date_created.isoformat() if self.date_created else None,
            }
