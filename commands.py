import click

from models import db
from models.classes import Classroom
from models.enrolments import Enrolment
from models.users import User
from classes.enrolment_manager import EnrolmentManager

DEMO_PASSWORD = "password123"


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("seed")
    def seed():
        """Create demo users and a demo class."""
        db.create_all()
        users = {}
        for username, name, role in [
            ("admin", "Site Admin", "Admin"),
            ("teacher1", "Demo Teacher", "Teacher"),
            ("student1", "Demo Student", "Student"),
        ]:
            user = User.query.filter_by(username=username).first()
            if not user:
                user = User(username=username, name=name, role=role, email=f"{username}@example.com")
                user.set_password(DEMO_PASSWORD)
                db.session.add(user)
            users[username] = user
        db.session.commit()

        classroom = Classroom.query.filter_by(name="Demo Class", teacher_id=users["teacher1"].id).first()
        if not classroom:
            classroom = Classroom(name="Demo Class", section="A", teacher_id=users["teacher1"].id,
                                  code=EnrolmentManager.generate_code())
            db.session.add(classroom)
            db.session.commit()
        if not classroom.is_student(users["student1"].id):
            db.session.add(Enrolment(class_id=classroom.id, student_id=users["student1"].id))
            db.session.commit()
        click.echo(f"Seeded demo data. Class code: {classroom.code}")

    @app.cli.command("set-password")
    @click.argument("username")
    @click.argument("password")
    def set_password(username, password):
        """Reset a user's password."""
        user = User.query.filter_by(username=username).first()
        if not user:
            raise click.ClickException(f"No user named {username}")
        user.set_password(password)
        db.session.commit()
        click.echo("Password updated successfully.")
