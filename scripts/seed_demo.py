"""
Seed a small demo organization: departments, users, one primary-approver
designation, the default workflows and grade bands.

    python -m scripts.seed_demo
"""
from okrflow.database import SessionLocal, init_db
from okrflow.models.catalog import Department
from okrflow.models.user import User, Role
from okrflow.services.directory import UserDirectory
from okrflow.services.scoring import GradingService
from okrflow.services.workflow_registry import WorkflowRegistry

DEPARTMENTS = ["Executive Office", "People Ops", "R&D Center", "Platform", "Payments"]

USERS = [
    ("Parker Lee", Role.PRESIDENT, "Executive Office"),
    ("Vera Tan", Role.VP_TECH, "Executive Office"),
    ("Harper Diaz", Role.HRBP, "People Ops"),
    ("Ada Moss", Role.ADMIN, "People Ops"),
    ("Glen Park", Role.TECH_GM, "R&D Center"),
    ("Taylor Wu", Role.TECH_HEAD, "Platform"),
    ("Morgan Reed", Role.TECH_MANAGER, "Platform"),
    ("Riley Shaw", Role.RD_EMPLOYEE, "Platform"),
    ("Quinn Hale", Role.QA_EMPLOYEE, "Platform"),
    ("Sam Ortiz", Role.TECH_HEAD, "Payments"),
    ("Jo Kim", Role.TECH_HEAD, "Payments"),
    ("Robin Fox", Role.RD_EMPLOYEE, "Payments"),
]

db = SessionLocal()


def create_department(name):
    if db.query(Department).filter(Department.name == name).first():
        print(f"Department {name} already exists. Skipping.")
        return
    db.add(Department(name=name))
    db.commit()
    print(f"Created department -> {name}")


def create_user(name, role, department):
    email = f"{name.split()[0].lower()}@example.com"
    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        print(f"User {email} already exists. Skipping.")
        return existing_user

    user = User(name=name, email=email, role=role.value, department=department, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    print(f"Created {role.value} -> {email} ({department})")
    return user


if __name__ == "__main__":
    init_db()
    try:
        for department in DEPARTMENTS:
            create_department(department)
        created = {name: create_user(name, role, department) for name, role, department in USERS}

        # Payments has two R&D heads; without a designation its approvals are ambiguous
        UserDirectory(db).designate_primary(created["Sam Ortiz"].id)
        print("Designated Sam Ortiz as primary TECH_HEAD for Payments")

        print(f"Workflows seeded: {WorkflowRegistry(db).seed_defaults()}")
        print(f"Grade bands seeded: {GradingService(db).seed_defaults()}")
    finally:
        db.close()
