"""Startup directory admin CLI tool (directoryctl)."""

import json

import typer

app = typer.Typer(name="directoryctl", help="Startup directory admin CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


@db_app.command("create")
def db_create():
    """Create all tables that don't exist yet."""
    import directory_backend.models  # noqa: F401  registers models on Base
    from directory_backend.db.base import Base
    from directory_backend.db.session import engine

    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Tables created (or already exist)")


@db_app.command("seed")
def db_seed(
    admin_email: str = typer.Option(None, help="Email of the bootstrap super admin (defaults to ADMIN_EMAIL)"),
):
    """Seed permissions, roles and role links; optionally ensure a super admin."""
    from directory_backend.core.config import settings
    from directory_backend.db.session import SessionLocal
    from directory_backend.db.seeds.seed_rbac import seed_rbac, seed_super_admin

    db = SessionLocal()
    try:
        seed_rbac(db)
        seed_super_admin(db, admin_email or settings.ADMIN_EMAIL)
    except Exception as e:
        typer.echo(f"RBAC seed failed: {e}", err=True)
        raise typer.Exit(code=1)
    finally:
        db.close()
    typer.echo("✅ RBAC seed completed")


@app.command("audit-permissions")
def audit_permissions(
    fail_on_drift: bool = typer.Option(False, "--fail-on-drift", help="Exit 1 when any drift is found"),
):
    """Print the permission drift report as JSON."""
    from directory_backend.db.session import SessionLocal
    from directory_backend.services.permission_audit_service import PermissionAuditService

    db = SessionLocal()
    try:
        report = PermissionAuditService(db).generate_report()
    finally:
        db.close()

    typer.echo(json.dumps(report.model_dump(mode="json"), indent=2))
    if fail_on_drift and report.has_drift:
        raise typer.Exit(code=1)


@app.command("make-admin")
def make_admin(email: str = typer.Argument(..., help="Email of the user to promote")):
    """Grant the admin role to an existing user."""
    from directory_backend.core.permissions import RoleName
    from directory_backend.db.session import SessionLocal
    from directory_backend.models.user import User
    from directory_backend.services.rbac_service import RBACService

    db = SessionLocal()
    try:
        rbac = RBACService(db)
        role_id = rbac.get_role_id_by_name(RoleName.ADMIN)
        if role_id is None:
            typer.echo("Error: admin role not found in database. Run `db seed` first.", err=True)
            raise typer.Exit(code=1)

        user = db.query(User).filter(User.email == email).first()
        if not user:
            typer.echo(f"Error: User with email {email} not found", err=True)
            raise typer.Exit(code=1)

        rbac.assign_role_if_missing(user.id, role_id, assigned_by=None)
    finally:
        db.close()
    typer.echo(f"✅ Promoted {email} to admin")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("directory_backend.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
