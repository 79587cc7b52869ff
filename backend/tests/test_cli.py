# Overview: Pytest coverage for the Flask CLI command groups.

from retailpos.models import Role, User
from retailpos.services.token_service import resolve_credential

from conftest import TEST_PASSWORD


def test_init_db(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "init-db"])
    assert result.exit_code == 0
    assert "PASS" in result.output


def test_create_and_list_owners(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "owners", "create",
        "--email", "cli@owner.test",
        "--password", TEST_PASSWORD,
        "--first-name", "Cli",
        "--last-name", "Owner",
    ])
    assert result.exit_code == 0, result.output

    owner = db_session.query(User).filter_by(email="cli@owner.test").one()
    assert owner.role == Role.OWNER

    listed = runner.invoke(args=["owners", "list"])
    assert "cli@owner.test" in listed.output


def test_create_owner_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "owners", "create",
        "--email", "weak@owner.test",
        "--password", "weak",
        "--first-name", "Weak",
        "--last-name", "Owner",
    ])
    assert result.exit_code != 0
    assert "Password" in result.output


def test_issue_token(app, db_session, cashier_a, owner_a):
    result = app.test_cli_runner().invoke(args=["tokens", "issue", "--email", cashier_a.email])
    assert result.exit_code == 0

    ctx = resolve_credential(result.output.strip())
    assert ctx.user_id == cashier_a.id
    assert ctx.owner_id == owner_a.id


def test_issue_token_unknown_user(app, db_session):
    result = app.test_cli_runner().invoke(args=["tokens", "issue", "--email", "nobody@x.test"])
    assert result.exit_code != 0
