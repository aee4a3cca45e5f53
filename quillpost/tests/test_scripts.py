"""Tests for the command-line maintenance scripts."""

import pytest

from quillpost.services.auth import verify_password
from quillpost.services.mailer import NotificationDispatcher
from scripts import create_admin, send_test_email


@pytest.fixture
def script_settings(mock_settings, monkeypatch):
    monkeypatch.setattr(create_admin, "get_settings", lambda: mock_settings)
    monkeypatch.setattr(send_test_email, "get_settings", lambda: mock_settings)
    return mock_settings


class TestCreateAdmin:
    def test_usage_without_arguments(self, script_settings, capsys):
        assert create_admin.main([]) == 1
        assert "Usage" in capsys.readouterr().err

    def test_creates_then_resets_password(self, script_settings, store, capsys):
        assert create_admin.main(["Owner@Example.com", "first-pw"]) == 0
        assert "Admin created: owner@example.com" in capsys.readouterr().out

        assert create_admin.main(["owner@example.com", "second-pw"]) == 0
        assert "Password updated" in capsys.readouterr().out

        admin = store.get_admin_by_email("owner@example.com")
        assert verify_password("second-pw", admin.password_hash)
        assert store.count_admins() == 1


class TestSendTestEmail:
    async def test_usage_without_arguments(self, script_settings):
        assert await send_test_email.main([]) == 1

    async def test_success(self, script_settings, fake_provider, mocker, capsys):
        mocker.patch.object(
            send_test_email,
            "build_dispatcher",
            return_value=NotificationDispatcher([fake_provider], "blog@example.com", "quillpost"),
        )

        assert await send_test_email.main(["me@example.com", "Hello", "Body"]) == 0
        assert "Sent via fake" in capsys.readouterr().out
        assert fake_provider.sent[0].subject == "Hello"

    async def test_failure_exits_2(self, script_settings, capsys):
        # No providers configured in the test settings
        assert await send_test_email.main(["me@example.com"]) == 2
        assert "Send failed" in capsys.readouterr().err
