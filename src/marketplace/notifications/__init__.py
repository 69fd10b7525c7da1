"""Mailer registry. Defaults to the in-memory fake adapter."""

from marketplace.notifications.email_port import EmailPort

_mailer: EmailPort | None = None


def get_mailer() -> EmailPort:
    global _mailer
    if _mailer is None:
        from marketplace.notifications.fake_email import FakeEmailAdapter

        _mailer = FakeEmailAdapter()
    return _mailer


def set_mailer(mailer: EmailPort) -> None:
    global _mailer
    _mailer = mailer


def reset_mailer() -> None:
    global _mailer
    _mailer = None
