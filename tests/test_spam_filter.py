"""Tests for the honeypot spam filter."""

import pytest

from guard.app.services.spam_filter import SpamFilter


@pytest.fixture
def spam_filter():
    return SpamFilter("honeypot")


@pytest.mark.parametrize("value", ["x", "http://spam.example", " ", 1, ["a"], 0, False, [], {}])
def test_non_empty_honeypot_is_spam(spam_filter, value):
    assert spam_filter.is_spam({"name": "Jazz Night", "honeypot": value}) is True


@pytest.mark.parametrize("value", ["", None])
def test_empty_honeypot_is_not_spam(spam_filter, value):
    assert spam_filter.is_spam({"name": "Jazz Night", "honeypot": value}) is False


def test_absent_honeypot_is_not_spam(spam_filter):
    assert spam_filter.is_spam({"name": "Jazz Night"}) is False


@pytest.mark.parametrize("payload", [None, "honeypot", ["honeypot"], 42])
def test_non_mapping_payload_is_not_spam(spam_filter, payload):
    assert spam_filter.is_spam(payload) is False


def test_field_name_defaults_to_settings(monkeypatch):
    from guard.app.core.config import settings

    monkeypatch.setattr(settings, "honeypot_field", "website_url")
    spam_filter = SpamFilter()
    assert spam_filter.is_spam({"website_url": "bot"}) is True
    assert spam_filter.is_spam({"honeypot": "bot"}) is False
