"""Tests for security, email and row normalization helpers."""

import pytest

from utils.data_normalization import normalize_db_row, normalize_jsonb_field, to_bool
from utils.email import render_email, sanitize_html, sanitize_url, send_email_html
from utils.security import decode_jwt, generate_jwt, generate_otp, hash_password, verify_password


class TestSecurity:
    def test_password_hashing(self):
        hashed = hash_password("correct horse")

        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed) is True
        assert verify_password("wrong", hashed) is False
        assert verify_password("x", "not-a-bcrypt-hash") is False

    def test_jwt_round_trip(self):
        assert decode_jwt(generate_jwt("user-1")) == "user-1"
        assert decode_jwt("garbage") is None
        assert decode_jwt("") is None

    def test_otp_is_six_digits(self):
        for _ in range(20):
            otp = generate_otp()
            assert len(otp) == 6 and otp.isdigit() and otp[0] != "0"


class TestEmail:
    def test_sanitize_html_removes_scripts(self):
        cleaned = sanitize_html('<p onclick="x()">Hi</p><script>alert(1)</script>')
        assert "<script>" not in cleaned
        assert "onclick" not in cleaned
        assert "<p>Hi</p>" in cleaned

    def test_sanitize_url(self):
        assert sanitize_url("javascript:alert(1)") == ""
        assert sanitize_url(" https://example.com ") == "https://example.com"

    def test_render_template(self):
        html = render_email("verify_otp.html", {"otp": "654321", "email": "a@example.com"})
        assert "654321" in html
        assert "a@example.com" in html

    def test_send_requires_configuration(self):
        with pytest.raises(RuntimeError):
            send_email_html("a@example.com", "Subject", "<p>Body</p>")


class TestNormalization:
    def test_json_columns(self):
        assert normalize_jsonb_field('[[{"id": "a"}]]') == [[{"id": "a"}]]
        assert normalize_jsonb_field("{broken", default=[]) == []
        assert normalize_jsonb_field(None, default={}) == {}

    def test_row(self):
        row = normalize_db_row({"steps": "{}", "flag": 1, "title": "true"}, bool_fields=("flag",))
        assert row == {"steps": {}, "flag": True, "title": "true"}

    def test_to_bool(self):
        assert to_bool("false") is False
        assert to_bool("TRUE") is True
        assert to_bool(0) is False
