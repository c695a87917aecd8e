from __future__ import annotations

from dronelink.protocol.reply import classify_reply


def test_ok_reply_is_success():
    r = classify_reply(b"ok")
    assert r.ok is True
    assert r.text == "ok"


def test_value_reply_is_success_and_trimmed():
    r = classify_reply(b"87\r\n")
    assert r.ok is True
    assert r.trimmed == "87"


def test_error_marker_prefix_is_failure_with_full_text():
    r = classify_reply(b"error Motor stop")
    assert r.ok is False
    assert r.text == "error Motor stop"


def test_marker_must_lead_the_text():
    assert classify_reply(b"no error here").ok is True
    assert classify_reply(b" error").ok is True


def test_custom_marker():
    assert classify_reply(b"FAIL 3", error_marker="FAIL").ok is False
    assert classify_reply(b"error", error_marker="FAIL").ok is True


def test_undecodable_bytes_are_replaced():
    r = classify_reply(b"\xffok")
    assert r.ok is True
    assert r.text.endswith("ok")
