"""
Diagnostic formatting tests.
"""

import httpx

from ollama_relay.utils import describe_exception, pretty_object


def test_pretty_object_fences_json():
    assert pretty_object({"error": "bad"}) == '```json\n{\n  "error": "bad"\n}\n```'


def test_pretty_object_empty_mapping_falls_back_to_str():
    assert pretty_object({}) == "{}"


def test_pretty_object_fences_plain_string():
    assert pretty_object("boom") == "```json\nboom\n```"


def test_pretty_object_keeps_fenced_string():
    fenced = "```json\n[]\n```"

    assert pretty_object(fenced) == fenced


def test_pretty_object_unserializable_uses_str():
    assert pretty_object({1, 2}) == '```json\n"{1, 2}"\n```'


def test_describe_exception():
    described = describe_exception(httpx.ConnectError("Connection refused"))

    assert described == {"error": True, "type": "ConnectError", "msg": "Connection refused"}


def test_describe_exception_without_message():
    described = describe_exception(TimeoutError())

    assert described["type"] == "TimeoutError"
    assert described["msg"] == "TimeoutError()"
