"""
Formatting helpers for diagnostics shown to users and returned by the gateway.
"""

import json
from typing import Any, Dict


def pretty_object(obj: Any) -> str:
    """
    Render an object as a fenced JSON block for insertion into a transcript.

    Strings are fenced as-is unless they are already fenced. Objects that
    serialize to an empty mapping fall back to ``str(obj)``.

    Example:
        >>> print(pretty_object({"error": "bad"}))
        ```json
        {
          "error": "bad"
        }
        ```
    """
    if isinstance(obj, str):
        msg = obj
    else:
        try:
            msg = json.dumps(obj, indent=2, ensure_ascii=False)
        except (TypeError, ValueError):
            msg = json.dumps(str(obj), ensure_ascii=False)

    if msg == "{}":
        return str(obj)

    if msg.startswith("```json"):
        return msg

    return "\n".join(["```json", msg, "```"])


def describe_exception(exc: BaseException) -> Dict[str, Any]:
    """
    Build a structured diagnostic for an exception raised while forwarding.

    Returns:
        ``{"error": True, "type": <class name>, "msg": <message>}``
    """
    message = str(exc) or repr(exc)
    return {
        "error": True,
        "type": type(exc).__name__,
        "msg": message,
    }
