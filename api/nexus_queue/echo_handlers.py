"""Deterministic stand-in handlers.

Lets the queue run end to end without a model provider. Point
HANDLERS_MODULE at a module exposing the same ``HANDLERS`` mapping to plug in
real generation.
"""
import json

from .models import TaskName

def _describe(payload: dict) -> str:
    return json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)

def strategic_report(payload: dict) -> str:
    return f"Strategic report for {payload['region']}\n\nParameters: {_describe(payload)}"

def outreach_letter(payload: dict) -> str:
    details = payload.get("userDetails") or {}
    sender = details.get("userName") or "the sender"
    return f"Outreach letter from {sender}\n\n{payload['reportContent']}"

def reverse_nexus_search(payload: dict) -> str:
    return f"Regional matches for query: {_describe(payload)}"

HANDLERS = {
    TaskName.generate_strategic_report.value: strategic_report,
    TaskName.generate_outreach_letter.value: outreach_letter,
    TaskName.reverse_nexus_search.value: reverse_nexus_search,
}
