"""Assertion evaluation for regression scenarios.

Checks a model reply (and the tools it invoked) against a scenario's
expected assertions. Every assertion group present in the AssertionSpec is evaluated;
there is no short-circuiting, so a report always lists every violation.
"""

import re
from collections.abc import Sequence
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger()

LEAD_CAPTURE_TOOL = "capture_lead"
GENERIC_CAPTURE_WORDS = ("contact", "information", "details")
BRIEF_RESPONSE_MAX_CHARS = 300
ERROR_ASSERTION_TYPE = "error"


class AssertionSpec(BaseModel):
    """Expected behaviour for a scenario. Absent fields contribute no checks."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    must_include: list[str] | None = None
    must_include_any: list[str] | None = None
    must_include_groups: list[list[str]] | None = None
    must_include_regex: list[str] | None = None
    must_not_include: list[str] | None = None
    must_trigger_tool_allowed: list[str] | None = None
    must_not_trigger_tool: list[str] | None = None
    must_capture_fields: list[str] | None = None
    response_length: str | None = None
    must_not_include_length_over: int | None = None


class AssertionResult(BaseModel):
    """Outcome of one assertion, with a human-readable explanation."""

    type: str
    passed: bool
    details: str
    expected: list[str] | list[list[str]] | None = None
    matched: list[str] | None = None

    def to_record(self) -> dict[str, Any]:
        """Serialize for JSON storage and API responses."""
        return self.model_dump(exclude_none=True)


class EvaluationOutcome(BaseModel):
    """Aggregate result of evaluating an AssertionSpec."""

    passed: bool
    passed_list: list[AssertionResult] = Field(default_factory=list)
    failed_list: list[AssertionResult] = Field(default_factory=list)


def error_result(message: str) -> AssertionResult:
    """Synthetic failed assertion recording an execution error."""
    return AssertionResult(type=ERROR_ASSERTION_TYPE, passed=False, details=message)


def contains_phrase(text: str, phrase: str) -> bool:
    """Case-insensitive substring check with both sides trimmed."""
    return phrase.lower().strip() in text.lower().strip()


def matches_regex(text: str, pattern: str) -> bool:
    """Case-insensitive regex search. Invalid patterns never match."""
    try:
        return re.search(pattern, text, re.IGNORECASE) is not None
    except re.error as e:
        logger.warning("invalid_regex_pattern", pattern=pattern, error=str(e))
        return False


def _tool_matches(expected: str, called: str) -> bool:
    return expected == called or expected in called or called in expected


def _quoted(phrases: Sequence[str]) -> str:
    return ", ".join(f'"{p}"' for p in phrases)


def check_must_include(response: str, phrases: list[str]) -> list[AssertionResult]:
    """Every phrase must appear. One result per phrase."""
    results = []
    for phrase in phrases:
        found = contains_phrase(response, phrase)
        results.append(
            AssertionResult(
                type="must_include",
                passed=found,
                details=f'"{phrase}" {"found" if found else "NOT found"} in response',
                expected=[phrase],
                matched=[phrase] if found else [],
            )
        )
    return results


def check_must_include_any(response: str, phrases: list[str]) -> list[AssertionResult]:
    """At least one phrase must appear."""
    matched = [p for p in phrases if contains_phrase(response, p)]
    passed = bool(matched)
    details = f"Matched: {_quoted(matched)}" if passed else f"None of [{_quoted(phrases)}] found"
    return [
        AssertionResult(
            type="must_include_any",
            passed=passed,
            details=details,
            expected=phrases,
            matched=matched,
        )
    ]


def check_must_include_groups(response: str, groups: list[list[str]]) -> list[AssertionResult]:
    """Every group must have at least one matching phrase (AND of ORs)."""
    group_matches = [[p for p in group if contains_phrase(response, p)] for group in groups]
    failed_groups = [g for g, m in zip(groups, group_matches, strict=True) if not m]
    passed = not failed_groups

    if passed:
        details = f"All {len(groups)} groups matched: " + ", ".join(
            f"[{'|'.join(m)}]" for m in group_matches
        )
    else:
        details = f"{len(failed_groups)} group(s) failed: " + ", ".join(
            f"[{'|'.join(g)}]" for g in failed_groups
        )

    return [
        AssertionResult(
            type="must_include_groups",
            passed=passed,
            details=details,
            expected=groups,
            matched=[p for m in group_matches for p in m],
        )
    ]


def check_must_include_regex(response: str, patterns: list[str]) -> list[AssertionResult]:
    """At least one pattern must match."""
    matched = [p for p in patterns if matches_regex(response, p)]
    passed = bool(matched)
    details = (
        f"Regex matched: {', '.join(matched)}"
        if passed
        else f"No regex patterns matched from [{', '.join(patterns)}]"
    )
    return [
        AssertionResult(
            type="must_include_regex",
            passed=passed,
            details=details,
            expected=patterns,
            matched=matched,
        )
    ]


def check_must_not_include(response: str, phrases: list[str]) -> list[AssertionResult]:
    """No phrase may appear. One result per phrase."""
    results = []
    for phrase in phrases:
        found = contains_phrase(response, phrase)
        results.append(
            AssertionResult(
                type="must_not_include",
                passed=not found,
                details=f'"{phrase}" {"FOUND (violation!)" if found else "not found (correct)"}',
                expected=[phrase],
                matched=[phrase] if found else [],
            )
        )
    return results


def check_must_trigger_tool_allowed(
    tools_called: list[str], tools: list[str]
) -> list[AssertionResult]:
    """At least one listed tool must have been invoked."""
    matched = [t for t in tools if any(_tool_matches(t, called) for called in tools_called)]
    passed = bool(matched)
    details = (
        f"Tool(s) triggered: {', '.join(matched)}"
        if passed
        else f"Expected one of [{', '.join(tools)}], got [{', '.join(tools_called) or 'none'}]"
    )
    return [
        AssertionResult(
            type="must_trigger_tool_allowed",
            passed=passed,
            details=details,
            expected=tools,
            matched=matched,
        )
    ]


def check_must_not_trigger_tool(tools_called: list[str], tools: list[str]) -> list[AssertionResult]:
    """No listed tool may have been invoked. One result per tool."""
    results = []
    for tool in tools:
        triggered = any(tool in called for called in tools_called)
        verdict = "WAS triggered (violation!)" if triggered else "not triggered (correct)"
        results.append(
            AssertionResult(
                type="must_not_trigger_tool",
                passed=not triggered,
                details=f'Tool "{tool}" {verdict}',
                expected=[tool],
                matched=[tool] if triggered else [],
            )
        )
    return results


def check_must_capture_fields(
    response: str, tools_called: list[str], fields: list[str]
) -> list[AssertionResult]:
    """Lenient lead-capture heuristic.

    Passes on a capture_lead call, the field name in the reply, or any of
    the generic words "contact", "information", "details".
    """
    lead_captured = LEAD_CAPTURE_TOOL in tools_called
    generic_ask = any(contains_phrase(response, w) for w in GENERIC_CAPTURE_WORDS)
    matched = [
        f for f in fields if lead_captured or generic_ask or contains_phrase(response, f)
    ]
    passed = bool(matched) or lead_captured

    if passed:
        details = f"Field capture attempted: {', '.join(matched) or 'via capture_lead tool'}"
    else:
        details = f"No field capture detected for [{', '.join(fields)}]"

    return [
        AssertionResult(
            type="must_capture_fields",
            passed=passed,
            details=details,
            expected=fields,
            matched=matched,
        )
    ]


def check_response_length(response: str, mode: str) -> list[AssertionResult]:
    """Only "brief" is enforced (max 300 characters); other modes always pass."""
    length = len(response)
    if mode == "brief" and length > BRIEF_RESPONSE_MAX_CHARS:
        return [
            AssertionResult(
                type="response_length",
                passed=False,
                details=(
                    f'Response too long for "brief" ({length} chars > {BRIEF_RESPONSE_MAX_CHARS})'
                ),
            )
        ]
    return [
        AssertionResult(
            type="response_length",
            passed=True,
            details=f"Response length OK ({length} chars)",
        )
    ]


def check_length_over(response: str, limit: int) -> list[AssertionResult]:
    length = len(response)
    ok = length <= limit
    return [
        AssertionResult(
            type="must_not_include_length_over",
            passed=ok,
            details=f"Response length {length} {'<=' if ok else '>'} {limit}",
        )
    ]


def evaluate_assertions(
    response: str,
    tools_called: list[str],
    spec: AssertionSpec | dict[str, Any],
) -> EvaluationOutcome:
    """Evaluate every assertion group that is set.

    Args:
        response: The model's free-text reply.
        tools_called: Names of the tool functions the model invoked.
        spec: AssertionSpec or its raw dict form. A malformed dict raises
            pydantic.ValidationError.

    Returns:
        EvaluationOutcome; passed is True iff no assertion failed.
    """
    if not isinstance(spec, AssertionSpec):
        spec = AssertionSpec.model_validate(spec)

    results: list[AssertionResult] = []
    if spec.must_include:
        results += check_must_include(response, spec.must_include)
    if spec.must_include_any:
        results += check_must_include_any(response, spec.must_include_any)
    if spec.must_include_groups:
        results += check_must_include_groups(response, spec.must_include_groups)
    if spec.must_include_regex:
        results += check_must_include_regex(response, spec.must_include_regex)
    if spec.must_not_include:
        results += check_must_not_include(response, spec.must_not_include)
    if spec.must_trigger_tool_allowed:
        results += check_must_trigger_tool_allowed(tools_called, spec.must_trigger_tool_allowed)
    if spec.must_not_trigger_tool:
        results += check_must_not_trigger_tool(tools_called, spec.must_not_trigger_tool)
    if spec.must_capture_fields:
        results += check_must_capture_fields(response, tools_called, spec.must_capture_fields)
    if spec.response_length:
        results += check_response_length(response, spec.response_length)
    if spec.must_not_include_length_over:
        results += check_length_over(response, spec.must_not_include_length_over)

    failed_list = [r for r in results if not r.passed]
    return EvaluationOutcome(
        passed=not failed_list,
        passed_list=[r for r in results if r.passed],
        failed_list=failed_list,
    )
