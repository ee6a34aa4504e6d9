"""Tests for the ProgramSpec prompt composer."""

import json

import pytest

from application.models import FailureDiagnostic, FieldIssue, program_json_schema, validate_request
from backend.services.prompts.program_builder_prompt import (
    MAX_ISSUES_IN_PROMPT,
    compose_prompt,
    exercise_count_for,
)
from tests.fakes import make_request


@pytest.fixture
def request_model():
    return validate_request(make_request(constraints="no barbell back squat"))


def _user_json(prompt) -> dict:
    return json.loads(prompt.user.split("\n\n", 1)[0])


class TestComposePrompt:
    """First-attempt prompt content."""

    @pytest.mark.unit
    def test_system_demands_json_only(self, request_model):
        prompt = compose_prompt(request_model)

        assert "Return ONLY a single JSON object" in prompt.system
        assert "No markdown" in prompt.system
        assert '"templates"' in prompt.system

    @pytest.mark.unit
    def test_carries_derived_schema(self, request_model):
        prompt = compose_prompt(request_model)

        assert prompt.schema_name == "ProgramSpec"
        assert prompt.schema == program_json_schema()

    @pytest.mark.unit
    def test_user_payload_sections(self, request_model):
        payload = _user_json(compose_prompt(request_model))

        assert set(payload) == {"task", "input", "defaults", "constraintsReminder"}
        assert payload["input"]["daysPerWeek"] == 3
        assert payload["input"]["splitPreference"] == "FULL_BODY"
        assert payload["input"]["constraints"] == "no barbell back squat"

    @pytest.mark.unit
    def test_defaults_follow_request(self):
        home = validate_request(make_request(equipment="HOME", goal="STRENGTH", minutesPerSession=30))
        defaults = _user_json(compose_prompt(home))["defaults"]

        assert defaults["exercisesPerSession"] == "3-4"
        assert "No machines" in defaults["equipment"]
        assert defaults["goal"]["reps"].startswith("3-6")

    @pytest.mark.unit
    def test_no_corrective_section_without_failure(self, request_model):
        assert "IMPORTANT" not in compose_prompt(request_model).user

    @pytest.mark.unit
    def test_deterministic(self, request_model):
        assert compose_prompt(request_model) == compose_prompt(request_model)


class TestExerciseCount:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "minutes,expected",
        [(20, "3-4"), (30, "3-4"), (31, "4-5"), (45, "4-5"), (60, "5-6"), (90, "6-8"), (91, "7-9"), (180, "7-9")],
    )
    def test_tiers(self, minutes, expected):
        assert exercise_count_for(minutes) == expected


class TestCorrectivePrompt:
    """Retries carry the previous attempt's diagnostic."""

    @pytest.mark.unit
    def test_not_json(self, request_model):
        failure = FailureDiagnostic.not_json(1, "Expecting value: line 1 column 1 (char 0)")
        prompt = compose_prompt(request_model, prior_failure=failure, attempt=2)

        assert "IMPORTANT (attempt 2)" in prompt.user
        assert "(attempt 1) was not valid JSON." in prompt.user
        assert "Parser error: Expecting value: line 1 column 1 (char 0)" in prompt.user

    @pytest.mark.unit
    def test_schema_mismatch_lists_issues(self, request_model):
        failure = FailureDiagnostic.schema_mismatch(
            2,
            [
                FieldIssue("progression.rules", "List should have at least 1 item after validation, not 0"),
                FieldIssue("templates", "Expected exactly 3 day templates (one per training day), got 2"),
            ],
        )
        prompt = compose_prompt(request_model, prior_failure=failure, attempt=3)

        assert "did not match the ProgramSpec schema." in prompt.user
        assert "- progression.rules: List should have at least 1 item after validation, not 0" in prompt.user
        assert "- templates: Expected exactly 3 day templates" in prompt.user
        assert prompt.user.rstrip().endswith("Return ONLY JSON.")

    @pytest.mark.unit
    def test_issue_list_is_capped(self, request_model):
        issues = [FieldIssue(f"templates.0.blocks.{i}.blockName", "String should match pattern") for i in range(30)]
        failure = FailureDiagnostic.schema_mismatch(1, issues)
        prompt = compose_prompt(request_model, prior_failure=failure, attempt=2)

        listed = [line for line in prompt.user.splitlines() if line.startswith("- templates.")]
        assert len(listed) == MAX_ISSUES_IN_PROMPT
        assert "and 5 more issue(s)" in prompt.user

    @pytest.mark.unit
    def test_first_section_unchanged_on_retry(self, request_model):
        first = compose_prompt(request_model)
        retry = compose_prompt(request_model, prior_failure=FailureDiagnostic.not_json(1, "bad"), attempt=2)

        assert retry.system == first.system
        assert retry.user.startswith(first.user + "\n\n")
