"""Tests for repo_agent.tools.base module."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError
from repo_agent.tools.base import (
    CostEstimate,
    EnrichedTool,
    FunctionTool,
    RateLimit,
    ToolDefinition,
    create_tool,
    create_tool_batch,
    error_response,
    normalize_result,
    success_response,
    validate_string,
)
from repo_agent.tools.core import ExecutionContext

ECHO_DEFINITION = {
    "name": "echo",
    "description": "Echo the message back",
    "parameters": {
        "type": "object",
        "properties": {"message": {"type": "string", "description": "Text to echo"}},
        "required": ["message"],
    },
}


def echo(args, context):
    return {"echo": args["message"]}


class TestToolDefinition:
    """Test ToolDefinition model."""

    def test_parses_parameter_schema(self):
        """Test that nested parameter schemas are parsed."""
        definition = ToolDefinition.model_validate(ECHO_DEFINITION)

        assert definition.name == "echo"
        assert definition.parameters.required == ["message"]
        assert definition.parameters.properties["message"].type == "string"

    def test_rejects_empty_name(self):
        """Test that a tool must have a non-empty name."""
        with pytest.raises(ValidationError):
            ToolDefinition(name="")

    def test_to_dict_omits_unset_optional_fields(self):
        """Test that exported schema carries no null keys."""
        exported = ToolDefinition.model_validate(ECHO_DEFINITION).to_dict()

        assert exported["parameters"]["properties"]["message"] == {"type": "string", "description": "Text to echo"}


class TestValidate:
    """Test Tool.validate pre-flight checks."""

    def test_valid_call(self, execution_context):
        """Test that a complete call passes validation."""
        tool = create_tool(ECHO_DEFINITION, echo, required_permissions=["read"], required_context=["project"])

        result = tool.validate({"message": "hi"}, execution_context)

        assert result.valid is True
        assert result.error is None

    def test_names_exactly_the_missing_permissions(self, execution_context):
        """Test that the error lists only permissions the user lacks."""
        tool = create_tool(ECHO_DEFINITION, echo, required_permissions=["deploy", "read", "admin"])

        result = tool.validate({"message": "hi"}, execution_context)

        assert result.valid is False
        assert result.error == "Missing required permissions: deploy, admin"

    def test_missing_context(self):
        """Test that absent or falsy context keys are reported."""
        tool = create_tool(ECHO_DEFINITION, echo, required_context=["session", "project"])
        context = ExecutionContext.from_mapping({"project": {"id": "p1"}, "session": None})

        result = tool.validate({"message": "hi"}, context)

        assert result.to_dict() == {"valid": False, "error": "Missing required context: session"}

    def test_missing_arguments(self):
        """Test that required arguments are checked last."""
        tool = create_tool(ECHO_DEFINITION, echo)

        result = tool.validate({}, ExecutionContext())

        assert result.error == "Missing required arguments: message"

    def test_permissions_checked_before_context(self):
        """Test that only the first failing category is reported."""
        tool = create_tool(ECHO_DEFINITION, echo, required_permissions=["admin"], required_context=["session"])

        result = tool.validate({}, ExecutionContext())

        assert result.error == "Missing required permissions: admin"


class TestSafeExecute:
    """Test Tool.safe_execute wrapper."""

    @pytest.mark.asyncio
    async def test_returns_result_with_success_flag(self):
        """Test that a mapping result gets success=True."""
        tool = create_tool(ECHO_DEFINITION, echo)

        result = await tool.safe_execute({"message": "hi"}, {})

        assert result == {"echo": "hi", "success": True}

    @pytest.mark.asyncio
    async def test_awaits_async_implementation(self):
        """Test that coroutine implementations are awaited."""
        implementation = AsyncMock(return_value={"value": 1})
        tool = create_tool(ECHO_DEFINITION, implementation)

        result = await tool.safe_execute({"message": "hi"}, None)

        assert result == {"value": 1, "success": True}
        implementation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sync_raise_becomes_error_value(self):
        """Test that a raising sync body never escapes."""

        def broken(args, context):
            raise ValueError("bad input")

        tool = create_tool(ECHO_DEFINITION, broken)

        result = await tool.safe_execute({"message": "hi"}, {})

        assert result == {"success": False, "error": "bad input"}

    @pytest.mark.asyncio
    async def test_async_raise_becomes_error_value(self):
        """Test that a raising async body never escapes."""
        tool = create_tool(ECHO_DEFINITION, AsyncMock(side_effect=RuntimeError("remote down")))

        result = await tool.safe_execute({"message": "hi"}, {})

        assert result == {"success": False, "error": "remote down"}

    @pytest.mark.asyncio
    async def test_empty_exception_message_has_fallback(self):
        """Test that an exception without a message still yields an error string."""

        def broken(args, context):
            raise RuntimeError()

        tool = create_tool(ECHO_DEFINITION, broken)

        result = await tool.safe_execute({"message": "hi"}, {})

        assert result == {"success": False, "error": "Unknown error occurred"}

    @pytest.mark.asyncio
    async def test_validation_failure_skips_execution(self):
        """Test that the body is not called when validation fails."""
        implementation = AsyncMock()
        tool = create_tool(ECHO_DEFINITION, implementation)

        result = await tool.safe_execute({}, {})

        assert result == {"success": False, "error": "Missing required arguments: message"}
        implementation.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsupported_context_is_an_error_value(self):
        """Test that a malformed context is reported, not raised."""
        tool = create_tool(ECHO_DEFINITION, echo)

        result = await tool.safe_execute({"message": "hi"}, {"user": 42})

        assert result["success"] is False
        assert "Unsupported user context" in result["error"]


class TestNormalizeResult:
    """Test normalize_result function."""

    def test_defaults_success_to_true(self):
        """Test that success is added when missing."""
        assert normalize_result({"items": []}) == {"items": [], "success": True}

    def test_keeps_explicit_failure(self):
        """Test that an explicit success flag is preserved."""
        assert normalize_result({"success": False, "error": "nope"}) == {"success": False, "error": "nope"}

    def test_wraps_non_mapping_values(self):
        """Test that scalar results are wrapped under data."""
        assert normalize_result(["a", "b"]) == {"success": True, "data": ["a", "b"]}


class TestToEnriched:
    """Test Tool.to_enriched export."""

    def test_exports_metadata_and_safe_implementation(self):
        """Test that the enriched record dispatches through safe_execute."""
        tool = create_tool(
            ECHO_DEFINITION,
            echo,
            required_permissions=["read", "read"],
            rate_limit={"calls": 10},
            cost_estimate="high",
            async_execution=True,
        )

        enriched = tool.to_enriched("utilities")

        assert isinstance(enriched, EnrichedTool)
        assert enriched.name == "echo"
        assert enriched.category == "utilities"
        assert enriched.required_permissions == ("read",)
        assert enriched.rate_limit == RateLimit(calls=10, period_seconds=60.0)
        assert enriched.cost_estimate is CostEstimate.HIGH
        assert enriched.async_execution is True
        assert enriched.implementation == tool.safe_execute

    def test_own_category_wins(self):
        """Test that a tool's own category is kept over the slot category."""
        tool = create_tool(ECHO_DEFINITION, echo, category="search")

        assert tool.to_enriched("utilities").category == "search"


class TestCreateToolBatch:
    """Test create_tool_batch function."""

    def test_tool_options_take_precedence(self):
        """Test that per-tool options override shared ones, and unset ones inherit."""
        tools = create_tool_batch(
            [
                {"definition": {"name": "a"}, "implementation": echo, "cost_estimate": "high"},
                {"definition": {"name": "b"}, "implementation": echo, "cost_estimate": None},
            ],
            category="utilities",
            cost_estimate="medium",
        )

        assert [t.name for t in tools] == ["a", "b"]
        assert all(isinstance(t, FunctionTool) for t in tools)
        assert tools[0].cost_estimate is CostEstimate.HIGH
        assert tools[1].cost_estimate is CostEstimate.MEDIUM
        assert {t.category for t in tools} == {"utilities"}


class TestResponseHelpers:
    """Test success_response and error_response."""

    def test_success_response(self):
        assert success_response() == {"success": True}
        assert success_response({"id": 1}, "Created") == {"success": True, "message": "Created", "data": {"id": 1}}

    def test_error_response(self):
        assert error_response("Not found") == {"success": False, "error": "Not found"}
        assert error_response("Not found", code="404") == {"success": False, "error": "Not found", "code": "404"}


class TestValidateString:
    """Test validate_string function."""

    def test_accepts_valid_value(self):
        assert validate_string("medium", min_length=1, max_length=10, enum=["low", "medium"]).valid

    def test_rejects_non_string(self):
        assert validate_string(5).error == "Value must be a string"

    def test_length_bounds(self):
        assert validate_string("", min_length=1).error == "Minimum length is 1"
        assert validate_string("abcdef", max_length=3).error == "Maximum length is 3"

    def test_pattern(self):
        assert validate_string("abc", pattern=r"^\d+$").error == "Value does not match required pattern"

    def test_enum(self):
        assert validate_string("asap", enum=("low", "high")).error == "Value must be one of: low, high"
