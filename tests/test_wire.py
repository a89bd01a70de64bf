"""Wire translation of built-in tools and Responses-API output items."""

from __future__ import annotations

import json

from hypothesis import given
from hypothesis import strategies as st
import pytest

from conduit.errors import BackendError, DecodeError, InternalError
from conduit.results import (
    ApplyPatchCall,
    ApplyPatchCallOutput,
    ComputerAction,
    ComputerCall,
    ComputerCallOutput,
    FunctionCall,
    FunctionCallOutput,
    HostedToolCall,
    ImageGenerationCall,
    SafetyCheck,
    ShellAction,
    ShellCall,
    ShellCallOutput,
    ShellCommandResult,
    ShellOutcome,
)
from conduit.tools import (
    ApplyPatch,
    CodeInterpreter,
    ComputerUse,
    FileSearch,
    FunctionTool,
    ImageGeneration,
    RemoteToolServer,
    Shell,
    UserLocation,
    WebSearch,
)
from conduit.wire import (
    decode_action,
    decode_output,
    function_tool_to_wire,
    output_to_wire,
    parse_responses_body,
    to_strict_schema,
    to_wire,
    tool_from_wire,
)

pytestmark = pytest.mark.unit


# =============================================================================
# Outbound
# =============================================================================


def test_empty_fields_are_omitted_not_nulled() -> None:
    assert to_wire(WebSearch()) == {"type": "web_search"}
    assert to_wire(FileSearch(vector_store_ids=("vs_1",))) == {
        "type": "file_search",
        "vector_store_ids": ["vs_1"],
    }
    assert to_wire(ImageGeneration(size="", compression=0)) == {
        "type": "image_generation"
    }


def test_image_compression_zero_is_left_off_the_wire() -> None:
    low = ImageGeneration(output_format="jpeg", compression=0)
    kept = ImageGeneration(output_format="jpeg", compression=1)

    assert "compression" not in to_wire(low)
    assert to_wire(kept)["compression"] == 1


def test_shell_and_apply_patch_carry_only_the_discriminator() -> None:
    assert to_wire(Shell()) == {"type": "shell"}
    assert to_wire(ApplyPatch()) == {"type": "apply_patch"}


def test_web_search_location_and_domains() -> None:
    tool = WebSearch(
        user_location=UserLocation(country="GB", city="London"),
        allowed_domains=("bbc.co.uk",),
    )

    assert to_wire(tool) == {
        "type": "web_search",
        "user_location": {"type": "approximate", "country": "GB", "city": "London"},
        "filters": {"allowed_domains": ["bbc.co.uk"]},
    }


def test_code_interpreter_container_id_wins_over_auto() -> None:
    assert to_wire(CodeInterpreter(container_id="cntr_1", memory_limit="4g")) == {
        "type": "code_interpreter",
        "container": "cntr_1",
    }
    assert to_wire(CodeInterpreter()) == {
        "type": "code_interpreter",
        "container": {"type": "auto"},
    }
    assert to_wire(CodeInterpreter(memory_limit="4g", file_ids=("f1",))) == {
        "type": "code_interpreter",
        "container": {"type": "auto", "memory_limit": "4g", "file_ids": ["f1"]},
    }


def test_remote_tool_server_connector() -> None:
    tool = RemoteToolServer.connector("mail", "connector_gmail", "tok")

    assert to_wire(tool) == {
        "type": "mcp",
        "server_label": "mail",
        "connector_id": "connector_gmail",
        "authorization": "tok",
        "require_approval": "never",
    }
    assert "tok" not in repr(tool)


def test_unknown_tool_fails_loudly() -> None:
    class Bogus:
        kind = "bogus"

    with pytest.raises(InternalError):
        to_wire(Bogus())  # type: ignore[arg-type]
    with pytest.raises(InternalError):
        tool_from_wire({"type": "bogus"})


_labels = st.text(alphabet="abcdefghijklmnopqrstuvwxyz-", min_size=1, max_size=12)
_opt_text = st.none() | _labels
_opt_pos = st.none() | st.integers(min_value=1, max_value=4096)
_ids = st.tuples(_labels) | st.tuples(_labels, _labels) | st.just(())

_tools = st.one_of(
    st.builds(
        WebSearch,
        user_location=st.none()
        | st.builds(
            UserLocation, country=_opt_text, city=_opt_text, region=_opt_text
        ),
        allowed_domains=_ids,
    ),
    st.builds(FileSearch, vector_store_ids=_ids, max_num_results=_opt_pos),
    st.builds(CodeInterpreter, container_id=_opt_text),
    st.builds(CodeInterpreter, memory_limit=_opt_text, file_ids=_ids),
    st.builds(
        RemoteToolServer,
        server_label=_labels,
        server_url=_labels.map(lambda s: f"https://{s}.example"),
        server_description=_opt_text,
        require_approval=st.sampled_from(["always", "never"]),
        allowed_tools=_ids,
    ),
    st.builds(
        ImageGeneration,
        size=_opt_text,
        quality=_opt_text,
        output_format=_opt_text,
        compression=_opt_pos,
        background=_opt_text,
        partial_images=_opt_pos,
    ),
    st.builds(
        ComputerUse,
        display_width=_opt_pos,
        display_height=_opt_pos,
        environment=_opt_text,
    ),
    st.just(Shell()),
    st.just(ApplyPatch()),
)


@given(_tools)
def test_wire_round_trip_preserves_configured_fields(tool) -> None:
    wire = to_wire(tool)

    assert wire["type"] == tool.kind
    # JSON-clean: no nulls or empty strings ever reach the wire.
    assert None not in wire.values()
    assert "" not in wire.values()
    assert tool_from_wire(json.loads(json.dumps(wire))) == tool


# =============================================================================
# Function tools and follow-up outputs
# =============================================================================


def test_function_tool_styles() -> None:
    tool = FunctionTool("get_weather", "Weather lookup", {"type": "object"})

    assert function_tool_to_wire(tool, style="responses") == {
        "type": "function",
        "name": "get_weather",
        "description": "Weather lookup",
        "parameters": {"type": "object"},
    }
    assert function_tool_to_wire(tool, style="chat") == {
        "type": "function",
        "function": {
            "name": "get_weather",
            "description": "Weather lookup",
            "parameters": {"type": "object"},
        },
    }


def test_strict_schema_closes_every_object() -> None:
    schema = {
        "type": "object",
        "properties": {
            "city": {"type": "string"},
            "when": {"type": "object", "properties": {"day": {"type": "string"}}},
        },
    }

    strict = to_strict_schema(schema)

    assert strict["additionalProperties"] is False
    assert strict["required"] == ["city", "when"]
    assert strict["properties"]["when"]["additionalProperties"] is False
    assert "additionalProperties" not in schema  # input untouched

    wire = function_tool_to_wire(
        FunctionTool("f", parameters=schema, strict=True), style="responses"
    )
    assert wire["strict"] is True


def test_outputs_to_wire() -> None:
    assert output_to_wire(FunctionCallOutput("call_1", "42")) == {
        "type": "function_call_output",
        "call_id": "call_1",
        "output": "42",
    }
    assert output_to_wire(
        ComputerCallOutput(
            "call_2",
            "data:image/png;base64,AAAA",
            acknowledged_safety_checks=(SafetyCheck("sc_1", "sensitive_domain"),),
        )
    ) == {
        "type": "computer_call_output",
        "call_id": "call_2",
        "output": {"type": "input_image", "image_url": "data:image/png;base64,AAAA"},
        "acknowledged_safety_checks": [
            {"id": "sc_1", "code": "sensitive_domain", "message": ""}
        ],
    }
    assert output_to_wire(
        ShellCallOutput(
            "call_3",
            (
                ShellCommandResult("hi\n", "", ShellOutcome("exit", 0)),
                ShellCommandResult(outcome=ShellOutcome("timeout")),
            ),
        )
    )["output"] == [
        {"stdout": "hi\n", "stderr": "", "outcome": {"type": "exit", "exit_code": 0}},
        {"stdout": "", "stderr": "", "outcome": {"type": "timeout"}},
    ]
    assert output_to_wire(ApplyPatchCallOutput("call_4", "failed", "conflict")) == {
        "type": "apply_patch_call_output",
        "call_id": "call_4",
        "status": "failed",
        "output": "conflict",
    }


# =============================================================================
# Inbound
# =============================================================================


def _message(*parts: dict) -> dict:
    return {"type": "message", "role": "assistant", "content": list(parts)}


def test_message_text_and_citations_in_order() -> None:
    items = [
        _message(
            {
                "type": "output_text",
                "text": "See ",
                "annotations": [
                    {"type": "url_citation", "url": "https://a.example", "title": "A",
                     "start_index": 0, "end_index": 3},
                ],
            },
            {"type": "refusal", "refusal": "no"},
        ),
        _message(
            {
                "type": "text",
                "text": "docs.",
                "annotations": [
                    {"type": "file_citation", "file_id": "file_1", "filename": "x.pdf"}
                ],
            }
        ),
    ]

    out = decode_output(items)

    assert out.text == "See docs."
    assert [c.type for c in out.citations] == ["url_citation", "file_citation"]
    assert out.citations[0].url == "https://a.example"
    assert out.citations[1].filename == "x.pdf"


def test_malformed_item_is_dropped_without_error() -> None:
    items = [
        _message({"type": "output_text", "text": "hello"}),
        {"type": "web_search_call", "status": "completed"},  # missing id
        {"type": "function_call", "name": "f"},  # missing call_id
        "garbage",
        {"no_type": True},
    ]

    out = decode_output(items)

    assert out.text == "hello"
    assert out.tool_calls == ()


def test_each_call_item_decodes_to_its_variant() -> None:
    items = [
        {"type": "web_search_call", "id": "ws_1", "status": "completed"},
        {"type": "mcp_call", "id": "mcp_1", "server_label": "gh", "name": "list",
         "arguments": "{}", "output": "[]"},
        {"type": "image_generation_call", "id": "ig_1", "revised_prompt": "a cat",
         "result": "BASE64"},
        {
            "type": "computer_call",
            "id": "cc_1",
            "call_id": "call_1",
            "action": {"type": "click", "x": 10, "y": 20, "button": "left"},
            "pending_safety_checks": [{"id": "sc_1", "code": "malicious_instructions"}],
        },
        {"type": "shell_call", "id": "sh_1", "call_id": "call_2",
         "action": {"commands": ["ls", "pwd"], "timeout_ms": 500}},
        {"type": "apply_patch_call", "id": "ap_1", "call_id": "call_3",
         "operation": {"type": "update_file", "path": "a.py", "diff": "@@"}},
        {"type": "function_call", "id": "fc_1", "call_id": "call_4", "name": "f",
         "arguments": "{\"x\": 1}"},
        {"type": "reasoning", "id": "rs_1"},
    ]

    calls = decode_output(items).tool_calls

    assert [type(c) for c in calls] == [
        HostedToolCall,
        HostedToolCall,
        ImageGenerationCall,
        ComputerCall,
        ShellCall,
        ApplyPatchCall,
        FunctionCall,
    ]
    assert calls[1].server_label == "gh"
    assert calls[2].revised_prompt == "a cat"
    assert calls[3].action == ComputerAction(type="click", x=10, y=20, button="left")
    assert calls[3].pending_safety_checks[0].code == "malicious_instructions"
    assert calls[4].action == ShellAction(commands=("ls", "pwd"), timeout_ms=500)
    assert calls[5].operation is not None and calls[5].operation.path == "a.py"
    assert calls[6].arguments == "{\"x\": 1}"


def test_action_decodes_by_owning_discriminator() -> None:
    shell_shaped = {"commands": ["ls"]}
    computer_shaped = {"type": "scroll", "scroll_y": 300}

    assert decode_action("shell_call", shell_shaped) == ShellAction(commands=("ls",))
    assert decode_action("computer_call", shell_shaped) is None
    assert decode_action("shell_call", computer_shaped) is None
    assert decode_action("image_generation_call", computer_shaped) is None

    items = [{"type": "shell_call", "id": "sh_1", "action": computer_shaped}]
    (call,) = decode_output(items).tool_calls
    assert isinstance(call, ShellCall)
    assert call.action is None


def test_decode_output_tolerates_non_list() -> None:
    assert decode_output(None).text == ""


# =============================================================================
# Envelope
# =============================================================================


def _body(payload: dict) -> bytes:
    return json.dumps(payload).encode()


def test_output_text_is_only_a_fallback() -> None:
    with_items = _body(
        {
            "id": "resp_1",
            "status": "completed",
            "output": [_message({"type": "output_text", "text": "from items"})],
            "output_text": "convenience",
        }
    )
    without_items = _body({"status": "completed", "output": [], "output_text": "fallback"})

    assert parse_responses_body(with_items, backend="openai").output.text == "from items"
    assert parse_responses_body(without_items, backend="openai").output.text == "fallback"


def test_usage_and_finish_reason() -> None:
    body = _body(
        {
            "id": "resp_2",
            "status": "incomplete",
            "incomplete_details": {"reason": "max_output_tokens"},
            "output": [],
            "usage": {
                "input_tokens": 5,
                "output_tokens": 7,
                "total_tokens": 12,
                "output_tokens_details": {"reasoning_tokens": 3},
            },
        }
    )

    parsed = parse_responses_body(body, backend="openai")

    assert parsed.response_id == "resp_2"
    assert parsed.finish_reason == "max_output_tokens"
    assert parsed.usage.total_tokens == 12
    assert parsed.usage.reasoning_tokens == 3


@pytest.mark.parametrize(
    "payload",
    [
        {"error": {"message": "bad", "code": "invalid_prompt"},
         "output": [_message({"type": "output_text", "text": "ignored"})]},
        {"output": "not a list", "error": {"message": "bad", "code": "invalid_prompt"}},
        {"error": {"message": "bad", "code": "invalid_prompt"}, "usage": "junk"},
    ],
)
def test_top_level_error_short_circuits(payload: dict) -> None:
    with pytest.raises(BackendError) as excinfo:
        parse_responses_body(_body(payload), backend="openai", status_code=200)

    assert excinfo.value.code == "invalid_prompt"
    assert excinfo.value.backend == "openai"
    assert excinfo.value.retryable is False


@pytest.mark.parametrize("body", [b"<html>oops</html>", b"[1, 2]", b'{"output": 5}'])
def test_unparsable_envelope_raises_decode_error_with_body(body: bytes) -> None:
    with pytest.raises(DecodeError) as excinfo:
        parse_responses_body(body, backend="openai")

    assert excinfo.value.body == body
