"""Wire codec for the Anthropic-shaped messages endpoint.

Request body:
{
  "model": "<model_name>",
  "max_tokens": 6000,               # clamped to the provider ceiling
  "system": "<system_prompt>",      # omitted when absent
  "messages": [
    {"role": "user", "content": [{"type": "text", "text": "..."}]},
    {"role": "assistant", "content": [{"type": "text", "text": "..."}]}
  ],
  "stream": true                    # streaming requests only
}

Response (non-stream):
{
  "id": "msg_...",
  "content": [{"type": "text", "text": "<output_text>"}, ...],
  "usage": {"input_tokens": 100, "output_tokens": 50}
}

- text = concatenate all content[].text where type="text", in array order
- no text blocks (or a body that isn't that shape) → raw body text
"""

import json

from deckflow.services.llm.types import ChatMessage, CompletionRequest, LLMUsage

DEFAULT_MAX_TOKENS_CEILING = 8192


def clamp_max_tokens(max_tokens: int, ceiling: int) -> int:
    """Clamp a requested token budget into [1, ceiling]."""
    return max(1, min(max_tokens, ceiling))


def build_headers(api_key: str, *, streaming: bool) -> dict[str, str]:
    """Build request headers for the proxy."""
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    if streaming:
        headers["Accept"] = "text/event-stream"
    return headers


def _message_to_wire(message: ChatMessage) -> dict:
    return {
        "role": message.role,
        "content": [{"type": "text", "text": message.text}],
    }


def build_request_body(
    request: CompletionRequest,
    *,
    max_tokens_ceiling: int = DEFAULT_MAX_TOKENS_CEILING,
) -> dict:
    """Build the JSON request body from a CompletionRequest.

    System-role messages are lifted into the separate "system" field, after
    any explicit request.system text.
    """
    system_parts = [request.system] if request.system else []
    messages = []

    for message in request.messages:
        if message.role == "system":
            system_parts.append(message.text)
        else:
            messages.append(_message_to_wire(message))

    body: dict = {
        "model": request.model,
        "max_tokens": clamp_max_tokens(request.max_tokens, max_tokens_ceiling),
        "messages": messages,
    }

    if system_parts:
        body["system"] = "\n\n".join(system_parts)

    if request.streaming:
        body["stream"] = True

    return body


def encode_request(
    request: CompletionRequest,
    *,
    max_tokens_ceiling: int = DEFAULT_MAX_TOKENS_CEILING,
) -> bytes:
    """Serialize a CompletionRequest to the bytes sent on the wire."""
    body = build_request_body(request, max_tokens_ceiling=max_tokens_ceiling)
    return json.dumps(body, ensure_ascii=False).encode("utf-8")


def decode_full(body: bytes) -> str:
    """Decode a non-streaming response body into assistant text.

    Never raises: anything that isn't a content-block document, or a document
    without text blocks, degrades to the raw body text.
    """
    raw = body.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError):
        return raw

    text = extract_text_blocks(data)
    if text:
        return text
    return raw


def extract_text_blocks(data: object) -> str:
    """Concatenate text blocks of a decoded response, in document order."""
    if not isinstance(data, dict):
        return ""
    content_blocks = data.get("content")
    if not isinstance(content_blocks, list):
        return ""

    text_parts = []
    for block in content_blocks:
        if not isinstance(block, dict) or block.get("type") != "text":
            continue
        text = block.get("text")
        if isinstance(text, str):
            text_parts.append(text)
    return "".join(text_parts)


def _token_count(value: object) -> int | None:
    # bool is an int subclass but never a count
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def parse_usage(data: object) -> LLMUsage | None:
    """Extract usage from a response or message_delta payload.

    Anthropic uses input_tokens/output_tokens. Counts that are not integers
    are dropped rather than raised on.
    """
    if not isinstance(data, dict):
        return None
    usage_data = data.get("usage")
    if not isinstance(usage_data, dict) or not usage_data:
        return None

    input_tokens = _token_count(usage_data.get("input_tokens"))
    output_tokens = _token_count(usage_data.get("output_tokens"))
    total = None
    if input_tokens is not None and output_tokens is not None:
        total = input_tokens + output_tokens

    return LLMUsage(
        prompt_tokens=input_tokens,
        completion_tokens=output_tokens,
        total_tokens=total,
    )
