"""LLM planner backed by an OpenAI-compatible chat-completion API."""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import quote

import httpx

from agentplanner.errors import (
    EmptyPlanGeneratedError,
    MalformedResponseError,
    MissingCredentialError,
    NetworkTimeoutError,
    RemoteApiError,
    RemoteUnavailableError,
)
from agentplanner.planners.base import CredentialSource
from agentplanner.prompts import build_messages
from agentplanner.schemas import Plan, PlanStep, utc_now_iso
from agentplanner.settings import PlannerSettings

logger = logging.getLogger(__name__)

# Credential source key for the API key
API_KEY_SECRET = "agentplanner.llm.api_key"

MAX_TOKENS = 1000

FENCED_BLOCK = re.compile(r"```[a-zA-Z]*\n([\s\S]*?)```")


@dataclass
class ChatEndpoint:
    """Where and how to send a chat-completion request."""

    url: str
    headers: dict[str, str]
    params: dict[str, str] = field(default_factory=dict)


def _openai_endpoint(settings: PlannerSettings, api_key: str) -> ChatEndpoint:
    return ChatEndpoint(
        url=f"{settings.llm_base_url}/v1/chat/completions",
        headers={"Authorization": f"Bearer {api_key}"},
    )


def _azure_endpoint(settings: PlannerSettings, api_key: str) -> ChatEndpoint:
    deployment = quote(settings.azure_deployment, safe="")
    return ChatEndpoint(
        url=f"{settings.llm_base_url}/openai/deployments/{deployment}/chat/completions",
        headers={"api-key": api_key},
        params={"api-version": settings.azure_api_version},
    )


ENDPOINTS: dict[str, Callable[[PlannerSettings, str], ChatEndpoint]] = {
    "openai": _openai_endpoint,
    "azure": _azure_endpoint,
}


def build_endpoint(settings: PlannerSettings, api_key: str) -> ChatEndpoint:
    """Resolve the request shape for the configured provider (default: openai)."""
    factory = ENDPOINTS.get(settings.llm_provider, _openai_endpoint)
    return factory(settings, api_key)


def build_request_body(task: str, workspace_hint: str | None, settings: PlannerSettings) -> dict[str, Any]:
    """Build the chat-completion JSON body."""
    return {
        "model": settings.llm_model,
        "messages": build_messages(task, workspace_hint),
        "temperature": settings.llm_temperature,
        "max_tokens": MAX_TOKENS,
    }


def extract_json(text: str) -> str:
    """Pull the JSON object out of free-form model output.

    Models often wrap the object in commentary or a fenced code block. Tried
    in order: the first fenced block (when the text opens with a fence), the
    span from the first '{' to the last '}', then the trimmed text as is.
    """
    trimmed = text.strip()
    if trimmed.startswith("```"):
        match = FENCED_BLOCK.search(trimmed)
        if match and match.group(1):
            return match.group(1).strip()

    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if start != -1 and end > start:
        return trimmed[start : end + 1]

    return trimmed


def _message_content(data: Any) -> str:
    """Assistant text of the first choice, or '' when absent."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


def parse_plan_response(content: str, task: str) -> Plan:
    """Validate model output into a Plan.

    Args:
        content: Assistant message text
        task: The original task, used when the model omits it

    Returns:
        Plan with at least one step
    """
    json_text = extract_json(content)
    try:
        raw = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"LLM response is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise MalformedResponseError("LLM response is not a JSON object")

    millis = int(time.time() * 1000)
    steps: list[PlanStep] = []
    seen_ids: set[str] = set()
    raw_steps = raw.get("steps")

    for idx, entry in enumerate(raw_steps if isinstance(raw_steps, list) else []):
        if not isinstance(entry, dict):
            continue
        title = str(entry.get("title") or "").strip()
        if not title:
            continue

        step_id = str(entry.get("id") or "").strip() or f"{millis}-{idx}"
        if step_id in seen_ids:
            step_id = f"{millis}-{idx}"
        seen_ids.add(step_id)

        detail = entry.get("detail")
        steps.append(PlanStep(id=step_id, title=title, detail=str(detail) if detail else None))

    if not steps:
        raise EmptyPlanGeneratedError("LLM returned no steps.")

    return Plan(
        task=str(raw.get("task") or "").strip() or task.strip(),
        steps=steps,
        created_at=str(raw.get("createdAt") or utc_now_iso()),
    )


class LLMPlanner:
    """Planner that asks a chat-completion model for a JSON plan.

    One attempt per call; callers decide whether to try again.
    """

    name = "LLM"

    def __init__(
        self,
        settings: PlannerSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or PlannerSettings()
        self._transport = transport

    async def generate_plan(
        self,
        task: str,
        workspace_hint: str | None,
        credentials: CredentialSource,
    ) -> Plan:
        api_key = (credentials.get(API_KEY_SECRET) or "").strip()
        if not api_key:
            raise MissingCredentialError("LLM API key not set. Store one with the set-api-key command first.")

        endpoint = build_endpoint(self.settings, api_key)
        body = build_request_body(task, workspace_hint, self.settings)
        timeout = self.settings.llm_timeout

        logger.info(f"Requesting plan from {self.settings.llm_provider} ({self.settings.llm_model})")

        try:
            data = await asyncio.wait_for(self._post_chat(endpoint, body), timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error(f"LLM request timed out after {timeout:g}s")
            raise NetworkTimeoutError(f"LLM request timed out after {timeout:g}s") from e
        except httpx.TransportError as e:
            logger.error(f"Failed to reach LLM endpoint {endpoint.url}: {e}")
            raise RemoteUnavailableError(f"LLM endpoint unreachable: {endpoint.url}") from e

        plan = parse_plan_response(_message_content(data), task)
        logger.info(f"LLM plan generated with {len(plan.steps)} steps")
        return plan

    async def _post_chat(self, endpoint: ChatEndpoint, body: dict[str, Any]) -> Any:
        """POST the request and return the decoded response body."""
        async with httpx.AsyncClient(timeout=self.settings.llm_timeout, transport=self._transport) as client:
            response = await client.post(
                endpoint.url,
                params=endpoint.params or None,
                headers=endpoint.headers,
                json=body,
            )

        if not response.is_success:
            logger.error(f"LLM HTTP error: {response.status_code}")
            raise RemoteApiError(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError("LLM response body is not JSON") from e
