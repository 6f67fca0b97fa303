"""Letter draft assistant.

A requester can ask for a first draft of the letter (to hand the recommender
with ``include_draft``) and refine it with feedback. Drafts are not stored
here; the requester attaches the final text when creating the request.
"""

import logging

import anthropic

from ..auth.models import User
from ..config import Settings, settings
from ..integrations.anthropic_client import calculate_cost, complete_text, prompt_hash, resolve_model
from ..integrations.cache import CacheService
from ..prompts import (
    DRAFT_SYSTEM_PROMPT,
    DRAFT_TEMPLATES,
    DRAFT_USER_PROMPT,
    REFINE_SYSTEM_PROMPT,
    REFINE_USER_PROMPT,
)
from ..recipients.models import Recipient
from .errors import DraftUnavailableError

logger = logging.getLogger(__name__)

MAX_TOKENS = 2048


def _template(template_type: str) -> tuple[str, str]:
    if template_type not in DRAFT_TEMPLATES:
        raise ValueError(f"Unknown draft template {template_type!r}")
    return DRAFT_TEMPLATES[template_type]


def _complete(
    system_prompt: str,
    user_prompt: str,
    model: str | None,
    cache: CacheService | None,
    config: Settings,
) -> dict:
    if not config.anthropic_api_key:
        raise DraftUnavailableError("ANTHROPIC_API_KEY not set")

    model_id = resolve_model(model or config.draft_model)
    cache_key = f"draft:{model_id}:{prompt_hash(system_prompt, user_prompt)[:16]}"
    if cache:
        cached = cache.get_json(cache_key)
        if cached:
            cached["from_cache"] = True
            return cached

    try:
        text, usage = complete_text(system_prompt, user_prompt, model_id, MAX_TOKENS)
    except (anthropic.APIError, ValueError) as exc:
        logger.exception("Draft completion failed (model=%s)", model_id)
        raise DraftUnavailableError(str(exc)) from exc

    result = {
        "draft": text,
        "model_used": model_id,
        "from_cache": False,
        "tokens": {
            "input": usage.input_tokens,
            "output": usage.output_tokens,
            "total": usage.input_tokens + usage.output_tokens,
        },
        "cost_usd": calculate_cost(usage, model_id),
    }
    logger.info(
        "Draft generated (model=%s, tokens=%d, cost=$%.4f)",
        model_id,
        result["tokens"]["total"],
        result["cost_usd"],
    )

    if cache:
        cache_data = {k: v for k, v in result.items() if k != "from_cache"}
        cache.set_json(cache_key, cache_data, config.draft_cache_ttl_seconds)
    return result


def generate_draft(
    student: User,
    recipient: Recipient,
    *,
    purpose: str,
    highlights: list[str] | None = None,
    relationship: str = "student",
    template_type: str = "academic",
    custom_instructions: str | None = None,
    model: str | None = None,
    cache: CacheService | None = None,
    config: Settings = settings,
) -> dict:
    """Write a first draft in the recommender's voice."""
    template_name, template_description = _template(template_type)
    user_prompt = DRAFT_USER_PROMPT.format(
        student_name=student.display_name,
        student_email=student.email,
        relationship=relationship or "student",
        purpose=purpose,
        achievements=", ".join(h.strip() for h in highlights or [] if h.strip()) or "not specified",
        recommender_name=recipient.name,
        recommender_title=recipient.title or "not specified",
        recommender_institution=recipient.institution or "not specified",
        recommender_department=recipient.department or "not specified",
        template_name=template_name,
        template_description=template_description,
        custom_instructions=f"\n## ADDITIONAL INSTRUCTIONS\n{custom_instructions}\n" if custom_instructions else "",
    )
    return _complete(DRAFT_SYSTEM_PROMPT, user_prompt, model, cache, config)


def refine_draft(
    current_draft: str,
    feedback: str,
    *,
    additional_context: str | None = None,
    student: User | None = None,
    recipient: Recipient | None = None,
    purpose: str | None = None,
    template_type: str = "academic",
    model: str | None = None,
    cache: CacheService | None = None,
    config: Settings = settings,
) -> dict:
    """Revise a draft according to the requester's feedback."""
    if not current_draft.strip() or not feedback.strip():
        raise ValueError("Both the current draft and feedback are required")
    template_name, template_description = _template(template_type)

    context = []
    if additional_context:
        context.append(f"Additional context to incorporate: {additional_context}")
    if student is not None:
        context.append(f"Student: {student.display_name} ({student.email})")
    if purpose:
        context.append(f"Purpose of the letter: {purpose}")
    if recipient is not None:
        line = f"Recommender: {recipient.name}"
        if recipient.title:
            line += f", {recipient.title}"
        if recipient.institution:
            line += f", {recipient.institution}"
        context.append(line)
    context_block = "\n## CONTEXT\n" + "\n".join(context) + "\n" if context else ""

    user_prompt = REFINE_USER_PROMPT.format(
        current_draft=current_draft.strip(),
        feedback=feedback.strip(),
        context_block=context_block,
        template_name=template_name,
        template_description=template_description,
    )
    return _complete(REFINE_SYSTEM_PROMPT, user_prompt, model, cache, config)
