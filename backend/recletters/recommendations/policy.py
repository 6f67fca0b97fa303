"""Delivery policy: who gets emailed, with which link and instructions.

The table is closed. Any pair not listed is a configuration bug and is
rejected when the request is drafted, long before anything is sent.
"""

import enum
from dataclasses import dataclass

from .errors import InvalidPolicyError
from .models import RequestType, SubmissionMethod


class Audience(enum.StrEnum):
    RECOMMENDER = "recommender"
    REQUESTER = "requester"


class InstructionVariant(enum.StrEnum):
    PLATFORM = "platform"
    SCHOOL_ONLY = "school_only"
    HYBRID = "hybrid"


@dataclass(frozen=True)
class DeliveryPolicy:
    recipients: tuple[Audience, ...]
    include_portal_link: bool
    instruction_variant: InstructionVariant


_POLICIES: dict[tuple[RequestType, SubmissionMethod], DeliveryPolicy] = {
    (RequestType.DIRECT_PLATFORM, SubmissionMethod.PLATFORM_ONLY): DeliveryPolicy(
        recipients=(Audience.RECOMMENDER,),
        include_portal_link=True,
        instruction_variant=InstructionVariant.PLATFORM,
    ),
    # The school sends its own upload link; our email is informational only
    (RequestType.SCHOOL_DIRECT, SubmissionMethod.SCHOOL_ONLY): DeliveryPolicy(
        recipients=(Audience.RECOMMENDER,),
        include_portal_link=False,
        instruction_variant=InstructionVariant.SCHOOL_ONLY,
    ),
    (RequestType.HYBRID, SubmissionMethod.BOTH): DeliveryPolicy(
        recipients=(Audience.RECOMMENDER,),
        include_portal_link=True,
        instruction_variant=InstructionVariant.HYBRID,
    ),
}


def resolve_delivery_policy(request_type: str, submission_method: str) -> DeliveryPolicy:
    """Look up the delivery policy for a routing pair.

    Raises InvalidPolicyError for unknown values and for known values that
    are not a supported pair (e.g. hybrid + platform_only).
    """
    try:
        key = (RequestType(request_type), SubmissionMethod(submission_method))
    except ValueError as exc:
        raise InvalidPolicyError(
            f"Unknown routing request_type={request_type!r} submission_method={submission_method!r}"
        ) from exc

    policy = _POLICIES.get(key)
    if policy is None:
        raise InvalidPolicyError(
            f"Unsupported routing request_type={key[0].value} submission_method={key[1].value}"
        )
    return policy


def supported_routings() -> list[tuple[str, str]]:
    return [(rt.value, sm.value) for rt, sm in _POLICIES]
