"""Errors raised by the recommendation lifecycle.

Each error carries an HTTP status and a message that is safe to show to a
recommender following a link, so the portal can explain what happened.
"""


class RecommendationError(Exception):
    status_code = 400
    code = "recommendation_error"
    user_message = "This recommendation request could not be processed."

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.user_message)
        self.detail = detail or self.user_message


class NotFoundError(RecommendationError):
    status_code = 404
    code = "not_found"
    user_message = "This recommendation link is not valid. Please check the address in your email."


class ExpiredError(RecommendationError):
    status_code = 410
    code = "link_expired"
    user_message = "This recommendation link has expired. Please contact the student for a new request."


class AlreadyCompletedError(RecommendationError):
    status_code = 409
    code = "already_submitted"
    user_message = "A recommendation letter has already been submitted for this request. Thank you!"


class DeadlinePassedError(RecommendationError):
    status_code = 410
    code = "deadline_passed"
    user_message = "The deadline for this recommendation has passed and it no longer accepts submissions."


class InvalidPolicyError(RecommendationError):
    status_code = 400
    code = "invalid_policy"
    user_message = "This combination of request type and submission method is not supported."


class InvalidTransitionError(RecommendationError):
    status_code = 409
    code = "invalid_transition"
    user_message = "This recommendation request has already moved on and cannot be changed."


class ConflictError(RecommendationError):
    status_code = 409
    code = "conflict"
    user_message = "A secure link has already been issued for this request."


class SubmissionNotAcceptedError(RecommendationError):
    status_code = 409
    code = "submit_to_institution"
    user_message = "This institution collects the letter directly. Please follow the instructions in your email."


class DraftUnavailableError(RecommendationError):
    status_code = 503
    code = "draft_unavailable"
    user_message = "The letter draft assistant is not available right now. Please try again later."
