"""
Error taxonomy for the assessment engine.

State-machine errors are raised synchronously by QuizAttempt. Persistence
errors come from backends and the progress port; the session controller
downgrades them to a "not saved" status instead of blocking the learner.

There is no MalformedAnswer exception: answers that do not fit a
question kind become MalformedAnswer values and simply score zero.
"""


class AssessmentError(Exception):
    """Base class for all engine errors."""
    pass


class AttemptError(AssessmentError):
    """Invalid transition on a quiz attempt."""
    pass


class AttemptLimitExceeded(AttemptError):
    """Raised when starting an attempt beyond the quiz's max_attempts."""

    def __init__(self, quiz_id: str, attempt_number: int, max_attempts: int):
        self.quiz_id = quiz_id
        self.attempt_number = attempt_number
        self.max_attempts = max_attempts
        super().__init__(
            f"Quiz {quiz_id}: attempt {attempt_number} exceeds limit of {max_attempts}"
        )


class AttemptAlreadySubmitted(AttemptError):
    """Raised when input arrives after the attempt was submitted."""

    def __init__(self, quiz_id: str, attempt_number: int):
        self.quiz_id = quiz_id
        self.attempt_number = attempt_number
        super().__init__(f"Quiz {quiz_id}: attempt {attempt_number} is already submitted")


class AnswerRequired(AttemptError):
    """Raised by advance() when the current question has no captured answer."""

    def __init__(self, question_id: str):
        self.question_id = question_id
        super().__init__(f"Question {question_id} must be answered before advancing")


class UnknownQuestion(AttemptError):
    """Raised when an answer references a question id not in the quiz."""

    def __init__(self, question_id: str):
        self.question_id = question_id
        super().__init__(f"Unknown question id: {question_id}")


class QuestionNotReached(AttemptError):
    """Raised when answering a question beyond the cursor."""

    def __init__(self, question_id: str, cursor: int):
        self.question_id = question_id
        self.cursor = cursor
        super().__init__(f"Question {question_id} is beyond the current position ({cursor})")


class PersistenceError(AssessmentError):
    """Storage read/write failure."""
    pass


class StaleRecordError(PersistenceError):
    """Write rejected because the stored record has a newer version."""

    def __init__(self, key: str, expected_version: int | None, actual_version: int | None):
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stale write for {key}: expected version {expected_version}, found {actual_version}"
        )
