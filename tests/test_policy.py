import pytest

from sitelocale.errors import AbortRequested, ErrorCategory, ErrorTracker, NonInteractiveAbort
from sitelocale.policy import ErrorPolicy


def _answers(*responses):
    replies = iter(responses)
    return lambda _message: next(replies)


def test_notes_never_count_toward_thresholds():
    policy = ErrorPolicy(interactive=False, consecutive_limit=1, total_limit=1)

    for _ in range(5):
        policy.note(ErrorCategory.UNMATCHED_FRAGMENT, "fragment left untranslated")

    assert len(policy.notices) == 5
    assert policy.records == []


def test_non_interactive_threshold_raises():
    policy = ErrorPolicy(interactive=False, consecutive_limit=2, total_limit=10)

    assert policy.handle_error(ErrorCategory.FILE_IO, "first", page="index", locale="da") == "continue"
    with pytest.raises(NonInteractiveAbort):
        policy.handle_error(ErrorCategory.FILE_IO, "second")
    assert [record.message for record in policy.records] == ["first", "second"]
    assert policy.records[0].page == "index"


def test_success_resets_consecutive_errors():
    policy = ErrorPolicy(interactive=False, consecutive_limit=2, total_limit=10)

    policy.handle_error(ErrorCategory.FILE_IO, "first")
    policy.record_success()

    assert policy.handle_error(ErrorCategory.FILE_IO, "second") == "continue"


def test_total_limit_applies_across_categories():
    policy = ErrorPolicy(interactive=False, consecutive_limit=5, total_limit=2)

    policy.handle_error(ErrorCategory.FILE_IO, "first")
    with pytest.raises(NonInteractiveAbort):
        policy.handle_error(ErrorCategory.OTHER, "second")


def test_interactive_prompt_can_retry_or_abort(capsys):
    policy = ErrorPolicy(
        interactive=True,
        consecutive_limit=1,
        total_limit=10,
        prompt=_answers("maybe", "r", "a"),
    )

    assert policy.handle_error(ErrorCategory.FILE_IO, "first") == "retry"
    assert "Please respond" in capsys.readouterr().out
    with pytest.raises(AbortRequested):
        policy.handle_error(ErrorCategory.FILE_IO, "second")


def test_tracker_defaults():
    tracker = ErrorTracker()

    assert tracker.consecutive_limit == 3
    assert tracker.total_limit == 10
    assert tracker.register(ErrorCategory.OTHER) == (1, 1, False)
