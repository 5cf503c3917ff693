import pytest
from starlette.requests import Request

from lms_api.errors import BusinessRuleViolation, EligibilityReason, NotFoundError
from lms_api.i18n import MESSAGES, get_locale, normalize_locale, translate


def _request(headers: dict[str, str] | None = None, query: str = "") -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": query.encode(),
        "headers": [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()],
    }
    return Request(scope)


def test_every_reason_has_both_locales() -> None:
    for reason in EligibilityReason:
        assert set(MESSAGES[reason.value]) == {"en", "ja"}


def test_translate_with_parameters() -> None:
    assert translate("MAX_ATTEMPTS_EXCEEDED", "en", max_attempts=3) == "Maximum attempts (3) exceeded"
    assert translate("MAX_ATTEMPTS_EXCEEDED", "ja", max_attempts=3) == "最大受験回数（3回）を超過しました"


def test_translate_localizes_action_label() -> None:
    assert translate("UNAUTHORIZED_ACCESS", "en", action="delete") == "You can only delete tests you created"
    assert translate("UNAUTHORIZED_ACCESS", "ja", action="delete") == "自分が作成したテストのみ削除できます"


def test_translate_fallbacks() -> None:
    assert translate("TEST_NOT_FOUND", "fr") == "Test not found"
    assert translate("SOMETHING_ELSE", "ja") == "SOMETHING_ELSE"
    assert translate("MAX_ATTEMPTS_EXCEEDED", "en") == "Maximum attempts ({max_attempts}) exceeded"


@pytest.mark.parametrize(
    "value, expected",
    [("ja", "ja"), ("ja-JP", "ja"), ("JA", "ja"), ("en-US,en;q=0.9", "en"), ("de", "en"), ("", "en"), (None, "en")],
)
def test_normalize_locale(value, expected) -> None:
    assert normalize_locale(value) == expected


def test_locale_detection_precedence() -> None:
    assert get_locale(_request({"X-Locale": "ja", "Accept-Language": "en"})) == "ja"
    assert get_locale(_request({"Accept-Language": "en"}, query="locale=ja")) == "ja"
    assert get_locale(_request({"Accept-Language": "ja-JP,ja;q=0.9"})) == "ja"
    assert get_locale(_request()) == "en"


def test_violation_status_codes() -> None:
    assert BusinessRuleViolation(EligibilityReason.ALREADY_IN_PROGRESS).status_code == 409
    assert BusinessRuleViolation(EligibilityReason.NOT_IN_PROGRESS).status_code == 409
    assert BusinessRuleViolation(EligibilityReason.NOT_PUBLISHED).status_code == 400
    assert NotFoundError("TEST_NOT_FOUND").status_code == 404
