"""
Message catalog for user-facing errors.

Locale handling lives only here and in the HTTP boundary; services speak in
``EligibilityReason`` values and message keys.
"""
from fastapi import Request

from lms_api.config import DEFAULT_LOCALE

SUPPORTED_LOCALES = ("en", "ja")

MESSAGES: dict[str, dict[str, str]] = {
    # Eligibility / lifecycle
    "NOT_PUBLISHED": {
        "en": "Test is not published",
        "ja": "テストが公開されていません",
    },
    "NOT_AVAILABLE_YET": {
        "en": "Test is not yet available",
        "ja": "テストはまだ利用できません",
    },
    "NO_LONGER_AVAILABLE": {
        "en": "Test is no longer available",
        "ja": "テストは利用期間が終了しています",
    },
    "MAX_ATTEMPTS_EXCEEDED": {
        "en": "Maximum attempts ({max_attempts}) exceeded",
        "ja": "最大受験回数（{max_attempts}回）を超過しました",
    },
    "ALREADY_IN_PROGRESS": {
        "en": "Test is already in progress",
        "ja": "テストは既に実行中です",
    },
    "NOT_IN_PROGRESS": {
        "en": "Test is not in progress",
        "ja": "テストが実行中ではありません",
    },
    # Not found
    "TEST_NOT_FOUND": {
        "en": "Test not found",
        "ja": "テストが見つかりません",
    },
    "QUESTION_NOT_FOUND": {
        "en": "Question not found",
        "ja": "問題が見つかりません",
    },
    "QUESTION_NOT_IN_TEST": {
        "en": "Question not found in test",
        "ja": "テストに問題が見つかりません",
    },
    "ATTEMPT_NOT_FOUND": {
        "en": "Test result not found",
        "ja": "受験結果が見つかりません",
    },
    "ANSWER_NOT_FOUND": {
        "en": "Answer not found",
        "ja": "解答が見つかりません",
    },
    # Validation
    "INVALID_DATE_RANGE": {
        "en": "Available from date must be before available until date",
        "ja": "利用開始日は利用終了日より前でなければなりません",
    },
    "ANSWER_FOR_UNKNOWN_QUESTION": {
        "en": "Answer references question {question_id} which is not part of this test",
        "ja": "解答の問題{question_id}はこのテストに含まれていません",
    },
    "DUPLICATE_ANSWER": {
        "en": "Question {question_id} was answered more than once",
        "ja": "問題{question_id}に複数の解答があります",
    },
    "CHOICE_ANSWER_SHAPE": {
        "en": "Selected option ID is required for choice question {question_id}",
        "ja": "選択問題{question_id}には選択肢IDが必要です",
    },
    "TEXT_ANSWER_SHAPE": {
        "en": "Answer text is required for essay/programming question {question_id}",
        "ja": "記述・プログラミング問題{question_id}には解答テキストが必要です",
    },
    "UNKNOWN_OPTION": {
        "en": "Option {option_id} does not belong to question {question_id}",
        "ja": "選択肢{option_id}は問題{question_id}に属していません",
    },
    "QUESTION_ALREADY_IN_TEST": {
        "en": "Question is already added to this test",
        "ja": "この問題は既にテストに追加されています",
    },
    "INSUFFICIENT_OPTIONS": {
        "en": "Single choice questions must have at least 2 options",
        "ja": "単一選択問題には少なくとも2つの選択肢が必要です",
    },
    "NO_SINGLE_CORRECT_OPTION": {
        "en": "Single choice questions must have exactly one correct option",
        "ja": "単一選択問題には正解の選択肢がちょうど1つ必要です",
    },
    "OPTIONS_NOT_ALLOWED": {
        "en": "Essay and programming questions cannot have options",
        "ja": "記述・プログラミング問題に選択肢は設定できません",
    },
    "NOT_MANUALLY_GRADABLE": {
        "en": "Only essay and programming answers can be graded manually",
        "ja": "手動採点できるのは記述・プログラミング問題のみです",
    },
    "ATTEMPT_NOT_COMPLETED": {
        "en": "Only completed attempts can be graded",
        "ja": "採点できるのは完了した受験のみです",
    },
    "POINTS_OUT_OF_RANGE": {
        "en": "Points awarded must be between 0 and {max_points}",
        "ja": "付与点は0から{max_points}の間でなければなりません",
    },
    # Conflicts
    "CANNOT_DELETE_TEST_WITH_RESULTS": {
        "en": "Cannot delete test with existing attempts",
        "ja": "受験記録があるテストは削除できません",
    },
    "TEST_LOCKED": {
        "en": "Only the title and description can change once a test has attempts",
        "ja": "受験記録があるテストはタイトルと説明のみ変更できます",
    },
    "QUESTION_SET_LOCKED": {
        "en": "Questions cannot be changed while attempts are in progress",
        "ja": "受験中のため問題を変更できません",
    },
    # Authorization
    "UNAUTHORIZED_ACCESS": {
        "en": "You can only {action} tests you created",
        "ja": "自分が作成したテストのみ{action}できます",
    },
    "ADMIN_ONLY": {
        "en": "Insufficient permissions to perform this action",
        "ja": "この操作を実行する権限がありません",
    },
    # System
    "INTERNAL_SERVER_ERROR": {
        "en": "Internal server error",
        "ja": "サーバー内部エラーが発生しました",
    },
}

ACTION_LABELS: dict[str, dict[str, str]] = {
    "en": {
        "update": "update",
        "delete": "delete",
        "modify": "modify",
        "view": "view",
        "grade": "grade",
    },
    "ja": {
        "update": "更新",
        "delete": "削除",
        "modify": "変更",
        "view": "表示",
        "grade": "採点",
    },
}


def normalize_locale(value: str | None) -> str:
    """Reduce a locale tag (``ja-JP``, ``en``) to a supported locale."""
    if not value:
        return DEFAULT_LOCALE if DEFAULT_LOCALE in SUPPORTED_LOCALES else "en"
    primary = value.split(",")[0].split("-")[0].split(";")[0].strip().lower()
    return primary if primary in SUPPORTED_LOCALES else "en"


def get_locale(request: Request) -> str:
    """Detect locale from X-Locale, ?locale= or Accept-Language."""
    explicit = request.headers.get("x-locale") or request.query_params.get("locale")
    if explicit:
        return normalize_locale(explicit)
    return normalize_locale(request.headers.get("accept-language"))


def translate(key: str, locale: str, **params: object) -> str:
    """Render a message key for the locale, falling back to English, then the key."""
    entry = MESSAGES.get(key)
    if entry is None:
        return key
    text = entry.get(locale) or entry["en"]
    if "action" in params:
        labels = ACTION_LABELS.get(locale, ACTION_LABELS["en"])
        params = {**params, "action": labels.get(str(params["action"]), params["action"])}
    try:
        return text.format(**params)
    except (KeyError, IndexError):
        return text
