"""Tagged results for billing operations.

Expected failures (no session, nothing to manage, Stripe unavailable) are
returned as ``Err`` rather than raised, so request handlers can turn them into
an inline message next to the button that triggered them::

    result = await create_checkout_session(db, user, "monthly")
    if isinstance(result, Err):
        ...
    else:
        redirect(result.value.url)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCode(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    USER_NOT_FOUND = "user_not_found"
    ALREADY_PREMIUM = "already_premium"
    NOT_PREMIUM = "not_premium"
    PRICE_NOT_CONFIGURED = "price_not_configured"
    NO_CUSTOMER = "no_customer"
    NO_SUBSCRIPTION = "no_subscription"
    FORBIDDEN = "forbidden"
    INVALID_REQUEST = "invalid_request"
    PROVIDER_ERROR = "provider_error"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    code: ErrorCode
    message: str


Result = Union[Ok[T], Err]


# User-facing messages (shown in the BON-LOG UI as-is).
MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.UNAUTHENTICATED: "認証が必要です",
    ErrorCode.USER_NOT_FOUND: "ユーザーが見つかりません",
    ErrorCode.ALREADY_PREMIUM: "すでに有料会員です",
    ErrorCode.NOT_PREMIUM: "このユーザーは有料会員ではありません",
    ErrorCode.PRICE_NOT_CONFIGURED: "価格設定が見つかりません",
    ErrorCode.NO_CUSTOMER: "サブスクリプション情報が見つかりません",
    ErrorCode.NO_SUBSCRIPTION: "サブスクリプションが見つかりません",
    ErrorCode.FORBIDDEN: "管理者権限が必要です",
    ErrorCode.INVALID_REQUEST: "リクエストが不正です",
    ErrorCode.PROVIDER_ERROR: "決済サービスとの通信に失敗しました。時間をおいて再度お試しください",
}


def err(code: ErrorCode, message: str | None = None) -> Err:
    """Build an ``Err`` with the default user-facing message for ``code``."""
    return Err(code=code, message=message or MESSAGES[code])
