"""User-visible fixed strings, keyed by locale."""

from typing import Optional

from marketing_assistant.config import settings


SUPPORTED_LOCALES = ("en", "vi")

_CATALOG: dict[str, dict[str, str]] = {
    "en": {
        "oracle_apology": "Sorry, I'm having a technical problem right now. Please try again in a moment!",
        "onboarding_guidance": (
            "To get started, tell me about your business: what you sell, who your customers are "
            "and what makes you different. I'll open a short form so you can fill it in quickly."
        ),
        "capabilities_overview": (
            "While I reconnect, here is what I can help you with:\n"
            "- Create a new marketing campaign\n"
            "- Build a content schedule for a campaign\n"
            "- Review your existing campaigns and schedules\n"
            "- Update your business profile"
        ),
        "rate_limit_interval": "Please wait at least {seconds} seconds between messages.",
        "rate_limit_per_minute": "Too many messages. Please wait a minute before sending more.",
        "new_chat_interval": "Please wait {seconds} seconds before starting a new chat.",
        "new_chat_per_hour": "You have started too many new chats. Please try again in an hour.",
        "campaign_form_reminder": (
            "You still have an unfinished campaign form. Please fill in the form so I can plan "
            "the right content for you!"
        ),
        "tool_cancelled": "Okay, I cancelled {tool}. Nothing was changed.",
        "tool_confirmed": "Done! {tool} completed successfully.",
        "tool_failed": "Sorry, {tool} could not be completed: {error}",
        "onboarding_saved": "Thanks! I've saved your business profile. What would you like to do next?",
        "onboarding_form_message": (
            "To help you best, please fill in the business information form below. {reason}"
        ),
        "campaign_form_message": (
            "Please fill in the new campaign form so I can help you plan the right content."
        ),
        "campaign_pending": "Please review the campaign details and confirm to create it.",
        "transcript_heading": "**Steps performed**",
        "message_too_long": "Message is too long (maximum {limit} characters).",
    },
    "vi": {
        "oracle_apology": "Xin lỗi, tôi gặp chút vấn đề kỹ thuật. Hãy thử lại sau giây lát nhé!",
        "onboarding_guidance": (
            "Để bắt đầu, hãy chia sẻ về doanh nghiệp của bạn: bạn bán gì, khách hàng là ai và "
            "điểm khác biệt của bạn. Tôi sẽ mở một form ngắn để bạn điền nhanh."
        ),
        "capabilities_overview": (
            "Trong lúc tôi kết nối lại, đây là những việc tôi có thể giúp bạn:\n"
            "- Tạo chiến dịch marketing mới\n"
            "- Lên lịch nội dung cho chiến dịch\n"
            "- Xem lại các chiến dịch và lịch đăng bài hiện có\n"
            "- Cập nhật thông tin doanh nghiệp"
        ),
        "rate_limit_interval": "Vui lòng chờ ít nhất {seconds} giây giữa các tin nhắn.",
        "rate_limit_per_minute": "Quá nhiều tin nhắn. Vui lòng chờ 1 phút trước khi gửi tiếp.",
        "new_chat_interval": "Vui lòng đợi {seconds} giây trước khi tạo chat mới.",
        "new_chat_per_hour": "Bạn đã tạo quá nhiều chat mới. Vui lòng thử lại sau 1 giờ.",
        "campaign_form_reminder": (
            "Bạn đang có một form tạo chiến dịch marketing chưa hoàn thành. Vui lòng điền đầy đủ "
            "thông tin vào form để tôi có thể hỗ trợ bạn lên kế hoạch nội dung phù hợp nhất!"
        ),
        "tool_cancelled": "Đã hủy {tool}. Không có thay đổi nào được thực hiện.",
        "tool_confirmed": "Hoàn tất! {tool} đã thực hiện thành công.",
        "tool_failed": "Xin lỗi, không thể thực hiện {tool}: {error}",
        "onboarding_saved": "Cảm ơn bạn! Tôi đã lưu thông tin doanh nghiệp. Bạn muốn làm gì tiếp theo?",
        "onboarding_form_message": (
            "Để tôi có thể hỗ trợ bạn tốt nhất, vui lòng điền form thông tin doanh nghiệp bên dưới. {reason}"
        ),
        "campaign_form_message": (
            "Vui lòng điền form thông tin chiến dịch marketing mới để tôi có thể hỗ trợ bạn lên "
            "kế hoạch nội dung phù hợp."
        ),
        "campaign_pending": "Vui lòng xem lại thông tin chiến dịch và xác nhận để tạo.",
        "transcript_heading": "**Các bước đã thực hiện**",
        "message_too_long": "Tin nhắn quá dài (tối đa {limit} ký tự).",
    },
}

FALLBACK_SUGGESTIONS: dict[str, dict[bool, list[str]]] = {
    "en": {
        True: [
            "I want to create a new marketing campaign",
            "Show me my current campaigns",
            "Help me schedule my posts",
            "How can I improve my content?",
        ],
        False: [
            "Set up my business information",
            "I need a guide to get started",
            "What can you help me with?",
            "Create my first marketing campaign",
        ],
    },
    "vi": {
        True: [
            "Tôi muốn tạo chiến dịch marketing mới",
            "Hãy xem các chiến dịch hiện tại của tôi",
            "Giúp tôi lên lịch đăng bài",
            "Tư vấn tối ưu hóa nội dung",
        ],
        False: [
            "Thiết lập thông tin doanh nghiệp",
            "Tôi cần hướng dẫn bắt đầu",
            "Trợ lý có thể giúp gì cho tôi?",
            "Tạo chiến dịch marketing đầu tiên",
        ],
    },
}


def resolve_locale(locale: Optional[str]) -> str:
    if locale:
        short = locale.split("-")[0].lower()
        if short in SUPPORTED_LOCALES:
            return short
    return settings.DEFAULT_LOCALE if settings.DEFAULT_LOCALE in SUPPORTED_LOCALES else "en"


def get_message(key: str, locale: Optional[str] = None, **params) -> str:
    catalog = _CATALOG[resolve_locale(locale)]
    template = catalog.get(key) or _CATALOG["en"][key]
    return template.format(**params) if params else template


def fallback_suggestions(has_onboarding: bool, locale: Optional[str] = None) -> list[str]:
    return list(FALLBACK_SUGGESTIONS[resolve_locale(locale)][has_onboarding])
