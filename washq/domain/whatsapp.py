import re
from typing import Optional
from urllib.parse import quote

from washq.domain.errors import WhatsAppNotConfiguredError
from washq.domain.states import JobStatus

# Settings key holding each status message template.
STATUS_TEMPLATE_KEYS: dict[JobStatus, str] = {
    JobStatus.RECEIVED: "received",
    JobStatus.IN_PROGRESS: "inProgress",
    JobStatus.WASHING: "washing",
    JobStatus.DRYING: "drying",
    JobStatus.COMPLETED: "completed",
    JobStatus.DELIVERED: "delivered",
}

REVIEW_MESSAGE = "Thank you for choosing us 🙏\nPlease leave us a Google review: {link}"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: Optional[str]) -> str:
    if not phone:
        return ""
    return _NON_DIGITS.sub("", phone)


def fill_template(template: str, name: str = "", vehicle_number: str = "", token: str = "") -> str:
    if not template:
        return ""
    return (
        template.replace("{{name}}", str(name))
        .replace("{{vehicleNumber}}", str(vehicle_number))
        .replace("{{token}}", str(token))
    )


def click_to_chat_url(phone_digits: str, text: str) -> str:
    return f"https://wa.me/{phone_digits}?text={quote(text, safe='')}"


def build_status_link(
    status: JobStatus,
    templates: Optional[dict[str, str]],
    shop_number: Optional[str],
    customer_phone: Optional[str],
    customer_name: str = "",
    vehicle_number: str = "",
    token: str = "",
) -> str:
    """
    Click-to-chat URL carrying the status message for this job.

    Nothing is sent; the operator opens the link and sends it by hand.
    """
    if not (shop_number or "").strip():
        raise WhatsAppNotConfiguredError("Shop WhatsApp number is not set")

    digits = normalize_phone(customer_phone)
    if not digits:
        raise WhatsAppNotConfiguredError("Customer phone number is missing")

    key = STATUS_TEMPLATE_KEYS.get(JobStatus(status))
    template = (templates or {}).get(key, "") if key else ""
    if not template:
        raise WhatsAppNotConfiguredError(f"No WhatsApp template for status {status}")

    text = fill_template(template, name=customer_name, vehicle_number=vehicle_number, token=token)
    return click_to_chat_url(digits, text)


def build_review_link(review_link: Optional[str], customer_phone: Optional[str]) -> str:
    link = (review_link or "").strip()
    if not link:
        raise WhatsAppNotConfiguredError("Google Review link not set")

    digits = normalize_phone(customer_phone)
    if not digits:
        raise WhatsAppNotConfiguredError("Customer phone number is missing")

    return click_to_chat_url(digits, REVIEW_MESSAGE.format(link=link))
