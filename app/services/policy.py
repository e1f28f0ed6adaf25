"""Moderation decision tables.

Every function here is pure: given a resolution and whether the incidence is
the re-review of an appeal, it returns the product state to apply and the
notification text to send to the seller. The tables are checked for
completeness at import time.
"""
from itertools import product as cartesian
from typing import Dict, Optional, Tuple

from app.models.incidence_model import Resolution
from app.models.product_model import ModerationStatus, ProductStatus

AUTO_SUSPEND_DESCRIPTION = "{description} [AUTO-SUSPENDED: {count} reports]"
AUTO_SUSPEND_NOTES = (
    "Product automatically suspended after receiving {count} reports. "
    "A review is required before it can be reactivated."
)

_ACTIVE = (ModerationStatus.ACTIVE, ProductStatus.ACTIVE)
_SUSPENDED = (ModerationStatus.SUSPENDED, ProductStatus.INACTIVE)
_PERMANENT = (ModerationStatus.PERMANENTLY_SUSPENDED, ProductStatus.RESTRICTED)

# (resolution, is_appeal_review) -> (moderation_status, status)
RESOLUTION_POLICY: Dict[Tuple[Resolution, bool], Tuple[ModerationStatus, ProductStatus]] = {
    (Resolution.APPROVED, False): _ACTIVE,
    (Resolution.APPROVED, True): _ACTIVE,
    # A rejected report clears the product; a rejected appeal makes the suspension final.
    (Resolution.REJECTED, False): _ACTIVE,
    (Resolution.REJECTED, True): _PERMANENT,
    (Resolution.SUSPENDED, False): _SUSPENDED,
    (Resolution.SUSPENDED, True): _PERMANENT,
    (Resolution.PERMANENTLY_SUSPENDED, False): _PERMANENT,
    (Resolution.PERMANENTLY_SUSPENDED, True): _PERMANENT,
}

# (resolution, is_appeal_review) -> (title, body template)
RESOLUTION_MESSAGES: Dict[Tuple[Resolution, bool], Tuple[str, str]] = {
    (Resolution.APPROVED, False): (
        "Product Approved",
        'Your product "{product}" has been reviewed and approved. No problems were found.',
    ),
    (Resolution.APPROVED, True): (
        "Appeal Accepted",
        'Your appeal on the product "{product}" has been accepted. The product is active again.',
    ),
    (Resolution.REJECTED, False): (
        "Report Rejected",
        'The report on your product "{product}" was rejected. Your product is active.',
    ),
    (Resolution.REJECTED, True): (
        "Appeal Rejected",
        'Your appeal on the product "{product}" has been rejected. '
        "The product has been permanently suspended.",
    ),
    (Resolution.SUSPENDED, False): (
        "Product Temporarily Suspended",
        'Your product "{product}" has been temporarily suspended for violating the platform policies. '
        'You can appeal this decision from "My Products".',
    ),
    (Resolution.SUSPENDED, True): (
        "Product Permanently Suspended",
        'Your appeal on "{product}" was rejected. The product has been permanently suspended. '
        "This decision cannot be appealed.",
    ),
    (Resolution.PERMANENTLY_SUSPENDED, False): (
        "Product Permanently Removed",
        'Your product "{product}" has been permanently removed for seriously violating '
        "the platform policies. This decision cannot be appealed.",
    ),
    (Resolution.PERMANENTLY_SUSPENDED, True): (
        "Product Permanently Removed",
        'Your product "{product}" has been permanently removed for seriously violating '
        "the platform policies. This decision cannot be appealed.",
    ),
}

for _table in (RESOLUTION_POLICY, RESOLUTION_MESSAGES):
    _missing = [key for key in cartesian(Resolution, (False, True)) if key not in _table]
    if _missing:
        raise RuntimeError(f"Moderation table is missing cases: {_missing}")


def product_outcome(resolution: Resolution, is_appeal_review: bool) -> Tuple[ModerationStatus, ProductStatus]:
    return RESOLUTION_POLICY[(Resolution(resolution), bool(is_appeal_review))]


def resolution_message(resolution: Resolution, is_appeal_review: bool) -> Tuple[str, str]:
    return RESOLUTION_MESSAGES[(Resolution(resolution), bool(is_appeal_review))]


def compose_resolution_notification(
    resolution: Resolution,
    is_appeal_review: bool,
    product_title: str,
    resolution_notes: Optional[str] = None,
) -> Tuple[str, str]:
    title, template = resolution_message(resolution, is_appeal_review)
    message = template.format(product=product_title)
    if resolution_notes:
        message += f" Moderator notes: {resolution_notes}"
    return title, message


def product_label(product: Optional[dict], product_id: str) -> str:
    if product and product.get("title"):
        return product["title"]
    return f"Product #{product_id}"


def report_created_message(product_title: str, type_report: str, description: str) -> Tuple[str, str]:
    excerpt = description[:100] + ("..." if len(description) > 100 else "")
    return (
        "New product report",
        f'The product "{product_title}" was reported for: {type_report}. Description: {excerpt}',
    )


def incidence_opened_message(
    product_title: str, incidence_id: str, auto_suspended: bool, report_count: Optional[int]
) -> Tuple[str, str]:
    if auto_suspended:
        return (
            "Product suspended",
            f'Your product "{product_title}" has been automatically suspended after receiving '
            f"{report_count} user reports. Contact support for more information. Incidence #{incidence_id}",
        )
    return (
        "Product under review",
        f'Your product "{product_title}" is being reviewed after user reports. Incidence #{incidence_id}',
    )


def incidence_assigned_message(product_title: str, incidence_id: str) -> Tuple[str, str]:
    return (
        "New incidence assigned",
        f'You have been assigned an incidence to review the product "{product_title}". Incidence #{incidence_id}',
    )


def incidence_in_review_message(product_title: str, incidence_id: str) -> Tuple[str, str]:
    return (
        "Product under review",
        f'A moderator is reviewing your product "{product_title}". Incidence #{incidence_id}',
    )
