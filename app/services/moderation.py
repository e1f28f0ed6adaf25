"""Moderation lifecycle: reports escalate into incidences, incidences resolve
into product states, and suspensions can be appealed into a re-review.

Each state change is written to the store first. Notifications go out after
the write and their failures are logged, never rolled back into the write.
"""
from contextlib import ExitStack
from datetime import datetime, timezone
from typing import List, Optional

from app.config import logger, settings
from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.appeal_model import ACTIVE_APPEAL_STATUSES, AppealStatus
from app.models.common import parse_enum, require_fields
from app.models.incidence_model import IncidenceStatus, OPEN_INCIDENCE_STATUSES, Resolution
from app.models.product_model import ModerationStatus, ProductStatus
from app.models.report_model import ReportStatus
from app.models.user_model import Actor
from app.services import policy
from app.services.access import require_admin, require_moderator_or_admin, require_owner_or_admin

# Entering one of these from another state opens a review incidence
REVIEW_OPENING_STATUSES = {
    ModerationStatus.REVIEW: "Product marked for review by administrative moderation",
    ModerationStatus.FLAGGED: "Product blocked by administrative moderation",
}
SUSPENDED_STATES = [ModerationStatus.SUSPENDED.value, ModerationStatus.PERMANENTLY_SUSPENDED.value]
# A decided appeal cannot be filed again; a dismissed one can
BLOCKING_APPEAL_STATUSES = ACTIVE_APPEAL_STATUSES + [AppealStatus.RESOLVED.value]


def product_lock(product_id: str) -> str:
    return f"product:{product_id}"


def appeal_lock(incidence_id: str) -> str:
    # appeals are serialized per appealed incidence
    return f"appeal:{incidence_id}"


class ModerationEngine:
    def __init__(
        self,
        store,
        dispatcher,
        auto_suspend_threshold: int = settings.AUTO_SUSPEND_THRESHOLD,
        auto_escalate: bool = settings.AUTO_ESCALATE_REPORTS,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.auto_suspend_threshold = auto_suspend_threshold
        self.auto_escalate = auto_escalate

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _get_or_404(self, entity: str, record_id: str, label: str) -> dict:
        record = self.store.get_by_id(entity, record_id)
        if record is None:
            logger.error(f"{label} {record_id} not found")
            raise NotFoundError(f"{label} not found", {"id": record_id})
        return record

    # Reports

    async def create_report(
        self, type_report: str, description: str, reporter_id: str, product_id: str
    ) -> dict:
        require_fields(type=type_report, description=description, user_id=reporter_id, product_id=product_id)
        product = self._get_or_404("products", product_id, "Product")

        report = self.store.create(
            "reports",
            {
                "date_report": self._now(),
                "type_report": type_report,
                "description": description,
                "user_id": reporter_id,
                "product_id": product_id,
                "status": ReportStatus.PENDING.value,
                "incidence_id": None,
            },
        )
        logger.info(f"Report {report['id']} created for product {product_id} by user {reporter_id}")

        notified = await self.dispatcher.report_created(report, product)
        result = {
            "message": "Report created" if notified else "Report created (no moderators to notify)",
            "report": report,
            "notified": len(notified),
            "auto_suspended": False,
        }

        if self.auto_escalate:
            incidence = await self._escalate_reports(product_id, report["id"])
            if incidence:
                result["message"] += " and product auto-suspended"
                result["incidence"] = incidence
                result["auto_suspended"] = True
                result["report"] = self.store.get_by_id("reports", report["id"])
        return result

    async def _escalate_reports(self, product_id: str, report_id: str) -> Optional[dict]:
        with self.store.transaction(product_lock(product_id)):
            product = self.store.get_by_id("products", product_id)
            if product is None or product.get("moderation_status") in SUSPENDED_STATES:
                return None
            pending = self.store.find(
                "reports", {"product_id": product_id, "status": ReportStatus.PENDING.value}
            )
            if len(pending) < self.auto_suspend_threshold:
                return None
            incidence, product = self._open_incidence_locked(
                description="Automatic escalation of user reports",
                assigned_to=None,
                created_by=None,
                product=product,
                status=IncidenceStatus.PENDING,
                report_count=len(pending),
                report_id=report_id,
                converted_report_ids=[r["id"] for r in pending],
            )
        await self.dispatcher.incidence_opened(incidence, product, True, len(pending))
        return incidence

    def list_reports(self) -> List[dict]:
        return self.store.find("reports", order=[("date_report", -1)])

    def get_report(self, report_id: str) -> dict:
        return self._get_or_404("reports", report_id, "Report")

    def reports_by_user(self, user_id: str) -> List[dict]:
        return self.store.find("reports", {"user_id": user_id}, order=[("date_report", -1)])

    def dismiss_report(self, report_id: str, actor: Actor) -> dict:
        require_moderator_or_admin(actor)
        with self.store.transaction(f"report:{report_id}"):
            report = self._get_or_404("reports", report_id, "Report")
            if report["status"] != ReportStatus.PENDING.value:
                raise ConflictError(
                    f"Only pending reports can be dismissed (report is {report['status']})",
                    {"report_id": report_id},
                )
            report = self.store.update("reports", report_id, {"status": ReportStatus.DISMISSED.value})
        logger.info(f"Report {report_id} dismissed by {actor.id}")
        return {"message": "Report dismissed", "report": report}

    def delete_report(self, report_id: str, actor: Actor) -> dict:
        require_admin(actor)
        report = self._get_or_404("reports", report_id, "Report")
        self.store.destroy("reports", report_id)
        return {"message": "Report deleted", "report": report}

    # Incidences

    def _open_incidence_locked(
        self,
        description: str,
        assigned_to: Optional[str],
        created_by: Optional[str],
        product: dict,
        status: IncidenceStatus,
        report_count: Optional[int],
        report_id: Optional[str] = None,
        appeal_id: Optional[str] = None,
        is_appeal_review: bool = False,
        converted_report_ids: Optional[List[str]] = None,
    ):
        """Insert the incidence, link its origin and move the product. Caller holds the product lock."""
        auto_suspend = report_count is not None and report_count >= self.auto_suspend_threshold
        now = self._now()
        incidence = self.store.create(
            "incidences",
            {
                "date_incidence": now,
                "description": (
                    policy.AUTO_SUSPEND_DESCRIPTION.format(description=description, count=report_count)
                    if auto_suspend
                    else description
                ),
                "status": IncidenceStatus.RESOLVED.value if auto_suspend else status.value,
                "assigned_to": assigned_to,
                "created_by": created_by,
                "product_id": product["id"],
                "report_id": report_id,
                "appeal_id": appeal_id,
                "is_appeal_review": is_appeal_review,
                "resolution": Resolution.SUSPENDED.value if auto_suspend else None,
                "resolution_notes": (
                    policy.AUTO_SUSPEND_NOTES.format(count=report_count) if auto_suspend else None
                ),
                "resolved_at": now if auto_suspend else None,
            },
        )
        logger.info(f"Incidence {incidence['id']} created for product {product['id']}")

        report_ids = converted_report_ids if converted_report_ids is not None else [report_id] if report_id else []
        for converted_id in report_ids:
            self.store.update(
                "reports",
                converted_id,
                {"status": ReportStatus.CONVERTED_TO_INCIDENCE.value, "incidence_id": incidence["id"]},
            )
        if report_ids:
            logger.info(f"Reports {report_ids} converted to incidence {incidence['id']}")

        if appeal_id:
            self.store.update(
                "appeals",
                appeal_id,
                {"status": AppealStatus.CONVERTED_TO_INCIDENCE.value, "new_incidence_id": incidence["id"]},
            )
            logger.info(f"Appeal {appeal_id} converted to incidence {incidence['id']}")

        if auto_suspend:
            patch = {
                "moderation_status": ModerationStatus.SUSPENDED.value,
                "status": ProductStatus.INACTIVE.value,
            }
            logger.info(f"Product {product['id']} auto-suspended after {report_count} reports")
        else:
            patch = {"moderation_status": ModerationStatus.REVIEW.value}
        patch["updated_at"] = now
        product = self.store.update("products", product["id"], patch)
        return incidence, product

    async def create_incidence(
        self,
        description: str,
        assigned_to: str,
        product_id: str,
        status: Optional[str] = None,
        report_count: Optional[int] = None,
        report_id: Optional[str] = None,
        appeal_id: Optional[str] = None,
        is_appeal_review: bool = False,
        assigned_by: Optional[Actor] = None,
    ) -> dict:
        require_fields(description=description, assigned_to=assigned_to, product_id=product_id)
        initial_status = parse_enum(IncidenceStatus, status or IncidenceStatus.PENDING.value, "status")
        if initial_status == IncidenceStatus.RESOLVED:
            raise ValidationError("An incidence can only be created as pending or in_progress")
        if report_count is not None and (isinstance(report_count, bool) or report_count < 0):
            raise ValidationError("report_count must be a non-negative integer")

        with ExitStack() as locks:
            locks.enter_context(self.store.transaction(product_lock(product_id)))
            product = self._get_or_404("products", product_id, "Product")
            if product.get("moderation_status") == ModerationStatus.PERMANENTLY_SUSPENDED.value:
                raise ConflictError(
                    "The product is permanently suspended and cannot be reviewed again",
                    {"product_id": product_id},
                )

            if report_id:
                report = self._get_or_404("reports", report_id, "Report")
                if report["product_id"] != product_id:
                    raise ValidationError("The report does not belong to this product", {"report_id": report_id})
                if report["status"] != ReportStatus.PENDING.value:
                    raise ConflictError(
                        "The report has already been processed", {"report_id": report_id, "status": report["status"]}
                    )

            if appeal_id:
                appeal = self._get_or_404("appeals", appeal_id, "Appeal")
                locks.enter_context(self.store.transaction(appeal_lock(appeal["incidence_id"])))
                appeal = self._get_or_404("appeals", appeal_id, "Appeal")
                if appeal["status"] != AppealStatus.PENDING.value:
                    raise ConflictError(
                        "Only pending appeals can be converted into an incidence",
                        {"appeal_id": appeal_id, "status": appeal["status"]},
                    )
                appealed = self.store.get_by_id("incidences", appeal["incidence_id"])
                if appealed and appealed["product_id"] != product_id:
                    raise ValidationError("The appeal does not belong to this product", {"appeal_id": appeal_id})
                is_appeal_review = True

            if report_count is None:
                report_count = 0 if is_appeal_review else self.store.count(
                    "reports", {"product_id": product_id, "status": ReportStatus.PENDING.value}
                )
            auto_suspend = report_count >= self.auto_suspend_threshold

            if not auto_suspend:
                existing = self.store.find_one(
                    "incidences", {"product_id": product_id, "status": {"$in": OPEN_INCIDENCE_STATUSES}}
                )
                if existing:
                    raise ConflictError(
                        "An incidence is already open for this product", {"incidence_id": existing["id"]}
                    )

            incidence, product = self._open_incidence_locked(
                description=description,
                assigned_to=assigned_to,
                created_by=assigned_by.id if assigned_by else None,
                product=product,
                status=initial_status,
                report_count=report_count,
                report_id=report_id,
                appeal_id=appeal_id,
                is_appeal_review=bool(is_appeal_review),
            )

        await self.dispatcher.incidence_opened(incidence, product, auto_suspend, report_count, assigned_by)
        return {
            "message": "Incidence created and product auto-suspended" if auto_suspend else "Incidence created",
            "incidence": incidence,
            "auto_suspended": auto_suspend,
        }

    async def update_incidence(
        self,
        incidence_id: str,
        description: Optional[str] = None,
        status: Optional[str] = None,
        product_id: Optional[str] = None,
        assigned_to: Optional[str] = None,
        resolution: Optional[str] = None,
        resolution_notes: Optional[str] = None,
    ) -> dict:
        incidence = self._get_or_404("incidences", incidence_id, "Incidence")
        new_status = parse_enum(IncidenceStatus, status, "status") if status is not None else None
        new_resolution = parse_enum(Resolution, resolution, "resolution") if resolution is not None else None

        if new_status == IncidenceStatus.RESOLVED and new_resolution is None:
            raise ValidationError("A resolution is required to resolve an incidence")
        if new_resolution is not None and new_status != IncidenceStatus.RESOLVED:
            raise ValidationError("A resolution can only be set when the status is resolved")
        if new_status is not None and incidence["status"] == IncidenceStatus.RESOLVED.value:
            raise ConflictError("The incidence is already resolved", {"incidence_id": incidence_id})
        if product_id is not None and product_id != incidence["product_id"]:
            self._get_or_404("products", product_id, "Product")

        patch = {
            key: value
            for key, value in (
                ("description", description),
                ("product_id", product_id),
                ("assigned_to", assigned_to),
            )
            if value is not None
        }
        if new_status is not None:
            patch["status"] = new_status.value

        if new_status == IncidenceStatus.RESOLVED:
            return await self._resolve_incidence(incidence, patch, new_resolution, resolution_notes)

        previous_status = incidence["status"]
        incidence = self.store.update("incidences", incidence_id, patch) if patch else incidence
        if previous_status == IncidenceStatus.PENDING.value and new_status == IncidenceStatus.IN_PROGRESS:
            product = self.store.get_by_id("products", incidence["product_id"])
            await self.dispatcher.incidence_in_review(incidence, product)
            logger.info(f"Incidence {incidence_id} is now in progress")
        return {"message": "Incidence updated", "incidence": incidence}

    async def _resolve_incidence(
        self, incidence: dict, patch: dict, resolution: Resolution, resolution_notes: Optional[str]
    ) -> dict:
        product_id = patch.get("product_id", incidence["product_id"])
        with self.store.transaction(product_lock(product_id)):
            current = self._get_or_404("incidences", incidence["id"], "Incidence")
            if current["status"] == IncidenceStatus.RESOLVED.value:
                raise ConflictError("The incidence is already resolved", {"incidence_id": incidence["id"]})
            is_appeal_review = bool(current.get("appeal_id")) or bool(current.get("is_appeal_review"))

            patch.update(
                {
                    "resolution": resolution.value,
                    "resolution_notes": resolution_notes or None,
                    "resolved_at": self._now(),
                }
            )
            incidence = self.store.update("incidences", current["id"], patch)

            moderation_status, product_status = policy.product_outcome(resolution, is_appeal_review)
            product = self.store.update(
                "products",
                product_id,
                {
                    "moderation_status": moderation_status.value,
                    "status": product_status.value,
                    "updated_at": self._now(),
                },
            )
            if product is None:
                logger.warning(f"Product {product_id} of incidence {incidence['id']} no longer exists")
            else:
                logger.info(
                    f"Incidence {incidence['id']} resolved as {resolution.value}"
                    f"{' (appeal review)' if is_appeal_review else ''}: product {product_id} is now "
                    f"{moderation_status.value}/{product_status.value}"
                )

            if current.get("appeal_id"):
                self.store.update("appeals", current["appeal_id"], {"status": AppealStatus.RESOLVED.value})

        await self.dispatcher.incidence_resolved(
            incidence, product, resolution, is_appeal_review, resolution_notes
        )
        return {"message": "Incidence resolved", "incidence": incidence, "product": product}

    def list_incidences(self, status: Optional[str] = None, assigned_to: Optional[str] = None) -> List[dict]:
        where = {}
        if status:
            where["status"] = parse_enum(IncidenceStatus, status, "status").value
        if assigned_to:
            where["assigned_to"] = assigned_to
        return self.store.find("incidences", where, order=[("date_incidence", -1)])

    def get_incidence(self, incidence_id: str) -> dict:
        incidence = self._get_or_404("incidences", incidence_id, "Incidence")
        return {
            **incidence,
            "product": self.store.get_by_id("products", incidence["product_id"]),
            "appeals": self.store.find("appeals", {"incidence_id": incidence_id}),
        }

    def incidences_by_user(self, user_id: str) -> List[dict]:
        return self.store.find("incidences", {"assigned_to": user_id}, order=[("date_incidence", -1)])

    def delete_incidence(self, incidence_id: str, actor: Actor) -> dict:
        require_admin(actor)
        incidence = self._get_or_404("incidences", incidence_id, "Incidence")
        self.store.destroy("incidences", incidence_id)
        return {"message": "Incidence deleted", "incidence": incidence}

    # Product moderation status

    def update_product_moderation(self, product_id: str, moderation_status, actor: Actor) -> dict:
        require_moderator_or_admin(actor)
        if not isinstance(moderation_status, str) or not moderation_status:
            raise ValidationError("moderation_status is required and must be a string")
        target = parse_enum(ModerationStatus, moderation_status, "moderation_status")

        incidence = None
        resolved_count = 0
        with self.store.transaction(product_lock(product_id)):
            product = self._get_or_404("products", product_id, "Product")
            previous = product.get("moderation_status")

            patch = {"moderation_status": target.value, "updated_at": self._now()}
            if target == ModerationStatus.PERMANENTLY_SUSPENDED:
                patch["status"] = ProductStatus.RESTRICTED.value
            product = self.store.update("products", product_id, patch)

            if target in REVIEW_OPENING_STATUSES and previous != target.value:
                existing = self.store.find_one(
                    "incidences", {"product_id": product_id, "status": {"$in": OPEN_INCIDENCE_STATUSES}}
                )
                if existing:
                    logger.info(f"Incidence {existing['id']} is already open for product {product_id}")
                else:
                    incidence = self.store.create(
                        "incidences",
                        {
                            "date_incidence": self._now(),
                            "description": REVIEW_OPENING_STATUSES[target],
                            "status": IncidenceStatus.PENDING.value,
                            "assigned_to": actor.id,
                            "created_by": actor.id,
                            "product_id": product_id,
                            "report_id": None,
                            "appeal_id": None,
                            "is_appeal_review": False,
                            "resolution": None,
                            "resolution_notes": None,
                            "resolved_at": None,
                        },
                    )
                    logger.info(f"Incidence {incidence['id']} opened for product {product_id} by {actor.id}")

            if target == ModerationStatus.ACTIVE and previous != ModerationStatus.ACTIVE.value:
                resolved_count = self.store.update_where(
                    "incidences",
                    {"status": IncidenceStatus.RESOLVED.value},
                    {"product_id": product_id, "status": {"$in": OPEN_INCIDENCE_STATUSES}},
                )
                if resolved_count:
                    logger.info(f"{resolved_count} incidence(s) resolved for product {product_id}")

        return {
            "message": "Moderation status updated",
            "moderation_status": target.value,
            "product": product,
            "incidence": incidence,
            "resolved_incidences": resolved_count,
        }

    # Appeals

    def create_appeal(self, incidence_id: str, message: str, actor: Actor) -> dict:
        require_fields(incidence_id=incidence_id, message=message)
        incidence = self._get_or_404("incidences", incidence_id, "Related incidence")
        if (
            incidence["status"] != IncidenceStatus.RESOLVED.value
            or incidence.get("resolution") != Resolution.SUSPENDED.value
        ):
            raise ValidationError(
                "The incidence must be resolved with resolution=suspended before it can be appealed",
                {"status": incidence["status"], "resolution": incidence.get("resolution")},
            )
        product = self._get_or_404("products", incidence["product_id"], "Product")
        require_owner_or_admin(actor, product)

        with self.store.transaction(appeal_lock(incidence_id)):
            existing = self.store.find_one(
                "appeals", {"incidence_id": incidence_id, "status": {"$in": BLOCKING_APPEAL_STATUSES}}
            )
            if existing:
                raise ConflictError(
                    "An appeal already exists for this incidence", {"appeal_id": existing["id"]}
                )
            appeal = self.store.create(
                "appeals",
                {
                    "date_appeals": self._now(),
                    "description": message,
                    "incidence_id": incidence_id,
                    "submitted_by": actor.id,
                    "status": AppealStatus.PENDING.value,
                    "new_incidence_id": None,
                },
            )
        logger.info(f"Appeal {appeal['id']} created for incidence {incidence_id}")
        return {
            "message": "Appeal created. It will be reviewed by another moderator.",
            "appeal": appeal,
        }

    def update_appeal(self, appeal_id: str, message: Optional[str], actor: Actor) -> dict:
        appeal = self._get_or_404("appeals", appeal_id, "Appeal")
        if not actor.is_admin and appeal.get("submitted_by") != actor.id:
            raise ForbiddenError("Not authorized to modify this appeal", {"appeal_id": appeal_id})
        if message:
            appeal = self.store.update("appeals", appeal_id, {"description": message})
        return {"message": "Appeal updated", "appeal": appeal}

    def dismiss_appeal(self, appeal_id: str, actor: Actor) -> dict:
        require_moderator_or_admin(actor)
        appeal = self._get_or_404("appeals", appeal_id, "Appeal")
        with self.store.transaction(appeal_lock(appeal["incidence_id"])):
            appeal = self._get_or_404("appeals", appeal_id, "Appeal")
            if appeal["status"] != AppealStatus.PENDING.value:
                raise ConflictError(
                    f"Only pending appeals can be dismissed (appeal is {appeal['status']})",
                    {"appeal_id": appeal_id},
                )
            appeal = self.store.update("appeals", appeal_id, {"status": AppealStatus.DISMISSED.value})
        logger.info(f"Appeal {appeal_id} dismissed by {actor.id}")
        return {"message": "Appeal dismissed", "appeal": appeal}

    def list_appeals(self) -> List[dict]:
        return self.store.find("appeals", order=[("date_appeals", -1)])

    def get_appeal(self, appeal_id: str) -> dict:
        return self._get_or_404("appeals", appeal_id, "Appeal")

    def appeals_by_incidence(self, incidence_id: str) -> List[dict]:
        return self.store.find("appeals", {"incidence_id": incidence_id})

    def delete_appeal(self, appeal_id: str, actor: Actor) -> dict:
        require_admin(actor)
        appeal = self._get_or_404("appeals", appeal_id, "Appeal")
        self.store.destroy("appeals", appeal_id)
        return {"message": "Appeal deleted", "appeal": appeal}
