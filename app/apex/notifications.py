"""
Email notifications for PoC/Project events.

Everything here runs after the request's transaction has been committed; a failed
send is logged by the mailer and never affects the API response.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import current_app
from markupsafe import escape

from app.apex import mailer
from app.apex.modules.engagements.mentions import to_html, to_plain_text
from app.apex.utils import format_display_date

if TYPE_CHECKING:
    from app.apex.modules.employees.models import Employee
    from app.apex.modules.engagements.kinds import EngagementKind
    from app.apex.modules.engagements.team import TeamChanges
    from app.apex.modules.pocs.models import Poc

logger = logging.getLogger(__name__)


def entity_link(kind: "EngagementKind", entity_id: int) -> str:
    base = (current_app.config.get("FRONTEND_URL") or "").rstrip("/")
    return f"{base}/{kind.link_path}/{entity_id}"


def _yes_no(value: bool | None) -> str:
    return "Yes" if value else "No"


def _render(greeting: str, intro: str, details: list[tuple[str, str]], link: str, extra: str | None = None):
    lines = [f"Hello {greeting},", "", intro, ""]
    lines.extend(f"{label}: {value}" for label, value in details)
    if extra:
        lines.extend(["", extra])
    lines.extend(["", f"View details: {link}", "", "Apex"])
    text = "\n".join(lines)

    rows = "".join(
        f"<tr><td><strong>{escape(label)}</strong></td><td>{escape(value)}</td></tr>" for label, value in details
    )
    html = (
        f"<p>Hello {escape(greeting)},</p>"
        f"<p>{escape(intro)}</p>"
        f"<table>{rows}</table>"
        + (f"<p>{escape(extra)}</p>" if extra else "")
        + f'<p><a href="{escape(link)}">View details</a></p><p>Apex</p>'
    )
    return text, html


def _poc_details(poc: "Poc") -> list[tuple[str, str]]:
    return [
        ("PoC", poc.title),
        ("Customer", poc.customer.name if poc.customer else "N/A"),
        ("Technology", ", ".join(poc.technology or []) or "N/A"),
        ("Start date", format_display_date(poc.start_date)),
        ("Target end date", format_display_date(poc.end_date)),
        ("Budget allocated", _yes_no(poc.is_budget_allocated)),
        ("Vendor aware", _yes_no(poc.is_vendor_aware)),
    ]


def send_poc_request_notifications(poc: "Poc", creator: "Employee | None", presales: list["Employee"]) -> int:
    """Confirmation to the requester, review request to every Presales employee."""
    from app.apex.modules.engagements.kinds import POC

    link = entity_link(POC, poc.id)
    details = _poc_details(poc)
    sent = 0
    if creator is not None:
        text, html = _render(
            creator.full_name,
            f'Your PoC request "{poc.title}" was submitted and is pending Presales review.',
            details,
            link,
        )
        sent += mailer.send_email(creator.email, f"PoC Request Submitted: {poc.title}", text, html)
    for reviewer in presales:
        if creator is not None and reviewer.id == creator.id:
            continue
        text, html = _render(
            reviewer.full_name,
            f'A new PoC request "{poc.title}" needs your review.',
            details,
            link,
        )
        sent += mailer.send_email(reviewer.email, f"New PoC Request Pending Review: {poc.title}", text, html)
    logger.info("PoC request notifications poc_id=%s sent=%s", poc.id, sent)
    return sent


def send_poc_approval_notifications(
    poc: "Poc", approver: "Employee", account_manager: "Employee", lead: "Employee"
) -> int:
    from app.apex.modules.engagements.kinds import POC

    link = entity_link(POC, poc.id)
    details = _poc_details(poc) + [("Approved by", approver.full_name)]
    sent = 0
    for recipient, role in ((account_manager, "Account Manager"), (lead, "Technical Lead")):
        text, html = _render(
            recipient.full_name,
            f'The PoC "{poc.title}" has been approved by Presales. You are the {role}.',
            details,
            link,
            extra=f"Description: {poc.description or ''}",
        )
        sent += mailer.send_email(recipient.email, f"PoC Approved: {poc.title}", text, html)
    logger.info("PoC approval notifications poc_id=%s sent=%s", poc.id, sent)
    return sent


def send_team_change_notifications(
    kind: "EngagementKind", entity, changes: "TeamChanges", assigner: "Employee | None"
) -> int:
    """Tell newly assigned members their role and removed members that they were unassigned."""
    if changes.is_empty:
        return 0
    link = entity_link(kind, entity.id)
    by = assigner.full_name if assigner else "Apex"
    sent = 0
    for employee, role in changes.assigned:
        text, html = _render(
            employee.full_name,
            f'You have been assigned to the {kind.label} "{entity.title}" as {role} by {by}.',
            [(kind.label, entity.title), ("Role", role)],
            link,
        )
        sent += mailer.send_email(employee.email, f"You've been assigned to {kind.label}: {entity.title}", text, html)
    for employee, old_role, new_role in changes.role_changed:
        text, html = _render(
            employee.full_name,
            f'Your role on the {kind.label} "{entity.title}" changed from {old_role} to {new_role} ({by}).',
            [(kind.label, entity.title), ("Role", new_role)],
            link,
        )
        sent += mailer.send_email(employee.email, f"Your role changed on {kind.label}: {entity.title}", text, html)
    for employee, role in changes.unassigned:
        text, html = _render(
            employee.full_name,
            f'You have been unassigned from the {kind.label} "{entity.title}" (previous role: {role}) by {by}.',
            [(kind.label, entity.title)],
            link,
        )
        sent += mailer.send_email(employee.email, f"You've been unassigned from {kind.label}: {entity.title}", text, html)
    logger.info("%s team notifications id=%s sent=%s", kind.label, entity.id, sent)
    return sent


def send_mention_notifications(
    kind: "EngagementKind",
    entity,
    status_label: str,
    comment_text: str,
    author: "Employee",
    mentioned: list["Employee"],
) -> int:
    link = entity_link(kind, entity.id)
    plain = to_plain_text(comment_text)
    sent = 0
    for employee in mentioned:
        if employee.id == author.id:
            continue
        subject = f"{author.full_name} mentioned you on {kind.label}: {entity.title}"
        text = "\n".join(
            [
                f"Hello {employee.full_name},",
                "",
                f"{author.full_name} mentioned you in a comment on the {kind.label} \"{entity.title}\" "
                f"(status: {status_label}):",
                "",
                plain,
                "",
                f"View details: {link}",
            ]
        )
        html = (
            f"<p>Hello {escape(employee.full_name)},</p>"
            f"<p>{escape(author.full_name)} mentioned you in a comment on the {escape(kind.label)} "
            f"<strong>{escape(entity.title)}</strong> (status: {escape(status_label)}):</p>"
            f"<blockquote>{to_html(comment_text)}</blockquote>"
            f'<p><a href="{escape(link)}">View details</a></p>'
        )
        sent += mailer.send_email(employee.email, subject, text, html)
    return sent
