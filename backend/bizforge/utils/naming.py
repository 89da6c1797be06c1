"""
Name helpers shared by the plan builder, the template generators and the deployer
"""

import re


def slugify(name: str) -> str:
    """'Customer Intake Form' -> 'customer_intake_form'"""
    slug = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    return slug or "item"


def pascal_case(name: str) -> str:
    """'customer intake-form' -> 'CustomerIntakeForm'"""
    parts = re.split(r"[^A-Za-z0-9]+", name)
    pascal = "".join(part[:1].upper() + part[1:] for part in parts if part)
    if not pascal:
        return "Item"
    return pascal if not pascal[0].isdigit() else f"N{pascal}"


def kebab_case(name: str) -> str:
    return slugify(name).replace("_", "-")


MIN_APPLICATION_SLUG = 3
MAX_APPLICATION_SLUG = 50


def application_slug_of(application_id: str) -> str:
    """'My CRM App' -> 'my-crm-app'; may come out empty or too long"""
    slug = re.sub(r"[^a-z0-9-]+", "-", application_id.lower()).strip("-")
    return re.sub(r"-{2,}", "-", slug)


def is_valid_application_slug(slug: str) -> bool:
    return MIN_APPLICATION_SLUG <= len(slug) <= MAX_APPLICATION_SLUG
