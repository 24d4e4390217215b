from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional

from client.errors import TemplateDataError
from client.hal_forms import TemplateLike, as_template
from models.hal import HalObject, Template, TemplateProperty

PropertySource = Literal["value", "selection", "form"]
TemplateCategory = Literal["navigation", "form", "action"]


@dataclass
class TemplateExecutionContext:
    template: TemplateLike
    form_data: Optional[Mapping[str, Any]] = None
    selections: list[str] = field(default_factory=list)
    resource: Optional[HalObject] = None


@dataclass(frozen=True)
class ConfirmationConfig:
    title: str
    message: str
    confirm_label: str = "Confirm"
    cancel_label: str = "Cancel"
    variant: Literal["default", "destructive"] = "default"


# -----------------------------------------------------------------------------
# Building submission data
# -----------------------------------------------------------------------------
def get_property_source(prop: TemplateProperty) -> PropertySource:
    """Declared values win, array fields come from selections, the rest from the form."""
    if prop.value is not None:
        return "value"
    if prop.type == "array" or prop.name.endswith("Ids"):
        return "selection"
    return "form"


def build_template_data(context: TemplateExecutionContext) -> dict[str, Any]:
    template = as_template(context.template)
    data: dict[str, Any] = {}

    for prop in template.properties:
        if prop.read_only:
            continue

        source = get_property_source(prop)

        if source == "value":
            data[prop.name] = prop.value

        elif source == "selection":
            if context.selections:
                data[prop.name] = list(context.selections)
            elif prop.required:
                raise TemplateDataError(f"At least one item must be selected for {prop.name}")

        elif context.form_data is not None and prop.name in context.form_data:
            data[prop.name] = context.form_data[prop.name]
        elif context.resource is not None and prop.name in context.resource:
            data[prop.name] = context.resource[prop.name]
        elif prop.required:
            raise TemplateDataError(f"Required field {prop.name} is missing")

    return data


# -----------------------------------------------------------------------------
# Confirmation
# -----------------------------------------------------------------------------
def requires_confirmation(template: TemplateLike) -> bool:
    return as_template(template).method.upper() == "DELETE"


def get_confirmation_config(template: TemplateLike, context: TemplateExecutionContext) -> ConfirmationConfig:
    template = as_template(template)
    destructive = template.method.upper() == "DELETE"
    count = len(context.selections)

    if count:
        noun = "item" if count == 1 else "items"
        if destructive:
            message = f"Are you sure you want to delete {count} {noun}? This action cannot be undone."
        else:
            message = f"Apply this action to {count} {noun}?"
    elif destructive:
        message = "Are you sure you want to delete this item? This action cannot be undone."
    else:
        message = f"Are you sure you want to {template.title}?"

    return ConfirmationConfig(
        title=template.title or "Confirm Action",
        message=message,
        confirm_label="Delete" if destructive else "Confirm",
        cancel_label="Cancel",
        variant="destructive" if destructive else "default",
    )


# -----------------------------------------------------------------------------
# Categorization
# -----------------------------------------------------------------------------
def categorize_template(template: TemplateLike) -> TemplateCategory:
    """
    Templates whose fields are all hidden are navigation (GET/POST) or
    one-click actions (PUT/PATCH/DELETE); anything with a visible field is
    a form.
    """
    template = as_template(template)
    if any(prop.type != "hidden" for prop in template.properties):
        return "form"
    return "navigation" if template.method.upper() in ("GET", "POST") else "action"


def is_bulk_template(template: TemplateLike) -> bool:
    return any(get_property_source(prop) == "selection" for prop in as_template(template).properties)


def categorize_templates(templates: Optional[Mapping[str, TemplateLike]]) -> dict[str, dict[str, Template]]:
    """
    Group a `_templates` mapping for display.

    Bulk templates act on selected rows and are kept apart from the
    per-resource navigation, form and action templates.
    """
    groups: dict[str, dict[str, Template]] = {"navigation": {}, "form": {}, "action": {}, "bulk": {}}
    for key, raw in (templates or {}).items():
        template = as_template(raw)
        category = "bulk" if is_bulk_template(template) else categorize_template(template)
        groups[category][key] = template
    return groups
