# src/prompting/composer.py - v1
"""Prompt Composer: adds reference-image context to a base prompt.

Output layout: [human prefix] base prompt [product suffix] [object suffix].

When any reference is a design template (role=reference) the prompt is
returned untouched: such prompts already carry positional instructions
("first image", "second image") that extra text would dilute.

Pure and deterministic; no I/O.
"""

from __future__ import annotations

from enum import Enum

from imagecomposer.core.models import ReferenceImage, ReferenceRole


class _Bucket(Enum):
    HUMAN = "human"
    OBJECT = "object"
    PRODUCT = "product"
    TEMPLATE = "template"


# Every ReferenceRole must appear here (covered by tests).
ROLE_BUCKETS: dict[ReferenceRole, _Bucket] = {
    ReferenceRole.HUMAN: _Bucket.HUMAN,
    ReferenceRole.OBJECT: _Bucket.OBJECT,
    ReferenceRole.LOGO: _Bucket.OBJECT,
    ReferenceRole.PRODUCT: _Bucket.PRODUCT,
    ReferenceRole.REFERENCE: _Bucket.TEMPLATE,
}

_DEFAULT_NAMES: dict[ReferenceRole, str] = {
    ReferenceRole.HUMAN: "the person",
    ReferenceRole.OBJECT: "the object",
    ReferenceRole.LOGO: "the logo",
    ReferenceRole.PRODUCT: "the product",
    ReferenceRole.REFERENCE: "the template",
}


def _display_name(ref: ReferenceImage) -> str:
    name = (ref.name or "").strip()
    return name or _DEFAULT_NAMES[ref.role]


def compose_prompt(prompt: str, references: list[ReferenceImage]) -> str:
    """Return prompt augmented with reference context.

    Args:
        prompt: The caller's base prompt.
        references: Reference images in caller order.

    Returns:
        The composed prompt.
    """
    if not references:
        return prompt

    buckets: dict[_Bucket, list[ReferenceImage]] = {b: [] for b in _Bucket}
    for ref in references:
        buckets[ROLE_BUCKETS[ref.role]].append(ref)

    if buckets[_Bucket.TEMPLATE]:
        return prompt

    composed = prompt

    products = buckets[_Bucket.PRODUCT]
    if products:
        names = ", ".join(_display_name(r) for r in products)
        composed += f" Feature {names} prominently in the image."

    humans = buckets[_Bucket.HUMAN]
    if humans:
        names = ", ".join(_display_name(r) for r in humans)
        composed = (
            f"Using the reference images of {names} for character consistency, "
            f"{composed}"
        )

    objects = buckets[_Bucket.OBJECT]
    if objects:
        names = ", ".join(_display_name(r) for r in objects)
        composed += f" Include {names} as shown in the reference images."

    return composed


def compose_refinement_prompt(instruction: str) -> str:
    """Wrap a refinement instruction around the image it applies to."""
    return f"Based on this image, {instruction.strip().rstrip('.')}."
