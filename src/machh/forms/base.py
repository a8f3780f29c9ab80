# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared field-mapping algorithm and the form provider base class.

Every form plugin hands over its submission in a different native shape.
A provider's only job is :meth:`FormProvider.extract`: turn the native
callback arguments into a :class:`FormSubmission` of :class:`SubmittedField`
entries. :class:`FieldMapper` then runs the same algorithm for every
plugin, parameterized by the provider's :class:`FieldRules`:

1. Filter: drop excluded keys/prefixes/types and values that are empty
   after normalization (lists joined with ``", "``; ``"0"`` is kept).
2. Resolve email/name/phone/message, each in this order:
   a. declared field type
   b. exact key match, candidates in list order
   c. key/label substring match, candidates in list order
   d. ``""``
3. Build the raw map from the surviving fields. Canonical values stay in it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from .. import CanonicalFormFields, EventPayload
from ..sanitizer import sanitize_text_field

if TYPE_CHECKING:
    from ..context import RequestContext
    from ..normalizer import EventNormalizer

logger = logging.getLogger(__name__)

CANONICAL_FIELDS: tuple[str, ...] = ("email", "name", "phone", "message")


def normalize_value(value: Any) -> str:
    """Native value → sanitized string. Lists/tuples are joined with ", "."""
    if value is None or value is False:
        return ""
    if isinstance(value, (list, tuple)):
        parts = [normalize_value(v) for v in value]
        return ", ".join(p for p in parts if p != "")
    if isinstance(value, Mapping):
        return normalize_value(list(value.values()))
    return sanitize_text_field(value)


@dataclass(frozen=True, slots=True)
class SubmittedField:
    """One field as submitted, before filtering.

    ``key`` is the native key used for exclusion and exact matching,
    ``raw_key`` the normalized key written to the raw map.
    """

    key: str
    value: Any
    type: str = ""
    label: str = ""
    raw_key: str = ""

    @property
    def output_key(self) -> str:
        return self.raw_key or self.key


@dataclass(frozen=True, slots=True)
class FormSubmission:
    """A submission discovered from a plugin's callback arguments."""

    source: str
    form_id: int | str
    form_name: str
    fields: tuple[SubmittedField, ...]
    meta_url: str = ""


@dataclass(frozen=True)
class FieldRules:
    """Per-plugin exclusion lists and candidate tables."""

    candidates: Mapping[str, tuple[str, ...]]
    type_map: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    excluded_keys: frozenset[str] = frozenset()
    excluded_prefixes: tuple[str, ...] = ()
    excluded_types: frozenset[str] = frozenset()
    exact_match: bool = True

    def is_excluded(self, f: SubmittedField) -> bool:
        if f.key in self.excluded_keys:
            return True
        if self.excluded_prefixes and f.key.startswith(self.excluded_prefixes):
            return True
        return bool(f.type) and f.type.lower() in self.excluded_types


class FieldMapper:
    """Maps submitted fields to canonical fields + raw field map."""

    def __init__(self, rules: FieldRules) -> None:
        self.rules = rules

    def filter(self, fields: Iterable[SubmittedField]) -> list[tuple[SubmittedField, str]]:
        kept: list[tuple[SubmittedField, str]] = []
        for f in fields:
            if self.rules.is_excluded(f):
                continue
            value = normalize_value(f.value)
            if value == "":
                continue
            kept.append((f, value))
        return kept

    def resolve(self, canonical: str, entries: list[tuple[SubmittedField, str]]) -> str:
        declared = self.rules.type_map.get(canonical, ())
        if declared:
            for f, value in entries:
                if f.type.lower() in declared:
                    return value

        candidates = self.rules.candidates.get(canonical, ())
        if self.rules.exact_match:
            for candidate in candidates:
                for f, value in entries:
                    if f.key.lower() == candidate:
                        return value

        for candidate in candidates:
            for f, value in entries:
                if candidate in f.key.lower() or candidate in f.label.lower():
                    return value
        return ""

    def map(self, fields: Iterable[SubmittedField]) -> tuple[CanonicalFormFields, dict[str, str]]:
        entries = self.filter(fields)
        canonical = CanonicalFormFields(**{name: self.resolve(name, entries) for name in CANONICAL_FIELDS})
        raw: dict[str, str] = {}
        for f, value in entries:
            raw[f.output_key] = value
        return canonical, raw


class FormProvider(ABC):
    """A form plugin adapter.

    Subclasses must set the class attributes ``source`` and ``rules`` and
    implement :meth:`extract`. Example::

        class AcmeFormsProvider(FormProvider):
            source = "acme"
            rules = FieldRules(candidates={"email": ("email",)})

            def extract(self, entry):
                ...
    """

    source: ClassVar[str]
    rules: ClassVar[FieldRules]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        # Skip validation for abstract subclasses
        if ABC in cls.__bases__:
            return
        for attr in ("source", "rules"):
            if getattr(cls, attr, None) is None:
                raise TypeError(f"{cls.__name__} must define a '{attr}' class attribute")

    def __init__(self, normalizer: EventNormalizer | None = None, *, enabled: bool = True) -> None:
        if normalizer is None:
            from ..normalizer import EventNormalizer

            normalizer = EventNormalizer()
        self.normalizer = normalizer
        self.enabled = enabled
        self.mapper = FieldMapper(self.rules)

    def is_available(self) -> bool:
        return self.enabled

    @abstractmethod
    def extract(self, *native_args: Any) -> FormSubmission | None:
        """Discover the submitted fields, or None if the arguments are malformed.

        Arguments beyond the plugin callback's own signature are ignored.
        """

    def map(self, submission: FormSubmission) -> tuple[CanonicalFormFields, dict[str, str]]:
        return self.mapper.map(submission.fields)

    def on_submission(self, ctx: RequestContext, *native_args: Any) -> EventPayload | None:
        """Native callback arguments → normalized form event (None if malformed)."""
        submission = self.extract(*native_args)
        if submission is None:
            logger.warning("%s: no usable submission data, skipping", self.source)
            return None
        canonical, raw = self.map(submission)
        return self.normalizer.form_submission(
            ctx,
            form_id=submission.form_id,
            form_name=submission.form_name,
            fields=canonical,
            raw_fields=raw,
            meta_url=submission.meta_url,
        )


def as_mapping(value: Any) -> Mapping[str, Any] | None:
    """``value`` if it is a non-empty mapping, else None."""
    if isinstance(value, Mapping) and value:
        return value
    return None


def get_attr_or_key(obj: Any, name: str, default: Any = None) -> Any:
    """``obj[name]`` for mappings, ``obj.name`` (called if callable) otherwise."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    value = getattr(obj, name, default)
    return value() if callable(value) else value
