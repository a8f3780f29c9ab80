# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Form plugin adapters mapping submissions onto one canonical schema."""

from .base import (
    CANONICAL_FIELDS,
    FieldMapper,
    FieldRules,
    FormProvider,
    FormSubmission,
    SubmittedField,
    normalize_value,
)
from .cf7 import CF7Provider
from .elementor import ElementorProvider
from .manager import DispatchOutcome, FormProviderManager
from .metform import MetFormProvider
from .wpforms import WPFormsProvider

__all__ = [
    "CANONICAL_FIELDS",
    "CF7Provider",
    "DispatchOutcome",
    "ElementorProvider",
    "FieldMapper",
    "FieldRules",
    "FormProvider",
    "FormProviderManager",
    "FormSubmission",
    "MetFormProvider",
    "SubmittedField",
    "WPFormsProvider",
    "normalize_value",
]
