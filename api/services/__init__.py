# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - External integrations and side effects.
"""

from .mongodb import MongoDBService, get_mongodb_service, close_mongodb_connection
from .tenant_directory import TenantDirectory
from .drafts import DraftStore, PersistenceFailure
from .invites import InviteTokenIssuer, InviteValidationError, TokenIssueFailure
from .adjudicator import SubmissionGateway, SubmissionRejected
from .verification import VerificationWizard, WizardSessions

__all__ = [
    "MongoDBService",
    "get_mongodb_service",
    "close_mongodb_connection",
    "TenantDirectory",
    "DraftStore",
    "PersistenceFailure",
    "InviteTokenIssuer",
    "InviteValidationError",
    "TokenIssueFailure",
    "SubmissionGateway",
    "SubmissionRejected",
    "VerificationWizard",
    "WizardSessions"
]
